"""Token amount formatting."""

from __future__ import annotations

import re

_NON_DIGITS = re.compile(r"[^0-9]")


def format_units(value: str, decimals: int) -> str:
    """Format an integer amount in smallest units as a decimal string.

    ``format_units("1500000", 6) == "1.5"``. Non-positive *decimals* returns
    *value* unchanged; trailing fractional zeros are dropped.
    """
    if decimals <= 0:
        return value

    negative = value.startswith("-")
    digits = _NON_DIGITS.sub("", value[1:] if negative else value)
    if not digits:
        return "0"

    padded = digits.rjust(decimals + 1, "0")
    integer_part = padded[:-decimals]
    fraction_part = padded[-decimals:].rstrip("0")

    formatted = f"{integer_part}.{fraction_part}" if fraction_part else integer_part
    return f"-{formatted}" if negative else formatted
