"""Transfer orchestration: options -> intent -> status.

Combines the Chainrails client with the webhook correlator into the complete
transfer flow:
- Present every source chain the user could pay from, cheapest first
- Create an intent for the chosen source and start tracking its webhooks
- Report intent status together with the webhook events received so far

Intent status is owned and transitioned by Chainrails; this module only reads it.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from transfer_app.client import ChainrailsClient
from transfer_app.units import format_units
from transfer_app.webhooks.correlator import WebhookCorrelator

logger = logging.getLogger(__name__)


class IntentStatus(str, Enum):
    """Chainrails intent lifecycle states."""

    PENDING = "PENDING"
    FUNDED = "FUNDED"
    INITIATED = "INITIATED"
    COMPLETED = "COMPLETED"
    EXPIRED = "EXPIRED"
    REFUNDED = "REFUNDED"


STATUS_MESSAGES: dict[str, str] = {
    IntentStatus.PENDING.value: "Waiting for funding",
    IntentStatus.FUNDED.value: "Funded, processing starting...",
    IntentStatus.INITIATED.value: "Transfer in progress",
    IntentStatus.COMPLETED.value: "Transfer completed!",
    IntentStatus.EXPIRED.value: "Intent expired",
    IntentStatus.REFUNDED.value: "Transfer refunded",
}

_FAILED_STATUSES = {IntentStatus.EXPIRED.value, IntentStatus.REFUNDED.value}

CREATED_VIA = "complete-demo-app"


def _format_option(
    index: int,
    quote: dict[str, Any],
    destination_chain: str,
    token_out: str,
    token_decimals: int | None,
) -> dict[str, Any]:
    best = quote.get("bestQuote") or {}
    route = best.get("route") or {}
    same_chain = quote.get("sourceChain") == destination_chain

    if same_chain:
        bridge = "None (same chain)"
    else:
        bridge = route.get("bridgeToUse") or "Auto-selected"

    option = {
        "index": index + 1,
        "sourceChain": quote.get("sourceChain"),
        "type": "same-chain" if same_chain else "cross-chain",
        "fee": best.get("totalFee") or "0",
        "feeFormatted": best.get("totalFeeFormatted") or "0",
        "bridge": bridge,
        "recommended": index == 0,  # API returns cheapest first
        "tokenIn": route.get("tokenIn") or token_out,
        "amountInSmallestUnit": best.get("amount") or "0",
    }
    if token_decimals is not None:
        option["amountFormatted"] = format_units(str(option["amountInSmallestUnit"]), token_decimals)
    return option


class TransferService:
    """Complete cross-chain transfer flow on top of Chainrails."""

    def __init__(self, client: ChainrailsClient, correlator: WebhookCorrelator) -> None:
        self.client = client
        self.correlator = correlator

    def get_transfer_options(
        self,
        destination_chain: str,
        amount: str,
        token_out: str,
        recipient: str | None = None,
        token_decimals: int | None = None,
    ) -> dict[str, Any]:
        """Every source chain the transfer could be paid from, cheapest first."""
        result = self.client.get_multi_source_quotes(
            destination_chain=destination_chain,
            amount=amount,
            token_out=token_out,
            recipient=recipient,
        )
        options = [
            _format_option(i, quote, destination_chain, token_out, token_decimals)
            for i, quote in enumerate(result.get("quotes") or [])
        ]
        return {
            "destinationChain": destination_chain,
            "amount": amount,
            "options": options,
            "cheapestOption": options[0] if options else None,
            "totalOptions": len(options),
        }

    def create_transfer(
        self,
        source_chain: str,
        destination_chain: str,
        amount: str,
        token_in: str,
        recipient: str,
        sender: str,
        refund_address: str,
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Create an intent for the chosen source and start tracking its webhooks."""
        intent = self.client.create_intent(
            sender=sender,
            amount=amount,
            token_in=token_in,
            source_chain=source_chain,
            destination_chain=destination_chain,
            recipient=recipient,
            refund_address=refund_address,
            metadata={**(metadata or {}), "createdVia": CREATED_VIA},
        )

        intent_address = intent.get("intent_address")
        if intent_address:
            self.correlator.record_transfer_created(intent_address)
        else:
            logger.warning("Intent %s has no intent_address, webhooks cannot be tracked", intent.get("id"))

        return {
            "intent": intent,
            "fundingInstructions": {
                "address": intent_address,
                "amount": intent.get("totalAmount"),
                "network": source_chain,
                "deadline": intent.get("expires_at"),
            },
            "tracking": {
                "intentId": intent.get("id"),
                "intentAddress": intent_address,
            },
        }

    def get_transfer_status(self, intent_id: int) -> dict[str, Any]:
        """Current intent status plus the webhook events received for it."""
        intent = self.client.get_intent(intent_id)
        status = intent.get("intent_status")
        address = intent.get("intent_address")
        events = self.correlator.get_events(address) if address else []

        return {
            "intent": intent,
            "webhookEvents": [e.to_dict() for e in events],
            "statusMessage": STATUS_MESSAGES.get(status, status),
            "isComplete": status == IntentStatus.COMPLETED.value,
            "isFailed": status in _FAILED_STATUSES,
        }
