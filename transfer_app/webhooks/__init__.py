"""Chainrails webhook ingress.

Each delivery is signature-verified, checked for freshness, optionally
deduplicated, and recorded against the intent it belongs to.
"""
