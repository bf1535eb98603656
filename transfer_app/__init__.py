"""Chainrails cross-chain transfer demo service.

Wraps the Chainrails REST API (chains, quotes, intents) and receives
Chainrails webhooks with signature verification and per-intent event tracking.
"""
