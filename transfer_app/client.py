"""Chainrails REST API client.

Thin wrapper over the Chainrails v1 API: chains and tokens, bridge quotes and
routes, and transfer intents. Responses are returned as parsed JSON; this
client does not model the vendor's schemas beyond what callers read.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from transfer_app.config import get_settings
from transfer_app.retry import RetryPolicy, send_with_retry

logger = logging.getLogger(__name__)

# Reported when Chainrails gave no usable response (unreachable, timeout, bad JSON)
NO_RESPONSE_STATUS = 502


class ChainrailsConfigError(RuntimeError):
    """Client cannot be built from the current configuration."""


class ChainrailsAPIError(Exception):
    """Chainrails call failed: non-2xx status or no usable response."""

    def __init__(self, status_code: int, message: str, path: str = "") -> None:
        super().__init__(f"Chainrails API error {status_code} on {path}: {message}")
        self.status_code = status_code
        self.message = message
        self.path = path


def _params(**kwargs: Any) -> dict[str, Any]:
    """Drop unset query params; join list values with commas."""
    params: dict[str, Any] = {}
    for key, value in kwargs.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            if not value:
                continue
            value = ",".join(str(v) for v in value)
        params[key] = value
    return params


class ChainrailsClient:
    """Synchronous Chainrails API client."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 30.0,
        http_client: httpx.Client | None = None,
        retry: RetryPolicy | None = None,
    ) -> None:
        if not api_key:
            raise ChainrailsConfigError(
                "CHAINRAILS_API_KEY is required. Get one from your Chainrails dashboard."
            )
        self._http = http_client or httpx.Client(timeout=timeout)
        self._base_url = base_url.rstrip("/")
        self._retry = retry or RetryPolicy()
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def close(self) -> None:
        self._http.close()

    def _request(
        self,
        method: str,
        path: str,
        params: dict | None = None,
        body: dict | None = None,
    ) -> Any:
        def send() -> httpx.Response:
            response = self._http.request(
                method,
                f"{self._base_url}{path}",
                params=params or None,
                json=body,
                headers=self._headers,
            )
            response.raise_for_status()
            return response

        try:
            response = send_with_retry(send, method, path, self._retry)
        except httpx.HTTPStatusError as e:
            logger.error("Chainrails %s %s failed: HTTP %d", method, path, e.response.status_code)
            raise ChainrailsAPIError(
                e.response.status_code, e.response.reason_phrase, path
            ) from e
        except httpx.HTTPError as e:
            logger.error("Chainrails %s %s unreachable: %s", method, path, e)
            raise ChainrailsAPIError(NO_RESPONSE_STATUS, type(e).__name__, path) from e

        try:
            return response.json()
        except ValueError as e:
            logger.error("Chainrails %s %s returned a non-JSON body", method, path)
            raise ChainrailsAPIError(NO_RESPONSE_STATUS, "response body is not JSON", path) from e

    # ── Chains ────────────────────────────────────────────────────────────

    def get_chains(self, network: str | None = None) -> list[dict]:
        """All supported chains, optionally filtered to 'mainnet' or 'testnet'."""
        chains = self._request("GET", "/chains", _params(network=network))
        logger.info("Found %d supported %schains", len(chains), f"{network} " if network else "")
        return chains

    def get_supported_tokens(self, chain: str) -> list[dict]:
        tokens = self._request("GET", f"/chains/{chain}/tokens")
        logger.info("Found %d supported tokens on %s", len(tokens), chain)
        return tokens

    def get_chain_selector_data(self) -> dict[str, list[dict]]:
        """Chains grouped by environment, ready for a chain picker."""
        return {
            "mainnet": self.get_chains("mainnet"),
            "testnet": self.get_chains("testnet"),
        }

    # ── Quotes and routes ─────────────────────────────────────────────────

    def get_single_quote(
        self,
        token_in: str,
        token_out: str,
        source_chain: str,
        destination_chain: str,
        amount: str,
        bridge: str,
        recipient: str | None = None,
    ) -> dict:
        """Quote from one specific bridge."""
        logger.info("Quote from %s for %s -> %s", bridge, source_chain, destination_chain)
        return self._request(
            "GET",
            "/quotes/single",
            _params(
                tokenIn=token_in,
                tokenOut=token_out,
                sourceChain=source_chain,
                destinationChain=destination_chain,
                amount=amount,
                bridge=bridge,
                recipient=recipient,
            ),
        )

    def get_multiple_quotes(
        self,
        token_in: str,
        token_out: str,
        source_chain: str,
        destination_chain: str,
        amount: str,
        recipient: str | None = None,
        exclude_bridges: list[str] | None = None,
    ) -> list[dict]:
        """Quotes from every bridge supporting the route."""
        return self._request(
            "GET",
            "/quotes/multiple",
            _params(
                tokenIn=token_in,
                tokenOut=token_out,
                sourceChain=source_chain,
                destinationChain=destination_chain,
                amount=amount,
                recipient=recipient,
                excludeBridges=exclude_bridges,
            ),
        )

    def get_best_quote(
        self,
        token_in: str,
        token_out: str,
        source_chain: str,
        destination_chain: str,
        amount: str,
        recipient: str | None = None,
        exclude_bridges: list[str] | None = None,
    ) -> dict:
        """Cheapest quote for the route, chosen server-side."""
        return self._request(
            "GET",
            "/quotes/best",
            _params(
                tokenIn=token_in,
                tokenOut=token_out,
                sourceChain=source_chain,
                destinationChain=destination_chain,
                amount=amount,
                recipient=recipient,
                excludeBridges=exclude_bridges,
            ),
        )

    def get_multi_source_quotes(
        self,
        destination_chain: str,
        amount: str,
        token_out: str,
        recipient: str | None = None,
    ) -> dict:
        """Best quote from every possible source chain, cheapest first."""
        result = self._request(
            "GET",
            "/quotes/multi-source",
            _params(
                destinationChain=destination_chain,
                amount=amount,
                tokenOut=token_out,
                recipient=recipient,
            ),
        )
        logger.info("Received quotes from %d source chains", len(result.get("quotes", [])))
        return result

    def find_optimal_route(
        self,
        token_in: str,
        token_out: str,
        source_chain: str,
        destination_chain: str,
        amount: str,
        recipient: str | None = None,
    ) -> dict:
        route = self._request(
            "GET",
            "/router/optimal-route",
            _params(
                tokenIn=token_in,
                tokenOut=token_out,
                sourceChain=source_chain,
                destinationChain=destination_chain,
                amount=amount,
                recipient=recipient,
            ),
        )
        logger.info("Optimal route: bridge=%s fee=%s", route.get("bridgeToUse"), route.get("totalFees"))
        return route

    def get_supported_bridges(self, source_chain: str, destination_chain: str) -> dict:
        result = self._request(
            "GET",
            "/router/supported-bridges/route",
            _params(sourceChain=source_chain, destinationChain=destination_chain),
        )
        if not result.get("supportedBridges"):
            logger.warning("No bridges support %s -> %s", source_chain, destination_chain)
        return result

    # ── Intents ───────────────────────────────────────────────────────────

    def create_intent(
        self,
        sender: str,
        amount: str | int,
        token_in: str,
        source_chain: str,
        destination_chain: str,
        recipient: str,
        refund_address: str,
        metadata: dict[str, Any] | None = None,
    ) -> dict:
        """Create a transfer intent. The user funds it by sending to intent_address."""
        intent = self._request(
            "POST",
            "/intents",
            body={
                "sender": sender,
                "amount": amount,
                "tokenIn": token_in,
                "source_chain": source_chain,
                "destination_chain": destination_chain,
                "recipient": recipient,
                "refund_address": refund_address,
                "metadata": metadata or {},
            },
        )
        logger.info("Intent %s created, fund at %s", intent.get("id"), intent.get("intent_address"))
        return intent

    def get_intent(self, intent_id: int) -> dict:
        return self._request("GET", f"/intents/{intent_id}")

    def get_user_intents(self, address: str) -> list[dict]:
        return self._request("GET", f"/intents/user/{address}")

    def get_intents(
        self,
        limit: int | None = None,
        offset: int | None = None,
        status: str | None = None,
    ) -> Any:
        """Paginated intent listing (limit defaults to 50 server-side, max 100)."""
        return self._request("GET", "/intents", _params(limit=limit, offset=offset, status=status))


_client: ChainrailsClient | None = None


def get_client() -> ChainrailsClient:
    """Get or create the singleton client from settings."""
    global _client
    if _client is None:
        settings = get_settings()
        _client = ChainrailsClient(
            settings.api_url,
            settings.api_key,
            settings.http_timeout,
            retry=RetryPolicy.from_settings(settings),
        )
    return _client
