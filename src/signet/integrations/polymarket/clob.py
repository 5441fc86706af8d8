"""Polymarket CLOB client.

Async HTTP adapter for the endpoints the order pipeline needs:
- order-book reads (public)
- L2 credential derivation and creation (L1 wallet-signed headers)
- order posting and open-order reads (L2 HMAC headers)

Read-only calls retry transient failures. Writes never retry; a failed
write is reported to the caller for manual resubmission.
"""

import json
import time
from typing import Any, Optional

import httpx
import structlog
from py_clob_client.clob_types import ApiCreds
from py_clob_client.endpoints import (
    CREATE_API_KEY,
    DERIVE_API_KEY,
    GET_ORDER_BOOK,
    ORDERS,
    POST_ORDER,
    TIME,
)
from py_clob_client.headers.headers import (
    POLY_ADDRESS,
    POLY_API_KEY,
    POLY_PASSPHRASE,
    POLY_SIGNATURE,
    POLY_TIMESTAMP,
)
from py_clob_client.signing.hmac import build_hmac_signature

from signet.core.config import DEFAULT_CLOB_URL
from signet.core.retry import (
    NetworkError,
    retry_network,
    wrap_external_error,
)
from signet.domain.market import OrderBook
from signet.domain.order import OrderLifetime
from signet.domain.result import Err, Ok, Result
from signet.integrations.polymarket.signing import SignedOrder
from signet.integrations.polymarket.types import (
    OrderResponse,
    parse_api_creds,
    parse_order_book,
)

log = structlog.get_logger()

DEFAULT_TIMEOUT_SECONDS = 10.0


class CLOBClient:
    """Async HTTP client for the Polymarket CLOB API."""

    def __init__(
        self,
        base_url: str = DEFAULT_CLOB_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        proxy: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the CLOB client.

        Args:
            base_url: CLOB HTTP API base URL.
            timeout: HTTP request timeout in seconds.
            proxy: Optional HTTP proxy for routing requests.
            transport: Optional transport override (takes precedence over proxy).
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._proxy = proxy
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._log = log.bind(component="clob_client")

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> None:
        """Initialize the HTTP client."""
        if self._client is not None:
            return

        transport = self._transport
        if transport is None and self._proxy:
            transport = httpx.AsyncHTTPTransport(proxy=self._proxy)

        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )
        self._log.info("clob_client_connected", base_url=self._base_url)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            self._log.info("clob_client_closed")

    async def __aenter__(self) -> "CLOBClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _ensure_connected(self) -> httpx.AsyncClient:
        if self._client is None:
            raise NetworkError("CLOB client not connected. Call connect() first.")
        return self._client

    # =========================================================================
    # Public reads
    # =========================================================================

    @retry_network()
    async def get_order_book(self, token_id: str) -> OrderBook:
        """Fetch the current order book for a token."""
        client = self._ensure_connected()
        try:
            response = await client.get(GET_ORDER_BOOK, params={"token_id": token_id})
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise wrap_external_error(e, f"order book fetch failed for {token_id}") from e
        return parse_order_book(token_id, response.json())

    @retry_network()
    async def get_server_time(self) -> int:
        client = self._ensure_connected()
        try:
            response = await client.get(TIME)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise wrap_external_error(e, "server time fetch failed") from e
        return int(response.json())

    # =========================================================================
    # Credential endpoints (L1)
    # =========================================================================

    async def derive_api_key(self, headers: dict[str, str]) -> Result[ApiCreds, str]:
        """Deterministically derive the wallet's existing L2 credentials."""
        return await self._credential_request("GET", DERIVE_API_KEY, headers)

    async def create_api_key(self, headers: dict[str, str]) -> Result[ApiCreds, str]:
        """Create new L2 credentials for the wallet."""
        return await self._credential_request("POST", CREATE_API_KEY, headers)

    async def _credential_request(
        self, method: str, path: str, headers: dict[str, str]
    ) -> Result[ApiCreds, str]:
        client = self._ensure_connected()
        try:
            response = await client.request(method, path, headers=headers)
        except httpx.TransportError as e:
            raise wrap_external_error(e, f"{method} {path} failed") from e

        if response.is_error:
            return Err(f"{method} {path} returned HTTP {response.status_code}: {response.text}")

        try:
            payload = response.json()
        except ValueError:
            return Err(f"{method} {path} returned a non-JSON body")

        creds = parse_api_creds(payload)
        if creds is None:
            return Err(f"{method} {path} returned incomplete credentials")
        return Ok(creds)

    # =========================================================================
    # Authenticated endpoints (L2)
    # =========================================================================

    def _l2_headers(
        self,
        creds: ApiCreds,
        address: str,
        method: str,
        path: str,
        body: Optional[str] = None,
    ) -> dict[str, str]:
        timestamp = int(time.time())
        signature = build_hmac_signature(creds.api_secret, timestamp, method, path, body)
        return {
            POLY_ADDRESS: address,
            POLY_SIGNATURE: signature,
            POLY_TIMESTAMP: str(timestamp),
            POLY_API_KEY: creds.api_key,
            POLY_PASSPHRASE: creds.api_passphrase,
        }

    async def post_order(
        self,
        order: SignedOrder,
        order_type: OrderLifetime,
        creds: ApiCreds,
        address: str,
        defer_exec: bool = False,
    ) -> Result[OrderResponse, str]:
        """Submit a signed order.

        Returns Err with the exchange's reason when the order is refused.
        Raises RateLimitError, ServiceUnavailableError or AuthenticationError
        for HTTP 429, 5xx and 401/403, and NetworkError on transport failure.
        """
        client = self._ensure_connected()
        body = {
            "order": order.to_payload(),
            "owner": creds.api_key,
            "orderType": order_type.value,
            "deferExec": defer_exec,
        }
        serialized = json.dumps(body, separators=(",", ":"))
        headers = self._l2_headers(creds, address, "POST", POST_ORDER, serialized)
        headers["Content-Type"] = "application/json"

        try:
            response = await client.post(POST_ORDER, content=serialized, headers=headers)
        except httpx.TransportError as e:
            raise wrap_external_error(e, "order submission failed") from e

        status = response.status_code
        if status == 429 or status >= 500 or status in (401, 403):
            try:
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise wrap_external_error(e, "order submission failed") from e

        try:
            payload = response.json()
        except ValueError:
            return Err(f"order submission returned HTTP {status} with a non-JSON body")

        parsed = OrderResponse.from_dict(payload if isinstance(payload, dict) else {})
        if response.is_error or not parsed.success:
            reason = parsed.error_msg or f"order rejected (HTTP {status})"
            self._log.warning(
                "order_rejected",
                http_status=status,
                reason=reason,
                order_type=order_type.value,
            )
            return Err(reason)

        return Ok(parsed)

    @retry_network()
    async def get_open_orders(
        self,
        creds: ApiCreds,
        address: str,
        market: Optional[str] = None,
        asset_id: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        """Fetch the wallet's open orders, optionally filtered by market or token."""
        client = self._ensure_connected()
        params = {}
        if market:
            params["market"] = market
        if asset_id:
            params["asset_id"] = asset_id

        headers = self._l2_headers(creds, address, "GET", ORDERS)
        try:
            response = await client.get(ORDERS, params=params, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise wrap_external_error(e, "open orders fetch failed") from e

        payload = response.json()
        if isinstance(payload, dict):
            return list(payload.get("data") or [])
        return list(payload or [])
