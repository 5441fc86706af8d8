"""
Unit tests for CLOBClient using httpx.MockTransport.
"""
import json
from decimal import Decimal

import httpx
import pytest

from signet.core.retry import (
    AuthenticationError,
    NetworkError,
    PermanentError,
    RateLimitError,
    ServiceUnavailableError,
)
from signet.domain.order import OrderLifetime
from signet.domain.result import Err, Ok
from signet.integrations.polymarket.clob import CLOBClient
from signet.integrations.polymarket.signing import SignatureType, SignedOrder, build_order_message

ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

BOOK_RESPONSE = {
    "market": "0xmarket",
    "asset_id": "123",
    "bids": [{"price": "0.47", "size": "30"}, {"price": "0.48", "size": "50"}],
    "asks": [{"price": "0.52", "size": "40"}, {"price": "0.50", "size": "40"}],
    "tick_size": "0.001",
    "min_order_size": "5",
    "neg_risk": True,
    "last_trade_price": "0.49",
}


def make_client(handler) -> CLOBClient:
    return CLOBClient(base_url="https://clob.test", transport=httpx.MockTransport(handler))


def signed_order(spec) -> SignedOrder:
    message = build_order_message(spec, ADDRESS, ADDRESS, SignatureType.EOA, salt=5)
    return SignedOrder(message=message, signature="0xsig")


class TestConnection:
    """Tests for client lifecycle."""

    @pytest.mark.asyncio
    async def test_requires_connect(self):
        client = CLOBClient(base_url="https://clob.test")
        with pytest.raises(NetworkError):
            await client.get_order_book("123")

    @pytest.mark.asyncio
    async def test_context_manager(self):
        async with make_client(lambda request: httpx.Response(200, json=1)) as client:
            assert client.is_connected
        assert not client.is_connected


class TestOrderBook:
    """Tests for GET /book."""

    @pytest.mark.asyncio
    async def test_parses_and_sorts_levels(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=BOOK_RESPONSE)

        async with make_client(handler) as client:
            book = await client.get_order_book("123")

        assert seen[0].url.path == "/book"
        assert seen[0].url.params["token_id"] == "123"
        assert book.best_bid == Decimal("0.48")
        assert book.best_ask == Decimal("0.50")
        assert book.tick_size == Decimal("0.001")
        assert book.min_order_size == Decimal("5")
        assert book.neg_risk is True
        assert book.last_trade_price == Decimal("0.49")

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(404, json={"error": "No orderbook exists"})

        async with make_client(handler) as client:
            with pytest.raises(PermanentError):
                await client.get_order_book("missing")
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_transient_error_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(503)
            return httpx.Response(200, json=BOOK_RESPONSE)

        async with make_client(handler) as client:
            book = await client.get_order_book("123")
        assert len(calls) == 2
        assert book.best_ask == Decimal("0.50")


class TestCredentialEndpoints:
    """Tests for derive/create API key."""

    L1 = {"POLY_ADDRESS": ADDRESS, "POLY_SIGNATURE": "0xsig", "POLY_TIMESTAMP": "1", "POLY_NONCE": "0"}

    @pytest.mark.asyncio
    async def test_derive_success(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"apiKey": "k", "secret": "s", "passphrase": "p"})

        async with make_client(handler) as client:
            result = await client.derive_api_key(self.L1)

        assert isinstance(result, Ok)
        assert result.value.api_key == "k"
        assert seen[0].method == "GET"
        assert seen[0].url.path == "/auth/derive-api-key"
        assert seen[0].headers["POLY_SIGNATURE"] == "0xsig"

    @pytest.mark.asyncio
    async def test_derive_incomplete_is_err(self):
        async with make_client(lambda r: httpx.Response(200, json={"apiKey": "k"})) as client:
            result = await client.derive_api_key(self.L1)
        assert isinstance(result, Err)

    @pytest.mark.asyncio
    async def test_create_http_error_is_err(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(400, json={"error": "bad"})

        async with make_client(handler) as client:
            result = await client.create_api_key(self.L1)
        assert isinstance(result, Err)
        assert "400" in result.error
        assert seen[0].method == "POST"
        assert seen[0].url.path == "/auth/api-key"


class TestPostOrder:
    """Tests for POST /order."""

    @pytest.mark.asyncio
    async def test_success_with_l2_headers(self, spec_factory, api_creds):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={"success": True, "orderID": "0xabc", "status": "matched", "orderHashes": ["0xtx"]},
            )

        async with make_client(handler) as client:
            result = await client.post_order(
                signed_order(spec_factory()), OrderLifetime.GTC, api_creds, ADDRESS
            )

        assert isinstance(result, Ok)
        assert result.value.order_id == "0xabc"
        assert result.value.status == "matched"
        assert result.value.order_hashes == ("0xtx",)

        request = seen[0]
        for header in ("POLY_ADDRESS", "POLY_SIGNATURE", "POLY_TIMESTAMP", "POLY_API_KEY", "POLY_PASSPHRASE"):
            assert header in request.headers
        assert request.headers["POLY_API_KEY"] == api_creds.api_key

        body = json.loads(request.content)
        assert body["owner"] == api_creds.api_key
        assert body["orderType"] == "GTC"
        assert body["deferExec"] is False
        assert body["order"]["side"] == "BUY"
        assert body["order"]["makerAmount"] == "4700000"

    @pytest.mark.asyncio
    async def test_rejection_is_err(self, spec_factory, api_creds):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"success": False, "errorMsg": "not enough balance / allowance"})

        async with make_client(handler) as client:
            result = await client.post_order(signed_order(spec_factory()), OrderLifetime.GTC, api_creds, ADDRESS)

        assert isinstance(result, Err)
        assert result.error == "not enough balance / allowance"

    @pytest.mark.asyncio
    async def test_success_false_with_200_is_err(self, spec_factory, api_creds):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"success": False, "errorMsg": "no orders found to match with FAK order"})

        async with make_client(handler) as client:
            result = await client.post_order(signed_order(spec_factory()), OrderLifetime.FAK, api_creds, ADDRESS)
        assert isinstance(result, Err)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,error_type",
        [(429, RateLimitError), (502, ServiceUnavailableError), (401, AuthenticationError)],
    )
    async def test_http_failures_raise_without_retry(self, spec_factory, api_creds, status, error_type):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(status, json={})

        async with make_client(handler) as client:
            with pytest.raises(error_type):
                await client.post_order(signed_order(spec_factory()), OrderLifetime.GTC, api_creds, ADDRESS)
        assert len(calls) == 1


class TestOpenOrders:
    """Tests for GET /data/orders."""

    @pytest.mark.asyncio
    async def test_paged_payload(self, api_creds):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"data": [{"id": "1"}], "next_cursor": "LTE="})

        async with make_client(handler) as client:
            orders = await client.get_open_orders(api_creds, ADDRESS, market="0xmarket")

        assert orders == [{"id": "1"}]
        assert seen[0].url.path == "/data/orders"
        assert seen[0].url.params["market"] == "0xmarket"
        assert "POLY_API_KEY" in seen[0].headers

    @pytest.mark.asyncio
    async def test_list_payload(self, api_creds):
        async with make_client(lambda r: httpx.Response(200, json=[{"id": "2"}])) as client:
            assert await client.get_open_orders(api_creds, ADDRESS) == [{"id": "2"}]
