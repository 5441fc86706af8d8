"""
Shared pytest fixtures for Signet tests.
"""
from decimal import Decimal
from typing import Any, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from py_clob_client.clob_types import ApiCreds

from signet.core.config import EngineSettings
from signet.domain.market import (
    MarketRules,
    MarketSnapshot,
    OrderBook,
    OrderBookLevel,
    OutcomeOption,
)
from signet.domain.order import ExecutionType, OrderLifetime, OrderSide, OrderSpec
from signet.domain.result import Ok
from signet.integrations.polymarket.signing import SignatureType
from signet.integrations.polymarket.types import OrderResponse

# Well-known throwaway key (hardhat account #0); never funded on Polygon.
TEST_PRIVATE_KEY = "0xac0974bec39a17e36ba4a4b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

YES_TOKEN = "71321045679252212594626385532706912750332728571942532289631379312455583992563"
NO_TOKEN = "52114319501245915516055106046884209969926127482827954674443846427813813222426"


class FakeWallet:
    """In-memory WalletSigner with scriptable chain and signature behaviour."""

    def __init__(
        self,
        address: str = TEST_ADDRESS,
        chain_id: int = 137,
        funder_address: Optional[str] = None,
    ) -> None:
        self._address = address
        self._funder = funder_address or address
        self.chain_id = chain_id
        self.signature_type = SignatureType.EOA
        self.sign_calls: list[dict[str, Any]] = []
        self.switch_calls: list[int] = []
        self.sign_error: Optional[Exception] = None
        self.switch_error: Optional[Exception] = None
        self.switch_lands = True

    @property
    def address(self) -> str:
        return self._address

    @property
    def funder_address(self) -> str:
        return self._funder

    async def get_chain_id(self) -> int:
        return self.chain_id

    async def switch_chain(self, chain_id: int) -> None:
        self.switch_calls.append(chain_id)
        if self.switch_error is not None:
            raise self.switch_error
        if self.switch_lands:
            self.chain_id = chain_id

    async def sign_typed_data(self, typed_data: dict[str, Any]) -> str:
        self.sign_calls.append(typed_data)
        if self.sign_error is not None:
            raise self.sign_error
        return "0x" + "ab" * 65


@pytest.fixture
def wallet() -> FakeWallet:
    return FakeWallet()


@pytest.fixture
def api_creds() -> ApiCreds:
    return ApiCreds(
        api_key="0c0b2b3e-6e7e-4d4b-9b7a-5f1e2d3c4b5a",
        api_secret="c2VjcmV0LXNlY3JldC1zZWNyZXQtc2VjcmV0LXNlY3I=",
        api_passphrase="passphrase-value",
    )


@pytest.fixture
def fast_settings() -> EngineSettings:
    """Settings with chain-switch polling shortened for tests."""
    return EngineSettings(
        chain_switch_poll_attempts=3,
        chain_switch_poll_interval_seconds=0.0,
        client_ready_timeout_seconds=1.0,
    )


@pytest.fixture
def mock_clob(api_creds) -> MagicMock:
    """Mock CLOBClient that accepts every order."""
    clob = MagicMock()
    clob.derive_api_key = AsyncMock(return_value=Ok(api_creds))
    clob.create_api_key = AsyncMock(return_value=Ok(api_creds))
    clob.post_order = AsyncMock(
        return_value=Ok(
            OrderResponse(
                success=True,
                order_id="0xorder",
                status="live",
                order_hashes=(),
            )
        )
    )
    clob.get_open_orders = AsyncMock(return_value=[])
    clob.get_order_book = AsyncMock()
    clob.get_server_time = AsyncMock(return_value=1_700_000_000)
    clob.connect = AsyncMock()
    clob.close = AsyncMock()
    return clob


@pytest.fixture
def sample_book() -> OrderBook:
    """Book with asks 40@0.50, 40@0.51, 40@0.52 and bids 50@0.48, 30@0.47."""
    return OrderBook(
        token_id=YES_TOKEN,
        bids=(
            OrderBookLevel(price=Decimal("0.48"), size=Decimal("50")),
            OrderBookLevel(price=Decimal("0.47"), size=Decimal("30")),
        ),
        asks=(
            OrderBookLevel(price=Decimal("0.50"), size=Decimal("40")),
            OrderBookLevel(price=Decimal("0.51"), size=Decimal("40")),
            OrderBookLevel(price=Decimal("0.52"), size=Decimal("40")),
        ),
        last_trade_price=Decimal("0.49"),
        tick_size=Decimal("0.01"),
        min_order_size=Decimal("5"),
        neg_risk=False,
    )


@pytest.fixture
def market() -> MarketSnapshot:
    return MarketSnapshot(
        market_id="0xmarket",
        question="Will it rain tomorrow?",
        outcomes=(
            OutcomeOption(
                label="Yes",
                token_id=YES_TOKEN,
                last_trade_price=Decimal("0.49"),
                best_bid=Decimal("0.48"),
                best_ask=Decimal("0.50"),
            ),
            OutcomeOption(
                label="No",
                token_id=NO_TOKEN,
                last_trade_price=Decimal("0.51"),
                best_bid=Decimal("0.50"),
                best_ask=Decimal("0.52"),
            ),
        ),
        rules=MarketRules(),
    )


def make_spec(
    side: OrderSide = OrderSide.BUY,
    price: str = "0.47",
    size: str = "10",
    order_type: OrderLifetime = OrderLifetime.GTC,
    execution_type: ExecutionType = ExecutionType.LIMIT,
    **kwargs: Any,
) -> OrderSpec:
    return OrderSpec(
        token_id=kwargs.pop("token_id", YES_TOKEN),
        side=side,
        execution_type=execution_type,
        order_type=order_type,
        price=Decimal(price),
        size=Decimal(size),
        tick_size=kwargs.pop("tick_size", Decimal("0.01")),
        **kwargs,
    )


@pytest.fixture
def spec_factory():
    """Build OrderSpecs with sensible defaults."""
    return make_spec


@pytest.fixture
def wallet_factory():
    """Build additional FakeWallets (e.g. to switch accounts)."""
    return FakeWallet
