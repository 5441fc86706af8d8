"""
Unit tests for OrderParameterBuilder.

Tests verify:
- Tick validation with float-noise tolerance
- Size resolution from shares and dollars
- Order type mapping
- GTD expiration buffer (inclusive boundary)
- Balance gating for BUY only
- Market order pricing from depth
"""
from decimal import Decimal

import pytest

from signet.domain.market import DepthEstimate, MarketRules
from signet.domain.order import (
    AmountMode,
    ExecutionType,
    OrderIntent,
    OrderLifetime,
    OrderSide,
    ValidationIssue,
    resolve_order_type,
)
from signet.services.order_builder import (
    OrderParameterBuilder,
    is_on_tick,
    marketable_price,
    snap_to_tick,
)

NOW = 1_700_000_000
TOKEN = "12345"


@pytest.fixture
def builder() -> OrderParameterBuilder:
    return OrderParameterBuilder(clock=lambda: NOW)


@pytest.fixture
def rules() -> MarketRules:
    return MarketRules(tick_size=Decimal("0.01"), min_size=Decimal("5"))


def limit_intent(**kwargs) -> OrderIntent:
    defaults = dict(price=Decimal("0.47"), shares=Decimal("10"))
    defaults.update(kwargs)
    return OrderIntent(**defaults)


class TestTickHelpers:
    """Tests for tick arithmetic."""

    def test_on_tick(self):
        assert is_on_tick(Decimal("0.47"), Decimal("0.01"))
        assert is_on_tick(Decimal("0.47000000000000003"), Decimal("0.01"))
        assert not is_on_tick(Decimal("0.473"), Decimal("0.01"))
        assert is_on_tick(Decimal("0.125"), Decimal("0.001"))

    def test_snap_to_tick(self):
        assert snap_to_tick(Decimal("0.47000000000000003"), Decimal("0.01")) == Decimal("0.47")

    def test_marketable_price_rounds_outward(self):
        """Verify BUY rounds up and SELL rounds down, clamped inside (0, 1)."""
        tick = Decimal("0.01")
        assert marketable_price(Decimal("0.505"), tick, OrderSide.BUY) == Decimal("0.51")
        assert marketable_price(Decimal("0.505"), tick, OrderSide.SELL) == Decimal("0.50")
        assert marketable_price(Decimal("0.999"), tick, OrderSide.BUY) == Decimal("0.99")
        assert marketable_price(Decimal("0.001"), tick, OrderSide.SELL) == Decimal("0.01")


class TestOrderTypeMapping:
    """Tests for resolve_order_type."""

    def test_market_is_always_fak(self):
        for lifetime in OrderLifetime:
            assert resolve_order_type(ExecutionType.MARKET, lifetime) == OrderLifetime.FAK

    def test_limit_rests(self):
        assert resolve_order_type(ExecutionType.LIMIT, OrderLifetime.GTD) == OrderLifetime.GTD
        assert resolve_order_type(ExecutionType.LIMIT, OrderLifetime.GTC) == OrderLifetime.GTC
        assert resolve_order_type(ExecutionType.LIMIT, OrderLifetime.FOK) == OrderLifetime.GTC


class TestLimitOrders:
    """Tests for limit order validation."""

    def test_valid_limit_order(self, builder, rules):
        validation = builder.build(limit_intent(), TOKEN, rules, market_id="m", outcome_label="Yes")

        assert validation.can_submit
        spec = validation.spec
        assert spec.price == Decimal("0.47")
        assert spec.size == Decimal("10")
        assert spec.order_type == OrderLifetime.GTC
        assert spec.expiration == 0
        assert spec.dollar_amount is None
        assert spec.summary == "BUY 10.00 Yes @ 0.47 (GTC)"

    def test_off_tick_rejected(self, builder, rules):
        validation = builder.build(limit_intent(price=Decimal("0.473")), TOKEN, rules)
        assert not validation.can_submit
        assert validation.issues == (ValidationIssue.PRICE_OFF_TICK,)
        assert validation.reasons == ["Price must be a multiple of the market tick size."]

    def test_float_noise_accepted_and_snapped(self, builder, rules):
        validation = builder.build(limit_intent(price=Decimal("0.47000000000000003")), TOKEN, rules)
        assert validation.can_submit
        assert validation.spec.price == Decimal("0.47")

    @pytest.mark.parametrize("price", [Decimal("0"), Decimal("1"), Decimal("1.2"), Decimal("-0.1")])
    def test_price_out_of_range(self, builder, rules, price):
        validation = builder.build(limit_intent(price=price), TOKEN, rules)
        assert ValidationIssue.PRICE_OUT_OF_RANGE in validation.issues

    def test_missing_price(self, builder, rules):
        validation = builder.build(limit_intent(price=None), TOKEN, rules)
        assert ValidationIssue.MISSING_PRICE in validation.issues

    def test_below_min_size(self, builder, rules):
        validation = builder.build(limit_intent(shares=Decimal("4.99")), TOKEN, rules)
        assert validation.issues == (ValidationIssue.BELOW_MIN_SIZE,)

    def test_missing_size(self, builder, rules):
        validation = builder.build(limit_intent(shares=None), TOKEN, rules)
        assert ValidationIssue.INVALID_SIZE in validation.issues

    def test_missing_token(self, builder, rules):
        validation = builder.build(limit_intent(), None, rules)
        assert ValidationIssue.MISSING_TOKEN in validation.issues

    def test_all_issues_reported_together(self, builder, rules):
        """Verify independent rules are all evaluated."""
        validation = builder.build(
            limit_intent(price=Decimal("0.473"), shares=Decimal("1")), None, rules
        )
        assert set(validation.issues) == {
            ValidationIssue.MISSING_TOKEN,
            ValidationIssue.PRICE_OFF_TICK,
            ValidationIssue.BELOW_MIN_SIZE,
        }

    def test_dollar_amount_converts_at_limit_price(self, builder, rules):
        """Verify $10 at 0.47 gives 21.27 shares (rounded down)."""
        intent = limit_intent(amount_mode=AmountMode.DOLLARS, dollar_amount=Decimal("10"), shares=None)
        validation = builder.build(intent, TOKEN, rules)
        assert validation.spec.size == Decimal("21.27")


class TestGtdExpiration:
    """Tests for the GTD security buffer."""

    def test_expiration_required(self, builder, rules):
        intent = limit_intent(order_lifetime=OrderLifetime.GTD)
        validation = builder.build(intent, TOKEN, rules)
        assert validation.issues == (ValidationIssue.EXPIRATION_REQUIRED,)

    def test_inside_buffer_rejected(self, builder, rules):
        intent = limit_intent(order_lifetime=OrderLifetime.GTD, expiration_timestamp=NOW + 89)
        validation = builder.build(intent, TOKEN, rules)
        assert validation.issues == (ValidationIssue.EXPIRATION_TOO_SOON,)

    def test_buffer_boundary_accepted(self, builder, rules):
        intent = limit_intent(order_lifetime=OrderLifetime.GTD, expiration_timestamp=NOW + 90)
        validation = builder.build(intent, TOKEN, rules)
        assert validation.can_submit
        assert validation.spec.order_type == OrderLifetime.GTD
        assert validation.spec.expiration == NOW + 90

    def test_expiration_ignored_for_gtc(self, builder, rules):
        intent = limit_intent(expiration_timestamp=NOW + 10)
        validation = builder.build(intent, TOKEN, rules)
        assert validation.can_submit
        assert validation.spec.expiration == 0

    def test_default_expiration_two_hours(self, builder):
        assert builder.default_expiration() == NOW + 7200


class TestBalanceCheck:
    """Tests for the BUY balance gate."""

    def test_buy_over_balance_rejected(self, builder, rules):
        validation = builder.build(limit_intent(), TOKEN, rules, available_balance=Decimal("4.69"))
        assert validation.issues == (ValidationIssue.INSUFFICIENT_BALANCE,)

    def test_buy_within_balance(self, builder, rules):
        validation = builder.build(limit_intent(), TOKEN, rules, available_balance=Decimal("4.70"))
        assert validation.can_submit

    def test_sell_not_gated(self, builder, rules):
        validation = builder.build(
            limit_intent(side=OrderSide.SELL), TOKEN, rules, available_balance=Decimal("0")
        )
        assert validation.can_submit

    def test_unknown_balance_skips_check(self, builder, rules):
        assert builder.build(limit_intent(shares=Decimal("1000")), TOKEN, rules).can_submit


class TestMarketOrders:
    """Tests for market order pricing and sizing."""

    @pytest.fixture
    def depth(self) -> DepthEstimate:
        return DepthEstimate(
            token_id=TOKEN,
            side=OrderSide.BUY,
            requested_size=Decimal("100"),
            fillable_size=Decimal("100"),
            estimated_average_price=Decimal("0.508"),
            estimated_total_value=Decimal("50.80"),
            insufficient_liquidity=False,
            worst_price=Decimal("0.52"),
        )

    def test_market_buy_uses_worst_depth_price(self, builder, rules, depth):
        intent = OrderIntent(execution_type=ExecutionType.MARKET, shares=Decimal("100"))
        validation = builder.build(intent, TOKEN, rules, reference_price=Decimal("0.49"), depth=depth)

        spec = validation.spec
        assert spec.order_type == OrderLifetime.FAK
        assert spec.price == Decimal("0.52")
        assert spec.size == Decimal("100")
        assert spec.dollar_amount == Decimal("50.800")

    def test_market_buy_dollars_sized_at_depth_average(self, builder, rules, depth):
        intent = OrderIntent(
            execution_type=ExecutionType.MARKET,
            amount_mode=AmountMode.DOLLARS,
            dollar_amount=Decimal("50.80"),
        )
        validation = builder.build(intent, TOKEN, rules, reference_price=Decimal("0.49"), depth=depth)

        assert validation.spec.size == Decimal("100")
        assert validation.spec.dollar_amount == Decimal("50.80")

    def test_market_order_falls_back_to_reference_price(self, builder, rules):
        intent = OrderIntent(execution_type=ExecutionType.MARKET, side=OrderSide.SELL, shares=Decimal("10"))
        validation = builder.build(intent, TOKEN, rules, reference_price=Decimal("0.493"))

        spec = validation.spec
        assert spec.price == Decimal("0.49")
        assert spec.dollar_amount is None

    def test_market_order_needs_a_price(self, builder, rules):
        intent = OrderIntent(execution_type=ExecutionType.MARKET, shares=Decimal("10"))
        validation = builder.build(intent, TOKEN, rules)
        assert ValidationIssue.MISSING_PRICE in validation.issues

    def test_market_buy_balance_uses_dollar_amount(self, builder, rules, depth):
        intent = OrderIntent(
            execution_type=ExecutionType.MARKET,
            amount_mode=AmountMode.DOLLARS,
            dollar_amount=Decimal("25"),
        )
        validation = builder.build(
            intent, TOKEN, rules, depth=depth, available_balance=Decimal("20")
        )
        assert validation.issues == (ValidationIssue.INSUFFICIENT_BALANCE,)
