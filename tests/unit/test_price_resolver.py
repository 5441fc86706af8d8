"""
Unit tests for PriceResolver.

Tests verify:
- Midpoint when the spread is tight
- Last-trade fallback when the spread is wide or the book is one-sided
- Warn-once behaviour per context
- Limit price prefill
"""
from decimal import Decimal

import pytest

from signet.domain.market import OutcomeOption
from signet.domain.order import OrderSide
from signet.pricing.resolver import PriceResolver, suggest_limit_price


@pytest.fixture
def resolver() -> PriceResolver:
    return PriceResolver()


class TestResolve:
    """Tests for PriceResolver.resolve."""

    def test_tight_spread_returns_midpoint(self, resolver):
        """Verify bid 0.48 / ask 0.50 gives exactly 0.49."""
        price = resolver.resolve(Decimal("0.48"), Decimal("0.50"), Decimal("0.30"))
        assert price == Decimal("0.49")

    def test_spread_at_threshold_is_tight(self, resolver):
        """Verify a spread of exactly 0.10 still uses the midpoint."""
        price = resolver.resolve(Decimal("0.40"), Decimal("0.50"), None)
        assert price == Decimal("0.45")

    def test_wide_spread_uses_last_trade(self, resolver):
        """Verify a spread above 0.10 falls back to the last trade."""
        price = resolver.resolve(Decimal("0.20"), Decimal("0.60"), Decimal("0.41"))
        assert price == Decimal("0.41")

    def test_wide_spread_without_last_trade_is_unavailable(self, resolver):
        """Verify None and a single warning per context."""
        assert resolver.resolve(Decimal("0.20"), Decimal("0.60"), None, context="m1:Yes") is None
        assert resolver.has_warned("m1:Yes")
        assert not resolver.has_warned("m1:No")

    def test_warning_defaults_to_unknown_context(self, resolver):
        resolver.resolve(Decimal("0.10"), Decimal("0.90"), None)
        assert resolver.has_warned("unknown")

    def test_warned_contexts_are_per_instance(self):
        """Verify two resolvers do not share warn-once state."""
        first = PriceResolver()
        second = PriceResolver()
        first.resolve(Decimal("0.10"), Decimal("0.90"), None, context="m")
        assert first.has_warned("m")
        assert not second.has_warned("m")

    def test_crossed_book_uses_last_trade(self, resolver):
        """Verify bid above ask is ignored."""
        price = resolver.resolve(Decimal("0.55"), Decimal("0.50"), Decimal("0.52"))
        assert price == Decimal("0.52")

    def test_one_sided_book_uses_last_trade(self, resolver):
        assert resolver.resolve(Decimal("0.48"), None, Decimal("0.47")) == Decimal("0.47")
        assert resolver.resolve(None, Decimal("0.50"), None) is None

    def test_non_positive_values_are_absent(self, resolver):
        """Verify zero bids/asks/last trades count as missing."""
        assert resolver.resolve(Decimal("0"), Decimal("0.50"), Decimal("0.45")) == Decimal("0.45")
        assert resolver.resolve(None, None, Decimal("0")) is None

    def test_custom_threshold(self):
        """Verify the spread threshold is configurable."""
        resolver = PriceResolver(max_spread=Decimal("0.02"))
        assert resolver.resolve(Decimal("0.45"), Decimal("0.50"), Decimal("0.46")) == Decimal("0.46")

    def test_resolve_option(self, resolver):
        option = OutcomeOption(
            label="Yes",
            token_id="1",
            last_trade_price=Decimal("0.60"),
            best_bid=Decimal("0.61"),
            best_ask=Decimal("0.63"),
        )
        assert resolver.resolve_option(option) == Decimal("0.62")


class TestSuggestLimitPrice:
    """Tests for suggest_limit_price."""

    def test_buy_uses_best_ask(self):
        option = OutcomeOption("Yes", "1", Decimal("0.49"), Decimal("0.48"), Decimal("0.50"))
        assert suggest_limit_price(option, OrderSide.BUY) == Decimal("0.50")

    def test_sell_uses_best_bid(self):
        option = OutcomeOption("Yes", "1", Decimal("0.49"), Decimal("0.48"), Decimal("0.50"))
        assert suggest_limit_price(option, OrderSide.SELL) == Decimal("0.48")

    def test_falls_back_to_last_trade(self):
        option = OutcomeOption("Yes", "1", last_trade_price=Decimal("0.33"))
        assert suggest_limit_price(option, OrderSide.BUY) == Decimal("0.33")
        assert suggest_limit_price(OutcomeOption("Yes", "1"), OrderSide.SELL) is None
