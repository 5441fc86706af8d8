"""
Unit tests for order-book depth estimation.
"""
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from signet.core.retry import NetworkError, ValidationError
from signet.domain.market import OrderBook, OrderBookLevel
from signet.domain.order import OrderSide
from signet.pricing.depth import DepthEstimator, walk_book


def _levels(*pairs):
    return [OrderBookLevel(price=Decimal(p), size=Decimal(s)) for p, s in pairs]


class TestWalkBook:
    """Tests for the pure walk_book function."""

    def test_partial_sweep(self):
        """Verify 100 shares across 40@0.50, 40@0.51, 20 of 40@0.52."""
        asks = _levels(("0.52", "40"), ("0.50", "40"), ("0.51", "40"))
        estimate = walk_book("t", asks, OrderSide.BUY, Decimal("100"))

        assert estimate.fillable_size == Decimal("100")
        assert estimate.estimated_total_value == Decimal("50.80")
        assert estimate.estimated_average_price == Decimal("0.508")
        assert estimate.insufficient_liquidity is False
        assert estimate.worst_price == Decimal("0.52")
        assert [level.used for level in estimate.levels] == [Decimal("40"), Decimal("40"), Decimal("20")]
        assert estimate.levels[-1].cumulative_size == Decimal("100")

    def test_insufficient_liquidity(self):
        """Verify requesting more than the book holds flags insufficiency."""
        asks = _levels(("0.50", "40"), ("0.51", "40"), ("0.52", "40"))
        estimate = walk_book("t", asks, OrderSide.BUY, Decimal("500"))

        assert estimate.fillable_size == Decimal("120")
        assert estimate.insufficient_liquidity is True
        assert estimate.fill_ratio == Decimal("120") / Decimal("500")

    def test_sell_walks_bids_descending(self):
        """Verify SELL consumes the richest bid first."""
        bids = _levels(("0.45", "100"), ("0.48", "10"))
        estimate = walk_book("t", bids, OrderSide.SELL, Decimal("20"))

        assert [level.price for level in estimate.levels] == [Decimal("0.48"), Decimal("0.45")]
        assert estimate.estimated_total_value == Decimal("4.80") + Decimal("4.50")
        assert estimate.worst_price == Decimal("0.45")

    def test_empty_book(self):
        """Verify an empty side yields nothing fillable and no average."""
        estimate = walk_book("t", [], OrderSide.BUY, Decimal("10"))
        assert estimate.fillable_size == Decimal("0")
        assert estimate.estimated_average_price is None
        assert estimate.insufficient_liquidity is True
        assert estimate.worst_price is None
        assert estimate.levels == ()

    def test_skips_non_positive_levels(self):
        """Verify zero-price and zero-size levels are ignored."""
        asks = _levels(("0", "100"), ("0.50", "0"), ("0.55", "10"))
        estimate = walk_book("t", asks, OrderSide.BUY, Decimal("5"))
        assert estimate.estimated_average_price == Decimal("0.55")
        assert len(estimate.levels) == 1

    @pytest.mark.parametrize("size", [Decimal("0"), Decimal("-1")])
    def test_rejects_non_positive_size(self, size):
        with pytest.raises(ValidationError):
            walk_book("t", [], OrderSide.BUY, size)

    def test_fillable_never_exceeds_requested(self):
        asks = _levels(("0.10", "1000"))
        estimate = walk_book("t", asks, OrderSide.BUY, Decimal("3.5"))
        assert estimate.fillable_size == Decimal("3.5")
        assert estimate.levels[0].available == Decimal("1000")


class TestDepthEstimator:
    """Tests for DepthEstimator against a book source."""

    @pytest.mark.asyncio
    async def test_estimate_uses_opposing_side(self, sample_book):
        """Verify BUY estimates walk asks and SELL estimates walk bids."""
        source = MagicMock()
        source.get_order_book = AsyncMock(return_value=sample_book)
        estimator = DepthEstimator(source)

        buy = await estimator.estimate(sample_book.token_id, OrderSide.BUY, Decimal("100"))
        sell = await estimator.estimate(sample_book.token_id, OrderSide.SELL, Decimal("60"))

        assert buy.estimated_average_price == Decimal("0.508")
        assert sell.levels[0].price == Decimal("0.48")
        assert sell.fillable_size == Decimal("60")
        source.get_order_book.assert_awaited_with(sample_book.token_id)

    @pytest.mark.asyncio
    async def test_fetch_errors_propagate(self):
        source = MagicMock()
        source.get_order_book = AsyncMock(side_effect=NetworkError("down"))
        with pytest.raises(NetworkError):
            await DepthEstimator(source).estimate("t", OrderSide.BUY, Decimal("1"))

    @pytest.mark.asyncio
    async def test_invalid_size_does_not_fetch(self):
        source = MagicMock()
        source.get_order_book = AsyncMock(return_value=OrderBook(token_id="t"))
        with pytest.raises(ValidationError):
            await DepthEstimator(source).estimate("t", OrderSide.BUY, Decimal("0"))
        source.get_order_book.assert_not_awaited()
