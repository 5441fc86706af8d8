"""
Order-book depth estimation.

Walks the opposing side of a token's book to estimate how much of a
requested size would fill and at what average price. The estimate is
advisory and never blocks submission.
"""
from decimal import Decimal
from typing import Iterable, Optional, Protocol

import structlog

from signet.core.retry import ValidationError
from signet.domain.market import DepthEstimate, DepthLevel, OrderBook, OrderBookLevel
from signet.domain.order import OrderSide

log = structlog.get_logger()

# Fill comparisons tolerate float-derived inputs at this precision.
SIZE_EPSILON = Decimal("1e-9")


class OrderBookSource(Protocol):
    async def get_order_book(self, token_id: str) -> OrderBook:
        ...


def _sorted_levels(levels: Iterable[OrderBookLevel], side: OrderSide) -> list[OrderBookLevel]:
    usable = [level for level in levels if level.price > 0 and level.size > 0]
    # BUY sweeps asks cheapest-first, SELL sweeps bids richest-first
    return sorted(usable, key=lambda level: level.price, reverse=side == OrderSide.SELL)


def walk_book(
    token_id: str,
    levels: Iterable[OrderBookLevel],
    side: OrderSide,
    requested_size: Decimal,
) -> DepthEstimate:
    """Walk opposing levels until requested_size is covered.

    Args:
        token_id: Token the levels belong to.
        levels: Opposing side of the book (asks for BUY, bids for SELL), in
            any order.
        side: Side of the order being estimated.
        requested_size: Shares to fill.

    Raises:
        ValidationError: If requested_size is not positive.
    """
    if requested_size <= 0:
        raise ValidationError(f"Requested size must be positive, got {requested_size}")

    remaining = requested_size
    cumulative_size = Decimal("0")
    cumulative_value = Decimal("0")
    consumed: list[DepthLevel] = []

    for level in _sorted_levels(levels, side):
        if remaining <= SIZE_EPSILON:
            break
        used = min(level.size, remaining)
        cumulative_size += used
        cumulative_value += used * level.price
        remaining -= used
        consumed.append(
            DepthLevel(
                price=level.price,
                available=level.size,
                used=used,
                cumulative_size=cumulative_size,
                cumulative_value=cumulative_value,
            )
        )

    average: Optional[Decimal] = None
    if cumulative_size > 0:
        average = cumulative_value / cumulative_size

    return DepthEstimate(
        token_id=token_id,
        side=side,
        requested_size=requested_size,
        fillable_size=cumulative_size,
        estimated_average_price=average,
        estimated_total_value=cumulative_value,
        insufficient_liquidity=cumulative_size + SIZE_EPSILON < requested_size,
        levels=tuple(consumed),
        worst_price=consumed[-1].price if consumed else None,
    )


class DepthEstimator:
    """Fetches live books and estimates fills against them."""

    def __init__(self, source: OrderBookSource) -> None:
        self._source = source
        self._log = log.bind(component="depth_estimator")

    async def estimate(
        self,
        token_id: str,
        side: OrderSide,
        requested_size: Decimal,
    ) -> DepthEstimate:
        """Estimate a fill of requested_size on side for token_id.

        Fetch failures propagate; an empty book yields an estimate with
        nothing fillable.
        """
        if requested_size <= 0:
            raise ValidationError(f"Requested size must be positive, got {requested_size}")

        book = await self._source.get_order_book(token_id)
        estimate = walk_book(token_id, book.opposing_levels(side), side, requested_size)

        self._log.debug(
            "depth_estimated",
            token_id=token_id,
            side=side.value,
            requested=str(requested_size),
            fillable=str(estimate.fillable_size),
            average_price=str(estimate.estimated_average_price),
            insufficient=estimate.insufficient_liquidity,
        )
        return estimate
