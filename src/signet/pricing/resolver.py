"""Display price resolution from top-of-book and last trade."""
from decimal import Decimal
from typing import Optional

import structlog

from signet.domain.market import OutcomeOption
from signet.domain.order import OrderSide

log = structlog.get_logger()

DEFAULT_MAX_DISPLAY_SPREAD = Decimal("0.10")
UNKNOWN_CONTEXT = "unknown"


def _usable(value: Optional[Decimal]) -> bool:
    return value is not None and value > 0


class PriceResolver:
    """Resolves the price shown to a user for an outcome.

    Rule:
    - bid and ask both present with bid <= ask and spread <= threshold:
      midpoint
    - spread wider than threshold: last trade, else None
    - otherwise: last trade, else None

    Non-positive inputs count as absent. A wide spread with no last trade
    logs a warning once per context for the lifetime of this resolver.
    """

    def __init__(self, max_spread: Decimal = DEFAULT_MAX_DISPLAY_SPREAD) -> None:
        self._max_spread = max_spread
        self._warned_contexts: set[str] = set()
        self._log = log.bind(component="price_resolver")

    def resolve(
        self,
        best_bid: Optional[Decimal],
        best_ask: Optional[Decimal],
        last_trade_price: Optional[Decimal],
        context: Optional[str] = None,
    ) -> Optional[Decimal]:
        has_last = _usable(last_trade_price)

        if _usable(best_bid) and _usable(best_ask) and best_bid <= best_ask:
            spread = best_ask - best_bid
            if spread > self._max_spread:
                if has_last:
                    return last_trade_price
                self._warn_once(context or UNKNOWN_CONTEXT, best_bid, best_ask, spread)
                return None
            return (best_bid + best_ask) / 2

        if has_last:
            return last_trade_price
        return None

    def resolve_option(self, option: OutcomeOption, context: Optional[str] = None) -> Optional[Decimal]:
        """Resolve the display price for an outcome option."""
        return self.resolve(
            option.best_bid,
            option.best_ask,
            option.last_trade_price,
            context=context or option.token_id or option.label,
        )

    def has_warned(self, context: str) -> bool:
        return context in self._warned_contexts

    def _warn_once(self, context: str, bid: Decimal, ask: Decimal, spread: Decimal) -> None:
        if context in self._warned_contexts:
            return
        self._warned_contexts.add(context)
        self._log.warning(
            "price_unavailable_wide_spread",
            context=context,
            best_bid=str(bid),
            best_ask=str(ask),
            spread=str(spread),
            max_spread=str(self._max_spread),
        )


def suggest_limit_price(option: OutcomeOption, side: OrderSide) -> Optional[Decimal]:
    """Prefill for the limit price field.

    BUY takes the best ask, SELL the best bid; either falls back to the last
    trade.
    """
    touch = option.best_ask if side == OrderSide.BUY else option.best_bid
    if _usable(touch):
        return touch
    if _usable(option.last_trade_price):
        return option.last_trade_price
    return None
