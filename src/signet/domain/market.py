"""
Market-facing domain models.

Outcome options and trading rules for a market, order-book snapshots, and
the depth estimates computed from them.
"""
import json
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from signet.domain.order import OrderSide

OUTCOME_FALLBACKS = ("Yes", "No")

DEFAULT_TICK_SIZE = Decimal("0.01")
DEFAULT_MIN_SIZE = Decimal("1")


def to_decimal(value: Any) -> Optional[Decimal]:
    """Coerce a JSON number or numeric string to Decimal, None if unusable."""
    if value is None or value == "":
        return None
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not result.is_finite():
        return None
    return result


@dataclass(frozen=True)
class OutcomeOption:
    """One tradable outcome of a market (typically YES or NO).

    Attributes:
        label: Display label ("Yes", "No", or a custom outcome name).
        token_id: CLOB token id for this outcome, None when the market
            snapshot did not carry one.
        last_trade_price: Last traded price, if known.
        best_bid: Best resting bid, if known.
        best_ask: Best resting ask, if known.
    """

    label: str
    token_id: Optional[str]
    last_trade_price: Optional[Decimal] = None
    best_bid: Optional[Decimal] = None
    best_ask: Optional[Decimal] = None


@dataclass(frozen=True)
class MarketRules:
    """Per-market trading constraints."""

    tick_size: Decimal = DEFAULT_TICK_SIZE
    min_size: Decimal = DEFAULT_MIN_SIZE
    neg_risk: bool = False

    def with_book_metadata(self, book: "OrderBook") -> "MarketRules":
        """Overlay tick size / min size / neg-risk reported by the order book."""
        return replace(
            self,
            tick_size=book.tick_size if book.tick_size else self.tick_size,
            min_size=book.min_order_size if book.min_order_size else self.min_size,
            neg_risk=self.neg_risk if book.neg_risk is None else book.neg_risk,
        )


def parse_outcome_labels(outcomes: Any) -> tuple[str, ...]:
    """Parse a market's outcome labels.

    Accepts a JSON-encoded list (as served by the market API) or a list.
    Anything unparseable or empty yields ("Yes", "No").
    """
    if not outcomes:
        return OUTCOME_FALLBACKS
    parsed = outcomes
    if isinstance(outcomes, str):
        try:
            parsed = json.loads(outcomes)
        except json.JSONDecodeError:
            return OUTCOME_FALLBACKS
    if isinstance(parsed, (list, tuple)) and parsed:
        return tuple(str(entry) for entry in parsed)
    return OUTCOME_FALLBACKS


@dataclass(frozen=True)
class MarketSnapshot:
    """A market as seen by the trade ticket."""

    market_id: str
    question: str = ""
    outcomes: tuple[OutcomeOption, ...] = field(default_factory=tuple)
    rules: MarketRules = field(default_factory=MarketRules)

    def outcome(self, index: int) -> OutcomeOption:
        """Outcome at index, falling back to the first outcome."""
        if 0 <= index < len(self.outcomes):
            return self.outcomes[index]
        return self.outcomes[0]

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        rules: Optional[MarketRules] = None,
        defaults: Optional[MarketRules] = None,
    ) -> "MarketSnapshot":
        """Build a snapshot from a backend market record.

        Expects the binary-market shape: condition_id, outcomes,
        token_id_yes/no, yes/no_price, yes/no_best_bid, yes/no_best_ask.
        Without explicit rules, tick and min size come from the record,
        falling back to defaults.
        """
        labels = parse_outcome_labels(data.get("outcomes"))
        yes_label = labels[0] if len(labels) > 0 else OUTCOME_FALLBACKS[0]
        no_label = labels[1] if len(labels) > 1 else OUTCOME_FALLBACKS[1]

        options = (
            OutcomeOption(
                label=yes_label,
                token_id=data.get("token_id_yes") or None,
                last_trade_price=to_decimal(data.get("yes_price")),
                best_bid=to_decimal(data.get("yes_best_bid")),
                best_ask=to_decimal(data.get("yes_best_ask")),
            ),
            OutcomeOption(
                label=no_label,
                token_id=data.get("token_id_no") or None,
                last_trade_price=to_decimal(data.get("no_price")),
                best_bid=to_decimal(data.get("no_best_bid")),
                best_ask=to_decimal(data.get("no_best_ask")),
            ),
        )

        if rules is None:
            defaults = defaults or MarketRules()
            rules = MarketRules(
                tick_size=to_decimal(data.get("tick_size")) or defaults.tick_size,
                min_size=to_decimal(data.get("min_order_size")) or defaults.min_size,
                neg_risk=bool(data.get("neg_risk", False)),
            )

        return cls(
            market_id=str(data.get("condition_id") or data.get("market_id") or ""),
            question=str(data.get("question") or ""),
            outcomes=options,
            rules=rules,
        )


@dataclass(frozen=True)
class OrderBookLevel:
    """A single price level in an order book."""

    price: Decimal
    size: Decimal


@dataclass(frozen=True)
class OrderBook:
    """Order book for a single token.

    Bids are sorted highest-first, asks lowest-first.
    """

    token_id: str
    bids: tuple[OrderBookLevel, ...] = field(default_factory=tuple)
    asks: tuple[OrderBookLevel, ...] = field(default_factory=tuple)
    last_trade_price: Optional[Decimal] = None
    tick_size: Optional[Decimal] = None
    min_order_size: Optional[Decimal] = None
    neg_risk: Optional[bool] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def best_bid(self) -> Optional[Decimal]:
        return self.bids[0].price if self.bids else None

    @property
    def best_ask(self) -> Optional[Decimal]:
        return self.asks[0].price if self.asks else None

    @property
    def midpoint(self) -> Optional[Decimal]:
        if self.best_bid is not None and self.best_ask is not None:
            return (self.best_bid + self.best_ask) / 2
        return None

    @property
    def spread(self) -> Optional[Decimal]:
        if self.best_bid is not None and self.best_ask is not None:
            return self.best_ask - self.best_bid
        return None

    def opposing_levels(self, side: OrderSide) -> tuple[OrderBookLevel, ...]:
        """Levels an order on `side` would trade against."""
        return self.asks if side == OrderSide.BUY else self.bids


@dataclass(frozen=True)
class DepthLevel:
    """One order-book level consumed by a depth walk."""

    price: Decimal
    available: Decimal
    used: Decimal
    cumulative_size: Decimal
    cumulative_value: Decimal


@dataclass(frozen=True)
class DepthEstimate:
    """Advisory fill estimate for a given size against current depth.

    Attributes:
        fillable_size: Shares the visible book can absorb (<= requested).
        estimated_average_price: Value-weighted fill price, None when nothing
            is fillable.
        estimated_total_value: Sum of used size times level price.
        insufficient_liquidity: True when fillable < requested.
        worst_price: Price of the last level touched, None when nothing is
            fillable.
    """

    token_id: str
    side: OrderSide
    requested_size: Decimal
    fillable_size: Decimal
    estimated_average_price: Optional[Decimal]
    estimated_total_value: Decimal
    insufficient_liquidity: bool
    levels: tuple[DepthLevel, ...] = field(default_factory=tuple)
    worst_price: Optional[Decimal] = None

    @property
    def fill_ratio(self) -> Decimal:
        if self.requested_size <= 0:
            return Decimal("0")
        return self.fillable_size / self.requested_size
