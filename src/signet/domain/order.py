"""
Order domain models.

Trade intent as entered by the user, the canonical order spec produced by
validation, and the result of submitting it.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, assert_never


class OrderSide(str, Enum):
    """Order side (buy or sell)."""
    BUY = "BUY"
    SELL = "SELL"


class ExecutionType(str, Enum):
    """How the user wants the order executed."""
    MARKET = "MARKET"
    LIMIT = "LIMIT"


class AmountMode(str, Enum):
    """Unit the user entered the order size in."""
    SHARES = "SHARES"
    DOLLARS = "DOLLARS"


class OrderLifetime(str, Enum):
    """CLOB order type.

    GTC and GTD rest on the book; FOK and FAK execute immediately against
    resting liquidity and never rest.
    """
    GTC = "GTC"  # Good til Cancelled
    GTD = "GTD"  # Good til Date
    FOK = "FOK"  # Fill or Kill
    FAK = "FAK"  # Fill and Kill (immediate or cancel)

    @property
    def is_resting(self) -> bool:
        return self in (OrderLifetime.GTC, OrderLifetime.GTD)


class OrderStatus(str, Enum):
    """Status of a submitted order as reported back to the caller."""
    OPEN = "open"
    FILLED = "filled"
    PENDING = "pending"
    FAILED = "failed"


class ValidationIssue(str, Enum):
    """Reason an intent cannot be submitted."""
    MISSING_TOKEN = "missing_token"
    MISSING_PRICE = "missing_price"
    PRICE_OUT_OF_RANGE = "price_out_of_range"
    PRICE_OFF_TICK = "price_off_tick"
    INVALID_SIZE = "invalid_size"
    BELOW_MIN_SIZE = "below_min_size"
    EXPIRATION_REQUIRED = "expiration_required"
    EXPIRATION_TOO_SOON = "expiration_too_soon"
    INSUFFICIENT_BALANCE = "insufficient_balance"

    @property
    def message(self) -> str:
        return _ISSUE_MESSAGES[self]


_ISSUE_MESSAGES = {
    ValidationIssue.MISSING_TOKEN: "This outcome has no tradable token.",
    ValidationIssue.MISSING_PRICE: "No price available for this order.",
    ValidationIssue.PRICE_OUT_OF_RANGE: "Price must be between 0 and 1.",
    ValidationIssue.PRICE_OFF_TICK: "Price must be a multiple of the market tick size.",
    ValidationIssue.INVALID_SIZE: "Enter a positive order size.",
    ValidationIssue.BELOW_MIN_SIZE: "Order size is below the market minimum.",
    ValidationIssue.EXPIRATION_REQUIRED: "Expiration date/time is required for GTD.",
    ValidationIssue.EXPIRATION_TOO_SOON: "Expiration is inside the exchange security buffer.",
    ValidationIssue.INSUFFICIENT_BALANCE: "Order cost exceeds available balance.",
}


def resolve_order_type(execution_type: ExecutionType, lifetime: OrderLifetime) -> OrderLifetime:
    """Map the user's execution choice onto the CLOB order type.

    MARKET always executes as FAK. LIMIT rests as GTD when the user opted
    into an expiration, GTC otherwise.
    """
    if execution_type == ExecutionType.MARKET:
        return OrderLifetime.FAK
    if execution_type == ExecutionType.LIMIT:
        if lifetime == OrderLifetime.GTD:
            return OrderLifetime.GTD
        if lifetime in (OrderLifetime.GTC, OrderLifetime.FOK, OrderLifetime.FAK):
            return OrderLifetime.GTC
        assert_never(lifetime)
    assert_never(execution_type)


_STATUS_MAP = {
    "matched": OrderStatus.FILLED,
    "live": OrderStatus.OPEN,
    "delayed": OrderStatus.PENDING,
    "unmatched": OrderStatus.OPEN,
}


def map_submission_status(raw_status: Optional[str], order_type: OrderLifetime) -> OrderStatus:
    """Translate the CLOB's post-order status string."""
    if raw_status:
        mapped = _STATUS_MAP.get(raw_status.lower())
        if mapped is not None:
            return mapped
    if order_type == OrderLifetime.FOK:
        return OrderStatus.FILLED
    return OrderStatus.OPEN


@dataclass
class OrderIntent:
    """What the user has entered on the trade ticket so far.

    Mutable: the ticket edits it field by field and re-validates.
    """
    side: OrderSide = OrderSide.BUY
    execution_type: ExecutionType = ExecutionType.LIMIT
    amount_mode: AmountMode = AmountMode.SHARES
    price: Optional[Decimal] = None
    shares: Optional[Decimal] = None
    dollar_amount: Optional[Decimal] = None
    order_lifetime: OrderLifetime = OrderLifetime.GTC
    expiration_timestamp: Optional[int] = None

    def clear_amounts(self) -> None:
        """Reset the size inputs after a successful submission."""
        self.shares = None
        self.dollar_amount = None


@dataclass(frozen=True)
class OrderSpec:
    """Canonical, validated order parameters ready for signing.

    Attributes:
        price: Limit price rounded to the market tick. For market orders this
            is the worst price the order may trade at.
        size: Size in shares.
        dollar_amount: Collateral to spend, set only for market BUY orders.
        expiration: Unix seconds for GTD orders, 0 otherwise.
    """
    token_id: str
    side: OrderSide
    execution_type: ExecutionType
    order_type: OrderLifetime
    price: Decimal
    size: Decimal
    tick_size: Decimal
    expiration: int = 0
    dollar_amount: Optional[Decimal] = None
    fee_rate_bps: int = 0
    neg_risk: bool = False
    market_id: str = ""
    outcome_label: str = ""

    @property
    def notional(self) -> Decimal:
        """Collateral moved by the order at its limit price."""
        if self.dollar_amount is not None:
            return self.dollar_amount
        return self.price * self.size

    @property
    def summary(self) -> str:
        label = f" {self.outcome_label}" if self.outcome_label else ""
        return f"{self.side.value} {self.size}{label} @ {self.price} ({self.order_type.value})"


@dataclass(frozen=True)
class SubmissionResult:
    """Outcome of a successful order submission."""
    order_id: str
    status: OrderStatus
    order_type: OrderLifetime
    raw_status: Optional[str] = None
    order_hashes: tuple[str, ...] = field(default_factory=tuple)
    submitted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
