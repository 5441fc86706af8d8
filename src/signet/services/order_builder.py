"""
Order parameter builder.

Turns an OrderIntent plus market rules into a canonical OrderSpec, or the
full list of reasons it cannot be submitted. Every rule is evaluated so the
caller can show all problems at once; nothing here raises for bad input.
"""
import time
from dataclasses import dataclass
from decimal import ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_EVEN, Decimal
from typing import Callable, Optional

from signet.domain.market import DepthEstimate, MarketRules
from signet.domain.order import (
    AmountMode,
    ExecutionType,
    OrderIntent,
    OrderLifetime,
    OrderSide,
    OrderSpec,
    ValidationIssue,
    resolve_order_type,
)
from signet.domain.result import Err, Ok, Result
from signet.integrations.polymarket.signing import round_down, rounding_for_tick

TICK_TOLERANCE = Decimal("1e-6")
DEFAULT_GTD_BUFFER_SECONDS = 90
DEFAULT_GTD_LIFETIME_SECONDS = 2 * 60 * 60


def is_on_tick(price: Decimal, tick_size: Decimal) -> bool:
    """True when price is a whole number of ticks, within 1e-6 of a tick."""
    steps = price / tick_size
    return abs(steps - steps.to_integral_value()) < TICK_TOLERANCE


def snap_to_tick(price: Decimal, tick_size: Decimal, rounding: str = ROUND_HALF_EVEN) -> Decimal:
    return (price / tick_size).to_integral_value(rounding=rounding) * tick_size


def marketable_price(price: Decimal, tick_size: Decimal, side: OrderSide) -> Decimal:
    """Snap a market order's worst price outward so it stays marketable.

    BUY rounds up and SELL rounds down, kept within one tick of the 0 and 1
    bounds.
    """
    rounding = ROUND_CEILING if side == OrderSide.BUY else ROUND_FLOOR
    snapped = snap_to_tick(price, tick_size, rounding)
    return min(max(snapped, tick_size), Decimal("1") - tick_size)


@dataclass(frozen=True)
class OrderValidation:
    """Outcome of building an order: a spec, or the issues blocking it."""

    result: Result[OrderSpec, tuple[ValidationIssue, ...]]

    @property
    def can_submit(self) -> bool:
        return isinstance(self.result, Ok)

    @property
    def spec(self) -> Optional[OrderSpec]:
        return self.result.value if isinstance(self.result, Ok) else None

    @property
    def issues(self) -> tuple[ValidationIssue, ...]:
        return self.result.error if isinstance(self.result, Err) else ()

    @property
    def reasons(self) -> list[str]:
        return [issue.message for issue in self.issues]


class OrderParameterBuilder:
    """Builds and validates order specs from user intent."""

    def __init__(
        self,
        gtd_buffer_seconds: int = DEFAULT_GTD_BUFFER_SECONDS,
        default_gtd_lifetime_seconds: int = DEFAULT_GTD_LIFETIME_SECONDS,
        fee_rate_bps: int = 0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._gtd_buffer = gtd_buffer_seconds
        self._default_gtd_lifetime = default_gtd_lifetime_seconds
        self._fee_rate_bps = fee_rate_bps
        self._clock = clock

    @property
    def gtd_buffer_seconds(self) -> int:
        return self._gtd_buffer

    def default_expiration(self) -> int:
        """Suggested GTD expiration: two hours from now."""
        return int(self._clock()) + self._default_gtd_lifetime

    def build(
        self,
        intent: OrderIntent,
        token_id: Optional[str],
        rules: MarketRules,
        reference_price: Optional[Decimal] = None,
        depth: Optional[DepthEstimate] = None,
        available_balance: Optional[Decimal] = None,
        market_id: str = "",
        outcome_label: str = "",
    ) -> OrderValidation:
        """Validate intent and produce an order spec.

        Args:
            intent: What the user entered.
            token_id: Token of the selected outcome.
            rules: Tick size, minimum size and neg-risk flag of the market.
            reference_price: Resolved display price, used to size and price
                market orders when no depth estimate is available.
            depth: Depth estimate for market orders.
            available_balance: Collateral balance; None skips the balance
                check.
        """
        issues: list[ValidationIssue] = []
        is_market = intent.execution_type == ExecutionType.MARKET
        order_type = resolve_order_type(intent.execution_type, intent.order_lifetime)

        if not token_id:
            issues.append(ValidationIssue.MISSING_TOKEN)

        if is_market:
            conversion_price = reference_price
            execution_price = reference_price
            if depth is not None and depth.estimated_average_price is not None:
                conversion_price = depth.estimated_average_price
                execution_price = depth.worst_price
        else:
            conversion_price = intent.price
            execution_price = intent.price

        if execution_price is None:
            issues.append(ValidationIssue.MISSING_PRICE)
        elif not (Decimal("0") < execution_price < Decimal("1")):
            issues.append(ValidationIssue.PRICE_OUT_OF_RANGE)
        elif not is_market and not is_on_tick(execution_price, rules.tick_size):
            issues.append(ValidationIssue.PRICE_OFF_TICK)

        size = self._resolve_size(intent, conversion_price, rules.tick_size)
        if size is None or size <= 0:
            issues.append(ValidationIssue.INVALID_SIZE)
        elif size < rules.min_size:
            issues.append(ValidationIssue.BELOW_MIN_SIZE)

        expiration = 0
        if order_type == OrderLifetime.GTD:
            if intent.expiration_timestamp is None:
                issues.append(ValidationIssue.EXPIRATION_REQUIRED)
            elif intent.expiration_timestamp < int(self._clock()) + self._gtd_buffer:
                issues.append(ValidationIssue.EXPIRATION_TOO_SOON)
            else:
                expiration = intent.expiration_timestamp

        dollar_amount = None
        if is_market and intent.side == OrderSide.BUY:
            if intent.amount_mode == AmountMode.DOLLARS:
                dollar_amount = intent.dollar_amount
            elif size is not None and conversion_price is not None:
                dollar_amount = size * conversion_price

        if intent.side == OrderSide.BUY and available_balance is not None:
            cost = dollar_amount
            if cost is None and size is not None and execution_price is not None:
                cost = size * execution_price
            if cost is not None and cost > available_balance:
                issues.append(ValidationIssue.INSUFFICIENT_BALANCE)

        if issues:
            return OrderValidation(Err(tuple(issues)))

        if is_market:
            price = marketable_price(execution_price, rules.tick_size, intent.side)
        else:
            price = snap_to_tick(execution_price, rules.tick_size)

        return OrderValidation(
            Ok(
                OrderSpec(
                    token_id=token_id,
                    side=intent.side,
                    execution_type=intent.execution_type,
                    order_type=order_type,
                    price=price,
                    size=size,
                    tick_size=rules.tick_size,
                    expiration=expiration,
                    dollar_amount=dollar_amount,
                    fee_rate_bps=self._fee_rate_bps,
                    neg_risk=rules.neg_risk,
                    market_id=market_id,
                    outcome_label=outcome_label,
                )
            )
        )

    @staticmethod
    def _resolve_size(
        intent: OrderIntent,
        conversion_price: Optional[Decimal],
        tick_size: Decimal,
    ) -> Optional[Decimal]:
        if intent.amount_mode == AmountMode.SHARES:
            raw = intent.shares
        else:
            if intent.dollar_amount is None or conversion_price is None or conversion_price <= 0:
                return None
            raw = intent.dollar_amount / conversion_price
        if raw is None:
            return None
        return round_down(raw, rounding_for_tick(tick_size).size)
