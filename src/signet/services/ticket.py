"""
Trade ticket: one in-progress order form for a market.

The ticket holds the user's intent, keeps derived values (display price,
depth estimate, validation) in sync with it, and exposes single-order and
batch submission.
"""
from decimal import Decimal
from typing import Optional

import structlog

from signet.core.retry import SignetError, ValidationError
from signet.domain.market import DepthEstimate, MarketRules, MarketSnapshot, OutcomeOption
from signet.domain.order import (
    AmountMode,
    ExecutionType,
    OrderIntent,
    OrderLifetime,
    OrderSide,
    SubmissionResult,
)
from signet.domain.result import Err
from signet.pricing.depth import DepthEstimator
from signet.pricing.resolver import PriceResolver, suggest_limit_price
from signet.services.batch import BatchEntry, BatchQueue, BatchResult
from signet.services.execution import ExecutionPipeline
from signet.services.order_builder import OrderParameterBuilder, OrderValidation

log = structlog.get_logger()


class TradeTicket:
    """Order form bound to a single market."""

    def __init__(
        self,
        market: MarketSnapshot,
        builder: OrderParameterBuilder,
        resolver: PriceResolver,
        depth_estimator: DepthEstimator,
        pipeline: ExecutionPipeline,
        batch: BatchQueue,
        available_balance: Optional[Decimal] = None,
    ) -> None:
        if not market.outcomes:
            raise ValidationError(f"Market {market.market_id} has no outcomes")
        self._market = market
        self._builder = builder
        self._resolver = resolver
        self._depth_estimator = depth_estimator
        self._pipeline = pipeline
        self._batch = batch
        self.available_balance = available_balance
        self.intent = OrderIntent()
        self._outcome_index = 0
        self._depth: Optional[DepthEstimate] = None
        self._log = log.bind(component="trade_ticket", market_id=market.market_id)
        self._prefill_price()

    @property
    def market(self) -> MarketSnapshot:
        return self._market

    @property
    def rules(self) -> MarketRules:
        return self._market.rules

    @property
    def outcome(self) -> OutcomeOption:
        return self._market.outcome(self._outcome_index)

    @property
    def batch(self) -> BatchQueue:
        return self._batch

    @property
    def depth(self) -> Optional[DepthEstimate]:
        return self._depth

    @property
    def resolved_price(self) -> Optional[Decimal]:
        """Display price of the selected outcome."""
        context = f"{self._market.market_id}:{self.outcome.label}"
        return self._resolver.resolve_option(self.outcome, context=context)

    # -- editing ---------------------------------------------------------

    def select_outcome(self, index: int) -> None:
        self._outcome_index = index if 0 <= index < len(self._market.outcomes) else 0
        self._depth = None
        self._prefill_price()

    def set_side(self, side: OrderSide) -> None:
        self.intent.side = side
        self._depth = None
        self._prefill_price()

    def set_execution_type(self, execution_type: ExecutionType) -> None:
        self.intent.execution_type = execution_type
        self._depth = None

    def set_shares(self, shares: Optional[Decimal]) -> None:
        self.intent.amount_mode = AmountMode.SHARES
        self.intent.shares = shares
        self._depth = None

    def set_dollars(self, dollars: Optional[Decimal]) -> None:
        self.intent.amount_mode = AmountMode.DOLLARS
        self.intent.dollar_amount = dollars
        self._depth = None

    def set_price(self, price: Optional[Decimal]) -> None:
        self.intent.price = price

    def set_expiration(self, timestamp: Optional[int]) -> None:
        """Opt into GTD with the given expiration, or back to GTC with None."""
        self.intent.expiration_timestamp = timestamp
        self.intent.order_lifetime = OrderLifetime.GTC if timestamp is None else OrderLifetime.GTD

    def use_default_expiration(self) -> int:
        timestamp = self._builder.default_expiration()
        self.set_expiration(timestamp)
        return timestamp

    def _prefill_price(self) -> None:
        self.intent.price = suggest_limit_price(self.outcome, self.intent.side)

    # -- derived ---------------------------------------------------------

    def _estimated_shares(self) -> Optional[Decimal]:
        if self.intent.amount_mode == AmountMode.SHARES:
            return self.intent.shares
        price = self.resolved_price
        if self.intent.dollar_amount is None or not price:
            return None
        return self.intent.dollar_amount / price

    async def refresh_depth(self) -> Optional[DepthEstimate]:
        """Re-estimate depth for a market order. Errors leave no estimate."""
        self._depth = None
        token_id = self.outcome.token_id
        if self.intent.execution_type != ExecutionType.MARKET or not token_id:
            return None
        size = self._estimated_shares()
        if size is None or size <= 0:
            return None
        try:
            self._depth = await self._depth_estimator.estimate(token_id, self.intent.side, size)
        except SignetError as e:
            self._log.warning("depth_estimate_failed", token_id=token_id, error=str(e))
        return self._depth

    @property
    def validation(self) -> OrderValidation:
        return self._builder.build(
            self.intent,
            self.outcome.token_id,
            self.rules,
            reference_price=self.resolved_price,
            depth=self._depth,
            available_balance=self.available_balance,
            market_id=self._market.market_id,
            outcome_label=self.outcome.label,
        )

    @property
    def can_submit(self) -> bool:
        return self.validation.can_submit

    @property
    def reasons(self) -> list[str]:
        return self.validation.reasons

    # -- actions ---------------------------------------------------------

    async def submit(self) -> SubmissionResult:
        """Submit the current order. Size inputs are cleared on success.

        Raises:
            ValidationError: If the ticket does not validate.
        """
        validation = self.validation
        if validation.spec is None:
            raise ValidationError("; ".join(validation.reasons))
        result = await self._pipeline.submit_order(validation.spec)
        self.intent.clear_amounts()
        self._depth = None
        return result

    def add_to_batch(self) -> BatchEntry:
        """Queue the current order. Size inputs are cleared once queued.

        Raises:
            ValidationError: If the ticket does not validate.
            BatchQueueFullError: If the queue is full.
        """
        added = self._batch.add(self.validation)
        if isinstance(added, Err):
            raise ValidationError("; ".join(issue.message for issue in added.error))
        self.intent.clear_amounts()
        self._depth = None
        return added.value

    def remove_from_batch(self, entry_id: str) -> bool:
        return self._batch.remove(entry_id)

    def clear_batch(self) -> None:
        self._batch.clear()

    async def submit_batch(self) -> BatchResult:
        return await self._batch.submit_all()
