"""Domain models - orders, markets, depth, results."""

from signet.domain.market import (
    DepthEstimate,
    DepthLevel,
    MarketRules,
    MarketSnapshot,
    OrderBook,
    OrderBookLevel,
    OutcomeOption,
    parse_outcome_labels,
)
from signet.domain.order import (
    AmountMode,
    ExecutionType,
    OrderIntent,
    OrderLifetime,
    OrderSide,
    OrderSpec,
    OrderStatus,
    SubmissionResult,
    ValidationIssue,
    map_submission_status,
    resolve_order_type,
)
from signet.domain.result import Err, Ok, Result

__all__ = [
    "AmountMode",
    "DepthEstimate",
    "DepthLevel",
    "Err",
    "ExecutionType",
    "MarketRules",
    "MarketSnapshot",
    "Ok",
    "OrderBook",
    "OrderBookLevel",
    "OrderIntent",
    "OrderLifetime",
    "OrderSide",
    "OrderSpec",
    "OrderStatus",
    "OutcomeOption",
    "Result",
    "SubmissionResult",
    "ValidationIssue",
    "map_submission_status",
    "parse_outcome_labels",
    "resolve_order_type",
]
