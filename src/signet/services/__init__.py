"""Services - credentials, order building, execution, batching and the trade ticket."""

from signet.services.batch import BatchEntry, BatchEntryStatus, BatchQueue, BatchResult
from signet.services.credentials import CredentialManager, CredentialState, CredentialStore
from signet.services.execution import ExecutionPipeline
from signet.services.open_orders import OpenOrdersCache
from signet.services.order_builder import OrderParameterBuilder, OrderValidation
from signet.services.session import SessionContext, TradingSession
from signet.services.ticket import TradeTicket

__all__ = [
    "BatchEntry",
    "BatchEntryStatus",
    "BatchQueue",
    "BatchResult",
    "CredentialManager",
    "CredentialState",
    "CredentialStore",
    "ExecutionPipeline",
    "OpenOrdersCache",
    "OrderParameterBuilder",
    "OrderValidation",
    "SessionContext",
    "TradeTicket",
    "TradingSession",
]
