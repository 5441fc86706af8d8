"""
Batch order queue.

Collects up to `capacity` validated orders and submits them concurrently.
Submission is all-settled: every entry is attempted, succeeded entries leave
the queue and failed ones stay behind marked FAILED so they can be fixed,
removed, or re-submitted.
"""
import asyncio
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

import structlog

from signet.core.retry import BatchQueueFullError, BatchSubmissionError, ValidationError
from signet.domain.order import OrderLifetime, OrderSpec, SubmissionResult, ValidationIssue
from signet.domain.result import Err, Ok, Result
from signet.services.execution import ExecutionPipeline
from signet.services.order_builder import DEFAULT_GTD_BUFFER_SECONDS, OrderValidation

log = structlog.get_logger()

DEFAULT_BATCH_CAPACITY = 15


class BatchEntryStatus(str, Enum):
    QUEUED = "queued"
    SUBMITTING = "submitting"
    FILLED = "filled"
    FAILED = "failed"


@dataclass
class BatchEntry:
    """One prepared order waiting in the queue."""

    spec: OrderSpec
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: BatchEntryStatus = BatchEntryStatus.QUEUED
    error: Optional[str] = None
    result: Optional[SubmissionResult] = None

    @property
    def summary(self) -> str:
        return self.spec.summary


@dataclass(frozen=True)
class BatchResult:
    """Outcome of one submit_all call."""

    succeeded: int
    failed: int
    results: dict[str, SubmissionResult] = field(default_factory=dict)
    errors: dict[str, Exception] = field(default_factory=dict)


class BatchQueue:
    """Bounded queue of orders submitted together."""

    def __init__(
        self,
        pipeline: ExecutionPipeline,
        capacity: int = DEFAULT_BATCH_CAPACITY,
        gtd_buffer_seconds: int = DEFAULT_GTD_BUFFER_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._pipeline = pipeline
        self._capacity = capacity
        self._gtd_buffer = gtd_buffer_seconds
        self._clock = clock
        self._entries: list[BatchEntry] = []
        self._log = log.bind(component="batch_queue")

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def entries(self) -> tuple[BatchEntry, ...]:
        return tuple(self._entries)

    @property
    def is_empty(self) -> bool:
        return not self._entries

    @property
    def is_full(self) -> bool:
        return len(self._entries) >= self._capacity

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, order: OrderValidation) -> Result[BatchEntry, tuple[ValidationIssue, ...]]:
        """Queue an order that passed validation.

        Returns Err with the validation issues when the order cannot be
        submitted; the queue is left untouched in that case.

        Raises:
            TypeError: If order is not an OrderValidation.
            BatchQueueFullError: If the queue already holds `capacity` orders.
        """
        if not isinstance(order, OrderValidation):
            raise TypeError(
                f"Batch entries must come from order validation, got {type(order).__name__}"
            )
        if self.is_full:
            raise BatchQueueFullError(f"Batch queue can hold at most {self._capacity} orders.")
        if order.spec is None:
            return Err(order.issues)

        entry = BatchEntry(spec=order.spec)
        self._entries.append(entry)
        self._log.info("batch_order_added", entry_id=entry.id, summary=entry.summary, size=len(self))
        return Ok(entry)

    def remove(self, entry_id: str) -> bool:
        """Drop an entry. Entries being submitted cannot be removed."""
        for index, entry in enumerate(self._entries):
            if entry.id != entry_id:
                continue
            if entry.status == BatchEntryStatus.SUBMITTING:
                return False
            del self._entries[index]
            return True
        return False

    def clear(self) -> None:
        self._entries = [e for e in self._entries if e.status == BatchEntryStatus.SUBMITTING]

    def _expired(self, spec: OrderSpec) -> bool:
        if spec.order_type != OrderLifetime.GTD:
            return False
        return spec.expiration < int(self._clock()) + self._gtd_buffer

    async def submit_all(self) -> BatchResult:
        """Submit every queued or previously failed entry concurrently.

        GTD entries whose expiration has drifted inside the security buffer
        while queued are marked FAILED and not sent.

        Raises:
            BatchSubmissionError: If every attempted entry failed. The queue
                is preserved with each entry marked FAILED.
        """
        pending = [
            e for e in self._entries
            if e.status in (BatchEntryStatus.QUEUED, BatchEntryStatus.FAILED)
        ]
        if not pending:
            return BatchResult(succeeded=0, failed=0)

        # one chain check for the whole batch rather than one prompt per order
        wallet = self._pipeline.session.require_wallet()
        await self._pipeline.ensure_network(wallet)

        errors: dict[str, Exception] = {}
        sendable: list[BatchEntry] = []
        for entry in pending:
            if self._expired(entry.spec):
                issue = ValidationIssue.EXPIRATION_TOO_SOON
                entry.status = BatchEntryStatus.FAILED
                entry.error = issue.message
                errors[entry.id] = ValidationError(issue.message)
                self._log.info("batch_order_expired", entry_id=entry.id, expiration=entry.spec.expiration)
                continue
            sendable.append(entry)

        for entry in sendable:
            entry.status = BatchEntryStatus.SUBMITTING
            entry.error = None

        self._log.info("batch_submitting", count=len(sendable), expired=len(errors))
        results: dict[str, SubmissionResult] = {}
        try:
            outcomes = await asyncio.gather(
                *(self._pipeline.submit_order(entry.spec) for entry in sendable),
                return_exceptions=True,
            )
            for entry, outcome in zip(sendable, outcomes):
                if isinstance(outcome, BaseException):
                    if not isinstance(outcome, Exception):
                        raise outcome
                    entry.status = BatchEntryStatus.FAILED
                    entry.error = str(outcome)
                    errors[entry.id] = outcome
                else:
                    entry.status = BatchEntryStatus.FILLED
                    entry.result = outcome
                    results[entry.id] = outcome
        finally:
            interrupted = [e for e in sendable if e.status == BatchEntryStatus.SUBMITTING]
            for entry in interrupted:
                entry.status = BatchEntryStatus.QUEUED
            if interrupted:
                self._log.warning("batch_submission_interrupted", requeued=len(interrupted))
            self._entries = [e for e in self._entries if e.status != BatchEntryStatus.FILLED]

        self._log.info(
            "batch_submitted",
            succeeded=len(results),
            failed=len(errors),
            remaining=len(self._entries),
        )

        if not results:
            raise BatchSubmissionError(
                f"All {len(errors)} batch orders failed", errors=errors
            )
        return BatchResult(
            succeeded=len(results),
            failed=len(errors),
            results=results,
            errors=errors,
        )
