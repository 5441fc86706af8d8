"""
Engine lifecycle and health reporting.

A component starts once and stops once. Its health is the worst status among
the named checks it exposes (CLOB reachability, wallet session, audit sync),
with each check's details reported under its own name.
"""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping, Optional

import structlog

log = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HealthStatus(str, Enum):
    """Health status, ordered from best to worst."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {
    HealthStatus.HEALTHY: 0,
    HealthStatus.DEGRADED: 1,
    HealthStatus.UNHEALTHY: 2,
}


@dataclass
class HealthCheckResult:
    """Result of a health check."""

    status: HealthStatus
    message: str = ""
    details: dict[str, Any] = field(default_factory=dict)
    checked_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def healthy(cls, message: str = "OK", **details: Any) -> "HealthCheckResult":
        return cls(status=HealthStatus.HEALTHY, message=message, details=details)

    @classmethod
    def degraded(cls, message: str, **details: Any) -> "HealthCheckResult":
        return cls(status=HealthStatus.DEGRADED, message=message, details=details)

    @classmethod
    def unhealthy(cls, message: str, **details: Any) -> "HealthCheckResult":
        return cls(status=HealthStatus.UNHEALTHY, message=message, details=details)


HealthCheck = Callable[[], Awaitable[HealthCheckResult]]


def combine_health(parts: Mapping[str, HealthCheckResult]) -> HealthCheckResult:
    """Fold named check results into one.

    The overall status is the worst part's status. The message lists every
    part that is not healthy, and details are nested per part.
    """
    if not parts:
        return HealthCheckResult.healthy()

    worst = max((r.status for r in parts.values()), key=lambda s: s.severity)
    problems = [
        f"{name}: {result.message}"
        for name, result in parts.items()
        if result.status != HealthStatus.HEALTHY
    ]
    details = {
        name: {"status": result.status.value, **result.details}
        for name, result in parts.items()
    }
    return HealthCheckResult(
        status=worst,
        message="; ".join(problems) or "OK",
        details=details,
    )


class BaseComponent:
    """Start/stop bookkeeping plus aggregated health.

    Subclasses override `_do_start`, `_do_stop` and `_health_checks`.
    """

    def __init__(self, name: Optional[str] = None) -> None:
        self._name = name or self.__class__.__name__
        self._running = False
        self._started_at: Optional[datetime] = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def uptime_seconds(self) -> float:
        if not self._started_at:
            return 0.0
        return (_utcnow() - self._started_at).total_seconds()

    async def start(self) -> None:
        """Start the component. Calling twice is a no-op."""
        if self._running:
            return
        await self._do_start()
        self._running = True
        self._started_at = _utcnow()

    async def stop(self) -> None:
        """Stop the component. Calling on a stopped component is a no-op."""
        if not self._running:
            return
        await self._do_stop()
        self._running = False

    async def health_check(self) -> HealthCheckResult:
        """Run every named check concurrently and combine the results.

        A check that raises counts as UNHEALTHY for its part only.
        """
        if not self._running:
            return HealthCheckResult.unhealthy(f"{self._name} not running")

        checks = self._health_checks()
        names = list(checks)
        outcomes = await asyncio.gather(
            *(checks[name]() for name in names),
            return_exceptions=True,
        )

        parts: dict[str, HealthCheckResult] = {}
        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                log.warning(
                    "health_check_failed",
                    component=self._name,
                    check=name,
                    error=str(outcome),
                    error_type=type(outcome).__name__,
                )
                parts[name] = HealthCheckResult.unhealthy(f"check failed: {outcome}")
            else:
                parts[name] = outcome

        result = combine_health(parts)
        result.details["uptime_seconds"] = self.uptime_seconds
        return result

    async def _do_start(self) -> None:
        pass

    async def _do_stop(self) -> None:
        pass

    def _health_checks(self) -> dict[str, HealthCheck]:
        return {}
