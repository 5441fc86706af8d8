"""Best-effort order audit sync to the backend persistence service.

Executed orders are reported to POST /trade/sync so the backend can keep its
own order history. Sync is fire-and-forget: failures are logged for
operators and never retried or surfaced to the trader.
"""

from datetime import datetime
from typing import Optional

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from signet.domain.order import OrderSpec, SubmissionResult

log = structlog.get_logger()

SYNC_PATH = "/trade/sync"
ORDER_SOURCE = "terminal"


class AuditOrderRecord(BaseModel):
    """One executed order as the backend stores it."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    order_id: str
    market_id: str
    outcome: str
    outcome_token_id: str
    side: str
    price: float
    size: float
    order_type: str
    status: str
    status_detail: Optional[str] = None
    order_hashes: list[str] = Field(default_factory=list)
    source: str = ORDER_SOURCE
    maker_address: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_submission(
        cls,
        spec: OrderSpec,
        result: SubmissionResult,
        maker_address: str,
    ) -> "AuditOrderRecord":
        return cls(
            order_id=result.order_id,
            market_id=spec.market_id,
            outcome=spec.outcome_label,
            outcome_token_id=spec.token_id,
            side=spec.side.value,
            price=float(spec.price),
            size=float(spec.size),
            order_type=result.order_type.value,
            status=result.status.value,
            status_detail=result.raw_status,
            order_hashes=list(result.order_hashes),
            maker_address=maker_address,
            created_at=result.submitted_at,
            updated_at=result.submitted_at,
        )


class AuditSyncRequest(BaseModel):
    orders: list[AuditOrderRecord]


class AuditSyncClient:
    """Async HTTP client for the audit sync endpoint."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._log = log.bind(component="audit_sync")

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> None:
        if self._client is not None:
            return
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
            headers=headers,
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "AuditSyncClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def sync_orders(self, records: list[AuditOrderRecord]) -> bool:
        """Send records to the backend. Returns False on any failure; never raises."""
        if not records:
            return True

        payload = AuditSyncRequest(orders=records).model_dump(by_alias=True, mode="json")
        try:
            await self.connect()
            response = await self._client.post(SYNC_PATH, json=payload)
            response.raise_for_status()
        except Exception as e:
            self._log.warning(
                "audit_sync_failed",
                error=str(e),
                error_type=type(e).__name__,
                orders=len(records),
                order_ids=[r.order_id for r in records],
            )
            return False

        self._log.debug("audit_sync_completed", orders=len(records))
        return True

