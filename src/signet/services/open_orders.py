"""Short-lived cache of the wallet's open orders."""
import time
from typing import Any, Callable, Optional

import structlog

from signet.integrations.polymarket.clob import CLOBClient
from signet.services.session import TradingSession

log = structlog.get_logger()


class OpenOrdersCache:
    """Caches open orders per market filter until invalidated or stale.

    Successful submissions invalidate the cache so the next read reflects
    the new order.
    """

    def __init__(
        self,
        clob: CLOBClient,
        session: TradingSession,
        ttl_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._clob = clob
        self._session = session
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[Optional[str], tuple[float, list[dict[str, Any]]]] = {}
        self._generation = 0

    @property
    def generation(self) -> int:
        """Incremented on every invalidation."""
        return self._generation

    async def get(self, market: Optional[str] = None, refresh: bool = False) -> list[dict[str, Any]]:
        entry = self._entries.get(market)
        if entry is not None and not refresh and self._clock() - entry[0] < self._ttl:
            return entry[1]

        generation = self._generation
        context = await self._session.ensure_ready()
        orders = await self._clob.get_open_orders(context.credentials, context.address, market=market)

        # an invalidation during the fetch makes this result stale
        if generation == self._generation:
            self._entries[market] = (self._clock(), orders)
        return orders

    def invalidate(self) -> None:
        self._entries.clear()
        self._generation += 1
        log.debug("open_orders_invalidated", generation=self._generation)
