"""
Signet engine wiring and lifecycle.

TradingEngine is the composition root: it builds the CLOB and audit clients
from configuration, wires the credential manager, session, execution
pipeline and batch queue together, and hands out trade tickets.

Shutdown order:
1. Wait for outstanding audit syncs
2. Close the audit client
3. Close the CLOB client
"""
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional

import structlog

from signet.core.config import ConfigManager, EngineSettings
from signet.core.lifecycle import BaseComponent, HealthCheck, HealthCheckResult
from signet.core.retry import SignetError
from signet.domain.market import MarketRules, MarketSnapshot
from signet.integrations.audit import AuditSyncClient
from signet.integrations.polymarket.clob import CLOBClient
from signet.integrations.wallet import WalletSigner
from signet.pricing.depth import DepthEstimator
from signet.pricing.resolver import PriceResolver
from signet.services.batch import BatchEntryStatus, BatchQueue
from signet.services.credentials import CredentialManager, CredentialStore
from signet.services.execution import ExecutionPipeline
from signet.services.open_orders import OpenOrdersCache
from signet.services.order_builder import OrderParameterBuilder
from signet.services.session import TradingSession
from signet.services.ticket import TradeTicket


class TradingEngine(BaseComponent):
    """Order execution engine for one user session.

    Usage:
        engine = TradingEngine(ConfigManager(Path("config/default.toml")))
        await engine.start()
        await engine.connect_wallet(wallet)
        ticket = await engine.open_ticket(market)
        ...
        await engine.stop()
    """

    def __init__(
        self,
        config: Optional[ConfigManager] = None,
        clob: Optional[CLOBClient] = None,
        audit: Optional[AuditSyncClient] = None,
    ) -> None:
        """Initialize the engine.

        Args:
            config: Configuration; defaults apply when omitted.
            clob: Pre-built CLOB client, otherwise built from [clob] config.
            audit: Pre-built audit client, otherwise built from [audit]
                config when enabled.
        """
        super().__init__(name="TradingEngine")
        self._config = config or ConfigManager()
        self._settings = EngineSettings.from_config(self._config)
        settings = self._settings
        self._log = structlog.get_logger("signet.app")

        self._clob = clob or CLOBClient(
            base_url=settings.clob_url,
            timeout=settings.http_timeout_seconds,
            proxy=settings.http_proxy,
        )
        if audit is None and settings.audit_enabled and settings.audit_url:
            audit = AuditSyncClient(
                base_url=settings.audit_url,
                token=settings.audit_token,
                timeout=settings.audit_timeout_seconds,
            )
        self._audit = audit

        store_path = Path(settings.credential_store_path).expanduser() if settings.credential_store_path else None
        self._credentials = CredentialManager(
            source=self._clob,
            store=CredentialStore(ttl_seconds=settings.credential_ttl_seconds, path=store_path),
            chain_id=settings.chain_id,
        )
        self._session = TradingSession(
            self._credentials,
            ready_timeout=settings.client_ready_timeout_seconds,
        )
        self._open_orders = OpenOrdersCache(
            self._clob,
            self._session,
            ttl_seconds=settings.open_orders_ttl_seconds,
        )
        self._pipeline = ExecutionPipeline(
            self._session,
            self._clob,
            settings=settings,
            open_orders=self._open_orders,
            audit=self._audit,
        )
        self._batch = BatchQueue(
            self._pipeline,
            capacity=settings.batch_capacity,
            gtd_buffer_seconds=settings.gtd_buffer_seconds,
        )
        self._resolver = PriceResolver(max_spread=settings.max_display_spread)
        self._depth = DepthEstimator(self._clob)
        self._builder = OrderParameterBuilder(
            gtd_buffer_seconds=settings.gtd_buffer_seconds,
            default_gtd_lifetime_seconds=settings.default_gtd_lifetime_seconds,
            fee_rate_bps=settings.fee_rate_bps,
        )

    @property
    def config(self) -> ConfigManager:
        return self._config

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    @property
    def clob(self) -> CLOBClient:
        return self._clob

    @property
    def session(self) -> TradingSession:
        return self._session

    @property
    def pipeline(self) -> ExecutionPipeline:
        return self._pipeline

    @property
    def batch(self) -> BatchQueue:
        return self._batch

    @property
    def open_orders(self) -> OpenOrdersCache:
        return self._open_orders

    @property
    def resolver(self) -> PriceResolver:
        return self._resolver

    @property
    def depth_estimator(self) -> DepthEstimator:
        return self._depth

    @property
    def builder(self) -> OrderParameterBuilder:
        return self._builder

    async def _do_start(self) -> None:
        await self._clob.connect()
        if self._audit is not None:
            await self._audit.connect()
        self._log.info(
            "engine_started",
            clob_url=self._settings.clob_url,
            chain_id=self._settings.chain_id,
            audit_enabled=self._audit is not None,
        )

    async def _do_stop(self) -> None:
        await self._pipeline.drain()
        await self._session.close()
        if self._audit is not None:
            await self._audit.close()
        await self._clob.close()
        self._log.info("engine_stopped")

    def _health_checks(self) -> dict[str, HealthCheck]:
        return {
            "clob": self._check_clob,
            "session": self._check_session,
            "batch": self._check_batch,
            "audit": self._check_audit,
        }

    async def _check_clob(self) -> HealthCheckResult:
        try:
            server_time = await self._clob.get_server_time()
        except SignetError as e:
            return HealthCheckResult.degraded(f"CLOB unreachable: {e}", url=self._settings.clob_url)
        return HealthCheckResult.healthy(url=self._settings.clob_url, server_time=server_time)

    async def _check_session(self) -> HealthCheckResult:
        wallet = self._session.wallet
        return HealthCheckResult.healthy(
            wallet_connected=wallet is not None,
            address=wallet.address.lower() if wallet is not None else None,
            client_ready=self._session.is_ready,
            credential_state=self._credentials.state.value,
        )

    async def _check_batch(self) -> HealthCheckResult:
        failed = sum(1 for e in self._batch.entries if e.status == BatchEntryStatus.FAILED)
        return HealthCheckResult.healthy(
            queued=len(self._batch),
            failed=failed,
            capacity=self._batch.capacity,
        )

    async def _check_audit(self) -> HealthCheckResult:
        if self._audit is None:
            return HealthCheckResult.healthy("disabled", enabled=False)
        pending = self._pipeline.pending_audit_tasks
        if not self._audit.is_connected:
            return HealthCheckResult.degraded(
                "audit client not connected", enabled=True, pending_syncs=pending
            )
        return HealthCheckResult.healthy(enabled=True, pending_syncs=pending)

    async def connect_wallet(self, wallet: WalletSigner, warm_up: bool = True) -> None:
        await self._session.connect(wallet, warm_up=warm_up)

    async def disconnect_wallet(self) -> None:
        self._batch.clear()
        await self._session.disconnect()

    def market_from_record(self, data: dict[str, Any]) -> MarketSnapshot:
        """Build a market snapshot from a backend market record.

        Tick and min size missing from the record fall back to the [market]
        config defaults.
        """
        defaults = MarketRules(
            tick_size=self._settings.default_tick_size,
            min_size=self._settings.default_min_size,
        )
        return MarketSnapshot.from_dict(data, defaults=defaults)

    async def open_ticket(
        self,
        market: MarketSnapshot,
        refresh_rules: bool = True,
        available_balance: Optional[Decimal] = None,
    ) -> TradeTicket:
        """Create a trade ticket for market.

        With refresh_rules, tick size, min size and neg-risk are overlaid
        from the live book of the first outcome's token. A failed refresh
        keeps the snapshot's rules.
        """
        token_id = market.outcomes[0].token_id if market.outcomes else None
        if refresh_rules and token_id:
            try:
                book = await self._clob.get_order_book(token_id)
            except SignetError as e:
                self._log.warning(
                    "market_rules_refresh_failed",
                    market_id=market.market_id,
                    token_id=token_id,
                    error=str(e),
                )
            else:
                market = MarketSnapshot(
                    market_id=market.market_id,
                    question=market.question,
                    outcomes=market.outcomes,
                    rules=market.rules.with_book_metadata(book),
                )

        return TradeTicket(
            market=market,
            builder=self._builder,
            resolver=self._resolver,
            depth_estimator=self._depth,
            pipeline=self._pipeline,
            batch=self._batch,
            available_balance=available_balance,
        )
