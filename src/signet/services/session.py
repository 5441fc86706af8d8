"""
Trading session: the connected wallet and its authenticated client state.

The session owns one wallet at a time. Connecting starts a silent background
credential warm-up; switching to a different address or disconnecting
invalidates the previous wallet's credentials. Callers that need an
authenticated context await `ensure_ready()`, which resolves once
credentials for the current wallet are installed.
"""
import asyncio
from dataclasses import dataclass
from typing import Optional

import structlog
from py_clob_client.clob_types import ApiCreds

from signet.core.retry import ClientNotReadyError, WalletNotConnectedError
from signet.integrations.wallet import WalletSigner
from signet.services.credentials import CredentialManager

log = structlog.get_logger()

DEFAULT_READY_TIMEOUT_SECONDS = 5.0


@dataclass(frozen=True)
class SessionContext:
    """Authenticated context for the current wallet."""

    wallet: WalletSigner
    credentials: ApiCreds

    @property
    def address(self) -> str:
        return self.wallet.address


class TradingSession:
    """Per-wallet session state with an explicit readiness signal."""

    def __init__(
        self,
        credentials: CredentialManager,
        ready_timeout: float = DEFAULT_READY_TIMEOUT_SECONDS,
    ) -> None:
        self._credentials = credentials
        self._ready_timeout = ready_timeout
        self._wallet: Optional[WalletSigner] = None
        self._context: Optional[SessionContext] = None
        self._ready = asyncio.Event()
        self._warm_up_task: Optional[asyncio.Task] = None
        self._log = log.bind(component="trading_session")
        credentials.add_listener(self._on_credentials_ready)

    @property
    def wallet(self) -> Optional[WalletSigner]:
        return self._wallet

    @property
    def credentials(self) -> CredentialManager:
        return self._credentials

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    def require_wallet(self) -> WalletSigner:
        if self._wallet is None:
            raise WalletNotConnectedError("Connect a wallet before trading.")
        return self._wallet

    async def connect(self, wallet: WalletSigner, warm_up: bool = True) -> None:
        """Make wallet the active wallet.

        A different address than the current one invalidates the previous
        credentials. Cached credentials make the session ready immediately;
        otherwise a background warm-up is started when warm_up is set.
        """
        previous = self._wallet
        if previous is not None and previous.address.lower() != wallet.address.lower():
            self._log.info(
                "wallet_changed",
                previous=previous.address.lower(),
                current=wallet.address.lower(),
            )
            await self._cancel_warm_up()
            self._credentials.invalidate(previous.address)

        self._wallet = wallet
        self._context = None
        self._ready.clear()
        self._log.info("wallet_connected", address=wallet.address.lower())

        cached = self._credentials.cached(wallet.address)
        if cached is not None:
            self._install(wallet, cached)
            return

        if warm_up:
            await self._cancel_warm_up()
            self._warm_up_task = asyncio.create_task(self._credentials.warm_up(wallet))

    async def disconnect(self) -> None:
        """Forget the active wallet and its credentials."""
        await self._cancel_warm_up()
        if self._wallet is not None:
            self._log.info("wallet_disconnected", address=self._wallet.address.lower())
        self._credentials.disconnect()
        self._wallet = None
        self._context = None
        self._ready.clear()

    def invalidate_credentials(self, address: Optional[str] = None) -> None:
        """Drop credentials for address (default: the active wallet).

        When that is the active wallet the session stops being ready, so the
        next `ensure_ready()` fetches fresh credentials.
        """
        wallet = self._wallet
        target = address or (wallet.address if wallet is not None else None)
        if target is None:
            return
        self._credentials.invalidate(target)
        if wallet is not None and wallet.address.lower() == target.lower():
            self._context = None
            self._ready.clear()

    async def close(self) -> None:
        """Stop background work. Stored credentials are kept."""
        await self._cancel_warm_up()

    async def ensure_ready(self, timeout: Optional[float] = None) -> SessionContext:
        """Return the authenticated context, fetching credentials if needed.

        Raises:
            WalletNotConnectedError: If no wallet is connected.
            CredentialsError: If credentials could not be obtained.
            ClientNotReadyError: If the context is not installed within timeout.
        """
        wallet = self.require_wallet()
        wait = self._ready_timeout if timeout is None else timeout
        try:
            await asyncio.wait_for(self._await_ready(wallet), timeout=wait)
        except asyncio.TimeoutError as e:
            raise ClientNotReadyError(
                f"Trading client for {wallet.address} was not ready after {wait}s"
            ) from e

        if self._context is None or self._context.wallet is not self._wallet:
            raise ClientNotReadyError("Wallet changed while waiting for the trading client")
        return self._context

    async def _await_ready(self, wallet: WalletSigner) -> None:
        # The credential fetch is shielded; a timeout here leaves it running.
        if self._context is None:
            await self._credentials.get_credentials(wallet)
        await self._ready.wait()

    def _on_credentials_ready(self, address: str, credentials: ApiCreds) -> None:
        wallet = self._wallet
        if wallet is None or wallet.address.lower() != address.lower():
            return
        self._install(wallet, credentials)

    def _install(self, wallet: WalletSigner, credentials: ApiCreds) -> None:
        self._context = SessionContext(wallet=wallet, credentials=credentials)
        self._ready.set()

    async def _cancel_warm_up(self) -> None:
        task = self._warm_up_task
        self._warm_up_task = None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
