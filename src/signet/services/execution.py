"""
Order signing and submission pipeline.

Per order, strictly in sequence:

1. Network check - the wallet must already be on the trading chain. If it
   is not, a switch is requested and the attempt is aborted; the caller
   resubmits once the wallet reports the right chain.
2. Credentials - the session's L2 credentials, fetched on demand.
3. Typed data - the EIP-712 Order struct for the exchange contract.
4. Signature - the wallet prompt; the only user-gated wait.
5. Submission - POST /order with L2 headers.
6. Success - open orders are invalidated and an audit record is synced in
   the background.

Nothing is retried. Every failure propagates to the caller with nothing left
half-submitted, so the user can retry from scratch.
"""
import asyncio
from typing import Optional

import structlog

from signet.core.config import EngineSettings
from signet.core.retry import (
    AuthenticationError,
    ChainMismatchError,
    InsufficientLiquidityError,
    OrderRejectedError,
    PermanentError,
    SigningError,
    UserRejectedError,
    is_user_rejection,
)
from signet.domain.order import OrderSpec, SubmissionResult, map_submission_status
from signet.domain.result import Err
from signet.integrations.audit import AuditOrderRecord, AuditSyncClient
from signet.integrations.polymarket.clob import CLOBClient
from signet.integrations.polymarket.signing import (
    SignedOrder,
    build_order_message,
    build_order_typed_data,
    generate_salt,
)
from signet.integrations.wallet import WalletSigner
from signet.services.open_orders import OpenOrdersCache
from signet.services.session import TradingSession

log = structlog.get_logger()

_LIQUIDITY_REJECTION_MARKERS = ("no orders found to match", "not enough liquidity", "insufficient liquidity")


def rejection_error(reason: str) -> PermanentError:
    """Map an exchange rejection reason onto the matching error type."""
    lowered = reason.lower()
    if any(marker in lowered for marker in _LIQUIDITY_REJECTION_MARKERS):
        return InsufficientLiquidityError(reason)
    return OrderRejectedError(reason)


class ExecutionPipeline:
    """Signs and submits validated orders for the session's wallet."""

    def __init__(
        self,
        session: TradingSession,
        clob: CLOBClient,
        settings: Optional[EngineSettings] = None,
        open_orders: Optional[OpenOrdersCache] = None,
        audit: Optional[AuditSyncClient] = None,
    ) -> None:
        self._session = session
        self._clob = clob
        self._settings = settings or EngineSettings()
        self._open_orders = open_orders
        self._audit = audit
        self._audit_tasks: set[asyncio.Task] = set()
        self._log = log.bind(component="execution_pipeline")

    @property
    def session(self) -> TradingSession:
        return self._session

    @property
    def pending_audit_tasks(self) -> int:
        return len(self._audit_tasks)

    async def ensure_network(self, wallet: WalletSigner) -> None:
        """Abort unless the wallet is on the trading chain.

        On a mismatch a switch is requested and confirmed by polling, but the
        current attempt is aborted either way.

        Raises:
            ChainMismatchError: Wallet was not on the trading chain.
            UserRejectedError: User declined the switch prompt.
        """
        expected = self._settings.chain_id
        current = await wallet.get_chain_id()
        if current == expected:
            return

        self._log.warning("wallet_chain_mismatch", expected=expected, actual=current)
        try:
            await wallet.switch_chain(expected)
        except Exception as e:
            if is_user_rejection(e):
                raise UserRejectedError(
                    "Chain switch was rejected. Please switch to Polygon to trade.", cause=e
                ) from e
            raise ChainMismatchError(
                f"Could not switch wallet to chain {expected}",
                expected_chain_id=expected,
                actual_chain_id=current,
                cause=e,
            ) from e

        switched = await self._confirm_chain(wallet, expected)
        if switched:
            message = f"Wallet switched to chain {expected}. Submit the order again."
        else:
            message = f"Wallet is still on chain {current}. Switch to chain {expected} and retry."
        raise ChainMismatchError(
            message,
            expected_chain_id=expected,
            actual_chain_id=current,
            switched=switched,
        )

    async def _confirm_chain(self, wallet: WalletSigner, expected: int) -> bool:
        for _ in range(self._settings.chain_switch_poll_attempts):
            if await wallet.get_chain_id() == expected:
                return True
            await asyncio.sleep(self._settings.chain_switch_poll_interval_seconds)
        return False

    async def submit_order(self, spec: OrderSpec) -> SubmissionResult:
        """Sign and submit one order.

        Raises:
            WalletNotConnectedError, ChainMismatchError, CredentialsError,
            ClientNotReadyError, UserRejectedError, SigningError,
            OrderRejectedError, InsufficientLiquidityError, TransientError
        """
        wallet = self._session.require_wallet()
        order_log = self._log.bind(
            token_id=spec.token_id,
            side=spec.side.value,
            order_type=spec.order_type.value,
        )
        order_log.info(
            "submitting_order",
            price=str(spec.price),
            size=str(spec.size),
            dollar_amount=str(spec.dollar_amount) if spec.dollar_amount is not None else None,
        )

        await self.ensure_network(wallet)
        context = await self._session.ensure_ready(
            timeout=self._settings.client_ready_timeout_seconds
        )

        message = build_order_message(
            spec,
            maker=wallet.funder_address,
            signer=wallet.address,
            signature_type=wallet.signature_type,
            salt=generate_salt(),
        )
        typed_data = build_order_typed_data(message, self._settings.chain_id, spec.neg_risk)

        try:
            signature = await wallet.sign_typed_data(typed_data)
        except Exception as e:
            if is_user_rejection(e):
                order_log.info("order_signature_rejected")
                raise UserRejectedError("Signature request was rejected in the wallet.", cause=e) from e
            raise SigningError("Wallet failed to sign the order", cause=e) from e

        try:
            response = await self._clob.post_order(
                SignedOrder(message=message, signature=signature),
                spec.order_type,
                context.credentials,
                context.address,
            )
        except AuthenticationError:
            # stale API key; the next attempt derives fresh credentials
            self._session.invalidate_credentials(context.address)
            raise

        if isinstance(response, Err):
            order_log.warning("order_failed", reason=response.error)
            raise rejection_error(response.error)

        accepted = response.value
        result = SubmissionResult(
            order_id=accepted.order_id,
            status=map_submission_status(accepted.status, spec.order_type),
            order_type=spec.order_type,
            raw_status=accepted.status,
            order_hashes=accepted.order_hashes,
        )
        order_log.info(
            "order_submitted",
            order_id=result.order_id,
            status=result.status.value,
            raw_status=result.raw_status,
        )

        if self._open_orders is not None:
            self._open_orders.invalidate()
        self._schedule_audit(spec, result, wallet.funder_address)
        return result

    def _schedule_audit(self, spec: OrderSpec, result: SubmissionResult, maker_address: str) -> None:
        if self._audit is None:
            return
        record = AuditOrderRecord.from_submission(spec, result, maker_address)
        task = asyncio.create_task(self._audit.sync_orders([record]))
        self._audit_tasks.add(task)
        task.add_done_callback(self._audit_tasks.discard)

    async def drain(self, timeout: float = 5.0) -> None:
        """Wait for outstanding audit syncs, cancelling any that overrun."""
        if not self._audit_tasks:
            return
        tasks = list(self._audit_tasks)
        done, pending = await asyncio.wait(tasks, timeout=timeout)
        if not pending:
            return
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        self._log.warning("audit_sync_abandoned", count=len(pending))
