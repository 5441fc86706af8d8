"""
L2 API credential lifecycle.

Every authenticated CLOB call needs an API key/secret/passphrase bound to
the signing wallet. Credentials are derived deterministically from a wallet
signature (or created when derivation yields nothing), cached per wallet
address with a TTL, and optionally persisted to disk so a restart does not
prompt the wallet again.

State machine (per active address):

    UNINITIALIZED --get_credentials--> FETCHING --ok--> READY
          ^                               |               |
          +------------- failure ---------+               |
          +------- disconnect / address change -----------+
"""
import asyncio
import json
import os
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Protocol

import structlog
from py_clob_client.clob_types import ApiCreds

from signet.core.retry import CredentialsError, UserRejectedError, is_user_rejection
from signet.domain.result import Err, Ok, Result
from signet.integrations.polymarket.signing import build_clob_auth_typed_data, l1_headers
from signet.integrations.wallet import WalletSigner

log = structlog.get_logger()

STORE_KEY_PREFIX = "clob-creds:"
DEFAULT_TTL_SECONDS = 24 * 60 * 60


class CredentialState(str, Enum):
    UNINITIALIZED = "uninitialized"
    FETCHING = "fetching"
    READY = "ready"


class CredentialSource(Protocol):
    async def derive_api_key(self, headers: dict[str, str]) -> Result[ApiCreds, str]:
        ...

    async def create_api_key(self, headers: dict[str, str]) -> Result[ApiCreds, str]:
        ...


@dataclass(frozen=True)
class _StoredCredentials:
    credentials: ApiCreds
    expires_at: float


def store_key(address: str) -> str:
    return STORE_KEY_PREFIX + address.lower()


class CredentialStore:
    """Wallet-address-keyed credential cache with TTL.

    Keys are lowercased addresses. When a path is given, entries are also
    written to a JSON file (mode 0600) and reloaded on construction.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        path: Optional[Path] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._ttl = ttl_seconds
        self._path = path
        self._clock = clock
        self._entries: dict[str, _StoredCredentials] = {}
        self._log = log.bind(component="credential_store")
        if path is not None:
            self._load()

    def get(self, address: str) -> Optional[ApiCreds]:
        key = store_key(address)
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            self._log.debug("credentials_expired", address=address.lower())
            self._entries.pop(key, None)
            self._save()
            return None
        return entry.credentials

    def put(self, address: str, credentials: ApiCreds) -> None:
        self._entries[store_key(address)] = _StoredCredentials(
            credentials=credentials,
            expires_at=self._clock() + self._ttl,
        )
        self._save()

    def invalidate(self, address: str) -> None:
        if self._entries.pop(store_key(address), None) is not None:
            self._save()

    def clear(self) -> None:
        self._entries.clear()
        self._save()

    def __contains__(self, address: str) -> bool:
        return self.get(address) is not None

    def _load(self) -> None:
        if self._path is None or not self._path.exists():
            return
        try:
            raw = json.loads(self._path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            self._log.warning("credential_store_unreadable", path=str(self._path), error=str(e))
            return

        now = self._clock()
        for key, value in raw.items():
            if not key.startswith(STORE_KEY_PREFIX) or not isinstance(value, dict):
                continue
            expires_at = float(value.get("expiresAt", 0))
            if expires_at <= now:
                continue
            try:
                credentials = ApiCreds(
                    api_key=value["apiKey"],
                    api_secret=value["secret"],
                    api_passphrase=value["passphrase"],
                )
            except KeyError:
                continue
            self._entries[key] = _StoredCredentials(credentials, expires_at)

    def _save(self) -> None:
        if self._path is None:
            return
        payload = {
            key: {
                "apiKey": entry.credentials.api_key,
                "secret": entry.credentials.api_secret,
                "passphrase": entry.credentials.api_passphrase,
                "expiresAt": entry.expires_at,
            }
            for key, entry in self._entries.items()
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(payload))
        os.chmod(tmp_path, 0o600)
        os.replace(tmp_path, self._path)


class CredentialManager:
    """Obtains L2 credentials for the active wallet, once.

    Concurrent callers share a single in-flight derivation. A derivation
    that finishes after the active address changed is discarded.
    """

    def __init__(
        self,
        source: CredentialSource,
        store: Optional[CredentialStore] = None,
        chain_id: int = 137,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._source = source
        self._store = store or CredentialStore()
        self._chain_id = chain_id
        self._clock = clock
        self._state = CredentialState.UNINITIALIZED
        self._address: Optional[str] = None
        self._inflight: Optional[asyncio.Task] = None
        self._listeners: list[Callable[[str, ApiCreds], None]] = []
        self._log = log.bind(component="credential_manager")

    @property
    def state(self) -> CredentialState:
        return self._state

    @property
    def active_address(self) -> Optional[str]:
        return self._address

    @property
    def store(self) -> CredentialStore:
        return self._store

    def add_listener(self, listener: Callable[[str, ApiCreds], None]) -> None:
        """Register a callback fired whenever credentials become available."""
        self._listeners.append(listener)

    def cached(self, address: str) -> Optional[ApiCreds]:
        return self._store.get(address)

    async def get_credentials(self, wallet: WalletSigner) -> ApiCreds:
        """Return credentials for wallet, deriving or creating them if needed.

        Raises:
            CredentialsError: If credentials could not be obtained.
            UserRejectedError: If the user declined the authentication signature.
        """
        address = wallet.address.lower()
        if address != self._address:
            self._switch_address(address)

        cached = self._store.get(address)
        if cached is not None:
            self._state = CredentialState.READY
            self._notify(address, cached)
            return cached

        if self._inflight is None or self._inflight.done():
            self._state = CredentialState.FETCHING
            self._inflight = asyncio.create_task(self._fetch(wallet, address))

        # shield: one caller giving up must not cancel the shared fetch
        return await asyncio.shield(self._inflight)

    async def warm_up(self, wallet: WalletSigner) -> Optional[ApiCreds]:
        """Fetch credentials in the background. Failures are logged, not raised."""
        try:
            return await self.get_credentials(wallet)
        except Exception as e:
            self._log.info(
                "credential_warm_up_failed",
                address=wallet.address.lower(),
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

    def invalidate(self, address: Optional[str] = None) -> None:
        """Forget credentials for address (default: the active address)."""
        target = (address or self._address or "").lower()
        if target:
            self._store.invalidate(target)
        if target == self._address:
            self._state = CredentialState.UNINITIALIZED
            self._inflight = None
        self._log.info("credentials_invalidated", address=target or None)

    def disconnect(self) -> None:
        """Drop the active address and its credentials."""
        if self._address is not None:
            self.invalidate(self._address)
        self._address = None
        self._state = CredentialState.UNINITIALIZED
        self._inflight = None

    def _switch_address(self, address: str) -> None:
        if self._address is not None:
            self._log.info("wallet_address_changed", previous=self._address, current=address)
        self._address = address
        self._state = CredentialState.UNINITIALIZED
        self._inflight = None

    def _notify(self, address: str, credentials: ApiCreds) -> None:
        for listener in self._listeners:
            listener(address, credentials)

    async def _fetch(self, wallet: WalletSigner, address: str) -> ApiCreds:
        try:
            credentials = await self._derive_or_create(wallet)
        except Exception:
            if self._address == address:
                self._state = CredentialState.UNINITIALIZED
            raise

        if self._address != address:
            raise CredentialsError(
                f"Wallet changed from {address} while credentials were being fetched"
            )

        self._store.put(address, credentials)
        self._state = CredentialState.READY
        self._log.info("credentials_ready", address=address, api_key=credentials.api_key)
        self._notify(address, credentials)
        return credentials

    async def _derive_or_create(self, wallet: WalletSigner) -> ApiCreds:
        timestamp = int(self._clock())
        nonce = 0
        typed_data = build_clob_auth_typed_data(wallet.address, timestamp, nonce, self._chain_id)

        try:
            signature = await wallet.sign_typed_data(typed_data)
        except Exception as e:
            if is_user_rejection(e):
                raise UserRejectedError("Authentication signature was rejected in the wallet.", cause=e) from e
            raise CredentialsError("Wallet failed to sign the authentication message", cause=e) from e

        headers = l1_headers(wallet.address, signature, timestamp, nonce)

        derived = await self._source.derive_api_key(headers)
        if isinstance(derived, Ok):
            return derived.value

        self._log.info("credential_derive_failed", reason=derived.error)
        created = await self._source.create_api_key(headers)
        if isinstance(created, Err):
            self._log.warning("credential_create_failed", reason=created.error)
            raise CredentialsError(f"Could not derive or create API credentials: {created.error}")
        return created.value
