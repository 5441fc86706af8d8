"""
Wallet signer abstraction.

The order pipeline talks to the user's wallet through WalletSigner: current
chain id, chain-switch requests, and EIP-712 signing. Browser and hardware
wallets implement it in their host application; LocalWalletSigner signs with
an in-process private key for scripts and the CLI.
"""
from typing import Any, Optional, Protocol, runtime_checkable

import structlog
from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_utils import to_checksum_address

from signet.core.config import POLYGON_CHAIN_ID, ConfigManager
from signet.core.retry import ValidationError
from signet.integrations.polymarket.signing import SignatureType

log = structlog.get_logger()


@runtime_checkable
class WalletSigner(Protocol):
    """What the engine needs from a connected wallet.

    address is the signing EOA. funder_address is the account that holds
    collateral and appears as the order maker; it equals address for plain
    EOA wallets.
    """

    @property
    def address(self) -> str:
        ...

    @property
    def funder_address(self) -> str:
        ...

    @property
    def signature_type(self) -> SignatureType:
        ...

    async def get_chain_id(self) -> int:
        ...

    async def switch_chain(self, chain_id: int) -> None:
        """Ask the wallet to switch networks. Completion is asynchronous."""
        ...

    async def sign_typed_data(self, typed_data: dict[str, Any]) -> str:
        """Sign a full EIP-712 document, returning a 0x-prefixed signature."""
        ...


class LocalWalletSigner:
    """WalletSigner backed by a private key held in memory."""

    def __init__(
        self,
        private_key: str,
        chain_id: int = POLYGON_CHAIN_ID,
        funder_address: Optional[str] = None,
        signature_type: SignatureType = SignatureType.EOA,
    ) -> None:
        self._account = Account.from_key(private_key)
        self._chain_id = chain_id
        self._funder = to_checksum_address(funder_address) if funder_address else self._account.address
        self._signature_type = signature_type
        self._log = log.bind(component="local_wallet", address=self._account.address)

    @classmethod
    def from_config(cls, config: ConfigManager) -> "LocalWalletSigner":
        """Build a signer from the [wallet] config section.

        Raises:
            ValidationError: If wallet.private_key is not configured.
        """
        private_key = config.get_str("wallet.private_key")
        if not private_key:
            raise ValidationError("wallet.private_key is not configured (set SIGNET_WALLET_PRIVATE_KEY)")
        return cls(
            private_key=private_key,
            chain_id=config.get_int("clob.chain_id", POLYGON_CHAIN_ID),
            funder_address=config.get_str("wallet.funder_address"),
            signature_type=SignatureType(config.get_int("wallet.signature_type", 0)),
        )

    @property
    def address(self) -> str:
        return self._account.address

    @property
    def funder_address(self) -> str:
        return self._funder

    @property
    def signature_type(self) -> SignatureType:
        return self._signature_type

    async def get_chain_id(self) -> int:
        return self._chain_id

    async def switch_chain(self, chain_id: int) -> None:
        self._log.info("chain_switched", from_chain=self._chain_id, to_chain=chain_id)
        self._chain_id = chain_id

    async def sign_typed_data(self, typed_data: dict[str, Any]) -> str:
        signable = encode_typed_data(full_message=typed_data)
        signed = self._account.sign_message(signable)
        return "0x" + bytes(signed.signature).hex()
