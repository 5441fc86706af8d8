"""
EIP-712 payloads for the Polymarket CLOB.

Two structures are signed by the wallet:
- ClobAuth (L1): proves wallet control when deriving or creating L2 API
  credentials.
- Order: the exchange order, verified on-chain by the CTF exchange
  contract at settlement.

Amounts are integers in collateral/share base units (6 decimals).
"""
import secrets
from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal
from enum import IntEnum
from typing import Any

from py_clob_client.clob_types import RoundConfig
from py_clob_client.config import get_contract_config
from py_clob_client.headers.headers import (
    POLY_ADDRESS,
    POLY_NONCE,
    POLY_SIGNATURE,
    POLY_TIMESTAMP,
)
from py_clob_client.order_builder.builder import ROUNDING_CONFIG

from signet.domain.order import OrderSide, OrderSpec

CLOB_AUTH_DOMAIN_NAME = "ClobAuthDomain"
CLOB_AUTH_VERSION = "1"
CLOB_AUTH_MESSAGE = "This message attests that I control the given wallet"

EXCHANGE_DOMAIN_NAME = "Polymarket CTF Exchange"
EXCHANGE_DOMAIN_VERSION = "1"

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

BASE_UNIT_DECIMALS = 6
_BASE_UNIT = Decimal(10) ** BASE_UNIT_DECIMALS

# JSON consumers on the exchange side parse salts as doubles
MAX_SALT = 2**53

EIP712_DOMAIN_FIELDS = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
]

CLOB_AUTH_FIELDS = [
    {"name": "address", "type": "address"},
    {"name": "timestamp", "type": "string"},
    {"name": "nonce", "type": "uint256"},
    {"name": "message", "type": "string"},
]

ORDER_FIELDS = [
    {"name": "salt", "type": "uint256"},
    {"name": "maker", "type": "address"},
    {"name": "signer", "type": "address"},
    {"name": "taker", "type": "address"},
    {"name": "tokenId", "type": "uint256"},
    {"name": "makerAmount", "type": "uint256"},
    {"name": "takerAmount", "type": "uint256"},
    {"name": "expiration", "type": "uint256"},
    {"name": "nonce", "type": "uint256"},
    {"name": "feeRateBps", "type": "uint256"},
    {"name": "side", "type": "uint8"},
    {"name": "signatureType", "type": "uint8"},
]


class SignatureType(IntEnum):
    """How the exchange verifies the order signature.

    EOA signs for itself; proxy and Safe wallets sign with an EOA on behalf
    of a funder contract that holds the collateral.
    """
    EOA = 0
    POLY_PROXY = 1
    POLY_GNOSIS_SAFE = 2


def side_to_int(side: OrderSide) -> int:
    return 0 if side == OrderSide.BUY else 1


def exchange_address(chain_id: int, neg_risk: bool = False) -> str:
    """Verifying contract for orders on chain_id."""
    return get_contract_config(chain_id, neg_risk).exchange


def rounding_for_tick(tick_size: Decimal) -> RoundConfig:
    """Decimal places for price, size and amount at a given tick size."""
    key = format(tick_size.normalize(), "f")
    config = ROUNDING_CONFIG.get(key)
    if config is not None:
        return config
    price_digits = max(0, -tick_size.normalize().as_tuple().exponent)
    return RoundConfig(price=price_digits, size=2, amount=price_digits + 2)


def round_down(value: Decimal, digits: int) -> Decimal:
    return value.quantize(Decimal(1).scaleb(-int(digits)), rounding=ROUND_DOWN)


def to_base_units(amount: Decimal) -> int:
    """Convert a decimal amount to 6-decimal integer base units, flooring."""
    return int((amount * _BASE_UNIT).to_integral_value(rounding=ROUND_DOWN))


def order_amounts(spec: OrderSpec) -> tuple[int, int]:
    """Maker and taker amounts for an order, in base units.

    BUY gives collateral (maker) for shares (taker); SELL gives shares for
    collateral. A market BUY is sized by the collateral to spend.
    """
    config = rounding_for_tick(spec.tick_size)
    price = round_down(spec.price, config.price)

    if spec.side == OrderSide.BUY:
        if spec.dollar_amount is not None:
            maker = round_down(spec.dollar_amount, config.size)
            taker = round_down(maker / price, config.amount)
        else:
            taker = round_down(spec.size, config.size)
            maker = round_down(taker * price, config.amount)
    else:
        maker = round_down(spec.size, config.size)
        taker = round_down(maker * price, config.amount)

    return to_base_units(maker), to_base_units(taker)


def generate_salt() -> int:
    return secrets.randbelow(MAX_SALT)


def build_order_message(
    spec: OrderSpec,
    maker: str,
    signer: str,
    signature_type: SignatureType,
    salt: int,
    nonce: int = 0,
) -> dict[str, Any]:
    """Order struct values in EIP-712 field order."""
    maker_amount, taker_amount = order_amounts(spec)
    return {
        "salt": salt,
        "maker": maker,
        "signer": signer,
        "taker": ZERO_ADDRESS,
        "tokenId": int(spec.token_id),
        "makerAmount": maker_amount,
        "takerAmount": taker_amount,
        "expiration": spec.expiration,
        "nonce": nonce,
        "feeRateBps": spec.fee_rate_bps,
        "side": side_to_int(spec.side),
        "signatureType": int(signature_type),
    }


def build_order_typed_data(
    message: dict[str, Any],
    chain_id: int,
    neg_risk: bool = False,
) -> dict[str, Any]:
    """Full EIP-712 document for an order, ready for the wallet to sign."""
    return {
        "types": {
            "EIP712Domain": EIP712_DOMAIN_FIELDS
            + [{"name": "verifyingContract", "type": "address"}],
            "Order": ORDER_FIELDS,
        },
        "primaryType": "Order",
        "domain": {
            "name": EXCHANGE_DOMAIN_NAME,
            "version": EXCHANGE_DOMAIN_VERSION,
            "chainId": chain_id,
            "verifyingContract": exchange_address(chain_id, neg_risk),
        },
        "message": message,
    }


def build_clob_auth_typed_data(
    address: str,
    timestamp: int,
    nonce: int,
    chain_id: int,
) -> dict[str, Any]:
    """Full EIP-712 document proving control of address to the CLOB."""
    return {
        "types": {
            "EIP712Domain": EIP712_DOMAIN_FIELDS,
            "ClobAuth": CLOB_AUTH_FIELDS,
        },
        "primaryType": "ClobAuth",
        "domain": {
            "name": CLOB_AUTH_DOMAIN_NAME,
            "version": CLOB_AUTH_VERSION,
            "chainId": chain_id,
        },
        "message": {
            "address": address,
            "timestamp": str(timestamp),
            "nonce": nonce,
            "message": CLOB_AUTH_MESSAGE,
        },
    }


def l1_headers(address: str, signature: str, timestamp: int, nonce: int) -> dict[str, str]:
    """Headers for credential derivation and creation."""
    return {
        POLY_ADDRESS: address,
        POLY_SIGNATURE: signature,
        POLY_TIMESTAMP: str(timestamp),
        POLY_NONCE: str(nonce),
    }


@dataclass(frozen=True)
class SignedOrder:
    """An order struct together with the wallet's signature over it."""

    message: dict[str, Any]
    signature: str

    def to_payload(self) -> dict[str, Any]:
        """CLOB wire representation of the signed order."""
        m = self.message
        return {
            "salt": m["salt"],
            "maker": m["maker"],
            "signer": m["signer"],
            "taker": m["taker"],
            "tokenId": str(m["tokenId"]),
            "makerAmount": str(m["makerAmount"]),
            "takerAmount": str(m["takerAmount"]),
            "expiration": str(m["expiration"]),
            "nonce": str(m["nonce"]),
            "feeRateBps": str(m["feeRateBps"]),
            "side": OrderSide.BUY.value if m["side"] == 0 else OrderSide.SELL.value,
            "signatureType": m["signatureType"],
            "signature": self.signature,
        }
