# Polymarket CLOB integration
# HTTP client, EIP-712 payloads and wire types

from signet.integrations.polymarket.clob import CLOBClient
from signet.integrations.polymarket.signing import (
    SignatureType,
    SignedOrder,
    build_clob_auth_typed_data,
    build_order_message,
    build_order_typed_data,
    exchange_address,
    order_amounts,
)
from signet.integrations.polymarket.types import OrderResponse, parse_api_creds, parse_order_book

__all__ = [
    "CLOBClient",
    "OrderResponse",
    "SignatureType",
    "SignedOrder",
    "build_clob_auth_typed_data",
    "build_order_message",
    "build_order_typed_data",
    "exchange_address",
    "order_amounts",
    "parse_api_creds",
    "parse_order_book",
]
