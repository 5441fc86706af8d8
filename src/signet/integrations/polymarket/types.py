"""Wire types for the Polymarket CLOB API."""
from dataclasses import dataclass, field
from typing import Any, Optional

from py_clob_client.clob_types import ApiCreds

from signet.domain.market import OrderBook, OrderBookLevel, to_decimal


@dataclass(frozen=True)
class OrderResponse:
    """Body of a POST /order response.

    Attributes:
        success: Exchange accepted the order.
        error_msg: Exchange's reason when success is False.
        order_id: Exchange order id (order hash).
        order_hashes: Settlement transaction hashes for matched orders.
        status: Raw status string: matched, live, delayed or unmatched.
    """

    success: bool
    error_msg: str = ""
    order_id: str = ""
    order_hashes: tuple[str, ...] = field(default_factory=tuple)
    status: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OrderResponse":
        hashes = data.get("orderHashes") or data.get("transactionsHashes") or []
        order_id = data.get("orderID") or data.get("orderId") or ""
        return cls(
            success=bool(data.get("success", False)),
            error_msg=str(data.get("errorMsg") or data.get("error") or ""),
            order_id=str(order_id),
            order_hashes=tuple(str(h) for h in hashes),
            status=data.get("status") or None,
        )


def _parse_levels(raw: Any) -> list[OrderBookLevel]:
    levels = []
    for entry in raw or []:
        price = to_decimal(entry.get("price"))
        size = to_decimal(entry.get("size"))
        if price is None or size is None:
            continue
        levels.append(OrderBookLevel(price=price, size=size))
    return levels


def parse_order_book(token_id: str, data: dict[str, Any]) -> OrderBook:
    """Parse a GET /book response, sorting bids descending and asks ascending."""
    bids = sorted(_parse_levels(data.get("bids")), key=lambda level: level.price, reverse=True)
    asks = sorted(_parse_levels(data.get("asks")), key=lambda level: level.price)

    neg_risk = data.get("neg_risk")
    return OrderBook(
        token_id=str(data.get("asset_id") or token_id),
        bids=tuple(bids),
        asks=tuple(asks),
        last_trade_price=to_decimal(data.get("last_trade_price")),
        tick_size=to_decimal(data.get("tick_size")),
        min_order_size=to_decimal(data.get("min_order_size")),
        neg_risk=None if neg_risk is None else bool(neg_risk),
    )


def parse_api_creds(data: Any) -> Optional[ApiCreds]:
    """Parse an /auth response. Returns None unless key, secret and passphrase are all present."""
    if not isinstance(data, dict):
        return None
    api_key = str(data.get("apiKey") or data.get("key") or "").strip()
    secret = str(data.get("secret") or "").strip()
    passphrase = str(data.get("passphrase") or "").strip()
    if not (api_key and secret and passphrase):
        return None
    return ApiCreds(api_key=api_key, api_secret=secret, api_passphrase=passphrase)

