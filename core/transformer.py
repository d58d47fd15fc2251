"""
Ticker Transformer

Maps one upstream Binance 24hrTicker event onto the relay's WireMessage.

Field mapping (upstream key -> wire key):
    s -> s   symbol with the USDT quote suffix stripped ("BTCUSDT" -> "BTC")
    c -> c   last price, re-rendered in shortest numeric form ("65000.00" -> "65000")
    P -> P   formatted to 2 decimals
    p -> p   formatted to 2 decimals
    v, h, l, o, n   passed through untouched

The 24h changes are always taken from the exchange. They are never recomputed
from open/last price, so every subscriber sees the same figures the exchange
publishes regardless of when it connected.

The functions here are pure: no I/O, no state.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Mapping, Union

from pydantic import ValidationError

from core.schemas import TickerPayload, TickerSnapshot, WireMessage


TICKER_EVENT = "24hrTicker"
QUOTE_ASSET = "USDT"

REQUIRED_FIELDS = ("s", "c", "P", "p", "v", "h", "l", "o", "n")

_TWO_PLACES = Decimal("0.01")


class TransformError(ValueError):
    """Raised when an upstream event cannot be mapped to a wire message."""


def is_ticker_event(event: Any) -> bool:
    """True if the decoded upstream message is a 24h ticker event."""
    return isinstance(event, dict) and event.get("e") == TICKER_EVENT


def strip_quote_asset(symbol: str) -> str:
    """
    Remove the quote asset suffix from a pair symbol.

    Examples:
        >>> strip_quote_asset("BTCUSDT")
        'BTC'
        >>> strip_quote_asset("BTC")
        'BTC'
    """
    symbol = symbol.upper()
    if symbol.endswith(QUOTE_ASSET) and len(symbol) > len(QUOTE_ASSET):
        return symbol[: -len(QUOTE_ASSET)]
    return symbol


def _to_decimal(field: str, value: Any) -> Decimal:
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise TransformError(f"Field '{field}' is not numeric: {value!r}") from e
    if not number.is_finite():
        raise TransformError(f"Field '{field}' is not finite: {value!r}")
    return number


def format_price(field: str, value: Any) -> str:
    """
    Render a price in its shortest plain form.

    Trailing zeros are dropped and no exponent notation is used:
    "65000.00" -> "65000", "0.24810000" -> "0.2481", "0.00001234" -> "0.00001234".
    """
    number = _to_decimal(field, value)
    if number == number.to_integral_value():
        return str(int(number))
    return format(number.normalize(), "f")


def format_change(field: str, value: Any) -> str:
    """Render a change value with exactly 2 decimals ("2.5" -> "2.50")."""
    return str(_to_decimal(field, value).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP))


def transform_ticker(event: Mapping[str, Any]) -> WireMessage:
    """
    Convert an upstream 24hrTicker event into a WireMessage.

    Args:
        event: Decoded upstream event (dict with Binance single-letter keys)

    Returns:
        WireMessage: Immutable priceUpdate envelope

    Raises:
        TransformError: If a required field is missing, a formatted field is not numeric,
            or a pass-through field is not a scalar

    Example:
        >>> msg = transform_ticker({"e": "24hrTicker", "s": "BTCUSDT", "c": "65000.00",
        ...                         "P": "120.50", "p": "2.50", "v": "1000", "h": "66000",
        ...                         "l": "64000", "o": "64880", "n": 500})
        >>> msg.data.symbol, msg.data.last_price, msg.data.price_change_percent
        ('BTC', '65000', '2.50')
    """
    if not isinstance(event, Mapping):
        raise TransformError(f"Expected an object, got {type(event).__name__}")

    missing = [field for field in REQUIRED_FIELDS if event.get(field) is None]
    if missing:
        raise TransformError(f"Missing upstream fields: {', '.join(missing)}")

    symbol = event["s"]
    if not isinstance(symbol, str) or not symbol:
        raise TransformError(f"Invalid symbol: {symbol!r}")

    try:
        payload = TickerPayload(
            symbol=strip_quote_asset(symbol),
            last_price=format_price("c", event["c"]),
            price_change=format_change("P", event["P"]),
            price_change_percent=format_change("p", event["p"]),
            volume=event["v"],
            high_price=event["h"],
            low_price=event["l"],
            open_price=event["o"],
            trade_count=event["n"],
        )
    except ValidationError as e:
        raise TransformError(f"Invalid pass-through field in {symbol} event: {e}") from e
    return WireMessage(data=payload)


def snapshot_from_payload(
    payload: Union[TickerPayload, Dict[str, Any]],
    received_at: datetime
) -> TickerSnapshot:
    """
    Build a TickerSnapshot from a wire payload.

    Args:
        payload: TickerPayload or its wire dict form ({"s": ..., "c": ...})
        received_at: Receipt time assigned by the storing side

    Raises:
        pydantic.ValidationError: If a wire dict is missing fields
    """
    if not isinstance(payload, TickerPayload):
        payload = TickerPayload.model_validate(payload)
    return TickerSnapshot(timestamp=received_at, **payload.model_dump())
