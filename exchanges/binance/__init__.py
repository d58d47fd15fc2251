"""
Binance Exchange Connector

Upstream source for the relay: Binance spot 24h ticker streams.

Modules:
    - ws_client: BinanceTickerFeed, the single upstream WebSocket connection
"""

from exchanges.binance.ws_client import BinanceTickerFeed

__all__ = ["BinanceTickerFeed"]
