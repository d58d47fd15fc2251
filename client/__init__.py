"""
Client Package

Subscriber-side building blocks used by consumers of the relay:
- ClientReconnector: connection to the relay with exponential backoff
- MarketDataStore: latest snapshot and bounded price history per symbol
- FavoritesStore / ThemeStore: local preferences persisted to a JSON file
"""

from client.market_data import MarketDataStore
from client.preferences import FavoritesStore, JsonFileStorage, ThemeStore
from client.reconnector import ClientReconnector, ConnectionState, ReconnectState, backoff_delay

__all__ = [
    "ClientReconnector",
    "ConnectionState",
    "FavoritesStore",
    "JsonFileStorage",
    "MarketDataStore",
    "ReconnectState",
    "ThemeStore",
    "backoff_delay",
]
