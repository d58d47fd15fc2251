"""
Storage Package

Handles in-memory state kept by the relay.

Current implementation:
- TickerCache: latest market data snapshot per symbol (last-write-wins)

Nothing is persisted durably; the relay rebuilds its cache from whatever the
upstream feed sends after (re)connecting.
"""

from storage.ticker_cache import TickerCache

__all__ = ["TickerCache"]
