"""
Unit Tests for the Client Market Data Store and Relay Ticker Cache

Run with:
    pytest tests/unit/test_market_data.py -v
"""

from datetime import datetime, timedelta, timezone

import pytest

from client.market_data import MarketDataStore
from core.transformer import transform_ticker
from storage.ticker_cache import TickerCache


def payload(symbol="BTC", price="65000"):
    return {"s": symbol, "c": price, "P": "120.50", "p": "2.50",
            "v": "1000", "h": "66000", "l": "64000", "o": "64880", "n": 500}


START = datetime(2024, 1, 1, tzinfo=timezone.utc)


# ============================================
# Tests for MarketDataStore
# ============================================

class TestMarketDataStore:
    """Tests for snapshots and bounded history"""

    def test_apply_stores_snapshot(self):
        store = MarketDataStore()

        snapshot = store.apply(payload(), received_at=START)

        assert store.get("BTC") == snapshot
        assert store.get("btc") == snapshot
        assert snapshot.timestamp == START

    def test_latest_snapshot_replaces_previous(self):
        store = MarketDataStore()
        store.apply(payload(price="1"), received_at=START)
        store.apply(payload(price="2"), received_at=START + timedelta(seconds=1))

        assert store.get("BTC").last_price == "2"
        assert store.symbols() == ["BTC"]

    def test_history_keeps_last_n_points(self):
        """Verify 101 updates leave exactly the last 100, oldest first"""
        store = MarketDataStore(history_size=100)
        for i in range(101):
            store.apply(payload(price=str(i)), received_at=START + timedelta(seconds=i))

        history = store.history("BTC")

        assert len(history) == 100
        assert history[0].price == 1.0
        assert history[-1].price == 100.0
        assert [p.price for p in history] == [float(i) for i in range(1, 101)]

    def test_history_point_fields(self):
        store = MarketDataStore()
        store.apply(payload(price="0.2481"), received_at=START)

        point = store.history("BTC")[0]

        assert point.price == pytest.approx(0.2481)
        assert point.timestamp == 1704067200000
        assert point.time.startswith("2024-01-01T00:00:00")

    def test_history_per_symbol(self):
        store = MarketDataStore(history_size=2)
        for i in range(3):
            store.apply(payload("BTC", str(i)))
        store.apply(payload("ETH", "3500"))

        assert len(store.history("BTC")) == 2
        assert len(store.history("ETH")) == 1
        assert store.history("SOL") == []

    def test_invalid_payload_leaves_store_unchanged(self):
        store = MarketDataStore()

        with pytest.raises(ValueError):
            store.apply({"s": "BTC"})
        with pytest.raises(ValueError):
            store.apply(payload(price="abc"))

        assert store.symbols() == []
        assert store.history("BTC") == []

    def test_history_size_must_be_positive(self):
        with pytest.raises(ValueError):
            MarketDataStore(history_size=0)

    def test_snapshots_is_a_copy(self):
        store = MarketDataStore()
        store.apply(payload())

        snapshots = store.snapshots()
        snapshots.clear()

        assert store.get("BTC") is not None


# ============================================
# Tests for TickerCache
# ============================================

class TestTickerCache:
    """Tests for the relay-side last-write-wins cache"""

    def test_update_and_get(self):
        cache = TickerCache()
        message = transform_ticker({
            "e": "24hrTicker", "s": "ETHUSDT", "c": "3500.10", "P": "-10", "p": "-0.285",
            "v": "20", "h": "3600", "l": "3400", "o": "3510", "n": 42,
        })

        cache.update(message.data, received_at=START)

        snapshot = cache.get("ETH")
        assert snapshot.last_price == "3500.1"
        assert snapshot.price_change == "-10.00"
        assert snapshot.price_change_percent == "-0.29"
        assert "eth" in cache

    def test_all_sorted_by_symbol(self):
        cache = TickerCache()
        for symbol in ("SOL", "BTC", "ETH"):
            cache.update(payload(symbol))

        assert [s.symbol for s in cache.all()] == ["BTC", "ETH", "SOL"]
        assert len(cache) == 3

    def test_missing_symbol(self):
        assert TickerCache().get("BTC") is None
