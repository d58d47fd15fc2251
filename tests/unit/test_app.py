"""
Unit Tests for the HTTP and WebSocket Surface

Uses FastAPI's TestClient with the upstream feed left stopped, so no network
access is needed. Updates are injected through RelayServer.handle_ticker.

Run with:
    pytest tests/unit/test_app.py -v
"""

import time

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from core.config import Settings
from exchanges.binance.ws_client import BinanceTickerFeed
from services.relay import RelayServer


def ticker_event(symbol="BTCUSDT", price="65000.00"):
    return {
        "e": "24hrTicker", "s": symbol, "c": price, "P": "120.50", "p": "2.50",
        "v": "1000", "h": "66000", "l": "64000", "o": "64880", "n": 500,
    }


def wait_for_subscribers(relay, count, timeout=2.0):
    deadline = time.monotonic() + timeout
    while len(relay.registry) != count:
        if time.monotonic() > deadline:
            raise AssertionError(f"Expected {count} subscribers, have {len(relay.registry)}")
        time.sleep(0.01)


@pytest.fixture
def relay():
    return RelayServer(BinanceTickerFeed(["BTCUSDT", "ETHUSDT"]))


@pytest.fixture
def client(relay):
    app = create_app(Settings(_env_file=None), relay=relay, start_upstream=False)
    with TestClient(app) as test_client:
        yield test_client


# ============================================
# Tests for REST Endpoints
# ============================================

class TestRestEndpoints:
    """Tests for health, status and ticker snapshots"""

    def test_health(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "OK"
        assert body["message"] == "CryptoPulse API is running"
        assert body["timestamp"].endswith("Z")

    def test_status(self, client):
        body = client.get("/api/status").json()

        assert body["subscribers"] == 0
        assert body["upstream_running"] is False

    def test_tickers_empty_before_updates(self, client):
        assert client.get("/api/tickers").json() == []

    def test_tickers_after_update(self, client, relay):
        client.portal.call(relay.handle_ticker, ticker_event("ETHUSDT", "3500.00"))
        client.portal.call(relay.handle_ticker, ticker_event("BTCUSDT"))

        tickers = client.get("/api/tickers").json()

        assert [t["symbol"] for t in tickers] == ["BTC", "ETH"]
        assert tickers[0]["last_price"] == "65000"

    def test_single_ticker(self, client, relay):
        client.portal.call(relay.handle_ticker, ticker_event())

        assert client.get("/api/tickers/btc").json()["symbol"] == "BTC"
        assert client.get("/api/tickers/DOGE").status_code == 404


# ============================================
# Tests for the WebSocket Stream
# ============================================

class TestWebSocketStream:
    """Tests for subscriber registration and broadcast"""

    @pytest.mark.parametrize("path", ["/", "/ws"])
    def test_subscriber_receives_price_update(self, client, relay, path):
        with client.websocket_connect(path) as ws:
            wait_for_subscribers(relay, 1)
            client.portal.call(relay.handle_ticker, ticker_event())

            message = ws.receive_json()

        assert message == {
            "type": "priceUpdate",
            "data": {"s": "BTC", "c": "65000", "P": "120.50", "p": "2.50",
                     "v": "1000", "h": "66000", "l": "64000", "o": "64880", "n": 500},
        }

    def test_every_subscriber_gets_update(self, client, relay):
        with client.websocket_connect("/ws") as first, client.websocket_connect("/ws") as second:
            wait_for_subscribers(relay, 2)
            client.portal.call(relay.handle_ticker, ticker_event())

            assert first.receive_json()["data"]["s"] == "BTC"
            assert second.receive_json()["data"]["s"] == "BTC"

    def test_disconnect_unregisters(self, client, relay):
        with client.websocket_connect("/ws"):
            wait_for_subscribers(relay, 1)

        wait_for_subscribers(relay, 0)

    def test_inbound_text_ignored(self, client, relay):
        with client.websocket_connect("/ws") as ws:
            wait_for_subscribers(relay, 1)
            ws.send_text("hello relay")
            client.portal.call(relay.handle_ticker, ticker_event())

            assert ws.receive_json()["type"] == "priceUpdate"


# ============================================
# Tests for the Production Bundle
# ============================================

class TestPresentationBundle:
    """Tests for static file serving in production"""

    @pytest.fixture
    def production_client(self, tmp_path, relay):
        (tmp_path / "index.html").write_text("<html>CryptoPulse</html>")
        (tmp_path / "assets").mkdir()
        (tmp_path / "assets" / "app.js").write_text("console.log('ok')")
        config = Settings(_env_file=None, environment="production", static_dir=str(tmp_path))
        app = create_app(config, relay=relay, start_upstream=False)
        with TestClient(app) as test_client:
            yield test_client

    def test_serves_asset(self, production_client):
        response = production_client.get("/assets/app.js")

        assert response.status_code == 200
        assert "console.log" in response.text

    def test_unknown_path_falls_back_to_index(self, production_client):
        response = production_client.get("/markets/btc")

        assert response.status_code == 200
        assert "CryptoPulse" in response.text

    def test_api_routes_take_precedence(self, production_client):
        assert production_client.get("/api/health").json()["status"] == "OK"

    def test_development_does_not_serve_bundle(self, tmp_path, relay):
        (tmp_path / "index.html").write_text("<html></html>")
        config = Settings(_env_file=None, environment="development", static_dir=str(tmp_path))

        with TestClient(create_app(config, relay=relay, start_upstream=False)) as test_client:
            assert test_client.get("/index.html").status_code == 404
