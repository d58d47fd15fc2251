"""
Relay Server

Glue between the upstream feed and the subscribers:

    Binance -> BinanceTickerFeed -> transform_ticker -> TickerCache
                                                     -> SubscriberRegistry.broadcast -> subscribers

One RelayServer is built per process (in the FastAPI lifespan) and passed
explicitly to whatever needs it; nothing here is a module-level singleton.
"""

from typing import Any, Dict, Mapping, Optional

from fastapi import WebSocket, WebSocketDisconnect, status

from core.config import Settings
from core.logging import get_logger, log_websocket_event
from core.schemas import WireMessage
from core.transformer import TransformError, transform_ticker
from exchanges.binance.ws_client import BinanceTickerFeed
from services.subscriber_registry import SubscriberRegistry
from storage.ticker_cache import TickerCache


class WebSocketSubscriber:
    """
    Registry handle for one accepted WebSocket.

    Hashes by identity, so each connection is one registry member.
    """

    __slots__ = ("websocket", "label")

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket
        client = getattr(websocket, "client", None)
        self.label = f"{client.host}:{client.port}" if client else "unknown"

    async def send_text(self, data: str) -> None:
        await self.websocket.send_text(data)

    async def close(self) -> None:
        """Close the socket after being dropped from fan-out."""
        await self.websocket.close(code=status.WS_1013_TRY_AGAIN_LATER)

    def __repr__(self) -> str:
        return f"WebSocketSubscriber({self.label})"


class RelayServer:
    """
    Relays transformed upstream ticker events to every connected subscriber.

    Attributes:
        feed: The single upstream connection
        registry: Connected subscribers
        cache: Latest snapshot per symbol
        messages_relayed: Updates broadcast since startup
        messages_dropped: Upstream events rejected by the transformer
    """

    def __init__(
        self,
        feed: BinanceTickerFeed,
        registry: Optional[SubscriberRegistry] = None,
        cache: Optional[TickerCache] = None
    ) -> None:
        self.feed = feed
        self.registry = registry or SubscriberRegistry()
        self.cache = cache or TickerCache()
        self.messages_relayed = 0
        self.messages_dropped = 0
        self._logger = get_logger(__name__)

    @classmethod
    def from_settings(cls, config: Settings) -> "RelayServer":
        """Build a relay wired with the configured feed and fan-out settings."""
        feed = BinanceTickerFeed(
            config.symbols_list,
            base_url=config.binance_ws_url,
            reconnect_delay=config.upstream_reconnect_delay,
            heartbeat=config.upstream_heartbeat,
        )
        registry = SubscriberRegistry(send_timeout=config.broadcast_send_timeout)
        return cls(feed, registry, TickerCache())

    # ============================================
    # Lifecycle
    # ============================================

    async def start(self) -> None:
        await self.feed.start(self.handle_ticker)
        self._logger.info("Relay started")

    async def stop(self) -> None:
        await self.feed.stop()
        self._logger.info("Relay stopped")

    # ============================================
    # Upstream -> Subscribers
    # ============================================

    async def handle_ticker(self, event: Mapping[str, Any]) -> Optional[WireMessage]:
        """
        Transform one upstream event, record it, and broadcast it.

        Returns:
            The broadcast WireMessage, or None if the event was dropped
        """
        try:
            message = transform_ticker(event)
        except TransformError as e:
            self.messages_dropped += 1
            self._logger.error(f"Dropping upstream ticker: {e}")
            return None

        self.cache.update(message.data)
        await self.registry.broadcast(message)
        self.messages_relayed += 1
        return message

    # ============================================
    # Subscriber Connections
    # ============================================

    def connect_subscriber(self, subscriber) -> None:
        self.registry.register(subscriber)

    def disconnect_subscriber(self, subscriber) -> None:
        self.registry.unregister(subscriber)

    async def serve(self, websocket: WebSocket) -> None:
        """
        Handle one subscriber WebSocket for its whole lifetime.

        The subscriber is registered only after the handshake completes, so it
        never sees updates broadcast before it connected. Inbound frames are
        read and ignored; they only tell us when the peer goes away.
        """
        await websocket.accept()
        subscriber = WebSocketSubscriber(websocket)
        self.connect_subscriber(subscriber)
        log_websocket_event("subscriber", "connected", subscriber.label)

        try:
            while True:
                message = await websocket.receive()
                if message.get("type") == "websocket.disconnect":
                    break
        except WebSocketDisconnect:
            pass
        except Exception as e:
            log_websocket_event("subscriber", "error", f"{subscriber.label}: {e}")
        finally:
            self.disconnect_subscriber(subscriber)
            log_websocket_event("subscriber", "disconnected", subscriber.label)

    # ============================================
    # Introspection
    # ============================================

    def status(self) -> Dict[str, Any]:
        return {
            "upstream_running": self.feed.running,
            "upstream_connected": self.feed.connected,
            "upstream_connections": self.feed.connection_count,
            "subscribers": len(self.registry),
            "symbols_cached": len(self.cache),
            "messages_relayed": self.messages_relayed,
            "messages_dropped": self.messages_dropped,
        }
