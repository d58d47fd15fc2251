"""
Binance Ticker Feed

This module owns the relay's single upstream connection to the Binance spot
stream. It handles:
- One combined connection for every configured symbol's 24h ticker stream
- A single SUBSCRIBE request per successful connect
- Message parsing (malformed frames are logged and dropped)
- Fixed-delay reconnection on close or error
- Graceful shutdown (pending reconnect sleeps are cancelled)

Stream:
    24hr Ticker: {symbol}@ticker  (event type "24hrTicker")

WebSocket Documentation:
    https://developers.binance.com/docs/binance-spot-api-docs/web-socket-streams

Usage:
    feed = BinanceTickerFeed(["BTCUSDT", "ETHUSDT"])
    await feed.start(handle_ticker)   # handle_ticker(event) is awaited per 24hrTicker event
    ...
    await feed.stop()
"""

import aiohttp
import asyncio
import json
from typing import Any, AsyncGenerator, Awaitable, Callable, Dict, List, Optional, Sequence

from core.logging import get_logger, log_websocket_event
from core.transformer import is_ticker_event


TickerHandler = Callable[[Dict[str, Any]], Awaitable[None]]


class BinanceTickerFeed:
    """
    Upstream client for Binance 24h ticker streams.

    Exactly one connection exists at a time: connect() is a no-op while a
    connection is pending or open, and start() is a no-op while the
    listener task is running.

    Attributes:
        BASE_URL: Binance spot raw-stream base URL
        symbols: Uppercase trading pairs (e.g., ["BTCUSDT", "ETHUSDT"])
        streams: Stream names (e.g., ["btcusdt@ticker", "ethusdt@ticker"])
        subscription_request: SUBSCRIBE payload sent once per connection
        url: Combined stream URL
        reconnect_delay: Constant wait before reconnecting (seconds)
        session: aiohttp ClientSession for WebSocket
        ws: Active WebSocket connection
        connection_count: Successful connects since construction

    Example:
        >>> async with BinanceTickerFeed(["BTCUSDT"]) as feed:
        ...     async for event in feed.listen():
        ...         print(event["s"], event["c"])
    """

    BASE_URL = "wss://stream.binance.com:9443/ws"
    SUBSCRIBE_ID = 1

    def __init__(
        self,
        symbols: Sequence[str],
        base_url: Optional[str] = None,
        reconnect_delay: float = 5.0,
        heartbeat: float = 30.0,
        connect_timeout: float = 10.0
    ):
        """
        Initialize the feed.

        Args:
            symbols: Trading pairs to subscribe to (e.g., ["BTCUSDT"])
            base_url: Override for BASE_URL
            reconnect_delay: Fixed seconds to wait between reconnects (default: 5)
            heartbeat: Ping interval for the socket (default: 30)
            connect_timeout: Bound on the WebSocket handshake (default: 10)

        Raises:
            ValueError: If no symbols are given
        """
        if not symbols:
            raise ValueError("BinanceTickerFeed needs at least one symbol")

        self.symbols: List[str] = [s.upper() for s in symbols]
        self.streams: List[str] = [f"{s.lower()}@ticker" for s in self.symbols]
        self.subscription_request: Dict[str, Any] = {
            "method": "SUBSCRIBE",
            "params": list(self.streams),
            "id": self.SUBSCRIBE_ID,
        }
        self.url = f"{(base_url or self.BASE_URL).rstrip('/')}/{'/'.join(self.streams)}"
        self.reconnect_delay = reconnect_delay
        self.heartbeat = heartbeat
        self.connect_timeout = connect_timeout

        # Connection state
        self.session: Optional[aiohttp.ClientSession] = None
        self.ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self.connection_count = 0
        self._is_running = False
        self._connecting = False
        self._task: Optional[asyncio.Task] = None

        self.logger = get_logger(__name__)

    # ============================================
    # Context Manager for Session Management
    # ============================================

    async def __aenter__(self):
        self.session = aiohttp.ClientSession()
        self._is_running = True
        self.logger.debug(f"BinanceTickerFeed session created for {len(self.streams)} streams")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self._is_running = False
        await self.close()
        self.logger.debug("BinanceTickerFeed session closed")

    # ============================================
    # Connection Management
    # ============================================

    @property
    def connected(self) -> bool:
        return self.ws is not None and not self.ws.closed

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def connect(self) -> bool:
        """
        Open the upstream connection and send the subscribe request.

        Returns:
            bool: True if a new connection was opened, False if one was
                already pending or open

        Raises:
            RuntimeError: If session not initialized
            aiohttp.ClientError: If connection fails
        """
        if not self.session:
            raise RuntimeError("Client session not initialized. Use 'async with' or start().")

        if self._connecting or self.connected:
            self.logger.debug("Connect skipped: upstream connection already pending or open")
            return False

        self._connecting = True
        try:
            self.logger.info(f"Connecting to {self.url}")
            self.ws = await self.session.ws_connect(
                self.url,
                heartbeat=self.heartbeat,
                timeout=aiohttp.ClientTimeout(total=self.connect_timeout)
            )
            await self.ws.send_json(self.subscription_request)
            self.connection_count += 1
            log_websocket_event("upstream", "connected", f"{len(self.streams)} ticker streams")
            return True

        except Exception as e:
            self.logger.error(f"Failed to connect to {self.url}: {e}")
            await self._close_socket()
            raise

        finally:
            self._connecting = False

    async def _close_socket(self) -> None:
        ws, self.ws = self.ws, None
        if ws is not None and not ws.closed:
            await ws.close()
            self.logger.debug("Upstream WebSocket closed")

    async def close(self) -> None:
        """
        Close WebSocket connection and session gracefully.

        Safe to call multiple times.
        """
        await self._close_socket()

        if self.session and not self.session.closed:
            await self.session.close()
            self.logger.debug("Upstream session closed")
        self.session = None

    # ============================================
    # Message Streaming with Fixed-Delay Reconnect
    # ============================================

    async def listen(self) -> AsyncGenerator[Dict[str, Any], None]:
        """
        Yield 24hrTicker events, reconnecting after a fixed delay on failure.

        Other frames (subscribe acknowledgements, unknown events) are skipped.
        Malformed JSON is logged and skipped without touching the connection.

        Yields:
            Dict[str, Any]: Decoded 24hrTicker event
        """
        while self._is_running:
            try:
                if not self.connected:
                    await self.connect()

                async for msg in self.ws:
                    if msg.type == aiohttp.WSMsgType.TEXT:
                        try:
                            data = json.loads(msg.data)
                        except json.JSONDecodeError as e:
                            self.logger.error(f"Error parsing Binance data: {msg.data[:100]}... Error: {e}")
                            continue

                        if is_ticker_event(data):
                            yield data
                        elif isinstance(data, dict) and data.get("id") == self.SUBSCRIBE_ID:
                            self.logger.debug(f"Subscribe acknowledged: {data}")
                        else:
                            self.logger.debug("Ignoring non-ticker upstream frame")

                    elif msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSED):
                        self.logger.warning(f"Upstream WebSocket closed: {msg.data}")
                        break

                    elif msg.type == aiohttp.WSMsgType.ERROR:
                        log_websocket_event("upstream", "error", str(msg.data))
                        break

                    else:
                        self.logger.debug(f"Received message type: {msg.type}")

            except asyncio.CancelledError:
                self.logger.info("Upstream listener cancelled")
                break

            except Exception as e:
                log_websocket_event("upstream", "error", str(e))

            if self._is_running:
                await self._close_socket()
                self.logger.warning(f"Binance WebSocket closed, reconnecting in {self.reconnect_delay}s...")
                await asyncio.sleep(self.reconnect_delay)

        self.logger.info("Upstream listener stopped")

    async def run(self, handler: TickerHandler) -> None:
        """
        Feed every ticker event to handler until stopped.

        A failing handler is logged; it never ends the loop.
        """
        async for event in self.listen():
            try:
                await handler(event)
            except Exception as e:
                self.logger.error(f"Ticker handler failed for {event.get('s')}: {e}")

    # ============================================
    # Background Lifecycle
    # ============================================

    async def start(self, handler: TickerHandler) -> None:
        """Start the background listener task (no-op if already running)."""
        if self.running:
            self.logger.debug("Upstream feed already running")
            return
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession()
        self._is_running = True
        self._task = asyncio.create_task(self.run(handler), name="upstream_ticker_feed")
        self.logger.info(f"Upstream feed started for {', '.join(self.symbols)}")

    async def stop(self) -> None:
        """Stop the listener, cancelling any pending reconnect delay, and close."""
        self._is_running = False
        if self._task is not None:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None
        await self.close()
        self.logger.info("Upstream feed stopped")
