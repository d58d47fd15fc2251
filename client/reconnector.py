"""
Client Reconnector

Owns one subscriber's connection to the relay and recovers from drops with
exponential backoff.

State machine:

    CONNECTING --handshake ok--> CONNECTED --close/error--> DISCONNECTED
    CONNECTING --handshake failed---------------------------> DISCONNECTED
    DISCONNECTED --attempt < max--> (timer: base * 2**attempt) --> CONNECTING
    DISCONNECTED --attempt >= max--> GAVE_UP   (terminal until reconnect())

Reconnection Strategy (base_delay=1s, max_attempts=5):
    - Attempt 1: Wait 2 seconds
    - Attempt 2: Wait 4 seconds
    - Attempt 3: Wait 8 seconds
    - Attempt 4: Wait 16 seconds
    - Attempt 5: Wait 32 seconds
    - Then: GAVE_UP, consumer told to reload

The attempt counter resets to 0 on every successful handshake. A malformed
inbound message is logged and dropped; it never changes the state.

Exactly one pending reconnect timer and one connection task exist at a time.
close() and reconnect() cancel the pending timer so two attempts never race.

Usage:
    store = MarketDataStore()
    reconnector = ClientReconnector("ws://localhost:5000/ws", store,
                                    on_gave_up=lambda: print("Please reload"))
    reconnector.start()
    ...
    await reconnector.close()
"""

import asyncio
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

import websockets

from client.market_data import MarketDataStore
from core.logging import get_logger, log_websocket_event
from core.schemas import TickerSnapshot


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    GAVE_UP = "gave_up"


@dataclass
class ReconnectState:
    """Attempt counter bounded by max_attempts."""

    max_attempts: int = 5
    attempt: int = 0

    @property
    def exhausted(self) -> bool:
        return self.attempt >= self.max_attempts

    def reset(self) -> None:
        self.attempt = 0

    def next_attempt(self) -> int:
        """
        Count one more retry.

        Raises:
            RuntimeError: If the bound is already reached
        """
        if self.exhausted:
            raise RuntimeError(f"Reconnect attempts exhausted ({self.attempt}/{self.max_attempts})")
        self.attempt += 1
        return self.attempt


def backoff_delay(attempt: int, base_delay: float = 1.0, max_delay: Optional[float] = None) -> float:
    """
    Delay before retry number `attempt` (1-based).

    Examples:
        >>> [backoff_delay(n) for n in range(1, 6)]
        [2.0, 4.0, 8.0, 16.0, 32.0]
        >>> backoff_delay(5, max_delay=30)
        30.0
    """
    delay = float(base_delay * (2 ** attempt))
    if max_delay is not None:
        delay = min(delay, float(max_delay))
    return delay


Connection = Any  # async-iterable of text frames with an async close()
Connector = Callable[[str], Awaitable[Connection]]


async def open_websocket(url: str) -> Connection:
    """Default connector: a `websockets` client connection."""
    return await websockets.connect(url)


class ClientReconnector:
    """
    Subscriber-side connection with bounded exponential backoff.

    Args:
        url: Relay WebSocket URL
        store: Receives every valid priceUpdate payload
        connector: Coroutine opening a connection (defaults to websockets)
        base_delay: Backoff base in seconds
        max_delay: Cap for a single delay in seconds (None = uncapped)
        max_attempts: Retries before giving up
        on_status: Called with the new ConnectionState on every transition
        on_update: Called with each stored TickerSnapshot
        on_gave_up: Called once when automatic recovery stops
        on_reconnect_scheduled: Called with (attempt, delay) when a retry is scheduled
    """

    def __init__(
        self,
        url: str,
        store: Optional[MarketDataStore] = None,
        connector: Optional[Connector] = None,
        base_delay: float = 1.0,
        max_delay: Optional[float] = 60.0,
        max_attempts: int = 5,
        on_status: Optional[Callable[[ConnectionState], None]] = None,
        on_update: Optional[Callable[[TickerSnapshot], None]] = None,
        on_gave_up: Optional[Callable[[], None]] = None,
        on_reconnect_scheduled: Optional[Callable[[int, float], None]] = None,
    ) -> None:
        self.url = url
        self.store = store or MarketDataStore()
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.reconnect_state = ReconnectState(max_attempts=max_attempts)
        self.state = ConnectionState.CONNECTING

        self._connector = connector or open_websocket
        self._on_status = on_status
        self._on_update = on_update
        self._on_gave_up = on_gave_up
        self._on_reconnect_scheduled = on_reconnect_scheduled

        self._connection: Optional[Connection] = None
        self._connect_task: Optional[asyncio.Task] = None
        self._reconnect_timer: Optional[asyncio.TimerHandle] = None
        self._closed = False
        self._logger = get_logger(__name__)

    # ============================================
    # Public API
    # ============================================

    @property
    def attempt(self) -> int:
        return self.reconnect_state.attempt

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_timer is not None

    def start(self) -> None:
        """Begin connecting. Must be called from a running event loop."""
        self._closed = False
        self._spawn_connect()

    def reconnect(self, reset_attempts: bool = False) -> None:
        """
        Connect now, superseding any scheduled retry.

        Args:
            reset_attempts: Give the connection a fresh retry budget
                (e.g., after GAVE_UP)
        """
        self._closed = False
        self._cancel_timer()
        if reset_attempts:
            self.reconnect_state.reset()
        self._spawn_connect()

    async def close(self) -> None:
        """Tear down: cancel the pending timer and the connection task, close the socket."""
        self._closed = True
        self._cancel_timer()

        connection = self._connection
        task = self._connect_task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        self._connect_task = None

        if connection is not None:
            try:
                await connection.close()
            except Exception as e:
                self._logger.debug(f"Error closing client connection: {e}")
        self._connection = None

        if self.state != ConnectionState.GAVE_UP:
            self._set_state(ConnectionState.DISCONNECTED)

    # ============================================
    # Connection Lifecycle
    # ============================================

    def _spawn_connect(self) -> None:
        self._reconnect_timer = None
        if self._closed:
            return
        if self._connect_task is not None and not self._connect_task.done():
            self._logger.debug("Connect skipped: connection attempt already in progress")
            return
        self._connect_task = asyncio.get_running_loop().create_task(self._run_connection())

    def _cancel_timer(self) -> None:
        if self._reconnect_timer is not None:
            self._reconnect_timer.cancel()
            self._reconnect_timer = None

    async def _run_connection(self) -> None:
        self._set_state(ConnectionState.CONNECTING)
        try:
            connection = await self._connector(self.url)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log_websocket_event("client", "error", f"Failed to connect to {self.url}: {e}")
            self._handle_disconnect()
            return

        self._connection = connection
        self.reconnect_state.reset()
        self._set_state(ConnectionState.CONNECTED)
        log_websocket_event("client", "connected", self.url)

        try:
            async for raw in connection:
                self._handle_message(raw)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log_websocket_event("client", "error", str(e))
        finally:
            self._connection = None

        log_websocket_event("client", "disconnected", self.url)
        self._handle_disconnect()

    def _handle_disconnect(self) -> None:
        if self._closed:
            return
        self._set_state(ConnectionState.DISCONNECTED)

        if self.reconnect_state.exhausted:
            self._set_state(ConnectionState.GAVE_UP)
            log_websocket_event(
                "client", "gave_up",
                f"Connection lost after {self.reconnect_state.max_attempts} attempts. Please refresh to reconnect."
            )
            self._notify(self._on_gave_up)
            return

        attempt = self.reconnect_state.next_attempt()
        delay = backoff_delay(attempt, self.base_delay, self.max_delay)
        self._logger.info(
            f"Attempting to reconnect in {delay}s... ({attempt}/{self.reconnect_state.max_attempts})"
        )
        self._reconnect_timer = asyncio.get_running_loop().call_later(delay, self._spawn_connect)
        self._notify(self._on_reconnect_scheduled, attempt, delay)

    # ============================================
    # Messages
    # ============================================

    def _handle_message(self, raw: Union[str, bytes]) -> Optional[TickerSnapshot]:
        try:
            message = json.loads(raw)
        except (TypeError, ValueError) as e:
            self._logger.error(f"Error parsing WebSocket message: {e}")
            return None

        if not isinstance(message, dict) or message.get("type") != "priceUpdate":
            self._logger.debug("Ignoring non-priceUpdate message")
            return None

        data = message.get("data")
        if not isinstance(data, dict):
            self._logger.error("priceUpdate without a data object")
            return None

        try:
            snapshot = self.store.apply(data)
        except ValueError as e:
            self._logger.error(f"Invalid priceUpdate payload: {e}")
            return None

        self._notify(self._on_update, snapshot)
        return snapshot

    # ============================================
    # Consumer Notifications
    # ============================================

    def _set_state(self, state: ConnectionState) -> None:
        if state == self.state:
            return
        self.state = state
        self._notify(self._on_status, state)

    def _notify(self, callback: Optional[Callable[..., None]], *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            self._logger.error(f"Client callback {getattr(callback, '__name__', callback)} failed: {e}")
