"""
Subscriber Registry

Tracks the downstream connections currently attached to the relay and fans
price updates out to them.

- Membership only: a set of handles, no ordering, no duplicates.
- Mutated only by register/unregister (connect/disconnect events and failed sends).
- broadcast() iterates a copy of the membership, so an unregister that happens
  while a broadcast is in flight never disturbs the iteration.
- Sends run concurrently and each one is bounded by its own timeout, so one slow
  or dead subscriber cannot stall delivery to the others.
- A subscriber dropped after a failed send is also closed (if it has an async
  close()), so its peer notices and reconnects instead of idling unserved.
"""

import asyncio
import json
from typing import Any, Dict, List, Protocol, Set, Union

from core.logging import get_logger
from core.schemas import WireMessage


class Subscriber(Protocol):
    """Anything that can receive a text frame (e.g., fastapi.WebSocket)."""

    async def send_text(self, data: str) -> None:
        ...


Message = Union[WireMessage, Dict[str, Any], str]


class SubscriberRegistry:
    """
    Set of connected subscribers with best-effort fan-out.

    Example:
        >>> registry = SubscriberRegistry(send_timeout=5.0)
        >>> registry.register(websocket)
        >>> delivered = await registry.broadcast(wire_message)
    """

    def __init__(self, send_timeout: float = 5.0) -> None:
        self._subscribers: Set[Subscriber] = set()
        self._send_timeout = send_timeout
        self._logger = get_logger(__name__)

    def register(self, subscriber: Subscriber) -> None:
        """Add a subscriber. Registering the same handle twice is a no-op."""
        if subscriber in self._subscribers:
            return
        self._subscribers.add(subscriber)
        self._logger.info(f"Subscriber registered. total={len(self._subscribers)}")

    def unregister(self, subscriber: Subscriber) -> None:
        """Remove a subscriber. Unknown handles are ignored."""
        if subscriber not in self._subscribers:
            return
        self._subscribers.discard(subscriber)
        self._logger.info(f"Subscriber unregistered. total={len(self._subscribers)}")

    def snapshot(self) -> List[Subscriber]:
        """Copy of the current membership."""
        return list(self._subscribers)

    def __len__(self) -> int:
        return len(self._subscribers)

    def __contains__(self, subscriber: object) -> bool:
        return subscriber in self._subscribers

    async def broadcast(self, message: Message) -> int:
        """
        Send a message to every registered subscriber.

        The message is serialized once. A subscriber whose send raises or
        exceeds the send timeout is unregistered and closed; the others are
        unaffected.

        Args:
            message: WireMessage, JSON-serializable dict, or pre-serialized text

        Returns:
            int: Number of subscribers that received the message
        """
        subscribers = self.snapshot()
        if not subscribers:
            return 0

        if isinstance(message, WireMessage):
            payload = message.to_json()
        elif isinstance(message, str):
            payload = message
        else:
            payload = json.dumps(message)

        results = await asyncio.gather(*(self._send(s, payload) for s in subscribers))
        return sum(1 for ok in results if ok)

    async def _send(self, subscriber: Subscriber, payload: str) -> bool:
        try:
            await asyncio.wait_for(subscriber.send_text(payload), timeout=self._send_timeout)
            return True
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError:
            self._logger.warning(f"Subscriber send timed out after {self._send_timeout}s, removing")
        except Exception as e:
            self._logger.warning(f"Subscriber send failed ({e!r}), removing")
        self.unregister(subscriber)
        await self._close(subscriber)
        return False

    async def _close(self, subscriber: Subscriber) -> None:
        # Best effort; the peer sees the close and runs its own reconnect.
        close = getattr(subscriber, "close", None)
        if close is None:
            return
        try:
            await asyncio.wait_for(close(), timeout=self._send_timeout)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._logger.debug(f"Error closing dropped subscriber: {e!r}")
