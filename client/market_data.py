"""
Client Market Data Store

Presentation-side state fed by the ClientReconnector:
- the latest TickerSnapshot per symbol (replaced on every update)
- a bounded FIFO history of price points per symbol for charts

Nothing here is durable; a page reload starts empty.
"""

from collections import deque
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional, Union

from core.schemas import PricePoint, TickerPayload, TickerSnapshot
from core.transformer import snapshot_from_payload
from core.utils.time import to_epoch_ms, to_iso, utc_now


DEFAULT_HISTORY_SIZE = 100


class MarketDataStore:
    """
    Latest snapshot and recent price history per symbol.

    Attributes:
        history_size: Points kept per symbol; the oldest point is dropped first
    """

    def __init__(self, history_size: int = DEFAULT_HISTORY_SIZE) -> None:
        if history_size < 1:
            raise ValueError("history_size must be at least 1")
        self.history_size = history_size
        self._snapshots: Dict[str, TickerSnapshot] = {}
        self._history: Dict[str, Deque[PricePoint]] = {}

    def apply(
        self,
        payload: Union[TickerPayload, Dict[str, Any]],
        received_at: Optional[datetime] = None
    ) -> TickerSnapshot:
        """
        Record one priceUpdate payload.

        Args:
            payload: Wire payload ({"s": ..., "c": ..., ...}) or TickerPayload
            received_at: Receipt time (defaults to now, UTC)

        Returns:
            TickerSnapshot: The snapshot now stored for the symbol

        Raises:
            ValueError: If the payload is incomplete or the price is not numeric
        """
        received_at = received_at or utc_now()
        snapshot = snapshot_from_payload(payload, received_at)
        point = PricePoint(
            price=float(snapshot.last_price),
            timestamp=to_epoch_ms(received_at),
            time=to_iso(received_at),
        )

        self._snapshots[snapshot.symbol] = snapshot
        history = self._history.get(snapshot.symbol)
        if history is None:
            history = self._history[snapshot.symbol] = deque(maxlen=self.history_size)
        history.append(point)
        return snapshot

    def get(self, symbol: str) -> Optional[TickerSnapshot]:
        return self._snapshots.get(symbol.upper())

    def snapshots(self) -> Dict[str, TickerSnapshot]:
        return dict(self._snapshots)

    def history(self, symbol: str) -> List[PricePoint]:
        """Price points for symbol, oldest first."""
        return list(self._history.get(symbol.upper(), ()))

    def symbols(self) -> List[str]:
        return sorted(self._snapshots)
