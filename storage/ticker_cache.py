"""
In-Memory Ticker Cache

Holds the latest TickerSnapshot per symbol on the relay side.

Rules:
    - One entry per symbol, replaced wholesale on every update (last-write-wins)
    - Entries are never removed for the lifetime of the process
    - Only touched from the event loop that owns the relay, so no locking
"""

from datetime import datetime
from typing import Dict, List, Optional

from core.schemas import TickerPayload, TickerSnapshot
from core.transformer import snapshot_from_payload
from core.utils.time import utc_now


class TickerCache:
    """Latest snapshot per symbol."""

    def __init__(self) -> None:
        self._snapshots: Dict[str, TickerSnapshot] = {}

    def update(self, payload: TickerPayload, received_at: Optional[datetime] = None) -> TickerSnapshot:
        """
        Store the snapshot for payload.symbol, replacing any previous one.

        Args:
            payload: Wire payload produced by the transformer
            received_at: Receipt time (defaults to now, UTC)

        Returns:
            TickerSnapshot: The snapshot now stored for the symbol
        """
        snapshot = snapshot_from_payload(payload, received_at or utc_now())
        self._snapshots[snapshot.symbol] = snapshot
        return snapshot

    def get(self, symbol: str) -> Optional[TickerSnapshot]:
        return self._snapshots.get(symbol.upper())

    def all(self) -> List[TickerSnapshot]:
        """All snapshots, ordered by symbol."""
        return [self._snapshots[s] for s in sorted(self._snapshots)]

    def __len__(self) -> int:
        return len(self._snapshots)

    def __contains__(self, symbol: str) -> bool:
        return symbol.upper() in self._snapshots
