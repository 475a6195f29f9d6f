from __future__ import annotations

from collections import deque
from typing import Callable, Deque, Iterator, List, Optional

from .models import HistoryEntry, Status


class ClassificationHistory:
    """
    Rolling record of instantaneous classifications for one signal.

    Entries older than ``retention_ms`` relative to the newest timestamp are
    evicted on every append, so the deque stays bounded by the update cadence
    rather than by session length.
    """

    def __init__(self, retention_ms: float = 10000.0) -> None:
        if retention_ms <= 0:
            raise ValueError("retention_ms must be positive")
        self._retention_ms = float(retention_ms)
        self._entries: Deque[HistoryEntry] = deque()

    @property
    def retention_ms(self) -> float:
        return self._retention_ms

    def append(self, status: Status, timestamp_ms: float) -> HistoryEntry:
        """Record an entry and prune anything outside the retention window."""
        if self._entries and timestamp_ms < self._entries[-1].timestamp_ms:
            raise ValueError(
                f"timestamp {timestamp_ms} precedes last entry {self._entries[-1].timestamp_ms}"
            )
        entry = HistoryEntry(Status(status), float(timestamp_ms))
        self._entries.append(entry)
        self.prune(entry.timestamp_ms)
        return entry

    def prune(self, now_ms: float) -> int:
        """Drop entries with timestamp before ``now_ms - retention_ms``."""
        cutoff = now_ms - self._retention_ms
        dropped = 0
        while self._entries and self._entries[0].timestamp_ms < cutoff:
            self._entries.popleft()
            dropped += 1
        return dropped

    def most_recent(self, predicate: Callable[[HistoryEntry], bool]) -> Optional[HistoryEntry]:
        """Newest retained entry matching `predicate`, or None."""
        for entry in reversed(self._entries):
            if predicate(entry):
                return entry
        return None

    @property
    def oldest(self) -> Optional[HistoryEntry]:
        return self._entries[0] if self._entries else None

    @property
    def newest(self) -> Optional[HistoryEntry]:
        return self._entries[-1] if self._entries else None

    def entries(self) -> List[HistoryEntry]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __iter__(self) -> Iterator[HistoryEntry]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["ClassificationHistory"]
