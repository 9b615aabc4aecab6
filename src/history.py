# history.py
# Bounded history of pre-move states used by the undo mechanism.

from collections import deque
from dataclasses import dataclass
from typing import Deque, Iterator, List, Optional, Tuple

from core import Grid

FrozenGrid = Tuple[Tuple[int, ...], ...]


@dataclass(frozen=True)
class HistoryEntry:
    """An immutable copy of the state captured right before a move is applied."""
    grid: FrozenGrid
    score: int
    undo_used: int

    @classmethod
    def capture(cls, grid: Grid, score: int, undo_used: int) -> "HistoryEntry":
        return cls(grid=tuple(tuple(row) for row in grid), score=score, undo_used=undo_used)

    def grid_copy(self) -> Grid:
        """Returns a fresh mutable copy of the stored grid."""
        return [list(row) for row in self.grid]


class UndoStack:
    """
    Holds the most recent `limit` history entries.

    Once more than `limit` entries are pushed the oldest one is evicted. The
    retention bound only caps memory; how many undos a player may spend is
    decided by the session, not here.
    """

    def __init__(self, limit: int = 20):
        if not isinstance(limit, int) or limit <= 0:
            raise ValueError("History limit must be a positive integer.")
        self._entries: Deque[HistoryEntry] = deque(maxlen=limit)

    @property
    def limit(self) -> int:
        return self._entries.maxlen

    def push(self, entry: HistoryEntry) -> None:
        self._entries.append(entry)

    def pop(self) -> Optional[HistoryEntry]:
        """Removes and returns the newest entry, or None when the stack is empty."""
        if not self._entries:
            return None
        return self._entries.pop()

    def peek(self) -> Optional[HistoryEntry]:
        return self._entries[-1] if self._entries else None

    def tail(self, count: int) -> List[HistoryEntry]:
        """
        Returns up to `count` of the newest entries, oldest first.
        """
        if count <= 0:
            return []
        return list(self._entries)[-count:]

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[HistoryEntry]:
        return iter(self._entries)
