"""Bounded command history with cursor navigation and prefix lookup."""

from __future__ import annotations

import logging
from pathlib import Path

from shellpop.models import HistoryResult, HistoryStatus

logger = logging.getLogger(__name__)

NOT_BROWSING = -1


class HistoryRing:
    """Fixed-capacity circular log of past commands.

    Entries live in a fixed-size list; ``head`` is the next slot to write and
    ``tail`` the oldest live slot. The navigation cursor counts steps back from
    the most recent entry (0 is the newest) and is mapped onto physical slots
    on every call, so evictions never leave it pointing at a stale slot.
    """

    def __init__(self, size: int, path: str | Path | None = None, encoding: str = "utf-8") -> None:
        if size < 1:
            raise ValueError(f"History size must be positive, got {size}")
        self.size = size
        self.path = Path(path).expanduser() if path else None
        self.encoding = encoding
        self._slots: list[str] = [""] * size
        self._head = 0
        self._tail = 0
        self._count = 0
        self._cursor = NOT_BROWSING

        if self.path is not None and self.path.is_file():
            self._load(self.path)

    def __len__(self) -> int:
        return self._count

    @property
    def cursor(self) -> int:
        return self._cursor

    def _slot(self, distance: int) -> int:
        """Physical index of the entry ``distance`` steps back from the newest."""
        return (self._head - 1 - distance) % self.size

    def _load(self, path: Path) -> None:
        with open(path, encoding=self.encoding, errors="replace") as f:
            for line in f:
                self.add(line.rstrip("\r\n"))
        logger.debug("Loaded %d history entries from %s", self._count, path)

    def add(self, command: str) -> None:
        """Append a command, evicting the oldest entry when full."""
        if not command:
            return
        if self._count and self._slots[self._slot(0)] == command:
            return

        if self._count == self.size:
            self._tail = (self._tail + 1) % self.size
        else:
            self._count += 1

        self._slots[self._head] = command
        self._head = (self._head + 1) % self.size

    def entries(self) -> list[str]:
        """Live entries, oldest first."""
        return [self._slots[(self._tail + i) % self.size] for i in range(self._count)]

    def prev(self) -> HistoryResult:
        """Step toward older entries."""
        if self._count == 0:
            return HistoryResult(status=HistoryStatus.EMPTY)

        if self._cursor == NOT_BROWSING:
            self._cursor = 0
        elif self._cursor >= self._count - 1:
            self._cursor = self._count - 1
            return HistoryResult(status=HistoryStatus.NO_MORE_HISTORY)
        else:
            self._cursor += 1

        return HistoryResult(self._slots[self._slot(self._cursor)])

    def next(self) -> HistoryResult:
        """Step toward newer entries. Walking past the newest yields ``""``."""
        if self._cursor == NOT_BROWSING:
            return HistoryResult(status=HistoryStatus.NO_MORE_HISTORY)

        cursor = min(self._cursor, self._count - 1)
        if cursor <= 0:
            self._cursor = NOT_BROWSING
            return HistoryResult("")

        self._cursor = cursor - 1
        return HistoryResult(self._slots[self._slot(self._cursor)])

    def reset_pos(self) -> None:
        self._cursor = NOT_BROWSING

    def last_match(self, prefix: str) -> HistoryResult:
        """Most recent entry starting with ``prefix``."""
        if not prefix:
            return HistoryResult(status=HistoryStatus.INVALID_ARGUMENT)
        if self._count == 0:
            return HistoryResult(status=HistoryStatus.EMPTY)

        for distance in range(self._count):
            entry = self._slots[self._slot(distance)]
            if entry.startswith(prefix):
                return HistoryResult(entry)

        return HistoryResult(status=HistoryStatus.NO_MATCH)

    def close(self) -> None:
        """Write live entries to the backing file, oldest first."""
        if self._count == 0 or self.path is None:
            return

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding=self.encoding, errors="replace", newline="\n") as f:
            for entry in self.entries():
                f.write(entry + "\n")
        logger.debug("Saved %d history entries to %s", self._count, self.path)

    flush = close
