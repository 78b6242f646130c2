"""Data models for shellpop."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class StyledSpan:
    """A run of text with its resolved colors and font flags."""

    text: str
    foreground: str
    background: str
    bold: bool = False
    italic: bool = False
    underline: bool = False

    def as_tuple(self) -> tuple[str, str, str, bool, bool, bool]:
        return (self.text, self.foreground, self.background, self.bold, self.italic, self.underline)


class HistoryStatus(str, Enum):
    OK = "ok"
    EMPTY = "empty"
    NO_MORE_HISTORY = "no more history"
    NO_MATCH = "no match"
    INVALID_ARGUMENT = "invalid argument"


@dataclass(frozen=True)
class HistoryResult:
    """Outcome of a history navigation or lookup."""

    text: str = ""
    status: HistoryStatus = HistoryStatus.OK

    @property
    def ok(self) -> bool:
        return self.status is HistoryStatus.OK
