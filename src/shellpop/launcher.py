"""Launcher: wires history, the shell channel and the SGR parser together.

This is the non-visual half of the input box. A front end feeds it the text
the user typed and key presses; it hands back styled lines to draw.
"""

from __future__ import annotations

import logging
from typing import AsyncIterator

from shellpop.config import AppConfig
from shellpop.errors import Busy
from shellpop.history import HistoryRing
from shellpop.models import HistoryResult, StyledSpan
from shellpop.services.channel import CommandChannel
from shellpop.sgr import DEFAULT_PALETTE, Palette, parse_line

logger = logging.getLogger(__name__)

EXIT_WORD = "exit"
INTERRUPT_WORD = "term"
REFRESH_INTERVAL = 1.0


def split_arguments(text: str) -> list[str]:
    """Split on whitespace, keeping ``'...'`` runs as one argument."""
    args: list[str] = []
    i, n = 0, len(text)
    while i < n:
        if text[i].isspace():
            i += 1
            continue
        start = i
        if text[i] == "'" and "'" in text[i + 1 :]:
            i = text.index("'", i + 1) + 1
        else:
            while i < n and not text[i].isspace():
                i += 1
        args.append(text[start:i])
    return args


def replace_last_argument(text: str, replacement: str) -> str:
    """Put a completion candidate in place of the argument being typed."""
    args = split_arguments(text)
    if not args:
        return text
    if text.endswith(" "):
        return text + replacement
    return text[: len(text) - len(args[-1])] + replacement


class Launcher:
    """Owns one shell channel and one history ring for an input surface."""

    def __init__(
        self,
        config: AppConfig,
        palette: Palette = DEFAULT_PALETTE,
        refresh_interval: float = REFRESH_INTERVAL,
    ) -> None:
        self.config = config
        self.palette = palette
        self.refresh_interval = refresh_interval
        self.history = HistoryRing(
            config.history.size,
            path=config.history.path,
            encoding=config.history.encoding,
        )
        self.channel = CommandChannel(config.shell)
        self.exited = False

    async def start(self) -> None:
        await self.channel.start()

    async def restart(self) -> None:
        """Start a fresh shell, e.g. after ProcessTerminated."""
        await self.channel.stop()
        await self.channel.start()
        self.exited = False

    async def close(self) -> None:
        await self.channel.stop()
        self.history.close()

    def styled(self, line: str) -> list[StyledSpan]:
        return parse_line(line, self.config.theme.foreground, self.config.theme.background, self.palette)

    # Key handlers

    def history_prev(self) -> HistoryResult:
        return self.history.prev()

    def history_next(self) -> HistoryResult:
        return self.history.next()

    def suggest(self, text: str) -> HistoryResult:
        return self.history.last_match(text)

    async def complete(self, text: str) -> list[str]:
        if not text:
            return []
        try:
            return await self.channel.complete(text)
        except Busy:
            logger.info("Completion skipped, a command is still running")
            return []

    async def run(self, text: str) -> AsyncIterator[list[StyledSpan]]:
        """Submit typed text and yield styled output lines as they arrive."""
        if not text:
            return

        self.history.add(text)
        self.history.reset_pos()

        word = text.strip().lower()
        if word == EXIT_WORD:
            self.exited = True
            await self.channel.stop()
            return
        if word == INTERRUPT_WORD:
            self.channel.cancel()
            return

        try:
            request = await self.channel.submit(text)
        except Busy:
            logger.info("Ignoring %r, a command is still running", text)
            return

        while not await request.settled(self.refresh_interval):
            for line in request.new_lines():
                yield self.styled(line)

        for line in request.new_lines():
            yield self.styled(line)
        await request.wait()
