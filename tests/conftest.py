"""Shared test fixtures."""

from __future__ import annotations

import asyncio
from unittest.mock import patch

import pytest

from shellpop.config import AppConfig, HistoryConfig, LoggingConfig, ShellConfig, ThemeConfig


@pytest.fixture
def app_config(tmp_path):
    """Create a test configuration."""
    return AppConfig(
        shell=ShellConfig(
            dialect="posix",
            executable="sh",
            working_directory=str(tmp_path),
            poll_interval=0.01,
            timeout=10,
            stop_grace=1.0,
        ),
        history=HistoryConfig(size=10, path=str(tmp_path / "history.txt")),
        theme=ThemeConfig(foreground="#FFFFFF", background="#000000"),
        logging=LoggingConfig(level="DEBUG", file=str(tmp_path / "test.log")),
    )


class FakeStdin:
    def __init__(self) -> None:
        self.written: list[str] = []
        self.closed = False
        self.broken = False

    def write(self, data: bytes) -> None:
        if self.broken:
            raise BrokenPipeError("Broken pipe")
        self.written.append(data.decode())

    async def drain(self) -> None:
        pass

    def is_closing(self) -> bool:
        return self.closed

    def close(self) -> None:
        self.closed = True


class FakeProcess:
    """Stands in for asyncio.subprocess.Process; output is fed by the test."""

    def __init__(self, pid: int = 4242) -> None:
        self.pid = pid
        self.returncode: int | None = None
        self.stdin = FakeStdin()
        self.stdout = asyncio.StreamReader()
        self.ignore_eof = False
        self._exited = asyncio.Event()

    def emit(self, text: str) -> None:
        self.stdout.feed_data(text.encode())

    def reply(self, request, *lines: str) -> None:
        """Echo the request, print ``lines`` and then the marker."""
        self.emit("".join(f"{line}\n" for line in (request.command, *lines, request.token)))

    def exit(self, code: int = 0) -> None:
        if self.returncode is None:
            self.returncode = code
            self.stdout.feed_eof()
            self._exited.set()

    def kill(self) -> None:
        self.exit(-9)

    async def wait(self) -> int:
        if self.stdin.closed and not self.ignore_eof:
            self.exit(0)
        await self._exited.wait()
        return self.returncode  # type: ignore[return-value]


class FakeShell:
    """Replacement for asyncio.create_subprocess_exec that records launches."""

    def __init__(self) -> None:
        self.process: FakeProcess | None = None
        self.argv: tuple[str, ...] = ()
        self.kwargs: dict = {}
        self.launches = 0

    async def spawn(self, *argv, **kwargs) -> FakeProcess:
        self.argv = argv
        self.kwargs = kwargs
        self.launches += 1
        self.process = FakeProcess(pid=4242 + self.launches)
        return self.process


@pytest.fixture
def fake_shell():
    shell = FakeShell()
    with patch("shellpop.services.channel.asyncio.create_subprocess_exec", new=shell.spawn):
        yield shell
