"""Exception hierarchy for shellpop."""

from __future__ import annotations


class ShellpopError(Exception):
    """Base class for all shellpop errors."""


class ChannelError(ShellpopError):
    """A failure on the command execution channel."""


class Busy(ChannelError):
    """A request is already in flight."""

    def __init__(self, command: str = "") -> None:
        super().__init__("A command is already running" + (f": {command}" if command else ""))
        self.command = command


class ProcessTerminated(ChannelError):
    """The shell process ended before the completion marker was seen."""

    def __init__(self, returncode: int | None = None) -> None:
        detail = f" (exit code {returncode})" if returncode is not None else ""
        super().__init__(f"Shell process terminated{detail}")
        self.returncode = returncode


class TransportError(ChannelError):
    """Writing to or reading from the shell's streams failed."""


class CommandTimeout(ChannelError):
    """The completion marker did not arrive within the configured timeout."""


class MalformedEscape(ShellpopError):
    """An SGR escape body could not be interpreted. Never leaves the parser."""
