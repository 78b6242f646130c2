"""Command execution channel over a long-lived interactive shell.

The shell speaks plain text, so a request is framed by appending an
instruction that makes the shell print a fresh random token once the command
finishes. Output is collected into an accumulator by a background reader and
a poll loop watches it for the token.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import os
import signal
import threading
import uuid
from pathlib import Path

from shellpop.config import ShellConfig
from shellpop.errors import Busy, CommandTimeout, ProcessTerminated, TransportError
from shellpop.services.dialects import ShellDialect, get_dialect

logger = logging.getLogger(__name__)

READ_CHUNK = 4096


class OutputAccumulator:
    """Append-only text buffer shared by the reader task and the poll loop."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._parts: list[str] = []

    def append(self, text: str) -> None:
        with self._lock:
            self._parts.append(text)

    def clear(self) -> None:
        with self._lock:
            self._parts.clear()

    def text(self) -> str:
        with self._lock:
            if len(self._parts) > 1:
                self._parts[:] = ["".join(self._parts)]
            return self._parts[0] if self._parts else ""

    def lines(self) -> list[str]:
        return [line.rstrip("\r") for line in self.text().split("\n")]


class PendingRequest:
    """One in-flight command submission."""

    def __init__(self, channel: CommandChannel, command: str, token: str) -> None:
        self.command = command
        self.token = token
        self.reported = 0
        self._channel = channel
        self._result: list[str] | None = None
        self._task: asyncio.Task[list[str]] | None = None

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()

    def partial(self) -> list[str]:
        """Complete lines received so far, without the echo line."""
        if self._result is not None:
            return list(self._result)
        lines = self._channel.buffer.lines()
        if self.token in lines:
            return lines[1 : lines.index(self.token)]
        return lines[1:-1] if len(lines) > 2 else []

    def new_lines(self) -> list[str]:
        """Lines not handed out by a previous call."""
        lines = self.partial()
        fresh = lines[self.reported :]
        self.reported = max(self.reported, len(lines))
        return fresh

    def _submitted(self) -> asyncio.Task[list[str]]:
        if self._task is None:
            raise RuntimeError(f"Request {self.command!r} was never submitted")
        return self._task

    async def settled(self, timeout: float) -> bool:
        """Wait up to ``timeout`` seconds for the request to resolve."""
        done, _ = await asyncio.wait({self._submitted()}, timeout=timeout)
        return bool(done)

    async def wait(self) -> list[str]:
        """Output lines between the echo and the completion marker."""
        return await asyncio.shield(self._submitted())


class CommandChannel:
    """Submit commands to one shell process, one request at a time."""

    def __init__(self, config: ShellConfig, dialect: ShellDialect | None = None) -> None:
        self.config = config
        self.dialect = dialect or get_dialect(config)
        self.buffer = OutputAccumulator()
        self._process: asyncio.subprocess.Process | None = None
        self._reader: asyncio.Task[None] | None = None
        self._request: PendingRequest | None = None
        self._overdue: PendingRequest | None = None
        self._stream_closed = False
        self._read_error: BaseException | None = None

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    @property
    def busy(self) -> bool:
        return self._request is not None or self._pending_overdue() is not None

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    async def start(self) -> None:
        """Launch the shell and begin reading its merged output."""
        if self.running:
            return

        argv = self.dialect.argv()
        work_dir = str(Path(self.config.working_directory).expanduser().resolve())
        try:
            self._process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                cwd=work_dir,
                start_new_session=(os.name == "posix"),
            )
        except OSError as e:
            raise TransportError(f"Could not start shell {argv[0]}: {e}") from e

        self.buffer.clear()
        self._request = None
        self._overdue = None
        self._stream_closed = False
        self._read_error = None
        self._reader = asyncio.create_task(self._pump(self._process.stdout))
        logger.info("Started %s shell (pid %d) in %s", self.dialect.name, self._process.pid, work_dir)

        startup = self.dialect.startup(self.config.output_columns)
        if startup:
            await self._write(startup)

    async def _pump(self, stream: asyncio.StreamReader | None) -> None:
        decoder = codecs.getincrementaldecoder(self.config.encoding)(errors="replace")
        try:
            while stream is not None:
                chunk = await stream.read(READ_CHUNK)
                if not chunk:
                    break
                self.buffer.append(decoder.decode(chunk))
            tail = decoder.decode(b"", final=True)
            if tail:
                self.buffer.append(tail)
        except Exception as e:
            logger.exception("Error reading shell output")
            self._read_error = e
        finally:
            self._stream_closed = True

    async def _write(self, text: str) -> None:
        proc = self._process
        if proc is None or proc.stdin is None:
            raise TransportError("Shell is not running")
        try:
            proc.stdin.write(text.encode(self.config.encoding, errors="replace"))
            await proc.stdin.drain()
        except (OSError, RuntimeError) as e:
            raise TransportError(f"Failed to write to shell: {e}") from e

    async def submit(self, command: str) -> PendingRequest:
        """Start a request.

        Raises Busy if another one is still in flight, or if a timed-out
        command has not printed its marker yet.
        """
        if self._request is not None:
            raise Busy(self._request.command)
        if not self.running or self._stream_closed:
            raise ProcessTerminated(self._process.returncode if self._process else None)
        if (overdue := self._pending_overdue()) is not None:
            raise Busy(overdue.command)

        request = PendingRequest(self, command, uuid.uuid4().hex)
        self._request = request
        self.buffer.clear()
        try:
            await self._write(self.dialect.wrap(command, request.token))
        except TransportError:
            self._request = None
            raise

        request._task = asyncio.create_task(self._poll(request))
        logger.debug("Submitted %r (marker %s)", command, request.token)
        return request

    async def execute(self, command: str) -> list[str]:
        request = await self.submit(command)
        return await request.wait()

    async def _poll(self, request: PendingRequest) -> list[str]:
        loop = asyncio.get_running_loop()
        timeout = self.config.timeout
        deadline = loop.time() + timeout if timeout > 0 else None
        try:
            while True:
                closed = self._stream_closed
                lines = self.buffer.lines()
                if request.token in lines:
                    request._result = lines[1 : lines.index(request.token)]
                    return request._result

                if self._read_error is not None:
                    raise TransportError(f"Failed to read from shell: {self._read_error}")
                if closed:
                    returncode = self._process.returncode if self._process else None
                    logger.warning("Shell exited while running %r (exit code %s)", request.command, returncode)
                    raise ProcessTerminated(returncode)
                if deadline is not None and loop.time() >= deadline:
                    self._overdue = request
                    raise CommandTimeout(f"No response to {request.command!r} after {timeout}s")

                await asyncio.sleep(self.config.poll_interval)
        finally:
            if self._request is request:
                self._request = None

    def _pending_overdue(self) -> PendingRequest | None:
        """The timed-out request, while it has not printed its marker yet.

        Its late output would otherwise land in front of the next request.
        """
        overdue = self._overdue
        if overdue is None:
            return None
        if overdue.token in self.buffer.lines():
            logger.info("Timed-out command %r finished", overdue.command)
            self._overdue = None
            return None
        return overdue

    async def complete(self, fragment: str) -> list[str]:
        """Ask the shell for completion candidates of ``fragment``."""
        lines = await self.execute(self.dialect.completion_query(fragment))
        return list(dict.fromkeys(line.strip() for line in lines if line.strip()))

    def cancel(self) -> None:
        """Send an interrupt to the shell's process group. Best effort."""
        proc = self._process
        if proc is None or proc.returncode is not None:
            return
        try:
            if hasattr(os, "killpg"):
                os.killpg(proc.pid, signal.SIGINT)
            else:
                proc.send_signal(signal.CTRL_C_EVENT)  # type: ignore[attr-defined]
            logger.info("Sent interrupt to shell (pid %d)", proc.pid)
        except (OSError, ValueError) as e:
            logger.warning("Failed to interrupt shell: %s", e)

    async def stop(self) -> None:
        """Close stdin, give the shell a moment to exit, then release it."""
        proc = self._process
        if proc is None:
            return

        if proc.stdin is not None and not proc.stdin.is_closing():
            proc.stdin.close()
        try:
            await asyncio.wait_for(proc.wait(), timeout=self.config.stop_grace)
        except asyncio.TimeoutError:
            logger.warning("Shell did not exit within %ss, killing it", self.config.stop_grace)
            try:
                proc.kill()
            except ProcessLookupError:
                pass
            await proc.wait()

        if self._reader is not None:
            await self._reader
            self._reader = None
        self._process = None
        logger.info("Shell stopped (exit code %s)", proc.returncode)
