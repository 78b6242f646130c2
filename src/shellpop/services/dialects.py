"""Shell dialects: how each shell is launched and how commands are framed."""

from __future__ import annotations

import shlex
import shutil

from shellpop.config import ShellConfig


class ShellDialect:
    """Base dialect. Subclasses supply the shell-specific wire text."""

    name = ""
    default_executable = ""
    args: tuple[str, ...] = ()

    def __init__(self, executable: str = "") -> None:
        self.executable = executable or self.default_executable

    def argv(self) -> list[str]:
        return [self.executable, *self.args]

    def startup(self, columns: int) -> str:
        """Commands sent once after launch. Must not print anything."""
        return ""

    def wrap(self, command: str, token: str) -> str:
        """Wire text for one request: echo line, command, then the marker."""
        raise NotImplementedError

    def completion_query(self, fragment: str) -> str:
        """Command that prints completion candidates for ``fragment``, one per line."""
        raise NotImplementedError


class PowerShellDialect(ShellDialect):
    name = "powershell"
    default_executable = "pwsh"
    args = ("-NoLogo", "-NoProfile", "-Command", "-")

    @staticmethod
    def _quote(text: str) -> str:
        for ch in "`\"$":
            text = text.replace(ch, "`" + ch)
        return f'"{text}"'

    def startup(self, columns: int) -> str:
        return (
            "$newsize = $(get-host).ui.rawui.buffersize; "
            f"$newsize.width = {columns}; "
            "$(get-host).ui.rawui.buffersize = $newsize\n"
        )

    def wrap(self, command: str, token: str) -> str:
        # PowerShell echoes the submitted line itself
        return f"{command}; Write-Output {token}\n"

    def completion_query(self, fragment: str) -> str:
        return f"$(TabExpansion2 {self._quote(fragment)}).CompletionMatches.CompletionText"


class PosixDialect(ShellDialect):
    name = "posix"
    default_executable = "sh"

    def __init__(self, executable: str = "") -> None:
        super().__init__(executable or shutil.which("bash") or self.default_executable)

    def startup(self, columns: int) -> str:
        # A no-op trap keeps SIGINT from killing the shell; children still get the default action.
        return f"trap : INT; export COLUMNS={columns}\n"

    def wrap(self, command: str, token: str) -> str:
        # Separate lines so a trailing '&' or '# comment' cannot swallow the marker.
        return f"printf '%s\\n' {shlex.quote(command)}\n{command}\necho {token}\n"

    def completion_query(self, fragment: str) -> str:
        words = fragment.split()
        word = "" if not words or fragment[-1:].isspace() else words[-1]
        quoted = shlex.quote(word)
        return f"compgen -f -c -- {quoted} 2>/dev/null || ls -d -- {quoted}* 2>/dev/null"


_DIALECTS: dict[str, type[ShellDialect]] = {
    PowerShellDialect.name: PowerShellDialect,
    PosixDialect.name: PosixDialect,
}


def get_dialect(config: ShellConfig) -> ShellDialect:
    try:
        dialect_cls = _DIALECTS[config.dialect]
    except KeyError:
        raise ValueError(f"Unknown shell dialect: {config.dialect}") from None
    return dialect_cls(config.executable)
