"""Configuration management using TOML + environment variables."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field, fields
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomllib
    except ModuleNotFoundError:
        import tomli as tomllib  # type: ignore[no-redef]

import tomli_w

CONFIG_DIR = Path.home() / ".shellpop"
CONFIG_FILE = CONFIG_DIR / "config.toml"

DIALECTS = ("posix", "powershell")


def default_dialect() -> str:
    return "powershell" if sys.platform == "win32" else "posix"


@dataclass
class ShellConfig:
    dialect: str = field(default_factory=default_dialect)
    executable: str = ""
    working_directory: str = "."
    output_columns: int = 80
    poll_interval: float = 0.1
    timeout: float = 0.0
    stop_grace: float = 2.0
    encoding: str = "utf-8"


@dataclass
class HistoryConfig:
    size: int = 100
    path: str = "~/.shellpop/history.txt"
    encoding: str = "utf-8"


@dataclass
class ThemeConfig:
    foreground: str = "#000000"
    background: str = "#FFFFFF"


@dataclass
class LoggingConfig:
    level: str = "WARNING"
    file: str = "~/.shellpop/shellpop.log"


@dataclass
class AppConfig:
    shell: ShellConfig = field(default_factory=ShellConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    theme: ThemeConfig = field(default_factory=ThemeConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def sections(self) -> dict[str, object]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def ensure_config_dir() -> None:
    """Create config directory with secure permissions."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    os.chmod(CONFIG_DIR, 0o700)


def _merge_section(section: object, data: dict) -> None:
    for f in fields(section):  # type: ignore[arg-type]
        if f.name in data:
            current = getattr(section, f.name)
            value = data[f.name]
            if isinstance(current, float) and isinstance(value, int):
                value = float(value)
            setattr(section, f.name, value)


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from TOML file with env var overrides."""
    config = AppConfig()
    config_file = path or CONFIG_FILE

    if config_file.exists():
        with open(config_file, "rb") as f:
            data = tomllib.load(f)

        for name, section in config.sections().items():
            _merge_section(section, data.get(name, {}))

    # Environment variable overrides
    if env_dialect := os.environ.get("SHELLPOP_DIALECT"):
        config.shell.dialect = env_dialect
    if env_shell := os.environ.get("SHELLPOP_SHELL"):
        config.shell.executable = env_shell
    if env_cwd := os.environ.get("SHELLPOP_WORKING_DIRECTORY"):
        config.shell.working_directory = env_cwd
    if env_columns := os.environ.get("SHELLPOP_OUTPUT_COLUMNS"):
        config.shell.output_columns = int(env_columns)
    if env_timeout := os.environ.get("SHELLPOP_TIMEOUT"):
        config.shell.timeout = float(env_timeout)
    if env_hist := os.environ.get("SHELLPOP_HISTORY_PATH"):
        config.history.path = env_hist
    if env_hist_size := os.environ.get("SHELLPOP_HISTORY_SIZE"):
        config.history.size = int(env_hist_size)
    if env_log_level := os.environ.get("SHELLPOP_LOG_LEVEL"):
        config.logging.level = env_log_level

    if config.shell.dialect not in DIALECTS:
        raise ValueError(f"Unknown shell dialect: {config.shell.dialect} (expected one of {', '.join(DIALECTS)})")

    return config


def save_config(config: AppConfig) -> None:
    """Save configuration to TOML file."""
    ensure_config_dir()

    data = {
        name: {f.name: getattr(section, f.name) for f in fields(section)}  # type: ignore[arg-type]
        for name, section in config.sections().items()
    }

    with open(CONFIG_FILE, "wb") as f:
        tomli_w.dump(data, f)

    os.chmod(CONFIG_FILE, 0o600)
