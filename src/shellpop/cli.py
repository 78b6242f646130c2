"""CLI entry point using typer."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table
from rich.text import Text

from shellpop import __version__
from shellpop.config import (
    CONFIG_FILE,
    AppConfig,
    load_config,
    save_config,
)
from shellpop.errors import ChannelError, ProcessTerminated
from shellpop.history import HistoryRing
from shellpop.launcher import Launcher
from shellpop.models import StyledSpan
from shellpop.render import plain_text, to_rich_text

app = typer.Typer(
    name="shellpop",
    help="Popup command launcher for an interactive shell.",
    add_completion=False,
)
console = Console()


def setup_logging(config: AppConfig, interactive: bool = False) -> None:
    log_path = Path(config.logging.file).expanduser().resolve()
    log_path.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, config.logging.level.upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.FileHandler(str(log_path)),
            *([logging.StreamHandler()] if interactive else []),
        ],
    )


def _load() -> AppConfig:
    try:
        return load_config()
    except ValueError as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        raise typer.Exit(1)


def _styled(config: AppConfig, spans: list[StyledSpan]) -> Text:
    return to_rich_text(spans, config.theme.foreground, config.theme.background)


async def _exec(config: AppConfig, command: str, plain: bool) -> None:
    launcher = Launcher(config)
    await launcher.start()
    try:
        async for spans in launcher.run(command):
            if plain:
                console.print(plain_text(spans), markup=False, highlight=False)
            else:
                console.print(_styled(config, spans))
    finally:
        await launcher.close()


async def _repl(config: AppConfig) -> None:
    launcher = Launcher(config)
    await launcher.start()
    try:
        while not launcher.exited:
            try:
                text = await asyncio.to_thread(console.input, "[bold]> [/bold]")
            except EOFError:
                break
            try:
                async for spans in launcher.run(text):
                    console.print(_styled(config, spans))
            except ProcessTerminated as e:
                console.print(f"[yellow]{e}. Restarting shell.[/yellow]")
                await launcher.restart()
            except ChannelError as e:
                console.print(f"[red]{e}[/red]")
    finally:
        await launcher.close()


async def _complete(config: AppConfig, fragment: str) -> list[str]:
    launcher = Launcher(config)
    await launcher.start()
    try:
        return await launcher.complete(fragment)
    finally:
        await launcher.channel.stop()


@app.command()
def repl() -> None:
    """Interactive prompt. Type 'term' to interrupt, 'exit' to quit."""
    config = _load()
    setup_logging(config)
    console.print(f"[bold]shellpop v{__version__}[/bold] ({config.shell.dialect})")
    try:
        asyncio.run(_repl(config))
    except KeyboardInterrupt:
        pass
    except ChannelError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


@app.command("exec")
def exec_command(
    command: str = typer.Argument(..., help="Command line to run"),
    plain: bool = typer.Option(False, "--plain", help="Print output without colors"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Also log to the console"),
) -> None:
    """Run one command in a fresh shell and print its output."""
    config = _load()
    setup_logging(config, interactive=verbose)
    try:
        asyncio.run(_exec(config, command, plain))
    except ChannelError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


@app.command()
def complete(fragment: str = typer.Argument(..., help="Partial command line")) -> None:
    """Print the shell's completion candidates for a fragment."""
    config = _load()
    setup_logging(config)
    try:
        candidates = asyncio.run(_complete(config, fragment))
    except ChannelError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    for candidate in candidates:
        console.print(candidate, markup=False, highlight=False)


@app.command()
def history(
    lines: int = typer.Option(20, "--lines", "-n", help="Number of entries"),
    match: str = typer.Option("", "--match", "-m", help="Show the latest entry with this prefix"),
) -> None:
    """Show stored command history."""
    config = _load()
    ring = HistoryRing(config.history.size, path=config.history.path, encoding=config.history.encoding)

    if match:
        result = ring.last_match(match)
        if not result.ok:
            console.print(f"[dim]{result.status.value}[/dim]")
            raise typer.Exit(1)
        console.print(result.text, markup=False, highlight=False)
        return

    entries = ring.entries()
    if not entries:
        console.print("[dim]No history.[/dim]")
        return
    start = max(0, len(entries) - lines)
    for number, entry in enumerate(entries[start:], start=start + 1):
        console.print(f"[dim]{number:>4}[/dim]  ", end="")
        console.print(entry, markup=False, highlight=False)


@app.command()
def config(
    key: str = typer.Argument(None, help="Config key (e.g., shell.timeout)"),
    value: str = typer.Argument(None, help="New value"),
) -> None:
    """View or modify configuration."""
    cfg = _load()
    sections = cfg.sections()

    if key is None:
        table = Table(title="Configuration")
        table.add_column("Key", style="cyan")
        table.add_column("Value", style="green")

        for name, section in sections.items():
            for attr, current in vars(section).items():
                table.add_row(f"{name}.{attr}", str(current))

        console.print(table)
        if not CONFIG_FILE.exists():
            console.print("[dim]Defaults shown; no config file yet.[/dim]")
        return

    if value is None:
        console.print("[red]Usage: shellpop config <key> <value>[/red]")
        raise typer.Exit(1)

    parts = key.split(".")
    if len(parts) != 2:
        console.print("[red]Key format: section.key (e.g., shell.timeout)[/red]")
        raise typer.Exit(1)

    section, attr = parts
    if section not in sections:
        console.print(f"[red]Unknown section: {section}[/red]")
        raise typer.Exit(1)

    obj = sections[section]
    if not hasattr(obj, attr):
        console.print(f"[red]Unknown key: {key}[/red]")
        raise typer.Exit(1)

    # Type coercion
    current = getattr(obj, attr)
    try:
        if isinstance(current, bool):
            typed_value: object = value.lower() in ("true", "1", "yes")
        elif isinstance(current, int):
            typed_value = int(value)
        elif isinstance(current, float):
            typed_value = float(value)
        else:
            typed_value = value
    except ValueError:
        console.print(f"[red]Invalid value type for {key}[/red]")
        raise typer.Exit(1)

    setattr(obj, attr, typed_value)
    save_config(cfg)
    console.print(f"[green]{key} = {typed_value}[/green]")


@app.command()
def logs(
    lines: int = typer.Option(50, "--lines", "-n", help="Number of lines"),
) -> None:
    """View the log file."""
    log_path = Path(_load().logging.file).expanduser().resolve()
    if not log_path.exists():
        console.print("[dim]No log file found.[/dim]")
        return

    content = log_path.read_text()
    for line in content.strip().split("\n")[-lines:]:
        console.print(line, markup=False, highlight=False)


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"shellpop v{__version__}")
    console.print(f"Python: {sys.version.split()[0]}")
    console.print(f"Config: {CONFIG_FILE}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
