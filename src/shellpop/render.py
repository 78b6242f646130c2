"""Rendering of styled spans for a rich console."""

from __future__ import annotations

from typing import Iterable

from rich.style import Style
from rich.text import Text

from shellpop.models import StyledSpan


def span_style(
    span: StyledSpan,
    default_foreground: str | None = None,
    default_background: str | None = None,
) -> Style:
    """Style for one span. Theme defaults are left to the terminal."""
    return Style(
        color=None if span.foreground == default_foreground else span.foreground,
        bgcolor=None if span.background == default_background else span.background,
        bold=span.bold,
        italic=span.italic,
        underline=span.underline,
    )


def to_rich_text(
    spans: Iterable[StyledSpan],
    default_foreground: str | None = None,
    default_background: str | None = None,
) -> Text:
    """Build one rich Text line from parsed spans."""
    text = Text()
    for span in spans:
        text.append(span.text, style=span_style(span, default_foreground, default_background))
    return text


def plain_text(spans: Iterable[StyledSpan]) -> str:
    return "".join(span.text for span in spans)
