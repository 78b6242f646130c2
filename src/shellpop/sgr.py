"""SGR escape-sequence interpreter producing styled text spans."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import NamedTuple

from shellpop.errors import MalformedEscape
from shellpop.models import StyledSpan

logger = logging.getLogger(__name__)

ESC = "\x1b"
_PARAM_CHARS = frozenset("0123456789;")

# Tokenizer states
_TEXT = 0
_ESCAPE = 1
_CSI = 2


@dataclass(frozen=True)
class Palette:
    """Colors for the 8 base SGR colors and the low 16 entries of the 256-color table."""

    normal: tuple[str, ...]
    bright: tuple[str, ...]
    table16: tuple[str, ...]


# Campbell console scheme: black, red, green, yellow, blue, magenta, cyan, white
DEFAULT_PALETTE = Palette(
    normal=("#0C0C0C", "#C50F1F", "#13A10E", "#C19C00", "#0037DA", "#881798", "#3A96DD", "#CCCCCC"),
    bright=("#767676", "#E74856", "#16C60C", "#F9F1A5", "#3B78FF", "#B4009E", "#61D6D6", "#F2F2F2"),
    table16=(
        "#000000", "#800000", "#008000", "#808000", "#000080", "#800080", "#008080", "#C0C0C0",
        "#808080", "#FF0000", "#00FF00", "#FFFF00", "#0000FF", "#FF00FF", "#00FFFF", "#FFFFFF",
    ),
)

CUBE_STEP = 51


class Token(NamedTuple):
    is_escape: bool
    value: str


@dataclass
class ColorState:
    foreground: str
    background: str
    bold: bool = False
    italic: bool = False
    underline: bool = False
    invert: bool = False

    def reset(self, foreground: str, background: str) -> None:
        self.foreground = foreground
        self.background = background
        self.bold = self.italic = self.underline = self.invert = False

    def span(self, text: str) -> StyledSpan:
        fg, bg = (self.background, self.foreground) if self.invert else (self.foreground, self.background)
        return StyledSpan(text, fg, bg, self.bold, self.italic, self.underline)


def _hex(r: int, g: int, b: int) -> str:
    return f"#{r:02X}{g:02X}{b:02X}"


def color_256(index: int, palette: Palette = DEFAULT_PALETTE) -> str:
    """Resolve an index of the xterm 256-color table.

    The cube uses a flat step of 51 per level rather than xterm's offsets.
    """
    index %= 256
    if index < 16:
        return palette.table16[index]
    if index < 232:
        cube = index - 16
        return _hex(cube // 36 % 6 * CUBE_STEP, cube // 6 % 6 * CUBE_STEP, cube % 6 * CUBE_STEP)
    level = (index - 232) * 10 + 8
    return _hex(level, level, level)


def tokenize(raw: str) -> list[Token]:
    """Split a line into literal runs and SGR escape bodies.

    Only ``ESC [ <digits and semicolons> m`` is an escape token; anything that
    leaves that grammar early stays part of the surrounding literal text.
    """
    tokens: list[Token] = []
    state = _TEXT
    literal_start = 0
    seq_start = 0

    for i, ch in enumerate(raw):
        if ch == ESC:
            state = _ESCAPE
            seq_start = i
        elif state == _ESCAPE:
            state = _CSI if ch == "[" else _TEXT
        elif state == _CSI:
            if ch in _PARAM_CHARS:
                continue
            if ch == "m":
                if literal_start < seq_start:
                    tokens.append(Token(False, raw[literal_start:seq_start]))
                tokens.append(Token(True, raw[seq_start + 2 : i]))
                literal_start = i + 1
            state = _TEXT

    if literal_start < len(raw):
        tokens.append(Token(False, raw[literal_start:]))
    return tokens


def _extended_color(params: list[str], palette: Palette) -> tuple[str, int]:
    """Parse the arguments following 38/48. Returns (color, params consumed)."""
    try:
        if params[:1] == ["5"] and len(params) >= 2:
            return color_256(int(params[1]), palette), 2
        if params[:1] == ["2"] and len(params) >= 4:
            r, g, b = (max(0, min(255, int(p))) for p in params[1:4])
            return _hex(r, g, b), 4
    except ValueError:
        pass
    raise MalformedEscape(f"bad extended color arguments: {';'.join(params)}")


def _apply(body: str, state: ColorState, default_fg: str, default_bg: str, palette: Palette) -> None:
    if not body:
        state.reset(default_fg, default_bg)
        return

    params = body.split(";")
    i = 0
    while i < len(params):
        param = params[i]
        i += 1
        if not param.isdigit():
            logger.debug("Skipping empty SGR parameter in %r", body)
            continue

        code = int(param)
        if code == 0:
            state.reset(default_fg, default_bg)
        elif code == 1:
            state.bold = True
        elif code == 3:
            state.italic = True
        elif code == 4:
            state.underline = True
        elif code == 7:
            state.invert = True
        elif 30 <= code <= 37:
            state.foreground = palette.normal[code - 30]
        elif 90 <= code <= 97:
            state.foreground = palette.bright[code - 90]
        elif 40 <= code <= 47:
            state.background = palette.normal[code - 40]
        elif 100 <= code <= 107:
            state.background = palette.bright[code - 100]
        elif code in (38, 48):
            color, consumed = _extended_color(params[i:], palette)
            i += consumed
            if code == 38:
                state.foreground = color
            else:
                state.background = color
        else:
            logger.debug("Ignoring unsupported SGR code %d", code)


def parse_line(
    raw: str,
    default_fg: str,
    default_bg: str,
    palette: Palette = DEFAULT_PALETTE,
) -> list[StyledSpan]:
    """Turn one line of raw shell output into styled spans.

    Color state starts from the defaults on every call; nothing carries over
    between lines.
    """
    state = ColorState(default_fg, default_bg)
    spans: list[StyledSpan] = []

    for token in tokenize(raw):
        if not token.is_escape:
            spans.append(state.span(token.value))
            continue
        try:
            _apply(token.value, state, default_fg, default_bg, palette)
        except MalformedEscape as e:
            logger.debug("Malformed escape %r: %s", token.value, e)

    return spans


def strip_sgr(raw: str) -> str:
    """Plain text of a line with SGR sequences removed."""
    return "".join(token.value for token in tokenize(raw) if not token.is_escape)
