"""Rendering of terminal output that carries ANSI escape sequences.

A raw line is replayed onto a one-line cell buffer that honours carriage
returns, backspaces, cursor movement and line erasure, so that what comes out
is what a terminal would have shown.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from typing import IO, AnyStr, Iterable, Iterator

CAP_BUFFER_LIMIT = 10000

_CSI = re.compile(r"\x1b\[([?0-9;]*)([A-Za-z])")
_OSC = re.compile(r"\x1b\][0-9]*;.*?(?:\x07|\x1b\\)")
_ALT = re.compile(r"\x1b(?:[=><78]|[()][0-9A-Za-z])")
_TUI_BLOCK = re.compile(
    rb"\x1b\]99;PENTLOG_TUI_START\x07.*?\x1b\]99;PENTLOG_TUI_END\x07", re.DOTALL
)
_SGR_NUMBER = re.compile(r"[0-9]+")

_COLOURS = ("black", "red", "green", "yellow", "blue", "magenta", "cyan", "white")

_HTML_ESCAPES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#39;",
}


@dataclass(frozen=True)
class Cell:
    """One character on the line together with the SGR sequence it was drawn in."""

    char: str
    style: str = ""


_BLANK = Cell(" ", "")


def _atoi(text: str, default: int) -> int:
    try:
        return int(text) if text else default
    except ValueError:
        return default


@dataclass
class _LineBuffer:
    cells: list[Cell] = field(default_factory=list)
    cursor: int = 0
    style: str = ""

    def put(self, char: str) -> None:
        if self.cursor >= len(self.cells):
            self.cursor = min(self.cursor, CAP_BUFFER_LIMIT)
            self.cells.extend([_BLANK] * (self.cursor - len(self.cells)))
            self.cells.append(Cell(char, self.style))
        else:
            self.cells[self.cursor] = Cell(char, self.style)
        self.cursor += 1

    def control(self, params: str, command: str) -> None:
        if command == "m":
            self.style = "" if params in ("", "0") else f"\x1b[{params}m"
        elif command == "K":
            mode = _atoi(params, 0)
            if mode == 0:
                del self.cells[self.cursor:]
            elif mode == 1:
                for index in range(min(self.cursor, len(self.cells))):
                    self.cells[index] = _BLANK
            elif mode == 2:
                self.cells = []
                self.cursor = 0
        elif command == "D":
            self.cursor = max(0, self.cursor - _atoi(params, 1))
        elif command == "C":
            self.cursor = min(self.cursor + _atoi(params, 1), CAP_BUFFER_LIMIT)
        elif command == "G":
            self.cursor = max(0, _atoi(params, 1) - 1)


def parse_ansi(line: str) -> list[Cell]:
    """Replay *line* onto a cell buffer and return the visible cells."""
    buffer = _LineBuffer()
    position = 0
    while position < len(line):
        char = line[position]
        if char == "\r":
            buffer.cursor = 0
            position += 1
            continue
        if char == "\b":
            buffer.cursor = max(0, buffer.cursor - 1)
            position += 1
            continue
        if char == "\x1b":
            skipped = _OSC.match(line, position) or _ALT.match(line, position)
            if skipped:
                position = skipped.end()
                continue
            csi = _CSI.match(line, position)
            if csi:
                position = csi.end()
                buffer.control(csi.group(1), csi.group(2))
                continue
        buffer.put(char)
        position += 1
    return buffer.cells


def render_ansi(line: str) -> str:
    """Render *line* as its final text, keeping colour sequences."""
    parts: list[str] = []
    last_style = ""
    for cell in parse_ansi(line):
        if cell.style != last_style:
            parts.append(cell.style)
            last_style = cell.style
        parts.append(cell.char)
    if last_style not in ("", "\x1b[0m"):
        parts.append("\x1b[0m")
    return "".join(parts)


def style_class(ansi: str) -> str:
    """Map an SGR sequence to the CSS classes used in HTML reports."""
    if ansi in ("", "\x1b[0m"):
        return ""
    classes: list[str] = []
    for number in _SGR_NUMBER.findall(ansi):
        code = int(number)
        if code == 1:
            classes.append("ansi-bold")
        elif 30 <= code <= 37:
            classes.append(f"ansi-{_COLOURS[code - 30]}")
        elif 90 <= code <= 97:
            classes.append(f"ansi-bright-{_COLOURS[code - 90]}")
    return " ".join(classes)


def render_ansi_html(line: str) -> str:
    """Render *line* as escaped HTML with colours as span classes."""
    parts: list[str] = []
    current = ""
    for cell in parse_ansi(line):
        css = style_class(cell.style)
        if css != current:
            if current:
                parts.append("</span>")
            if css:
                parts.append(f'<span class="{css}">')
            current = css
        parts.append(_HTML_ESCAPES.get(cell.char, cell.char))
    if current:
        parts.append("</span>")
    return "".join(parts)


def render_plain(line: str) -> str:
    """Render *line* as plain text without trailing spaces."""
    return "".join(cell.char for cell in parse_ansi(line)).rstrip(" ")


def clean_tui_markers(data: AnyStr) -> AnyStr:
    """Remove interactive TUI blocks delimited by the pentlog OSC markers."""
    if isinstance(data, str):
        return _TUI_BLOCK.sub(b"", data.encode("utf-8", "surrogateescape")).decode(
            "utf-8", "surrogateescape"
        )
    return _TUI_BLOCK.sub(b"", data)


def iter_clean_lines(stream: IO[AnyStr] | Iterable[AnyStr]) -> Iterator[str]:
    """Yield every line of *stream* rendered with :func:`render_ansi`.

    Text streams should be opened with ``newline=""`` so that bare carriage
    returns stay inside their line; binary streams are decoded as UTF-8.
    """
    for raw in stream:
        line = raw.decode("utf-8", "replace") if isinstance(raw, bytes) else raw
        if line.endswith("\n"):
            line = line[:-1]
            if line.endswith("\r"):
                line = line[:-1]
        yield render_ansi(line) + "\n"


def clean_stream(stream: IO[AnyStr] | Iterable[AnyStr]) -> str:
    """Return the whole of *stream* rendered line by line."""
    return "".join(iter_clean_lines(stream))


class _StripState(enum.Enum):
    NORMAL = enum.auto()
    ESCAPE = enum.auto()
    CSI = enum.auto()


def strip_ansi(text: str) -> str:
    """Remove escape sequences from *text*, applying cursor movement and erasure."""
    buffer: list[str] = []
    cursor = 0
    state = _StripState.NORMAL
    args: list[int] = []
    current = 0
    has_arg = False

    for char in text:
        if state is _StripState.NORMAL:
            if char == "\x1b":
                state = _StripState.ESCAPE
            elif char == "\b":
                cursor = max(0, cursor - 1)
            elif char == "\r":
                cursor = 0
            elif char == "\n":
                buffer.append(char)
                cursor = len(buffer)
            elif char >= " " or char == "\t":
                if cursor < len(buffer):
                    buffer[cursor] = char
                else:
                    buffer.append(char)
                cursor += 1
        elif state is _StripState.ESCAPE:
            if char == "[":
                state = _StripState.CSI
                args, current, has_arg = [], 0, False
            else:
                state = _StripState.NORMAL
        elif "0" <= char <= "9":
            current = current * 10 + int(char)
            has_arg = True
        elif char == ";":
            args.append(current)
            current, has_arg = 0, False
        elif "\x40" <= char <= "\x7e":
            if has_arg:
                args.append(current)
            if char == "K":
                mode = args[0] if args else 0
                if mode == 0:
                    del buffer[cursor:]
                elif mode == 1:
                    for index in range(min(cursor, len(buffer))):
                        buffer[index] = " "
                elif mode == 2:
                    buffer = []
                    cursor = 0
            elif char == "G":
                column = max(args[0] if args else 1, 1)
                cursor = column - 1
                buffer.extend(" " * (cursor - len(buffer)))
            state = _StripState.NORMAL

    return "".join(buffer)