"""Reconstruction of the commands typed during a recorded session and their output."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from itertools import dropwhile
from typing import Any

from pentlog.ansi import clean_tui_markers, render_plain
from pentlog.ttyrec import iter_frames

_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
_KALI_PROMPT = "└─$"
_WS = r"[\t\n\f\r ]"

_ANSI = re.compile(r"\x1b\[[0-9;]*[a-zA-Z]|\x1b\][^\x07]*\x07|\x1b[=>]|\x1b\?[0-9]+[hl]")
_PRIVATE_MODE = re.compile(r"\[\?[0-9]+[hl]")
_CONTEXT_LABEL = re.compile(rf"^\([^)]+\){_WS}*|{_WS}*\([^)]+\)\Z")
_WHITESPACE_RUN = re.compile(rf"{_WS}+")
_PROMPT_PATTERNS = tuple(
    re.compile(pattern)
    for pattern in (
        r"└─\$",
        rf"\${_WS}+\Z",
        rf"#{_WS}+\Z",
        r"[a-zA-Z0-9_-]+@",
        r":~\$",
        r":~#",
    )
)
_SHORT_COMMANDS = frozenset({"ls", "cd", "cp", "mv", "rm", "id", "ps", "su", "vi", "ip"})
_JSON_HTML_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


@dataclass
class CommandExecution:
    timestamp: str
    command: str
    output: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"timestamp": self.timestamp, "command": self.command, "output": self.output}


@dataclass
class Timeline:
    commands: list[CommandExecution] = field(default_factory=list)

    def to_json(self) -> str:
        """Return the commands as an indented JSON array (``null`` when there are none)."""
        if not self.commands:
            return "null"
        text = json.dumps(
            [command.to_dict() for command in self.commands], indent=2, ensure_ascii=False
        )
        for char, escaped in _JSON_HTML_ESCAPES.items():
            text = text.replace(char, escaped)
        return text


@dataclass(frozen=True)
class TimedFrame:
    timestamp: datetime
    data: bytes


def read_all_frames(tty_path: str) -> list[TimedFrame]:
    """Read every frame of the recording at *tty_path* with its local time.

    A frame cut short raises EOFError.
    """
    with open(tty_path, "rb") as handle:
        return [
            TimedFrame(
                datetime.fromtimestamp(frame.sec) + timedelta(microseconds=frame.usec),
                frame.data,
            )
            for frame in iter_frames(handle)
        ]


def strip_ansi(text: str) -> str:
    """Remove colour, title and mode escape sequences from *text*."""
    return _ANSI.sub("", text)


def clean_control_chars(text: str) -> str:
    """Apply backspaces and carriage returns and drop other control characters."""
    buffer: list[str] = []
    cursor = 0
    for char in text:
        if char == "\b":
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
    return "".join(buffer)


def is_prompt_line(line: str) -> bool:
    """Tell whether *line* looks like a shell prompt."""
    return any(pattern.search(line) for pattern in _PROMPT_PATTERNS)


def _command_after(text: str) -> str:
    text = _CONTEXT_LABEL.sub("", text.strip())
    return clean_command_text(text).strip()


def extract_command(line: str) -> str:
    """Return the command typed after the prompt on *line*, or an empty string."""
    cleaned = _PRIVATE_MODE.sub("", strip_ansi(line))

    index = cleaned.find(_KALI_PROMPT)
    if index != -1:
        return _command_after(cleaned[index + len(_KALI_PROMPT):])

    prompt_index = max(cleaned.rfind("$"), cleaned.rfind("#"))
    if prompt_index != -1 and prompt_index < len(cleaned) - 1:
        return _command_after(cleaned[prompt_index + 1:])
    return ""


def _is_artifact(word: str) -> bool:
    return len(word.encode("utf-8")) <= 2 and word not in _SHORT_COMMANDS


def clean_command_text(cmd: str) -> str:
    """Remove typing artefacts from a command line.

    When the first word is typed again later, only the last attempt is kept;
    stray short fragments at the end of a longer line are dropped.
    """
    cmd = _WHITESPACE_RUN.sub(" ", cmd).strip()
    words = cmd.split()
    if not words:
        return ""

    first = words[0]
    last = max(position for position, word in enumerate(words) if word == first)
    if last > 0:
        words = words[last:]
        cmd = " ".join(words)

    if len(words) > 3:
        kept = list(dropwhile(_is_artifact, reversed(words)))
        kept.reverse()
        if kept and len(kept) < len(words):
            cmd = " ".join(kept)

    return cmd.strip()


def parse_timeline(tty_path: str) -> Timeline:
    """Extract the commands and their output from the recording at *tty_path*.

    Command times are estimated from the first frame, one second per line.
    """
    frames = read_all_frames(tty_path)
    data = clean_tui_markers(b"".join(frame.data for frame in frames))
    lines = [render_plain(line) for line in data.decode("utf-8", "replace").split("\n")]

    def estimate(line_number: int) -> str:
        base = frames[0].timestamp if frames else datetime.now()
        if frames:
            base += timedelta(seconds=line_number)
        return base.strftime(_TIME_FORMAT)

    timeline = Timeline()
    current: tuple[str, str] | None = None
    output: list[str] = []

    def emit() -> None:
        assert current is not None
        timestamp, command = current
        timeline.commands.append(
            CommandExecution(timestamp, command, "\n".join(output).strip())
        )

    for number, line in enumerate(lines):
        line = line.strip()
        if not line and current is None:
            continue
        if is_prompt_line(line):
            if current is not None:
                emit()
            command = extract_command(line)
            if command:
                current = (estimate(number), command)
                output = []
        elif current is not None:
            output.append(line)

    if current is not None:
        emit()
    return timeline


def extract_final_command(raw_data: str) -> str:
    """Return the command on the last prompt line of *raw_data*."""
    cleaned = render_plain(raw_data)
    command_line = ""
    for line in cleaned.split("\n"):
        line = line.strip()
        if is_prompt_line(line):
            command_line = line
    if not command_line:
        return ""
    return extract_command(command_line).strip()


def clean_output(raw_data: str) -> str:
    """Return the non-empty, non-prompt lines of *raw_data*."""
    cleaned = clean_tui_markers(render_plain(raw_data))
    kept = [
        line
        for line in (raw.strip() for raw in cleaned.split("\n"))
        if line and not is_prompt_line(line)
    ]
    return "\n".join(kept).strip()