"""Small terminal helpers: layout, formatting, a spinner and opening files."""

from __future__ import annotations

import itertools
import os
import subprocess
import sys
import threading
from pathlib import Path
from typing import Sequence

_DEFAULT_WIDTH = 80
_SPINNER_FRAMES = ("▘", "▝", "▗", "▖")


def open_file(url: str) -> None:
    """Open *url* with the platform's default handler without waiting for it."""
    if sys.platform == "win32":
        command = ["cmd", "/c", "start", url]
    elif sys.platform == "darwin":
        command = ["open", url]
    else:
        command = ["xdg-open", url]
    subprocess.Popen(command)


def terminal_width() -> int:
    """Return the width of the terminal on standard input, or 80."""
    try:
        columns = os.get_terminal_size(0).columns
    except (OSError, ValueError):
        return _DEFAULT_WIDTH
    return columns if columns > 0 else _DEFAULT_WIDTH


def center_block(lines: Sequence[str]) -> list[str]:
    """Indent every line by the same amount so the block sits centred."""
    longest = max((len(line) for line in lines), default=0)
    padding = " " * max(0, (terminal_width() - longest) // 2)
    return [padding + line for line in lines]


def print_centered_block(lines: Sequence[str]) -> None:
    for line in center_block(lines):
        print(line)


def shorten_path(path: str) -> str:
    """Replace a leading home directory in *path* with ``~``."""
    try:
        home = str(Path.home())
    except RuntimeError:
        return path
    if path.startswith(home):
        return "~" + path[len(home):]
    return path


def truncate_string(text: str, length: int) -> str:
    """Cut *text* to at most *length* characters."""
    if length <= 0:
        return ""
    return text[:length]


def print_box(title: str, lines: Sequence[str]) -> None:
    """Print *lines* inside a centred box drawn with line characters."""
    content_width = max((len(line) for line in lines), default=0)
    content_width = max(content_width, len(title) + 2)
    box_width = content_width + 4
    inner = box_width - 4
    margin = " " * max(0, (terminal_width() - box_width) // 2)
    rule = "─" * (box_width - 2)

    print(f"{margin}┌{rule}┐")
    if title:
        print(f"{margin}│ {title:<{inner}} │")
        print(f"{margin}├{rule}┤")
    for line in lines:
        print(f"{margin}│ {line:<{inner}} │")
    print(f"{margin}└{rule}┘")


def format_bytes(size: int) -> str:
    """Format a byte count with a binary unit prefix."""
    unit = 1024
    if size < unit:
        return f"{size} B"
    divisor, exponent = unit, 0
    quotient = size // unit
    while quotient >= unit:
        divisor *= unit
        exponent += 1
        quotient //= unit
    return f"{size / divisor:.1f} {'KMGTPE'[exponent]}KiB"


class Spinner:
    """A one-line activity indicator drawn from a background thread."""

    def __init__(self, message: str, delay: float = 0.2) -> None:
        self.message = message
        self.delay = delay
        self._lock = threading.Lock()
        self._stopped = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        with self._lock:
            if self._thread is not None:
                return
            self._stopped.clear()
            self._thread = threading.Thread(target=self._spin, daemon=True)
            self._thread.start()

    def stop(self) -> None:
        with self._lock:
            thread, self._thread = self._thread, None
        if thread is None:
            return
        self._stopped.set()
        thread.join()
        print("\r\x1b[K", end="", flush=True)

    def _spin(self) -> None:
        for frame in itertools.cycle(_SPINNER_FRAMES):
            if self._stopped.is_set():
                return
            print(f"\r{frame} {self.message}", end="", flush=True)
            if self._stopped.wait(self.delay):
                return

    def __enter__(self) -> Spinner:
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()