"""Interactive prompts for choosing options and entering text."""

from __future__ import annotations

from typing import Sequence

from prompt_toolkit import prompt
from prompt_toolkit.application import Application
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.layout import Layout, Window
from prompt_toolkit.layout.controls import FormattedTextControl

_PAGE_SIZE = 10


def _choose(
    label: str, options: Sequence[str], initial: int = 0, page_size: int | None = None
) -> int | None:
    """Let the user pick one of *options*; return its index or None if cancelled."""
    if not options:
        return None
    index = initial

    def render():
        start = 0
        if page_size is not None:
            start = max(0, index - page_size + 1)
        stop = len(options) if page_size is None else start + page_size
        fragments = [("bold", f"{label}\n")]
        for position, option in enumerate(options[start:stop], start):
            if position == index:
                fragments.append(("reverse", f"> {option}\n"))
            else:
                fragments.append(("", f"  {option}\n"))
        return fragments

    bindings = KeyBindings()

    @bindings.add("up")
    @bindings.add("k")
    def _up(event):
        nonlocal index
        index = max(0, index - 1)

    @bindings.add("down")
    @bindings.add("j")
    def _down(event):
        nonlocal index
        index = min(len(options) - 1, index + 1)

    @bindings.add("enter")
    def _accept(event):
        event.app.exit(result=index)

    @bindings.add("c-c")
    def _cancel(event):
        event.app.exit(result=None)

    application: Application = Application(
        layout=Layout(Window(FormattedTextControl(render), always_hide_cursor=True)),
        key_bindings=bindings,
        full_screen=False,
    )
    try:
        return application.run()
    except (KeyboardInterrupt, EOFError):
        return None


def prompt_select(label: str, options: Sequence[str]) -> str:
    """Return the chosen option, or an empty string if the prompt was cancelled."""
    choice = _choose(label, options)
    return "" if choice is None else options[choice]


def prompt_select_with_default(
    label: str, options: Sequence[str], default_value: str
) -> str:
    """Like :func:`prompt_select`, starting on *default_value* when it is listed."""
    if not options:
        return default_value
    initial = options.index(default_value) if default_value in options else 0
    choice = _choose(label, options, initial)
    return "" if choice is None else options[choice]


def prompt_string(label: str, default_value: str) -> str:
    """Ask for a line of text; an empty answer gives *default_value*."""
    shown = f"{label} [{default_value}]" if default_value else label
    try:
        answer = prompt(f"{shown}: ").strip()
    except (KeyboardInterrupt, EOFError):
        return ""
    return answer or default_value


def prompt_password(label: str) -> str:
    """Ask for a secret without echoing it."""
    try:
        return prompt(f"{label}: ", is_password=True).strip()
    except (KeyboardInterrupt, EOFError):
        return ""


def select_item(label: str, items: Sequence[str]) -> int:
    """Return the index of the chosen item, or -1 if cancelled."""
    choice = _choose(label, items, page_size=_PAGE_SIZE)
    return -1 if choice is None else choice