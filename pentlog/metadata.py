"""The active engagement context and the history of contexts used."""

from __future__ import annotations

import json
from dataclasses import dataclass, fields
from typing import Any

from pentlog.workspace import Workspace

_JSON_NAMES = {"kind": "type"}


class ContextNotFoundError(FileNotFoundError):
    """Raised when no context has been saved yet."""


@dataclass
class Context:
    client: str = ""
    engagement: str = ""
    scope: str = ""
    operator: str = ""
    phase: str = ""
    timestamp: str = ""
    kind: str = ""  # "Client" or "Exam/Lab"

    def to_dict(self) -> dict[str, str]:
        return {_JSON_NAMES.get(f.name, f.name): getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Context:
        if not isinstance(data, dict):
            raise ValueError("context must be a JSON object")
        values = {}
        for f in fields(cls):
            value = data.get(_JSON_NAMES.get(f.name, f.name))
            if value is None:
                continue
            if not isinstance(value, str):
                raise ValueError(f"context field {f.name!r} must be a string")
            values[f.name] = value
        return cls(**values)


def save_context(workspace: Workspace, context: Context) -> None:
    """Make *context* the active one and append it to the history."""
    path = workspace.context_file
    path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
    path.write_text(json.dumps(context.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
    with open(path.parent / "history.jsonl", "a", encoding="utf-8") as history:
        history.write(json.dumps(context.to_dict(), separators=(",", ":"), ensure_ascii=False))
        history.write("\n")


def load_context(workspace: Workspace) -> Context:
    """Return the active context."""
    path = workspace.context_file
    if not path.exists():
        raise ContextNotFoundError("context file not found. Run 'pentlog create' first")
    return Context.from_dict(json.loads(path.read_text(encoding="utf-8")))


def load_history(workspace: Workspace) -> list[Context]:
    """Return every context ever saved, oldest first, skipping unreadable entries."""
    try:
        text = workspace.history_file.read_text(encoding="utf-8")
    except FileNotFoundError:
        return []
    history = []
    for line in text.splitlines():
        if not line.strip():
            continue
        try:
            history.append(Context.from_dict(json.loads(line)))
        except ValueError:
            continue
    return history