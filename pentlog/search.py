"""Searching recorded sessions and their notes."""

from __future__ import annotations

import io
import itertools
import os
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, Iterator

from pentlog.ansi import strip_ansi
from pentlog.sessions import Session, _parse_rfc3339, list_sessions, read_notes
from pentlog.ttyrec import TtyTextReader
from pentlog.workspace import Workspace

Matcher = Callable[[str], bool]


@dataclass
class Match:
    session: Session
    line_num: int
    content: str
    context: list[str] = field(default_factory=list)
    is_note: bool = False


@dataclass
class SearchOptions:
    after: datetime | None = None
    before: datetime | None = None
    is_regex: bool = False
    limit: int = 0
    offset: int = 0


@dataclass(frozen=True)
class _Term:
    text: str
    negated: bool


def create_boolean_matcher(query: str) -> Matcher:
    """Build a case-insensitive matcher for *query*.

    Words must all occur, ``-word`` must not occur, and groups separated by
    ``OR`` are alternatives.
    """
    normalised = " ".join(query.split())
    groups = []
    for group in normalised.split(" OR "):
        terms = []
        for word in group.split():
            if word.startswith("-") and len(word) > 1:
                terms.append(_Term(word[1:].lower(), True))
            else:
                terms.append(_Term(word.lower(), False))
        groups.append(terms)

    def matches(text: str) -> bool:
        lowered = text.lower()
        return any(
            all((term.text in lowered) != term.negated for term in group) for group in groups
        )

    return matches


def _aware(moment: datetime | None) -> datetime | None:
    if moment is not None and moment.tzinfo is None:
        return moment.astimezone()
    return moment


def _in_window(session: Session, options: SearchOptions) -> bool:
    moment = _aware(_parse_rfc3339(session.metadata.timestamp) or session.sort_key)
    after = _aware(options.after)
    before = _aware(options.before)
    if after is not None and (moment is None or moment < after):
        return False
    if before is not None and moment is not None and moment > before:
        return False
    return True


def _read_lines(path: str) -> list[str]:
    """Return the lines of the recording at *path* with escapes resolved."""
    try:
        handle = open(path, "rb")
    except OSError:
        return []
    lines: list[str] = []
    with handle:
        source = io.BufferedReader(TtyTextReader(handle)) if path.endswith(".tty") else handle
        try:
            for raw in source:
                raw = raw.removesuffix(b"\n").removesuffix(b"\r")
                lines.append(strip_ansi(raw.decode("utf-8", "replace")))
        except (EOFError, OSError):
            pass
    return lines


def _session_hits(session: Session, matcher: Matcher) -> Iterator[Match]:
    if session.path:
        lines = _read_lines(session.path)
        for index, line in enumerate(lines):
            if matcher(line):
                yield Match(
                    session=session,
                    line_num=index + 1,
                    content=line,
                    context=lines[max(0, index - 2):index + 3],
                )
    if session.notes_path:
        try:
            notes = read_notes(session.notes_path)
        except (OSError, ValueError):
            notes = []
        for note in notes:
            if matcher(note.content):
                yield Match(
                    session=session,
                    line_num=note.byte_offset,
                    content=f"[{note.timestamp}] {note.content}",
                    is_note=True,
                )


def search(
    workspace: Workspace,
    query: str,
    scope_sessions: Iterable[Session] | None = None,
    options: SearchOptions | None = None,
) -> list[Match]:
    """Find lines and notes matching *query* in the given or all sessions."""
    options = options or SearchOptions()
    sessions = list(scope_sessions or ())
    if not sessions:
        sessions = list_sessions(workspace)

    if options.is_regex:
        try:
            pattern = re.compile(query)
        except re.error as error:
            raise ValueError(f"invalid regex query: {error}") from error
        matcher: Matcher = lambda text: pattern.search(text) is not None
    else:
        matcher = create_boolean_matcher(query)

    hits = (
        hit
        for session in sessions
        if _in_window(session, options)
        for hit in _session_hits(session, matcher)
    )
    start = max(0, options.offset)
    stop = start + options.limit if options.limit > 0 else None
    return list(itertools.islice(hits, start, stop))


def _basename(session: Session) -> str:
    return os.path.basename(session.path)