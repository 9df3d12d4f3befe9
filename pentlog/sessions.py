"""Recorded terminal sessions: the session index, their metadata and operator notes."""

from __future__ import annotations

import json
import os
import re
import stat
import sys
from dataclasses import dataclass, field, fields
from datetime import datetime, timedelta, timezone
from typing import Any, Iterator

from pentlog.workspace import Workspace

_DISPLAY_FORMAT = "%Y-%m-%d %H:%M:%S"
_RFC3339 = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})$"
)
_COLUMNS = (
    "client, engagement, scope, operator, phase, timestamp, filename, relative_path, size"
)
_INSERT = f"INSERT INTO sessions ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)"
_IMPORT_FLAG = "legacy_import_complete"


class SessionNotFoundError(LookupError):
    """Raised when no session has the requested identifier."""


def _parse_rfc3339(value: str) -> datetime | None:
    """Parse an RFC 3339 timestamp; return None when *value* is not one."""
    match = _RFC3339.match(value or "")
    if not match:
        return None
    year, month, day, hour, minute, second, fraction, offset = match.groups()
    if offset == "Z":
        tz = timezone.utc
    else:
        sign = 1 if offset[0] == "+" else -1
        tz = timezone(sign * timedelta(hours=int(offset[1:3]), minutes=int(offset[4:6])))
    micro = int((fraction or "0")[:6].ljust(6, "0"))
    try:
        return datetime(
            int(year), int(month), int(day), int(hour), int(minute), int(second), micro, tzinfo=tz
        )
    except ValueError:
        return None


def _format_rfc3339(moment: datetime) -> str:
    text = moment.isoformat(timespec="seconds")
    return text[:-6] + "Z" if text.endswith("+00:00") else text


def _local_mtime(info: os.stat_result) -> datetime:
    return datetime.fromtimestamp(info.st_mtime).astimezone()


def _strings_from_json(cls, data: Any, types: dict[str, type]) -> dict[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{cls.__name__} must be a JSON object")
    values = {}
    for name, kind in types.items():
        value = data.get(name)
        if value is None:
            continue
        if not isinstance(value, kind) or isinstance(value, bool):
            raise ValueError(f"{cls.__name__} field {name!r} has the wrong type")
        values[name] = value
    return values


@dataclass
class SessionMetadata:
    client: str = ""
    engagement: str = ""
    scope: str = ""
    operator: str = ""
    phase: str = ""
    timestamp: str = ""

    def to_dict(self) -> dict[str, str]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Any) -> SessionMetadata:
        return cls(**_strings_from_json(cls, data, {f.name: str for f in fields(cls)}))


@dataclass
class SessionNote:
    timestamp: str = ""
    content: str = ""
    byte_offset: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"timestamp": self.timestamp, "content": self.content, "byte_offset": self.byte_offset}

    @classmethod
    def from_dict(cls, data: Any) -> SessionNote:
        types = {"timestamp": str, "content": str, "byte_offset": int}
        return cls(**_strings_from_json(cls, data, types))


@dataclass
class Session:
    id: int = 0
    filename: str = ""
    path: str = ""
    display_path: str = ""
    meta_path: str = ""
    notes_path: str = ""
    mod_time: str = ""
    size: int = 0
    metadata: SessionMetadata = field(default_factory=SessionMetadata)
    sort_key: datetime | None = None


def _session_from_row(root: str, session_id: int, row: tuple) -> Session:
    if session_id is None or any(value is None for value in row):
        raise ValueError(f"session {session_id} has an empty column")
    client, engagement, scope, operator, phase, timestamp, filename, rel_path, size = row
    path = os.path.join(root, rel_path)
    session = Session(
        id=session_id,
        filename=filename,
        path=path,
        display_path=rel_path,
        meta_path=path.replace(".tty", ".json", 1),
        notes_path=path.replace(".tty", ".notes.json", 1),
        size=size,
        metadata=SessionMetadata(client, engagement, scope, operator, phase, timestamp),
    )
    parsed = _parse_rfc3339(timestamp)
    if parsed is not None:
        session.mod_time = parsed.strftime(_DISPLAY_FORMAT)
        session.sort_key = parsed
    else:
        session.mod_time = timestamp
    return session


def list_sessions(workspace: Workspace) -> list[Session]:
    """Return every indexed session, newest first."""
    return list_sessions_paginated(workspace, -1, 0)


def list_sessions_paginated(workspace: Workspace, limit: int, offset: int) -> list[Session]:
    """Return indexed sessions, newest first; a negative *limit* returns them all.

    The first call imports sessions recorded before the index existed.
    """
    database = workspace.database()
    flag = database.execute(
        "SELECT value FROM schema_info WHERE key = ?", (_IMPORT_FLAG,)
    ).fetchone()
    if flag is None or flag[0] != "true":
        sync_sessions(workspace)

    query = f"SELECT id, {_COLUMNS} FROM sessions ORDER BY timestamp DESC"
    params: tuple = ()
    if limit >= 0:
        query += " LIMIT ? OFFSET ?"
        params = (limit, offset)

    root = str(workspace.logs_dir)
    sessions = []
    for session_id, *row in database.execute(query, params):
        try:
            session = _session_from_row(root, session_id, tuple(row))
        except ValueError:
            continue
        if not os.path.exists(session.path):
            print(
                f"WARNING: Session {session_id} references missing file: {session.path}",
                file=sys.stderr,
            )
        sessions.append(session)
    return sessions


def get_session(workspace: Workspace, session_id: int) -> Session:
    """Return the session with *session_id*."""
    row = workspace.database().execute(
        f"SELECT {_COLUMNS} FROM sessions WHERE id = ?", (session_id,)
    ).fetchone()
    if row is None:
        raise SessionNotFoundError(f"session ID {session_id} not found")
    return _session_from_row(str(workspace.logs_dir), session_id, tuple(row))


def _walk_files(directory: str) -> Iterator[os.DirEntry]:
    """Yield the files below *directory* depth first, in lexical order."""
    try:
        with os.scandir(directory) as iterator:
            entries = sorted(iterator, key=lambda entry: entry.name)
    except OSError:
        return
    for entry in entries:
        try:
            is_dir = entry.is_dir(follow_symlinks=False)
        except OSError:
            continue
        if is_dir:
            yield from _walk_files(entry.path)
        else:
            yield entry


def sync_sessions(workspace: Workspace) -> None:
    """Index every recording under the logs directory that is not indexed yet."""
    root = str(workspace.logs_dir)
    database = workspace.database()

    print("Detected legacy session storage (JSON).")
    print("Migrating session metadata to the new database...")

    seen_contexts: set[str] = set()
    for entry in _walk_files(root):
        if not entry.path.endswith(".tty"):
            continue
        rel_path = os.path.relpath(entry.path, root)
        known = database.execute(
            "SELECT id FROM sessions WHERE relative_path = ?", (rel_path,)
        ).fetchone()
        if known is not None:
            continue

        try:
            info: os.stat_result | None = entry.stat(follow_symlinks=False)
        except OSError:
            info = None

        try:
            meta = load_metadata(entry.path.replace(".tty", ".json", 1))
        except (OSError, ValueError):
            moment = _local_mtime(info) if info else datetime.now().astimezone()
            meta = SessionMetadata(
                client="Unknown", phase="Unknown", timestamp=_format_rfc3339(moment)
            )

        database.execute(
            _INSERT,
            (
                meta.client,
                meta.engagement,
                meta.scope,
                meta.operator,
                meta.phase,
                meta.timestamp,
                entry.name,
                rel_path,
                info.st_size if info else 0,
            ),
        )
        context_key = f"{meta.client}/{meta.engagement}/{meta.phase}"
        if context_key not in seen_contexts:
            print(f" [+] Migrating context: {context_key}")
            seen_contexts.add(context_key)

    print(" [✓] Migration complete.")
    print("-" * 50)

    database.execute(
        "INSERT OR REPLACE INTO schema_info (key, value) VALUES (?, 'true')", (_IMPORT_FLAG,)
    )


def add_session_to_db(
    workspace: Workspace, meta: SessionMetadata, abs_log_path: str | os.PathLike[str]
) -> None:
    """Index a new recording at *abs_log_path* described by *meta*."""
    database = workspace.database()
    rel_path = os.path.relpath(abs_log_path, workspace.logs_dir)
    database.execute(
        _INSERT,
        (
            meta.client,
            meta.engagement,
            meta.scope,
            meta.operator,
            meta.phase,
            meta.timestamp,
            os.path.basename(abs_log_path),
            rel_path,
            0,
        ),
    )


def load_metadata(path: str | os.PathLike[str]) -> SessionMetadata:
    """Read the metadata JSON document at *path*."""
    with open(path, encoding="utf-8") as handle:
        text = handle.read()
    stripped = text.lstrip()
    if not stripped:
        raise ValueError(f"{path} is empty")
    value, _ = json.JSONDecoder().raw_decode(stripped)
    return SessionMetadata.from_dict(value)


def append_note(notes_path: str | os.PathLike[str], note: SessionNote) -> None:
    """Add *note* to the notes file, creating it when needed."""
    notes: list[SessionNote] = []
    if os.path.exists(notes_path):
        try:
            notes = read_notes(notes_path)
        except (OSError, ValueError):
            notes = []
    notes.append(note)
    os.makedirs(os.path.dirname(os.path.abspath(notes_path)), mode=0o700, exist_ok=True)
    with open(notes_path, "w", encoding="utf-8") as handle:
        json.dump([item.to_dict() for item in notes], handle, indent=2, ensure_ascii=False)


def read_notes(notes_path: str | os.PathLike[str]) -> list[SessionNote]:
    """Return the notes in *notes_path*; a missing file holds none."""
    try:
        with open(notes_path, encoding="utf-8") as handle:
            data = json.load(handle)
    except FileNotFoundError:
        return []
    if data is None:
        return []
    if not isinstance(data, list):
        raise ValueError(f"{notes_path} does not hold a list of notes")
    return [SessionNote.from_dict(item) for item in data]


def _extension(name: str) -> str:
    dot = name.rfind(".")
    return name[dot:] if dot >= 0 else ""


def _sort_value(session: Session) -> float:
    return session.sort_key.timestamp() if session.sort_key else float("-inf")


def scan_sessions_from_dir(root_dir: str | os.PathLike[str]) -> list[Session]:
    """Find recordings under *root_dir* without the index, oldest first."""
    root = str(root_dir)
    try:
        info = os.stat(root)
    except FileNotFoundError:
        return []
    if not stat.S_ISDIR(info.st_mode):
        return []

    found: dict[str, Session] = {}
    for entry in _walk_files(root):
        path = entry.path
        if path.endswith(".notes.json"):
            found.setdefault(path[: -len(".notes.json")], Session()).notes_path = path
            continue

        ext = _extension(entry.name)
        session = found.setdefault(path[: len(path) - len(ext)], Session())
        if ext == ".tty":
            session.filename = entry.name
            session.path = path
            session.display_path = os.path.relpath(path, root)
            try:
                file_info = entry.stat(follow_symlinks=False)
            except OSError:
                continue
            moment = _local_mtime(file_info)
            session.mod_time = moment.strftime(_DISPLAY_FORMAT)
            session.size = file_info.st_size
            session.sort_key = moment
        elif ext == ".json":
            session.meta_path = path
            try:
                session.metadata = load_metadata(path)
            except (OSError, ValueError):
                continue
            parsed = _parse_rfc3339(session.metadata.timestamp)
            if parsed is not None:
                session.mod_time = parsed.strftime(_DISPLAY_FORMAT)
                session.sort_key = parsed

    sessions = []
    for base, session in sorted(found.items()):
        if not session.path:
            continue
        if not session.filename:
            session.filename = os.path.basename(base) + ".tty"
        if not session.display_path:
            session.display_path = os.path.relpath(session.path, root)
        sessions.append(session)

    sessions.sort(key=_sort_value)
    for number, session in enumerate(sessions, 1):
        session.id = number
    return sessions