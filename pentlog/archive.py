"""Packing finished sessions into per-client ZIP archives."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable

from pentlog.aeszip import ZipArchiveWriter
from pentlog.sessions import Session, _parse_rfc3339, list_sessions
from pentlog.slug import slugify
from pentlog.workspace import Workspace


class ArchiveError(OSError):
    """Raised when an archive cannot be written."""


@dataclass
class ArchiveItem:
    client: str
    filename: str
    path: str
    display_path: str
    size: int
    mod_time: datetime


def _session_time(session: Session) -> datetime | None:
    moment = _parse_rfc3339(session.metadata.timestamp) or session.sort_key
    if moment is not None and moment.tzinfo is None:
        moment = moment.astimezone()
    return moment


def get_sessions_to_archive(
    workspace: Workspace,
    client_name: str,
    engagement: str = "",
    phase: str = "",
    older_than: timedelta | None = None,
) -> list[Session]:
    """Return the client's sessions matching the filters and at least *older_than* old."""
    now = datetime.now(timezone.utc)
    selected = []
    for session in list_sessions(workspace):
        meta = session.metadata
        if meta.client != client_name:
            continue
        if engagement and meta.engagement != engagement:
            continue
        if phase and meta.phase != phase:
            continue
        if older_than and older_than > timedelta(0):
            moment = _session_time(session)
            if moment is not None and now - moment < older_than:
                continue
        selected.append(session)
    return selected


def archive_sessions(
    workspace: Workspace,
    client_name: str,
    engagement: str = "",
    phase: str = "",
    older_than: timedelta | None = None,
    delete_originals: bool = False,
    password: str = "",
) -> int:
    """Archive the matching sessions and return how many were archived."""
    selected = get_sessions_to_archive(workspace, client_name, engagement, phase, older_than)
    return archive_sessions_from_list(
        workspace, selected, client_name, delete_originals, None, password
    )


def _inside(base: str, path: str) -> str | None:
    try:
        relative = os.path.relpath(path, base)
    except ValueError:
        return None
    return None if relative.startswith("..") else relative


def archive_sessions_from_list(
    workspace: Workspace,
    to_archive: Iterable[Session],
    client_name: str,
    delete_originals: bool = False,
    extra_files: Iterable[str] | None = None,
    password: str = "",
) -> int:
    """Write *to_archive* and *extra_files* into a new archive; return the session count."""
    sessions = list(to_archive)
    if not sessions:
        return 0
    client_dir = workspace.archive_dir / client_name
    try:
        client_dir.mkdir(parents=True, exist_ok=True)
    except OSError as error:
        raise ArchiveError(f"failed to create archive dir: {error}") from error

    archive_path = client_dir / f"{datetime.now().strftime('%Y%m%d-%H%M%S')}.zip"
    logs_dir = str(workspace.logs_dir)
    reports_dir = str(workspace.reports_dir)
    to_delete: list[str] = []

    try:
        writer = ZipArchiveWriter(archive_path)
    except OSError as error:
        raise ArchiveError(f"failed to create archive file: {error}") from error

    def add(path: str, target: str, label: str) -> None:
        try:
            with open(path, "rb") as handle:
                writer.add(target, handle.read(), password or None)
        except OSError as error:
            writer.close()
            archive_path.unlink(missing_ok=True)
            raise ArchiveError(f"failed to add {label}{path} to archive: {error}") from error

    for session in sessions:
        timing = os.path.splitext(session.path)[0] + ".timing"
        if delete_originals and os.path.exists(timing):
            to_delete.append(timing)
        for path in (session.path, session.meta_path, session.notes_path):
            if not path:
                continue
            relative = _inside(logs_dir, path)
            target = os.path.join("logs", relative or os.path.basename(path))
            if not os.path.exists(path):
                continue
            add(path, target, "file ")
            if delete_originals:
                to_delete.append(path)

    for extra in extra_files or ():
        relative = _inside(reports_dir, extra)
        if relative is not None:
            target = os.path.join("reports", relative)
        else:
            parent = os.path.basename(os.path.dirname(extra))
            target = os.path.join("reports", slugify(parent), os.path.basename(extra))
        add(extra, target, "extra file ")

    writer.close()

    for path in to_delete:
        try:
            os.remove(path)
        except OSError:
            pass
    return len(sessions)


def list_archives(workspace: Workspace) -> list[ArchiveItem]:
    """Return every archive file, grouped by client directory."""
    root = workspace.archive_dir
    try:
        clients = sorted(root.iterdir())
    except FileNotFoundError:
        return []
    items = []
    for client_dir in clients:
        if not client_dir.is_dir():
            continue
        try:
            files = sorted(client_dir.iterdir())
        except OSError:
            continue
        for entry in files:
            if entry.is_dir() or not entry.name.endswith((".tar.gz", ".zip")):
                continue
            try:
                info = entry.stat()
            except OSError:
                continue
            items.append(
                ArchiveItem(
                    client=client_dir.name,
                    filename=entry.name,
                    path=str(entry),
                    display_path=f"{client_dir.name}/{entry.name}",
                    size=info.st_size,
                    mod_time=datetime.fromtimestamp(info.st_mtime),
                )
            )
    return items