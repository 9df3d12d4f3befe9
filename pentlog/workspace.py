"""The per-user pentlog directory and the session database kept inside it."""

from __future__ import annotations

import os
import sqlite3
from pathlib import Path

_SCHEMA = """
CREATE TABLE IF NOT EXISTS sessions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    client TEXT NOT NULL,
    engagement TEXT NOT NULL,
    scope TEXT,
    operator TEXT,
    phase TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    filename TEXT NOT NULL,
    relative_path TEXT NOT NULL,
    notes_path TEXT,
    size INTEGER DEFAULT 0,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_sessions_client ON sessions(client);
CREATE INDEX IF NOT EXISTS idx_sessions_engagement ON sessions(engagement);
CREATE INDEX IF NOT EXISTS idx_sessions_timestamp ON sessions(timestamp);

CREATE TABLE IF NOT EXISTS schema_info (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""


class Workspace:
    """Locations of logs, archives, reports and state under one root directory."""

    def __init__(self, root: str | os.PathLike[str]) -> None:
        self.root = Path(root)
        self._connection: sqlite3.Connection | None = None

    @classmethod
    def for_home(cls, home: str | os.PathLike[str] | None = None) -> Workspace:
        """Return the workspace in ``<home>/.pentlog``.

        Without *home*, ``PENTLOG_TEST_HOME`` is used when set, otherwise the
        user's home directory.
        """
        if home is None:
            home = os.environ.get("PENTLOG_TEST_HOME") or Path.home()
        return cls(Path(home) / ".pentlog")

    @property
    def logs_dir(self) -> Path:
        return self.root / "logs"

    @property
    def archive_dir(self) -> Path:
        return self.root / "archive"

    @property
    def reports_dir(self) -> Path:
        return self.root / "reports"

    @property
    def vulns_dir(self) -> Path:
        return self.root / "vulns"

    @property
    def context_file(self) -> Path:
        return self.root / "context.json"

    @property
    def history_file(self) -> Path:
        return self.root / "history.jsonl"

    @property
    def db_path(self) -> Path:
        return self.root / "pentlog.db"

    def database(self) -> sqlite3.Connection:
        """Return the open session database, creating it on first use."""
        if self._connection is None:
            self._connection = self._open()
        return self._connection

    def _open(self) -> sqlite3.Connection:
        self.root.mkdir(mode=0o700, parents=True, exist_ok=True)
        connection = sqlite3.connect(self.db_path, isolation_level=None)
        try:
            connection.execute("SELECT 1")
            os.chmod(self.db_path, 0o600)
            connection.executescript(_SCHEMA)
        except BaseException:
            connection.close()
            raise
        return connection

    def close(self) -> None:
        """Close the database connection if one is open."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    def __enter__(self) -> Workspace:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()