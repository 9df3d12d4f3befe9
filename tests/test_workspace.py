import os
import stat

import pytest

from pentlog.workspace import Workspace


@pytest.fixture
def workspace(tmp_path):
    ws = Workspace.for_home(tmp_path)
    yield ws
    ws.close()


def test_for_home_places_root_under_dot_pentlog(tmp_path):
    ws = Workspace.for_home(tmp_path)
    assert ws.root == tmp_path / ".pentlog"
    assert ws.logs_dir == tmp_path / ".pentlog" / "logs"
    assert ws.db_path.name == "pentlog.db"


def test_for_home_uses_test_home_variable(tmp_path, monkeypatch):
    monkeypatch.setenv("PENTLOG_TEST_HOME", str(tmp_path))
    assert Workspace.for_home().root == tmp_path / ".pentlog"


def test_database_creates_schema(workspace):
    connection = workspace.database()
    names = {
        row[0]
        for row in connection.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
    }
    assert {"sessions", "schema_info"} <= names


def test_database_file_is_private(workspace):
    workspace.database()
    mode = stat.S_IMODE(os.stat(workspace.db_path).st_mode)
    assert mode == 0o600


def test_database_is_reused_until_closed(workspace):
    first = workspace.database()
    assert workspace.database() is first
    workspace.close()
    second = workspace.database()
    assert second is not first
    assert second.execute("SELECT 1").fetchone() == (1,)


def test_session_size_defaults_to_zero(workspace):
    connection = workspace.database()
    connection.execute(
        "INSERT INTO sessions (client, engagement, phase, timestamp, filename, relative_path)"
        " VALUES ('c', 'e', 'p', 't', 'f.tty', 'c/e/p/f.tty')"
    )
    assert connection.execute("SELECT size FROM sessions").fetchone() == (0,)


def test_data_survives_reopen(tmp_path):
    with Workspace.for_home(tmp_path) as ws:
        ws.database().execute(
            "INSERT INTO schema_info (key, value) VALUES ('legacy_import_complete', 'true')"
        )
    with Workspace.for_home(tmp_path) as ws:
        row = ws.database().execute(
            "SELECT value FROM schema_info WHERE key = 'legacy_import_complete'"
        ).fetchone()
    assert row == ("true",)