import json
from datetime import datetime, timedelta

import pytest

from pentlog.dashboard import Stats, format_size, load_stats, render_dashboard
from pentlog.sessions import SessionNote, append_note
from pentlog.vulns import Severity, Status, Vuln, VulnManager
from pentlog.workspace import Workspace


@pytest.fixture
def workspace(tmp_path):
    ws = Workspace(tmp_path / ".pentlog")
    base = datetime.now().astimezone().replace(microsecond=0)
    for name, client, phase, offset, body in (
        ("old", "acme", "recon", 2, b"aaaa"),
        ("new", "beta", "exploit", 1, b"bbbbbbbb"),
    ):
        directory = ws.logs_dir / client / "q1" / phase
        directory.mkdir(parents=True)
        (directory / f"{name}.tty").write_bytes(body)
        stamp = (base - timedelta(hours=offset)).isoformat()
        (directory / f"{name}.json").write_text(
            json.dumps({"client": client, "engagement": "q1", "phase": phase, "timestamp": stamp})
        )
    append_note(str(ws.logs_dir / "acme" / "q1" / "recon" / "old.notes.json"),
                SessionNote("t", "first", 1))
    yield ws
    ws.close()


def test_format_size():
    assert format_size(512) == "512 B"
    assert format_size(1024) == "1.0 KB"
    assert format_size(1024 * 1024) == "1.0 MB"


def test_load_stats(workspace):
    stats = load_stats(workspace)
    assert stats.total_sessions == 2
    assert stats.total_size == len(b"aaaa") + len(b"bbbbbbbb")
    assert stats.unique_clients == 2
    assert stats.unique_engagements == 1
    assert stats.total_notes == 1
    assert stats.phase_counts == {"recon": 1, "exploit": 1}
    assert stats.engagement_counts == {"q1": 2}
    assert [s.metadata.client for s in stats.recent_sessions] == ["acme", "beta"]
    assert stats.recent_vulns == []


def test_load_stats_collects_vulns(workspace):
    VulnManager(workspace, "acme", "q1").save(
        Vuln(id="vuln-001", title="Weak auth", severity=Severity.HIGH, status=Status.OPEN)
    )
    stats = load_stats(workspace)
    assert [v.id for v in stats.recent_vulns] == ["vuln-001"]
    text = render_dashboard(stats)
    assert "[High] Weak auth (Open)" in text


def test_render_empty_and_full(workspace):
    empty = render_dashboard(Stats())
    assert "Pentlog Dashboard" in empty
    assert "No vulnerabilities found." in empty
    text = render_dashboard(load_stats(workspace))
    assert "recon" in text and "exploit" in text
    assert "Press 'q' to quit." in text


def test_long_titles_are_truncated():
    title = "x" * 50
    stats = Stats(recent_vulns=[Vuln(id="v", title=title)])
    text = render_dashboard(stats)
    assert "x" * 37 + "..." in text
    assert title not in text