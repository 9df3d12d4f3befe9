"""A summary of recorded sessions, notes and findings."""

from __future__ import annotations

import io
import sys
from dataclasses import dataclass, field

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich import box

from pentlog.sessions import Session, list_sessions, read_notes
from pentlog.vulns import Vuln, VulnManager
from pentlog.workspace import Workspace

_RECENT = 5
_RENDER_WIDTH = 160


@dataclass
class Stats:
    total_sessions: int = 0
    total_size: int = 0
    unique_clients: int = 0
    unique_engagements: int = 0
    total_notes: int = 0
    recent_sessions: list[Session] = field(default_factory=list)
    phase_counts: dict[str, int] = field(default_factory=dict)
    engagement_counts: dict[str, int] = field(default_factory=dict)
    client_sizes: dict[str, int] = field(default_factory=dict)
    engagement_sizes: dict[str, int] = field(default_factory=dict)
    recent_vulns: list[Vuln] = field(default_factory=list)


def load_stats(workspace: Workspace) -> Stats:
    """Gather the dashboard figures from the session index and findings."""
    sessions = list_sessions(workspace)
    oldest_first = list(reversed(sessions))
    stats = Stats(total_sessions=len(sessions))

    for session in oldest_first:
        meta = session.metadata
        stats.total_size += session.size
        if meta.client:
            stats.client_sizes[meta.client] = stats.client_sizes.get(meta.client, 0) + session.size
        if meta.engagement:
            stats.engagement_counts[meta.engagement] = stats.engagement_counts.get(meta.engagement, 0) + 1
            stats.engagement_sizes[meta.engagement] = (
                stats.engagement_sizes.get(meta.engagement, 0) + session.size
            )
        if meta.phase:
            stats.phase_counts[meta.phase] = stats.phase_counts.get(meta.phase, 0) + 1
        if session.notes_path:
            try:
                stats.total_notes += len(read_notes(session.notes_path))
            except (OSError, ValueError):
                pass

    stats.unique_clients = len(stats.client_sizes)
    stats.unique_engagements = len(stats.engagement_counts)

    findings: list[Vuln] = []
    seen: set[tuple[str, str]] = set()
    for session in sessions:
        key = (session.metadata.client, session.metadata.engagement)
        if key in seen:
            continue
        seen.add(key)
        try:
            findings.extend(VulnManager(workspace, *key).list())
        except (OSError, ValueError):
            continue
    findings.sort(
        key=lambda v: v.created_at.timestamp() if v.created_at else float("-inf"), reverse=True
    )
    stats.recent_vulns = findings[:_RECENT]
    stats.recent_sessions = oldest_first[:_RECENT]
    return stats


def format_size(size: int) -> str:
    """Format a byte count with binary units, e.g. ``1.5 KB``."""
    unit = 1024
    if size < unit:
        return f"{size} B"
    divisor, exponent = unit, 0
    quotient = size // unit
    while quotient >= unit:
        divisor *= unit
        exponent += 1
        quotient //= unit
    return f"{size / divisor:.1f} {'KMGTPE'[exponent]}B"


def _section(title: str, lines: list[str]) -> Group:
    return Group(Text(title, style="bold underline"), *(Text("  " + line) for line in lines))


def _build(stats: Stats) -> Group:
    boxes = Table.grid(padding=(0, 1))
    figures = [
        ("Total Sessions", str(stats.total_sessions)),
        ("Total Notes", str(stats.total_notes)),
        ("Evidence Size", format_size(stats.total_size)),
        ("Clients", str(stats.unique_clients)),
        ("Engagements", str(stats.unique_engagements)),
    ]
    boxes.add_row(
        *(Panel(Text(f"{label}\n") + Text(value, style="bold green"), box=box.SQUARE)
          for label, value in figures)
    )

    phases = [
        f"{phase:<12} {'█' * count} {count}" for phase, count in sorted(stats.phase_counts.items())
    ]
    clients = [f"{c:<20} : {format_size(size)}" for c, size in sorted(stats.client_sizes.items())]
    engagements = [
        f"{e:<20} : {count} logs ({format_size(stats.engagement_sizes.get(e, 0))})"
        for e, count in sorted(stats.engagement_counts.items())
    ]
    middle = Table.grid(padding=(0, 4))
    middle.add_row(
        _section("Phase Distribution", phases),
        _section("Client Data", clients),
        _section("Engagement Logs", engagements),
    )

    recent = [
        f"[{s.id}] {s.metadata.client} / {s.metadata.phase} ({s.mod_time})"
        for s in stats.recent_sessions
    ]
    findings = []
    for vuln in stats.recent_vulns:
        title = vuln.title if len(vuln.title) <= 40 else vuln.title[:37] + "..."
        severity = getattr(vuln.severity, "value", vuln.severity)
        status = getattr(vuln.status, "value", vuln.status)
        findings.append(f"[{severity}] {title} ({status})")
    if not findings:
        findings = ["No vulnerabilities found."]
    bottom = Table.grid(padding=(0, 4))
    bottom.add_row(_section("Recent Sessions", recent), _section("Recent Findings", findings))

    content = Group(boxes, Text(""), middle, Text(""), bottom, Text("\nPress 'q' to quit.", style="dim"))
    return Group(
        Text(" Pentlog Dashboard ", style="bold #FFF7DB on blue"),
        Panel(content, box=box.ROUNDED, padding=(1, 2)),
    )


def render_dashboard(stats: Stats) -> str:
    """Return the dashboard as plain text."""
    console = Console(file=io.StringIO(), width=_RENDER_WIDTH, color_system=None, highlight=False)
    with console.capture() as capture:
        console.print(_build(stats))
    return capture.get()


def show_dashboard(workspace: Workspace) -> None:
    """Print the dashboard and wait until the user quits."""
    console = Console(highlight=False)
    try:
        stats = load_stats(workspace)
    except Exception as error:  # shown like the interactive view shows load errors
        console.print(f"Error: {error}")
        return
    console.print(_build(stats))
    for line in sys.stdin:
        if line.strip() in ("q", "esc", ""):
            break