"""Markdown and HTML reports of the terminal output of recorded sessions."""

from __future__ import annotations

from typing import BinaryIO, Iterable

from pentlog.ansi import clean_tui_markers, render_ansi_html, render_plain
from pentlog.sessions import Session, list_sessions
from pentlog.ttyrec import TtyTextReader
from pentlog.workspace import Workspace

_FENCE = "`" * 3

_PALETTE = {
    "black": ("#000000", "#666666"),
    "red": ("#cd3131", "#f14c4c"),
    "green": ("#0dbc79", "#23d18b"),
    "yellow": ("#e5e510", "#f5f543"),
    "blue": ("#2472c8", "#3b8eea"),
    "magenta": ("#bc3fbc", "#d670d6"),
    "cyan": ("#11a8cd", "#29b8db"),
    "white": ("#e5e5e5", "#ffffff"),
}

_LAYOUT_RULES: list[tuple[str, dict[str, str]]] = [
    (
        "body",
        {
            "background-color": "#1e1e1e",
            "color": "#d4d4d4",
            "font-family": "'Courier New', Courier, monospace",
            "padding": "20px",
        },
    ),
    ("h1", {"color": "#569cd6", "border-bottom": "2px solid #569cd6", "padding-bottom": "10px"}),
    (
        "h2",
        {
            "color": "#4ec9b0",
            "margin-top": "40px",
            "border-bottom": "1px solid #444",
            "padding-bottom": "5px",
        },
    ),
    ("h3", {"color": "#dcdcaa", "margin-top": "30px"}),
    ("h4", {"color": "#9cdcfe", "margin-top": "20px", "font-size": "1.1em"}),
    (
        ".session",
        {
            "background-color": "#252526",
            "padding": "15px",
            "border-radius": "5px",
            "margin-bottom": "20px",
            "box-shadow": "0 4px 6px rgba(0, 0, 0, 0.3)",
        },
    ),
    (
        ".log-content",
        {
            "white-space": "pre-wrap",
            "word-wrap": "break-word",
            "font-size": "14px",
            "line-height": "1.5",
            "max-height": "600px",
            "overflow-y": "auto",
        },
    ),
    (
        ".ai-content",
        {
            "white-space": "normal",
            "word-wrap": "break-word",
            "font-size": "14px",
            "line-height": "1.6",
            "color": "#dcdcaa",
            "font-family": '-apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, '
            "Helvetica, Arial, sans-serif",
        },
    ),
]

_SCROLLBAR_RULES: list[tuple[str, dict[str, str]]] = [
    ("::-webkit-scrollbar", {"width": "10px", "height": "10px"}),
    ("::-webkit-scrollbar-track", {"background": "#1e1e1e"}),
    ("::-webkit-scrollbar-thumb", {"background": "#444", "border-radius": "5px"}),
    ("::-webkit-scrollbar-thumb:hover", {"background": "#555"}),
]


def _css_rule(selector: str, declarations: dict[str, str]) -> str:
    body = "".join(f"            {name}: {value};\n" for name, value in declarations.items())
    return f"        {selector} {{\n{body}        }}\n"


def _stylesheet() -> str:
    colour_rules = [(".ansi-bold", {"font-weight": "bold"})]
    colour_rules += [(f".ansi-{name}", {"color": normal}) for name, (normal, _) in _PALETTE.items()]
    colour_rules += [
        (f".ansi-bright-{name}", {"color": bright}) for name, (_, bright) in _PALETTE.items()
    ]
    sections = [
        ("", _LAYOUT_RULES),
        ("        /* ANSI Colors */\n", colour_rules),
        ("        /* Custom Scrollbar */\n", _SCROLLBAR_RULES),
    ]
    return "\n".join(
        heading + "".join(_css_rule(selector, rules) for selector, rules in block)
        for heading, block in sections
    )


def _html_head() -> str:
    return (
        "<!DOCTYPE html>\n"
        '<html lang="en">\n'
        "<head>\n"
        '    <meta charset="UTF-8">\n'
        '    <meta name="viewport" content="width=device-width, initial-scale=1.0">\n'
        "    <title>Pentlog Export Report</title>\n"
        "    <style>\n"
        f"{_stylesheet()}"
        "    </style>\n"
        "</head>\n"
        "<body>\n"
    )


class ReportError(ValueError):
    """Raised when there is nothing to put in a report."""


def filter_sessions(
    sessions: Iterable[Session], client: str, engagement: str, phase: str
) -> list[Session]:
    """Keep the sessions matching every non-empty criterion.

    The phase is compared without regard to case or surrounding space.
    """
    wanted_phase = phase.lower().strip()
    return [
        session
        for session in sessions
        if (not client or session.metadata.client == client)
        and (not engagement or session.metadata.engagement == engagement)
        and (not phase or session.metadata.phase.lower().strip() == wanted_phase)
    ]


def _grouped(sessions: Iterable[Session]) -> list[tuple[str, list[tuple[str, list[Session]]]]]:
    """Group by engagement then phase, both sorted, sessions ordered by id."""
    groups: dict[str, dict[str, list[Session]]] = {}
    for session in sessions:
        phases = groups.setdefault(session.metadata.engagement, {})
        phases.setdefault(session.metadata.phase, []).append(session)
    return [
        (
            engagement,
            [
                (phase, sorted(members, key=lambda s: s.id))
                for phase, members in sorted(phases.items())
            ],
        )
        for engagement, phases in sorted(groups.items())
    ]


def _open_log(path: str) -> BinaryIO | None:
    try:
        return open(path, "rb")
    except OSError:
        return None


def _read_lines(handle: BinaryIO, path: str) -> list[str] | None:
    """Read the recorded output, without TUI blocks, split into raw lines."""
    with handle:
        try:
            data = TtyTextReader(handle).readall() if path.endswith(".tty") else handle.read()
        except (OSError, EOFError):
            return None
    return clean_tui_markers(data or b"").decode("utf-8", "replace").split("\n")


def generate_report(sessions: Iterable[Session], client: str) -> str:
    """Return a Markdown document with the plain output of *sessions*."""
    sessions = list(sessions)
    if not sessions:
        raise ReportError("no sessions to report")

    parts = [f"# Report for Client {client}\n\n"]
    for engagement, phases in _grouped(sessions):
        parts.append(f"## Engagement: {engagement}\n")
        parts.append("-" * 51 + "\n\n")
        for phase, members in phases:
            parts.append(f"### Phase: {phase}\n")
            parts.append("-" * 20 + "\n\n")
            for session in members:
                handle = _open_log(session.path)
                if handle is None:
                    continue
                lines = _read_lines(handle, session.path)
                if lines is None:
                    continue
                parts.append(f"#### Session {session.id} ({session.mod_time})\n")
                parts.append(f"{_FENCE}bash\n")
                parts.extend(render_plain(line) + "\n" for line in lines)
                parts.append(f"\n{_FENCE}\n\n")
    return "".join(parts)


def generate_html_report(sessions: Iterable[Session], client: str) -> str:
    """Return an HTML document with the coloured output of *sessions*."""
    sessions = list(sessions)
    if not sessions:
        raise ReportError("no sessions to report")

    parts = [_html_head(), f"    <h1>Report for Client: {client}</h1>\n"]
    for engagement, phases in _grouped(sessions):
        parts.append(f"    <h2>Engagement: {engagement}</h2>\n")
        for phase, members in phases:
            parts.append(f"    <h3>Phase: {phase}</h3>\n")
            for session in members:
                handle = _open_log(session.path)
                if handle is None:
                    continue
                parts.append('    <div class="session">\n')
                parts.append(f"        <h4>Session {session.id} ({session.mod_time})</h4>\n")
                parts.append('        <div class="log-content">\n')
                lines = _read_lines(handle, session.path)
                if lines is None:
                    continue
                parts.extend(render_ansi_html(line) + "\n" for line in lines)
                parts.append("\n        </div>\n")
                parts.append("    </div>\n")
    parts.append("</body>\n</html>")
    return "".join(parts)


def _matching(workspace: Workspace, client: str, engagement: str, phase: str) -> list[Session]:
    found = filter_sessions(list_sessions(workspace), client, engagement, phase)
    if not found:
        raise ReportError("no sessions found matching criteria")
    return found


def export_commands(workspace: Workspace, client: str, engagement: str, phase: str) -> str:
    """Return the Markdown document for the indexed sessions matching the criteria."""
    return generate_report(_matching(workspace, client, engagement, phase), client)


def export_commands_html(workspace: Workspace, client: str, engagement: str, phase: str) -> str:
    """Return the HTML document for the indexed sessions matching the criteria."""
    return generate_html_report(_matching(workspace, client, engagement, phase), client)