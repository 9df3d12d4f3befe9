# pentlog

`pentlog` keeps the evidence of a penetration test in order. Terminal
sessions are recorded as ttyrec files by `ttyrec`, each with its context
(client, engagement, scope, operator, phase). The package then lets you
index, search, annotate, report on and archive those sessions.

## What it does

- **Workspace** – everything lives under `~/.pentlog`: the `logs/`
  tree of recordings, a SQLite index (`pentlog.db`, readable by the owner
  only), the active context and its history, and findings.
- **Sessions** – `list_sessions`, `list_sessions_paginated` and
  `get_session` read the index. Older installations that kept only JSON
  sidecar files are imported on first use by `sync_sessions`. A session
  whose recording is missing from disk is still listed, with a warning on
  standard error.
- **Notes** – `append_note` and `read_notes` keep timestamped notes next
  to a recording in a `.notes.json` file.
- **Findings** – `VulnManager` stores vulnerabilities per client and
  engagement, newest first; with no engagement it gathers findings from
  every engagement of the client.
- **Search** – `search` looks through recordings and notes, either with a
  regular expression or with a simple boolean query: words are ANDed,
  `-word` excludes, and ` OR ` separates alternatives. Each hit carries two
  lines of context on either side.
- **Timelines** – `parse_timeline` turns a recording into a list of
  commands and their output; `Timeline.to_json` writes it out.
- **Reports** – `generate_report` (Markdown) and `generate_html_report`
  (a dark-themed HTML page with ANSI colours kept) group sessions by
  engagement and phase.
- **Archives** – `archive_sessions` packs matching sessions into a ZIP
  under `~/.pentlog/archive/<client>/`, AES-256 encrypted when a password
  is given, and can remove the originals afterwards.
- **Dashboard** – `show_dashboard` prints totals, phase distribution,
  per-client and per-engagement sizes, recent sessions and recent findings.

Recording and replay need `ttyrec` and `ttyplay` on your `PATH`;
`check_dependencies` reports which one is missing.

## Using it from Python

```python
from pentlog.workspace import Workspace
from pentlog.sessions import list_sessions
from pentlog.export import generate_report

workspace = Workspace.for_home("/home/tester")

sessions = list_sessions(workspace)
for session in sessions:
    print(session.id, session.metadata.client, session.metadata.phase)

markdown = generate_report(sessions, "ACME")
```

Searching with the boolean syntax:

```python
from pentlog.search import create_boolean_matcher

matches = create_boolean_matcher("nmap -localhost OR gobuster")
matches("nmap -sV 10.0.0.5")        # True
matches("nmap -sV localhost")       # False
```

Findings for the active context:

```python
from pentlog.vulns import VulnManager

manager = VulnManager.from_context(workspace)
for vuln in manager.list():
    print(vuln.id, vuln.severity, vuln.title)
```

Archiving a client's sessions with encryption:

```python
from datetime import timedelta
from pentlog.archive import archive_sessions

password = "password"
count = archive_sessions(
    workspace, "ACME", "", "", timedelta(days=30), False, password
)
```

Terminal output helpers live in `pentlog.ansi`: `render_plain` replays
carriage returns, backspaces and cursor movements to give the text as it
finally appeared on screen, and `render_ansi_html` produces the same text
as HTML spans.