"""Vulnerability findings stored per client and engagement."""

from __future__ import annotations

import enum
import json
import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from pentlog.metadata import load_context
from pentlog.workspace import Workspace

_ZERO_TIME = "0001-01-01T00:00:00Z"
_RFC3339 = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})$"
)


class Severity(str, enum.Enum):
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    INFO = "Info"


class Status(str, enum.Enum):
    OPEN = "Open"
    CLOSED = "Closed"
    VERIFIED = "Verified"


class VulnNotFoundError(LookupError):
    """Raised when no finding has the requested identifier."""


def _parse_time(value: Any) -> datetime | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"invalid timestamp: {value!r}")
    match = _RFC3339.match(value)
    if not match:
        raise ValueError(f"invalid timestamp: {value!r}")
    year, month, day, hour, minute, second, fraction, offset = match.groups()
    if offset in ("Z", "z"):
        tz = timezone.utc
    else:
        sign = 1 if offset[0] == "+" else -1
        tz = timezone(sign * timedelta(hours=int(offset[1:3]), minutes=int(offset[4:6])))
    micro = int((fraction or "0")[:6].ljust(6, "0"))
    moment = datetime(
        int(year), int(month), int(day), int(hour), int(minute), int(second), micro, tzinfo=tz
    )
    if moment == datetime(1, 1, 1, tzinfo=timezone.utc):
        return None
    return moment


def _format_time(moment: datetime | None) -> str:
    if moment is None:
        return _ZERO_TIME
    if moment.tzinfo is None:
        moment = moment.astimezone()
    text = moment.strftime("%Y-%m-%dT%H:%M:%S")
    if moment.microsecond:
        text += f".{moment.microsecond:06d}".rstrip("0")
    offset = moment.utcoffset() or timedelta(0)
    if not offset:
        return text + "Z"
    sign = "+" if offset > timedelta(0) else "-"
    minutes = abs(int(offset.total_seconds())) // 60
    return f"{text}{sign}{minutes // 60:02d}:{minutes % 60:02d}"


def _now() -> datetime:
    return datetime.now().astimezone()


def _coerce(enum_cls, value: Any):
    try:
        return enum_cls(value)
    except ValueError:
        return value


def _newest_first_key(vuln: Vuln) -> float:
    return vuln.created_at.timestamp() if vuln.created_at else float("-inf")


@dataclass
class Vuln:
    id: str
    title: str = ""
    severity: Severity | str = Severity.INFO
    status: Status | str = Status.OPEN
    description: str = ""
    remediation: str = ""
    references: list[str] = field(default_factory=list)
    evidence: list[str] = field(default_factory=list)
    phase: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "severity": getattr(self.severity, "value", self.severity),
            "status": getattr(self.status, "value", self.status),
            "description": self.description,
            "remediation": self.remediation,
            "references": list(self.references),
            "evidence": list(self.evidence),
            "phase": self.phase,
            "created_at": _format_time(self.created_at),
            "updated_at": _format_time(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Vuln:
        if not isinstance(data, dict):
            raise ValueError("finding must be a JSON object")
        return cls(
            id=data.get("id") or "",
            title=data.get("title") or "",
            severity=_coerce(Severity, data.get("severity") or ""),
            status=_coerce(Status, data.get("status") or ""),
            description=data.get("description") or "",
            remediation=data.get("remediation") or "",
            references=list(data.get("references") or []),
            evidence=list(data.get("evidence") or []),
            phase=data.get("phase") or "",
            created_at=_parse_time(data.get("created_at")),
            updated_at=_parse_time(data.get("updated_at")),
        )


def _read_vulns(path: Path) -> list[Vuln]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if data is None:
        return []
    if not isinstance(data, list):
        raise ValueError(f"{path} does not hold a list of findings")
    vulns = [Vuln.from_dict(item) for item in data]
    vulns.sort(key=_newest_first_key, reverse=True)
    return vulns


class VulnManager:
    """Reads and writes the findings of one client and engagement.

    With an empty engagement, listing gathers the findings of every
    engagement of the client.
    """

    def __init__(self, workspace: Workspace, client: str, engagement: str) -> None:
        self.workspace = workspace
        self.client = client
        self.engagement = engagement

    @classmethod
    def from_context(cls, workspace: Workspace) -> VulnManager:
        context = load_context(workspace)
        return cls(workspace, context.client, context.engagement)

    @property
    def vulns_dir(self) -> Path:
        return self.workspace.vulns_dir / self.client / self.engagement

    @property
    def vulns_file(self) -> Path:
        return self.vulns_dir / "vulns.json"

    def save(self, vuln: Vuln) -> None:
        """Insert *vuln*, or replace the finding with the same identifier."""
        vulns = self.list()
        for index, existing in enumerate(vulns):
            if existing.id == vuln.id:
                vulns[index] = replace(vuln, updated_at=_now())
                break
        else:
            now = _now()
            vulns.append(
                replace(
                    vuln,
                    created_at=vuln.created_at or now,
                    updated_at=vuln.updated_at or now,
                )
            )
        self._write(vulns)

    def list(self) -> list[Vuln]:
        """Return the findings, newest first."""
        if not self.engagement:
            return self._list_all_engagements()
        if not self.vulns_file.exists():
            return []
        return _read_vulns(self.vulns_file)

    def _list_all_engagements(self) -> list[Vuln]:
        client_dir = self.workspace.vulns_dir / self.client
        try:
            entries = sorted(client_dir.iterdir())
        except FileNotFoundError:
            return []
        found: list[Vuln] = []
        for entry in entries:
            path = entry / "vulns.json"
            if not entry.is_dir() or not path.exists():
                continue
            try:
                found.extend(_read_vulns(path))
            except (OSError, ValueError):
                continue
        found.sort(key=_newest_first_key, reverse=True)
        return found

    def get(self, vuln_id: str) -> Vuln:
        for vuln in self.list():
            if vuln.id == vuln_id:
                return vuln
        raise VulnNotFoundError(f"vuln not found: {vuln_id}")

    def delete(self, vuln_id: str) -> None:
        """Remove the finding with *vuln_id*; unknown identifiers are ignored."""
        self._write([vuln for vuln in self.list() if vuln.id != vuln_id])

    def _write(self, vulns: list[Vuln]) -> None:
        path = self.vulns_file
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps([vuln.to_dict() for vuln in vulns], indent=2, ensure_ascii=False),
            encoding="utf-8",
        )

    def generate_id(self, title: str) -> str:
        """Return the identifier for the next finding."""
        return f"vuln-{len(self.list()) + 1:03d}"