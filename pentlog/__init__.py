"""Terminal session evidence logging, search, reporting and archiving."""

__version__ = "0.1.0"

__all__ = [
    "aeszip",
    "ansi",
    "archive",
    "dashboard",
    "export",
    "metadata",
    "prompts",
    "search",
    "sessions",
    "slug",
    "system",
    "terminal",
    "timeline",
    "ttyrec",
    "vulns",
    "workspace",
]