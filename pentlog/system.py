"""External programs the recorder relies on, and the log directory."""

from __future__ import annotations

import shutil
from pathlib import Path

from pentlog.workspace import Workspace


class DependencyError(RuntimeError):
    """Raised when a required program is not installed."""


class TtyrecRecorder:
    """Builds the command that records a terminal session with ttyrec."""

    def build_command(self, timing_file: str, log_file: str) -> list[str]:
        """Return the argument list that records into *log_file*."""
        path = shutil.which("ttyrec")
        if path is None:
            raise DependencyError("'ttyrec' command not found")
        # Without -f ttyrec would treat the file name as a command to run.
        return [path, "-a", "-f", str(log_file)]

    def supports_timing(self) -> bool:
        return True


def check_dependencies() -> None:
    """Raise DependencyError unless ttyrec and ttyplay are on the PATH."""
    for program in ("ttyrec", "ttyplay"):
        if shutil.which(program) is None:
            raise DependencyError(
                f"{program} not found in PATH. Please install it "
                "(e.g., 'brew install ttyrec' or 'apt install ttyrec')"
            )


def check_replay_dependencies() -> None:
    """Raise DependencyError unless ttyplay is on the PATH."""
    if shutil.which("ttyplay") is None:
        raise DependencyError("'ttyplay' command not found")


def ensure_log_dir(workspace: Workspace) -> Path:
    """Create the logs directory if needed and return it."""
    directory = workspace.logs_dir
    directory.mkdir(mode=0o700, parents=True, exist_ok=True)
    return directory


def is_setup_run(workspace: Workspace) -> bool:
    """Tell whether the logs directory has been created."""
    return workspace.logs_dir.exists()