from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence


class ConfigurationError(ValueError):
    """Raised when a site is missing configuration required by an operation."""


class ContentPathError(ValueError):
    """Raised when a content path escapes the working tree or the editable paths."""


class RepositoryError(RuntimeError):
    """Raised inside the repository synchronizer when a git step fails."""


class InvalidTransitionError(RuntimeError):
    """Raised when a deploy task would move backwards or skip a phase."""


class TaskNotFoundError(RuntimeError):
    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(f"deploy task not found: {task_id}")


class DeploymentInProgressError(RuntimeError):
    """Raised when a deployment is triggered while another one is still running."""

    def __init__(self, site_id: str, active_task_id: str) -> None:
        self.site_id = site_id
        self.active_task_id = active_task_id
        super().__init__(
            f"deployment {active_task_id} is still in progress for site {site_id}"
        )


class CommandExecutionError(RuntimeError):
    """Raised when a build/validate subprocess exits non-zero or times out."""

    def __init__(
        self,
        command: Sequence[str],
        cwd: Optional[Path],
        returncode: int,
        stdout: str,
        stderr: str,
        *,
        timed_out: bool = False,
    ) -> None:
        self.command = list(command)
        self.cwd = cwd
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.timed_out = timed_out
        if timed_out:
            message = "timed out"
        else:
            message = f"exit code {returncode}"
        super().__init__(f"command failed ({' '.join(self.command)}): {message}")


class SiteNotFoundError(RuntimeError):
    def __init__(self, site_id: str) -> None:
        self.site_id = site_id
        super().__init__(f"site not found: {site_id}")
