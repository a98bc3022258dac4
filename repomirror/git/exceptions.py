"""
Exception classes for the git orchestration layer.
"""

from pathlib import Path
from typing import Optional, Sequence


class RepositoryError(Exception):
    """Base exception for all repository-related errors."""

    pass


class ValidationError(RepositoryError, ValueError):
    """Raised when a ref or branch name is unsafe to hand to git."""

    def __init__(self, value, kind: str = "ref"):
        self.value = value
        self.kind = kind
        super().__init__(f'Rejecting the {kind} "{value}" as potentially insecure')


class CommandError(RepositoryError):
    """Raised when an external command exits non-zero or writes to stderr."""

    def __init__(
        self,
        args: Sequence[str],
        cwd: Optional[Path] = None,
        returncode: Optional[int] = None,
        stdout: str = "",
        stderr: str = "",
        message: str = "",
    ):
        self.command = list(args)
        self.cwd = cwd
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr

        location = f" in {cwd}" if cwd else ""
        detail = message or stderr.strip() or f"exit code {returncode}"
        text = f"Error executing command{location}: {' '.join(self.command)}: {detail}"
        if stdout.strip():
            text = f"{text}\n{stdout.strip()}"
        super().__init__(text)


class CloneError(CommandError):
    """Raised when the initial shallow clone of a repository fails."""

    def __init__(self, url: str, error: CommandError):
        self.url = url
        super().__init__(
            error.command,
            cwd=error.cwd,
            returncode=error.returncode,
            stdout=error.stdout,
            stderr=error.stderr,
            message=f"failed to clone {url}: {error.stderr.strip() or error}",
        )


class ConflictError(RepositoryError):
    """Raised when a tag already exists with a different annotation."""

    def __init__(self, details):
        self.details = details
        super().__init__(str(details))
