"""Exceptions raised while driving the external lab tooling."""

from typing import List, Optional


class CommandError(Exception):
    """Raised when an external command (az, kubectl, git) fails.

    The error carries the failing command line and whatever the tool wrote
    to stderr, so callers can surface the tool's own explanation.

    Attributes:
        message: Description of the failure
        command: Argument list of the failed command
        returncode: Process exit status (None on timeout)
        stderr: Captured standard error of the tool
    """

    def __init__(
        self,
        message: str,
        command: Optional[List[str]] = None,
        returncode: Optional[int] = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.command = command or []
        self.returncode = returncode
        self.stderr = stderr

    @property
    def command_line(self) -> str:
        return " ".join(self.command)


class ToolNotFoundError(CommandError):
    """Raised when a required command-line tool is not on PATH."""

    def __init__(self, tool: str) -> None:
        super().__init__(
            f"'{tool}' was not found on PATH. Install it and try again.",
            command=[tool],
        )
        self.tool = tool


class LabConfigError(ValueError):
    """Raised when lab settings are missing or invalid."""
