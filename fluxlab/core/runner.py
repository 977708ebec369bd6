"""Synchronous execution of external command-line tools.

Every interaction with Azure and the cluster goes through
:class:`CommandRunner`, which wraps ``subprocess.run``. Keeping the process
boundary in one place lets the rest of the code stay free of subprocess
details and lets tests substitute a scripted runner.
"""

import json
import logging
import shutil
import subprocess
from dataclasses import dataclass, field
from typing import Any, List, Optional

from fluxlab.core.errors import CommandError, ToolNotFoundError

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of a single external command."""

    command: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def json(self) -> Any:
        """Parse stdout as JSON.

        Returns:
            Parsed value, or None when the command printed nothing
        """
        text = self.stdout.strip()
        if not text:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise CommandError(
                f"Could not parse JSON output of '{' '.join(self.command)}': {e}",
                command=self.command,
                returncode=self.returncode,
                stderr=self.stderr,
            )


@dataclass
class CommandRunner:
    """Runs external commands and records what was run.

    Attributes:
        dry_run: When True nothing is executed. Queries return an empty
                 successful result and mutating commands are only recorded.
        timeout: Optional per-command timeout in seconds
        history: Every command passed to run(), in order
        planned: Mutating commands only, in order
    """

    dry_run: bool = False
    timeout: Optional[float] = None
    history: List[List[str]] = field(default_factory=list)
    planned: List[List[str]] = field(default_factory=list)

    def which(self, tool: str) -> bool:
        return shutil.which(tool) is not None

    def run(self, args: List[str], check: bool = True, mutating: bool = True) -> CommandResult:
        """Run a command and capture its output.

        Args:
            args: Argument list, e.g. ["az", "group", "create", ...]
            check: Raise CommandError when the command exits non-zero
            mutating: Whether the command changes anything (only used for
                      dry-run bookkeeping)

        Returns:
            CommandResult with captured stdout/stderr

        Raises:
            ToolNotFoundError: The executable is not on PATH
            CommandError: Non-zero exit (with check=True) or timeout
        """
        args = [str(a) for a in args]
        self.history.append(args)
        if mutating:
            self.planned.append(args)

        if self.dry_run:
            if mutating:
                logger.info(f"[dry-run] {' '.join(args)}")
            return CommandResult(command=args, returncode=0)

        logger.info(f"Running: {' '.join(args)}")
        result = self._execute(args)
        logger.debug(f"exit={result.returncode} stdout={result.stdout!r} stderr={result.stderr!r}")

        if check and not result.ok:
            raise CommandError(
                f"'{' '.join(args)}' failed with exit code {result.returncode}: "
                f"{_first_line(result.stderr) or 'no error output'}",
                command=args,
                returncode=result.returncode,
                stderr=result.stderr,
            )
        return result

    def _execute(self, args: List[str]) -> CommandResult:
        try:
            completed = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError:
            raise ToolNotFoundError(args[0])
        except subprocess.TimeoutExpired as e:
            raise CommandError(
                f"'{' '.join(args)}' timed out after {e.timeout} seconds",
                command=args,
            )

        return CommandResult(
            command=args,
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )

    def run_json(self, args: List[str], check: bool = True) -> Any:
        """Run a read-only command with JSON output and parse it.

        ``-o json`` is appended for az and kubectl invocations.
        """
        args = list(args)
        if args and args[0] in ("az", "kubectl") and "-o" not in args:
            args += ["-o", "json"]
        result = self.run(args, check=check, mutating=False)
        if not result.ok:
            return None
        return result.json()

    def planned_commands(self) -> List[str]:
        """Mutating command lines recorded so far, joined for display."""
        return [" ".join(cmd) for cmd in self.planned]


def _first_line(text: str) -> str:
    for line in text.splitlines():
        line = line.strip()
        if line:
            return line
    return ""
