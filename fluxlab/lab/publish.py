"""Push the scaffolded repository to the student's fork with git."""

import logging
from typing import Callable, List, Optional

from fluxlab.core.config import LabSettings
from fluxlab.core.errors import CommandError
from fluxlab.core.runner import CommandResult, CommandRunner

logger = logging.getLogger(__name__)

DEFAULT_COMMIT_MESSAGE = "Add GitOps lab repository"


class Git:
    """git calls against one working tree (``git -C <repo_dir> ...``)."""

    def __init__(self, runner: CommandRunner, repo_dir: str):
        self.runner = runner
        self.repo_dir = repo_dir

    def _run(self, args: List[str], check: bool = True, mutating: bool = True) -> CommandResult:
        return self.runner.run(["git", "-C", self.repo_dir] + args, check=check, mutating=mutating)

    def init(self) -> None:
        self._run(["init"])

    def checkout_branch(self, branch: str) -> None:
        self._run(["checkout", "-B", branch])

    def add_all(self) -> None:
        self._run(["add", "--all"])

    def commit(self, message: str) -> bool:
        """Commit the staged changes.

        Returns:
            False when there was nothing to commit

        Raises:
            CommandError: git refused the commit for any other reason
        """
        result = self._run(["commit", "-m", message], check=False)
        if result.ok:
            return True
        if "nothing to commit" in result.stdout + result.stderr:
            return False
        raise CommandError(
            f"git commit failed: {(result.stderr or result.stdout).strip() or 'no error output'}",
            command=result.command,
            returncode=result.returncode,
            stderr=result.stderr,
        )

    def remote_url(self, name: str = "origin") -> Optional[str]:
        result = self._run(["remote", "get-url", name], check=False, mutating=False)
        if not result.ok:
            return None
        return result.stdout.strip() or None

    def set_remote(self, url: str, name: str = "origin") -> None:
        current = self.remote_url(name)
        if current is None:
            self._run(["remote", "add", name, url])
        elif current != url:
            self._run(["remote", "set-url", name, url])

    def push(self, branch: str, remote: str = "origin") -> None:
        self._run(["push", "-u", remote, branch])


def publish_repository(
    settings: LabSettings,
    repo_dir: str,
    runner: CommandRunner,
    message: str = DEFAULT_COMMIT_MESSAGE,
    out: Callable[[str], None] = print,
) -> bool:
    """Commit repo_dir and push it to the lab fork.

    Runs ``git init``, ``checkout -B <branch>``, ``add --all``, ``commit``,
    points ``origin`` at :attr:`LabSettings.repo_url` and pushes with
    upstream tracking. Safe to repeat on an existing clone.

    Args:
        settings: Lab settings (GitHub user, repository name, branch)
        repo_dir: Working tree to publish
        runner: Command runner; a dry-run runner only plans the git calls
        message: Commit message
        out: Output function for progress lines

    Returns:
        Whether a new commit was created

    Raises:
        CommandError: A git command failed
    """
    git = Git(runner, repo_dir)

    git.init()
    git.checkout_branch(settings.branch)
    git.add_all()
    committed = git.commit(message)
    if committed:
        out(f"  committed '{message}' on {settings.branch}")
    else:
        logger.info(f"Nothing to commit in {repo_dir}")
        out("  nothing new to commit")

    git.set_remote(settings.repo_url)
    out(f"  pushing {settings.branch} to {settings.repo_url}")
    git.push(settings.branch)
    return committed
