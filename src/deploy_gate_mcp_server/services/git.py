"""Git operations service."""

import subprocess
from pathlib import Path


class GitError(Exception):
    """Raised when a git operation fails."""
    pass


class GitService:
    """Service for reading the checked-out revision."""

    def __init__(self, working_dir: Path):
        self.working_dir = working_dir

    def _git(self, *args: str) -> str:
        try:
            result = subprocess.run(
                ["git", *args],
                cwd=self.working_dir,
                capture_output=True,
                text=True,
                check=True
            )
        except subprocess.CalledProcessError as e:
            raise GitError(f"git {' '.join(args)} failed: {e.stderr}") from e
        except FileNotFoundError as e:
            raise GitError("git executable not found") from e
        return result.stdout.strip()

    def get_current_branch(self) -> str:
        """Get the current git branch name."""
        branch = self._git("branch", "--show-current")
        if not branch:
            raise GitError("Not on a branch (possibly detached HEAD)")
        return branch

    def get_head_commit(self) -> str:
        """Get the full SHA of HEAD."""
        return self._git("rev-parse", "HEAD")

    def get_author(self) -> str:
        """Get the configured git user name."""
        try:
            return self._git("config", "user.name")
        except GitError:
            return ""

    def is_git_repository(self) -> bool:
        """Check if the working directory is a git repository."""
        try:
            self._git("rev-parse", "--git-dir")
        except GitError:
            return False
        return True
