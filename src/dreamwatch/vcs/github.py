"""Pull-request creation through the GitHub CLI."""

from __future__ import annotations

import shutil
from pathlib import Path

from ..errors import DreamwatchError
from .commands import run_command


class PullRequestError(DreamwatchError):
    """Raised when a pull request cannot be opened."""


class GitHubCLI:
    """Open pull requests with ``gh pr create``."""

    def __init__(self, cwd: Path | str, *, executable: str | None = None) -> None:
        self._cwd = Path(cwd)
        self._executable = executable

    def _resolve_executable(self) -> str:
        if self._executable is not None:
            return self._executable
        binary = shutil.which("gh")
        if binary is None:
            raise PullRequestError("GitHub CLI executable `gh` not found on PATH")
        return binary

    async def create_pull_request(
        self,
        title: str,
        body: str,
        *,
        draft: bool = True,
        head: str | None = None,
    ) -> str:
        """Open a pull request and return its URL."""

        args = [self._resolve_executable(), "pr", "create", "--title", title, "--body", body]
        if head:
            args.extend(["--head", head])
        if draft:
            args.append("--draft")

        try:
            result = await run_command(*args, cwd=self._cwd)
        except OSError as exc:
            raise PullRequestError(f"Failed to run gh: {exc}") from exc
        if not result.ok:
            raise PullRequestError(result.describe())

        lines = [line.strip() for line in result.stdout.splitlines() if line.strip()]
        if not lines:
            raise PullRequestError("gh pr create returned no pull request URL")
        return lines[-1]


__all__ = ["GitHubCLI", "PullRequestError"]
