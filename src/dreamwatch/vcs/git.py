"""Git operations used to isolate and record a session's work."""

from __future__ import annotations

from pathlib import Path

from ..errors import DreamwatchError
from .commands import CommandResult, run_command


class GitCommandError(DreamwatchError):
    """Raised when a git invocation exits with a non-zero status."""

    def __init__(self, result: CommandResult) -> None:
        super().__init__(result.describe())
        self.result = result


class GitRepository:
    """Execute git commands asynchronously against a working tree."""

    def __init__(self, cwd: Path | str, *, executable: str = "git") -> None:
        self._cwd = Path(cwd)
        self._executable = executable

    @property
    def cwd(self) -> Path:
        return self._cwd

    def is_repository(self) -> bool:
        return (self._cwd / ".git").exists()

    async def checkout_new_branch(self, name: str) -> None:
        await self._invoke("checkout", "-b", name)

    async def status(self) -> str:
        result = await self._invoke("status", "--porcelain")
        return result.stdout

    async def has_changes(self) -> bool:
        return bool((await self.status()).strip())

    async def add_all(self) -> None:
        await self._invoke("add", "-A")

    async def commit(self, message: str) -> None:
        await self._invoke("commit", "-m", message)

    async def push(self, branch: str, *, remote: str = "origin") -> None:
        await self._invoke("push", "--set-upstream", remote, branch)

    async def _invoke(self, *args: str) -> CommandResult:
        try:
            result = await run_command(self._executable, *args, cwd=self._cwd)
        except OSError as exc:
            raise GitCommandError(
                CommandResult(args=(self._executable, *args), returncode=127, stdout="", stderr=str(exc))
            ) from exc
        if not result.ok:
            raise GitCommandError(result)
        return result


__all__ = ["GitCommandError", "GitRepository"]
