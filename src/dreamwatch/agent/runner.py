"""Async launcher for the supervised agent CLI."""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path
from typing import IO

from .utils import agent_environment

AGENT_BINARY = "claude"
AGENT_FLAGS = ("--print", "--dangerously-skip-permissions")


class AgentRunnerError(RuntimeError):
    """Base class for agent runner errors."""


class AgentNotFoundError(AgentRunnerError):
    """Raised when the agent executable cannot be located."""


class AgentLaunchError(AgentRunnerError):
    """Raised when the agent process cannot be started."""


class AgentRunner:
    """Start the agent CLI as a child process of the supervisor."""

    def __init__(self, executable: Path | str | None = None) -> None:
        self._explicit = Path(executable) if executable is not None else None

    @staticmethod
    def _resolve_executable(explicit: Path | None) -> Path:
        if explicit is not None:
            if explicit.exists() and explicit.is_file():
                return explicit
            raise AgentNotFoundError(f"Agent executable not found at {explicit}")

        binary = shutil.which(AGENT_BINARY)
        if binary is None:
            raise AgentNotFoundError(f"Agent CLI `{AGENT_BINARY}` not found on PATH")
        return Path(binary)

    def build_args(self, executable: Path, task: str) -> list[str]:
        return [str(executable), *AGENT_FLAGS, task]

    async def launch(
        self,
        task: str,
        *,
        cwd: Path,
        log_file: IO[bytes],
    ) -> asyncio.subprocess.Process:
        """Launch the agent on ``task`` with both output streams sent to ``log_file``."""

        executable = self._resolve_executable(self._explicit)
        try:
            return await asyncio.create_subprocess_exec(
                *self.build_args(executable, task),
                cwd=str(cwd),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=log_file,
                stderr=log_file,
                env=agent_environment(),
            )
        except OSError as exc:
            raise AgentLaunchError(f"Failed to start {executable}: {exc}") from exc


__all__ = [
    "AGENT_BINARY",
    "AGENT_FLAGS",
    "AgentLaunchError",
    "AgentNotFoundError",
    "AgentRunner",
    "AgentRunnerError",
]
