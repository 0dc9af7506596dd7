"""Async execution of external version-control commands."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path

from ..agent.utils import agent_environment


@dataclass(slots=True)
class CommandResult:
    """Holds the outcome of an external command invocation."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def describe(self) -> str:
        detail = self.stderr.strip() or self.stdout.strip() or "no output"
        return f"`{' '.join(self.args)}` exited with code {self.returncode}: {detail}"


async def run_command(*args: str, cwd: Path | str | None = None) -> CommandResult:
    """Run ``args`` to completion, capturing decoded stdout and stderr."""

    process = await asyncio.create_subprocess_exec(
        *args,
        cwd=str(cwd) if cwd is not None else None,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        env=agent_environment(),
    )
    stdout_bytes, stderr_bytes = await process.communicate()
    stdout = stdout_bytes.decode("utf-8", errors="replace")
    stderr = stderr_bytes.decode("utf-8", errors="replace")
    return CommandResult(args=tuple(args), returncode=process.returncode, stdout=stdout, stderr=stderr)


__all__ = ["CommandResult", "run_command"]
