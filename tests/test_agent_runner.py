from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from dreamwatch.agent import AgentNotFoundError, AgentRunner
from dreamwatch.agent import runner as runner_module
from dreamwatch.agent.utils import agent_environment


def _write_script(path: Path, body: str) -> Path:
    path.write_text(f"#!/bin/sh\n{body}\n", encoding="utf-8")
    path.chmod(0o755)
    return path


def test_launch_passes_task_and_redirects_output(tmp_path: Path) -> None:
    script = _write_script(tmp_path / "claude", 'echo "$@"\necho "oops" >&2')
    log_path = tmp_path / "agent.log"
    log_path.write_bytes(b"previous run\n")

    async def scenario() -> int:
        with log_path.open("ab") as log_file:
            process = await AgentRunner(script).launch("refactor auth", cwd=tmp_path, log_file=log_file)
            return await process.wait()

    assert asyncio.run(scenario()) == 0
    log = log_path.read_text(encoding="utf-8")
    assert log.startswith("previous run\n")
    assert "--print --dangerously-skip-permissions refactor auth" in log
    assert "oops" in log


def test_launch_reports_exit_code(tmp_path: Path) -> None:
    script = _write_script(tmp_path / "claude", "exit 3")

    async def scenario() -> int:
        with (tmp_path / "agent.log").open("ab") as log_file:
            process = await AgentRunner(script).launch("task", cwd=tmp_path, log_file=log_file)
            return await process.wait()

    assert asyncio.run(scenario()) == 3


def test_missing_explicit_executable(tmp_path: Path) -> None:
    async def scenario() -> None:
        with (tmp_path / "agent.log").open("ab") as log_file:
            await AgentRunner(tmp_path / "missing").launch("task", cwd=tmp_path, log_file=log_file)

    with pytest.raises(AgentNotFoundError):
        asyncio.run(scenario())


def test_missing_agent_on_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(runner_module.shutil, "which", lambda _name: None)

    async def scenario() -> None:
        with (tmp_path / "agent.log").open("ab") as log_file:
            await AgentRunner().launch("task", cwd=tmp_path, log_file=log_file)

    with pytest.raises(AgentNotFoundError, match="not found on PATH"):
        asyncio.run(scenario())


def test_build_args_shape(tmp_path: Path) -> None:
    args = AgentRunner().build_args(tmp_path / "claude", "do it")
    assert args == [str(tmp_path / "claude"), "--print", "--dangerously-skip-permissions", "do it"]


def test_agent_environment_strips_interpreter_vars(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PYTHONPATH", "value")
    monkeypatch.setenv("CLAUDECODE", "1")

    env = agent_environment({"EXTRA": "1"})

    assert "PYTHONPATH" not in env
    assert "CLAUDECODE" not in env
    assert env["EXTRA"] == "1"


def test_agent_environment_from_explicit_base() -> None:
    base = {"PATH": "/usr/bin", "VIRTUAL_ENV": "/venv", "CLAUDE_CODE_ENTRYPOINT": "cli"}

    env = agent_environment(base=base)

    assert env == {"PATH": "/usr/bin"}
    assert base["VIRTUAL_ENV"] == "/venv"
