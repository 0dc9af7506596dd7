from __future__ import annotations

import asyncio
import shutil
import subprocess
from pathlib import Path

import pytest

from dreamwatch.vcs import (
    CommandResult,
    GitCommandError,
    GitHubCLI,
    GitRepository,
    PullRequestError,
    run_command,
)

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="requires git")


def _init_repo(path: Path) -> Path:
    path.mkdir()
    for args in (
        ["git", "init", "-q"],
        ["git", "config", "user.email", "dreamwatch@example.com"],
        ["git", "config", "user.name", "dreamwatch"],
        ["git", "config", "commit.gpgsign", "false"],
    ):
        subprocess.run(args, cwd=path, check=True)
    (path / "README.md").write_text("hello\n", encoding="utf-8")
    subprocess.run(["git", "add", "-A"], cwd=path, check=True)
    subprocess.run(["git", "commit", "-q", "-m", "initial"], cwd=path, check=True)
    return path


def _write_script(path: Path, body: str) -> Path:
    path.write_text(f"#!/bin/sh\n{body}\n", encoding="utf-8")
    path.chmod(0o755)
    return path


def test_run_command_captures_output(tmp_path: Path) -> None:
    script = _write_script(tmp_path / "tool", 'echo "out $1"; echo err >&2; exit 2')

    result = asyncio.run(run_command(str(script), "arg", cwd=tmp_path))

    assert result.returncode == 2
    assert not result.ok
    assert result.stdout.strip() == "out arg"
    assert "err" in result.describe()


def test_is_repository(tmp_path: Path) -> None:
    assert GitRepository(tmp_path).is_repository() is False
    (tmp_path / ".git").mkdir()
    assert GitRepository(tmp_path).is_repository() is True


@requires_git
def test_branch_status_and_commit(tmp_path: Path) -> None:
    repo_path = _init_repo(tmp_path / "repo")
    repo = GitRepository(repo_path)

    async def scenario() -> tuple[bool, bool]:
        await repo.checkout_new_branch("dreamwatch/2026-02-16/task")
        (repo_path / "new.txt").write_text("change\n", encoding="utf-8")
        before = await repo.has_changes()
        await repo.add_all()
        await repo.commit("dreamwatch: auto-commit on completed")
        return before, await repo.has_changes()

    before, after = asyncio.run(scenario())

    assert before is True
    assert after is False
    branch = subprocess.run(
        ["git", "rev-parse", "--abbrev-ref", "HEAD"],
        cwd=repo_path,
        capture_output=True,
        text=True,
        check=True,
    ).stdout.strip()
    assert branch == "dreamwatch/2026-02-16/task"
    message = subprocess.run(
        ["git", "log", "-1", "--format=%s"], cwd=repo_path, capture_output=True, text=True, check=True
    ).stdout.strip()
    assert message == "dreamwatch: auto-commit on completed"


@requires_git
def test_checkout_existing_branch_fails(tmp_path: Path) -> None:
    repo = GitRepository(_init_repo(tmp_path / "repo"))

    async def scenario() -> None:
        await repo.checkout_new_branch("work")
        await repo.checkout_new_branch("work")

    with pytest.raises(GitCommandError) as excinfo:
        asyncio.run(scenario())
    assert excinfo.value.result.returncode != 0


def test_missing_git_executable_raises_git_error(tmp_path: Path) -> None:
    repo = GitRepository(tmp_path, executable=str(tmp_path / "no-git"))

    with pytest.raises(GitCommandError):
        asyncio.run(repo.status())


def test_create_pull_request_returns_url(tmp_path: Path) -> None:
    args_file = tmp_path / "args.txt"
    gh = _write_script(
        tmp_path / "gh",
        f'printf "%s\\n" "$@" > {args_file}\necho "Creating pull request"\necho "https://github.com/org/repo/pull/7"',
    )

    url = asyncio.run(
        GitHubCLI(tmp_path, executable=str(gh)).create_pull_request(
            "dreamwatch: task", "# dreamwatch Report", draft=True, head="dreamwatch/x"
        )
    )

    assert url == "https://github.com/org/repo/pull/7"
    args = args_file.read_text(encoding="utf-8").splitlines()
    assert args[:2] == ["pr", "create"]
    assert "--draft" in args
    assert args[args.index("--head") + 1] == "dreamwatch/x"
    assert args[args.index("--title") + 1] == "dreamwatch: task"


def test_create_pull_request_failure(tmp_path: Path) -> None:
    gh = _write_script(tmp_path / "gh", "echo 'no remote' >&2; exit 1")

    with pytest.raises(PullRequestError, match="no remote"):
        asyncio.run(GitHubCLI(tmp_path, executable=str(gh)).create_pull_request("t", "b", draft=False))


def test_create_pull_request_without_gh(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("dreamwatch.vcs.github.shutil.which", lambda _name: None)

    with pytest.raises(PullRequestError, match="not found"):
        asyncio.run(GitHubCLI(tmp_path).create_pull_request("t", "b"))


def test_git_error_carries_result() -> None:
    result = CommandResult(args=("git", "push"), returncode=128, stdout="", stderr="denied")
    error = GitCommandError(result)
    assert "denied" in str(error)
    assert error.result is result
