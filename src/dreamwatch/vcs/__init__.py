"""Version-control and code-hosting capabilities."""

from .commands import CommandResult, run_command
from .git import GitCommandError, GitRepository
from .github import GitHubCLI, PullRequestError

__all__ = [
    "CommandResult",
    "GitCommandError",
    "GitHubCLI",
    "GitRepository",
    "PullRequestError",
    "run_command",
]
