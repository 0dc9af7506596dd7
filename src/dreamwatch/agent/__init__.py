"""Agent process orchestration utilities."""

from .runner import AgentLaunchError, AgentNotFoundError, AgentRunner, AgentRunnerError

__all__ = [
    "AgentLaunchError",
    "AgentNotFoundError",
    "AgentRunner",
    "AgentRunnerError",
]
