"""Environment handling for processes dreamwatch spawns in the user's repository."""

from __future__ import annotations

import os
from typing import Mapping

# Set when dreamwatch itself runs from a virtualenv; the repository's own
# tooling must resolve its interpreter independently.
INTERPRETER_VARS = ("PYTHONHOME", "PYTHONPATH", "VIRTUAL_ENV", "PIP_RESPECT_VIRTUALENV")

# Exported by an enclosing claude session; the CLI refuses to start nested.
NESTED_AGENT_VARS = ("CLAUDECODE", "CLAUDE_CODE_ENTRYPOINT")


def agent_environment(
    extra: Mapping[str, str] | None = None,
    *,
    base: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Build the environment for the agent and the git/gh calls around it.

    ``base`` defaults to the current process environment.
    """

    env = {
        key: value
        for key, value in (os.environ if base is None else base).items()
        if key not in INTERPRETER_VARS and key not in NESTED_AGENT_VARS
    }
    env.update(extra or {})
    return env


__all__ = ["INTERPRETER_VARS", "NESTED_AGENT_VARS", "agent_environment"]
