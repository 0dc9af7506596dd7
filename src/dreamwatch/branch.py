"""Session branch naming and the pre-push guard hook."""

from __future__ import annotations

import logging
import re
from datetime import date
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

SLUG_MAX_LENGTH = 50
HOOK_MARKER = "dreamwatch pre-push hook"
PROTECTED_REFS = ("refs/heads/main", "refs/heads/master")

_NON_ALNUM = re.compile(r"[^a-z0-9]+")

PRE_PUSH_HOOK = f"""#!/bin/sh
# {HOOK_MARKER}: reject pushes to main/master

while read local_ref local_sha remote_ref remote_sha
do
  if [ "$remote_ref" = "{PROTECTED_REFS[0]}" ] || [ "$remote_ref" = "{PROTECTED_REFS[1]}" ]; then
    echo "ERROR: dreamwatch blocks direct pushes to main/master"
    echo "This is a dreamwatch safety rail. Push to a feature branch instead."
    exit 1
  fi
done

exit 0
"""


class BranchCreator(Protocol):
    """Minimal git capability needed to start a session branch."""

    async def checkout_new_branch(self, name: str) -> None:
        ...


def slugify(text: str) -> str:
    slug = _NON_ALNUM.sub("-", text.lower()).strip("-")
    return slug[:SLUG_MAX_LENGTH]


def branch_name(
    slug: str,
    prefix: str,
    custom_name: str | None = None,
    *,
    today: date | None = None,
) -> str:
    """Return ``custom_name`` or ``<prefix>/<YYYY-MM-DD>/<slug>``."""

    if custom_name:
        return custom_name
    day = (today or date.today()).isoformat()
    return f"{prefix}/{day}/{slug}"


async def create_branch(
    repo: BranchCreator,
    slug: str,
    prefix: str,
    custom_name: str | None = None,
) -> str:
    """Create and check out the session branch; git failures propagate."""

    name = branch_name(slug, prefix, custom_name)
    await repo.checkout_new_branch(name)
    logger.info("Checked out session branch %s", name, extra={"branch": name})
    return name


def hook_path(directory: Path | str) -> Path:
    return Path(directory) / ".git" / "hooks" / "pre-push"


def install_pre_push_hook(directory: Path | str) -> Path:
    """Write the guard hook, replacing whatever pre-push hook is present."""

    path = hook_path(directory)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(PRE_PUSH_HOOK, encoding="utf-8")
    path.chmod(0o755)
    return path


def remove_pre_push_hook(directory: Path | str) -> bool:
    """Delete the pre-push hook only if dreamwatch installed it."""

    path = hook_path(directory)
    if not path.exists():
        return False

    content = path.read_text(encoding="utf-8", errors="replace")
    if HOOK_MARKER not in content:
        logger.info("Leaving foreign pre-push hook in place", extra={"path": str(path)})
        return False

    path.unlink()
    return True


__all__ = [
    "HOOK_MARKER",
    "PRE_PUSH_HOOK",
    "PROTECTED_REFS",
    "BranchCreator",
    "branch_name",
    "create_branch",
    "hook_path",
    "install_pre_push_hook",
    "remove_pre_push_hook",
    "slugify",
]
