"""Single-slot persistence of the active session record."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from pydantic import ValidationError

from ..config import get_data_dir
from .models import SessionState

logger = logging.getLogger(__name__)

SESSION_FILENAME = "session.json"


class SessionStore:
    """Read and write the session record at a fixed path."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def save(self, state: SessionState) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(state.model_dump_json(by_alias=True, indent=2), encoding="utf-8")

    def load(self) -> SessionState | None:
        """Return the stored session, or ``None`` when absent or unreadable."""

        if not self._path.exists():
            return None
        try:
            return SessionState.model_validate_json(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError, ValidationError) as exc:
            logger.warning(
                "Failed to load session from %s: %s", self._path, exc, extra={"path": str(self._path)}
            )
            return None

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)


def is_session_alive(state: SessionState) -> bool:
    """Best-effort check that the recorded pid still names a live process."""

    if state.pid <= 0:
        return False
    try:
        os.kill(state.pid, 0)
    except (OSError, OverflowError):
        return False
    return True


def default_store() -> SessionStore:
    return SessionStore(get_data_dir() / SESSION_FILENAME)


def save_session(state: SessionState) -> None:
    default_store().save(state)


def load_session() -> SessionState | None:
    return default_store().load()


def clear_session() -> None:
    default_store().clear()


__all__ = [
    "SESSION_FILENAME",
    "SessionStore",
    "clear_session",
    "default_store",
    "is_session_alive",
    "load_session",
    "save_session",
]
