"""Shared exception base for dreamwatch."""

from __future__ import annotations


class DreamwatchError(RuntimeError):
    """Base class for errors reported to the user as a failed command."""


__all__ = ["DreamwatchError"]
