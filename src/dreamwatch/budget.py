"""Duration and budget parsing helpers."""

from __future__ import annotations

import math
import re

from .errors import DreamwatchError

_DURATION_TOKEN = re.compile(r"(\d+)\s*([hms])")
_UNIT_MS = {
    "h": 60 * 60 * 1000,
    "m": 60 * 1000,
    "s": 1000,
}


class InvalidFormatError(DreamwatchError, ValueError):
    """Raised when a duration string contains no usable ``<n><unit>`` tokens."""


class InvalidAmountError(DreamwatchError, ValueError):
    """Raised when a budget amount is not a non-negative number."""


def parse_duration(text: str) -> int:
    """Convert strings such as ``"4h"`` or ``"1h15m30s"`` into milliseconds.

    Tokens are summed in the order they appear and may repeat. A string with no
    tokens, or whose tokens add up to zero, is rejected.
    """

    if not isinstance(text, str):
        raise InvalidFormatError(f"Invalid duration format: {text!r}")

    total_ms = 0
    for value, unit in _DURATION_TOKEN.findall(text):
        total_ms += int(value) * _UNIT_MS[unit]

    if total_ms == 0:
        raise InvalidFormatError(
            f'Invalid duration format: {text!r}. Use formats like "4h", "30m", "2h30m"'
        )
    return total_ms


def format_duration(ms: float) -> str:
    """Render milliseconds as ``"2h 30m"``; seconds only appear below one hour."""

    ms = max(0, int(ms))
    hours = ms // _UNIT_MS["h"]
    minutes = (ms % _UNIT_MS["h"]) // _UNIT_MS["m"]
    seconds = (ms % _UNIT_MS["m"]) // _UNIT_MS["s"]

    parts: list[str] = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if seconds > 0 and hours == 0:
        parts.append(f"{seconds}s")
    return " ".join(parts) or "0s"


def parse_budget(amount: str | int | float) -> float:
    """Return ``amount`` as a non-negative float of currency units."""

    if isinstance(amount, bool):
        raise InvalidAmountError(f"Invalid budget amount: {amount!r}")
    try:
        value = float(amount.strip() if isinstance(amount, str) else amount)
    except (TypeError, ValueError) as exc:
        raise InvalidAmountError(f"Invalid budget amount: {amount!r}") from exc

    if not math.isfinite(value) or value < 0:
        raise InvalidAmountError(f"Invalid budget amount: {amount!r}")
    return value


__all__ = [
    "InvalidAmountError",
    "InvalidFormatError",
    "format_duration",
    "parse_budget",
    "parse_duration",
]
