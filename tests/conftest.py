from __future__ import annotations

from pathlib import Path

import pytest

from dreamwatch.config import get_settings

_SETTINGS_ENV = (
    "DREAMWATCH_DEFAULT_BUDGET",
    "DREAMWATCH_DEFAULT_TIMEOUT",
    "DREAMWATCH_BRANCH_PREFIX",
    "DREAMWATCH_AUTOPR",
    "DREAMWATCH_PR_DRAFT",
    "DREAMWATCH_AGENT_PATH",
    "DREAMWATCH_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def dreamwatch_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home = tmp_path / "dreamwatch-home"
    monkeypatch.setenv("DREAMWATCH_HOME", str(home))
    for name in _SETTINGS_ENV:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield home
    get_settings.cache_clear()
