"""Rendering and persistence of session reports."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from ..config import get_data_dir
from .models import ReportData

logger = logging.getLogger(__name__)

REPORTS_DIRNAME = "reports"
HISTORY_FILENAME = "history.jsonl"
REPORT_TITLE = "# dreamwatch Report"


def generate_report(data: ReportData) -> str:
    """Render ``data`` as a Markdown document."""

    fields = [
        f"**Task:** {data.task}",
        f"**Started:** {data.started_at.isoformat()}",
        f"**Completed:** {data.completed_at.isoformat()}",
        f"**Duration:** {data.duration}",
        f"**Status:** {data.status.value}",
        f"**Budget:** ${data.budget_used:.2f} / ${data.budget_limit:.2f}",
    ]
    if data.branch:
        fields.append(f"**Branch:** {data.branch}")
    if data.pr_url:
        fields.append(f"**Pull Request:** {data.pr_url}")

    summary = [f"- {line}" for line in data.summary] or ["- No summary recorded."]
    sections = [REPORT_TITLE, *fields, "## Summary", "\n".join(summary)]
    return "\n\n".join(sections) + "\n"


class ReportStore:
    """Keep rendered reports and the report history in a directory."""

    def __init__(
        self,
        directory: Path | str,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._directory = Path(directory)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def history_path(self) -> Path:
        return self._directory / HISTORY_FILENAME

    def _next_path(self) -> Path:
        stamp = self._clock().strftime("%Y-%m-%d-%H%M%S")
        candidate = self._directory / f"{stamp}.md"
        counter = 1
        while candidate.exists():
            candidate = self._directory / f"{stamp}_{counter:02d}.md"
            counter += 1
        return candidate

    def save(self, text: str, path: Path | None = None) -> Path:
        """Write ``text`` to a new dated file, or overwrite ``path`` when given."""

        self._directory.mkdir(parents=True, exist_ok=True)
        target = Path(path) if path is not None else self._next_path()
        target.write_text(text, encoding="utf-8")
        return target

    def latest_path(self) -> Path | None:
        if not self._directory.exists():
            return None
        reports = sorted(
            self._directory.glob("*.md"),
            key=lambda path: (path.stat().st_mtime_ns, path.name),
        )
        return reports[-1] if reports else None

    def latest(self) -> str | None:
        path = self.latest_path()
        return path.read_text(encoding="utf-8") if path is not None else None

    def append_history(self, data: ReportData) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        with self.history_path.open("a", encoding="utf-8") as handle:
            handle.write(data.model_dump_json(by_alias=True) + "\n")

    def history(self) -> list[ReportData]:
        if not self.history_path.exists():
            return []

        records: list[ReportData] = []
        for lineno, line in enumerate(self.history_path.read_text(encoding="utf-8").splitlines(), 1):
            if not line.strip():
                continue
            try:
                records.append(ReportData.model_validate_json(line))
            except ValidationError as exc:
                logger.warning(
                    "Skipping corrupt report history line %d: %s",
                    lineno,
                    exc,
                    extra={"path": str(self.history_path)},
                )
        return records


def default_report_store() -> ReportStore:
    return ReportStore(get_data_dir() / REPORTS_DIRNAME)


def save_report(text: str) -> Path:
    return default_report_store().save(text)


def get_latest_report() -> str | None:
    return default_report_store().latest()


__all__ = [
    "REPORT_TITLE",
    "ReportStore",
    "default_report_store",
    "generate_report",
    "get_latest_report",
    "save_report",
]
