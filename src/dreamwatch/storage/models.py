"""Data models for persisted session and report records."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class SessionStatus(str, Enum):
    """Terminal cause of a session."""

    COMPLETED = "COMPLETED"
    # Reserved for a spend-metering trigger; see Supervisor.record_spend.
    BUDGET_EXCEEDED = "BUDGET_EXCEEDED"
    TIMEOUT = "TIMEOUT"
    KILLED = "KILLED"
    ERROR = "ERROR"

    @property
    def exit_code(self) -> int:
        return 0 if self is SessionStatus.COMPLETED else 1


class SessionState(BaseModel):
    """The persisted record of the single in-flight session."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    pid: int = Field(..., description="Process id of the supervising dreamwatch process.")
    task: str = Field(..., description="Free-text task handed to the agent.")
    branch: str = Field(..., description="Branch the session commits to.")
    budget: float = Field(..., ge=0, description="Budget limit in USD.")
    timeout: int = Field(..., gt=0, description="Wall-clock limit in milliseconds.")
    started_at: datetime = Field(..., description="Session start instant.")
    cwd: str = Field(..., description="Absolute path of the working tree.")

    @field_validator("cwd")
    @classmethod
    def _require_absolute(cls, value: str) -> str:
        if not Path(value).is_absolute():
            raise ValueError("Session cwd must be an absolute path")
        return value

    @field_validator("started_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class ReportData(BaseModel):
    """Outcome record for one finished session."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    task: str
    started_at: datetime
    completed_at: datetime
    duration: str
    budget_used: float = Field(default=0.0, ge=0)
    budget_limit: float = Field(..., ge=0)
    status: SessionStatus
    summary: list[str] = Field(default_factory=list)
    pr_url: str | None = None
    branch: str | None = None


__all__ = ["ReportData", "SessionState", "SessionStatus"]
