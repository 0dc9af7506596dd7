"""Persistence of session records and reports."""

from .models import ReportData, SessionState, SessionStatus
from .reports import ReportStore, generate_report, get_latest_report, save_report
from .sessions import (
    SessionStore,
    clear_session,
    is_session_alive,
    load_session,
    save_session,
)

__all__ = [
    "ReportData",
    "ReportStore",
    "SessionState",
    "SessionStatus",
    "SessionStore",
    "clear_session",
    "generate_report",
    "get_latest_report",
    "is_session_alive",
    "load_session",
    "save_report",
    "save_session",
]
