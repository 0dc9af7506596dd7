"""Session supervisor: runs one agent session from branch creation to shutdown."""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import IO, Callable, Protocol

from .agent import AgentRunner, AgentRunnerError
from .branch import create_branch, install_pre_push_hook, remove_pre_push_hook, slugify
from .budget import format_duration, parse_budget
from .config import DreamwatchSettings, get_data_dir, get_settings
from .errors import DreamwatchError
from .storage import (
    ReportData,
    ReportStore,
    SessionState,
    SessionStatus,
    SessionStore,
    generate_report,
)
from .storage.reports import REPORTS_DIRNAME
from .storage.sessions import SESSION_FILENAME
from .vcs import GitHubCLI, GitRepository

logger = logging.getLogger(__name__)

GRACE_PERIOD_SECONDS = 10.0
LOGS_DIRNAME = "logs"
SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class NotARepoError(DreamwatchError):
    """Raised when a session is started outside a git repository."""


class SupervisorPhase(str, Enum):
    IDLE = "IDLE"
    STARTING = "STARTING"
    RUNNING = "RUNNING"
    SHUTTING_DOWN = "SHUTTING_DOWN"
    TERMINATED = "TERMINATED"


@dataclass(slots=True)
class SessionOptions:
    """Per-session limits chosen on the command line."""

    budget: float
    timeout_ms: int
    branch: str | None = None
    no_pr: bool = False


class AgentProcess(Protocol):
    pid: int
    returncode: int | None

    async def wait(self) -> int:
        ...

    def terminate(self) -> None:
        ...

    def kill(self) -> None:
        ...


class AgentLauncher(Protocol):
    async def launch(self, task: str, *, cwd: Path, log_file: IO[bytes]) -> AgentProcess:
        ...


class Repository(Protocol):
    def is_repository(self) -> bool:
        ...

    async def checkout_new_branch(self, name: str) -> None:
        ...

    async def has_changes(self) -> bool:
        ...

    async def add_all(self) -> None:
        ...

    async def commit(self, message: str) -> None:
        ...

    async def push(self, branch: str) -> None:
        ...


class PullRequestPublisher(Protocol):
    async def create_pull_request(
        self, title: str, body: str, *, draft: bool = True, head: str | None = None
    ) -> str:
        ...


def commit_message(state: SessionState, cause: SessionStatus) -> str:
    return (
        f"dreamwatch: auto-commit on {cause.value.lower()}\n\n"
        f"Task: {state.task}\n"
        f"Branch: {state.branch}\n"
        f"Session started: {state.started_at.isoformat()}"
    )


class Supervisor:
    """Own a single agent session: its child process, timers and shutdown.

    Exactly one shutdown cause is accepted per session. The process exit watcher,
    the timeout timer and the SIGINT/SIGTERM handlers all funnel through
    :meth:`request_shutdown`; whichever arrives first decides the terminal status
    and the rest are ignored.
    """

    def __init__(
        self,
        *,
        settings: DreamwatchSettings | None = None,
        cwd: Path | str | None = None,
        runner: AgentLauncher | None = None,
        repository: Repository | None = None,
        publisher: PullRequestPublisher | None = None,
        sessions: SessionStore | None = None,
        reports: ReportStore | None = None,
        clock: Callable[[], datetime] | None = None,
        grace_period: float = GRACE_PERIOD_SECONDS,
        handle_signals: bool = True,
    ) -> None:
        self._settings = settings or get_settings()
        self._cwd = Path(cwd or os.getcwd()).resolve()
        self._data_dir = get_data_dir(self._settings)
        self._runner = runner or AgentRunner(self._settings.agent_path)
        self._repository = repository or GitRepository(self._cwd)
        self._publisher = publisher or GitHubCLI(self._cwd)
        self._sessions = sessions or SessionStore(self._data_dir / SESSION_FILENAME)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._reports = reports or ReportStore(self._data_dir / REPORTS_DIRNAME, clock=self._clock)
        self._grace_period = grace_period
        self._handle_signals = handle_signals

        self._phase = SupervisorPhase.IDLE
        self._state: SessionState | None = None
        self._options: SessionOptions | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._process: AgentProcess | None = None
        self._watcher: asyncio.Task | None = None
        self._log_file: IO[bytes] | None = None
        self._timeout_handle: asyncio.TimerHandle | None = None
        self._installed_signals: list[signal.Signals] = []
        self._budget_used = 0.0

        self._shutdown_lock = threading.Lock()
        self._cause: SessionStatus | None = None
        self._shutdown_requested = asyncio.Event()

        self.report: ReportData | None = None
        self.report_path: Path | None = None

    @property
    def phase(self) -> SupervisorPhase:
        return self._phase

    @property
    def cause(self) -> SessionStatus | None:
        return self._cause

    @property
    def state(self) -> SessionState | None:
        return self._state

    @property
    def budget_used(self) -> float:
        return self._budget_used

    @property
    def log_path(self) -> Path:
        day = self._clock().date().isoformat()
        return self._data_dir / LOGS_DIRNAME / f"{day}.log"

    # -- STARTING ---------------------------------------------------------

    async def start(self, task: str, options: SessionOptions) -> SessionState:
        """Create the session branch, install the push guard and record the session."""

        if self._phase is not SupervisorPhase.IDLE:
            raise DreamwatchError(f"Session already started (phase {self._phase.value})")
        self._phase = SupervisorPhase.STARTING

        try:
            if not self._repository.is_repository():
                raise NotARepoError(
                    f"Not a git repository: {self._cwd}. Run from inside a git repo."
                )
            slug = slugify(task) or "session"
            branch = await create_branch(
                self._repository, slug, self._settings.branch_prefix, options.branch
            )
        except Exception:
            self._phase = SupervisorPhase.TERMINATED
            raise

        try:
            install_pre_push_hook(self._cwd)
        except OSError as exc:
            logger.warning("Failed to install pre-push hook: %s", exc)

        try:
            state = SessionState(
                pid=os.getpid(),
                task=task,
                branch=branch,
                budget=options.budget,
                timeout=options.timeout_ms,
                started_at=self._clock(),
                cwd=str(self._cwd),
            )
            self._sessions.save(state)
        except Exception:
            self._phase = SupervisorPhase.TERMINATED
            try:
                remove_pre_push_hook(self._cwd)
            except OSError as exc:
                logger.warning("Failed to remove pre-push hook: %s", exc)
            raise
        self._state = state
        self._options = options

        logger.info(
            "dreamwatch session started: task=%r branch=%s budget=$%.2f timeout=%s",
            task,
            branch,
            options.budget,
            format_duration(options.timeout_ms),
            extra={"branch": branch, "pid": state.pid},
        )
        return state

    # -- RUNNING ----------------------------------------------------------

    async def run(self, task: str, options: SessionOptions) -> int:
        """Run a full session and return the process exit code for its outcome."""

        state = await self.start(task, options)
        self._loop = asyncio.get_running_loop()
        self._phase = SupervisorPhase.RUNNING

        await self._launch_agent(state)
        self._arm_timeout(state)
        if self._handle_signals:
            self._install_signal_handlers()

        await self._shutdown_requested.wait()
        if self._cause is None:
            raise DreamwatchError("Shutdown requested without a cause")
        return await self._shutdown(self._cause)

    def request_shutdown(self, cause: SessionStatus) -> bool:
        """Begin shutdown with ``cause`` unless another cause already won.

        Returns ``True`` only for the call that initiated the shutdown.
        """

        with self._shutdown_lock:
            if self._cause is not None:
                logger.info(
                    "Shutdown already in progress (%s); ignoring %s",
                    self._cause.value,
                    cause.value,
                )
                return False
            self._cause = cause

        logger.info("Graceful shutdown initiated (%s)", cause.value, extra={"cause": cause.value})
        loop = self._loop
        if loop is not None and not loop.is_closed():
            loop.call_soon_threadsafe(self._shutdown_requested.set)
        else:
            self._shutdown_requested.set()
        return True

    def record_spend(self, amount: float) -> None:
        """Add ``amount`` to the spend counter, shutting down once over budget.

        No live metering feeds this yet; the counter stays at zero unless a caller
        reports spend explicitly.
        """

        self._budget_used += parse_budget(amount)
        if self._state is not None and self._budget_used > self._state.budget:
            logger.warning(
                "Budget exceeded: $%.2f of $%.2f", self._budget_used, self._state.budget
            )
            self.request_shutdown(SessionStatus.BUDGET_EXCEEDED)

    def _open_log(self) -> IO[bytes]:
        path = self.log_path
        path.parent.mkdir(parents=True, exist_ok=True)
        return path.open("ab")

    async def _launch_agent(self, state: SessionState) -> None:
        try:
            self._log_file = self._open_log()
            self._process = await self._runner.launch(
                state.task, cwd=self._cwd, log_file=self._log_file
            )
        except (AgentRunnerError, OSError) as exc:
            logger.error("Failed to start agent process: %s", exc)
            self.request_shutdown(SessionStatus.ERROR)
            return

        logger.info("Agent process started", extra={"pid": self._process.pid})
        self._watcher = asyncio.create_task(self._watch_agent(self._process))

    async def _watch_agent(self, process: AgentProcess) -> None:
        returncode = await process.wait()
        logger.info("Agent process exited with code %s", returncode)
        self.request_shutdown(SessionStatus.COMPLETED if returncode == 0 else SessionStatus.ERROR)

    def _arm_timeout(self, state: SessionState) -> None:
        if self._loop is None:
            raise DreamwatchError("Supervisor is not running")
        elapsed = (self._clock() - state.started_at).total_seconds()
        delay = max(0.0, state.timeout / 1000 - elapsed)
        self._timeout_handle = self._loop.call_later(delay, self._on_timeout)

    def _on_timeout(self) -> None:
        timeout_ms = self._state.timeout if self._state else 0
        logger.info("Timeout reached (%s)", format_duration(timeout_ms))
        self.request_shutdown(SessionStatus.TIMEOUT)

    def _on_signal(self, signum: int) -> None:
        logger.info("Received %s", signal.Signals(signum).name)
        self.request_shutdown(SessionStatus.KILLED)

    def _install_signal_handlers(self) -> None:
        if self._loop is None:
            raise DreamwatchError("Supervisor is not running")
        for sig in SHUTDOWN_SIGNALS:
            try:
                self._loop.add_signal_handler(sig, self._on_signal, sig)
            except (NotImplementedError, RuntimeError):
                logger.debug("Signal handler for %s unavailable", sig.name)
                continue
            self._installed_signals.append(sig)

    def _remove_signal_handlers(self) -> None:
        if self._loop is None:
            return
        for sig in self._installed_signals:
            self._loop.remove_signal_handler(sig)
        self._installed_signals.clear()

    # -- SHUTTING_DOWN ----------------------------------------------------

    async def _shutdown(self, cause: SessionStatus) -> int:
        self._phase = SupervisorPhase.SHUTTING_DOWN
        if self._timeout_handle is not None:
            self._timeout_handle.cancel()
        state = self._state
        if state is None:
            raise DreamwatchError("Cannot shut down a session that never started")

        await self._stop_agent()
        self._close_log()

        summary = [f"Session ended: {cause.value}"]
        summary.append(await self._commit_changes(state, cause))

        completed_at = self._clock()
        elapsed_ms = max(0, int((completed_at - state.started_at).total_seconds() * 1000))
        report = ReportData(
                task=state.task,
                started_at=state.started_at,
            completed_at=completed_at,
            duration=format_duration(elapsed_ms),
            budget_used=self._budget_used,
            budget_limit=state.budget,
            status=cause,
            summary=summary,
                branch=state.branch,
        )
        text = generate_report(report)
        self.report_path = self._save_report(text)

        if self._pr_enabled():
            report = await self._publish(state, report, text)

        try:
            self._reports.append_history(report)
        except OSError as exc:
            logger.warning("Failed to append report history: %s", exc)
        self.report = report

        try:
            remove_pre_push_hook(state.cwd)
        except OSError as exc:
            logger.warning("Failed to remove pre-push hook: %s", exc)

        try:
            self._sessions.clear()
        except OSError as exc:
            logger.warning("Failed to clear session record: %s", exc)

        self._remove_signal_handlers()
        if self._watcher is not None and not self._watcher.done():
            self._watcher.cancel()
        self._phase = SupervisorPhase.TERMINATED
        logger.info("Shutdown complete", extra={"cause": cause.value})
        return cause.exit_code

    async def _stop_agent(self) -> None:
        process = self._process
        if process is None or process.returncode is not None:
            return

        logger.info("Terminating agent process", extra={"pid": process.pid})
        try:
            process.terminate()
        except ProcessLookupError:
            return

        loop = asyncio.get_running_loop()
        grace_handle = loop.call_later(self._grace_period, self._force_kill, process)
        try:
            await process.wait()
        finally:
            grace_handle.cancel()

    @staticmethod
    def _force_kill(process: AgentProcess) -> None:
        if process.returncode is not None:
            return
        logger.warning("Force killing agent process", extra={"pid": process.pid})
        try:
            process.kill()
        except ProcessLookupError:
            pass

    def _close_log(self) -> None:
        if self._log_file is not None:
            self._log_file.close()
            self._log_file = None

    async def _commit_changes(self, state: SessionState, cause: SessionStatus) -> str:
        try:
            if not await self._repository.has_changes():
                return "No uncommitted changes to commit"
            logger.info("Committing uncommitted changes")
            await self._repository.add_all()
            await self._repository.commit(commit_message(state, cause))
        except (DreamwatchError, OSError) as exc:
            logger.warning("Failed to commit changes: %s", exc)
            return "Auto-commit failed; changes left uncommitted"
        return f"Uncommitted changes committed to {state.branch}"

    def _save_report(self, text: str, path: Path | None = None) -> Path | None:
        try:
            saved = self._reports.save(text, path)
        except OSError as exc:
            logger.warning("Failed to save report: %s", exc)
            return path
        logger.info("Report saved to: %s", saved)
        return saved

    def _pr_enabled(self) -> bool:
        no_pr = self._options.no_pr if self._options is not None else False
        return self._settings.autopr and not no_pr

    async def _publish(self, state: SessionState, report: ReportData, text: str) -> ReportData:
        logger.info("Creating pull request")
        try:
            await self._repository.push(state.branch)
            pr_url = await self._publisher.create_pull_request(
                f"dreamwatch: {state.task}",
                text,
                draft=self._settings.pr_draft,
                head=state.branch,
            )
        except (DreamwatchError, OSError) as exc:
            logger.warning("Failed to create pull request: %s", exc)
            return report

        logger.info("Pull request created: %s", pr_url)
        report = report.model_copy(update={"pr_url": pr_url})
        self.report_path = self._save_report(generate_report(report), self.report_path)
        return report


def start_session(task: str, options: SessionOptions, **kwargs) -> int:
    """Run a session to completion on a fresh event loop."""

    supervisor = Supervisor(**kwargs)
    return asyncio.run(supervisor.run(task, options))


__all__ = [
    "GRACE_PERIOD_SECONDS",
    "NotARepoError",
    "SHUTDOWN_SIGNALS",
    "SessionOptions",
    "Supervisor",
    "SupervisorPhase",
    "commit_message",
    "start_session",
]
