"""
Per-run diagnostics.

A DiagnosticsRecorder is created for exactly one run and passed explicitly to
every component of that run. Components only append to it; the orchestrator is
the single reader (attempt count, for the retry bound). When the run reaches a
terminal state the recorder is finished and the caller receives a detached
DiagnosticsSnapshot.
"""

import copy
import time
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from loguru import logger

from inboxprobe.exceptions import DriverFailure, RecorderClosedError
from inboxprobe.form_logic import is_scroll_locked


class AttemptOutcome(str, Enum):
    """Why an attempt ended."""
    SUCCESS = "success"
    NO_INPUT = "noInput"
    NO_SUBMIT = "noSubmit"
    ERROR = "error"


@dataclass
class AttemptRecord:
    """Audit entry for one pass through the signup state machine."""
    index: int
    strategies_attempted: List[str] = field(default_factory=list)
    outcome: Optional[AttemptOutcome] = None
    error_detail: Optional[str] = None
    started_at: str = field(default_factory=lambda: datetime.utcnow().isoformat())
    duration_ms: int = 0

    @property
    def in_progress(self) -> bool:
        return self.outcome is None


@dataclass
class DiagnosticsSnapshot:
    """Everything a run learned about the page and about its own attempts."""
    url: str = ""
    timestamp: str = field(default_factory=lambda: datetime.utcnow().isoformat())
    page_title: str = ""
    frame_count: int = 0
    shadow_host_count: int = 0
    shadow_dom_detected: bool = False
    popup_detected: bool = False
    scroll_locked: bool = False
    modal_active: bool = False
    modal_revealed: bool = False
    popup_harvested: bool = False
    dismiss_clicks: int = 0
    consent_clicks: int = 0
    scroll_events: int = 0
    dom_queries: int = 0
    submissions: int = 0
    verified: Optional[bool] = None
    strategies_attempted: List[str] = field(default_factory=list)
    strategies_used: List[str] = field(default_factory=list)
    successful_strategy: Optional[str] = None
    events: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    attempts: List[AttemptRecord] = field(default_factory=list)
    success: bool = False
    execution_time_ms: int = 0
    error_message: Optional[str] = None

    @property
    def retry_count(self) -> int:
        return len(self.attempts)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        data = asdict(self)
        for attempt in data["attempts"]:
            if attempt["outcome"] is not None:
                attempt["outcome"] = AttemptOutcome(attempt["outcome"]).value
        return data


_FLAG_FIELDS = {f.name for f in fields(DiagnosticsSnapshot) if f.type in (bool, "bool")}
_COUNTER_FIELDS = {
    "frame_count", "shadow_host_count", "dismiss_clicks", "consent_clicks",
    "scroll_events", "dom_queries", "submissions",
}


class DiagnosticsRecorder:
    """
    Append-only accumulator owned by one run.

    Never shared between runs: each run_signup() builds its own.
    """

    def __init__(self, url: str = ""):
        self._snapshot = DiagnosticsSnapshot(url=url)
        self._current: Optional[AttemptRecord] = None
        self._attempt_started = 0.0
        self._run_started = time.monotonic()
        self._closed = False

    def _check_open(self):
        if self._closed:
            raise RecorderClosedError("diagnostics recorder already finished")

    # === Attempts ===

    @property
    def attempt_count(self) -> int:
        """Attempts started so far, including one in progress."""
        return len(self._snapshot.attempts)

    @property
    def current_attempt(self) -> Optional[AttemptRecord]:
        return self._current

    @property
    def last_attempt(self) -> Optional[AttemptRecord]:
        attempts = self._snapshot.attempts
        return attempts[-1] if attempts else None

    def begin_attempt(self) -> AttemptRecord:
        """Open the next attempt record; attempts are strictly sequential."""
        self._check_open()
        if self._current is not None:
            raise RuntimeError(f"attempt {self._current.index} is still in progress")
        record = AttemptRecord(index=self.attempt_count + 1)
        self._snapshot.attempts.append(record)
        self._current = record
        self._attempt_started = time.monotonic()
        return record

    def end_attempt(self, outcome: AttemptOutcome, detail: Optional[str] = None) -> AttemptRecord:
        """Close the open attempt with its outcome."""
        self._check_open()
        if self._current is None:
            raise RuntimeError("no attempt in progress")
        record = self._current
        record.outcome = AttemptOutcome(outcome)
        record.error_detail = detail
        record.duration_ms = int((time.monotonic() - self._attempt_started) * 1000)
        if detail and record.outcome != AttemptOutcome.SUCCESS:
            self._snapshot.errors.append(f"Attempt {record.index}: {detail}")
        self._current = None
        return record

    # === Strategies and events ===

    def attempted(self, strategy_name: str):
        """Note that a strategy was tried."""
        self._check_open()
        self._snapshot.strategies_attempted.append(strategy_name)
        if self._current is not None and strategy_name not in self._current.strategies_attempted:
            self._current.strategies_attempted.append(strategy_name)

    def used(self, strategy_name: str):
        """Note that a strategy produced the element that was acted on."""
        self._check_open()
        self._snapshot.strategies_used.append(strategy_name)

    def succeeded_with(self, strategy_name: str):
        self._check_open()
        self._snapshot.successful_strategy = strategy_name

    def event(self, message: str):
        self._check_open()
        self._snapshot.events.append(message)

    def error(self, message: str):
        self._check_open()
        self._snapshot.errors.append(message)

    # === Flags, counters, values ===

    def flag(self, name: str, value: bool = True):
        """Set a boolean diagnostic. Flags only ever turn on within a run."""
        self._check_open()
        if name not in _FLAG_FIELDS:
            raise AttributeError(f"unknown diagnostics flag: {name}")
        if value:
            setattr(self._snapshot, name, True)

    def count(self, name: str, amount: int = 1):
        self._check_open()
        if name not in _COUNTER_FIELDS:
            raise AttributeError(f"unknown diagnostics counter: {name}")
        setattr(self._snapshot, name, getattr(self._snapshot, name) + amount)

    def set_value(self, name: str, value: Any):
        """Record a measured page value (title, frame count...)."""
        self._check_open()
        if not hasattr(self._snapshot, name) or name in ("attempts", "events", "errors"):
            raise AttributeError(f"cannot set diagnostics field: {name}")
        setattr(self._snapshot, name, value)

    # === Terminal ===

    @property
    def closed(self) -> bool:
        return self._closed

    def finish(self, success: bool, error_message: Optional[str] = None) -> DiagnosticsSnapshot:
        """
        Close the recorder and hand out the snapshot.

        Any attempt still open (the run was aborted mid-attempt) is closed
        as an error so the audit trail stays complete.
        """
        self._check_open()
        if self._current is not None:
            self.end_attempt(AttemptOutcome.ERROR, error_message or "run aborted")
        self._snapshot.success = success
        if error_message:
            self._snapshot.error_message = error_message
        self._snapshot.execution_time_ms = int((time.monotonic() - self._run_started) * 1000)
        self._closed = True
        return copy.deepcopy(self._snapshot)


async def collect_page_diagnostics(driver, recorder: DiagnosticsRecorder):
    """
    Record page-level facts: title, frame count, shadow hosts and scroll lock.

    Best-effort; a failed probe is logged and the rest still run.
    """
    probes = [
        ("page_title", driver.page_title),
        ("frame_count", _count_frames(driver)),
        ("shadow_host_count", _count_shadow_hosts(driver)),
    ]
    probed = {}
    for name, probe in probes:
        try:
            value = await probe()
            recorder.set_value(name, value)
            probed[name] = value
        except DriverFailure:
            raise
        except Exception as e:
            logger.debug(f"Diagnostic probe '{name}' failed: {e}")

    if probed.get("shadow_host_count", 0) > 0:
        recorder.flag("shadow_dom_detected")

    try:
        if is_scroll_locked(await driver.scroll_lock_signal()):
            recorder.flag("scroll_locked")
    except DriverFailure:
        raise
    except Exception as e:
        logger.debug(f"Scroll lock probe failed: {e}")


def _count_frames(driver):
    async def probe():
        return len(await driver.list_frames())
    return probe


def _count_shadow_hosts(driver):
    async def probe():
        return len(await driver.list_shadow_hosts())
    return probe


def report_lines(snapshot: DiagnosticsSnapshot) -> List[str]:
    """Human-readable diagnostics report for one run."""
    def mark(value: bool) -> str:
        return "✅" if value else "❌"

    lines = [
        "📊 AUTOMATION RESULTS",
        "═" * 50,
        f"🎯 URL: {snapshot.url}",
        f"✅ Success: {'✅ YES' if snapshot.success else '❌ NO'}",
        f"⏱️  Execution Time: {snapshot.execution_time_ms}ms",
        f"🔁 Attempts: {snapshot.retry_count}",
        f"🔧 Strategies Used: {len(snapshot.strategies_used)}",
    ]
    lines.extend(f"   • {name}" for name in snapshot.strategies_used)
    lines.extend([
        "",
        "🔍 DIAGNOSTICS:",
        f"   📄 Page Title: {snapshot.page_title}",
        f"   🪟 Popup Detected: {mark(snapshot.popup_detected)}",
        f"   🖼️  Frame Count: {snapshot.frame_count}",
        f"   🌑 Shadow DOM: {mark(snapshot.shadow_dom_detected)}",
        f"   🔒 Scroll Locked: {mark(snapshot.scroll_locked)}",
        f"   🔔 Modal Active: {mark(snapshot.modal_active)}",
        f"   🌀 Scroll Events: {snapshot.scroll_events}",
        f"   🔎 DOM Queries: {snapshot.dom_queries}",
    ])
    for attempt in snapshot.attempts:
        outcome = attempt.outcome.value if attempt.outcome else "in progress"
        detail = f" ({attempt.error_detail})" if attempt.error_detail else ""
        lines.append(f"   #{attempt.index}: {outcome}{detail} [{attempt.duration_ms}ms]")
    if snapshot.errors:
        lines.append("")
        lines.append("❌ ERRORS:")
        lines.extend(f"   • {error}" for error in snapshot.errors)
    lines.append("═" * 50)
    return lines
