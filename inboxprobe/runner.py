"""
Run and batch execution.

run_signup() is one complete run: open a browser session, load the target,
drive the signup orchestrator and release the session on every exit path.
SignupRunner sequences many runs, records their results and prints a summary.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from loguru import logger

from inboxprobe.browser import BrowserAutomation
from inboxprobe.config import ProbeSettings, RunRequest
from inboxprobe.database.operations import ResultStore
from inboxprobe.diagnostics import (
    DiagnosticsRecorder,
    DiagnosticsSnapshot,
    collect_page_diagnostics,
    report_lines,
)
from inboxprobe.exceptions import DriverFailure
from inboxprobe.orchestrator import SignupOrchestrator, SignupState
from inboxprobe.utils.helpers import random_delay
from inboxprobe.utils.simple_logger import slog

ABORTED = "aborted"


@dataclass
class RunResult:
    """Outcome of one run against one target."""
    url: str
    success: bool
    state: str
    diagnostics: DiagnosticsSnapshot
    execution_time_ms: int = 0

    @property
    def error_message(self) -> Optional[str]:
        return self.diagnostics.error_message

    @property
    def attempts(self) -> int:
        return self.diagnostics.retry_count


def _exhausted_message(recorder: DiagnosticsRecorder) -> str:
    last = recorder.last_attempt
    if last is None:
        return "No attempt was made"
    reason = last.error_detail or (last.outcome.value if last.outcome else "unknown")
    return f"All {recorder.attempt_count} attempts failed (last: {reason})"


async def run_signup(request: RunRequest, settings: Optional[ProbeSettings] = None,
                     session_factory: Callable = BrowserAutomation) -> RunResult:
    """
    Execute one signup run.

    Args:
        request: Target URL and email address
        settings: Engine settings (defaults when omitted)
        session_factory: Builds the async-context browser session

    Returns:
        RunResult; failures are reported in it, never raised
    """
    settings = settings or ProbeSettings()
    recorder = DiagnosticsRecorder(request.target_url)
    orchestrator: Optional[SignupOrchestrator] = None
    success = False
    error_message = None
    state = SignupState.IDLE.value

    try:
        async with session_factory(headless=settings.headless, debug=settings.debug) as session:
            driver = session.driver
            await driver.navigate(
                request.target_url,
                timeout=settings.navigation_timeout,
                settle=settings.settle_delay,
            )
            if settings.diagnostics_enabled:
                await collect_page_diagnostics(driver, recorder)

            orchestrator = SignupOrchestrator(driver, recorder, request.test_email, settings)
            success = await orchestrator.run()
            state = orchestrator.state.value

            if not success:
                error_message = _exhausted_message(recorder)
                if settings.debug:
                    path = await session.take_screenshot("failed_signup")
                    if path:
                        recorder.event(f"screenshot saved: {path}")

    except DriverFailure as e:
        error_message = str(e)
        state = ABORTED
        slog.detail_warning(f"Run aborted: {error_message}")
    except Exception as e:
        logger.error(f"Error processing URL: {e}", exc_info=True)
        error_message = f"Exception: {str(e)[:150]}"
        state = ABORTED

    snapshot = recorder.finish(success, error_message)
    return RunResult(
        url=request.target_url,
        success=success,
        state=state,
        diagnostics=snapshot,
        execution_time_ms=snapshot.execution_time_ms,
    )


class SignupRunner:
    """
    Runs a batch of signup requests.
    Coordinates sessions, result recording and the batch summary.
    """

    def __init__(self, settings: Optional[ProbeSettings] = None, store: Optional[ResultStore] = None,
                 session_factory: Callable = BrowserAutomation, stop_check: Callable = None):
        """
        Initialize the runner.

        Args:
            settings: Engine settings shared by all runs
            store: Optional result store; results are recorded when given
            session_factory: Browser session factory passed to run_signup
            stop_check: Optional callable that returns True if stop requested
        """
        self.settings = settings or ProbeSettings()
        self.store = store
        self.session_factory = session_factory
        self._stop_requested = False
        self._external_stop_check = stop_check

        self.stats = {
            "total_runs": 0,
            "successful": 0,
            "failed": 0,
            "skipped": 0,
            "execution_ms": [],
            "errors": [],
        }

    def stop(self):
        """Request the runner to stop gracefully after the runs in flight."""
        slog.detail("⏹ Stop requested, finishing current run...")
        self._stop_requested = True

    def _stop_check(self) -> bool:
        if self._stop_requested:
            return True
        if self._external_stop_check and self._external_stop_check():
            self._stop_requested = True
            return True
        return False

    async def run_batch(self, requests: Sequence[RunRequest], source: str = "cli") -> List[RunResult]:
        """
        Run every request, at most `concurrency` at a time.

        Returns:
            Results of the runs that executed, in request order
        """
        total = len(requests)
        if not total:
            logger.warning("⚠️ No targets to process")
            return []

        logger.info(f"📋 Processing {total} URLs...")
        start_time = time.time()
        semaphore = asyncio.Semaphore(self.settings.concurrency)

        async def worker(index: int, request: RunRequest) -> Optional[RunResult]:
            async with semaphore:
                result = await self._process(index, total, request, source)
                if result is not None and index < total and self.settings.target_delay and not self._stop_check():
                    delay = self.settings.target_delay
                    await asyncio.sleep(random_delay(delay, delay * 1.5))
                return result

        try:
            results = await asyncio.gather(*(worker(i, r) for i, r in enumerate(requests, 1)))
        finally:
            self._print_summary(time.time() - start_time)
        return [r for r in results if r is not None]

    async def _process(self, index: int, total: int, request: RunRequest, source: str) -> Optional[RunResult]:
        if self._stop_check():
            return None

        url = request.target_url
        if self.store and self.settings.skip_processed and self.store.is_url_processed(url, successful_only=True):
            slog.url_skipped("Already processed")
            self.stats["skipped"] += 1
            return None

        slog.url_start(index, total, url)
        result = await run_signup(request, self.settings, self.session_factory)

        self.stats["total_runs"] += 1
        self.stats["execution_ms"].append(result.execution_time_ms)
        if result.success:
            self.stats["successful"] += 1
            used = ", ".join(dict.fromkeys(result.diagnostics.strategies_used))
            slog.url_success(used)
        else:
            self.stats["failed"] += 1
            self.stats["errors"].append(result.error_message or "Unknown error")
            slog.url_failed(result.error_message or "Unknown error")

        if self.settings.diagnostics_enabled:
            for line in report_lines(result.diagnostics):
                slog.detail(line)

        self._record_result(request, result, source)
        return result

    def _record_result(self, request: RunRequest, result: RunResult, source: str):
        """Record run result in database."""
        if not self.store or not self.settings.record_results:
            return
        try:
            self.store.add_result(
                url=result.url,
                email=request.test_email,
                source=source,
                status="success" if result.success else "failed",
                final_state=result.state,
                attempts=result.attempts,
                strategies_used=result.diagnostics.strategies_used,
                error_message=result.error_message,
                diagnostics=result.diagnostics.to_dict() if self.settings.diagnostics_enabled else None,
                execution_time_ms=result.execution_time_ms,
            )
        except Exception as e:
            logger.warning(f"Could not record result for {result.url}: {e}")

    def summary(self) -> Dict[str, float]:
        """Success rate and average execution time over the runs so far."""
        runs = self.stats["total_runs"]
        times = self.stats["execution_ms"]
        return {
            "runs": runs,
            "successful": self.stats["successful"],
            "failed": self.stats["failed"],
            "skipped": self.stats["skipped"],
            "success_rate": (self.stats["successful"] / runs * 100) if runs else 0.0,
            "average_ms": (sum(times) / len(times)) if times else 0.0,
        }

    def _print_summary(self, elapsed_time: float):
        """Print execution summary."""
        summary = self.summary()
        slog.summary(self.stats["successful"], self.stats["failed"], self.stats["skipped"], elapsed_time)

        slog.detail("\n" + "=" * 60)
        slog.detail("📊 EXECUTION SUMMARY")
        slog.detail("=" * 60)
        slog.detail(f"⏱️  Total time: {elapsed_time:.1f}s ({elapsed_time/60:.1f}m)")
        slog.detail(f"📋 Total runs: {summary['runs']}")
        slog.detail(f"✅ Successful: {summary['successful']}")
        slog.detail(f"❌ Failed: {summary['failed']}")
        slog.detail(f"⏭️  Skipped: {summary['skipped']}")
        if summary["runs"]:
            slog.detail(f"📈 Success rate: {summary['success_rate']:.1f}%")
            slog.detail(f"⏲️  Average run: {summary['average_ms']:.0f}ms")
        slog.detail("=" * 60)
