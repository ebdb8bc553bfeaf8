"""
Simple Logger for InboxProbe.
Provides clean, user-friendly logs by default with optional detailed mode.
"""

from loguru import logger

from inboxprobe.utils.helpers import truncate


class SimpleLogger:
    """
    Conditional logger that shows simple one-liner logs by default,
    or detailed logs when detailed=True.

    Simple mode: Only major events (target start, success/fail, attempt outcomes)
    Detailed mode: Full technical details (strategy lookups, contexts, clicks)
    """

    def __init__(self, detailed: bool = False):
        self.detailed = detailed

    def set_detailed(self, detailed: bool):
        """Update detailed logging mode."""
        self.detailed = detailed

    # === ALWAYS SHOWN (both simple and detailed) ===

    def url_start(self, index: int, total: int, url: str):
        """Log start of target processing - always shown."""
        logger.info(f"📍 [{index}/{total}] {truncate(url, 60)}")

    def url_success(self, detail: str = ""):
        """Log successful signup - always shown."""
        info = f" ({detail})" if detail else ""
        logger.success(f"✅ Signup submitted{info}")

    def url_failed(self, reason: str):
        """Log failed signup - always shown."""
        logger.error(f"❌ Failed: {reason[:80]}")

    def url_skipped(self, reason: str):
        """Log skipped target - always shown."""
        logger.warning(f"⏭️ Skipped: {reason[:60]}")

    def attempt(self, index: int, total: int, outcome: str, detail: str = ""):
        """Log the outcome of one signup attempt - concise one-liner."""
        detail_info = f" → {detail[:40]}" if detail else ""
        logger.info(f"   Attempt {index}/{total}: {outcome}{detail_info}")

    def summary(self, successful: int, failed: int, skipped: int, time_sec: float):
        """Log final summary - always shown."""
        logger.info(f"📊 Done: {successful} success, {failed} failed, {skipped} skipped ({time_sec:.0f}s)")

    # === DETAILED MODE ===
    # These always log to file (DEBUG level captures all).
    # Console display depends on the --debug flag.

    def detail(self, message: str):
        """Log detailed message - always to file, console if debug mode."""
        logger.debug(message)

    def detail_success(self, message: str):
        """Log detailed success - always to file, console if debug mode."""
        logger.debug(f"✓ {message}")

    def detail_warning(self, message: str):
        """Log detailed warning - always to file, console if debug mode."""
        logger.debug(f"⚠ {message}")


# Global simple logger instance - configured by main/runner
slog = SimpleLogger(detailed=False)
