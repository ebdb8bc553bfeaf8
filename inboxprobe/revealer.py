"""
Adaptive revealer.

Many capture forms only exist after the visitor scrolls: lazy-loaded footers,
scroll-triggered popups. The revealer walks the page down in stages and stops
as soon as an interstitial shows up.
"""

import asyncio
from typing import Sequence

from inboxprobe.diagnostics import DiagnosticsRecorder
from inboxprobe.exceptions import DriverFailure
from inboxprobe.form_logic import validate_scroll_stages
from inboxprobe.popups import PopupHandler
from inboxprobe.utils.simple_logger import slog

DEFAULT_SCROLL_STAGES = (0.25, 0.5, 0.75, 1.0)


class AdaptiveRevealer:
    """Staged partial scrolling with early stop on modal detection."""

    def __init__(self, driver, popups: PopupHandler, recorder: DiagnosticsRecorder,
                 stages: Sequence[float] = DEFAULT_SCROLL_STAGES, scroll_delay: float = 1.5):
        self.driver = driver
        self.popups = popups
        self.recorder = recorder
        self.stages = validate_scroll_stages(stages)
        self.scroll_delay = scroll_delay

    async def reveal(self) -> bool:
        """
        Scroll through the stages, probing for a modal after each.

        Returns:
            True if a modal appeared, False after the last stage
        """
        for stage in self.stages:
            try:
                await self.driver.scroll_to(stage)
            except DriverFailure:
                raise
            except Exception as e:
                slog.detail_warning(f"Scroll to {stage:.0%} failed: {e}")
                continue
            self.recorder.count("scroll_events")
            if self.scroll_delay:
                await asyncio.sleep(self.scroll_delay)

            if await self.popups.detect() is not None:
                self.recorder.flag("modal_revealed")
                self.recorder.event(f"modal revealed at {stage:.0%} scroll")
                slog.detail(f"🌀 Modal appeared after scrolling to {stage:.0%}")
                return True

        return False
