"""
Popup / modal handling.

Interstitials (newsletter popups, cookie walls, age gates) either hold the very
form we are looking for or block it. Detection only looks at the main document;
a detected modal is harvested when it contains an email input and dismissed
otherwise.
"""

import asyncio
from typing import Iterable, Optional

from loguru import logger

from inboxprobe.diagnostics import DiagnosticsRecorder
from inboxprobe.exceptions import DriverFailure
from inboxprobe.form_logic import is_scroll_locked
from inboxprobe.resolver import ContextResolver, ResolvedElement
from inboxprobe.strategies import (
    DISMISS_STRATEGIES,
    EMAIL_STRATEGIES,
    MODAL_STRATEGIES,
    SelectorStrategy,
    ordered,
)
from inboxprobe.utils.simple_logger import slog


class PopupHandler:
    """
    Detects the first interstitial on the page and harvests or dismisses it.

    Acts on at most one modal per attempt; call reset() when a new attempt
    begins.
    """

    def __init__(self, driver, resolver: ContextResolver, recorder: DiagnosticsRecorder,
                 settle_delay: float = 1.0, scroll_lock_detection: bool = True,
                 modal_table: Iterable[SelectorStrategy] = MODAL_STRATEGIES,
                 dismiss_table: Iterable[SelectorStrategy] = DISMISS_STRATEGIES,
                 email_table: Iterable[SelectorStrategy] = EMAIL_STRATEGIES):
        self.driver = driver
        self.resolver = resolver
        self.recorder = recorder
        self.settle_delay = settle_delay
        self.scroll_lock_detection = scroll_lock_detection
        self.modal_table = ordered(modal_table)
        self.dismiss_table = ordered(dismiss_table)
        self.email_table = ordered(email_table)
        self._acted = False

    def reset(self):
        self._acted = False

    @property
    def acted(self) -> bool:
        """Whether a modal was already harvested or dismissed this attempt."""
        return self._acted

    async def read_scroll_lock(self) -> bool:
        """Read and record the page scroll-lock signal."""
        if not self.scroll_lock_detection:
            return False
        try:
            locked = is_scroll_locked(await self.driver.scroll_lock_signal())
        except DriverFailure:
            raise
        except Exception as e:
            logger.debug(f"Scroll lock check failed: {e}")
            return False
        if locked:
            self.recorder.flag("scroll_locked")
            slog.detail("🔒 Page scroll is locked, an overlay probably holds focus")
        return locked

    async def detect(self) -> Optional[ResolvedElement]:
        """
        Look for an active modal on the main document without acting on it.

        Returns:
            The first modal found, in modal table order, or None
        """
        await self.read_scroll_lock()
        for strategy in self.modal_table:
            modal = await self.resolver.resolve(strategy, main_only=True)
            if modal is not None:
                self.recorder.flag("popup_detected")
                self.recorder.flag("modal_active")
                self.recorder.event(f"modal detected ({strategy.name}: {modal.pattern})")
                slog.detail(f"🪟 Modal detected via {strategy.name}")
                return modal
        return None

    async def handle(self) -> Optional[ResolvedElement]:
        """
        Detect the first modal and deal with it.

        Returns:
            The modal when it holds an email input (the caller fills the form
            inside it), otherwise None
        """
        if self._acted:
            return None

        modal = await self.detect()
        if modal is None:
            return None
        self._acted = True

        if await self._holds_email_input(modal):
            self.recorder.flag("popup_harvested")
            self.recorder.event("modal holds an email form, harvesting")
            slog.detail_success("Modal contains an email form, using it")
            return modal

        await self._dismiss(modal)
        return None

    async def _holds_email_input(self, modal: ResolvedElement) -> bool:
        scope = modal.as_scope()
        for strategy in self.email_table:
            if await self.resolver.resolve(strategy, scope=scope) is not None:
                return True
        return False

    async def _dismiss(self, modal: ResolvedElement):
        control = None
        for strategy in self.dismiss_table:
            control = await self.resolver.resolve(strategy, scope=modal.as_scope())
            if control is not None:
                break
        if control is None:
            # Close buttons are often siblings of the dialog, inside its overlay
            for strategy in self.dismiss_table:
                control = await self.resolver.resolve(strategy, main_only=True)
                if control is not None:
                    break

        if control is None:
            slog.detail_warning("No dismiss control found for modal")
            self.recorder.event("modal could not be dismissed: no close control")
            return

        try:
            await self.driver.click(control.handle)
        except DriverFailure:
            raise
        except Exception as e:
            slog.detail_warning(f"Dismiss click failed: {e}")
            self.recorder.error(f"dismiss click failed ({control.strategy}): {str(e)[:100]}")
            return

        self.recorder.count("dismiss_clicks")
        self.recorder.event(f"modal dismissed via {control.strategy}")
        slog.detail_success(f"Closed modal with '{control.pattern}'")
        if self.settle_delay:
            await asyncio.sleep(self.settle_delay)
