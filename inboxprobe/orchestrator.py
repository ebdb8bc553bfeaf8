"""
Signup orchestrator.

Runs the signup state machine for one page inside a bounded retry loop:

    IDLE -> POPPING_MODALS -> REVEALING -> LOCATING_EMAIL_INPUT
         -> HANDLING_CONSENT -> LOCATING_SUBMIT -> SUBMITTING
         -> VERIFYING_OUTCOME -> SUCCESS

Any step that gives up raises AttemptFailure, which ends the attempt as
ATTEMPT_FAILED. The loop retries after a fixed delay until max_attempts is used
up (EXHAUSTED). DriverFailure is never caught here: it ends the run.
"""

import asyncio
from enum import Enum
from typing import Iterable, List, Optional

from loguru import logger

from inboxprobe.config import ProbeSettings
from inboxprobe.contexts import SearchContext
from inboxprobe.diagnostics import AttemptOutcome, DiagnosticsRecorder
from inboxprobe.exceptions import AttemptFailure, DriverFailure
from inboxprobe.form_logic import label_selector_for
from inboxprobe.popups import PopupHandler
from inboxprobe.resolver import ContextResolver, ResolvedElement
from inboxprobe.revealer import AdaptiveRevealer
from inboxprobe.strategies import (
    CHECKBOX_STRATEGIES,
    DISMISS_STRATEGIES,
    EMAIL_STRATEGIES,
    MODAL_STRATEGIES,
    SUBMIT_STRATEGIES,
    SUCCESS_STRATEGIES,
    SelectorStrategy,
    ordered,
)
from inboxprobe.utils.simple_logger import slog


class SignupState(str, Enum):
    IDLE = "idle"
    POPPING_MODALS = "popping_modals"
    REVEALING = "revealing"
    LOCATING_EMAIL_INPUT = "locating_email_input"
    HANDLING_CONSENT = "handling_consent"
    LOCATING_SUBMIT = "locating_submit"
    SUBMITTING = "submitting"
    VERIFYING_OUTCOME = "verifying_outcome"
    SUCCESS = "success"
    ATTEMPT_FAILED = "attempt_failed"
    EXHAUSTED = "exhausted"


VERIFY_POLL_INTERVAL = 0.25  # seconds


class SignupOrchestrator:
    """
    Drives one signup run against an already-loaded page.

    The orchestrator owns the resolver, popup handler and revealer for the run
    and is the only reader of the recorder (for the attempt bound).
    """

    def __init__(self, driver, recorder: DiagnosticsRecorder, email: str,
                 settings: Optional[ProbeSettings] = None,
                 email_table: Iterable[SelectorStrategy] = EMAIL_STRATEGIES,
                 submit_table: Iterable[SelectorStrategy] = SUBMIT_STRATEGIES,
                 checkbox_table: Iterable[SelectorStrategy] = CHECKBOX_STRATEGIES,
                 success_table: Iterable[SelectorStrategy] = SUCCESS_STRATEGIES,
                 modal_table: Iterable[SelectorStrategy] = MODAL_STRATEGIES,
                 dismiss_table: Iterable[SelectorStrategy] = DISMISS_STRATEGIES):
        self.driver = driver
        self.recorder = recorder
        self.email = email
        self.settings = settings or ProbeSettings()

        self.email_table = ordered(email_table)
        self.submit_table = ordered(submit_table)
        self.checkbox_table = ordered(checkbox_table)
        self.success_table = ordered(success_table)

        self.resolver = ContextResolver(driver, recorder)
        self.popups = PopupHandler(
            driver, self.resolver, recorder,
            settle_delay=self.settings.settle_delay,
            scroll_lock_detection=self.settings.scroll_lock_detection,
            modal_table=modal_table,
            dismiss_table=dismiss_table,
            email_table=self.email_table,
        )
        self.revealer = None
        if self.settings.adaptive_scrolling:
            self.revealer = AdaptiveRevealer(
                driver, self.popups, recorder,
                stages=self.settings.scroll_stages,
                scroll_delay=self.settings.scroll_delay,
            )

        self.state = SignupState.IDLE
        self.history: List[SignupState] = [SignupState.IDLE]
        self._submitted = False

    def _enter(self, state: SignupState):
        self.state = state
        self.history.append(state)
        logger.debug(f"   → {state.value}")

    # === Retry loop ===

    async def run(self) -> bool:
        """
        Attempt the signup until one attempt succeeds or max_attempts is used up.

        Returns:
            True on SUCCESS, False on EXHAUSTED

        Raises:
            DriverFailure: The session is unusable; the run is over
        """
        max_attempts = self.settings.max_attempts

        while self.recorder.attempt_count < max_attempts:
            if self.recorder.attempt_count > 0 and self.settings.retry_delay:
                await asyncio.sleep(self.settings.retry_delay)

            record = self.recorder.begin_attempt()
            self._submitted = False
            self.popups.reset()

            outcome, detail = await self._run_attempt()
            self.recorder.end_attempt(outcome, detail)
            slog.attempt(record.index, max_attempts, outcome.value, detail or "")

            if outcome == AttemptOutcome.SUCCESS:
                self._enter(SignupState.SUCCESS)
                return True
            self._enter(SignupState.ATTEMPT_FAILED)

        self._enter(SignupState.EXHAUSTED)
        return False

    async def _run_attempt(self):
        strict = self.settings.strict_verification
        try:
            verified = await asyncio.wait_for(self._attempt(), timeout=self.settings.attempt_timeout)
        except asyncio.TimeoutError:
            timeout = f"attempt timed out after {self.settings.attempt_timeout:g}s"
            if not self._submitted:
                return AttemptOutcome.ERROR, timeout
            # The form went out; never submit twice, judge it like a failed probe
            self.recorder.event(f"{timeout} while verifying")
            if strict:
                return AttemptOutcome.ERROR, "unverified"
            return AttemptOutcome.SUCCESS, None
        except AttemptFailure as e:
            return AttemptOutcome(e.outcome), e.detail

        if not verified and strict:
            return AttemptOutcome.ERROR, "unverified"
        return AttemptOutcome.SUCCESS, None

    # === One attempt ===

    async def _attempt(self) -> bool:
        self._enter(SignupState.POPPING_MODALS)
        harvested = await self.popups.handle()

        self._enter(SignupState.REVEALING)
        if self.revealer is not None and harvested is None:
            if await self.revealer.reveal():
                harvested = await self.popups.handle()

        self._enter(SignupState.LOCATING_EMAIL_INPUT)
        email_input = await self._locate_email_input(harvested)
        if email_input is None:
            raise AttemptFailure(AttemptOutcome.NO_INPUT.value, "no email input found")
        self.recorder.used(email_input.strategy)
        self.recorder.event(f"email input found in {email_input.location}")
        slog.detail_success(f"Email input found in {email_input.context.describe()} ({email_input.strategy})")

        container = await self._fill_scope(email_input, harvested)

        self._enter(SignupState.HANDLING_CONSENT)
        await self._handle_consent(container)

        self._enter(SignupState.LOCATING_SUBMIT)
        submit = await self._locate_submit(container)
        if submit is None:
            raise AttemptFailure(AttemptOutcome.NO_SUBMIT.value, "no submit control found")
        self.recorder.used(submit.strategy)

        self._enter(SignupState.SUBMITTING)
        await self._submit(email_input, submit)

        self._enter(SignupState.VERIFYING_OUTCOME)
        verified = await self._verify()
        self.recorder.succeeded_with(email_input.strategy)
        return verified

    async def _locate_email_input(self, harvested: Optional[ResolvedElement]) -> Optional[ResolvedElement]:
        if harvested is not None:
            scope = harvested.as_scope()
            for strategy in self.email_table:
                found = await self.resolver.resolve(strategy, scope=scope)
                if found is not None:
                    return found

        for strategy in self.email_table:
            found = await self.resolver.resolve(strategy)
            if found is not None:
                return found
        return None

    async def _fill_scope(self, element: ResolvedElement,
                          harvested: Optional[ResolvedElement]) -> Optional[SearchContext]:
        """
        The container consent and submit lookups are limited to.

        The input's enclosing <form> when there is one, else the harvested
        popup the input was found in, else the input's parent element. All are
        scopes in the input's own context.
        """
        try:
            form = await self.driver.closest(element.handle, "form")
            if form is not None:
                return element.context.scoped(form)
            if harvested is not None and element.context.scope is harvested.handle:
                return harvested.as_scope()
            parent = await self.driver.parent_element(element.handle)
        except DriverFailure:
            raise
        except Exception as e:
            logger.debug(f"Enclosing container lookup failed: {e}")
            return None
        if parent is None:
            return None
        return element.context.scoped(parent)

    async def _handle_consent(self, container: Optional[SearchContext]):
        for strategy in self.checkbox_table:
            boxes = await self.resolver.resolve_all(strategy, scope=container)
            for box in boxes:
                try:
                    await self._check(box)
                except DriverFailure:
                    raise
                except Exception as e:
                    slog.detail_warning(f"Could not tick checkbox ({box.pattern}): {e}")
                    self.recorder.event(f"consent checkbox left unchecked: {str(e)[:80]}")

    async def _check(self, box: ResolvedElement):
        if await self.driver.is_checked(box.handle):
            return

        box_id = await self.driver.get_attribute(box.handle, "id")
        if box_id:
            label = await self.driver.query_first(box.context.unscoped(), label_selector_for(box_id))
            if label is not None:
                try:
                    await self.driver.click(label)
                    if await self.driver.is_checked(box.handle):
                        self.recorder.count("consent_clicks")
                        slog.detail_success(f"Ticked consent via label for #{box_id}")
                        return
                except DriverFailure:
                    raise
                except Exception as e:
                    slog.detail(f"   Label click failed, clicking checkbox directly: {e}")

        await self.driver.click(box.handle)
        self.recorder.count("consent_clicks")
        slog.detail_success(f"Ticked consent checkbox ({box.pattern})")

    async def _locate_submit(self, container: Optional[SearchContext]) -> Optional[ResolvedElement]:
        if container is not None:
            for strategy in self.submit_table:
                found = await self.resolver.resolve(strategy, scope=container)
                if found is not None:
                    return found

        for strategy in self.submit_table:
            found = await self.resolver.resolve(strategy)
            if found is not None:
                return found
        return None

    async def _submit(self, email_input: ResolvedElement, submit: ResolvedElement):
        try:
            await self.driver.fill(email_input.handle, self.email)
            if self.settings.fill_pause:
                await asyncio.sleep(self.settings.fill_pause)
            self.recorder.count("submissions")
            # Set before the click: a timeout while it is in flight must not resubmit
            self._submitted = True
            await self.driver.click(submit.handle)
        except DriverFailure:
            raise
        except Exception as e:
            raise AttemptFailure(AttemptOutcome.ERROR.value, f"submit failed: {str(e)[:100]}") from e
        self.recorder.event(f"form submitted via {submit.strategy}")
        slog.detail_success(f"Submitted with '{submit.pattern}'")

    async def _verify(self) -> bool:
        """Poll the success table on the main document until the verification timeout."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.settings.verification_timeout / 1000

        while True:
            for strategy in self.success_table:
                indicator = await self.resolver.resolve(strategy, main_only=True)
                if indicator is not None:
                    self.recorder.set_value("verified", True)
                    self.recorder.event(f"success indicator found ({indicator.pattern})")
                    return True
            if loop.time() >= deadline:
                break
            await asyncio.sleep(VERIFY_POLL_INTERVAL)

        self.recorder.set_value("verified", False)
        slog.detail_warning("No success indicator after submit")
        return False
