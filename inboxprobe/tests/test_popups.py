"""Tests for popup detection, harvesting and dismissal."""

import pytest

from fakes import FakeDriver, FakeElement, FakeFrame, email_form
from inboxprobe.popups import PopupHandler
from inboxprobe.resolver import ContextResolver

LOCKED = {"htmlOverflow": "visible", "bodyOverflow": "hidden", "classes": []}


def dialog(*children, name="dialog"):
    return FakeElement(name, selectors={'div[role="dialog"]'}, children=children)


def close_button(target, **kwargs):
    return FakeElement(
        "close-button",
        selectors={'button[aria-label*="close" i]'},
        on_click=lambda: target.hide(),
        **kwargs,
    )


def make_handler(driver, recorder):
    return PopupHandler(driver, ContextResolver(driver, recorder), recorder, settle_delay=0)


class TestDetect:
    @pytest.mark.asyncio
    async def test_no_modal(self, recorder):
        driver = FakeDriver(elements=[email_form()])
        assert await make_handler(driver, recorder).detect() is None

        snapshot = recorder.finish(False)
        assert not snapshot.popup_detected
        assert not snapshot.scroll_locked

    @pytest.mark.asyncio
    async def test_detects_dialog_and_scroll_lock(self, recorder):
        driver = FakeDriver(elements=[dialog()], scroll_signal=LOCKED)
        modal = await make_handler(driver, recorder).detect()

        assert modal.handle.name == "dialog"
        assert driver.calls_named("click") == []
        snapshot = recorder.finish(False)
        assert snapshot.popup_detected and snapshot.modal_active and snapshot.scroll_locked

    @pytest.mark.asyncio
    async def test_only_main_document_is_checked(self, recorder):
        driver = FakeDriver(frames=[FakeFrame("https://widget.example.com", [dialog()])])
        assert await make_handler(driver, recorder).detect() is None


class TestHandle:
    @pytest.mark.asyncio
    async def test_dismisses_modal_without_email_field(self, recorder):
        modal = dialog()
        modal.add(close_button(modal))
        driver = FakeDriver(elements=[modal, email_form()], scroll_signal=LOCKED)

        result = await make_handler(driver, recorder).handle()

        assert result is None
        assert ("click", "close-button") in driver.calls
        assert not modal.visible
        snapshot = recorder.finish(False)
        assert snapshot.popup_detected and snapshot.scroll_locked
        assert snapshot.dismiss_clicks == 1
        assert not snapshot.popup_harvested

    @pytest.mark.asyncio
    async def test_harvests_modal_with_email_field(self, recorder):
        modal = dialog(email_form("modal-form"))
        modal.add(close_button(modal))
        driver = FakeDriver(elements=[modal])

        result = await make_handler(driver, recorder).handle()

        assert result.handle is modal
        assert driver.calls_named("click") == []
        assert recorder.finish(False).popup_harvested

    @pytest.mark.asyncio
    async def test_close_button_outside_dialog(self, recorder):
        modal = dialog()
        overlay_close = close_button(modal)
        driver = FakeDriver(elements=[modal, overlay_close])

        await make_handler(driver, recorder).handle()

        assert ("click", "close-button") in driver.calls

    @pytest.mark.asyncio
    async def test_failed_dismiss_is_logged_not_raised(self, recorder):
        modal = dialog()
        modal.add(close_button(modal, click_error=RuntimeError("element detached")))
        driver = FakeDriver(elements=[modal])

        assert await make_handler(driver, recorder).handle() is None

        snapshot = recorder.finish(False)
        assert snapshot.dismiss_clicks == 0
        assert any("dismiss click failed" in e for e in snapshot.errors)

    @pytest.mark.asyncio
    async def test_acts_on_one_modal_per_attempt(self, recorder):
        first = dialog(name="first")
        first.add(close_button(first))
        second = FakeElement("second", selectors={".popup-overlay"})
        driver = FakeDriver(elements=[first, second])
        handler = make_handler(driver, recorder)

        await handler.handle()
        clicks = len(driver.calls_named("click"))
        assert await handler.handle() is None
        assert len(driver.calls_named("click")) == clicks

        handler.reset()
        assert not handler.acted
