"""
Browser smoke test.

Drives real Playwright Chromium against inline HTML. Needs `playwright install
chromium`, so it only runs when INBOXPROBE_BROWSER_TESTS=1.
"""

import os

import pytest

from inboxprobe.browser import BrowserAutomation
from inboxprobe.diagnostics import DiagnosticsRecorder
from inboxprobe.orchestrator import SignupOrchestrator

pytestmark = pytest.mark.skipif(
    os.environ.get("INBOXPROBE_BROWSER_TESTS") != "1",
    reason="set INBOXPROBE_BROWSER_TESTS=1 to run browser tests",
)

SIGNUP_PAGE = """
<html><body>
  <div id="promo" role="dialog" style="position:fixed;top:0;left:0;width:300px;height:200px">
    <p>Big sale!</p>
    <button aria-label="Close" onclick="document.getElementById('promo').remove()">x</button>
  </div>
  <form id="signup" onsubmit="event.preventDefault(); document.getElementById('done').style.display='block'">
    <input type="email" name="email" placeholder="Your email">
    <input type="checkbox" id="agree" name="agree_terms"><label for="agree">I agree</label>
    <button type="submit">Subscribe</button>
  </form>
  <div id="done" class="success-message" style="display:none">Thank you</div>
</body></html>
"""


@pytest.mark.asyncio
async def test_signup_on_local_page(fast_settings):
    settings = fast_settings.model_copy(update={"verification": "strict", "verification_timeout": 2000})

    async with BrowserAutomation(headless=True) as session:
        await session.page.set_content(SIGNUP_PAGE)
        recorder = DiagnosticsRecorder("about:signup")
        orchestrator = SignupOrchestrator(session.driver, recorder, "probe@example.com", settings)

        assert await orchestrator.run() is True
        assert await session.page.is_checked("#agree")
        assert await session.page.input_value('input[type="email"]') == "probe@example.com"

    snapshot = recorder.finish(True)
    assert snapshot.popup_detected
    assert snapshot.dismiss_clicks == 1
    assert snapshot.verified is True
