"""
Browser session with stealth features.
"""

import asyncio
import platform
from datetime import datetime
from typing import Optional

from playwright.async_api import async_playwright, Browser, BrowserContext, Page, Playwright

from inboxprobe.driver import PlaywrightDriver
from inboxprobe.exceptions import DriverFailure
from inboxprobe.utils.helpers import get_app_data_directory
from inboxprobe.utils.simple_logger import slog


STEALTH_SCRIPT = """
// Override navigator.webdriver
Object.defineProperty(navigator, 'webdriver', {
    get: () => undefined,
});

// Override navigator.languages
Object.defineProperty(navigator, 'languages', {
    get: () => ['en-US', 'en'],
});

// Fix chrome.runtime
window.chrome = {
    runtime: {},
};
"""

LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--window-size=1920,1080",
]


def default_user_agent() -> str:
    """Platform-appropriate desktop Chrome user agent."""
    system = platform.system()
    if system == "Darwin":
        return "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    if system == "Linux":
        return "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    return "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"


class BrowserAutomation:
    """
    One browser session, owned by exactly one run.

    Use as an async context manager so the session is released on every exit
    path:

        async with BrowserAutomation(headless=True) as browser:
            driver = browser.driver
    """

    def __init__(self, headless: bool = True, debug: bool = False, action_timeout: int = 10000):
        """
        Initialize browser automation.

        Args:
            headless: Run browser in headless mode
            debug: Forward browser console messages to the detailed log
            action_timeout: Timeout in ms for fill/click on the driver
        """
        self.headless = headless
        self.debug = debug
        self.action_timeout = action_timeout
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None
        self._driver: Optional[PlaywrightDriver] = None

    async def __aenter__(self) -> "BrowserAutomation":
        try:
            await self.initialize()
        except BaseException:
            await self.close()
            raise
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    @property
    def driver(self) -> PlaywrightDriver:
        if self._driver is None:
            raise DriverFailure("Browser session not initialized")
        return self._driver

    async def initialize(self):
        """Start Playwright, launch Chromium and open a stealth page."""
        slog.detail("🚀 Initializing browser session...")
        slog.detail(f"   Headless mode: {self.headless}")

        self.playwright = await async_playwright().start()

        launch_options = {"headless": self.headless, "args": list(LAUNCH_ARGS)}
        try:
            self.browser = await self.playwright.chromium.launch(**launch_options)
            slog.detail_success("Browser launched (Playwright Chromium)")
        except Exception as e:
            slog.detail_warning(f"Could not launch bundled Chromium: {e}")
            slog.detail("🔄 Trying system Chrome as fallback...")
            launch_options["channel"] = "chrome"
            try:
                self.browser = await self.playwright.chromium.launch(**launch_options)
                slog.detail_success("Browser launched (system Chrome)")
            except Exception as e2:
                raise DriverFailure(
                    "No browser available. Run 'playwright install chromium' "
                    f"or install Google Chrome. Error: {e2}"
                ) from e2

        self.context = await self.browser.new_context(
            viewport={"width": 1920, "height": 1080},
            user_agent=default_user_agent(),
            locale="en-US",
            ignore_https_errors=True,
        )
        await self.context.add_init_script(STEALTH_SCRIPT)

        self.page = await self.context.new_page()
        if self.debug:
            self.page.on("console", lambda msg: slog.detail(f"🔍 Browser console: {msg.text}"))
        self.page.on("dialog", lambda dialog: asyncio.create_task(dialog.dismiss()))

        self._driver = PlaywrightDriver(self.page, action_timeout=self.action_timeout)
        slog.detail_success("Browser session ready")

    async def take_screenshot(self, name: str = "screenshot") -> Optional[str]:
        """Save a full-page screenshot under the app data directory."""
        if not self.page:
            return None
        try:
            screenshots_dir = get_app_data_directory() / "screenshots"
            screenshots_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            filepath = screenshots_dir / f"{name}_{timestamp}.png"
            await self.page.screenshot(path=str(filepath), full_page=True)
            slog.detail(f"Screenshot saved: {filepath}")
            return str(filepath)
        except Exception as e:
            slog.detail_warning(f"Screenshot error: {e}")
            return None

    async def close(self):
        """Close page, context, browser and Playwright; safe to call twice."""
        # Each step may fail on an already-dead session; the rest must still run.
        for name in ("page", "context", "browser"):
            resource = getattr(self, name)
            if resource is not None:
                try:
                    await resource.close()
                except Exception as e:
                    slog.detail(f"Browser cleanup note ({name}): {e}")
                setattr(self, name, None)

        if self.playwright is not None:
            try:
                await self.playwright.stop()
            except Exception as e:
                slog.detail(f"Browser cleanup note (playwright): {e}")
            self.playwright = None

        self._driver = None
        slog.detail("Browser closed")
