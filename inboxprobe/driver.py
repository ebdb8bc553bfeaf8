"""
Playwright-backed driver capability.

The engine never touches Playwright directly: the resolver, popup handler,
revealer and orchestrator only call the coroutine methods of this class. Any
object exposing the same methods can stand in for it (the tests use an
in-memory fake).
"""

import asyncio
from typing import Any, Dict, List, Optional

from playwright.async_api import ElementHandle, Error as PlaywrightError, Frame, Page

from inboxprobe.contexts import ContextKind, SearchContext
from inboxprobe.exceptions import DriverFailure
from inboxprobe.form_logic import classify_navigation_error, is_scroll_locked, is_session_closed_error
from inboxprobe.utils.simple_logger import slog


# Shadow-encapsulated nodes are unreachable by plain document queries, so the
# host scan and the per-host query run as in-page scripts.
SHADOW_HOSTS_SCRIPT = """
() => {
    const hosts = [];
    const walk = (root) => {
        for (const el of root.querySelectorAll('*')) {
            if (el.shadowRoot) {
                hosts.push(el);
                walk(el.shadowRoot);
            }
        }
    };
    walk(document);
    return hosts;
}
"""

SHADOW_QUERY_SCRIPT = """
(host, selector) => host.shadowRoot ? host.shadowRoot.querySelector(selector) : null
"""

SHADOW_QUERY_ALL_SCRIPT = """
(host, selector) => host.shadowRoot ? Array.from(host.shadowRoot.querySelectorAll(selector)) : []
"""

SCROLL_LOCK_SCRIPT = """
() => {
    const html = document.documentElement;
    const body = document.body;
    const classes = [];
    if (html) classes.push(...html.classList);
    if (body) classes.push(...body.classList);
    return {
        htmlOverflow: html ? window.getComputedStyle(html).overflow : '',
        bodyOverflow: body ? window.getComputedStyle(body).overflow : '',
        classes: classes,
    };
}
"""

SCROLL_TO_SCRIPT = """
(fraction) => {
    const height = document.documentElement.scrollHeight;
    window.scrollTo(0, height * Math.min(Math.max(fraction, 0), 1));
}
"""


class PlaywrightDriver:
    """
    Driver capability over one Playwright page.

    Every method is a suspension point bounded by its own timeout. Errors that
    mean the session itself is gone are raised as DriverFailure; everything else
    propagates unchanged for the caller to treat as a soft failure.
    """

    def __init__(self, page: Page, action_timeout: int = 10000):
        """
        Args:
            page: Page owned by the current run
            action_timeout: Timeout in ms for fill/click
        """
        self.page = page
        self.action_timeout = action_timeout
        self.last_error: Optional[str] = None

    async def _guard(self, coro):
        try:
            return await coro
        except PlaywrightError as e:
            if is_session_closed_error(str(e)):
                raise DriverFailure(f"Browser session lost: {str(e)[:100]}") from e
            raise

    # === Navigation ===

    async def navigate(self, url: str, wait_until: str = "domcontentloaded",
                       timeout: int = 30000, settle: float = 2.0) -> bool:
        """
        Navigate to a URL.

        Args:
            url: URL to navigate to
            wait_until: Playwright load state to wait for
            timeout: Navigation timeout in ms
            settle: Seconds to let the page stabilize afterwards

        Returns:
            True once the page is loaded (non-OK statuses are logged, not fatal)

        Raises:
            DriverFailure: If the target could not be loaded
        """
        self.last_error = None
        try:
            slog.detail(f"Navigating to: {url}")
            response = await self.page.goto(url, wait_until=wait_until, timeout=timeout)
        except PlaywrightError as e:
            self.last_error = classify_navigation_error(str(e))
            slog.detail_warning(f"Navigation error: {self.last_error}")
            raise DriverFailure(self.last_error) from e

        if settle:
            await asyncio.sleep(settle)

        if response and response.ok:
            slog.detail_success(f"Page loaded: {url}")
        else:
            slog.detail_warning(f"Page status: {response.status if response else 'No response'}")
        return True

    # === Queries ===

    async def query_first(self, context: SearchContext, pattern: str) -> Optional[ElementHandle]:
        """First element matching pattern in context, or None."""
        if context.scope is not None:
            return await self._guard(context.scope.query_selector(pattern))
        if context.kind == ContextKind.MAIN:
            return await self._guard(self.page.query_selector(pattern))
        if context.kind == ContextKind.FRAME:
            return await self._guard(context.target.query_selector(pattern))

        handle = await self._guard(context.target.evaluate_handle(SHADOW_QUERY_SCRIPT, pattern))
        element = handle.as_element()
        if element is None:
            await handle.dispose()
        return element

    async def query_all(self, context: SearchContext, pattern: str) -> List[ElementHandle]:
        """All elements matching pattern in context, in document order."""
        if context.scope is not None:
            return await self._guard(context.scope.query_selector_all(pattern))
        if context.kind == ContextKind.MAIN:
            return await self._guard(self.page.query_selector_all(pattern))
        if context.kind == ContextKind.FRAME:
            return await self._guard(context.target.query_selector_all(pattern))

        handle = await self._guard(context.target.evaluate_handle(SHADOW_QUERY_ALL_SCRIPT, pattern))
        return await self._elements_of(handle)

    async def _elements_of(self, array_handle) -> List[ElementHandle]:
        properties = await array_handle.get_properties()
        elements = []
        for value in properties.values():
            element = value.as_element()
            if element is not None:
                elements.append(element)
        await array_handle.dispose()
        return elements

    async def wait_for_state(self, handle: ElementHandle, state: str, timeout: int) -> bool:
        """
        Wait until handle reaches state ('visible', 'attached' or 'detached').

        Returns:
            False on timeout instead of raising
        """
        if state == "visible":
            try:
                await self._guard(handle.wait_for_element_state("visible", timeout=timeout))
                return True
            except DriverFailure:
                raise
            except PlaywrightError:
                return False

        connected = "el => el.isConnected"
        if state == "attached":
            return bool(await self._guard(handle.evaluate(connected)))

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout / 1000
        while True:
            try:
                if not await self._guard(handle.evaluate(connected)):
                    return True
            except DriverFailure:
                raise
            except PlaywrightError:
                # Handle collected with its node
                return True
            if loop.time() >= deadline:
                return False
            await asyncio.sleep(0.1)

    async def bounding_area(self, handle: ElementHandle) -> Optional[Dict[str, float]]:
        return await self._guard(handle.bounding_box())

    async def closest(self, handle: ElementHandle, selector: str) -> Optional[ElementHandle]:
        """Nearest ancestor (or self) matching selector."""
        result = await self._guard(
            handle.evaluate_handle("(el, sel) => el.closest(sel)", selector)
        )
        element = result.as_element()
        if element is None:
            await result.dispose()
        return element

    async def parent_element(self, handle: ElementHandle) -> Optional[ElementHandle]:
        result = await self._guard(handle.evaluate_handle("el => el.parentElement"))
        element = result.as_element()
        if element is None:
            await result.dispose()
        return element

    async def get_attribute(self, handle: ElementHandle, name: str) -> Optional[str]:
        return await self._guard(handle.get_attribute(name))

    async def is_checked(self, handle: ElementHandle) -> bool:
        return await self._guard(handle.is_checked())

    # === Actions ===

    async def fill(self, handle: ElementHandle, text: str):
        await self._guard(handle.fill(text, timeout=self.action_timeout))

    async def click(self, handle: ElementHandle):
        await self._guard(handle.click(timeout=self.action_timeout))

    async def scroll_to(self, fraction: float):
        """Scroll the window to a fraction of the document height (clamped to [0, 1])."""
        await self._guard(self.page.evaluate(SCROLL_TO_SCRIPT, fraction))

    # === Page-level probes ===

    async def list_frames(self) -> List[Frame]:
        """Child frames in enumeration order (main frame excluded)."""
        return [f for f in self.page.frames if f != self.page.main_frame]

    async def list_shadow_hosts(self) -> List[ElementHandle]:
        """Every element hosting an open shadow root, nested hosts included."""
        handle = await self._guard(self.page.evaluate_handle(SHADOW_HOSTS_SCRIPT))
        return await self._elements_of(handle)

    async def scroll_lock_signal(self) -> Dict[str, Any]:
        return await self._guard(self.page.evaluate(SCROLL_LOCK_SCRIPT))

    async def is_scroll_locked(self) -> bool:
        return is_scroll_locked(await self.scroll_lock_signal())

    async def page_title(self) -> str:
        return await self._guard(self.page.title())

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        return await self._guard(self.page.evaluate(script, arg))
