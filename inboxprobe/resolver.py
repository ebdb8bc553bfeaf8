"""
Context resolver.

Finds the element a strategy describes by trying every (pattern, context)
pair in a fixed order: patterns in declared order (primary first), and for each
pattern the contexts MAIN, then frames in enumeration order, then shadow hosts.
The first element that reaches the strategy's readiness state and has a
rendered, non-zero box wins.

Lookup failures (bad selector for a context, detached frame, stale handle) are
soft: they are logged and the search moves on. Only exhaustion (None) and
DriverFailure leave this module.
"""

from dataclasses import dataclass
from typing import Any, List, Optional

from inboxprobe.contexts import SearchContext
from inboxprobe.diagnostics import DiagnosticsRecorder
from inboxprobe.exceptions import DriverFailure
from inboxprobe.form_logic import has_positive_area, is_placeholder_frame
from inboxprobe.strategies import SelectorStrategy
from inboxprobe.utils.simple_logger import slog


@dataclass
class ResolvedElement:
    """A driver element handle plus where and how it was found."""
    handle: Any
    context: SearchContext
    strategy: str
    pattern: str

    @property
    def location(self) -> str:
        return self.context.location

    def as_scope(self) -> SearchContext:
        """Search context restricted to this element's subtree."""
        return self.context.scoped(self.handle)


class ContextResolver:
    """Tiered element lookup across main document, frames and shadow trees."""

    def __init__(self, driver, recorder: Optional[DiagnosticsRecorder] = None):
        self.driver = driver
        self.recorder = recorder

    async def contexts(self, scope: Optional[SearchContext] = None,
                       main_only: bool = False) -> List[SearchContext]:
        """
        Contexts to search, in precedence order.

        Args:
            scope: If given, the only context searched
            main_only: Skip frames and shadow trees
        """
        if scope is not None:
            return [scope]

        contexts = [SearchContext.main()]
        if main_only:
            return contexts

        try:
            frames = await self.driver.list_frames()
        except DriverFailure:
            raise
        except Exception as e:
            slog.detail(f"   Frame enumeration failed: {e}")
            frames = []
        for index, frame in enumerate(frames):
            if is_placeholder_frame(getattr(frame, "url", "")):
                continue
            contexts.append(SearchContext.frame(frame, index))

        try:
            hosts = await self.driver.list_shadow_hosts()
        except DriverFailure:
            raise
        except Exception as e:
            slog.detail(f"   Shadow host scan failed: {e}")
            hosts = []
        for index, host in enumerate(hosts):
            contexts.append(SearchContext.shadow(host, index))

        return contexts

    async def resolve(self, strategy: SelectorStrategy, scope: Optional[SearchContext] = None,
                      main_only: bool = False) -> Optional[ResolvedElement]:
        """
        Resolve one strategy to its first ready, visibly-sized element.

        Returns:
            The match, or None once every (pattern, context) pair is exhausted
        """
        if self.recorder is not None:
            self.recorder.attempted(strategy.name)

        contexts = await self.contexts(scope, main_only)
        for pattern in strategy.patterns:
            for context in contexts:
                element = await self._try(strategy, pattern, context)
                if element is not None:
                    slog.detail(f"   🎯 {strategy.name}: '{pattern}' in {context.describe()}")
                    return element
        return None

    async def resolve_all(self, strategy: SelectorStrategy,
                          scope: Optional[SearchContext] = None) -> List[ResolvedElement]:
        """
        Every instance matched by the first productive (pattern, context) pair.

        No readiness filtering: custom-styled checkboxes are often visually
        hidden behind their labels.
        """
        if self.recorder is not None:
            self.recorder.attempted(strategy.name)

        contexts = await self.contexts(scope)
        for pattern in strategy.patterns:
            for context in contexts:
                self._count_query()
                try:
                    handles = await self.driver.query_all(context, pattern)
                except DriverFailure:
                    raise
                except Exception as e:
                    slog.detail(f"   Query '{pattern}' failed in {context.describe()}: {e}")
                    continue
                if handles:
                    return [ResolvedElement(h, context, strategy.name, pattern) for h in handles]
        return []

    async def _try(self, strategy: SelectorStrategy, pattern: str,
                   context: SearchContext) -> Optional[ResolvedElement]:
        self._count_query()
        try:
            handle = await self.driver.query_first(context, pattern)
            if handle is None:
                return None

            ready = await self.driver.wait_for_state(handle, strategy.wait_for.value, strategy.timeout)
            if not ready:
                slog.detail(f"   '{pattern}' matched but never became {strategy.wait_for.value}")
                return None

            box = await self.driver.bounding_area(handle)
            if not has_positive_area(box):
                slog.detail(f"   '{pattern}' matched but has no rendered size, trying next")
                return None

            return ResolvedElement(handle, context, strategy.name, pattern)
        except DriverFailure:
            raise
        except Exception as e:
            slog.detail(f"   Query '{pattern}' failed in {context.describe()}: {e}")
            return None

    def _count_query(self):
        if self.recorder is not None:
            self.recorder.count("dom_queries")
