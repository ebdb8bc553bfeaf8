"""Tests for the context resolver: precedence, readiness and soft failures."""

import pytest

from fakes import FakeDriver, FakeElement, FakeFrame
from inboxprobe.contexts import ContextKind, SearchContext
from inboxprobe.exceptions import DriverFailure
from inboxprobe.resolver import ContextResolver
from inboxprobe.strategies import ReadyState, Role, SelectorStrategy

STRATEGY = SelectorStrategy(
    name="test-email",
    role=Role.EMAIL_INPUT,
    primary="#primary",
    fallbacks=("#fallback",),
)


def element(name, *selectors, **kwargs):
    return FakeElement(name, selectors=selectors, **kwargs)


class TestPrecedence:
    @pytest.mark.asyncio
    async def test_main_beats_frame(self, recorder):
        driver = FakeDriver(
            elements=[element("main-input", "#primary")],
            frames=[FakeFrame("https://embed.example.com", [element("frame-input", "#primary")])],
        )
        found = await ContextResolver(driver, recorder).resolve(STRATEGY)

        assert found.handle.name == "main-input"
        assert found.context.kind == ContextKind.MAIN
        assert found.location == "main page"

    @pytest.mark.asyncio
    async def test_frame_beats_shadow(self, recorder):
        host = element("host", shadow=[element("shadow-input", "#primary")])
        driver = FakeDriver(
            frames=[FakeFrame("https://embed.example.com", [element("frame-input", "#primary")])],
            shadow_hosts=[host],
        )
        found = await ContextResolver(driver, recorder).resolve(STRATEGY)

        assert found.handle.name == "frame-input"

    @pytest.mark.asyncio
    async def test_primary_pattern_beats_fallback_in_a_better_context(self, recorder):
        driver = FakeDriver(
            elements=[element("main-fallback", "#fallback")],
            frames=[FakeFrame("https://embed.example.com", [element("frame-primary", "#primary")])],
        )
        found = await ContextResolver(driver, recorder).resolve(STRATEGY)

        assert found.handle.name == "frame-primary"
        assert found.pattern == "#primary"

    @pytest.mark.asyncio
    async def test_found_only_in_third_frame(self, recorder):
        driver = FakeDriver(frames=[
            FakeFrame("about:blank"),
            FakeFrame("https://ads.example.com/slot"),
            FakeFrame("https://forms.example.com/embed", [element("frame-input", "#primary")]),
        ])
        found = await ContextResolver(driver, recorder).resolve(STRATEGY)

        assert found.context.kind == ContextKind.FRAME
        assert found.context.index == 2
        assert found.location == "frame"

    @pytest.mark.asyncio
    async def test_placeholder_frames_are_never_searched(self, recorder):
        driver = FakeDriver(frames=[
            FakeFrame("about:blank", [element("ghost", "#primary")]),
            FakeFrame("", [element("ghost-2", "#primary")]),
        ])
        assert await ContextResolver(driver, recorder).resolve(STRATEGY) is None

    @pytest.mark.asyncio
    async def test_shadow_tree(self, recorder):
        host = element("widget", shadow=[element("shadow-input", "#fallback")])
        driver = FakeDriver(shadow_hosts=[host])
        found = await ContextResolver(driver, recorder).resolve(STRATEGY)

        assert found.handle.name == "shadow-input"
        assert found.location == "shadow DOM"

    @pytest.mark.asyncio
    async def test_main_only_skips_frames(self, recorder):
        driver = FakeDriver(frames=[FakeFrame("https://embed.example.com", [element("f", "#primary")])])
        assert await ContextResolver(driver, recorder).resolve(STRATEGY, main_only=True) is None


class TestReadiness:
    @pytest.mark.asyncio
    async def test_zero_size_decoy_is_skipped(self, recorder):
        driver = FakeDriver(elements=[
            element("decoy", "#primary", size=(0, 0)),
            element("real", "#fallback"),
        ])
        found = await ContextResolver(driver, recorder).resolve(STRATEGY)

        assert found.handle.name == "real"

    @pytest.mark.asyncio
    async def test_invisible_element_is_skipped(self, recorder):
        driver = FakeDriver(elements=[element("hidden", "#primary", visible=False)])
        assert await ContextResolver(driver, recorder).resolve(STRATEGY) is None

    @pytest.mark.asyncio
    async def test_resolved_elements_always_have_area(self, recorder):
        driver = FakeDriver(elements=[
            element("a", "#primary", size=(0, 10)),
            element("b", "#fallback", size=(10, 0)),
        ], frames=[FakeFrame("https://x.example.com", [element("c", "#fallback", size=(5, 5))])])
        found = await ContextResolver(driver, recorder).resolve(STRATEGY)

        area = await driver.bounding_area(found.handle)
        assert area["width"] > 0 and area["height"] > 0
        assert found.handle.name == "c"

    @pytest.mark.asyncio
    async def test_attached_state_still_requires_area(self, recorder):
        strategy = SelectorStrategy("cb", Role.CHECKBOX, "#box", wait_for=ReadyState.ATTACHED)
        driver = FakeDriver(elements=[element("box", "#box", visible=False)])
        assert await ContextResolver(driver, recorder).resolve(strategy) is None


class TestFailures:
    @pytest.mark.asyncio
    async def test_query_error_is_soft(self, recorder):
        driver = FakeDriver(
            elements=[element("real", "#fallback")],
            query_errors={"#primary": ValueError("invalid selector")},
        )
        found = await ContextResolver(driver, recorder).resolve(STRATEGY)

        assert found.handle.name == "real"

    @pytest.mark.asyncio
    async def test_driver_failure_propagates(self, recorder):
        driver = FakeDriver(query_errors={"#primary": DriverFailure("browser closed")})
        with pytest.raises(DriverFailure):
            await ContextResolver(driver, recorder).resolve(STRATEGY)

    @pytest.mark.asyncio
    async def test_exhaustion_returns_none(self, recorder):
        driver = FakeDriver()
        assert await ContextResolver(driver, recorder).resolve(STRATEGY) is None


class TestScoping:
    @pytest.mark.asyncio
    async def test_scope_limits_search_to_subtree(self, recorder):
        outside = element("outside", "#primary")
        container = element("modal", ".modal", children=[element("inside", "#fallback")])
        driver = FakeDriver(elements=[outside, container])

        scope = SearchContext.main().scoped(container)
        found = await ContextResolver(driver, recorder).resolve(STRATEGY, scope=scope)

        assert found.handle.name == "inside"
        assert found.context.scope is container

    @pytest.mark.asyncio
    async def test_resolve_all_returns_every_match_without_readiness(self, recorder):
        strategy = SelectorStrategy("boxes", Role.CHECKBOX, "#specific", fallbacks=(".box",))
        driver = FakeDriver(elements=[
            element("one", ".box", visible=False),
            element("two", ".box"),
        ])
        found = await ContextResolver(driver, recorder).resolve_all(strategy)

        assert [f.handle.name for f in found] == ["one", "two"]
        assert all(f.pattern == ".box" for f in found)


@pytest.mark.asyncio
async def test_diagnostics_count_queries_and_strategies(recorder):
    driver = FakeDriver()
    await ContextResolver(driver, recorder).resolve(STRATEGY)
    snapshot = recorder.finish(False)

    assert snapshot.dom_queries == 2
    assert snapshot.strategies_attempted == ["test-email"]
