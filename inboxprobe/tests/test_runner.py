"""Tests for single runs and batches, using fake browser sessions."""

import pytest

from fakes import FakeDriver, FakeSession, email_form
from inboxprobe.config import RunRequest
from inboxprobe.database.operations import ResultStore
from inboxprobe.exceptions import DriverFailure
from inboxprobe.runner import SignupRunner, run_signup


def request(url="https://a.example.com", email="probe@example.com"):
    return RunRequest(target_url=url, test_email=email)


class SessionFactory:
    """Hands out one FakeSession per run, with a driver chosen by URL."""

    def __init__(self, drivers):
        self.drivers = drivers
        self.sessions = []

    def __call__(self, **options):
        driver = self.drivers.pop(0) if isinstance(self.drivers, list) else self.drivers()
        session = FakeSession(driver, **options)
        self.sessions.append(session)
        return session


class TestRunSignup:
    @pytest.mark.asyncio
    async def test_successful_run(self, fast_settings):
        driver = FakeDriver(elements=[email_form()], title="Welcome")
        factory = SessionFactory([driver])

        result = await run_signup(request(), fast_settings, session_factory=factory)

        assert result.success
        assert result.state == "success"
        assert result.url == "https://a.example.com"
        assert result.diagnostics.page_title == "Welcome"
        assert result.attempts == 1
        assert driver.calls[0] == ("navigate", "https://a.example.com")
        assert factory.sessions[0].closed

    @pytest.mark.asyncio
    async def test_exhausted_run(self, fast_settings):
        factory = SessionFactory([FakeDriver()])

        result = await run_signup(request(), fast_settings, session_factory=factory)

        assert not result.success
        assert result.state == "exhausted"
        assert result.error_message.startswith("All 3 attempts failed")
        assert factory.sessions[0].closed

    @pytest.mark.asyncio
    async def test_debug_run_takes_screenshot_on_failure(self, fast_settings):
        factory = SessionFactory([FakeDriver()])
        settings = fast_settings.model_copy(update={"debug": True, "max_attempts": 1})

        result = await run_signup(request(), settings, session_factory=factory)

        assert factory.sessions[0].screenshots
        assert any("screenshot saved" in e for e in result.diagnostics.events)

    @pytest.mark.asyncio
    async def test_navigation_failure_aborts(self, fast_settings):
        driver = FakeDriver(navigate_error=DriverFailure("Domain not found"))
        factory = SessionFactory([driver])

        result = await run_signup(request(), fast_settings, session_factory=factory)

        assert not result.success
        assert result.state == "aborted"
        assert result.error_message == "Domain not found"
        assert result.attempts == 0
        assert factory.sessions[0].closed

    @pytest.mark.asyncio
    async def test_diagnostics_probe_skipped_when_disabled(self, fast_settings):
        driver = FakeDriver(elements=[email_form()], title="Welcome")
        settings = fast_settings.model_copy(update={"diagnostics_enabled": False})

        result = await run_signup(request(), settings, session_factory=SessionFactory([driver]))

        assert result.success
        assert result.diagnostics.page_title == ""


class TestSignupRunner:
    @pytest.mark.asyncio
    async def test_batch_records_results(self, fast_settings, tmp_path):
        store = ResultStore(f"sqlite:///{tmp_path / 'results.db'}")
        factory = SessionFactory([FakeDriver(elements=[email_form()]), FakeDriver()])
        runner = SignupRunner(fast_settings, store=store, session_factory=factory)

        results = await runner.run_batch([request("https://a.example.com"), request("https://b.example.com")])

        assert [r.success for r in results] == [True, False]
        assert store.get_stats() == {"total": 2, "successful": 1, "failed": 1}
        summary = runner.summary()
        assert summary["runs"] == 2
        assert summary["success_rate"] == 50.0

    @pytest.mark.asyncio
    async def test_skip_processed(self, fast_settings, tmp_path):
        store = ResultStore(f"sqlite:///{tmp_path / 'results.db'}")
        store.add_result(url="https://a.example.com", status="success")
        settings = fast_settings.model_copy(update={"skip_processed": True})
        factory = SessionFactory(lambda: FakeDriver(elements=[email_form()]))
        runner = SignupRunner(settings, store=store, session_factory=factory)

        results = await runner.run_batch([request("https://a.example.com"), request("https://b.example.com")])

        assert [r.url for r in results] == ["https://b.example.com"]
        assert runner.stats["skipped"] == 1

    @pytest.mark.asyncio
    async def test_stop_prevents_new_runs(self, fast_settings):
        factory = SessionFactory(lambda: FakeDriver(elements=[email_form()]))
        runner = SignupRunner(fast_settings, session_factory=factory)
        runner.stop()

        assert await runner.run_batch([request()]) == []
        assert factory.sessions == []

    @pytest.mark.asyncio
    async def test_external_stop_check(self, fast_settings):
        factory = SessionFactory(lambda: FakeDriver(elements=[email_form()]))
        runner = SignupRunner(fast_settings, session_factory=factory, stop_check=lambda: True)

        assert await runner.run_batch([request()]) == []

    @pytest.mark.asyncio
    async def test_concurrent_runs_keep_request_order(self, fast_settings):
        settings = fast_settings.model_copy(update={"concurrency": 3})
        factory = SessionFactory(lambda: FakeDriver(elements=[email_form()]))
        runner = SignupRunner(settings, session_factory=factory)
        urls = [f"https://{name}.example.com" for name in "abcde"]

        results = await runner.run_batch([request(u) for u in urls])

        assert [r.url for r in results] == urls
        assert all(r.success for r in results)
        assert len(factory.sessions) == 5
        assert all(s.closed for s in factory.sessions)

    @pytest.mark.asyncio
    async def test_empty_batch(self, fast_settings):
        assert await SignupRunner(fast_settings).run_batch([]) == []
