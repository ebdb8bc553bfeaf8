"""Shared fixtures for InboxProbe tests.

The engine is exercised against fakes.FakeDriver, an in-memory page; only the
browser smoke test launches Playwright.
"""

import pytest

from inboxprobe.config import ProbeSettings
from inboxprobe.diagnostics import DiagnosticsRecorder


@pytest.fixture
def fast_settings() -> ProbeSettings:
    """Settings with every pause set to zero so tests never sleep."""
    return ProbeSettings(
        scroll_delay=0,
        settle_delay=0,
        fill_pause=0,
        retry_delay=0,
        target_delay=0,
        verification_timeout=0,
        attempt_timeout=5,
    )


@pytest.fixture
def recorder() -> DiagnosticsRecorder:
    return DiagnosticsRecorder("https://example.com/landing")


@pytest.fixture(autouse=True)
def isolated_data_dir(tmp_path, monkeypatch):
    """Keep logs, screenshots and databases out of the real app data directory."""
    monkeypatch.setenv("INBOXPROBE_DATA_DIR", str(tmp_path / "appdata"))
    return tmp_path / "appdata"
