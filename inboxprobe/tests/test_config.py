"""Tests for configuration models."""

import json

import pytest
from pydantic import ValidationError

from inboxprobe.config import ProbeConfig, ProbeSettings, RunRequest
from inboxprobe.exceptions import ConfigurationError


class TestProbeSettings:
    def test_defaults(self):
        settings = ProbeSettings()
        assert settings.max_attempts == 3
        assert settings.verification == "lenient"
        assert settings.scroll_stages == [0.25, 0.5, 0.75, 1.0]
        assert not settings.strict_verification

    @pytest.mark.parametrize("value, expected", [(0, 1), (3, 3), (50, 10)])
    def test_max_attempts_clamped(self, value, expected):
        assert ProbeSettings(max_attempts=value).max_attempts == expected

    def test_concurrency_clamped(self):
        assert ProbeSettings(concurrency=20).concurrency == 8

    def test_camel_case_aliases(self):
        settings = ProbeSettings(**{"maxAttempts": 4, "attemptTimeout": 10, "scrollStages": [0.5, 1.0]})
        assert settings.max_attempts == 4
        assert settings.attempt_timeout == 10
        assert settings.scroll_stages == [0.5, 1.0]

    def test_strict_verification(self):
        assert ProbeSettings(verification="strict").strict_verification

    @pytest.mark.parametrize("changes", [
        {"verification": "sometimes"},
        {"scroll_stages": [0.5, 0.25]},
        {"attempt_timeout": 0},
        {"retry_delay": -1},
    ])
    def test_invalid_values(self, changes):
        with pytest.raises(ValidationError):
            ProbeSettings(**changes)


class TestRunRequest:
    def test_aliases(self):
        request = RunRequest(**{"targetUrl": "https://example.com", "testEmail": "a@example.com"})
        assert request.target_url == "https://example.com"
        assert request.test_email == "a@example.com"

    @pytest.mark.parametrize("url", ["ftp://example.com", "example.com", ""])
    def test_rejects_non_http_urls(self, url):
        with pytest.raises(ValidationError):
            RunRequest(target_url=url, test_email="a@example.com")

    @pytest.mark.parametrize("email", ["nobody", "@example.com", "a@"])
    def test_rejects_bad_addresses(self, email):
        with pytest.raises(ValidationError):
            RunRequest(target_url="https://example.com", test_email=email)


class TestProbeConfig:
    def test_round_trip_through_file(self, tmp_path):
        path = tmp_path / "config.json"
        config = ProbeConfig(
            targets=[RunRequest(target_url="https://example.com", test_email="a@example.com")],
            settings=ProbeSettings(max_attempts=2),
        )
        config.save(str(path))

        data = json.loads(path.read_text())
        assert data["settings"]["maxAttempts"] == 2
        assert data["targets"][0]["targetUrl"] == "https://example.com"
        assert ProbeConfig.from_file(str(path)).to_dict() == config.to_dict()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            ProbeConfig.from_file(str(tmp_path / "nope.json"))

    def test_invalid_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"settings": {"verification": "maybe"}}))
        with pytest.raises(ConfigurationError):
            ProbeConfig.from_file(str(path))

    def test_requests_merge_csv_rows(self, tmp_path):
        csv_path = tmp_path / "targets.csv"
        csv_path.write_text(
            "url,email\n"
            "https://a.example.com,\n"
            "https://b.example.com,b@example.com\n"
            "https://listed.example.com,\n"
        )
        config = ProbeConfig(
            targets=[RunRequest(target_url="https://listed.example.com", test_email="x@example.com")],
            csv_path=str(csv_path),
            email="default@example.com",
        )
        requests = config.requests()

        assert [(r.target_url, r.test_email) for r in requests] == [
            ("https://listed.example.com", "x@example.com"),
            ("https://a.example.com", "default@example.com"),
            ("https://b.example.com", "b@example.com"),
        ]

    def test_csv_rows_need_an_email(self, tmp_path):
        csv_path = tmp_path / "targets.csv"
        csv_path.write_text("url\nhttps://a.example.com\n")
        with pytest.raises(ConfigurationError):
            ProbeConfig(csv_path=str(csv_path)).requests()
