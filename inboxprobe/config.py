"""
Configuration models for InboxProbe.
Uses Pydantic for validation and type safety.
"""

import json
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from inboxprobe.exceptions import ConfigurationError
from inboxprobe.form_logic import validate_scroll_stages
from inboxprobe.sources import CSVParser


def _clamp(value, low, high):
    return max(low, min(high, value))


class ProbeSettings(BaseModel):
    """Engine settings shared by every run of a batch."""
    max_attempts: int = Field(default=3, alias="maxAttempts")  # range 1-10
    attempt_timeout: float = Field(default=60.0, alias="attemptTimeout")  # seconds
    navigation_timeout: int = Field(default=30000, alias="navigationTimeout")  # ms
    diagnostics_enabled: bool = Field(default=True, alias="diagnosticsEnabled")
    headless: bool = False
    debug: bool = False
    scroll_delay: float = Field(default=1.5, alias="scrollDelay")
    settle_delay: float = Field(default=1.0, alias="settleDelay")
    fill_pause: float = Field(default=0.5, alias="fillPause")
    retry_delay: float = Field(default=2.0, alias="retryDelay")
    target_delay: float = Field(default=2.0, alias="targetDelay")
    verification_timeout: int = Field(default=3000, alias="verificationTimeout")  # ms
    verification: Literal["lenient", "strict"] = "lenient"
    scroll_lock_detection: bool = Field(default=True, alias="scrollLockDetection")
    adaptive_scrolling: bool = Field(default=True, alias="adaptiveScrolling")
    scroll_stages: List[float] = Field(default_factory=lambda: [0.25, 0.5, 0.75, 1.0], alias="scrollStages")
    concurrency: int = 1  # range 1-8
    record_results: bool = Field(default=True, alias="recordResults")
    skip_processed: bool = Field(default=False, alias="skipProcessed")

    @field_validator('max_attempts')
    @classmethod
    def validate_max_attempts(cls, v: int) -> int:
        """Validate max_attempts is within valid range (1-10)."""
        return _clamp(v, 1, 10)

    @field_validator('concurrency')
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        """Validate concurrency is within valid range (1-8)."""
        return _clamp(v, 1, 8)

    @field_validator('attempt_timeout')
    @classmethod
    def validate_attempt_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("attempt_timeout must be positive")
        return v

    @field_validator('scroll_delay', 'settle_delay', 'fill_pause', 'retry_delay', 'target_delay',
                     'verification_timeout', 'navigation_timeout')
    @classmethod
    def validate_non_negative(cls, v):
        if v < 0:
            raise ValueError("delays and timeouts cannot be negative")
        return v

    @field_validator('scroll_stages')
    @classmethod
    def validate_stages(cls, v: List[float]) -> List[float]:
        return validate_scroll_stages(v)

    @property
    def strict_verification(self) -> bool:
        return self.verification == "strict"

    class Config:
        populate_by_name = True


class RunRequest(BaseModel):
    """One target page and the address to sign up with."""
    target_url: str = Field(alias="targetUrl")
    test_email: str = Field(alias="testEmail")

    @field_validator('target_url')
    @classmethod
    def validate_url(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"target URL must be http(s): {v!r}")
        return v

    @field_validator('test_email')
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = v.strip()
        local, _, domain = v.partition("@")
        if not local or not domain:
            raise ValueError(f"not an email address: {v!r}")
        return v

    class Config:
        populate_by_name = True


class ProbeConfig(BaseModel):
    """Complete probe configuration."""
    targets: List[RunRequest] = Field(default_factory=list)
    csv_path: str = Field(default="", alias="csvPath")
    email: str = ""
    settings: ProbeSettings = Field(default_factory=ProbeSettings)

    class Config:
        populate_by_name = True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return self.model_dump(by_alias=True)

    @classmethod
    def from_file(cls, path: str) -> "ProbeConfig":
        """Load configuration from JSON file."""
        try:
            with open(path) as f:
                data = json.load(f)
            return cls(**data)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read config {path}: {e}") from e
        except ValidationError as e:
            raise ConfigurationError(f"Invalid config {path}: {e}") from e

    def save(self, path: str):
        """Save configuration to JSON file."""
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    def requests(self, email: Optional[str] = None) -> List[RunRequest]:
        """
        All run requests: explicit targets first, then CSV rows.

        CSV rows without their own email column use `email` (or the config's
        default address).

        Raises:
            ConfigurationError: If a CSV row has no usable email or URL
        """
        default_email = email or self.email
        requests = list(self.targets)
        seen = {r.target_url for r in requests}

        if self.csv_path:
            for row in CSVParser(self.csv_path).parse():
                if row["url"] in seen:
                    continue
                address = row.get("email") or default_email
                if not address:
                    raise ConfigurationError(f"No email for {row['url']}: set --email or an email column")
                try:
                    requests.append(RunRequest(target_url=row["url"], test_email=address))
                except ValidationError as e:
                    raise ConfigurationError(f"Invalid CSV row for {row['url']}: {e}") from e
                seen.add(row["url"])
        return requests
