"""Exception hierarchy for InboxProbe.

Lookup misses are not exceptions: the resolver and the handlers return
None/False for them. Only the failures below cross component boundaries.
"""

from typing import Optional

__all__ = [
    "InboxProbeError",
    "ConfigurationError",
    "DriverFailure",
    "AttemptFailure",
    "RecorderClosedError",
]


class InboxProbeError(Exception):
    """Base exception for all InboxProbe errors."""


class ConfigurationError(InboxProbeError):
    """Invalid configuration file or command line input."""


class DriverFailure(InboxProbeError):
    """Session-level failure of the browser driver.

    Raised when:
    - The target cannot be reached (DNS, TLS, connection refused, timeout)
    - The page, context or browser has been closed underneath the run

    Aborts the whole run; the session may be unusable so it is never retried
    at attempt granularity.
    """


class AttemptFailure(InboxProbeError):
    """One signup attempt stopped for a recorded reason.

    Caught by the orchestrator's retry loop and only surfaced to the caller
    through the diagnostics once every attempt is used up.
    """

    def __init__(self, outcome: str, detail: Optional[str] = None):
        self.outcome = outcome
        self.detail = detail
        message = outcome if not detail else f"{outcome}: {detail}"
        super().__init__(message)


class RecorderClosedError(InboxProbeError):
    """Write to a diagnostics recorder after its run has finished."""
