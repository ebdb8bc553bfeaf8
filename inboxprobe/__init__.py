"""InboxProbe: finds and submits email-capture forms on arbitrary web pages."""

from inboxprobe.config import ProbeConfig, ProbeSettings, RunRequest
from inboxprobe.diagnostics import DiagnosticsRecorder, DiagnosticsSnapshot
from inboxprobe.exceptions import (
    AttemptFailure,
    ConfigurationError,
    DriverFailure,
    InboxProbeError,
    RecorderClosedError,
)
from inboxprobe.orchestrator import SignupOrchestrator, SignupState
from inboxprobe.runner import RunResult, SignupRunner, run_signup

__version__ = "0.1.0"

__all__ = [
    "ProbeConfig",
    "ProbeSettings",
    "RunRequest",
    "DiagnosticsRecorder",
    "DiagnosticsSnapshot",
    "AttemptFailure",
    "ConfigurationError",
    "DriverFailure",
    "InboxProbeError",
    "RecorderClosedError",
    "SignupOrchestrator",
    "SignupState",
    "RunResult",
    "SignupRunner",
    "run_signup",
]
