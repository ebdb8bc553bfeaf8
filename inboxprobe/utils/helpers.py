"""
Helper utilities for InboxProbe.
"""

import os
import random
import platform
from pathlib import Path


APP_ID = "com.inboxprobe.app"


def get_app_data_directory() -> Path:
    """
    Get a writable directory for app data based on platform.
    This is used for the results database, logs and screenshots.

    Paths:
    - macOS: ~/Library/Application Support/com.inboxprobe.app
    - Windows: %APPDATA%/com.inboxprobe.app
    - Linux: $XDG_DATA_HOME/com.inboxprobe.app (default ~/.local/share)

    The INBOXPROBE_DATA_DIR environment variable overrides all of the above.
    """
    override = os.environ.get("INBOXPROBE_DATA_DIR")
    if override:
        data_dir = Path(override)
    else:
        system = platform.system()

        if system == "Darwin":  # macOS
            data_dir = Path.home() / "Library" / "Application Support" / APP_ID
        elif system == "Windows":
            app_data = os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming")
            data_dir = Path(app_data) / APP_ID
        else:  # Linux and others
            xdg_data = os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share")
            data_dir = Path(xdg_data) / APP_ID

    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def random_delay(min_seconds: float, max_seconds: float) -> float:
    """
    Generate a random delay between min and max seconds.

    Args:
        min_seconds: Minimum delay
        max_seconds: Maximum delay

    Returns:
        Random delay value
    """
    return random.uniform(min_seconds, max_seconds)


def truncate(text: str, limit: int) -> str:
    """Shorten text for one-line log output."""
    if text is None:
        return ""
    return text[:limit] + "..." if len(text) > limit else text
