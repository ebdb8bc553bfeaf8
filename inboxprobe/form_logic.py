"""
Testable form automation logic - extracted for unit testing.
This module contains pure functions that can be tested without browser/Playwright.
"""

from typing import Any, Dict, Iterable, List, Optional


# Classes that pages put on <html>/<body> while an interstitial holds focus
SCROLL_LOCK_CLASSES = [
    "scroll-lock",
    "no-scroll",
    "modal-open",
    "overflow-hidden",
]

# Browser error fragments and the readable reason reported for each
NAVIGATION_ERRORS = [
    ("ERR_CERT", "SSL certificate error"),
    ("ERR_NAME_NOT_RESOLVED", "Domain not found"),
    ("ERR_CONNECTION_REFUSED", "Connection refused"),
    ("ERR_CONNECTION_TIMED_OUT", "Connection timed out"),
    ("Timeout", "Connection timed out"),
    ("ERR_ABORTED", "Page load aborted"),
    ("Target page, context or browser has been closed", "Browser was closed"),
    ("ERR_TOO_MANY_REDIRECTS", "Too many redirects"),
    ("ERR_EMPTY_RESPONSE", "Empty response from server"),
]

SESSION_CLOSED_MARKERS = [
    "Target page, context or browser has been closed",
    "Target closed",
    "Browser has been closed",
    "Connection closed",
]


def is_placeholder_frame(url: Optional[str]) -> bool:
    """
    Check if a frame is an empty placeholder that cannot hold a form.

    Ad slots and lazily-filled embeds often sit at about:blank (or have no URL
    at all) until a script populates them.
    """
    if not url:
        return True
    return url.strip().lower().startswith("about:blank")


def has_positive_area(box: Optional[Dict[str, Any]]) -> bool:
    """
    Check that a bounding box describes a rendered element.

    Decoy inputs hidden with display:none or zero-size styling have no box or
    a box with zero width/height.
    """
    if not box:
        return False
    try:
        return float(box.get("width", 0)) > 0 and float(box.get("height", 0)) > 0
    except (TypeError, ValueError):
        return False


def label_selector_for(element_id: str) -> str:
    """Build the selector for the <label for=...> linked to an element id."""
    escaped = element_id.replace("\\", "\\\\").replace('"', '\\"')
    return f'label[for="{escaped}"]'


def is_scroll_locked(signal: Optional[Dict[str, Any]]) -> bool:
    """
    Decide whether a page is scroll-locked from the in-page signal.

    Args:
        signal: Dict with 'htmlOverflow', 'bodyOverflow' (computed styles) and
            'classes' (class names found on <html> and <body>)

    Returns:
        True if root/body overflow is hidden or a known lock class is present
    """
    if not signal:
        return False

    for key in ("htmlOverflow", "bodyOverflow"):
        if str(signal.get(key, "")).strip().lower() == "hidden":
            return True

    classes = {c.lower() for c in signal.get("classes", []) or []}
    return any(lock_class in classes for lock_class in SCROLL_LOCK_CLASSES)


def validate_scroll_stages(stages: Iterable[float]) -> List[float]:
    """
    Validate a staged-scroll plan.

    Stages are fractions of document height, strictly ascending and within
    (0, 1] so the revealer never scrolls past the end of the page.

    Raises:
        ValueError: If the plan is empty, unordered or out of range
    """
    plan = [float(s) for s in stages]
    if not plan:
        raise ValueError("scroll stages must not be empty")
    for stage in plan:
        if stage <= 0 or stage > 1:
            raise ValueError(f"scroll stage {stage} outside (0, 1]")
    for previous, current in zip(plan, plan[1:]):
        if current <= previous:
            raise ValueError("scroll stages must be strictly ascending")
    return plan


def classify_navigation_error(error: str) -> str:
    """Turn a raw navigation exception message into a readable reason."""
    for marker, reason in NAVIGATION_ERRORS:
        if marker in error:
            return reason
    return f"Navigation failed: {error[:100]}"


def is_session_closed_error(error: str) -> bool:
    """Check if a driver error means the page/context/browser is gone."""
    return any(marker in error for marker in SESSION_CLOSED_MARKERS)
