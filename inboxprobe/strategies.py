"""
Selector strategy tables.

Pure data: every lookup the engine performs is described here as a named,
prioritized strategy so that tables can be extended or tested without touching
control flow. Strategies are tried in ascending priority; equal priorities keep
declaration order.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, List, Tuple


class Role(str, Enum):
    """What a strategy is looking for."""
    EMAIL_INPUT = "email_input"
    SUBMIT = "submit"
    CHECKBOX = "checkbox"
    POPUP = "popup"
    DISMISS = "dismiss"
    SUCCESS = "success"


class ReadyState(str, Enum):
    """Readiness a matched element must reach before it is returned."""
    VISIBLE = "visible"
    ATTACHED = "attached"
    DETACHED = "detached"


@dataclass(frozen=True)
class SelectorStrategy:
    """A named set of query patterns for one role."""
    name: str
    role: Role
    primary: str
    fallbacks: Tuple[str, ...] = ()
    wait_for: ReadyState = ReadyState.VISIBLE
    timeout: int = 5000  # ms, per pattern
    priority: int = 0

    @property
    def patterns(self) -> Tuple[str, ...]:
        """Primary pattern first, then fallbacks in declared order."""
        return (self.primary,) + tuple(self.fallbacks)

    def with_timeout(self, timeout: int) -> "SelectorStrategy":
        return replace(self, timeout=timeout)


def ordered(table: Iterable[SelectorStrategy]) -> List[SelectorStrategy]:
    """Sort a table by priority; sorted() is stable so ties keep declaration order."""
    return sorted(table, key=lambda s: s.priority)


EMAIL_STRATEGIES: Tuple[SelectorStrategy, ...] = (
    SelectorStrategy(
        name="standard-email-forms",
        role=Role.EMAIL_INPUT,
        primary='form input[type="email"]',
        fallbacks=(
            'form input[name*="email" i]',
            'form input[placeholder*="email" i]',
            'form input[id*="email" i]',
            'form input[class*="email" i]',
        ),
        priority=1,
    ),
    SelectorStrategy(
        name="newsletter-specific",
        role=Role.EMAIL_INPUT,
        primary='form[class*="newsletter"] input[type="email"]',
        fallbacks=(
            'form[id*="newsletter"] input[type="email"]',
            'div[class*="newsletter"] input[type="email"]',
            'section[class*="newsletter"] input[type="email"]',
            '[data-newsletter] input[type="email"]',
        ),
        priority=2,
    ),
    SelectorStrategy(
        name="subscription-forms",
        role=Role.EMAIL_INPUT,
        primary='form[class*="subscribe"] input[type="email"]',
        fallbacks=(
            'form[id*="subscribe"] input[type="email"]',
            'div[class*="subscribe"] input[type="email"]',
            '[data-subscribe] input[type="email"]',
            'form[class*="signup"] input[type="email"]',
        ),
        priority=3,
    ),
    SelectorStrategy(
        name="popup-modal-forms",
        role=Role.EMAIL_INPUT,
        primary='div[role="dialog"] input[type="email"]',
        fallbacks=(
            '[aria-modal="true"] input[type="email"]',
            '.modal input[type="email"]',
            '.popup input[type="email"]',
            '.overlay input[type="email"]',
        ),
        priority=4,
    ),
    SelectorStrategy(
        name="generic-email-inputs",
        role=Role.EMAIL_INPUT,
        primary='input[type="email"]',
        fallbacks=(
            'input[name*="email" i]',
            'input[placeholder*="email" i]',
            'input[id*="email" i]',
            '.email-input input',
            '.newsletter-email input',
            '[data-testid*="email"] input',
        ),
        priority=5,
    ),
    SelectorStrategy(
        name="named-email-fields",
        role=Role.EMAIL_INPUT,
        primary='input[name="EMAIL"]',
        fallbacks=(
            'input[name="email_address"]',
            'input[name="user_email"]',
            'input[class*="email"]',
        ),
        priority=6,
    ),
)

SUBMIT_STRATEGIES: Tuple[SelectorStrategy, ...] = (
    SelectorStrategy(
        name="submit-buttons",
        role=Role.SUBMIT,
        primary='button[type="submit"]',
        fallbacks=(
            'input[type="submit"]',
            'button:has-text("Subscribe")',
            'button:has-text("Sign Up")',
            'button:has-text("Join")',
            'button:has-text("Submit")',
            '.submit-btn',
            '.newsletter-submit',
            '[data-testid*="submit"]',
            '[data-submit]',
        ),
        priority=1,
    ),
    SelectorStrategy(
        name="form-buttons",
        role=Role.SUBMIT,
        primary="form button",
        fallbacks=('form [role="button"]',),
        timeout=2000,
        priority=2,
    ),
)

# Specific consent patterns come before the catch-all so that a page full of
# unrelated checkboxes only gets the catch-all when nothing specific matched.
CHECKBOX_STRATEGIES: Tuple[SelectorStrategy, ...] = (
    SelectorStrategy(
        name="consent-checkboxes",
        role=Role.CHECKBOX,
        primary='input[type="checkbox"][name*="agree" i]',
        fallbacks=(
            'input[type="checkbox"][id*="terms" i]',
            'input[type="checkbox"][class*="consent" i]',
            'input[type="checkbox"][name*="consent" i]',
            'input[type="checkbox"][required]',
            'input[type="checkbox"]',
        ),
        wait_for=ReadyState.ATTACHED,
        timeout=2000,
        priority=1,
    ),
)

MODAL_STRATEGIES: Tuple[SelectorStrategy, ...] = (
    SelectorStrategy(
        name="newsletter-popups",
        role=Role.POPUP,
        primary=".newsletter-popup",
        fallbacks=(".subscribe-popup", ".email-signup-modal", ".email-capture"),
        timeout=1000,
        priority=1,
    ),
    SelectorStrategy(
        name="dialog-modals",
        role=Role.POPUP,
        primary='div[role="dialog"]',
        fallbacks=(
            '[aria-modal="true"]',
            ".modal",
            ".popup",
            "[data-popup]",
            "[data-modal]",
        ),
        timeout=1000,
        priority=2,
    ),
    SelectorStrategy(
        name="overlays",
        role=Role.POPUP,
        primary=".popup-overlay",
        fallbacks=(
            '[class*="overlay"][class*="shown"]',
            '[class*="popup"][class*="show"]',
            ".overlay",
        ),
        timeout=1000,
        priority=3,
    ),
)

DISMISS_STRATEGIES: Tuple[SelectorStrategy, ...] = (
    SelectorStrategy(
        name="close-buttons",
        role=Role.DISMISS,
        primary='button[aria-label*="close" i]',
        fallbacks=(
            'button[aria-label*="dismiss" i]',
            ".close",
            ".close-btn",
            "[data-close]",
            '[aria-label="Close"]',
            'button:has-text("×")',
            'button:has-text("Close")',
        ),
        timeout=2000,
        priority=1,
    ),
    SelectorStrategy(
        name="decline-buttons",
        role=Role.DISMISS,
        primary='button:has-text("No thanks")',
        fallbacks=('button:has-text("Maybe later")', '[class*="close"]'),
        timeout=2000,
        priority=2,
    ),
)

SUCCESS_STRATEGIES: Tuple[SelectorStrategy, ...] = (
    SelectorStrategy(
        name="success-messages",
        role=Role.SUCCESS,
        primary='text="Thank you"',
        fallbacks=(
            'text="Success"',
            'text="Subscribed"',
            'text="Check your email"',
            ".success-message",
            ".confirmation",
        ),
        timeout=1000,
        priority=1,
    ),
)
