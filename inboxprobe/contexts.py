"""
Search contexts.

A context is one DOM scope the resolver can query: the main document, one
frame's document, or one shadow root. Contexts are searched in the fixed
precedence MAIN, FRAME, SHADOW and are never merged.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Optional


class ContextKind(IntEnum):
    """Context kinds; the integer value is the search precedence."""
    MAIN = 0
    FRAME = 1
    SHADOW = 2


_LOCATION_NAMES = {
    ContextKind.MAIN: "main page",
    ContextKind.FRAME: "frame",
    ContextKind.SHADOW: "shadow DOM",
}


@dataclass(frozen=True)
class SearchContext:
    """
    One searchable scope.

    Attributes:
        kind: MAIN, FRAME or SHADOW
        target: the frame (FRAME) or shadow host element (SHADOW); None for MAIN
        scope: optional element narrowing the search to its subtree
        index: enumeration position of the frame/host, for diagnostics
    """
    kind: ContextKind
    target: Any = None
    scope: Any = None
    index: int = 0

    @classmethod
    def main(cls) -> "SearchContext":
        return cls(ContextKind.MAIN)

    @classmethod
    def frame(cls, frame: Any, index: int) -> "SearchContext":
        return cls(ContextKind.FRAME, target=frame, index=index)

    @classmethod
    def shadow(cls, host: Any, index: int) -> "SearchContext":
        return cls(ContextKind.SHADOW, target=host, index=index)

    def scoped(self, element: Any) -> "SearchContext":
        """Same context, restricted to the subtree under element."""
        return SearchContext(self.kind, target=self.target, scope=element, index=self.index)

    def unscoped(self) -> "SearchContext":
        return SearchContext(self.kind, target=self.target, index=self.index)

    @property
    def location(self) -> str:
        """Where a match was found, as written to diagnostics."""
        return _LOCATION_NAMES[self.kind]

    def describe(self) -> str:
        if self.kind == ContextKind.MAIN:
            base = "main page"
        elif self.kind == ContextKind.FRAME:
            url = getattr(self.target, "url", "") or ""
            base = f"frame {self.index} ({url[:60]})"
        else:
            base = f"shadow host {self.index}"
        return f"{base} [scoped]" if self.scope is not None else base
