"""
Parsed version-range model for rangekeeper.
"""

from __future__ import annotations

from enum import Enum
from dataclasses import dataclass
from typing import Optional


class RangeKind(str, Enum):
    """Shape of a declared version range."""

    PREFIXED = "prefixed"  # ^1.2.3, ~1.2, >=1.0.0, 1.2.3, =1.2.3
    XRANGE = "xrange"  # 1.x, 1.2.*, bare partials such as 1.2
    WILDCARD = "wildcard"  # *, x, empty
    COMPOUND = "compound"  # >=1 <2, 1 || 2, 1.0.0 - 2.0.0
    OPAQUE = "opaque"  # latest, workspace:*, git+https://...


#: Operator → operator class. Rewrites keep the class, not always the
#: exact operator (``<1.0.0`` becomes ``<=X`` so that X is admitted).
OPERATOR_CLASSES = {
    "^": "caret",
    "~": "tilde",
    ">=": "lower",
    ">": "lower",
    "<=": "upper",
    "<": "upper",
    "=": "exact",
    "": "exact",
}


@dataclass(frozen=True)
class ParsedRange:
    """A declared range split into operator and base version.

    Attributes:
        raw: The original text, unmodified.
        kind: Shape of the range.
        operator: Leading comparator for ``PREFIXED`` ranges (``""`` for a
            bare version).
        version: Version text without operator or ``v`` prefix, as written
            (``"1.2.x"`` for the x-range ``1.2.x``). ``None`` for wildcard,
            compound and opaque ranges.
        prefix: ``"v"`` when the version was written ``v1.2.3``.
        wildcard: Wildcard character of an x-range (``"x"``, ``"*"``), or
            ``None`` for a bare partial such as ``1.2``.
    """

    raw: str
    kind: RangeKind
    operator: str = ""
    version: Optional[str] = None
    prefix: str = ""
    wildcard: Optional[str] = None

    @property
    def operator_class(self) -> Optional[str]:
        """Operator class of a prefixed range, ``None`` otherwise."""
        if self.kind is not RangeKind.PREFIXED:
            return None
        return OPERATOR_CLASSES.get(self.operator)

    @property
    def is_opaque(self) -> bool:
        return self.kind is RangeKind.OPAQUE

    @property
    def precision(self) -> int:
        """Number of numeric version parts written (``1.2`` → 2)."""
        if not self.version:
            return 0
        core = self.version.split("-", 1)[0].split("+", 1)[0]
        return len(core.split("."))

    def __str__(self) -> str:
        return self.raw
