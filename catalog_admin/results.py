"""
Result types for validation and save.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class Violation:
    """One broken rule found by ``Reconciler.validate()``."""

    code: str
    subject: str
    message: str

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class SaveFailure:
    entity: str
    operation: str
    message: str

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class SaveResult:
    """
    Outcome of a save.

    calls counts the remote mutations that were issued (compensations
    included); failures lists every one that failed, with the remote
    message verbatim.
    """

    success: bool
    calls: int = 0
    failures: List[SaveFailure] = field(default_factory=list)
    message: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "success": self.success,
            "calls": self.calls,
            "failures": [f.as_dict() for f in self.failures],
            "message": self.message,
        }
