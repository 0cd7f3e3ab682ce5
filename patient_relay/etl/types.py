"""Value types passed between the pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable


class PipelineOutcome(str, Enum):
    CREATED = "created"
    INVALID_INBOUND = "invalid_inbound"
    INVALID_OUTBOUND = "invalid_outbound"
    GATEWAY_REJECTED = "gateway_rejected"
    UNEXPECTED_FAILURE = "unexpected_failure"


@dataclass(frozen=True)
class Diagnostic:
    """One issue reported by a validation stage (or a lossy conversion)."""

    location: str
    message: str
    code: str = "invalid"
    severity: str = "error"

    def to_dict(self) -> dict[str, str]:
        return {
            "location": self.location,
            "message": self.message,
            "code": self.code,
            "severity": self.severity,
        }


@dataclass(frozen=True)
class ValidationVerdict:
    valid: bool
    diagnostics: tuple[Diagnostic, ...] = ()

    @classmethod
    def from_diagnostics(cls, diagnostics: Iterable[Diagnostic]) -> ValidationVerdict:
        """A verdict is valid only when nothing at all was reported."""
        collected = tuple(diagnostics)
        return cls(valid=not collected, diagnostics=collected)

    def __bool__(self) -> bool:
        return self.valid


@dataclass(frozen=True)
class ExtractedIdentity:
    first_name: str
    last_name: str
    birth_date: str
