"""Domain-specific exceptions for the force-style regression harness."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence, Tuple

if TYPE_CHECKING:  # pragma: no cover
    from .entities import VerificationReport


class ForceCheckError(RuntimeError):
    """Base class for regression harness errors."""


class UsageError(ForceCheckError):
    """Raised when the command line does not match the accepted shapes."""


class DocumentParseError(ForceCheckError):
    """Raised when a scenario document is not a single-level mapping."""


class ReferenceMismatch(ForceCheckError):
    """Raised when reference data cannot be lined up with the engine state."""


class EngineError(ForceCheckError):
    """Raised when the simulation engine is unusable or in an unexpected state."""


class PrerequisiteUnavailable(ForceCheckError):
    """Raised when required styles or packages are missing; callers should skip."""

    def __init__(self, missing: Sequence[Tuple[str, str]], mode: str = "plain") -> None:
        self.missing = tuple(missing)
        self.mode = mode
        listing = ", ".join(f"{category} {name}" for category, name in self.missing)
        super().__init__(f"prerequisites unavailable for mode '{mode}': {listing}")


class ToleranceExceeded(ForceCheckError):
    """Raised once all groups are compared and at least one exceeded its tolerance."""

    def __init__(self, report: "VerificationReport") -> None:
        self.report = report
        super().__init__(report.describe_failures())


__all__ = [
    "ForceCheckError",
    "UsageError",
    "DocumentParseError",
    "ReferenceMismatch",
    "EngineError",
    "PrerequisiteUnavailable",
    "ToleranceExceeded",
]
