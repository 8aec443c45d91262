"""Public exports for the bond-style force regression harness."""

from .config import FIELD_ORDER, ScenarioConfig, config_handlers, load_config
from .entities import GroupReport, ModeOutcome, Observables, PhaseReport, VerificationReport, Violation
from .errors import (
    DocumentParseError,
    EngineError,
    ForceCheckError,
    PrerequisiteUnavailable,
    ReferenceMismatch,
    ToleranceExceeded,
    UsageError,
)
from .harness import EXECUTION_MODES, ExecutionMode, generate, verify, verify_modes
from .reader import EventDrivenConfigReader, EventKind, ParseEvent, ParseResult, ReaderState
from .stats import ErrorAccumulator, relative_error
from .writer import DocumentWriter, write_config

__all__ = [
    "DocumentParseError",
    "DocumentWriter",
    "EXECUTION_MODES",
    "EngineError",
    "ErrorAccumulator",
    "EventDrivenConfigReader",
    "EventKind",
    "ExecutionMode",
    "FIELD_ORDER",
    "ForceCheckError",
    "GroupReport",
    "ModeOutcome",
    "Observables",
    "ParseEvent",
    "ParseResult",
    "PhaseReport",
    "PrerequisiteUnavailable",
    "ReaderState",
    "ReferenceMismatch",
    "ScenarioConfig",
    "ToleranceExceeded",
    "UsageError",
    "VerificationReport",
    "Violation",
    "config_handlers",
    "generate",
    "load_config",
    "relative_error",
    "verify",
    "verify_modes",
    "write_config",
]
