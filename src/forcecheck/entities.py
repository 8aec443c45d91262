"""Core dataclasses shared across the regression harness."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd

from .config import empty_force_table
from .stats import ErrorSummary

REPORT_COLUMNS = (
    "mode",
    "phase",
    "group",
    "count",
    "average",
    "stddev",
    "max_error",
    "max_item",
    "violations",
    "passed",
)


@dataclass(frozen=True)
class Observables:
    """Engine state captured after a phase.

    ``forces`` rows follow local storage order; ``tags`` maps each row back
    to the particle it belongs to.
    """

    natoms: int
    nlocal: int
    tags: np.ndarray
    forces: np.ndarray
    stress: np.ndarray
    energy: float

    def force_table(self) -> np.ndarray:
        table = empty_force_table(self.natoms)
        for tag, row in zip(self.tags, self.forces):
            if 1 <= int(tag) < table.shape[0]:
                table[int(tag)] = row
        return table


@dataclass(frozen=True)
class Violation:
    group: str
    label: str
    computed: float
    reference: float
    error: float
    tolerance: float

    def describe(self) -> str:
        return (
            f"{self.group} {self.label}: computed {self.computed:.16g} "
            f"reference {self.reference:.16g} error {self.error:.3e} > {self.tolerance:.3e}"
        )


@dataclass(frozen=True)
class GroupReport:
    """Comparison outcome for one observable group (e.g. ``init_forces``)."""

    group: str
    tolerance: float
    stats: ErrorSummary
    violations: Tuple[Violation, ...] = ()

    @property
    def passed(self) -> bool:
        return not self.violations


@dataclass
class PhaseReport:
    phase: str
    groups: List[GroupReport] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return all(group.passed for group in self.groups)


@dataclass
class VerificationReport:
    """All phases compared for one execution mode."""

    mode: str
    phases: List[PhaseReport] = field(default_factory=list)

    @property
    def groups(self) -> List[GroupReport]:
        return [group for phase in self.phases for group in phase.groups]

    @property
    def violations(self) -> List[Violation]:
        return [violation for group in self.groups for violation in group.violations]

    @property
    def passed(self) -> bool:
        return all(phase.passed for phase in self.phases)

    def group(self, name: str) -> GroupReport:
        for group in self.groups:
            if group.group == name:
                return group
        raise KeyError(name)

    def describe_failures(self) -> str:
        lines = [f"mode '{self.mode}' failed"]
        for group in self.groups:
            if group.passed:
                continue
            lines.append(f"{group.group} stats: {group.stats.format()}")
            lines.extend(f"  {violation.describe()}" for violation in group.violations)
        return "\n".join(lines)

    def to_frame(self) -> pd.DataFrame:
        rows = []
        for phase in self.phases:
            for group in phase.groups:
                rows.append(
                    {
                        "mode": self.mode,
                        "phase": phase.phase,
                        "group": group.group,
                        "count": group.stats.count,
                        "average": group.stats.average,
                        "stddev": group.stats.stddev,
                        "max_error": group.stats.max,
                        "max_item": group.stats.argmax,
                        "violations": len(group.violations),
                        "passed": group.passed,
                    }
                )
        return pd.DataFrame(rows, columns=list(REPORT_COLUMNS))


@dataclass(frozen=True)
class ModeOutcome:
    """Result of one execution mode: ``passed``, ``failed`` or ``skipped``."""

    mode: str
    status: str
    report: Optional[VerificationReport] = None
    reason: str = ""


__all__ = [
    "GroupReport",
    "ModeOutcome",
    "Observables",
    "PhaseReport",
    "REPORT_COLUMNS",
    "VerificationReport",
    "Violation",
]
