"""Schema validation for bond-style reference documents.

The scenario loader is lenient and skips malformed lines.  This linter reads
the same documents through the generic reader into raw text and rejects
anything a regenerated reference would not contain.
"""

from __future__ import annotations

import argparse
import math
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from src.forcecheck.config import FIELD_ORDER
from src.forcecheck.reader import EventDrivenConfigReader


def _finite(value: float, what: str) -> float:
    if not math.isfinite(value):
        raise ValueError(f"{what} contains non-finite value {value!r}")
    return value


def _lines(text: str) -> List[str]:
    return [line for line in text.split("\n") if line.strip()]


class ForceRow(BaseModel):
    tag: int = Field(ge=1)
    x: float
    y: float
    z: float

    @field_validator("x", "y", "z")
    def components_finite(cls, value: float) -> float:
        return _finite(value, "force")


class ReferenceDocument(BaseModel):
    lammps_version: str = ""
    date_generated: str = ""
    epsilon: float = Field(gt=0.0)
    prerequisites: List[Tuple[str, str]] = Field(default_factory=list)
    pre_commands: List[str] = Field(default_factory=list)
    post_commands: List[str] = Field(default_factory=list)
    input_file: str = Field(min_length=1)
    bond_style: str = Field(min_length=1)
    bond_coeff: List[str] = Field(default_factory=list)
    natoms: int = Field(ge=1)
    init_energy: float
    run_energy: float
    init_stress: List[float] = Field(min_length=6, max_length=6)
    run_stress: List[float] = Field(min_length=6, max_length=6)
    init_forces: List[ForceRow]
    run_forces: List[ForceRow]

    @field_validator("prerequisites", mode="before")
    def split_prerequisites(cls, value):
        if not isinstance(value, str):
            return value
        entries = []
        for line in _lines(value):
            parts = line.split()
            if len(parts) != 2:
                raise ValueError(f"prerequisite line {line!r} is not 'subsystem name'")
            entries.append((parts[0], parts[1]))
        return entries

    @field_validator("pre_commands", "post_commands", "bond_coeff", mode="before")
    def split_commands(cls, value):
        if isinstance(value, str):
            return _lines(value)
        return value

    @field_validator("init_stress", "run_stress", mode="before")
    def split_stress(cls, value):
        if isinstance(value, str):
            return value.split()
        return value

    @field_validator("init_stress", "run_stress")
    def stress_finite(cls, value: List[float]) -> List[float]:
        for component in value:
            _finite(component, "stress")
        return value

    @field_validator("init_energy", "run_energy")
    def energy_finite(cls, value: float) -> float:
        return _finite(value, "energy")

    @field_validator("init_forces", "run_forces", mode="before")
    def split_forces(cls, value):
        if not isinstance(value, str):
            return value
        rows = []
        for line in _lines(value):
            parts = line.split()
            if len(parts) != 4:
                raise ValueError(f"force line {line!r} is not 'tag x y z'")
            rows.append({"tag": parts[0], "x": parts[1], "y": parts[2], "z": parts[3]})
        return rows

    @model_validator(mode="after")
    def forces_cover_all_atoms(self) -> "ReferenceDocument":
        for name in ("init_forces", "run_forces"):
            rows: List[ForceRow] = getattr(self, name)
            tags = [row.tag for row in rows]
            if len(tags) != self.natoms:
                raise ValueError(f"{name} has {len(tags)} rows for {self.natoms} atoms")
            if len(set(tags)) != len(tags):
                raise ValueError(f"{name} repeats particle tags")
            out_of_range = [tag for tag in tags if tag > self.natoms]
            if out_of_range:
                raise ValueError(f"{name} tags {out_of_range} exceed natoms={self.natoms}")
        return self


def read_raw_fields(path: Path) -> Dict[str, str]:
    """Return the raw scalar text of every recognised key in ``path``."""

    raw: Dict[str, str] = {}

    def store(key: str):
        def handler(text: str) -> None:
            raw[key] = text

        return handler

    reader = EventDrivenConfigReader({key: store(key) for key in FIELD_ORDER})
    result = reader.parse_file(path)
    if not result.ok:
        raise SystemExit(f"[schema] {path} is not a flat YAML mapping: {result.message}")
    if result.ignored:
        raise SystemExit(f"[schema] {path} contains unknown keys: {sorted(result.ignored)}")
    return raw


def validate_reference(path: Path) -> ReferenceDocument:
    path = Path(path)
    if not path.is_file():
        raise SystemExit(f"[schema] reference file {path} is missing")
    raw = read_raw_fields(path)
    missing = [key for key in FIELD_ORDER if key not in raw]
    if missing:
        raise SystemExit(f"[schema] {path} missing keys: {missing}")
    try:
        return ReferenceDocument.model_validate(raw)
    except ValidationError as exc:
        raise SystemExit(f"[schema] {path} invalid:\n{exc}") from exc


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Validate bond-style reference YAML documents")
    parser.add_argument("documents", nargs="+", type=Path, help="Reference documents (e.g. tests/bond-harmonic.yaml)")
    args = parser.parse_args(argv)
    for document in args.documents:
        validate_reference(document)
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry
    raise SystemExit(main())
