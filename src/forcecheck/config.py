"""Scenario documents: the destination record and its field handlers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Tuple, Union

import numpy as np

from .errors import DocumentParseError
from .reader import EventDrivenConfigReader, FieldHandler

logger = logging.getLogger(__name__)

FIELD_ORDER: Tuple[str, ...] = (
    "lammps_version",
    "date_generated",
    "epsilon",
    "prerequisites",
    "pre_commands",
    "post_commands",
    "input_file",
    "bond_style",
    "bond_coeff",
    "natoms",
    "init_energy",
    "init_stress",
    "init_forces",
    "run_energy",
    "run_stress",
    "run_forces",
)
"""Canonical key order used when writing scenario documents."""

STRESS_COMPONENTS: Tuple[str, ...] = ("xx", "yy", "zz", "xy", "xz", "yz")
FORCE_COMPONENTS: Tuple[str, ...] = ("fx", "fy", "fz")


def empty_force_table(natoms: int) -> np.ndarray:
    """Zeroed tag-indexed table; row 0 is never written."""

    return np.zeros((max(int(natoms), 0) + 1, 3), dtype=float)


@dataclass
class ScenarioConfig:
    """One bond-style scenario plus its recorded reference observables."""

    lammps_version: str = ""
    date_generated: str = ""
    epsilon: float = 1.0e-14
    prerequisites: List[Tuple[str, str]] = field(default_factory=list)
    pre_commands: List[str] = field(default_factory=list)
    post_commands: List[str] = field(default_factory=list)
    input_file: str = ""
    bond_style: str = "zero"
    bond_coeff: List[str] = field(default_factory=list)
    natoms: int = 0
    init_energy: float = 0.0
    run_energy: float = 0.0
    init_stress: np.ndarray = field(default_factory=lambda: np.zeros(6, dtype=float))
    run_stress: np.ndarray = field(default_factory=lambda: np.zeros(6, dtype=float))
    init_forces: np.ndarray = field(default_factory=lambda: np.zeros((0, 3), dtype=float))
    run_forces: np.ndarray = field(default_factory=lambda: np.zeros((0, 3), dtype=float))


# --- scalar conversions -----------------------------------------------------------


def _parse_float(text: str, name: str) -> float:
    try:
        return float(text.strip())
    except ValueError:
        logger.warning("malformed real for %s: %r; using 0", name, text)
        return 0.0


def _parse_int(text: str, name: str) -> int:
    stripped = text.strip()
    try:
        return int(stripped)
    except ValueError:
        pass
    try:
        return int(float(stripped))
    except (ValueError, OverflowError):
        logger.warning("malformed integer for %s: %r; using 0", name, text)
        return 0


def _block_lines(text: str) -> List[str]:
    return [line for line in text.split("\n") if line.strip()]


# --- block decoders ----------------------------------------------------------------


def parse_command_block(text: str) -> List[str]:
    return _block_lines(text)


def parse_prerequisites(text: str) -> List[Tuple[str, str]]:
    """Decode ``subsystem name`` lines, skipping lines without a name."""

    entries: List[Tuple[str, str]] = []
    for line in _block_lines(text):
        parts = line.split(None, 2)
        if len(parts) < 2:
            logger.warning("skipping invalid prerequisite line: %r", line)
            continue
        entries.append((parts[0], parts[1]))
    return entries


def parse_stress(text: str, name: str = "stress") -> np.ndarray:
    """Decode one line of six reals in xx, yy, zz, xy, xz, yz order."""

    stress = np.zeros(6, dtype=float)
    tokens = text.split()
    if len(tokens) < 6:
        logger.warning("%s has %d of 6 components; missing entries set to 0", name, len(tokens))
    for idx, token in enumerate(tokens[:6]):
        stress[idx] = _parse_float(token, f"{name}.{STRESS_COMPONENTS[idx]}")
    return stress


def parse_force_table(text: str, natoms: int, name: str = "forces") -> np.ndarray:
    """Scatter ``tag x y z`` lines into a table of ``natoms + 1`` rows.

    Tags come from the engine's particle tag namespace, so each line lands on
    row ``tag`` rather than its position in the block.  Lines with an invalid
    or out-of-range tag are skipped.
    """

    table = empty_force_table(natoms)
    for line in _block_lines(text):
        tokens = line.split()
        if len(tokens) < 4:
            logger.warning("skipping short %s line: %r", name, line)
            continue
        try:
            tag = int(tokens[0])
            xyz = [float(token) for token in tokens[1:4]]
        except ValueError:
            logger.warning("skipping malformed %s line: %r", name, line)
            continue
        if tag < 1 or tag >= table.shape[0]:
            logger.warning("skipping %s line with tag %d outside 1..%d: %r", name, tag, table.shape[0] - 1, line)
            continue
        table[tag] = xyz
    return table


# --- handler table -----------------------------------------------------------------


def config_handlers(config: ScenarioConfig) -> Dict[str, FieldHandler]:
    """Return the key -> handler table writing into ``config``."""

    def set_text(attr: str) -> FieldHandler:
        def handler(text: str) -> None:
            setattr(config, attr, text)

        return handler

    def set_real(attr: str) -> FieldHandler:
        def handler(text: str) -> None:
            setattr(config, attr, _parse_float(text, attr))

        return handler

    def set_commands(attr: str) -> FieldHandler:
        def handler(text: str) -> None:
            setattr(config, attr, parse_command_block(text))

        return handler

    def set_stress(attr: str) -> FieldHandler:
        def handler(text: str) -> None:
            setattr(config, attr, parse_stress(text, attr))

        return handler

    def set_forces(attr: str) -> FieldHandler:
        def handler(text: str) -> None:
            # natoms must precede the force blocks in document order
            setattr(config, attr, parse_force_table(text, config.natoms, attr))

        return handler

    def set_natoms(text: str) -> None:
        config.natoms = _parse_int(text, "natoms")

    def set_prerequisites(text: str) -> None:
        config.prerequisites = parse_prerequisites(text)

    return {
        "lammps_version": set_text("lammps_version"),
        "date_generated": set_text("date_generated"),
        "epsilon": set_real("epsilon"),
        "prerequisites": set_prerequisites,
        "pre_commands": set_commands("pre_commands"),
        "post_commands": set_commands("post_commands"),
        "input_file": set_text("input_file"),
        "bond_style": set_text("bond_style"),
        "bond_coeff": set_commands("bond_coeff"),
        "natoms": set_natoms,
        "init_energy": set_real("init_energy"),
        "run_energy": set_real("run_energy"),
        "init_stress": set_stress("init_stress"),
        "run_stress": set_stress("run_stress"),
        "init_forces": set_forces("init_forces"),
        "run_forces": set_forces("run_forces"),
    }


def load_config(path: Union[str, Path]) -> ScenarioConfig:
    """Read a scenario document, raising :class:`DocumentParseError` on failure."""

    config = ScenarioConfig()
    reader = EventDrivenConfigReader(config_handlers(config))
    result = reader.parse_file(path)
    if not result.ok:
        raise DocumentParseError(f"error parsing yaml file {path}: {result.message or result.state.value}")
    if result.ignored:
        logger.info("ignored %d unknown key(s) in %s: %s", len(result.ignored), path, ", ".join(result.ignored))
    return config


__all__ = [
    "FIELD_ORDER",
    "FORCE_COMPONENTS",
    "STRESS_COMPONENTS",
    "ScenarioConfig",
    "config_handlers",
    "empty_force_table",
    "load_config",
    "parse_command_block",
    "parse_force_table",
    "parse_prerequisites",
    "parse_stress",
]
