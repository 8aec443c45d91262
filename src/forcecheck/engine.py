"""Boundary to the simulation engine.

The harness only talks to an :class:`Engine`: it submits commands, asks
whether styles and packages exist, and reads back an :class:`Observables`
snapshot once a command has completed.  :class:`LammpsEngine` implements the
protocol on top of the ``lammps`` Python module, which is imported lazily so
the rest of the package works without a LAMMPS build.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Callable, Optional, Protocol, Sequence, Tuple

import numpy as np

from .entities import Observables
from .errors import EngineError

logger = logging.getLogger(__name__)

ENERGY_COMPUTE = "fc_ebond"
PRESSURE_COMPUTE = "fc_pbond"
SUM_COMPUTE = "sum"


def tracking_commands(category: str = "bond") -> Tuple[str, ...]:
    """Computes that expose the style's energy and virial to the adapter."""

    return (
        f"compute {ENERGY_COMPUTE} all pe {category}",
        f"compute {PRESSURE_COMPUTE} all pressure NULL {category}",
    )


TRACKING_THERMO = f"c_{ENERGY_COMPUTE} c_{PRESSURE_COMPUTE}[1]"
"""Thermo keywords that keep the tracking computes tallied on output steps."""


class Engine(Protocol):
    """What the harness needs from a simulation engine instance."""

    @property
    def suffix(self) -> Optional[str]:
        ...

    @property
    def version(self) -> str:
        ...

    def has_style(self, category: str, name: str) -> bool:
        ...

    def has_package(self, name: str) -> bool:
        ...

    def command(self, line: str) -> None:
        ...

    def file(self, path: str) -> None:
        ...

    def observables(self) -> Observables:
        ...

    def compute_scalar(self, compute_id: str) -> float:
        ...

    def drain_output(self) -> str:
        ...

    def close(self) -> None:
        ...


EngineFactory = Callable[[Sequence[str]], Engine]


def _suffix_from_args(args: Sequence[str]) -> Optional[str]:
    args = list(args)
    for flag in ("-sf", "-suffix"):
        if flag in args:
            idx = args.index(flag)
            if idx + 1 < len(args):
                return args[idx + 1]
    return None


class LammpsEngine:
    """:class:`Engine` adapter over ``lammps.lammps``.

    Screen output is disabled and the log is written to a private file so
    :meth:`drain_output` can hand the produced text back to the caller.
    """

    def __init__(self, args: Sequence[str]) -> None:
        try:
            import lammps as lammps_module
        except ImportError as exc:
            raise EngineError("the 'lammps' Python module is not installed") from exc

        self._module = lammps_module
        handle, log_path = tempfile.mkstemp(prefix="forcecheck-", suffix=".log")
        os.close(handle)
        self._log_path = Path(log_path)
        self._log_offset = 0
        self._suffix = _suffix_from_args(args)
        cmdargs = list(_strip_log_args(args)) + ["-log", str(self._log_path), "-screen", "none"]
        logger.debug("starting LAMMPS with %s", " ".join(cmdargs))
        try:
            self._lmp = lammps_module.lammps(cmdargs=cmdargs)
        except BaseException:
            self._log_path.unlink(missing_ok=True)
            raise
        self._banner = ""

    @property
    def suffix(self) -> Optional[str]:
        return self._suffix

    @property
    def version(self) -> str:
        banner = self._banner or self._read_log(0)[0]
        first = banner.splitlines()[0] if banner else ""
        if first.startswith("LAMMPS (") and first.endswith(")"):
            return first[len("LAMMPS (") : -1]
        return str(self._lmp.version())

    def has_style(self, category: str, name: str) -> bool:
        return bool(self._lmp.has_style(category, name))

    def has_package(self, name: str) -> bool:
        return bool(self._lmp.has_package(name))

    def command(self, line: str) -> None:
        self._lmp.command(line)

    def file(self, path: str) -> None:
        self._lmp.file(path)

    def observables(self) -> Observables:
        lmp = self._lmp
        natoms = int(lmp.get_natoms())
        nlocal = int(lmp.extract_global("nlocal"))
        raw_tags = lmp.numpy.extract_atom("id")
        raw_forces = lmp.numpy.extract_atom("f")
        tags = np.zeros(0, dtype=int) if raw_tags is None else np.array(raw_tags[:nlocal], dtype=int)
        forces = np.zeros((0, 3)) if raw_forces is None else np.array(raw_forces[:nlocal], dtype=float)

        energy = self.compute_scalar(ENERGY_COMPUTE)
        pressure = np.array(
            lmp.numpy.extract_compute(
                PRESSURE_COMPUTE, self._module.LMP_STYLE_GLOBAL, self._module.LMP_TYPE_VECTOR
            ),
            dtype=float,
        )
        boxlo, boxhi = lmp.extract_box()[:2]
        extent = np.subtract(boxhi, boxlo)
        if int(lmp.extract_global("dimension")) == 2:
            volume = float(extent[0] * extent[1])
        else:
            volume = float(np.prod(extent))
        # compute pressure reports virial * nktv2p / volume
        stress = pressure[:6] * volume / float(lmp.extract_global("nktv2p"))
        return Observables(natoms=natoms, nlocal=nlocal, tags=tags, forces=forces, stress=stress, energy=energy)

    def compute_scalar(self, compute_id: str) -> float:
        return float(
            self._lmp.extract_compute(compute_id, self._module.LMP_STYLE_GLOBAL, self._module.LMP_TYPE_SCALAR)
        )

    def _read_log(self, offset: int) -> Tuple[str, int]:
        self._lmp.flush_buffers()
        with self._log_path.open("rb") as handle:
            handle.seek(offset)
            data = handle.read()
        return data.decode("utf8", errors="replace"), offset + len(data)

    def drain_output(self) -> str:
        text, self._log_offset = self._read_log(self._log_offset)
        if not self._banner:
            self._banner = text
        return text

    def close(self) -> None:
        try:
            self._lmp.close()
        finally:
            self._log_path.unlink(missing_ok=True)


def _strip_log_args(args: Sequence[str]) -> Tuple[str, ...]:
    kept = []
    skip = False
    for arg in args:
        if skip:
            skip = False
            continue
        if arg in ("-log", "-screen"):
            skip = True
            continue
        kept.append(arg)
    return tuple(kept)


def lammps_factory(args: Sequence[str]) -> Engine:
    return LammpsEngine(args)


__all__ = [
    "ENERGY_COMPUTE",
    "Engine",
    "EngineFactory",
    "LammpsEngine",
    "PRESSURE_COMPUTE",
    "SUM_COMPUTE",
    "TRACKING_THERMO",
    "lammps_factory",
    "tracking_commands",
]
