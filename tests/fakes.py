"""Scripted engine doubles and reference fixtures shared by the harness tests."""

from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from src.forcecheck.config import ScenarioConfig
from src.forcecheck.entities import Observables

DATA_DIR = Path(__file__).parent / "data"
HARMONIC_YAML = DATA_DIR / "bond-harmonic.yaml"


def observables_from_table(energy: float, stress, table, natoms: Optional[int] = None, nlocal: Optional[int] = None):
    table = np.asarray(table, dtype=float)
    count = table.shape[0] - 1
    return Observables(
        natoms=count if natoms is None else natoms,
        nlocal=count if nlocal is None else nlocal,
        tags=np.arange(1, count + 1),
        forces=table[1:].copy(),
        stress=np.asarray(stress, dtype=float).copy(),
        energy=float(energy),
    )


def reference_observables(config: ScenarioConfig) -> Tuple[Observables, Observables]:
    init = observables_from_table(config.init_energy, config.init_stress, config.init_forces)
    run = observables_from_table(config.run_energy, config.run_stress, config.run_forces)
    return init, run


class FakeEngine:
    """Scripted stand-in for a LAMMPS instance.

    Returns ``init`` observables until the dynamic run command has been
    issued and ``run`` observables afterwards.
    """

    def __init__(
        self,
        args: Sequence[str],
        *,
        init: Observables,
        run: Observables,
        styles: Iterable[Tuple[str, str]] = (),
        packages: Iterable[str] = (),
        summed: Optional[float] = None,
        banner: bool = True,
        version: str = "21 Jul 2020",
    ) -> None:
        self.args = tuple(args)
        self.commands: List[str] = []
        self.files: List[str] = []
        self.closed = False
        self.style_queries: List[Tuple[str, str]] = []
        self._init = init
        self._run = run
        self._styles = set(styles)
        self._packages = set(packages)
        self._summed = summed
        self._version = version
        self._phase = "init"
        self._output = f"LAMMPS ({version})\n" if banner else ""

    @property
    def suffix(self) -> Optional[str]:
        for flag in ("-sf", "-suffix"):
            if flag in self.args:
                return self.args[self.args.index(flag) + 1]
        return None

    @property
    def version(self) -> str:
        return self._version

    def has_style(self, category: str, name: str) -> bool:
        self.style_queries.append((category, name))
        return (category, name) in self._styles

    def has_package(self, name: str) -> bool:
        return name in self._packages

    def command(self, line: str) -> None:
        self.commands.append(line)
        if line.startswith("run "):
            self._output += "Loop time of 1.2e-05 on 1 procs for 0 steps with 3 atoms\n"
        if line.startswith("run 4"):
            self._phase = "run"

    def file(self, path: str) -> None:
        self.files.append(path)

    def observables(self) -> Observables:
        return self._run if self._phase == "run" else self._init

    def compute_scalar(self, compute_id: str) -> float:
        if self._summed is not None:
            return self._summed
        return self._run.energy

    def drain_output(self) -> str:
        text, self._output = self._output, ""
        return text

    def close(self) -> None:
        self.closed = True


class FakeFactory:
    """Engine factory recording every engine it created."""

    def __init__(self, **engine_kwargs) -> None:
        self.engine_kwargs: Dict = engine_kwargs
        self.engines: List[FakeEngine] = []

    def __call__(self, args: Sequence[str]) -> FakeEngine:
        engine = FakeEngine(args, **self.engine_kwargs)
        self.engines.append(engine)
        return engine


def all_styles(config: ScenarioConfig, suffixes: Iterable[str] = ("omp", "intel")):
    styles = set(config.prerequisites)
    for category, name in config.prerequisites:
        if category == "bond":
            styles.update((category, f"{name}/{suffix}") for suffix in suffixes)
    return styles


