"""Drive a bond-style scenario through the engine and check or record observables.

A scenario runs in two phases: a static ``run 0`` evaluation right after setup
and a short NVE run.  In verify mode the forces, virial and energy of both
phases are compared with the reference values stored in the
:class:`~src.forcecheck.config.ScenarioConfig`; in generate mode they are
written out as a new reference document instead.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Mapping, Optional, Sequence, TextIO, Tuple, Union

import numpy as np

from .config import FIELD_ORDER, FORCE_COMPONENTS, STRESS_COMPONENTS, ScenarioConfig
from .engine import SUM_COMPUTE, TRACKING_THERMO, Engine, EngineFactory, tracking_commands
from .entities import GroupReport, ModeOutcome, Observables, PhaseReport, VerificationReport, Violation
from .errors import EngineError, PrerequisiteUnavailable, ReferenceMismatch, ToleranceExceeded
from .stats import ErrorAccumulator, relative_error
from .writer import DocumentWriter, emit_config_field

logger = logging.getLogger(__name__)

STYLE_CATEGORY = "bond"
BASE_ARGS: Tuple[str, ...] = ("-log", "none", "-echo", "screen", "-nocite")
STATIC_RUN = "run 0 post no"
RUN_COMMANDS: Tuple[str, ...] = (
    "fix 1 all nve",
    f"compute pe all pe/atom {STYLE_CATEGORY}",
    f"compute {SUM_COMPUTE} all reduce sum c_pe",
    f"thermo_style custom step temp pe press c_{SUM_COMPUTE} {TRACKING_THERMO}",
    "thermo 2",
    "run 4 post no",
)
TABULATION_RELAX = 1.0e6


@dataclass(frozen=True)
class ExecutionMode:
    """Engine flavour to test, with its tolerance adjustments.

    ``group_scale`` multiplies the mode epsilon for individual observable
    groups; groups not listed use the mode epsilon unchanged.
    """

    name: str
    args: Tuple[str, ...] = ()
    package: Optional[str] = None
    epsilon_scale: float = 1.0
    group_scale: Mapping[str, float] = field(default_factory=dict)
    relax_tabulation: bool = False

    def epsilon(self, config: ScenarioConfig) -> float:
        epsilon = config.epsilon * self.epsilon_scale
        if self.relax_tabulation:
            # tabulated styles lose precision in the accelerated kernels
            for command in config.post_commands:
                if f"{STYLE_CATEGORY}_modify table" in command and f"{STYLE_CATEGORY}_modify table 0" not in command:
                    epsilon *= TABULATION_RELAX
        return epsilon

    def tolerance(self, group: str, epsilon: float) -> float:
        return epsilon * self.group_scale.get(group, 1.0)


PLAIN = ExecutionMode("plain", group_scale={"run_forces": 10.0})
OPENMP = ExecutionMode(
    "openmp",
    args=("-pk", "omp", "4", "-sf", "omp"),
    package="OPENMP",
    epsilon_scale=5.0,
    group_scale={"init_stress": 10.0, "run_forces": 10.0, "run_stress": 10.0},
)
INTEL = ExecutionMode(
    "intel",
    args=("-pk", "intel", "0", "mode", "double", "omp", "4", "lrt", "no", "-sf", "intel"),
    package="INTEL",
    epsilon_scale=5.0,
    group_scale={"init_stress": 10.0, "run_forces": 10.0, "run_stress": 10.0},
    relax_tabulation=True,
)
EXECUTION_MODES: Tuple[ExecutionMode, ...] = (PLAIN, OPENMP, INTEL)


# --- setup -------------------------------------------------------------------------


def missing_prerequisites(engine: Engine, config: ScenarioConfig, mode: ExecutionMode = PLAIN) -> List[Tuple[str, str]]:
    """Return the (subsystem, name) pairs the engine cannot provide."""

    missing: List[Tuple[str, str]] = []
    if mode.package and not engine.has_package(mode.package):
        missing.append(("package", mode.package))
    for category, style in config.prerequisites:
        # the suffixed variant is the one under test when a suffix is active
        if category == STYLE_CATEGORY and engine.suffix:
            style = f"{style}/{engine.suffix}"
        if not engine.has_style(category, style):
            missing.append((category, style))
    return missing


def setup_commands(config: ScenarioConfig) -> Iterator[Tuple[str, str]]:
    """Yield ``("command", line)`` and ``("file", path)`` steps of the static phase."""

    for command in config.pre_commands:
        yield "command", command
    yield "file", config.input_file
    yield "command", f"{STYLE_CATEGORY}_style {config.bond_style}"
    for coeff in config.bond_coeff:
        yield "command", f"{STYLE_CATEGORY}_coeff {coeff}"
    for command in config.post_commands:
        yield "command", command
    for command in tracking_commands(STYLE_CATEGORY):
        yield "command", command
    yield "command", f"thermo_style custom step temp pe press {TRACKING_THERMO}"
    yield "command", STATIC_RUN


def init_engine(config: ScenarioConfig, factory: EngineFactory, mode: ExecutionMode = PLAIN) -> Engine:
    """Create an engine, check prerequisites and run the static phase.

    The engine is closed before any exception leaves this function, including
    :class:`PrerequisiteUnavailable`.
    """

    engine = factory(BASE_ARGS + mode.args)
    try:
        missing = missing_prerequisites(engine, config, mode)
        if missing:
            raise PrerequisiteUnavailable(missing, mode.name)
        for kind, payload in setup_commands(config):
            if kind == "file":
                engine.file(payload)
            else:
                engine.command(payload)
    except BaseException:
        engine.close()
        raise
    return engine


@contextmanager
def engine_session(
    config: ScenarioConfig, factory: EngineFactory, mode: ExecutionMode = PLAIN
) -> Iterator[Engine]:
    engine = init_engine(config, factory, mode)
    try:
        yield engine
    finally:
        engine.close()


def run_dynamics(engine: Engine) -> None:
    for command in RUN_COMMANDS:
        engine.command(command)


# --- comparison --------------------------------------------------------------------


def compare_group(
    group: str,
    pairs: Iterable[Tuple[str, float, float]],
    tolerance: float,
    accumulator: Optional[ErrorAccumulator] = None,
) -> GroupReport:
    """Accumulate relative errors for ``(label, computed, reference)`` pairs.

    Every pair is checked; the accumulator is reset first so its statistics
    cover this group only.
    """

    stats = accumulator if accumulator is not None else ErrorAccumulator()
    stats.reset()
    violations: List[Violation] = []
    for label, computed, reference in pairs:
        error = relative_error(computed, reference)
        stats.add(error)
        if not error <= tolerance:
            violations.append(
                Violation(
                    group=group,
                    label=label,
                    computed=float(computed),
                    reference=float(reference),
                    error=error,
                    tolerance=tolerance,
                )
            )
    return GroupReport(group=group, tolerance=tolerance, stats=stats.summary(), violations=tuple(violations))


def force_pairs(observed: Observables, reference: np.ndarray) -> Iterator[Tuple[str, float, float]]:
    for row, tag in enumerate(observed.tags[: observed.nlocal]):
        tag = int(tag)
        if tag < 1 or tag >= reference.shape[0]:
            raise ReferenceMismatch(f"particle tag {tag} has no reference force row")
        for component, name in enumerate(FORCE_COMPONENTS):
            yield f"tag {tag} {name}", observed.forces[row][component], reference[tag][component]


def stress_pairs(observed: Observables, reference: np.ndarray) -> Iterator[Tuple[str, float, float]]:
    for component, name in enumerate(STRESS_COMPONENTS):
        yield name, observed.stress[component], reference[component]


def _check_layout(observed: Observables, reference: np.ndarray, name: str) -> None:
    if observed.natoms != observed.nlocal:
        raise EngineError(
            f"only {observed.nlocal} of {observed.natoms} atoms are local; distributed runs are not supported"
        )
    if reference.shape[0] != observed.nlocal + 1:
        raise ReferenceMismatch(
            f"{name} has {reference.shape[0]} rows, expected {observed.nlocal + 1} for {observed.nlocal} atoms"
        )


def _check_banner(output: str) -> None:
    if not output.startswith("LAMMPS ("):
        raise EngineError("engine output does not start with the LAMMPS banner")
    if "Loop time" not in output:
        raise EngineError("engine output does not report a completed run")


def _log_stats(report: GroupReport, print_stats: bool) -> None:
    level = logging.INFO if print_stats else logging.DEBUG
    logger.log(level, "%-11s stats: %s", report.group, report.stats.format())


def verify(
    config: ScenarioConfig,
    factory: EngineFactory,
    mode: ExecutionMode = PLAIN,
    *,
    print_stats: bool = False,
) -> VerificationReport:
    """Compare both phases against ``config`` and return the report.

    Raises :class:`PrerequisiteUnavailable` when the scenario cannot run in
    this mode and :class:`ToleranceExceeded` after all groups were compared
    if any of them failed.
    """

    epsilon = mode.epsilon(config)
    report = VerificationReport(mode=mode.name)
    accumulator = ErrorAccumulator()

    with engine_session(config, factory, mode) as engine:
        _check_banner(engine.drain_output())
        observed = engine.observables()
        _check_layout(observed, config.init_forces, "init_forces")

        init = PhaseReport("init")
        init.groups.append(
            compare_group("init_forces", force_pairs(observed, config.init_forces), mode.tolerance("init_forces", epsilon), accumulator)
        )
        init.groups.append(
            compare_group("init_stress", stress_pairs(observed, config.init_stress), mode.tolerance("init_stress", epsilon), accumulator)
        )
        init.groups.append(
            compare_group(
                "init_energy",
                [("energy", observed.energy, config.init_energy)],
                mode.tolerance("init_energy", epsilon),
                accumulator,
            )
        )
        report.phases.append(init)

        run_dynamics(engine)
        engine.drain_output()
        observed = engine.observables()
        _check_layout(observed, config.run_forces, "run_forces")
        summed = engine.compute_scalar(SUM_COMPUTE)

        run = PhaseReport("run")
        run.groups.append(
            compare_group("run_forces", force_pairs(observed, config.run_forces), mode.tolerance("run_forces", epsilon), accumulator)
        )
        run.groups.append(
            compare_group("run_stress", stress_pairs(observed, config.run_stress), mode.tolerance("run_stress", epsilon), accumulator)
        )
        run.groups.append(
            compare_group(
                "run_energy",
                [("energy", observed.energy, config.run_energy), ("energy vs per-atom sum", observed.energy, summed)],
                mode.tolerance("run_energy", epsilon),
                accumulator,
            )
        )
        report.phases.append(run)

    for group in report.groups:
        _log_stats(group, print_stats)
    if not report.passed:
        raise ToleranceExceeded(report)
    return report


def verify_modes(
    config: ScenarioConfig,
    factory: EngineFactory,
    modes: Sequence[ExecutionMode] = EXECUTION_MODES,
    *,
    print_stats: bool = False,
) -> List[ModeOutcome]:
    """Run :func:`verify` for each mode, turning skips and tolerance failures into outcomes."""

    outcomes: List[ModeOutcome] = []
    for mode in modes:
        try:
            report = verify(config, factory, mode, print_stats=print_stats)
        except PrerequisiteUnavailable as exc:
            logger.info("skipping %s: %s", mode.name, exc)
            outcomes.append(ModeOutcome(mode.name, "skipped", reason=str(exc)))
        except ToleranceExceeded as exc:
            logger.error("%s", exc)
            outcomes.append(ModeOutcome(mode.name, "failed", report=exc.report, reason=str(exc)))
        else:
            logger.info("mode %s passed", mode.name)
            outcomes.append(ModeOutcome(mode.name, "passed", report=report))
    return outcomes


# --- generation --------------------------------------------------------------------


def generate(
    config: ScenarioConfig,
    factory: EngineFactory,
    target: Union[str, Path, TextIO],
    *,
    clock: Callable[[], str] = time.ctime,
) -> ScenarioConfig:
    """Run the scenario and write a new reference document to ``target``.

    The static-phase fields are written before the dynamic phase starts. The
    returned config holds the values that were written.
    """

    split = FIELD_ORDER.index("run_energy")
    with engine_session(config, factory, PLAIN) as engine:
        engine.drain_output()
        observed = engine.observables()
        generated = replace(
            config,
            lammps_version=engine.version,
            date_generated=clock(),
            natoms=observed.natoms,
            init_energy=float(observed.energy),
            init_stress=np.array(observed.stress, dtype=float),
            init_forces=observed.force_table(),
        )
        with DocumentWriter(target) as writer:
            for key in FIELD_ORDER[:split]:
                emit_config_field(writer, generated, key)

            run_dynamics(engine)
            engine.drain_output()
            observed = engine.observables()
            generated = replace(
                generated,
                run_energy=float(observed.energy),
                run_stress=np.array(observed.stress, dtype=float),
                run_forces=observed.force_table(),
            )
            for key in FIELD_ORDER[split:]:
                emit_config_field(writer, generated, key)
    logger.info("wrote reference data for %s_style %s", STYLE_CATEGORY, config.bond_style)
    return generated


__all__ = [
    "BASE_ARGS",
    "EXECUTION_MODES",
    "ExecutionMode",
    "INTEL",
    "OPENMP",
    "PLAIN",
    "RUN_COMMANDS",
    "compare_group",
    "engine_session",
    "force_pairs",
    "generate",
    "init_engine",
    "missing_prerequisites",
    "run_dynamics",
    "setup_commands",
    "stress_pairs",
    "verify",
    "verify_modes",
]
