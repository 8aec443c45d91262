"""Streaming writer for scenario documents in the format the reader accepts."""

from __future__ import annotations

import numbers
from pathlib import Path
from typing import Iterable, Optional, Sequence, TextIO, Tuple, Union

import numpy as np
import yaml
from yaml.emitter import Emitter

from .config import FIELD_ORDER, ScenarioConfig


def format_real(value: float) -> str:
    return f"{float(value):.15g}"


def format_stress(stress: Sequence[float]) -> str:
    return " ".join(f"{float(component): 23.16e}" for component in stress)


def format_force_lines(tags: Iterable[int], forces: np.ndarray) -> str:
    lines = []
    for tag, (fx, fy, fz) in zip(tags, np.asarray(forces, dtype=float)):
        lines.append(f"{int(tag): 3d} {fx: 23.16e} {fy: 23.16e} {fz: 23.16e}\n")
    return "".join(lines)


def format_force_table(table: np.ndarray) -> str:
    """Format rows ``1..n`` of a tag-indexed table, one line per tag."""

    table = np.asarray(table, dtype=float)
    return format_force_lines(range(1, table.shape[0]), table[1:])


def format_lines(lines: Iterable[str]) -> str:
    return "".join(f"{line}\n" for line in lines)


def format_prerequisites(prerequisites: Iterable[Tuple[str, str]]) -> str:
    return format_lines(f"{category} {name}" for category, name in prerequisites)


class DocumentWriter:
    """Emit a flat YAML mapping one key at a time.

    Use as a context manager; the mapping, document and stream are closed on
    exit and a file opened by the writer is closed as well.
    """

    def __init__(self, target: Union[str, Path, TextIO]) -> None:
        self._target = target
        self._stream: Optional[TextIO] = None
        self._owns_stream = False
        self._emitter: Optional[Emitter] = None

    def __enter__(self) -> "DocumentWriter":
        if isinstance(self._target, (str, Path)):
            self._stream = open(self._target, "w", encoding="utf8")
            self._owns_stream = True
        else:
            self._stream = self._target
        self._emitter = Emitter(self._stream)
        self._emitter.emit(yaml.StreamStartEvent())
        self._emitter.emit(yaml.DocumentStartEvent(explicit=True))
        self._emitter.emit(yaml.MappingStartEvent(anchor=None, tag=None, implicit=True, flow_style=False))
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if self._emitter is not None and exc_type is None:
                self._emitter.emit(yaml.MappingEndEvent())
                self._emitter.emit(yaml.DocumentEndEvent(explicit=True))
                self._emitter.emit(yaml.StreamEndEvent())
        finally:
            if self._emitter is not None:
                self._emitter.dispose()
                self._emitter = None
            if self._owns_stream and self._stream is not None:
                self._stream.close()
            self._stream = None

    def _scalar(self, text: str, style: Optional[str] = None) -> None:
        if self._emitter is None:
            raise RuntimeError("DocumentWriter used outside of its context")
        self._emitter.emit(yaml.ScalarEvent(anchor=None, tag=None, implicit=(True, True), value=text, style=style))

    def emit(self, key: str, value: Union[str, int, float]) -> None:
        """Write ``key: value`` as plain scalars."""

        if isinstance(value, str):
            text = value
        elif isinstance(value, numbers.Integral):
            text = f"{int(value):d}"
        elif isinstance(value, numbers.Real):
            text = format_real(value)
        else:
            raise TypeError(f"cannot emit {type(value).__name__} for key '{key}'")
        self._scalar(key)
        self._scalar(text)

    def emit_block(self, key: str, text: str) -> None:
        """Write ``key: |`` followed by ``text`` as a literal block."""

        self._scalar(key)
        self._scalar(text, style="|")


def emit_config_field(writer: DocumentWriter, config: ScenarioConfig, key: str) -> None:
    """Write one :data:`FIELD_ORDER` entry of ``config``."""

    if key == "prerequisites":
        writer.emit_block(key, format_prerequisites(config.prerequisites))
    elif key in ("pre_commands", "post_commands", "bond_coeff"):
        writer.emit_block(key, format_lines(getattr(config, key)))
    elif key in ("init_stress", "run_stress"):
        writer.emit_block(key, format_stress(getattr(config, key)))
    elif key in ("init_forces", "run_forces"):
        writer.emit_block(key, format_force_table(getattr(config, key)))
    elif key in FIELD_ORDER:
        writer.emit(key, getattr(config, key))
    else:
        raise KeyError(key)


def write_config(config: ScenarioConfig, target: Union[str, Path, TextIO]) -> None:
    with DocumentWriter(target) as writer:
        for key in FIELD_ORDER:
            emit_config_field(writer, config, key)


__all__ = [
    "DocumentWriter",
    "emit_config_field",
    "format_force_lines",
    "format_force_table",
    "format_lines",
    "format_prerequisites",
    "format_real",
    "format_stress",
    "write_config",
]
