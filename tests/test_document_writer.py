import io
import re

import numpy as np
import pytest

from src.forcecheck.config import FIELD_ORDER, ScenarioConfig, load_config
from src.forcecheck.writer import DocumentWriter, format_force_table, format_real, format_stress, write_config


def _top_level_keys(text):
    return re.findall(r"^([a-z_]+):", text, flags=re.MULTILINE)


def test_written_document_reloads_with_same_values(tmp_path, harmonic_config):
    path = tmp_path / "copy.yaml"
    write_config(harmonic_config, path)
    reloaded = load_config(path)

    assert reloaded.lammps_version == harmonic_config.lammps_version
    assert reloaded.date_generated == harmonic_config.date_generated
    assert reloaded.epsilon == harmonic_config.epsilon
    assert reloaded.prerequisites == harmonic_config.prerequisites
    assert reloaded.post_commands == harmonic_config.post_commands
    assert reloaded.bond_coeff == harmonic_config.bond_coeff
    assert reloaded.natoms == harmonic_config.natoms
    assert reloaded.init_energy == harmonic_config.init_energy
    np.testing.assert_array_equal(reloaded.init_stress, harmonic_config.init_stress)
    np.testing.assert_array_equal(reloaded.init_forces, harmonic_config.init_forces)
    np.testing.assert_array_equal(reloaded.run_forces, harmonic_config.run_forces)


def test_keys_follow_canonical_order(harmonic_config):
    buffer = io.StringIO()
    write_config(harmonic_config, buffer)
    assert tuple(_top_level_keys(buffer.getvalue())) == FIELD_ORDER


def test_multiline_fields_use_literal_blocks(harmonic_config):
    buffer = io.StringIO()
    write_config(harmonic_config, buffer)
    text = buffer.getvalue()
    for key in ("prerequisites", "bond_coeff", "init_stress", "init_forces", "run_forces"):
        assert re.search(rf"^{key}: \|", text, flags=re.MULTILINE), key
    assert "epsilon: 2.5e-13\n" in text


def test_empty_command_block_round_trips(tmp_path):
    config = ScenarioConfig(bond_style="zero", natoms=1)
    config.init_forces = np.zeros((2, 3))
    config.run_forces = np.zeros((2, 3))
    path = tmp_path / "zero.yaml"
    write_config(config, path)
    reloaded = load_config(path)
    assert reloaded.pre_commands == []
    assert reloaded.bond_style == "zero"
    assert reloaded.natoms == 1


def test_emit_rejects_unsupported_values():
    with DocumentWriter(io.StringIO()) as writer:
        writer.emit("natoms", 3)
        with pytest.raises(TypeError):
            writer.emit("forces", [1.0, 2.0])


def test_writer_closes_file_it_opened(tmp_path):
    path = tmp_path / "partial.yaml"
    with pytest.raises(RuntimeError):
        with DocumentWriter(path) as writer:
            writer.emit("epsilon", 1e-13)
            raise RuntimeError("engine failed")
    assert path.exists()
    assert writer._stream is None


def test_number_formats():
    assert format_real(4.78937417169545) == "4.78937417169545"
    assert format_stress([1.0, -2.0])[:24] == " 1.0000000000000000e+00 "
    line = format_force_table(np.array([[0.0, 0.0, 0.0], [-1.0, 0.5, 0.0]]))
    assert line == "  1 -1.0000000000000000e+00  5.0000000000000000e-01  0.0000000000000000e+00\n"
