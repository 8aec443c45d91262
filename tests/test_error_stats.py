import math

import pytest

from src.forcecheck.stats import ErrorAccumulator, relative_error


def test_accumulator_mean_max_and_first_argmax() -> None:
    acc = ErrorAccumulator()
    for value in (1e-15, 3e-15, 2e-15, 3e-15):
        acc.add(value)
    assert acc.count == 4
    assert acc.average() == pytest.approx(2.25e-15)
    assert acc.max() == 3e-15
    assert acc.argmax() == 2


def test_accumulator_empty_state() -> None:
    acc = ErrorAccumulator()
    assert acc.count == 0
    assert acc.average() == 0.0
    assert acc.stddev() == 0.0
    assert acc.argmax() == -1


def test_constant_stream_has_zero_stddev() -> None:
    acc = ErrorAccumulator()
    for _ in range(17):
        acc.add(0.1)
    stddev = acc.stddev()
    assert stddev == pytest.approx(0.0, abs=1e-7)
    assert not math.isnan(stddev)


def test_stddev_matches_population_formula() -> None:
    acc = ErrorAccumulator()
    for value in (1.0, 2.0, 3.0, 4.0):
        acc.add(value)
    assert acc.stddev() == pytest.approx(math.sqrt(1.25))


def test_reset_clears_statistics() -> None:
    acc = ErrorAccumulator()
    acc.add(5.0)
    acc.add(1.0)
    acc.reset()
    acc.add(2.0)
    summary = acc.summary()
    assert summary.count == 1
    assert summary.max == 2.0
    assert summary.argmax == 1
    assert "MaxErr:" in str(acc)
    assert summary.format().endswith("@ item: 1")


def test_relative_error_of_identical_values_is_zero() -> None:
    for value in (0.0, 1e-300, -3.5, 1e300):
        assert relative_error(value, value) == 0.0


def test_relative_error_is_symmetric_and_non_negative() -> None:
    assert relative_error(1.0, 2.0) == relative_error(2.0, 1.0) == 1.0
    assert relative_error(-1.0, 2.0) >= 0.0


def test_relative_error_falls_back_to_absolute_difference_at_zero() -> None:
    assert relative_error(0.0, 2.5e-3) == pytest.approx(2.5e-3)
    assert relative_error(-4.0, 0.0) == pytest.approx(4.0)


def test_relative_error_near_machine_precision() -> None:
    assert relative_error(1.0, 1.00000000000001) == pytest.approx(1e-14, rel=1e-2)
