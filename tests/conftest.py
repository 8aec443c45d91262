import pytest

from src.forcecheck.config import ScenarioConfig, load_config
from tests.fakes import HARMONIC_YAML, FakeFactory, all_styles, reference_observables


@pytest.fixture
def harmonic_config() -> ScenarioConfig:
    return load_config(HARMONIC_YAML)


@pytest.fixture
def matching_factory(harmonic_config) -> FakeFactory:
    init, run = reference_observables(harmonic_config)
    return FakeFactory(init=init, run=run, styles=all_styles(harmonic_config), packages=("OPENMP", "INTEL"))
