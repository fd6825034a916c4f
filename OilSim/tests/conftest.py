# -- Shared Test Fixtures -- #

'''
Fixtures shared across the OilSim test suite.

Sean Bowman [10/19/2026]
'''

from __future__ import annotations

import numpy as np
import pytest

from OilSim.sph.protocols import OilSimConfig
from OilSim.sph.oilSystem import SphOilSystem


@pytest.fixture
def smallConfig() -> OilSimConfig:
    '''Default physics with small, seeded storage.'''
    return OilSimConfig(maxParticles=2000, particleCeiling=500, seed=3)


@pytest.fixture
def seededSystem(smallConfig: OilSimConfig) -> SphOilSystem:
    '''System holding one 50-particle blob at the origin.'''
    system = SphOilSystem(smallConfig)
    system.spawnParticles(0.0, 0.0, 50, spawnRadius=0.2 * smallConfig.smoothingRadius)
    return system


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(12345)


def randomDiskPoints(rng: np.random.Generator, n: int, radius: float) -> np.ndarray:
    '''Uniform random points in a disk centered at the origin, float32.'''
    angles = rng.random(n) * 2.0 * np.pi
    radii = np.sqrt(rng.random(n)) * radius
    return np.column_stack([radii * np.cos(angles), radii * np.sin(angles)]).astype(np.float32)
