# -- Configuration Tests -- #

'''
OilSimConfig defaults, derived values, validation, and JSON loading.

Sean Bowman [10/19/2026]
'''

from __future__ import annotations

import json
from pathlib import Path

import pytest

from OilSim import constants as const
from OilSim.sph.protocols import OilSimConfig

projectRoot = Path(__file__).resolve().parents[2]


def testDefaultsFromConstants():
    config = OilSimConfig()

    assert config.containerRadius == const.containerRadius
    assert config.smoothingRadius == const.smoothingRadius
    assert config.maxTimeStep == const.maxTimeStep
    assert not config.useImplicitIntegration


def testDerivedValues():
    config = OilSimConfig(smoothingRadius=0.1)

    assert config.supportRadius == pytest.approx(0.2)
    assert config.cellSize == pytest.approx(0.2)
    assert config.shortCohesionRadius == pytest.approx(0.1 * config.shortRadiusScale)
    assert config.minCohesionDistance == pytest.approx(0.1 * config.minDistScale)
    assert config.densityFloor == pytest.approx(config.densityFloorRatio * config.restDensity)


@pytest.mark.parametrize('kwargs', [
    {'smoothingRadius': 0.0},
    {'containerRadius': -1.0},
    {'particleMass': 0.0},
    {'maxParticles': 10, 'particleCeiling': 20},
])
def testInvalidValuesRejected(kwargs):
    with pytest.raises(ValueError):
        OilSimConfig(**kwargs)


def testFromJson(tmp_path):
    path = tmp_path / 'config.json'
    path.write_text(json.dumps({
        'container': {'containerRadius': 0.5},
        'sph': {'smoothingRadius': 0.12, 'viscosity': 0.05},
        'implicit': {'useImplicitIntegration': True, 'cgMaxIterations': 20},
        'spawn': {'seed': 11},
        'scenario': {'nSteps': 10},
    }))

    config = OilSimConfig.fromJson(str(path))

    assert config.containerRadius == 0.5
    assert config.smoothingRadius == 0.12
    assert config.viscosity == 0.05
    assert config.useImplicitIntegration
    assert config.cgMaxIterations == 20
    assert config.seed == 11
    # Unspecified keys keep their defaults
    assert config.restDensity == const.restDensity


def testUnknownKeyRejected():
    with pytest.raises(ValueError, match='sph.smoothingLength'):
        OilSimConfig.fromDict({'sph': {'smoothingLength': 0.1}})


def testShippedConfigLoads():
    config = OilSimConfig.fromJson(str(projectRoot / 'configs' / 'blobDrop_default.json'))

    assert config.smoothingRadius == const.smoothingRadius
    assert config.seed == 7
