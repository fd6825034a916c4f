# -- Scenario and Runner Tests -- #

'''
Blob drop setup, a short end-to-end run, and the CLI entry point.

Sean Bowman [10/19/2026]
'''

from __future__ import annotations

import json
import os
from dataclasses import replace

from OilSim.sph.protocols import OilSimConfig
from OilSim.scenarios.blobDrop import BlobDropConfig, createBlobDrop
from OilSim.runner import OilSimRunner, buildParser, loadRunConfig, main


def testPresets():
    small = BlobDropConfig.small()
    standard = BlobDropConfig.standard()

    assert small.particleCount == 50 and small.nSteps == 120
    assert standard.particleCount == 500
    assert standard.rotationRate > 0.0


def testCreateBlobDropOverridesSeedAndMode():
    base = OilSimConfig(seed=1, viscosity=0.05)
    config, system = createBlobDrop(BlobDropConfig(particleCount=30, useImplicit=True, seed=9), base)

    assert config.seed == 9
    assert config.useImplicitIntegration
    assert config.viscosity == 0.05
    assert not base.useImplicitIntegration
    assert system.particleCount == 30
    assert system.boostFramesRemaining == config.posCohesionBoostFrames


def testScenarioImplicitModeFollowsOrOverridesBase():
    base = OilSimConfig(useImplicitIntegration=True, seed=5)

    inherited, _ = createBlobDrop(BlobDropConfig(particleCount=10, seed=None), base)
    assert inherited.useImplicitIntegration
    assert inherited.seed == 5

    disabled, system = createBlobDrop(BlobDropConfig(particleCount=10, useImplicit=False), base)
    assert not disabled.useImplicitIntegration
    assert not system.config.useImplicitIntegration
    assert disabled is not base
    assert base.useImplicitIntegration


def testCreateBlobDropIsReproducible():
    dropConfig = BlobDropConfig(particleCount=25, seed=13)
    _, first = createBlobDrop(dropConfig)
    _, second = createBlobDrop(dropConfig)

    assert (first.particles.positions == second.particles.positions).all()


def testShortRunExports(tmp_path, capsys):
    dropConfig = replace(BlobDropConfig.small(), nSteps=8, outputInterval=4)
    results = OilSimRunner().run(dropConfig, doExport=True, exportDir=str(tmp_path))

    # Initial frame plus one every outputInterval steps
    assert results['nFrames'] == 3
    assert results['finalState'].frame == 8
    assert results['finalState'].repairs == 0
    assert results['plotPaths'] == []
    assert os.path.exists(results['exportPath'])

    with open(results['exportPath'], 'r') as f:
        data = json.load(f)
    assert len(data['history']['frames']) == 8
    assert 'SIMULATION SUMMARY' in capsys.readouterr().out


def testImplicitRunWritesPlots(tmp_path):
    dropConfig = replace(BlobDropConfig.small(), nSteps=4, useImplicit=True)
    runner = OilSimRunner()
    results = runner.run(dropConfig, doExport=False, doPlot=True, exportDir=str(tmp_path))

    assert results['exportPath'] is None
    assert len(results['plotPaths']) == 2
    assert all(os.path.exists(path) for path in results['plotPaths'])
    assert len(runner.exporter.history['cgIterations']) == 4
    assert max(runner.exporter.history['cgIterations']) >= 1
    assert 'implicit' in results['stats']


def testLoadRunConfig(tmp_path):
    path = tmp_path / 'run.json'
    path.write_text(json.dumps({
        'sph': {'viscosity': 0.06},
        'scenario': {'particleCount': 40, 'nSteps': 3},
    }))

    simConfig, dropConfig = loadRunConfig(str(path))

    assert simConfig.viscosity == 0.06
    assert dropConfig.particleCount == 40
    assert dropConfig.nSteps == 3


def testParserDefaults():
    args = buildParser().parse_args([])

    assert args.preset == 'small'
    assert args.steps is None
    assert not args.implicit
    assert args.output_dir == 'OilSim/output'


def testMainRunsWithOverrides(tmp_path, capsys):
    main(['--steps', '2', '--rotation', '0.01', '--output-dir', str(tmp_path)])

    exported = [name for name in os.listdir(tmp_path) if name.endswith('.json')]
    assert len(exported) == 1
    with open(os.path.join(tmp_path, exported[0]), 'r') as f:
        data = json.load(f)
    assert data['history']['frames'] == [1, 2]
    assert 'RUNNING SIMULATION' in capsys.readouterr().out


def writeRunConfig(tmp_path) -> str:
    path = tmp_path / 'run.json'
    path.write_text(json.dumps({
        'implicit': {'useImplicitIntegration': False},
        'spawn': {'seed': 3},
        'scenario': {'particleCount': 30, 'nSteps': 6, 'outputInterval': 2},
    }))
    return str(path)


def testRunFromConfigAppliesOverrides(tmp_path):
    results = OilSimRunner().runFromConfig(
        writeRunConfig(tmp_path), dropOverrides={'nSteps': 3}, doExport=False,
    )

    assert results['finalState'].frame == 3
    assert results['finalState'].particleCount == 30
    assert results['exportPath'] is None


def testMainRunsFromConfigFile(tmp_path):
    configPath = writeRunConfig(tmp_path)
    outputDir = tmp_path / 'out'
    main(['--config', configPath, '--steps', '2', '--implicit', '--output-dir', str(outputDir)])

    exported = os.listdir(outputDir)
    assert len(exported) == 1
    with open(os.path.join(outputDir, exported[0]), 'r') as f:
        data = json.load(f)
    assert data['meta']['implicit'] is True
    assert data['meta']['nParticles'] == 30
    assert data['config']['seed'] == 7
    assert data['history']['frames'] == [1, 2]
