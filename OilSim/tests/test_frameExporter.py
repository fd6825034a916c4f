# -- Frame Exporter Tests -- #

'''
Frame collection, diagnostics history, and JSON output.

Sean Bowman [10/19/2026]
'''

from __future__ import annotations

import json
import os

import numpy as np
import pytest

from OilSim.export.frameExporter import FrameExporter
from OilSim.sph.protocols import OilSimConfig, RenderBuffers, SimulationState


def makeState(frame: int, time: float) -> SimulationState:
    return SimulationState(
        frame=frame,
        time=time,
        dt=0.008,
        particleCount=3,
        kineticEnergy=1.5e-4,
        maxVelocity=0.0123456789,
        centroid=np.array([0.03, 0.04]),
        maxRadius=0.2,
        repairs=0,
    )


def makeBuffers() -> RenderBuffers:
    return RenderBuffers(
        positions=np.array([[0.1, 0.2], [0.0, -0.1], [0.12345678, 0.0]], dtype=np.float32),
        colors=np.tile(np.array([0.9, 0.7, 0.2, 1.0], dtype=np.float32), (3, 1)),
        densities=np.array([12.5, 9.25, 3.0], dtype=np.float32),
    )


def testAddFrameRoundsValues():
    exporter = FrameExporter()
    exporter.addFrame(makeState(4, 0.0333333333), makeBuffers())

    assert exporter.nFrames == 1
    frame = exporter._frames[0]
    assert frame['frame'] == 4
    assert frame['time'] == 0.033333
    assert frame['positions'][2][0] == pytest.approx(0.123457, abs=1e-7)
    assert len(frame['colors']) == 3 and len(frame['colors'][0]) == 4
    assert frame['densities'] == [12.5, 9.25, 3.0]


def testRecordStateHistory():
    exporter = FrameExporter()
    exporter.recordState(makeState(1, 0.008))
    exporter.recordState(makeState(2, 0.016), {'iterations': 7, 'residual': 3.2e-5})

    history = exporter.history
    assert history['frames'] == [1, 2]
    assert history['maxVelocity'] == [0.012346, 0.012346]
    assert history['centroidDistance'] == [0.05, 0.05]
    assert history['cgIterations'] == [0, 7]
    assert history['cgResidual'] == [0.0, 3.2e-5]


def testExportWritesJson(tmp_path):
    exporter = FrameExporter()
    for step in range(3):
        state = makeState(step, step * 0.008)
        exporter.recordState(state)
        exporter.addFrame(state, makeBuffers())

    config = OilSimConfig(seed=21)
    path = exporter.export(config, outputDir=str(tmp_path / 'out'), scenarioName='unitTest')

    assert os.path.dirname(path) == str(tmp_path / 'out')
    assert os.path.basename(path).startswith('oilSim_unitTest_')
    with open(path, 'r') as f:
        data = json.load(f)

    assert data['meta']['type'] == 'oilSim'
    assert data['meta']['nFrames'] == 3
    assert data['meta']['nParticles'] == 3
    assert data['meta']['implicit'] is False
    assert data['config']['seed'] == 21
    assert data['config']['containerRadius'] == config.containerRadius
    assert len(data['frames']) == 3
    assert data['history']['frames'] == [0, 1, 2]


def testExportWithoutFrames(tmp_path):
    path = FrameExporter().export(OilSimConfig(), outputDir=str(tmp_path))

    with open(path, 'r') as f:
        data = json.load(f)
    assert data['meta']['nFrames'] == 0
    assert data['meta']['nParticles'] == 0
    assert data['frames'] == []
