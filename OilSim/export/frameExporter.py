# -- Simulation Frame Exporter -- #

'''
Exports oil simulation frames as JSON for visualization.

Collects render handoff snapshots (positions, premultiplied colors,
densities) during a run and writes them, together with per-step
diagnostics, to a JSON file that an external point-sprite viewer
can replay.

Sean Bowman [10/19/2026]
'''

from __future__ import annotations

import json
import os
from datetime import datetime

import numpy as np

from OilSim.sph.protocols import OilSimConfig, SimulationState, RenderBuffers


class FrameExporter:
    '''
    Collects and exports simulation frame data as JSON.

    Usage:
        exporter = FrameExporter()
        # During simulation loop:
        exporter.recordState(state, implicitStats)   # every step
        exporter.addFrame(state, system.renderBuffers())
        # After simulation:
        exporter.export(config, outputDir='output')

    Output JSON format:
    {
        "meta": { "type": "oilSim", "nFrames": 30, "created": "...", ... },
        "config": { "containerRadius": 0.48, ... },
        "frames": [
            {
                "frame": 0,
                "time": 0.0,
                "positions": [[x0, y0], ...],
                "colors": [[r0, g0, b0, a0], ...],
                "densities": [rho0, ...]
            },
            ...
        ],
        "history": {
            "frames": [...],
            "times": [...],
            "kineticEnergy": [...],
            "maxVelocity": [...],
            "centroidDistance": [...],
            "cgIterations": [...],
            "cgResidual": [...]
        }
    }
    '''

    def __init__(self) -> None:
        self._frames: list[dict] = []
        self._history: dict[str, list] = {
            'frames': [],
            'times': [],
            'kineticEnergy': [],
            'maxVelocity': [],
            'centroidDistance': [],
            'cgIterations': [],
            'cgResidual': [],
        }

    @property
    def nFrames(self) -> int:
        '''Number of collected frames.'''
        return len(self._frames)

    @property
    def history(self) -> dict[str, list]:
        '''Per-step diagnostics recorded so far.'''
        return self._history

    def addFrame(self, state: SimulationState, buffers: RenderBuffers) -> None:
        '''
        Record a render snapshot.

        Parameters:
        -----------
        state : SimulationState
            Simulation state at the snapshot
        buffers : RenderBuffers
            Render handoff data of the snapshot
        '''
        frame = {
            'frame': state.frame,
            'time': round(state.time, 6),
            'positions': np.round(buffers.positions, 6).tolist(),
            'colors': np.round(buffers.colors, 4).tolist(),
            'densities': np.round(buffers.densities, 3).tolist(),
        }
        self._frames.append(frame)

    def recordState(self, state: SimulationState, implicitStats: dict | None = None) -> None:
        '''
        Append one step of scalar diagnostics.

        Parameters:
        -----------
        state : SimulationState
            State after the step
        implicitStats : dict | None
            ImplicitSolver.getStats() of the step, if the implicit
            path ran (CG columns are 0 otherwise)
        '''
        self._history['frames'].append(state.frame)
        self._history['times'].append(round(state.time, 6))
        self._history['kineticEnergy'].append(round(state.kineticEnergy, 9))
        self._history['maxVelocity'].append(round(state.maxVelocity, 6))
        self._history['centroidDistance'].append(round(state.centroidDistance, 6))
        self._history['cgIterations'].append(int(implicitStats['iterations']) if implicitStats else 0)
        self._history['cgResidual'].append(float(implicitStats['residual']) if implicitStats else 0.0)

    def export(
        self,
        config: OilSimConfig,
        outputDir: str = 'OilSim/output',
        scenarioName: str = 'blobDrop',
    ) -> str:
        '''
        Write all collected frames to a JSON file.

        Parameters:
        -----------
        config : OilSimConfig
            Simulation configuration for metadata
        outputDir : str
            Output directory path
        scenarioName : str
            Scenario name for the filename

        Returns:
        --------
        str : Path to the exported JSON file
        '''
        os.makedirs(outputDir, exist_ok=True)

        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        filename = f'oilSim_{scenarioName}_{timestamp}.json'
        filepath = os.path.join(outputDir, filename)

        output = {
            'meta': {
                'type': 'oilSim',
                'scenario': scenarioName,
                'nFrames': len(self._frames),
                'nParticles': len(self._frames[-1]['positions']) if self._frames else 0,
                'implicit': config.useImplicitIntegration,
                'created': datetime.now().isoformat(),
            },
            'config': {
                'containerRadius': config.containerRadius,
                'smoothingRadius': config.smoothingRadius,
                'restDensity': config.restDensity,
                'particleMass': config.particleMass,
                'maxTimeStep': config.maxTimeStep,
                'seed': config.seed,
            },
            'frames': self._frames,
            'history': self._history,
        }

        with open(filepath, 'w') as f:
            json.dump(output, f, indent=None, separators=(',', ':'))

        return filepath
