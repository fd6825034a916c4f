# -- SPH Oil Simulation Protocols -- #

'''
Configuration, state snapshots, and solver protocols for the
SPH oil-blob simulation.

OilSimConfig gathers every tunable of the particle system and the
implicit solver in one place. SimulationState and RenderBuffers are
the read-only outputs handed to diagnostics and to the external
point-sprite renderer.

Sean Bowman [10/19/2026]
'''

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Protocol

import numpy as np

from OilSim import constants as const


######################################################################
# -- Simulation Configuration -- #
######################################################################

@dataclass
class OilSimConfig:
    '''
    Configuration for the SPH oil system and its implicit solver.

    All lengths are in world units of the circular container,
    which is centered on the origin.

    Parameters:
    -----------
    containerRadius : float
        Radius of the circular container
    maxParticles : int
        Capacity of the particle arrays
    particleCeiling : int
        Hard spawn limit (must not exceed maxParticles)
    smoothingRadius : float
        SPH smoothing radius h
    restDensity : float
        Rest density rho_0
    particleMass : float
        Mass of every particle
    viscosity : float
        Viscosity coefficient mu
    eosStiffness : float
        Tait equation of state constant B
    gamma : float
        Tait exponent
    shortCohesion, shortRadiusScale : float
        Short-range cohesion strength and radius (radius in units of h)
    minDistScale : float
        Minimum cohesion distance in units of h
    longCohesion, longCohesionRadius : float
        Long-range cohesion strength and absolute support radius
    radialGravity : float
        Pull toward the container center (acceleration)
    rotationForceScale : float
        Scale of the tangential spin force
    maxTimeStep : float
        Largest dt accepted by a single update
    useImplicitIntegration : bool
        Route velocity updates through the implicit solver
    seed : int | None
        Seed for the spawn jitter generator
    '''

    containerRadius: float = const.containerRadius
    maxParticles: int = const.maxParticles
    particleCeiling: int = const.particleCeiling

    # SPH
    smoothingRadius: float = const.smoothingRadius
    restDensity: float = const.restDensity
    particleMass: float = const.particleMass
    viscosity: float = const.viscosity
    eosStiffness: float = const.eosStiffness
    gamma: float = const.gamma
    densityFloorRatio: float = const.densityFloorRatio

    # Cohesion
    shortCohesion: float = const.shortCohesion
    shortRadiusScale: float = const.shortRadiusScale
    minDistScale: float = const.minDistScale
    longCohesion: float = const.longCohesion
    longCohesionRadius: float = const.longCohesionRadius
    longRangeInterval: int = const.longRangeInterval
    splitDistance: float = const.splitDistance
    enableThinning: bool = True
    thinningThreshold: float = const.thinningThreshold
    minNeighborsForThick: int = const.minNeighborsForThick
    cohesionReductionInThin: float = const.cohesionReductionInThin

    # External forces
    radialGravity: float = const.radialGravity
    rotationForceScale: float = const.rotationForceScale
    gridDragCoeff: float = const.gridDragCoeff
    enableNeighborScaledDrag: bool = True
    neighborDragNMin: int = const.neighborDragNMin
    neighborDragNMax: int = const.neighborDragNMax
    forceClampMax: float = const.forceClampMax

    # Integration
    maxTimeStep: float = const.maxTimeStep
    dampingFactor: float = const.dampingFactor
    quadraticDampingK: float = const.quadraticDampingK
    maxSpeed: float = const.maxSpeed
    restitution: float = const.restitution

    # Positional cohesion
    enablePositionalCohesion: bool = True
    posCohesionCoeff: float = const.posCohesionCoeff
    maxPosNudge: float = const.maxPosNudge
    posCohesionRadiusScale: float = const.posCohesionRadiusScale
    posCohesionBoostFrames: int = const.posCohesionBoostFrames
    posCohesionBoostCoeff: float = const.posCohesionBoostCoeff
    posCohesionBoostIters: int = const.posCohesionBoostIters

    # Thermal
    roomTemperature: float = const.roomTemperature
    spawnTemperature: float = const.spawnTemperature
    thermalConductivity: float = const.thermalConductivity
    coolingRate: float = const.coolingRate
    marangoniStrength: float = const.marangoniStrength

    # Blob detection
    enableSplitting: bool = True
    splitCheckInterval: int = const.splitCheckInterval
    minClusterSize: int = const.minClusterSize

    # Implicit solver
    useImplicitIntegration: bool = False
    implicitPressure: bool = True
    implicitViscosity: bool = True
    implicitCohesion: bool = True
    implicitCohesionStiffness: float = const.implicitCohesionStiffness
    cgMaxIterations: int = const.cgMaxIterations
    cgTolerance: float = const.cgTolerance
    mergeDuplicateEntries: bool = False

    # Spawning
    spawnRadius: float = 0.02 * const.containerRadius
    particleAlpha: float = 1.0
    seed: int | None = None

    def __post_init__(self) -> None:
        if self.smoothingRadius <= 0.0:
            raise ValueError(f'smoothingRadius must be positive, got {self.smoothingRadius}')
        if self.containerRadius <= 0.0:
            raise ValueError(f'containerRadius must be positive, got {self.containerRadius}')
        if self.particleMass <= 0.0:
            raise ValueError(f'particleMass must be positive, got {self.particleMass}')
        if self.particleCeiling > self.maxParticles:
            raise ValueError(
                f'particleCeiling ({self.particleCeiling}) exceeds maxParticles ({self.maxParticles})'
            )

    @property
    def supportRadius(self) -> float:
        '''Cubic spline support radius 2h.'''
        return 2.0 * self.smoothingRadius

    @property
    def cellSize(self) -> float:
        '''Spatial hash cell size (2h).'''
        return 2.0 * self.smoothingRadius

    @property
    def densityFloor(self) -> float:
        '''Smallest density a particle may carry.'''
        return self.densityFloorRatio * self.restDensity

    @property
    def shortCohesionRadius(self) -> float:
        '''Support of the short-range cohesion pass.'''
        return self.smoothingRadius * self.shortRadiusScale

    @property
    def minCohesionDistance(self) -> float:
        '''Separation below which cohesion is not applied.'''
        return self.smoothingRadius * self.minDistScale

    @classmethod
    def fromJson(cls, configPath: str) -> OilSimConfig:
        '''
        Load configuration from a JSON file.

        Each top-level section ('container', 'sph', 'cohesion',
        'integration', 'thermal', 'implicit', 'spawn') is a flat
        mapping of field names to values. Unknown keys are rejected.

        Parameters:
        -----------
        configPath : str
            Path to the JSON configuration file

        Returns:
        --------
        OilSimConfig : Loaded configuration
        '''
        with open(configPath, 'r') as f:
            data = json.load(f)

        return cls.fromDict(data)

    @classmethod
    def fromDict(cls, data: dict) -> OilSimConfig:
        '''Build a configuration from parsed JSON sections.'''
        sections = ('container', 'sph', 'cohesion', 'integration', 'thermal', 'implicit', 'spawn')
        known = set(cls.__dataclass_fields__)

        values: dict = {}
        for section in sections:
            for key, value in data.get(section, {}).items():
                if key not in known:
                    raise ValueError(f'Unknown configuration key "{section}.{key}"')
                values[key] = value

        return cls(**values)


######################################################################
# -- Simulation State -- #
######################################################################

@dataclass
class SimulationState:
    '''
    Scalar diagnostics of the particle system after a step.

    Parameters:
    -----------
    frame : int
        Number of completed updates
    time : float
        Accumulated simulated time
    dt : float
        Timestep used by the last update (after clamping)
    particleCount : int
        Active particles
    kineticEnergy : float
        Total kinetic energy
    maxVelocity : float
        Largest particle speed
    centroid : np.ndarray
        Mean particle position, shape (2,)
    maxRadius : float
        Largest distance of a particle from the container center
    repairs : int
        Total non-finite values repaired since the system was created
    '''

    frame: int
    time: float
    dt: float
    particleCount: int
    kineticEnergy: float
    maxVelocity: float
    centroid: np.ndarray
    maxRadius: float
    repairs: int

    @property
    def centroidDistance(self) -> float:
        '''Distance of the centroid from the container center.'''
        return float(np.linalg.norm(self.centroid))


######################################################################
# -- Render Handoff -- #
######################################################################

@dataclass
class RenderBuffers:
    '''
    Per-particle values consumed by an external point-sprite renderer.

    Parameters:
    -----------
    positions : np.ndarray
        World-space positions, shape (N, 2), float32
    colors : np.ndarray
        Premultiplied RGBA colors, shape (N, 4), float32
    densities : np.ndarray
        Particle densities, shape (N,), float32
    '''

    positions: np.ndarray
    colors: np.ndarray
    densities: np.ndarray

    @property
    def count(self) -> int:
        '''Number of particles in the buffers.'''
        return self.positions.shape[0]


######################################################################
# -- Velocity Solver Protocol -- #
######################################################################

class VelocitySolver(Protocol):
    '''Protocol for solvers that replace particle velocities in place.'''

    def solve(self, dt: float, dragVelocities: np.ndarray | None = None) -> bool:
        '''Solve for new velocities; returns True when converged.'''
        ...

    def getStats(self) -> dict:
        '''Timing and convergence diagnostics of the last solve.'''
        ...
