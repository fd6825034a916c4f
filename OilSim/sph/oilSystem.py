# -- SPH Oil System -- #

'''
Explicit SPH force pipeline and step orchestration for oil blobs.

The system owns every particle array (an OilParticleStore) together
with the neighbor grid, integrator, container, and blob detector.
No simulation state lives at module level.

Algorithm per update:
    1. Clamp dt to maxTimeStep
    2. Rebuild the spatial hash and the neighbor pair cache
    3. Density by SPH summation (cubic spline, support 2h)
    4. Pressure from the tension-free Tait equation of state
    5. Temperature diffusion and cooling
    6. Forces: pressure + viscosity, thinning-aware two-scale
       cohesion, Marangoni, radial gravity, rotation
    7. Either grid drag + explicit integration, or the implicit
       velocity solve followed by a force-free integration
    8. Positional (PBD-style) cohesion, boosted after a spawn
    9. Circular container boundary
   10. (Periodically) blob cluster detection

Every pair computation is vectorized over directed neighbor pairs
(i, j): a pair contributes only to particle i, and its mirror (j, i)
carries the contribution to j. Accumulation is done in float64 and
stored back into the float32 particle arrays.

Non-finite values are repaired at the stage that produced them and
counted in repairCounts; the step never raises on numeric corruption.

References:
-----------
Muller et al. (2003) -- Particle-Based Fluid Simulation for
    Interactive Applications
Monaghan (1994) -- Simulating free surface flows with SPH
Becker & Teschner (2007) -- Weakly compressible SPH for free
    surface flows

Sean Bowman [10/19/2026]
'''

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

import numpy as np

from OilSim import constants as const
from OilSim.sph.protocols import OilSimConfig, SimulationState, RenderBuffers
from OilSim.sph.kernels import CubicSplineKernel, SpikyKernel, ViscosityKernel, ZERO_DISTANCE
from OilSim.sph.neighborSearch import SpatialHashGrid
from OilSim.sph.particles import OilParticleStore
from OilSim.sph.timeIntegration import DampedSymplecticEuler
from OilSim.sph.boundaryHandling import CircularContainer
from OilSim.sph.blobDetection import BlobCluster, BlobClusterDetector
from OilSim.sph.sanitize import clampMagnitudes, sanitizeScalars
from OilSim.implicit.implicitSolver import ImplicitSolver

logger = logging.getLogger(__name__)

# Default oil color (amber)
DEFAULT_OIL_COLOR: tuple[float, float, float] = (0.85, 0.55, 0.15)

# Repair counter keys, one per pipeline stage
REPAIR_STAGES: tuple[str, ...] = ('density', 'pressure', 'temperature', 'force', 'velocity', 'position')


######################################################################
# -- Neighbor Pair Cache -- #
######################################################################

@dataclass
class NeighborPairs:
    '''
    Directed neighbor pairs with their geometry.

    Parameters:
    -----------
    iIdx, jIdx : np.ndarray
        Pair endpoints; each unordered pair appears in both directions
    dr : np.ndarray
        x_i - x_j, shape (M, 2), float64
    dist : np.ndarray
        |x_i - x_j|, shape (M,), float64
    '''
    iIdx: np.ndarray
    jIdx: np.ndarray
    dr: np.ndarray
    dist: np.ndarray

    @classmethod
    def fromIndices(cls, positions: np.ndarray, iIdx: np.ndarray, jIdx: np.ndarray) -> NeighborPairs:
        '''Compute pair geometry from positions.'''
        dr = positions[iIdx].astype(np.float64) - positions[jIdx].astype(np.float64)
        dist = np.sqrt(np.sum(dr * dr, axis=1))
        return cls(iIdx=iIdx, jIdx=jIdx, dr=dr, dist=dist)

    def subset(self, mask: np.ndarray) -> NeighborPairs:
        '''Pairs selected by a boolean mask.'''
        return NeighborPairs(
            iIdx=self.iIdx[mask], jIdx=self.jIdx[mask], dr=self.dr[mask], dist=self.dist[mask]
        )

    def countPerParticle(self, n: int) -> np.ndarray:
        '''Number of pairs starting at each particle.'''
        return np.bincount(self.iIdx, minlength=n)

    def __len__(self) -> int:
        return len(self.iIdx)


######################################################################
# -- SPH Oil System -- #
######################################################################

class SphOilSystem:
    '''
    Cohesive oil-blob SPH simulation in a circular container.

    Parameters:
    -----------
    config : OilSimConfig | None
        Simulation configuration (defaults to OilSimConfig())
    '''

    def __init__(self, config: OilSimConfig | None = None) -> None:
        self._config = config or OilSimConfig()
        cfg = self._config

        self._particles = OilParticleStore(
            capacity=cfg.maxParticles,
            ceiling=cfg.particleCeiling,
            mass=cfg.particleMass,
            restDensity=cfg.restDensity,
            alpha=cfg.particleAlpha,
            rng=np.random.default_rng(cfg.seed),
        )

        self._densityKernel = CubicSplineKernel()
        self._pressureKernel = SpikyKernel()
        self._viscosityKernel = ViscosityKernel()

        self._grid = SpatialHashGrid(
            cellSize=cfg.cellSize,
            containerRadius=cfg.containerRadius,
            capacity=cfg.particleCeiling,
        )
        self._integrator = DampedSymplecticEuler(
            dampingFactor=cfg.dampingFactor,
            quadraticDampingK=cfg.quadraticDampingK,
            maxSpeed=cfg.maxSpeed,
        )
        self._container = CircularContainer(cfg.containerRadius, cfg.restitution)
        self._blobDetector = BlobClusterDetector(
            connectionDistance=cfg.splitDistance * cfg.smoothingRadius,
            minClusterSize=cfg.minClusterSize,
        )
        self._implicitSolver: ImplicitSolver | None = None

        self._pairs: NeighborPairs | None = None
        self._markMoved()

        self._frame = 0
        self._time = 0.0
        self._dt = 0.0
        self._rotation = 0.0
        self._boostFrames = 0

        self.repairCounts: dict[str, int] = {stage: 0 for stage in REPAIR_STAGES}
        self._timings: dict[str, float] = {
            'updateTime': 0.0,
            'neighborTime': 0.0,
            'forceTime': 0.0,
            'solveTime': 0.0,
            'integrateTime': 0.0,
        }

    ######################################################################
    # -- Properties -- #
    ######################################################################

    @property
    def config(self) -> OilSimConfig:
        return self._config

    @property
    def particles(self) -> OilParticleStore:
        '''Particle arrays owned by this system.'''
        return self._particles

    @property
    def particleCount(self) -> int:
        return self._particles.count

    @property
    def grid(self) -> SpatialHashGrid:
        return self._grid

    @property
    def frame(self) -> int:
        '''Number of completed updates.'''
        return self._frame

    @property
    def time(self) -> float:
        return self._time

    @property
    def rotationRate(self) -> float:
        '''Spin rate used by the last update.'''
        return self._rotation

    @property
    def boostFramesRemaining(self) -> int:
        '''Frames left in the post-spawn positional cohesion boost.'''
        return self._boostFrames

    @property
    def blobClusters(self) -> list[BlobCluster]:
        '''Blobs found by the most recent cluster check.'''
        return self._blobDetector.lastClusters

    @property
    def implicitSolver(self) -> ImplicitSolver:
        '''Implicit velocity solver, created on first access.'''
        if self._implicitSolver is None:
            self._implicitSolver = ImplicitSolver(self)
            logger.debug('Implicit solver initialized')
        return self._implicitSolver

    ######################################################################
    # -- Spawning -- #
    ######################################################################

    def spawnParticles(
        self,
        centerX: float,
        centerY: float,
        count: int,
        color: tuple[float, float, float] = DEFAULT_OIL_COLOR,
        temperature: float | None = None,
        spawnRadius: float | None = None,
    ) -> int:
        '''
        Spawn particles in a small disk and start the cohesion boost.

        Parameters:
        -----------
        centerX, centerY : float
            Disk center in world space
        count : int
            Requested number of particles (clamped to the ceiling)
        color : tuple[float, float, float]
            RGB color in [0, 1]
        temperature : float | None
            Initial temperature (defaults to config.spawnTemperature)
        spawnRadius : float | None
            Disk radius (defaults to config.spawnRadius)

        Returns:
        --------
        int : Number of particles actually created
        '''
        cfg = self._config
        created = self._particles.spawnParticles(
            centerX, centerY, count, color,
            temperature=cfg.spawnTemperature if temperature is None else temperature,
            spawnRadius=cfg.spawnRadius if spawnRadius is None else spawnRadius,
        )

        if created > 0:
            self._boostFrames = cfg.posCohesionBoostFrames
            self._markMoved()
            logger.debug('Spawned %d particles at (%.3f, %.3f)', created, centerX, centerY)

        return created

    ######################################################################
    # -- Main Update -- #
    ######################################################################

    def update(
        self,
        dt: float,
        rotationRate: float = 0.0,
        gridVelocities: np.ndarray | None = None,
    ) -> SimulationState:
        '''
        Advance the simulation by one step.

        Parameters:
        -----------
        dt : float
            Requested timestep (clamped to config.maxTimeStep)
        rotationRate : float
            Operator-controlled global spin rate
        gridVelocities : np.ndarray | None
            Per-particle drag target velocities, shape (N, 2)

        Returns:
        --------
        SimulationState : State after the step
        '''
        if dt < 0.0:
            raise ValueError(f'dt must be non-negative, got {dt}')
        if self._particles.count == 0:
            return self.currentState

        startTime = time.perf_counter()
        cfg = self._config

        dt = min(dt, cfg.maxTimeStep)
        self._dt = dt
        self._rotation = rotationRate
        self._frame += 1

        # 1. Neighbors
        t0 = time.perf_counter()
        self.updateSpatialHash()
        self._timings['neighborTime'] = (time.perf_counter() - t0) * 1000.0

        # 2-4. Density, pressure, temperature, forces
        t0 = time.perf_counter()
        self.computeDensities()
        self.computePressures()
        self.computeTemperature(dt)
        self.computeForces()
        self._timings['forceTime'] = (time.perf_counter() - t0) * 1000.0

        # 5. Velocity update
        t0 = time.perf_counter()
        if cfg.useImplicitIntegration:
            converged = self.implicitSolver.solve(dt, dragVelocities=gridVelocities)
            if not converged:
                logger.debug('Implicit solve did not converge at frame %d', self._frame)
            self._timings['solveTime'] = (time.perf_counter() - t0) * 1000.0
            t0 = time.perf_counter()
            self.integrate(dt, applyForces=False)
        else:
            if gridVelocities is not None:
                self.applyGridDragForces(gridVelocities)
            self.integrate(dt)

        # 6. Positional cohesion with post-spawn boost
        if cfg.enablePositionalCohesion:
            self.applyPositionalCohesion(dt)
            if self._boostFrames > 0:
                for _ in range(cfg.posCohesionBoostIters):
                    self.applyPositionalCohesion(dt, cfg.posCohesionBoostCoeff)
                self._boostFrames -= 1
        self._timings['integrateTime'] = (time.perf_counter() - t0) * 1000.0

        # 7. Boundary
        self.enforceBoundaries()

        # 8. Blob clusters (throttled)
        if cfg.enableSplitting and self._frame % cfg.splitCheckInterval == 0:
            self.checkBlobClusters()

        self._time += dt
        self._timings['updateTime'] = (time.perf_counter() - startTime) * 1000.0

        return self.currentState

    ######################################################################
    # -- Neighbor Search -- #
    ######################################################################

    def updateSpatialHash(self) -> None:
        '''Rebuild the grid and cache all pairs within the 2h density support.'''
        positions = self._particles.positions
        self._grid.build(positions)
        self._gridStale = False
        self._pairsStale = False

        iIdx, jIdx = self._grid.queryPairs(self._config.supportRadius)
        self._pairs = NeighborPairs.fromIndices(positions, iIdx, jIdx)

    def pairsWithin(self, radius: float) -> NeighborPairs:
        '''
        Directed pairs closer than `radius` at the current positions.

        Parameters:
        -----------
        radius : float
            Exact cutoff distance

        Returns:
        --------
        NeighborPairs : Pairs (self pairs excluded)
        '''
        if not self._pairsStale and self._pairs is not None and radius <= self._config.supportRadius:
            return self._pairs.subset(self._pairs.dist < radius)

        self._ensureGrid()
        iIdx, jIdx = self._grid.queryPairs(radius)
        return NeighborPairs.fromIndices(self._particles.positions, iIdx, jIdx)

    def countParticlesNear(self, x: float, y: float, radius: float) -> int:
        '''
        Number of particles within `radius` of (x, y).

        Parameters:
        -----------
        x, y : float
            Query point in world space
        radius : float
            Search radius

        Returns:
        --------
        int : Particle count (exact distance filter)
        '''
        if self._particles.count == 0:
            return 0
        self._ensureGrid()

        candidates = self._grid.query(x, y, radius)
        if len(candidates) == 0:
            return 0
        offsets = self._particles.positions[candidates].astype(np.float64) - np.array([x, y])
        return int(np.count_nonzero(np.sum(offsets * offsets, axis=1) <= radius * radius))

    ######################################################################
    # -- Density and Pressure -- #
    ######################################################################

    def computeDensities(self) -> None:
        '''
        SPH density summation with floor and non-finite guard.

        rho_i = m * W(0, h) + sum_j m * W(|r_ij|, h)

        Densities are floored at densityFloorRatio * rho_0; a
        non-finite result is replaced by the rest density.
        '''
        p = self._particles
        n = p.count
        if n == 0:
            return

        cfg = self._config
        pairs = self._requirePairs()
        h = cfg.smoothingRadius
        mass = p.mass

        densities = np.full(n, mass * self._densityKernel.evaluate(0.0, h))
        if len(pairs) > 0:
            wij = self._densityKernel.evaluateBatch(pairs.dist, h)
            np.add.at(densities, pairs.iIdx, mass * wij)

        with np.errstate(invalid='ignore'):
            densities = np.maximum(densities, cfg.densityFloor)
        self._recordRepairs('density', sanitizeScalars(densities, cfg.restDensity))

        p.densities[:] = densities

    def computePressures(self) -> None:
        '''
        Tension-free Tait equation of state.

        p = B * ((rho / rho_0)^gamma - 1),  clamped to p >= 0
        '''
        p = self._particles
        if p.count == 0:
            return

        cfg = self._config
        limit = float(np.finfo(np.float32).max)

        with np.errstate(over='ignore', invalid='ignore'):
            ratio = p.densities.astype(np.float64) / cfg.restDensity
            pressures = cfg.eosStiffness * (ratio ** cfg.gamma - 1.0)
            pressures = np.clip(pressures, 0.0, limit)

        self._recordRepairs('pressure', sanitizeScalars(pressures, 0.0))
        p.pressures[:] = pressures

    ######################################################################
    # -- Temperature -- #
    ######################################################################

    def computeTemperature(self, dt: float) -> None:
        '''
        SPH heat diffusion plus slow cooling to room temperature.

        dT_i/dt = sum_j (m / rho_j) * (K / rho_i) * (T_j - T_i) * lap_W(r_ij, h)
                  - coolingRate * (T_i - T_room)

        Non-finite temperatures are reset to room temperature and
        the result is clamped to [minTemperature, maxTemperature].

        Parameters:
        -----------
        dt : float
            Timestep
        '''
        p = self._particles
        n = p.count
        if n == 0:
            return

        cfg = self._config
        h = cfg.smoothingRadius
        allPairs = self._requirePairs()
        pairs = allPairs.subset(allPairs.dist < h)

        temps = p.temperatures.astype(np.float64)
        densities = p.densities.astype(np.float64)
        change = np.zeros(n)

        if len(pairs) > 0:
            i, j = pairs.iIdx, pairs.jIdx
            lap = self._viscosityKernel.laplacianBatch(pairs.dist, h)
            contrib = (
                (p.mass / densities[j]) * (cfg.thermalConductivity / densities[i])
                * (temps[j] - temps[i]) * lap
            )
            np.add.at(change, i, contrib)

        with np.errstate(invalid='ignore', over='ignore'):
            newTemps = temps + change * dt - (temps - cfg.roomTemperature) * cfg.coolingRate * dt

        self._recordRepairs('temperature', sanitizeScalars(newTemps, cfg.roomTemperature))
        p.temperatures = np.clip(newTemps, const.minTemperature, const.maxTemperature)

    ######################################################################
    # -- Forces -- #
    ######################################################################

    def computeForces(self) -> None:
        '''
        Accumulate all explicit forces into the force buffer.

        Passes:
            1. Symmetric pressure (spiky gradient) and viscosity
               (Laplacian) over pairs within h
            2. Short-range cohesion every frame, long-range cohesion
               every longRangeInterval frames, both scaled by the
               thinning factor of the weaker particle of each pair
            3. Marangoni force on low-density surface particles
            4. Radial gravity toward the container center
            5. Tangential rotation force
        '''
        p = self._particles
        n = p.count
        if n == 0:
            return

        cfg = self._config
        forces = np.zeros((n, 2))
        allPairs = self._requirePairs()
        hPairs = allPairs.subset(allPairs.dist < cfg.smoothingRadius)

        self._addPressureViscosityForces(forces, hPairs)

        thinning = self.thinningFactors(allPairs)
        self._addShortCohesion(forces, allPairs, thinning)
        if cfg.longCohesion > 0.0 and self._frame % cfg.longRangeInterval == 0:
            self._addLongCohesion(forces, thinning)

        if cfg.marangoniStrength > 0.0:
            self._addMarangoniForces(forces, hPairs)

        self._addRadialGravity(forces)
        if abs(self._rotation) > 1e-6:
            self._addRotationForces(forces, self._rotation)

        p.forces[:] = forces

    def _addPressureViscosityForces(self, forces: np.ndarray, pairs: NeighborPairs) -> None:
        '''
        Pressure and viscosity in one pass over pairs within h.

        F_i += -m^2 (p_i/rho_i^2 + p_j/rho_j^2) grad_W(r_ij)
             + mu m^2 / rho_j * lap_W(r_ij) * (v_j - v_i)
        '''
        if len(pairs) == 0:
            return

        p = self._particles
        cfg = self._config
        h = cfg.smoothingRadius
        m2 = p.mass * p.mass
        i, j = pairs.iIdx, pairs.jIdx

        densities = p.densities.astype(np.float64)
        pressures = p.pressures.astype(np.float64)
        velocities = p.velocities.astype(np.float64)

        pressureTerm = pressures[i] / densities[i] ** 2 + pressures[j] / densities[j] ** 2
        grad = self._pressureKernel.gradientBatch(pairs.dr, pairs.dist, h)
        pressureForce = -(m2 * pressureTerm)[:, np.newaxis] * grad

        lap = self._viscosityKernel.laplacianBatch(pairs.dist, h)
        viscFactor = cfg.viscosity * m2 / densities[j] * lap
        viscForce = viscFactor[:, np.newaxis] * (velocities[j] - velocities[i])

        np.add.at(forces, i, pressureForce + viscForce)

    def thinningFactors(self, pairs: NeighborPairs | None = None) -> np.ndarray:
        '''
        Per-particle cohesion scale for stretched (thin) regions.

        A particle with at least one neighbor inside the short
        cohesion radius is thin when its density ratio is below
        thinningThreshold or it has fewer than minNeighborsForThick
        neighbors. Thin particles get cohesionReductionInThin,
        everything else 1.

        Returns:
        --------
        np.ndarray : Factors, shape (N,)
        '''
        n = self._particles.count
        cfg = self._config
        if not cfg.enableThinning:
            return np.ones(n)

        pairs = pairs if pairs is not None else self._requirePairs()
        shortPairs = pairs.subset(pairs.dist < cfg.shortCohesionRadius)
        neighborCounts = shortPairs.countPerParticle(n)
        densityRatio = self._particles.densities.astype(np.float64) / cfg.restDensity

        isThin = (neighborCounts > 0) & (
            (densityRatio < cfg.thinningThreshold) | (neighborCounts < cfg.minNeighborsForThick)
        )
        return np.where(isThin, cfg.cohesionReductionInThin, 1.0)

    def _addShortCohesion(self, forces: np.ndarray, pairs: NeighborPairs, thinning: np.ndarray) -> None:
        '''
        Strong attraction with Gaussian falloff inside 1.5h.

        strength = shortCohesion * exp(-4 q^2) * min(thin_i, thin_j),
        q = dist / shortRadius, applied along (x_j - x_i) / dist.
        '''
        cfg = self._config
        shortRadius = cfg.shortCohesionRadius
        maxDist = cfg.splitDistance * cfg.smoothingRadius

        dist = pairs.dist
        active = (
            (dist < shortRadius)
            & (dist >= cfg.minCohesionDistance)
            & (dist > ZERO_DISTANCE)
            & (dist <= maxDist)
        )
        if not np.any(active):
            return

        pairs = pairs.subset(active)
        q = pairs.dist / shortRadius
        strength = cfg.shortCohesion * np.exp(-4.0 * q * q) * np.minimum(
            thinning[pairs.iIdx], thinning[pairs.jIdx]
        )
        direction = -pairs.dr / pairs.dist[:, np.newaxis]
        np.add.at(forces, pairs.iIdx, direction * (strength * self._particles.mass)[:, np.newaxis])

    def _addLongCohesion(self, forces: np.ndarray, thinning: np.ndarray) -> None:
        '''
        Weak attraction between shortRadius and longCohesionRadius.

        strength = longCohesion * exp(-2 q) * min(thin_i, thin_j),
        q = (dist - shortRadius) / (longRadius - shortRadius).
        '''
        cfg = self._config
        shortRadius = cfg.shortCohesionRadius
        longRadius = cfg.longCohesionRadius
        if longRadius <= shortRadius:
            return

        pairs = self.pairsWithin(longRadius)
        innerLimit = max(cfg.minCohesionDistance, shortRadius)
        active = (pairs.dist >= innerLimit) & (pairs.dist > ZERO_DISTANCE)
        if not np.any(active):
            return

        pairs = pairs.subset(active)
        q = (pairs.dist - shortRadius) / (longRadius - shortRadius)
        strength = cfg.longCohesion * np.exp(-2.0 * q) * np.minimum(
            thinning[pairs.iIdx], thinning[pairs.jIdx]
        )
        direction = -pairs.dr / pairs.dist[:, np.newaxis]
        np.add.at(forces, pairs.iIdx, direction * (strength * self._particles.mass)[:, np.newaxis])

    def _addMarangoniForces(self, forces: np.ndarray, pairs: NeighborPairs) -> None:
        '''
        Surface-tension gradient force on surface particles.

        Surface particles (rho < 0.9 rho_0) are pushed against the
        SPH temperature gradient, from hot toward cold:
            gradT_i = sum_j (m / rho_j) * clamp(T_j - T_i, +-50) * grad_W(r_ij)
            F_i -= marangoniStrength * gradT_i
        '''
        p = self._particles
        cfg = self._config
        densities = p.densities.astype(np.float64)
        surface = densities < 0.9 * cfg.restDensity

        active = surface[pairs.iIdx] & (pairs.dist > ZERO_DISTANCE)
        if not np.any(active):
            return

        pairs = pairs.subset(active)
        temps = p.temperatures.astype(np.float64)
        tempDiff = np.clip(temps[pairs.jIdx] - temps[pairs.iIdx], -50.0, 50.0)
        grad = self._pressureKernel.gradientBatch(pairs.dr, pairs.dist, cfg.smoothingRadius)

        gradT = np.zeros_like(forces)
        np.add.at(gradT, pairs.iIdx, (p.mass / densities[pairs.jIdx] * tempDiff)[:, np.newaxis] * grad)
        forces -= cfg.marangoniStrength * gradT

    def _addRadialGravity(self, forces: np.ndarray) -> None:
        '''Weak pull toward the container center: F = -g * m * x / |x|.'''
        positions = self._particles.positions.astype(np.float64)
        dist = np.linalg.norm(positions, axis=1)
        away = dist > ZERO_DISTANCE
        if not np.any(away):
            return
        direction = -positions[away] / dist[away][:, np.newaxis]
        forces[away] += direction * (self._config.radialGravity * self._particles.mass)

    def _addRotationForces(self, forces: np.ndarray, rotation: float) -> None:
        '''
        Tangential spin force.

        F = rotation * |x| * m * rotationForceScale along (-y, x) / |x|
        '''
        positions = self._particles.positions.astype(np.float64)
        dist = np.linalg.norm(positions, axis=1)
        away = dist > ZERO_DISTANCE
        if not np.any(away):
            return

        tangent = np.stack([-positions[away, 1], positions[away, 0]], axis=1) / dist[away][:, np.newaxis]
        magnitude = rotation * dist[away] * self._particles.mass * self._config.rotationForceScale
        forces[away] += tangent * magnitude[:, np.newaxis]

    ######################################################################
    # -- Grid Drag Coupling -- #
    ######################################################################

    def applyGridDragForces(self, gridVelocities: np.ndarray, dragCoeff: float | None = None) -> None:
        '''
        Drag particles toward externally sampled grid velocities.

        F_i += drag_i * (v_grid_i - v_i), where drag_i is dragCoeff
        scaled by a smoothstep of the neighbor count within h
        (neighborDragNMin..neighborDragNMax) when neighbor scaling
        is enabled. Every particle force is then clamped to
        forceClampMax.

        Parameters:
        -----------
        gridVelocities : np.ndarray
            Target velocities aligned with particle indices, shape (N, 2)
            or flat (2N,)
        dragCoeff : float | None
            Drag coefficient (defaults to config.gridDragCoeff)
        '''
        p = self._particles
        n = p.count
        if n == 0:
            return

        cfg = self._config
        target = np.asarray(gridVelocities, dtype=np.float64)
        if target.ndim == 1:
            target = target.reshape(-1, 2)
        if target.shape != (n, 2):
            raise ValueError(f'gridVelocities must have shape ({n}, 2), got {target.shape}')

        drag = np.full(n, cfg.gridDragCoeff if dragCoeff is None else dragCoeff)
        if cfg.enableNeighborScaledDrag:
            pairs = self._requirePairs()
            neighborCounts = pairs.subset(pairs.dist < cfg.smoothingRadius).countPerParticle(n)
            nMin = cfg.neighborDragNMin
            nMax = max(cfg.neighborDragNMax, nMin + 1)
            t = np.clip((neighborCounts - nMin) / (nMax - nMin), 0.0, 1.0)
            drag *= t * t * (3.0 - 2.0 * t)

        forces = p.forces.astype(np.float64)
        forces += drag[:, np.newaxis] * (target - p.velocities.astype(np.float64))
        clampMagnitudes(forces, cfg.forceClampMax)
        p.forces[:] = forces

    ######################################################################
    # -- Integration and Boundary -- #
    ######################################################################

    def integrate(self, dt: float, applyForces: bool = True) -> None:
        '''
        Damped symplectic Euler step with per-particle repair.

        Parameters:
        -----------
        dt : float
            Timestep
        applyForces : bool
            Apply the force kick (False after an implicit solve)
        '''
        repairs = self._integrator.integrate(self._particles, dt, applyForces=applyForces)
        for stage, count in repairs.items():
            self._recordRepairs(stage, count)
        self._markMoved()

    def applyPositionalCohesion(self, dt: float, coeff: float | None = None) -> None:
        '''
        Nudge particles toward the centroid of their local neighborhood.

        The centroid includes the particle itself and every neighbor
        within posCohesionRadiusScale * h. The nudge is capped at
        maxPosNudge * containerRadius and the velocity is adjusted
        by nudge / dt to stay consistent with the displacement.

        Parameters:
        -----------
        dt : float
            Timestep used for the velocity adjustment
        coeff : float | None
            Blend toward the centroid (defaults to posCohesionCoeff)
        '''
        p = self._particles
        n = p.count
        cfg = self._config
        coeff = cfg.posCohesionCoeff if coeff is None else coeff
        if n == 0 or coeff <= 0.0:
            return

        pairs = self.pairsWithin(cfg.posCohesionRadiusScale * cfg.smoothingRadius)
        if len(pairs) == 0:
            return

        positions = p.positions.astype(np.float64)
        sums = positions.copy()
        np.add.at(sums, pairs.iIdx, positions[pairs.jIdx])
        counts = pairs.countPerParticle(n) + 1

        hasNeighbors = counts > 1
        centroids = sums / counts[:, np.newaxis]
        nudge = (centroids - positions) * coeff
        nudge[~hasNeighbors] = 0.0
        clampMagnitudes(nudge, cfg.maxPosNudge * cfg.containerRadius)

        p.positions[:] = positions + nudge
        if dt > 0.0:
            p.velocities[:] = p.velocities.astype(np.float64) + nudge / dt
        self._markMoved()

    def enforceBoundaries(self) -> int:
        '''
        Keep every particle inside the circular container.

        Returns:
        --------
        int : Number of particles reflected off the wall
        '''
        hits = self._container.enforceBoundary(self._particles)
        if hits > 0:
            self._markMoved()
        return hits

    ######################################################################
    # -- Blob Clusters -- #
    ######################################################################

    def checkBlobClusters(self) -> list[BlobCluster]:
        '''
        Label connected blobs at the current positions.

        Returns:
        --------
        list[BlobCluster] : Blobs of at least minClusterSize particles
        '''
        cfg = self._config
        if self._particles.count < cfg.minClusterSize * 2:
            return self._blobDetector.lastClusters

        self._ensureGrid()
        return self._blobDetector.detect(self._particles.positions, self._grid)

    ######################################################################
    # -- Outputs -- #
    ######################################################################

    def renderBuffers(self) -> RenderBuffers:
        '''Positions, premultiplied colors, and densities for rendering.'''
        return self._particles.renderBuffers()

    @property
    def currentState(self) -> SimulationState:
        '''Snapshot of scalar diagnostics.'''
        p = self._particles
        return SimulationState(
            frame=self._frame,
            time=self._time,
            dt=self._dt,
            particleCount=p.count,
            kineticEnergy=p.kineticEnergy(),
            maxVelocity=p.maxSpeed(),
            centroid=p.centroid(),
            maxRadius=p.maxRadius(),
            repairs=sum(self.repairCounts.values()),
        )

    def getStats(self) -> dict:
        '''
        Informational diagnostics; never read by the physics.

        Returns:
        --------
        dict : Particle counts, stage timings (ms), repair counters,
            blob count, spatial hash stats, and implicit solver stats
        '''
        stats = {
            'particleCount': self._particles.count,
            'maxParticles': self._particles.capacity,
            'particleCeiling': self._particles.ceiling,
            'frame': self._frame,
            'repairs': dict(self.repairCounts),
            'blobCount': len(self._blobDetector.lastClusters),
            'spatialHash': self._grid.getStats(),
        }
        stats.update(self._timings)
        if self._implicitSolver is not None:
            stats['implicit'] = self._implicitSolver.getStats()
        return stats

    ######################################################################
    # -- Internals -- #
    ######################################################################

    def _markMoved(self) -> None:
        '''Invalidate the grid and the pair cache after particles moved.'''
        self._gridStale = True
        self._pairsStale = True

    def _ensureGrid(self) -> None:
        '''Rebuild the grid if particles moved since the last build.'''
        if self._gridStale:
            self._grid.build(self._particles.positions)
            self._gridStale = False

    def _requirePairs(self) -> NeighborPairs:
        '''Pair cache for the current positions, rebuilt when stale.'''
        if self._pairs is None or self._pairsStale:
            self.updateSpatialHash()
        return self._pairs

    def _recordRepairs(self, stage: str, count: int) -> None:
        '''Count and log repaired non-finite values of one stage.'''
        if count <= 0:
            return
        self.repairCounts[stage] += count
        logger.warning('Repaired %d non-finite %s value(s) at frame %d', count, stage, self._frame)
