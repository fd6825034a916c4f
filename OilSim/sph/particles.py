# -- Oil Particle Store -- #

'''
Structure-of-arrays storage for oil particles.

Every per-particle quantity lives in its own contiguous float32 array
pre-sized to the store capacity. Only the first `count` rows are
active; the public array properties return views of those rows, so
in-place updates through them write straight into the store.

Particles are created only by spawnParticles and are never removed.

Sean Bowman [10/19/2026]
'''

from __future__ import annotations

import logging

import numpy as np

from OilSim.sph.protocols import RenderBuffers

logger = logging.getLogger(__name__)

# Phase tag of oil particles
OIL_PHASE: int = 1


class OilParticleStore:
    '''
    Fixed-capacity particle arrays plus the spawn operation.

    Parameters:
    -----------
    capacity : int
        Storage capacity (maxParticles)
    ceiling : int
        Hard spawn limit, at most capacity
    mass : float
        Mass of every particle
    restDensity : float
        Density assigned to freshly spawned particles
    alpha : float
        Opacity used for premultiplied render colors
    rng : np.random.Generator | None
        Generator for spawn jitter
    '''

    def __init__(
        self,
        capacity: int,
        ceiling: int,
        mass: float,
        restDensity: float,
        alpha: float = 1.0,
        rng: np.random.Generator | None = None,
    ) -> None:
        if ceiling > capacity:
            raise ValueError(f'ceiling ({ceiling}) exceeds capacity ({capacity})')

        self._capacity = int(capacity)
        self._ceiling = int(ceiling)
        self._mass = float(mass)
        self._restDensity = float(restDensity)
        self._alpha = float(alpha)
        self._rng = rng if rng is not None else np.random.default_rng()
        self._count = 0

        self._positions = np.zeros((capacity, 2), dtype=np.float32)
        self._velocities = np.zeros((capacity, 2), dtype=np.float32)
        self._forces = np.zeros((capacity, 2), dtype=np.float32)
        self._densities = np.full(capacity, restDensity, dtype=np.float32)
        self._pressures = np.zeros(capacity, dtype=np.float32)
        self._temperatures = np.zeros(capacity, dtype=np.float32)
        self._phases = np.zeros(capacity, dtype=np.int8)
        self._colors = np.zeros((capacity, 3), dtype=np.float32)

    ######################################################################
    # -- Active Views -- #
    ######################################################################

    @property
    def count(self) -> int:
        '''Number of active particles.'''
        return self._count

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def ceiling(self) -> int:
        return self._ceiling

    @property
    def mass(self) -> float:
        '''Mass shared by all particles.'''
        return self._mass

    @property
    def positions(self) -> np.ndarray:
        '''Positions, shape (count, 2).'''
        return self._positions[:self._count]

    @property
    def velocities(self) -> np.ndarray:
        '''Velocities, shape (count, 2).'''
        return self._velocities[:self._count]

    @property
    def forces(self) -> np.ndarray:
        '''Force accumulator, shape (count, 2).'''
        return self._forces[:self._count]

    @property
    def densities(self) -> np.ndarray:
        return self._densities[:self._count]

    @property
    def pressures(self) -> np.ndarray:
        return self._pressures[:self._count]

    @property
    def temperatures(self) -> np.ndarray:
        return self._temperatures[:self._count]

    @temperatures.setter
    def temperatures(self, values: np.ndarray) -> None:
        self._temperatures[:self._count] = values

    @property
    def phases(self) -> np.ndarray:
        return self._phases[:self._count]

    @property
    def colors(self) -> np.ndarray:
        '''RGB colors in [0, 1], shape (count, 3).'''
        return self._colors[:self._count]

    ######################################################################
    # -- Spawning -- #
    ######################################################################

    def spawnParticles(
        self,
        centerX: float,
        centerY: float,
        count: int,
        color: tuple[float, float, float],
        temperature: float,
        spawnRadius: float,
    ) -> int:
        '''
        Create particles jittered uniformly inside a small disk.

        The request is clamped so the store never exceeds its
        capacity or spawn ceiling; a warning is logged when that
        happens. New particles start at rest with rest density and
        zero pressure.

        Parameters:
        -----------
        centerX, centerY : float
            Disk center in world space
        count : int
            Requested number of particles
        color : tuple[float, float, float]
            RGB color in [0, 1]
        temperature : float
            Initial temperature
        spawnRadius : float
            Disk radius in world units

        Returns:
        --------
        int : Number of particles actually created
        '''
        if count <= 0:
            return 0

        if self._count >= self._ceiling:
            logger.warning(
                'Particle ceiling reached (%d); ignoring spawn of %d particles',
                self._ceiling, count,
            )
            return 0

        requested = count
        count = min(count, self._capacity - self._count, self._ceiling - self._count)
        if count < requested:
            logger.warning(
                'Spawn clamped from %d to %d particles (ceiling %d, active %d)',
                requested, count, self._ceiling, self._count,
            )

        start = self._count
        end = start + count

        # sqrt of the radial sample gives uniform area density
        angles = self._rng.random(count) * 2.0 * np.pi
        radii = np.sqrt(self._rng.random(count)) * spawnRadius
        self._positions[start:end, 0] = centerX + np.cos(angles) * radii
        self._positions[start:end, 1] = centerY + np.sin(angles) * radii

        self._velocities[start:end] = 0.0
        self._forces[start:end] = 0.0
        self._densities[start:end] = self._restDensity
        self._pressures[start:end] = 0.0
        self._temperatures[start:end] = temperature
        self._phases[start:end] = OIL_PHASE
        self._colors[start:end] = color

        self._count = end
        return count

    ######################################################################
    # -- Aggregates -- #
    ######################################################################

    def kineticEnergy(self) -> float:
        '''
        Total kinetic energy.

        KE = (1/2) * m * sum_i |v_i|^2

        Returns:
        --------
        float : Kinetic energy
        '''
        velocities = self.velocities.astype(np.float64)
        return 0.5 * self._mass * float(np.sum(velocities * velocities))

    def maxSpeed(self) -> float:
        '''Largest particle speed (0 with no particles).'''
        if self._count == 0:
            return 0.0
        return float(np.max(np.linalg.norm(self.velocities, axis=1)))

    def centroid(self) -> np.ndarray:
        '''Mean particle position, shape (2,); the origin with no particles.'''
        if self._count == 0:
            return np.zeros(2)
        return self.positions.astype(np.float64).mean(axis=0)

    def maxRadius(self) -> float:
        '''Largest distance of a particle from the container center.'''
        if self._count == 0:
            return 0.0
        return float(np.max(np.linalg.norm(self.positions, axis=1)))

    def renderBuffers(self) -> RenderBuffers:
        '''
        Copies of the values handed to the point-sprite renderer.

        Returns:
        --------
        RenderBuffers : positions, premultiplied RGBA colors, densities
        '''
        colors = np.empty((self._count, 4), dtype=np.float32)
        colors[:, :3] = self.colors * self._alpha
        colors[:, 3] = self._alpha

        return RenderBuffers(
            positions=self.positions.copy(),
            colors=colors,
            densities=self.densities.copy(),
        )
