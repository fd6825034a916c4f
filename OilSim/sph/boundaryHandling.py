# -- Circular Container Boundary -- #

'''
Boundary enforcement for the circular oil container.

The container is a disk centered on the origin. Particles that leave
it are projected radially back onto the rim and their velocity is
reflected about the outward normal, scaled by a restitution factor
below one so every wall contact removes energy.

Sean Bowman [10/19/2026]
'''

from __future__ import annotations

import numpy as np

from OilSim.sph.particles import OilParticleStore


class CircularContainer:
    '''
    Disk-shaped container centered at the origin.

    Parameters:
    -----------
    radius : float
        Container radius
    restitution : float
        Fraction of the reflected velocity kept after a wall hit
    '''

    def __init__(self, radius: float, restitution: float = 0.5) -> None:
        if radius <= 0.0:
            raise ValueError(f'Container radius must be positive, got {radius}')
        self.radius = radius
        self.restitution = restitution

    def enforceBoundary(self, particles: OilParticleStore) -> int:
        '''
        Project escaped particles onto the rim and reflect their velocity.

        v' = restitution * (v - 2 (v . n) n),  n = x / |x|

        Parameters:
        -----------
        particles : OilParticleStore
            Particle store, modified in place

        Returns:
        --------
        int : Number of particles that hit the wall
        '''
        if particles.count == 0:
            return 0

        positions = particles.positions
        velocities = particles.velocities

        distances = np.linalg.norm(positions, axis=1)
        outside = distances > self.radius
        nOutside = int(np.count_nonzero(outside))
        if nOutside == 0:
            return 0

        dist = distances[outside][:, np.newaxis]
        normals = positions[outside] / dist
        positions[outside] = normals * self.radius

        v = velocities[outside]
        vDotN = np.sum(v * normals, axis=1, keepdims=True)
        velocities[outside] = (v - 2.0 * vDotN * normals) * self.restitution

        return nOutside

    def contains(self, positions: np.ndarray, tolerance: float = 1e-5) -> bool:
        '''True when every position lies within radius + tolerance.'''
        if len(positions) == 0:
            return True
        return bool(np.all(np.linalg.norm(positions, axis=1) <= self.radius + tolerance))
