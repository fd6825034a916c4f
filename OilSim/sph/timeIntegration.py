# -- Oil Particle Time Integration -- #

'''
Damped symplectic Euler integration for oil particles.

Update sequence per particle:
    v += (F / m) * dt                     (kick)
    v *= 1 / (1 + k * |v|)                (quadratic damping)
    v *= dampingFactor                    (linear damping)
    |v| <= maxSpeed                       (speed cap)
    x += v * dt                           (drift)

The drift uses the updated velocity, as in the standard symplectic
(semi-implicit) Euler scheme. Non-finite values are repaired after
each of the force, velocity, and position updates instead of
aborting the step.

References:
-----------
Monaghan (2005) -- Smoothed Particle Hydrodynamics
Hairer et al. (2003) -- Geometric Numerical Integration

Sean Bowman [10/19/2026]
'''

from __future__ import annotations

from typing import Protocol

import numpy as np

from OilSim.sph.particles import OilParticleStore
from OilSim.sph.sanitize import nonFiniteRows, sanitizePositions, sanitizeVectors


######################################################################
# -- Time Integrator Protocol -- #
######################################################################

class TimeIntegrator(Protocol):
    '''Protocol for particle time integration schemes.'''

    def integrate(self, particles: OilParticleStore, dt: float, applyForces: bool = True) -> dict[str, int]:
        '''
        Advance active particles by one time step.

        Parameters:
        -----------
        particles : OilParticleStore
            Particle store to advance in place
        dt : float
            Time step size
        applyForces : bool
            Apply the force kick (False when velocities came from a solver)

        Returns:
        --------
        dict[str, int] : Repair counts keyed by 'force', 'velocity', 'position'
        '''
        ...


######################################################################
# -- Damped Symplectic Euler -- #
######################################################################

class DampedSymplecticEuler:
    '''
    Symplectic Euler with quadratic and linear damping and a speed cap.

    Parameters:
    -----------
    dampingFactor : float
        Linear velocity multiplier per step
    quadraticDampingK : float
        Coefficient k of the quadratic damping 1 / (1 + k|v|)
    maxSpeed : float
        Speed cap
    '''

    def __init__(self, dampingFactor: float, quadraticDampingK: float, maxSpeed: float) -> None:
        self.dampingFactor = dampingFactor
        self.quadraticDampingK = quadraticDampingK
        self.maxSpeed = maxSpeed

    def integrate(self, particles: OilParticleStore, dt: float, applyForces: bool = True) -> dict[str, int]:
        '''
        Advance active particles by one time step.

        A particle with a non-finite force has that force zeroed and
        skips the kick; a non-finite velocity is zeroed; a non-finite
        position is moved to the container center with zero velocity.

        Parameters:
        -----------
        particles : OilParticleStore
            Particle store to advance in place
        dt : float
            Time step size
        applyForces : bool
            Apply the force kick before damping

        Returns:
        --------
        dict[str, int] : Repair counts keyed by 'force', 'velocity', 'position'
        '''
        repairs = {'force': 0, 'velocity': 0, 'position': 0}
        if particles.count == 0:
            return repairs

        velocities = particles.velocities
        positions = particles.positions

        with np.errstate(invalid='ignore', over='ignore'):
            if applyForces:
                forces = particles.forces
                bad = nonFiniteRows(forces)
                repairs['force'] = int(np.count_nonzero(bad))
                if repairs['force'] > 0:
                    forces[bad] = 0.0
                good = ~bad
                velocities[good] += forces[good] * (dt / particles.mass)

            self._dampVelocities(velocities)
            repairs['velocity'] = sanitizeVectors(velocities)

            positions += velocities * dt
            repairs['position'] = sanitizePositions(positions, velocities)

        return repairs

    def _dampVelocities(self, velocities: np.ndarray) -> None:
        '''Quadratic damping, then linear damping, then the speed cap.'''
        speeds = np.linalg.norm(velocities, axis=1)
        quadratic = 1.0 / (1.0 + self.quadraticDampingK * speeds)
        velocities *= (quadratic * self.dampingFactor).astype(velocities.dtype)[:, np.newaxis]

        speeds = np.linalg.norm(velocities, axis=1)
        over = speeds > self.maxSpeed
        if np.any(over):
            scale = (self.maxSpeed / speeds[over]).astype(velocities.dtype)
            velocities[over] *= scale[:, np.newaxis]
