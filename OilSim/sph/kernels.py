# -- SPH Smoothing Kernels -- #

'''
Smoothing kernels used by the oil-blob SPH pipeline.

Three kernels play separate roles:
- Cubic spline (M4), 2D-normalized, support 2h: density summation
- Spiky gradient, support h: symmetric pressure force
- Viscosity Laplacian, support h: velocity-difference damping and
  the heat diffusion term

The spiky and viscosity kernels keep the 45 / (pi * h^6) prefactor of
Muller et al. The force coefficients of the oil model were tuned
against these exact magnitudes, so the prefactor is not
re-normalized for 2D.

References:
-----------
Monaghan (1992) -- Smoothed Particle Hydrodynamics
Muller et al. (2003) -- Particle-Based Fluid Simulation for
    Interactive Applications

Sean Bowman [10/19/2026]
'''

from __future__ import annotations

import math
from typing import Protocol

import numpy as np


# Distances below this are treated as coincident particles
ZERO_DISTANCE: float = 1e-6


######################################################################
# -- Kernel Protocol -- #
######################################################################

class DensityKernel(Protocol):
    '''Protocol for kernels used in density summation.'''

    def evaluate(self, r: float, h: float) -> float:
        '''Evaluate W(r, h).'''
        ...

    def evaluateBatch(self, distances: np.ndarray, h: float) -> np.ndarray:
        '''Evaluate W(r, h) for an array of distances.'''
        ...

    @property
    def supportScale(self) -> float:
        '''Support radius in units of h.'''
        ...


######################################################################
# -- Cubic Spline Kernel (M4) -- #
######################################################################

class CubicSplineKernel:
    '''
    2D cubic spline (M4) smoothing kernel.

    W(q) = sigma * {
        1 - (3/2)*q^2 + (3/4)*q^3    for 0 <= q < 1
        (1/4)*(2 - q)^3               for 1 <= q < 2
        0                              for q >= 2
    }

    with q = r / h and sigma = 10 / (7 * pi * h^2).
    '''

    @property
    def supportScale(self) -> float:
        '''Support radius is 2h.'''
        return 2.0

    @staticmethod
    def _normalization(h: float) -> float:
        '''2D normalization constant sigma.'''
        return 10.0 / (7.0 * math.pi * h * h)

    def evaluate(self, r: float, h: float) -> float:
        '''
        Evaluate the cubic spline kernel W(r, h).

        Parameters:
        -----------
        r : float
            Distance between particles
        h : float
            Smoothing radius

        Returns:
        --------
        float : Kernel value
        '''
        q = r / h
        sigma = self._normalization(h)

        if q < 1.0:
            return sigma * (1.0 - 1.5 * q * q + 0.75 * q * q * q)
        elif q < 2.0:
            twoMinusQ = 2.0 - q
            return sigma * 0.25 * twoMinusQ * twoMinusQ * twoMinusQ
        else:
            return 0.0

    def evaluateBatch(self, distances: np.ndarray, h: float) -> np.ndarray:
        '''
        Evaluate W(r, h) for an array of distances.

        Parameters:
        -----------
        distances : np.ndarray
            Distances, shape (M,)
        h : float
            Smoothing radius

        Returns:
        --------
        np.ndarray : Kernel values, shape (M,), same dtype as distances
        '''
        q = distances / h
        sigma = self._normalization(h)

        result = np.zeros_like(q)

        inner = q < 1.0
        qInner = q[inner]
        result[inner] = sigma * (1.0 - 1.5 * qInner ** 2 + 0.75 * qInner ** 3)

        outer = (q >= 1.0) & (q < 2.0)
        twoMinusQ = 2.0 - q[outer]
        result[outer] = sigma * 0.25 * twoMinusQ ** 3

        return result


######################################################################
# -- Spiky Kernel Gradient -- #
######################################################################

class SpikyKernel:
    '''
    Spiky kernel gradient for pressure forces.

    grad_W(r, h) = -45 / (pi * h^6) * (h - r)^2 * (rVec / r)   for r < h

    The gradient does not vanish as r -> 0, which keeps particles
    from clumping under pressure.
    '''

    @property
    def supportScale(self) -> float:
        '''Support radius is h.'''
        return 1.0

    @staticmethod
    def _prefactor(h: float) -> float:
        return -45.0 / (math.pi * h ** 6)

    def gradient(self, dx: float, dy: float, r: float, h: float) -> tuple[float, float]:
        '''
        Gradient vector for a single pair.

        Parameters:
        -----------
        dx, dy : float
            Components of r_i - r_j
        r : float
            Pair distance
        h : float
            Smoothing radius

        Returns:
        --------
        tuple[float, float] : (gradX, gradY)
        '''
        if r >= h or r < ZERO_DISTANCE:
            return (0.0, 0.0)
        diff = h - r
        magnitude = self._prefactor(h) * diff * diff / r
        return (magnitude * dx, magnitude * dy)

    def gradientBatch(self, drVecs: np.ndarray, distances: np.ndarray, h: float) -> np.ndarray:
        '''
        Gradient vectors for an array of pairs.

        Parameters:
        -----------
        drVecs : np.ndarray
            Displacements r_i - r_j, shape (M, 2)
        distances : np.ndarray
            |r_i - r_j|, shape (M,)
        h : float
            Smoothing radius

        Returns:
        --------
        np.ndarray : Gradient vectors, shape (M, 2)
        '''
        active = (distances < h) & (distances >= ZERO_DISTANCE)
        safeDistances = np.where(active, distances, 1.0)
        diff = np.where(active, h - distances, 0.0)
        magnitude = self._prefactor(h) * diff * diff / safeDistances
        return magnitude[:, np.newaxis] * drVecs


######################################################################
# -- Viscosity Kernel Laplacian -- #
######################################################################

class ViscosityKernel:
    '''
    Viscosity kernel Laplacian.

    lap_W(r, h) = 45 / (pi * h^6) * (h - r)   for r < h

    Positive everywhere inside the support, so the viscosity force
    always damps relative velocity.
    '''

    @property
    def supportScale(self) -> float:
        '''Support radius is h.'''
        return 1.0

    def laplacian(self, r: float, h: float) -> float:
        '''Laplacian for a single distance.'''
        if r >= h:
            return 0.0
        return (45.0 / (math.pi * h ** 6)) * (h - r)

    def laplacianBatch(self, distances: np.ndarray, h: float) -> np.ndarray:
        '''Laplacian for an array of distances.'''
        return np.where(distances < h, (45.0 / (math.pi * h ** 6)) * (h - distances), 0.0).astype(
            distances.dtype, copy=False
        )
