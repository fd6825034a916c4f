# -- Non-Finite Value Repair -- #

'''
Sanitize-or-default helpers shared by every pipeline stage.

Numeric corruption (NaN or inf in a density, force, velocity, or
position) is repaired in place and never raised. Each helper returns
the number of particles it repaired so callers can keep per-stage
repair counters and log them.

Sean Bowman [10/19/2026]
'''

from __future__ import annotations

import numpy as np


def nonFiniteRows(values: np.ndarray) -> np.ndarray:
    '''
    Mask of particles holding any non-finite component.

    Parameters:
    -----------
    values : np.ndarray
        Per-particle scalars, shape (N,), or vectors, shape (N, dim)

    Returns:
    --------
    np.ndarray : Boolean mask, shape (N,)
    '''
    finite = np.isfinite(values)
    if values.ndim == 1:
        return ~finite
    return ~np.all(finite, axis=1)


def sanitizeVectors(values: np.ndarray, default: float = 0.0) -> int:
    '''
    Replace every non-finite particle vector by a constant vector.

    The whole row is reset, not only the offending component.

    Parameters:
    -----------
    values : np.ndarray
        Per-particle vectors, shape (N, dim), modified in place
    default : float
        Value written to every component of a repaired row

    Returns:
    --------
    int : Number of repaired particles
    '''
    bad = nonFiniteRows(values)
    count = int(np.count_nonzero(bad))
    if count > 0:
        values[bad] = default
    return count


def sanitizeScalars(values: np.ndarray, default: float) -> int:
    '''Replace non-finite scalars by `default`; returns the repair count.'''
    bad = nonFiniteRows(values)
    count = int(np.count_nonzero(bad))
    if count > 0:
        values[bad] = default
    return count


def sanitizePositions(positions: np.ndarray, velocities: np.ndarray) -> int:
    '''
    Re-center particles with non-finite positions.

    A repaired particle is moved to the container center and its
    velocity is zeroed.

    Parameters:
    -----------
    positions : np.ndarray
        Particle positions, shape (N, 2), modified in place
    velocities : np.ndarray
        Particle velocities, shape (N, 2), modified in place

    Returns:
    --------
    int : Number of repaired particles
    '''
    bad = nonFiniteRows(positions)
    count = int(np.count_nonzero(bad))
    if count > 0:
        positions[bad] = 0.0
        velocities[bad] = 0.0
    return count


def clampMagnitudes(vectors: np.ndarray, maxMagnitude: float) -> int:
    '''
    Scale down vectors longer than `maxMagnitude`.

    Parameters:
    -----------
    vectors : np.ndarray
        Per-particle vectors, shape (N, 2), modified in place
    maxMagnitude : float
        Largest allowed length (non-positive disables the clamp)

    Returns:
    --------
    int : Number of clamped vectors
    '''
    if maxMagnitude <= 0.0 or len(vectors) == 0:
        return 0

    magnitudes = np.linalg.norm(vectors, axis=1)
    over = magnitudes > maxMagnitude
    count = int(np.count_nonzero(over))
    if count > 0:
        scale = (maxMagnitude / magnitudes[over]).astype(vectors.dtype)
        vectors[over] *= scale[:, np.newaxis]
    return count
