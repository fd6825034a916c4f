# -- Preconditioned Conjugate Gradient -- #

'''
Block-Jacobi preconditioned Conjugate Gradient for SPD systems.

Solves A x = b for a finalized SparseMatrix A, which is assumed
(not verified) to be symmetric positive-definite.

Algorithm:
    1. r = b - A x0
    2. z = M^-1 r
    3. p = z
    4. Repeat:
         alpha = (r . z) / (p . A p)
         x += alpha p
         r -= alpha A p
         stop when |r| / |r0| < tolerance
         z = M^-1 r
         beta = (r_new . z_new) / (r_old . z_old)
         p = z + beta p

M is the 2x2 block-Jacobi preconditioner: each particle's (x, y)
diagonal block is inverted analytically. A near-singular block
(|det| <= 1e-12) falls back to scalar Jacobi on its two diagonal
entries, and an odd trailing degree of freedom always uses scalar
Jacobi.

All vectors are float32, so tolerances much below ~1e-6 are not
reachable in practice.

References:
-----------
Shewchuk (1994) -- An Introduction to the Conjugate Gradient Method
    Without the Agonizing Pain
Saad (2003) -- Iterative Methods for Sparse Linear Systems

Sean Bowman [10/19/2026]
'''

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from OilSim import constants as const
from OilSim.implicit.sparseMatrix import SparseMatrix

logger = logging.getLogger(__name__)

# Singularity threshold for block determinants and diagonal entries
SINGULAR_EPS: float = 1e-12

# Squared-residual and curvature floors
BREAKDOWN_EPS: float = 1e-20


######################################################################
# -- Result -- #
######################################################################

@dataclass
class CgResult:
    '''
    Outcome of a Conjugate Gradient solve.

    Parameters:
    -----------
    x : np.ndarray
        Solution iterate (the initial guess array, updated in place)
    iterations : int
        Iterations performed
    residual : float
        Final relative residual |r| / |r0| (0 when r0 was already ~0)
    converged : bool
        True when the relative residual fell below tolerance
    '''
    x: np.ndarray
    iterations: int
    residual: float
    converged: bool


######################################################################
# -- Block-Jacobi Preconditioner -- #
######################################################################

class BlockJacobiPreconditioner:
    '''
    Inverse 2x2 diagonal blocks of A.

    Parameters:
    -----------
    A : SparseMatrix
        Finalized system matrix
    '''

    def __init__(self, A: SparseMatrix) -> None:
        n = A.size
        self._nBlocks = n // 2
        blocks = A.blockDiagonal(2).astype(np.float64)

        a = blocks[:, 0, 0]
        b = blocks[:, 0, 1]
        c = blocks[:, 1, 0]
        d = blocks[:, 1, 1]
        det = a * d - b * c

        invertible = np.abs(det) > SINGULAR_EPS
        safeDet = np.where(invertible, det, 1.0)

        inverse = np.zeros_like(blocks)
        inverse[:, 0, 0] = np.where(invertible, d / safeDet, self._scalarInverse(a))
        inverse[:, 0, 1] = np.where(invertible, -b / safeDet, 0.0)
        inverse[:, 1, 0] = np.where(invertible, -c / safeDet, 0.0)
        inverse[:, 1, 1] = np.where(invertible, a / safeDet, self._scalarInverse(d))
        self._inverse = inverse.astype(np.float32)
        self._singularBlocks = int(np.count_nonzero(~invertible))

        # Odd trailing degree of freedom
        self._tailInverse: float | None = None
        if n % 2 == 1:
            self._tailInverse = float(self._scalarInverse(np.array([A.getDiagonal(n - 1)]))[0])

    @staticmethod
    def _scalarInverse(values: np.ndarray) -> np.ndarray:
        '''1 / a where |a| > eps, otherwise 1.'''
        safe = np.where(np.abs(values) > SINGULAR_EPS, values, 1.0)
        return np.where(np.abs(values) > SINGULAR_EPS, 1.0 / safe, 1.0)

    @property
    def singularBlocks(self) -> int:
        '''Blocks that fell back to scalar Jacobi.'''
        return self._singularBlocks

    def apply(self, r: np.ndarray, z: np.ndarray) -> None:
        '''z = M^-1 r, written in place.'''
        nb = self._nBlocks
        if nb > 0:
            rBlocks = r[:2 * nb].reshape(nb, 2)
            z[:2 * nb] = np.einsum('kij,kj->ki', self._inverse, rBlocks).ravel()
        if self._tailInverse is not None:
            z[-1] = self._tailInverse * r[-1]


######################################################################
# -- Conjugate Gradient Solver -- #
######################################################################

class ConjugateGradient:
    '''Preconditioned Conjugate Gradient over a SparseMatrix.'''

    @staticmethod
    def solve(
        A: SparseMatrix,
        b: np.ndarray,
        x0: np.ndarray,
        maxIterations: int = const.cgMaxIterations,
        tolerance: float = const.cgTolerance,
    ) -> CgResult:
        '''
        Solve A x = b starting from x0.

        x0 is the initial guess and receives the result when it is a
        float32 array; other dtypes are copied to float32 first.
        Non-convergence and p.Ap breakdown are not errors: the best
        iterate is returned with converged=False.

        Parameters:
        -----------
        A : SparseMatrix
            Finalized SPD matrix
        b : np.ndarray
            Right-hand side, length A.size
        x0 : np.ndarray
            Initial guess, length A.size
        maxIterations : int
            Iteration limit
        tolerance : float
            Relative residual |r| / |r0| at which to stop

        Returns:
        --------
        CgResult : x, iterations, residual, converged
        '''
        n = A.size
        if len(b) != n or len(x0) != n:
            raise ValueError(f'Vector size mismatch. Expected {n}, got b={len(b)}, x0={len(x0)}')

        x = x0 if x0.dtype == np.float32 else x0.astype(np.float32)
        b = np.asarray(b, dtype=np.float32)

        preconditioner = BlockJacobiPreconditioner(A)

        # Working vectors
        Ap = np.zeros(n, dtype=np.float32)
        z = np.zeros(n, dtype=np.float32)

        A.multiply(x, Ap)
        r = b - Ap

        rr0 = float(np.dot(r, r))
        if rr0 < BREAKDOWN_EPS:
            return CgResult(x=x, iterations=0, residual=0.0, converged=True)
        residual0 = np.sqrt(rr0)

        preconditioner.apply(r, z)
        p = z.copy()
        rz = float(np.dot(r, z))

        iteration = 0
        relativeResidual = 1.0
        while iteration < maxIterations:
            A.multiply(p, Ap)
            pAp = float(np.dot(p, Ap))
            if abs(pAp) < BREAKDOWN_EPS:
                logger.warning('CG: p.Ap near zero (%.3e) at iteration %d, stopping', pAp, iteration)
                break

            alpha = np.float32(rz / pAp)
            x += alpha * p
            r -= alpha * Ap
            iteration += 1

            relativeResidual = float(np.sqrt(np.dot(r, r)) / residual0)
            if relativeResidual < tolerance:
                return CgResult(x=x, iterations=iteration, residual=relativeResidual, converged=True)

            preconditioner.apply(r, z)
            rzNew = float(np.dot(r, z))
            beta = np.float32(rzNew / rz)
            rz = rzNew
            p = z + beta * p

        return CgResult(x=x, iterations=iteration, residual=relativeResidual, converged=False)
