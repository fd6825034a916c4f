# -- Implicit Velocity Solver -- #

'''
Implicit velocity update for the SPH oil system.

Solves the linearized backward-Euler system

    (M - dt J) v_new = M v_old + dt F

where M is the (diagonal) mass matrix, F the force buffer already
accumulated by the explicit pipeline (plus optional grid drag), and
J a hand-linearized Jacobian of the pair forces. Every particle
contributes two rows (x and y velocity). For each row the particle's
h-neighborhood is scanned and one entry per neighbor and enabled
term is appended:

    Pressure   A[2i+c, 2j+c] = a_ij * d_c / |d|,
               a_ij = -dt * 0.5 m^2 / (rho_j + 1e-6)
               (approximate coupling along the pair direction)
    Viscosity  A[2i+c, 2j+c] = -dt * mu m^2 / (rho_j + 1e-6) * lap_W
               (derivative of F_i = sum_j c_ij (v_j - v_i))
    Cohesion   A[2i+c, 2j+c] = -dt^2 * k
               (APPROXIMATION: the position-dependent cohesion spring
               is re-expressed as a stiff velocity coupling; it is not
               a true derivative)

Each off-diagonal entry is subtracted from a running diagonal, and
the mass is added to the diagonal last. The three terms append
separate entries for the same column, so the stored matrix carries
repeated (row, col) entries unless mergeDuplicates is enabled.

The explicit pipeline already put pressure and viscosity into F.
Enabling the same terms here linearizes them a second time into the
matrix; both paths are kept, and whether that double-counts is left
open.

A non-converged solve is logged (throttled over a run of failures)
and its iterate is still applied.

References:
-----------
Baraff & Witkin (1998) -- Large Steps in Cloth Simulation
Jeske et al. (2023) -- Implicit Surface Tension for SPH Fluid
    Simulation

Sean Bowman [10/19/2026]
'''

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

from OilSim import constants as const
from OilSim.sph.kernels import ViscosityKernel, ZERO_DISTANCE
from OilSim.implicit.sparseMatrix import SparseMatrix
from OilSim.implicit.conjugateGradient import CgResult, ConjugateGradient

if TYPE_CHECKING:
    from OilSim.sph.oilSystem import SphOilSystem

logger = logging.getLogger(__name__)

# Regularization added to neighbor densities in the Jacobian
DENSITY_EPS: float = 1e-6


######################################################################
# -- Solver Statistics -- #
######################################################################

@dataclass
class ImplicitSolverStats:
    '''
    Timing and convergence of the last implicit solve.

    Parameters:
    -----------
    buildTime : float
        Matrix assembly time [ms]
    solveTime : float
        CG time [ms]
    iterations : int
        CG iterations
    residual : float
        Final relative residual
    converged : bool
        Whether CG met its tolerance
    matrixStats : dict
        SparseMatrix.getStats() of the last system matrix
    failedSolves : int
        Non-converged solves since the solver was created
    consecutiveFailures : int
        Length of the current run of non-converged solves
    '''
    buildTime: float = 0.0
    solveTime: float = 0.0
    iterations: int = 0
    residual: float = 0.0
    converged: bool = True
    failedSolves: int = 0
    consecutiveFailures: int = 0
    matrixStats: dict = field(default_factory=dict)


######################################################################
# -- Implicit Solver -- #
######################################################################

class ImplicitSolver:
    '''
    Assembles and solves the implicit velocity system.

    Term toggles and CG settings are read from the system's
    configuration and may be changed on the instance afterwards.

    Parameters:
    -----------
    system : SphOilSystem
        Oil system whose velocities are replaced by each solve
    '''

    def __init__(self, system: SphOilSystem) -> None:
        cfg = system.config
        self._system = system
        self._viscosityKernel = ViscosityKernel()

        self.implicitPressure = cfg.implicitPressure
        self.implicitViscosity = cfg.implicitViscosity
        self.implicitCohesion = cfg.implicitCohesion
        self.cohesionStiffness = cfg.implicitCohesionStiffness
        self.maxIterations = cfg.cgMaxIterations
        self.tolerance = cfg.cgTolerance
        self.mergeDuplicates = cfg.mergeDuplicateEntries
        self.warnInterval = const.nonConvergenceLogInterval

        self._rhs: np.ndarray | None = None
        self._systemMatrix: SparseMatrix | None = None
        self._lastResult: CgResult | None = None
        self._stats = ImplicitSolverStats()

    ######################################################################
    # -- Properties -- #
    ######################################################################

    @property
    def systemMatrix(self) -> SparseMatrix | None:
        '''Matrix of the last solve.'''
        return self._systemMatrix

    @property
    def rhs(self) -> np.ndarray | None:
        '''Right-hand side of the last solve.'''
        return self._rhs

    @property
    def lastResult(self) -> CgResult | None:
        return self._lastResult

    @property
    def stats(self) -> ImplicitSolverStats:
        return self._stats

    ######################################################################
    # -- Solve -- #
    ######################################################################

    def solve(self, dt: float, dragVelocities: np.ndarray | None = None) -> bool:
        '''
        One implicit velocity sub-step for all active particles.

        Parameters:
        -----------
        dt : float
            Timestep
        dragVelocities : np.ndarray | None
            Grid velocities, shape (N, 2); when given, grid drag is
            added to the force buffer before the right-hand side is built

        Returns:
        --------
        bool : True if CG converged
        '''
        particles = self._system.particles
        n = particles.count
        if n == 0:
            return True

        if dragVelocities is not None:
            self._system.applyGridDragForces(dragVelocities)

        # 1. Right-hand side
        self._rhs = self.buildRhs(dt)

        # 2. System matrix
        buildStart = time.perf_counter()
        self._systemMatrix = self.buildSystemMatrix(dt)
        self._stats.buildTime = (time.perf_counter() - buildStart) * 1000.0

        # 3. CG from the current velocities
        solveStart = time.perf_counter()
        x0 = particles.velocities.reshape(-1).astype(np.float32)
        result = ConjugateGradient.solve(
            self._systemMatrix, self._rhs, x0, self.maxIterations, self.tolerance
        )
        self._stats.solveTime = (time.perf_counter() - solveStart) * 1000.0

        self._stats.iterations = result.iterations
        self._stats.residual = result.residual
        self._stats.converged = result.converged
        self._stats.matrixStats = self._systemMatrix.getStats()
        self._lastResult = result

        self._reportConvergence(result)

        # 4. Apply the iterate, converged or not
        particles.velocities[:] = result.x.reshape(n, 2)

        logger.debug(
            'Implicit solve: %d iterations, residual=%.6f, build=%.1fms, solve=%.1fms',
            result.iterations, result.residual, self._stats.buildTime, self._stats.solveTime,
        )
        return result.converged

    def _reportConvergence(self, result: CgResult) -> None:
        '''
        Track failure runs and throttle the non-convergence warning.

        A run of failures warns on its first solve and then every
        warnInterval consecutive failures; the rest go to DEBUG.
        '''
        stats = self._stats
        if result.converged:
            if stats.consecutiveFailures > 0:
                logger.info(
                    'Implicit solver converged again after %d failed solve(s)',
                    stats.consecutiveFailures,
                )
            stats.consecutiveFailures = 0
            return

        stats.failedSolves += 1
        stats.consecutiveFailures += 1
        run = stats.consecutiveFailures
        if run == 1 or run % max(self.warnInterval, 1) == 0:
            logger.warning(
                'Implicit solver did not converge: %d iterations, residual=%.6f (%d consecutive)',
                result.iterations, result.residual, run,
            )
        else:
            logger.debug(
                'Implicit solve still not converged: %d iterations, residual=%.6f',
                result.iterations, result.residual,
            )

    def buildRhs(self, dt: float) -> np.ndarray:
        '''
        rhs = M v_old + dt F, interleaved as (x0, y0, x1, y1, ...).

        Returns:
        --------
        np.ndarray : Right-hand side, length 2N, float32
        '''
        particles = self._system.particles
        rhs = particles.mass * particles.velocities.astype(np.float64) + dt * particles.forces.astype(np.float64)
        return rhs.reshape(-1).astype(np.float32)

    def buildSystemMatrix(self, dt: float) -> SparseMatrix:
        '''
        Assemble A = M - dt J row by row.

        Parameters:
        -----------
        dt : float
            Timestep

        Returns:
        --------
        SparseMatrix : Finalized 2N x 2N matrix
        '''
        system = self._system
        particles = system.particles
        cfg = system.config
        n = particles.count
        h = cfg.smoothingRadius
        m = particles.mass

        pairs = system.pairsWithin(h)
        order = np.lexsort((pairs.jIdx, pairs.iIdx))
        iIdx = pairs.iIdx[order]
        jIdx = pairs.jIdx[order]
        direction = pairs.dr[order] / np.maximum(pairs.dist[order], ZERO_DISTANCE)[:, np.newaxis]
        dist = pairs.dist[order]
        rowStarts = np.searchsorted(iIdx, np.arange(n + 1))

        neighborDensity = particles.densities.astype(np.float64)[jIdx] + DENSITY_EPS
        pressureCoeff = -dt * 0.5 * m * m / neighborDensity
        viscosityCoeff = -dt * cfg.viscosity * m * m / neighborDensity * self._viscosityKernel.laplacianBatch(dist, h)
        cohesionCoeff = -dt * dt * self.cohesionStiffness

        matrix = SparseMatrix(
            2 * n,
            estimatedNonZeros=max(n * const.estimatedNonZerosPerParticle, 16),
            mergeDuplicates=self.mergeDuplicates,
        )

        for i in range(n):
            start, end = rowStarts[i], rowStarts[i + 1]
            neighbors = jIdx[start:end]

            for component in (0, 1):
                row = 2 * i + component
                cols = 2 * neighbors + component
                diagonal = 0.0
                matrix.beginRow(row)

                if self.implicitPressure:
                    values = pressureCoeff[start:end] * direction[start:end, component]
                    matrix.addEntries(cols, values)
                    diagonal -= float(np.sum(values))

                if self.implicitViscosity:
                    values = viscosityCoeff[start:end]
                    matrix.addEntries(cols, values)
                    diagonal -= float(np.sum(values))

                # Approximation: cohesion spring as a velocity coupling
                if self.implicitCohesion and end > start:
                    values = np.full(end - start, cohesionCoeff)
                    matrix.addEntries(cols, values)
                    diagonal -= float(np.sum(values))

                matrix.addEntry(row, diagonal + m)

        matrix.finalize()
        return matrix

    ######################################################################
    # -- Diagnostics -- #
    ######################################################################

    def getStats(self) -> dict:
        '''
        Timing and convergence diagnostics of the last solve.

        Returns:
        --------
        dict : buildTime, solveTime (ms), iterations, residual,
            converged, failedSolves, matrixStats
        '''
        return {
            'buildTime': self._stats.buildTime,
            'solveTime': self._stats.solveTime,
            'iterations': self._stats.iterations,
            'residual': self._stats.residual,
            'converged': self._stats.converged,
            'failedSolves': self._stats.failedSolves,
            'matrixStats': dict(self._stats.matrixStats),
        }
