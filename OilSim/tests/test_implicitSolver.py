# -- Implicit Solver Tests -- #

'''
System assembly, solve behavior, and explicit vs implicit regression.

Sean Bowman [10/19/2026]
'''

from __future__ import annotations

from dataclasses import replace

import numpy as np
import pytest

from OilSim.sph.protocols import OilSimConfig
from OilSim.sph.oilSystem import SphOilSystem
from OilSim.sph.kernels import ViscosityKernel
from OilSim.implicit.implicitSolver import DENSITY_EPS

DT = 0.008


def preparedSystem(config: OilSimConfig, count: int = 12, spawnRadius: float = 0.05) -> SphOilSystem:
    '''System with forces computed for the current state.'''
    system = SphOilSystem(config)
    system.spawnParticles(0.05, -0.02, count, spawnRadius=spawnRadius)
    system.updateSpatialHash()
    system.computeDensities()
    system.computePressures()
    system.computeForces()
    return system


######################################################################
# -- Assembly -- #
######################################################################

def testViscosityAndCohesionBlocksSymmetric(smallConfig):
    system = preparedSystem(smallConfig)
    system.particles.densities[:] = 1000.0

    solver = system.implicitSolver
    solver.implicitPressure = False
    dense = solver.buildSystemMatrix(DT).toDense()

    assert dense.shape == (2 * system.particleCount, 2 * system.particleCount)
    np.testing.assert_allclose(dense, dense.T, rtol=1e-5, atol=1e-7)


def testRowsSumToMass(smallConfig):
    system = preparedSystem(smallConfig)
    matrix = system.implicitSolver.buildSystemMatrix(DT)

    rowSums = matrix.multiply(np.ones(matrix.size, dtype=np.float32))
    np.testing.assert_allclose(rowSums, system.particles.mass, rtol=1e-3, atol=1e-4)


def testXAndYComponentsDecoupled(smallConfig):
    system = preparedSystem(smallConfig)
    dense = system.implicitSolver.buildSystemMatrix(DT).toDense()

    np.testing.assert_array_equal(dense[0::2, 1::2], 0.0)
    np.testing.assert_array_equal(dense[1::2, 0::2], 0.0)


def testDuplicateEntriesPreservedUnlessMerged(smallConfig):
    system = preparedSystem(smallConfig)
    solver = system.implicitSolver

    separate = solver.buildSystemMatrix(DT)
    solver.mergeDuplicates = True
    merged = solver.buildSystemMatrix(DT)

    assert separate.nnz > merged.nnz
    np.testing.assert_allclose(separate.toDense(), merged.toDense(), rtol=1e-5, atol=1e-7)


def testDisabledTermsLeaveMassMatrix(smallConfig):
    system = preparedSystem(smallConfig)
    solver = system.implicitSolver
    solver.implicitPressure = False
    solver.implicitViscosity = False
    solver.implicitCohesion = False

    matrix = solver.buildSystemMatrix(DT)

    assert matrix.nnz == matrix.size
    np.testing.assert_allclose(matrix.diagonal(), system.particles.mass)


def testRightHandSide(smallConfig):
    system = preparedSystem(smallConfig)
    system.particles.velocities[:] = [0.1, -0.2]

    rhs = system.implicitSolver.buildRhs(DT)
    p = system.particles
    expected = (p.mass * p.velocities.astype(np.float64) + DT * p.forces.astype(np.float64)).reshape(-1)

    assert rhs.dtype == np.float32
    np.testing.assert_allclose(rhs, expected, rtol=1e-5, atol=1e-9)


def pairSystem(merge: bool) -> SphOilSystem:
    '''Two particles 0.05 apart along x with unequal densities.'''
    config = OilSimConfig(maxParticles=20, particleCeiling=10, seed=2, mergeDuplicateEntries=merge)
    system = SphOilSystem(config)
    system.spawnParticles(0.0, 0.0, 2, spawnRadius=0.0)
    system.particles.positions[:] = [[0.0, 0.0], [0.05, 0.0]]
    system.particles.densities[:] = [12.0, 8.0]
    system.updateSpatialHash()
    return system


@pytest.mark.parametrize('merge', [False, True])
def testPairCouplingCoefficients(merge):
    system = pairSystem(merge)
    solver = system.implicitSolver
    cfg = system.config
    m = system.particles.mass
    h = cfg.smoothingRadius

    # Row 0 is particle 0 (x), column 2 is particle 1 (x). The pair
    # direction (x_i - x_j) / |x_i - x_j| is -x for (0, 1) and +x for (1, 0).
    lap = float(ViscosityKernel().laplacianBatch(np.array([0.05]), h)[0])
    pressure01 = -DT * 0.5 * m * m / (8.0 + DENSITY_EPS) * -1.0
    pressure10 = -DT * 0.5 * m * m / (12.0 + DENSITY_EPS) * 1.0
    viscosity01 = -DT * cfg.viscosity * m * m / (8.0 + DENSITY_EPS) * lap
    viscosity10 = -DT * cfg.viscosity * m * m / (12.0 + DENSITY_EPS) * lap
    cohesion = -DT * DT * cfg.implicitCohesionStiffness

    def buildWith(usePressure: bool, useViscosity: bool, useCohesion: bool):
        solver.implicitPressure = usePressure
        solver.implicitViscosity = useViscosity
        solver.implicitCohesion = useCohesion
        return solver.buildSystemMatrix(DT)

    matrix = buildWith(True, False, False)
    assert matrix.get(0, 2) == pytest.approx(pressure01, rel=1e-5)
    assert matrix.get(2, 0) == pytest.approx(pressure10, rel=1e-5)
    assert matrix.get(0, 2) > 0.0 > matrix.get(2, 0)
    # Pair direction has no y component
    assert matrix.get(1, 3) == 0.0

    matrix = buildWith(False, True, False)
    assert matrix.get(0, 2) == pytest.approx(viscosity01, rel=1e-5)
    assert matrix.get(2, 0) == pytest.approx(viscosity10, rel=1e-5)
    assert matrix.get(1, 3) == pytest.approx(viscosity01, rel=1e-5)

    matrix = buildWith(False, False, True)
    assert matrix.get(0, 2) == pytest.approx(cohesion, rel=1e-6)
    assert matrix.get(3, 1) == pytest.approx(cohesion, rel=1e-6)

    matrix = buildWith(True, True, True)
    expected01 = pressure01 + viscosity01 + cohesion
    assert matrix.get(0, 2) == pytest.approx(expected01, rel=1e-5)
    assert matrix.get(2, 0) == pytest.approx(pressure10 + viscosity10 + cohesion, rel=1e-5)
    assert matrix.get(0, 0) == pytest.approx(m - expected01, rel=1e-5)
    assert matrix.get(0, 1) == 0.0
    # x rows: three terms + diagonal, y rows: two terms + diagonal
    assert matrix.nnz == (8 if merge else 14)


######################################################################
# -- Solve -- #
######################################################################

def testSolveConvergesAndReportsStats(smallConfig):
    system = preparedSystem(smallConfig)
    solver = system.implicitSolver

    assert solver.solve(DT)

    stats = solver.getStats()
    assert stats['converged']
    assert stats['iterations'] >= 1
    assert stats['matrixStats']['size'] == 2 * system.particleCount
    assert np.all(np.isfinite(system.particles.velocities))
    assert 'implicit' in system.getStats()


def testNonConvergedIterateStillApplied(smallConfig, caplog):
    system = preparedSystem(smallConfig, count=30)
    solver = system.implicitSolver
    solver.maxIterations = 1
    solver.tolerance = 1e-12

    converged = solver.solve(DT)

    assert not converged
    assert not solver.stats.converged
    assert solver.lastResult.iterations == 1
    np.testing.assert_array_equal(
        system.particles.velocities, solver.lastResult.x.reshape(system.particleCount, 2)
    )
    assert 'did not converge' in caplog.text


def testSolveAppliesGridDrag(smallConfig):
    system = preparedSystem(smallConfig)
    before = system.particles.forces.copy()

    target = np.tile([0.2, 0.0], (system.particleCount, 1))
    system.implicitSolver.solve(DT, dragVelocities=target)

    assert not np.allclose(system.particles.forces, before)
    with pytest.raises(ValueError):
        system.implicitSolver.solve(DT, dragVelocities=np.zeros((2, 2)))


def testSolveWithoutParticles(smallConfig):
    system = SphOilSystem(smallConfig)
    assert system.implicitSolver.solve(DT)


######################################################################
# -- Explicit vs Implicit Regression -- #
######################################################################

def testMassOnlySystemReproducesExplicitStep(smallConfig):
    explicit = SphOilSystem(smallConfig)
    implicit = SphOilSystem(replace(
        smallConfig,
        useImplicitIntegration=True,
        implicitPressure=False,
        implicitViscosity=False,
        implicitCohesion=False,
    ))
    for system in (explicit, implicit):
        system.spawnParticles(0.0, 0.0, 40, spawnRadius=0.05)

    explicit.update(DT)
    implicit.update(DT)

    np.testing.assert_allclose(implicit.particles.velocities, explicit.particles.velocities, atol=1e-5)
    np.testing.assert_allclose(implicit.particles.positions, explicit.particles.positions, atol=1e-6)


def testExplicitAndImplicitTrajectoriesBothStayBounded(smallConfig):
    '''
    Explicit-only vs explicit + implicit (pressure, viscosity, cohesion).

    The implicit path linearizes forces the explicit pipeline already
    put into the right-hand side. This records how far the two
    trajectories separate without deciding which one is intended.
    '''
    explicit = SphOilSystem(smallConfig)
    implicit = SphOilSystem(replace(smallConfig, useImplicitIntegration=True))
    for system in (explicit, implicit):
        system.spawnParticles(0.0, 0.0, 40, spawnRadius=0.05)

    for _ in range(30):
        explicitState = explicit.update(1.0 / 60.0)
        implicitState = implicit.update(1.0 / 60.0)

    radius = smallConfig.containerRadius
    for state, system in ((explicitState, explicit), (implicitState, implicit)):
        assert state.repairs == 0
        assert state.maxRadius <= radius + 1e-5
        assert state.centroidDistance < 0.1 * radius
        assert np.all(np.isfinite(system.particles.positions))

    separation = np.max(np.linalg.norm(
        implicit.particles.positions - explicit.particles.positions, axis=1
    ))
    assert 0.0 < separation < 2.0 * radius


def testNonConvergenceWarningThrottled(smallConfig, caplog):
    system = preparedSystem(smallConfig, count=30)
    solver = system.implicitSolver
    solver.maxIterations = 1
    solver.tolerance = 1e-12
    solver.warnInterval = 3

    def warningCount() -> int:
        return sum(
            1 for record in caplog.records
            if record.levelname == 'WARNING' and 'did not converge' in record.getMessage()
        )

    for _ in range(7):
        assert not solver.solve(DT)

    # Failures 1, 3 and 6 of the run warn
    assert warningCount() == 3
    assert solver.stats.consecutiveFailures == 7
    assert solver.getStats()['failedSolves'] == 7

    solver.maxIterations = 50
    solver.tolerance = 1e-4
    assert solver.solve(DT)
    assert solver.stats.consecutiveFailures == 0

    solver.maxIterations = 1
    solver.tolerance = 1e-12
    solver.solve(DT)
    assert warningCount() == 4
    assert solver.stats.failedSolves == 8
