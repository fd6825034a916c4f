# -- Conjugate Gradient Tests -- #

'''
Preconditioned CG convergence, early exits, and preconditioner blocks.

Sean Bowman [10/19/2026]
'''

from __future__ import annotations

import numpy as np
import pytest

from OilSim.implicit.sparseMatrix import SparseMatrix
from OilSim.implicit.conjugateGradient import BlockJacobiPreconditioner, ConjugateGradient


def buildFromDense(dense: np.ndarray) -> SparseMatrix:
    matrix = SparseMatrix(dense.shape[0])
    for row in range(dense.shape[0]):
        matrix.beginRow(row)
        cols = np.flatnonzero(dense[row])
        matrix.addEntries(cols, dense[row, cols])
    matrix.finalize()
    return matrix


def testTridiagonalSystemConverges():
    dense = np.array([[4.0, 1.0, 0.0], [1.0, 4.0, 1.0], [0.0, 1.0, 4.0]])
    b = np.array([1.0, 2.0, 3.0], dtype=np.float32)
    x0 = np.zeros(3, dtype=np.float32)

    result = ConjugateGradient.solve(buildFromDense(dense), b, x0, maxIterations=10, tolerance=1e-5)

    assert result.converged
    assert result.iterations <= 10
    np.testing.assert_allclose(result.x, [5.0 / 28.0, 2.0 / 7.0, 19.0 / 28.0], atol=1e-3)
    assert np.linalg.norm(result.x - np.linalg.solve(dense, b)) < 1e-3


def testSolutionWrittenIntoFloat32Guess():
    dense = np.diag([2.0, 4.0])
    x0 = np.zeros(2, dtype=np.float32)
    result = ConjugateGradient.solve(buildFromDense(dense), np.array([2.0, 4.0]), x0)

    assert result.x is x0
    np.testing.assert_allclose(x0, [1.0, 1.0], rtol=1e-6)


def testExactGuessReturnsImmediately():
    dense = np.diag([2.0, 4.0])
    x0 = np.ones(2, dtype=np.float32)

    result = ConjugateGradient.solve(buildFromDense(dense), np.array([2.0, 4.0]), x0)

    assert result.iterations == 0
    assert result.residual == 0.0
    assert result.converged
    np.testing.assert_array_equal(result.x, [1.0, 1.0])


def testZeroRightHandSide():
    dense = np.eye(4) * 3.0
    result = ConjugateGradient.solve(buildFromDense(dense), np.zeros(4), np.zeros(4, dtype=np.float32))

    assert result.converged
    assert result.iterations == 0
    np.testing.assert_array_equal(result.x, np.zeros(4))


def testNonConvergenceReturnsBestIterate():
    rng = np.random.default_rng(5)
    n = 40
    m = rng.random((n, n))
    dense = m @ m.T + 0.01 * np.eye(n)
    b = rng.random(n).astype(np.float32)

    result = ConjugateGradient.solve(buildFromDense(dense), b, np.zeros(n, dtype=np.float32), maxIterations=2, tolerance=1e-12)

    assert not result.converged
    assert result.iterations == 2
    assert result.residual > 1e-12
    assert np.all(np.isfinite(result.x))


def testBreakdownStopsWithoutError():
    # Zero matrix: p.Ap vanishes on the first iteration
    matrix = SparseMatrix(2)
    matrix.beginRow(0)
    matrix.beginRow(1)
    matrix.finalize()

    result = ConjugateGradient.solve(matrix, np.array([1.0, 1.0]), np.zeros(2, dtype=np.float32))

    assert not result.converged
    assert result.iterations == 0
    np.testing.assert_array_equal(result.x, [0.0, 0.0])


def testOddSizeUsesScalarTail():
    dense = np.array([
        [4.0, 1.0, 0.0],
        [1.0, 3.0, 0.0],
        [0.0, 0.0, 5.0],
    ])
    preconditioner = BlockJacobiPreconditioner(buildFromDense(dense))
    r = np.array([1.0, 2.0, 10.0], dtype=np.float32)
    z = np.zeros(3, dtype=np.float32)
    preconditioner.apply(r, z)

    np.testing.assert_allclose(z[:2], np.linalg.solve(dense[:2, :2], r[:2]), rtol=1e-5)
    assert z[2] == pytest.approx(2.0)

    b = np.array([1.0, 2.0, 3.0], dtype=np.float32)
    result = ConjugateGradient.solve(buildFromDense(dense), b, np.zeros(3, dtype=np.float32), tolerance=1e-5)
    assert result.converged
    np.testing.assert_allclose(result.x, np.linalg.solve(dense, b), atol=1e-4)


def testSingularBlockFallsBackToScalar():
    dense = np.array([
        [1.0, 1.0, 0.0, 0.0],
        [1.0, 1.0, 0.0, 0.0],
        [0.0, 0.0, 2.0, 0.0],
        [0.0, 0.0, 0.0, 4.0],
    ])
    preconditioner = BlockJacobiPreconditioner(buildFromDense(dense))
    assert preconditioner.singularBlocks == 1

    r = np.array([2.0, 3.0, 2.0, 2.0], dtype=np.float32)
    z = np.zeros(4, dtype=np.float32)
    preconditioner.apply(r, z)
    np.testing.assert_allclose(z, [2.0, 3.0, 1.0, 0.5])


def testSizeMismatchRaises():
    matrix = buildFromDense(np.eye(3))
    with pytest.raises(ValueError):
        ConjugateGradient.solve(matrix, np.ones(2), np.zeros(3, dtype=np.float32))
