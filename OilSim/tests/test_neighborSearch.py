# -- Spatial Hash Grid Tests -- #

'''
Neighbor search against brute force, pair queries, and bucket stats.

Sean Bowman [10/19/2026]
'''

from __future__ import annotations

import numpy as np
import pytest

from OilSim.sph.neighborSearch import SpatialHashGrid
from OilSim.tests.conftest import randomDiskPoints

H = 0.14
RADIUS = 0.48


def bruteForceNeighbors(points: np.ndarray, i: int, radius: float) -> set[int]:
    offsets = points.astype(np.float64) - points[i].astype(np.float64)
    distSq = np.sum(offsets * offsets, axis=1)
    return set(np.flatnonzero(distSq < radius * radius).tolist())


def testQueryIsSupersetOfBruteForce(rng):
    points = randomDiskPoints(rng, 400, RADIUS)
    grid = SpatialHashGrid(cellSize=2.0 * H, containerRadius=RADIUS)
    grid.build(points)

    for i in range(len(points)):
        candidates = grid.query(float(points[i, 0]), float(points[i, 1]), H)
        offsets = points[candidates].astype(np.float64) - points[i].astype(np.float64)
        filtered = set(candidates[np.sum(offsets * offsets, axis=1) < H * H].tolist())

        assert filtered == bruteForceNeighbors(points, i, H)
        assert len(set(candidates.tolist())) == len(candidates)


def testQueryReachesClampedParticlesOutsideGrid():
    grid = SpatialHashGrid(cellSize=2.0 * H, containerRadius=RADIUS)
    points = np.array([[0.9, 0.0], [0.95, 0.0], [0.0, 0.0]], dtype=np.float32)
    grid.build(points)

    candidates = set(grid.query(0.9, 0.0, H).tolist())
    assert {0, 1} <= candidates


def testInsertMatchesBuild(rng):
    points = randomDiskPoints(rng, 100, RADIUS)
    built = SpatialHashGrid(cellSize=2.0 * H, containerRadius=RADIUS)
    built.build(points)

    inserted = SpatialHashGrid(cellSize=2.0 * H, containerRadius=RADIUS, capacity=8)
    for i, (x, y) in enumerate(points):
        inserted.insert(i, float(x), float(y))

    assert inserted.particleCount == 100
    for x, y in points[:10]:
        a = np.sort(built.query(float(x), float(y), H))
        b = np.sort(inserted.query(float(x), float(y), H))
        np.testing.assert_array_equal(a, b)


def testDoubleInsertRaises():
    grid = SpatialHashGrid(cellSize=2.0 * H, containerRadius=RADIUS)
    grid.insert(0, 0.0, 0.0)
    with pytest.raises(RuntimeError):
        grid.insert(0, 0.1, 0.1)

    grid.clear()
    grid.insert(0, 0.1, 0.1)
    assert grid.particleCount == 1


def testQueryPairsMatchesBruteForce(rng):
    points = randomDiskPoints(rng, 300, RADIUS)
    grid = SpatialHashGrid(cellSize=2.0 * H, containerRadius=RADIUS)
    grid.build(points)

    iIdx, jIdx = grid.queryPairs(H)
    found = set(zip(iIdx.tolist(), jIdx.tolist()))

    expected = set()
    for i in range(len(points)):
        for j in bruteForceNeighbors(points, i, H):
            if i != j:
                expected.add((i, j))

    assert found == expected
    assert len(found) == len(iIdx)


def testQueryPairsIncludeSelf():
    points = np.array([[0.0, 0.0], [0.05, 0.0], [0.4, 0.0]], dtype=np.float32)
    grid = SpatialHashGrid(cellSize=2.0 * H, containerRadius=RADIUS)
    grid.build(points)

    iIdx, jIdx = grid.queryPairs(H, includeSelf=True)
    found = set(zip(iIdx.tolist(), jIdx.tolist()))

    assert found == {(0, 0), (1, 1), (2, 2), (0, 1), (1, 0)}


def testEmptyGrid():
    grid = SpatialHashGrid(cellSize=2.0 * H, containerRadius=RADIUS)
    grid.build(np.zeros((0, 2), dtype=np.float32))

    assert len(grid.query(0.0, 0.0, H)) == 0
    iIdx, jIdx = grid.queryPairs(H)
    assert len(iIdx) == 0 and len(jIdx) == 0
    assert grid.getStats()['occupiedCells'] == 0


def testStats(rng):
    points = randomDiskPoints(rng, 250, RADIUS)
    grid = SpatialHashGrid(cellSize=2.0 * H, containerRadius=RADIUS)
    grid.build(points)
    stats = grid.getStats()

    assert stats['totalParticles'] == 250
    assert stats['totalCells'] == grid.totalCells
    assert 0 < stats['occupiedCells'] <= grid.totalCells
    assert stats['maxCellSize'] >= stats['avgCellSize'] > 0.0
    assert stats['avgCellSize'] == pytest.approx(250 / stats['occupiedCells'])


def testNonPositiveCellSizeRejected():
    with pytest.raises(ValueError):
        SpatialHashGrid(cellSize=0.0, containerRadius=RADIUS)
