# -- Spatial Hash Grid for Neighbor Search -- #

'''
Uniform-grid neighbor index over particle positions.

The container is a disk of known radius, so the grid is a flat,
pre-sized array of cells covering the container's bounding square
(plus one guard cell on every side). Particles outside the grid are
clamped into the nearest edge cell; clamping is monotone, so the
ring of cells searched around a query point still covers every true
neighbor.

Buckets are stored arena-style: insertion only records each
particle's cell, and a counting sort compacts the particle indices
into one contiguous array with per-cell start offsets the first time
the grid is queried after a rebuild. The grid is rebuilt from scratch
every step; it has no removal API.

Two query paths share the same buckets:
- query(x, y, radius): every particle in the ceil(radius/cellSize)
  ring of cells (a superset; callers filter by exact distance)
- queryPairs(radius): all directed pairs within radius, exactly
  filtered, gathered with vectorized NumPy operations

References:
-----------
Ihmsen et al. (2011) -- Parallel Neighbor-Search for SPH
Green (2010) -- Particle Simulation using CUDA

Sean Bowman [10/19/2026]
'''

from __future__ import annotations

import math
from typing import Protocol

import numpy as np


#--------------------------------------------------------------------#
# -- Neighbor Index Protocol -- #
#--------------------------------------------------------------------#

class NeighborIndex(Protocol):
    '''Protocol for neighbor search structures.'''

    def build(self, positions: np.ndarray) -> None:
        '''Rebuild the index from particle positions, shape (N, 2).'''
        ...

    def query(self, x: float, y: float, radius: float) -> np.ndarray:
        '''Candidate neighbor indices around (x, y).'''
        ...

    def queryPairs(self, radius: float, includeSelf: bool = False) -> tuple[np.ndarray, np.ndarray]:
        '''Directed pairs (i, j) with |x_i - x_j| < radius.'''
        ...


#--------------------------------------------------------------------#
# -- Spatial Hash Grid -- #
#--------------------------------------------------------------------#

class SpatialHashGrid:
    '''
    Flat bucket grid over the circular container.

    Parameters:
    -----------
    cellSize : float
        Grid cell size, about 2x the smoothing radius
    containerRadius : float
        Radius of the container centered at the origin
    capacity : int
        Initial number of particle slots (grows on demand)
    '''

    def __init__(self, cellSize: float, containerRadius: float, capacity: int = 1024) -> None:
        if cellSize <= 0.0:
            raise ValueError(f'cellSize must be positive, got {cellSize}')

        self._cellSize = float(cellSize)
        self._containerRadius = float(containerRadius)

        # One guard cell on each side of the container's bounding square
        cellsAcross = int(math.ceil(2.0 * containerRadius / cellSize))
        self._gridWidth = cellsAcross + 2
        self._gridHeight = cellsAcross + 2
        self._offset = self._gridWidth / 2.0

        capacity = max(int(capacity), 1)
        self._cellOf = np.full(capacity, -1, dtype=np.int32)
        self._points = np.zeros((capacity, 2), dtype=np.float32)

        # Compacted buckets, rebuilt lazily after inserts
        self._sortedIndices = np.zeros(0, dtype=np.int32)
        self._cellStart = np.zeros(self.totalCells + 1, dtype=np.int64)
        self._dirty = False
        self._insertedCount = 0

    ######################################################################
    # -- Properties -- #
    ######################################################################

    @property
    def cellSize(self) -> float:
        '''Edge length of a grid cell.'''
        return self._cellSize

    @property
    def gridShape(self) -> tuple[int, int]:
        '''(width, height) in cells.'''
        return (self._gridWidth, self._gridHeight)

    @property
    def totalCells(self) -> int:
        '''Number of cells in the flat bucket array.'''
        return self._gridWidth * self._gridHeight

    @property
    def particleCount(self) -> int:
        '''Particles inserted since the last clear.'''
        return self._insertedCount

    ######################################################################
    # -- Construction -- #
    ######################################################################

    def clear(self) -> None:
        '''Empty every bucket.'''
        self._cellOf.fill(-1)
        self._sortedIndices = np.zeros(0, dtype=np.int32)
        self._cellStart.fill(0)
        self._insertedCount = 0
        self._dirty = False

    def insert(self, index: int, x: float, y: float) -> None:
        '''
        Place a particle into the bucket of its cell.

        Parameters:
        -----------
        index : int
            Particle index in the particle store
        x, y : float
            World-space position

        Raises:
        -------
        RuntimeError : If the particle was already inserted since the last clear
        '''
        if index < 0:
            raise ValueError(f'Particle index must be non-negative, got {index}')
        if index >= len(self._cellOf):
            self._grow(index + 1)
        if self._cellOf[index] != -1:
            raise RuntimeError(f'Particle {index} inserted twice in one rebuild')

        gx, gy = self.worldToGrid(x, y)
        self._cellOf[index] = gy * self._gridWidth + gx
        self._points[index, 0] = x
        self._points[index, 1] = y
        self._insertedCount += 1
        self._dirty = True

    def build(self, positions: np.ndarray) -> None:
        '''
        Clear the grid and insert particles 0..N-1 in one vectorized pass.

        Parameters:
        -----------
        positions : np.ndarray
            Particle positions, shape (N, 2)
        '''
        self.clear()
        n = positions.shape[0]
        if n == 0:
            return
        if n > len(self._cellOf):
            self._grow(n)

        self._cellOf[:n] = self._cellIndexBatch(positions)
        self._points[:n] = positions
        self._insertedCount = n
        self._dirty = True

    ######################################################################
    # -- Queries -- #
    ######################################################################

    def worldToGrid(self, x: float, y: float) -> tuple[int, int]:
        '''World position -> clamped integer cell coordinates.'''
        gx = int(math.floor(x / self._cellSize + self._offset))
        gy = int(math.floor(y / self._cellSize + self._offset))
        gx = min(max(gx, 0), self._gridWidth - 1)
        gy = min(max(gy, 0), self._gridHeight - 1)
        return (gx, gy)

    def query(self, x: float, y: float, radius: float) -> np.ndarray:
        '''
        Every particle in the cell ring around (x, y).

        The ring spans ceil(radius / cellSize) cells in each direction.
        Cell occupants are returned whole, so the result is a superset
        of the particles within radius and includes the query particle
        itself when it is inserted.

        Parameters:
        -----------
        x, y : float
            Query point
        radius : float
            Search radius

        Returns:
        --------
        np.ndarray : Particle indices (int32)
        '''
        self._compact()
        if self._insertedCount == 0:
            return np.zeros(0, dtype=np.int32)

        centerX, centerY = self.worldToGrid(x, y)
        ring = int(math.ceil(radius / self._cellSize))

        xLo = max(centerX - ring, 0)
        xHi = min(centerX + ring, self._gridWidth - 1)
        yLo = max(centerY - ring, 0)
        yHi = min(centerY + ring, self._gridHeight - 1)

        chunks: list[np.ndarray] = []
        for gy in range(yLo, yHi + 1):
            rowBase = gy * self._gridWidth
            # Cells of one grid row are contiguous in the compacted array
            start = self._cellStart[rowBase + xLo]
            end = self._cellStart[rowBase + xHi + 1]
            if end > start:
                chunks.append(self._sortedIndices[start:end])

        if not chunks:
            return np.zeros(0, dtype=np.int32)
        return np.concatenate(chunks)

    def queryPairs(self, radius: float, includeSelf: bool = False) -> tuple[np.ndarray, np.ndarray]:
        '''
        All directed particle pairs (i, j) with |x_i - x_j| < radius.

        Each unordered pair appears twice, once per direction, so a
        per-particle sum is a single scatter-add over iIndices.

        Parameters:
        -----------
        radius : float
            Exact cutoff distance
        includeSelf : bool
            Also emit (i, i) for every particle

        Returns:
        --------
        tuple[np.ndarray, np.ndarray] : (iIndices, jIndices), int64
        '''
        self._compact()
        empty = (np.zeros(0, dtype=np.int64), np.zeros(0, dtype=np.int64))
        if self._insertedCount == 0:
            return empty

        sources = np.flatnonzero(self._cellOf >= 0)
        cells = self._cellOf[sources].astype(np.int64)
        gx = cells % self._gridWidth
        gy = cells // self._gridWidth
        points = self._points
        radiusSq = radius * radius
        ring = int(math.ceil(radius / self._cellSize))

        iChunks: list[np.ndarray] = []
        jChunks: list[np.ndarray] = []

        for dy in range(-ring, ring + 1):
            for dx in range(-ring, ring + 1):
                nx = gx + dx
                ny = gy + dy
                valid = (nx >= 0) & (nx < self._gridWidth) & (ny >= 0) & (ny < self._gridHeight)
                if not np.any(valid):
                    continue

                src = sources[valid]
                neighborCells = ny[valid] * self._gridWidth + nx[valid]
                starts = self._cellStart[neighborCells]
                counts = self._cellStart[neighborCells + 1] - starts
                total = int(counts.sum())
                if total == 0:
                    continue

                # Expand each (particle, cell) into one row per cell occupant
                iRep = np.repeat(src, counts)
                base = np.repeat(starts - np.cumsum(counts) + counts, counts)
                jRep = self._sortedIndices[base + np.arange(total)].astype(np.int64)

                diff = points[iRep] - points[jRep]
                distSq = np.sum(diff * diff, axis=1)
                keep = distSq < radiusSq
                if not includeSelf:
                    keep &= iRep != jRep
                if np.any(keep):
                    iChunks.append(iRep[keep])
                    jChunks.append(jRep[keep])

        if not iChunks:
            return empty
        return (np.concatenate(iChunks), np.concatenate(jChunks))

    ######################################################################
    # -- Diagnostics -- #
    ######################################################################

    def getStats(self) -> dict:
        '''
        Bucket occupancy statistics.

        Returns:
        --------
        dict : totalParticles, occupiedCells, maxCellSize, avgCellSize, totalCells
        '''
        self._compact()
        counts = np.diff(self._cellStart)
        occupied = counts[counts > 0]
        occupiedCells = int(len(occupied))

        return {
            'totalParticles': int(counts.sum()),
            'occupiedCells': occupiedCells,
            'maxCellSize': int(occupied.max()) if occupiedCells > 0 else 0,
            'avgCellSize': float(occupied.mean()) if occupiedCells > 0 else 0.0,
            'totalCells': self.totalCells,
        }

    ######################################################################
    # -- Internals -- #
    ######################################################################

    def _cellIndexBatch(self, positions: np.ndarray) -> np.ndarray:
        '''Flat cell index for every position.'''
        grid = np.floor(positions / self._cellSize + self._offset).astype(np.int64)
        gx = np.clip(grid[:, 0], 0, self._gridWidth - 1)
        gy = np.clip(grid[:, 1], 0, self._gridHeight - 1)
        return (gy * self._gridWidth + gx).astype(np.int32)

    def _compact(self) -> None:
        '''Counting-sort inserted particles into contiguous per-cell runs.'''
        if not self._dirty:
            return

        inserted = np.flatnonzero(self._cellOf >= 0)
        cells = self._cellOf[inserted]
        order = np.argsort(cells, kind='stable')
        self._sortedIndices = inserted[order].astype(np.int32)

        counts = np.bincount(cells, minlength=self.totalCells)
        self._cellStart[0] = 0
        np.cumsum(counts, out=self._cellStart[1:])
        self._dirty = False

    def _grow(self, required: int) -> None:
        '''Double slot capacity until it holds `required` particles.'''
        capacity = len(self._cellOf)
        while capacity < required:
            capacity *= 2

        cellOf = np.full(capacity, -1, dtype=np.int32)
        cellOf[:len(self._cellOf)] = self._cellOf
        points = np.zeros((capacity, 2), dtype=np.float32)
        points[:len(self._points)] = self._points

        self._cellOf = cellOf
        self._points = points
