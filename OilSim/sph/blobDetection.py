# -- Blob Cluster Detection -- #

'''
Connectivity analysis of the oil particle cloud.

Two particles belong to the same blob when a chain of particles,
each pair closer than the connection distance (splitDistance * h),
links them. Blobs are the connected components of that proximity
graph. Components below a minimum size are treated as stray droplets
and not reported.

Detection is informational: blobs separate on their own once the
thinning-aware cohesion weakens the necks between them, and nothing
here moves particles.

Sean Bowman [10/19/2026]
'''

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
from scipy.sparse import coo_matrix
from scipy.sparse.csgraph import connected_components

from OilSim.sph.neighborSearch import SpatialHashGrid

logger = logging.getLogger(__name__)


######################################################################
# -- Blob Cluster Data -- #
######################################################################

@dataclass
class BlobCluster:
    '''
    One connected blob of particles.

    Parameters:
    -----------
    indices : np.ndarray
        Particle indices in the blob, ascending
    centroid : np.ndarray
        Mean position of the blob, shape (2,)
    radius : float
        Largest distance of a member from the centroid
    '''
    indices: np.ndarray
    centroid: np.ndarray
    radius: float

    @property
    def size(self) -> int:
        '''Number of particles in the blob.'''
        return len(self.indices)


######################################################################
# -- Blob Cluster Detector -- #
######################################################################

class BlobClusterDetector:
    '''
    Finds blobs as connected components of the proximity graph.

    Parameters:
    -----------
    connectionDistance : float
        Particles closer than this are linked
    minClusterSize : int
        Smallest component reported as a blob
    '''

    def __init__(self, connectionDistance: float, minClusterSize: int = 3) -> None:
        self._connectionDistance = connectionDistance
        self._minClusterSize = minClusterSize
        self._lastClusters: list[BlobCluster] = []

    @property
    def connectionDistance(self) -> float:
        return self._connectionDistance

    @property
    def lastClusters(self) -> list[BlobCluster]:
        '''Blobs found by the most recent detection.'''
        return self._lastClusters

    def detect(self, positions: np.ndarray, grid: SpatialHashGrid) -> list[BlobCluster]:
        '''
        Label connected blobs.

        Parameters:
        -----------
        positions : np.ndarray
            Particle positions, shape (N, 2)
        grid : SpatialHashGrid
            Neighbor index already built over `positions`

        Returns:
        --------
        list[BlobCluster] : Blobs of at least minClusterSize particles,
            largest first
        '''
        n = positions.shape[0]
        if n < self._minClusterSize:
            self._lastClusters = []
            return self._lastClusters

        iIdx, jIdx = grid.queryPairs(self._connectionDistance)
        adjacency = coo_matrix(
            (np.ones(len(iIdx), dtype=np.int8), (iIdx, jIdx)), shape=(n, n)
        ).tocsr()
        nComponents, labels = connected_components(adjacency, directed=False)

        sizes = np.bincount(labels, minlength=nComponents)
        clusters: list[BlobCluster] = []
        for label in np.flatnonzero(sizes >= self._minClusterSize):
            members = np.flatnonzero(labels == label)
            memberPositions = positions[members].astype(np.float64)
            centroid = memberPositions.mean(axis=0)
            radius = float(np.max(np.linalg.norm(memberPositions - centroid, axis=1)))
            clusters.append(BlobCluster(indices=members, centroid=centroid, radius=radius))

        clusters.sort(key=lambda c: c.size, reverse=True)

        if len(clusters) > 1:
            logger.debug(
                'Detected %d blob clusters (sizes: %s)',
                len(clusters), ', '.join(str(c.size) for c in clusters),
            )

        self._lastClusters = clusters
        return clusters
