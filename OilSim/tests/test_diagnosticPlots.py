# -- Diagnostic Plot Tests -- #

'''
Frame and dashboard figures built from snapshots and step history.

Sean Bowman [10/19/2026]
'''

from __future__ import annotations

import numpy as np

from OilSim.sph.protocols import RenderBuffers
from OilSim.sph.blobDetection import BlobCluster
from OilSim.visualization import theme
from OilSim.visualization.diagnosticPlots import createFramePlot, createDiagnosticsDashboard


def makeBuffers() -> RenderBuffers:
    return RenderBuffers(
        positions=np.array([[-0.2, 0.0], [-0.18, 0.0], [0.2, 0.0], [0.22, 0.0]], dtype=np.float32),
        colors=np.tile(np.array([0.425, 0.275, 0.075, 0.5], dtype=np.float32), (4, 1)),
        densities=np.full(4, 10.0, dtype=np.float32),
    )


def testFramePlotUsesSnapshotColors():
    fig = createFramePlot(makeBuffers(), containerRadius=0.48)

    container, particles = fig.data
    assert container.line.color == theme.CONTAINER_LINE
    # Premultiplied colors are un-premultiplied for display
    assert particles.marker.color[0] == 'rgba(216,140,38,0.500)'
    assert fig.layout.height == theme.FRAME_HEIGHT
    assert fig.layout.width == theme.FRAME_WIDTH


def testFramePlotColorsBlobs():
    clusters = [
        BlobCluster(indices=np.array([0, 1]), centroid=np.array([-0.19, 0.0]), radius=0.01),
        BlobCluster(indices=np.array([2, 3]), centroid=np.array([0.21, 0.0]), radius=0.01),
    ]
    fig = createFramePlot(makeBuffers(), containerRadius=0.48, clusters=clusters)

    # Container, then a member trace and a centroid marker per blob
    assert len(fig.data) == 5
    assert fig.data[1].marker.color == theme.BLOB_COLORS[0]
    assert fig.data[3].marker.color == theme.BLOB_COLORS[1]
    assert fig.data[2].marker.color == theme.CENTROID_MARKER
    assert '4 particles' in fig.layout.title.text


def testDashboardSeries():
    history = {
        'frames': [1, 2, 3],
        'times': [0.008, 0.016, 0.024],
        'kineticEnergy': [1e-4, 2e-4, 1.5e-4],
        'maxVelocity': [0.1, 0.12, 0.11],
        'centroidDistance': [0.01, 0.01, 0.009],
        'cgIterations': [0, 0, 0],
        'cgResidual': [0.0, 0.0, 0.0],
    }
    fig = createDiagnosticsDashboard(history)

    colors = [trace.line.color for trace in fig.data]
    assert colors == [
        theme.SERIES_COLORS[key]
        for key in ('kineticEnergy', 'centroidDistance', 'maxVelocity', 'cgIterations', 'cgResidual')
    ]
    # Zero residuals are floored for the log axis
    np.testing.assert_allclose(fig.data[4].y, 1e-12)
    assert fig.layout.yaxis4.type == 'log'
    assert fig.layout.height == theme.DASHBOARD_HEIGHT
