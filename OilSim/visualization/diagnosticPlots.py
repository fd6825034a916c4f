# -- Oil Simulation Diagnostic Plots -- #

'''
Plotly figures for inspecting oil simulation runs.

createFramePlot draws one render snapshot inside the container
outline, optionally colored by blob cluster. createDiagnosticsDashboard
plots the per-step history recorded by FrameExporter: kinetic energy,
centroid drift, peak speed, and implicit CG convergence.

Sean Bowman [10/19/2026]
'''

from __future__ import annotations

import numpy as np
import plotly.graph_objects as go
from plotly.subplots import make_subplots

from OilSim.sph.protocols import RenderBuffers
from OilSim.sph.blobDetection import BlobCluster
from OilSim.visualization import theme


def _rgbaStrings(colors: np.ndarray) -> list[str]:
    '''Premultiplied RGBA floats to CSS rgba() strings.'''
    alpha = np.clip(colors[:, 3], 1e-6, 1.0)
    rgb = np.clip(colors[:, :3] / alpha[:, np.newaxis], 0.0, 1.0) * 255.0
    return [
        f'rgba({int(r)},{int(g)},{int(b)},{a:.3f})'
        for (r, g, b), a in zip(rgb, colors[:, 3])
    ]


def createFramePlot(
    buffers: RenderBuffers,
    containerRadius: float,
    clusters: list[BlobCluster] | None = None,
    title: str = 'Oil Blob Frame',
) -> go.Figure:
    '''
    Scatter plot of particle positions inside the container.

    Parameters:
    -----------
    buffers : RenderBuffers
        Snapshot to draw
    containerRadius : float
        Radius of the container outline
    clusters : list[BlobCluster] | None
        When given, particles are colored per blob and centroids marked;
        otherwise the particle colors from the snapshot are used
    title : str
        Figure title

    Returns:
    --------
    go.Figure : Plotly figure
    '''
    fig = go.Figure()

    theta = np.linspace(0.0, 2.0 * np.pi, 181)
    fig.add_trace(go.Scatter(
        x=containerRadius * np.cos(theta), y=containerRadius * np.sin(theta),
        mode='lines', name='Container',
        line=dict(color=theme.CONTAINER_LINE, width=1, dash='dash'),
    ))

    positions = buffers.positions
    if clusters:
        for k, cluster in enumerate(clusters):
            color = theme.BLOB_COLORS[k % len(theme.BLOB_COLORS)]
            members = positions[cluster.indices]
            fig.add_trace(go.Scatter(
                x=members[:, 0], y=members[:, 1], mode='markers',
                name=f'Blob {k + 1} ({cluster.size})',
                marker=dict(color=color, size=theme.PARTICLE_SIZE),
            ))
            fig.add_trace(go.Scatter(
                x=[cluster.centroid[0]], y=[cluster.centroid[1]], mode='markers',
                marker=dict(color=theme.CENTROID_MARKER, size=10, symbol='x'),
                showlegend=False,
            ))
    else:
        fig.add_trace(go.Scatter(
            x=positions[:, 0], y=positions[:, 1], mode='markers',
            name='Particles',
            marker=dict(color=_rgbaStrings(buffers.colors), size=theme.PARTICLE_SIZE),
        ))

    limit = 1.05 * containerRadius
    fig.update_xaxes(range=[-limit, limit], title_text='x')
    fig.update_yaxes(range=[-limit, limit], title_text='y', scaleanchor='x', scaleratio=1)
    fig.update_layout(
        title=f'{title} -- {buffers.count} particles',
        template=theme.TEMPLATE,
        height=theme.FRAME_HEIGHT,
        width=theme.FRAME_WIDTH,
    )

    return fig


def createDiagnosticsDashboard(history: dict[str, list], title: str = 'OilSim Step Diagnostics') -> go.Figure:
    '''
    Create a 4-panel diagnostics dashboard.

    Layout:
        Row 1: Kinetic Energy     |  Centroid Drift / Max Speed
        Row 2: CG Iterations      |  CG Residual

    Parameters:
    -----------
    history : dict[str, list]
        FrameExporter.history
    title : str
        Figure title

    Returns:
    --------
    go.Figure : Plotly figure with 4 subplots
    '''
    frames = history['frames']

    fig = make_subplots(
        rows=2, cols=2,
        subplot_titles=(
            'Kinetic Energy', 'Centroid Drift / Max Speed',
            'CG Iterations', 'CG Relative Residual',
        ),
        vertical_spacing=0.12,
        horizontal_spacing=0.08,
    )

    ######################################################################
    # Row 1, Col 1: Kinetic Energy
    ######################################################################
    fig.add_trace(go.Scatter(x=frames, y=history['kineticEnergy'], mode='lines',
                             name='KE', line=dict(color=theme.SERIES_COLORS['kineticEnergy'], width=2)),
                  row=1, col=1)
    fig.update_xaxes(title_text='Frame', row=1, col=1)

    ######################################################################
    # Row 1, Col 2: Centroid drift and peak speed
    ######################################################################
    fig.add_trace(go.Scatter(x=frames, y=history['centroidDistance'], mode='lines',
                             name='Centroid distance', line=dict(color=theme.SERIES_COLORS['centroidDistance'], width=2)),
                  row=1, col=2)
    fig.add_trace(go.Scatter(x=frames, y=history['maxVelocity'], mode='lines',
                             name='Max speed', line=dict(color=theme.SERIES_COLORS['maxVelocity'], width=1)),
                  row=1, col=2)
    fig.update_xaxes(title_text='Frame', row=1, col=2)

    ######################################################################
    # Row 2: Implicit solver convergence
    ######################################################################
    fig.add_trace(go.Scatter(x=frames, y=history['cgIterations'], mode='lines',
                             name='CG iterations', line=dict(color=theme.SERIES_COLORS['cgIterations'], width=2)),
                  row=2, col=1)
    fig.update_xaxes(title_text='Frame', row=2, col=1)

    residuals = np.maximum(np.asarray(history['cgResidual'], dtype=float), 1e-12)
    fig.add_trace(go.Scatter(x=frames, y=residuals, mode='lines',
                             name='CG residual', line=dict(color=theme.SERIES_COLORS['cgResidual'], width=2)),
                  row=2, col=2)
    fig.update_xaxes(title_text='Frame', row=2, col=2)
    fig.update_yaxes(type='log', row=2, col=2)

    fig.update_layout(
        title=title,
        template=theme.TEMPLATE,
        height=theme.DASHBOARD_HEIGHT,
    )

    return fig
