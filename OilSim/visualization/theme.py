# -- Visualization Theme -- #

'''
Plot styling shared by the OilSim frame and diagnostics figures.

Sean Bowman [10/19/2026]
'''

TEMPLATE = 'plotly_dark'

#--------------------------------------------------------------------#
# -- Frame Plot -- #
#--------------------------------------------------------------------#

# Dashed container outline and blob centroid markers
CONTAINER_LINE = '#888888'
CENTROID_MARKER = '#E0E0E0'

# Per-blob colors, largest blob first (amber matches the oil color)
BLOB_COLORS = ['#FFA726', '#42A5F5', '#66BB6A', '#EF5350', '#AB47BC', '#26C6DA']

PARTICLE_SIZE = 6
FRAME_HEIGHT = 600
FRAME_WIDTH = 640

#--------------------------------------------------------------------#
# -- Diagnostics Dashboard -- #
#--------------------------------------------------------------------#

# One color per recorded history series
SERIES_COLORS = {
    'kineticEnergy': '#FFA726',
    'centroidDistance': '#42A5F5',
    'maxVelocity': '#EF5350',
    'cgIterations': '#66BB6A',
    'cgResidual': '#AB47BC',
}

DASHBOARD_HEIGHT = 700
