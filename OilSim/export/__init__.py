# -- Export Package -- #

'''
Data export utilities for oil simulation results.

Exports render snapshots and step diagnostics as JSON for an
external point-sprite viewer.

Sean Bowman [10/19/2026]
'''

from OilSim.export.frameExporter import FrameExporter
