# -- Visualization Subpackage -- #

'''
Plotly figures of oil simulation frames and step diagnostics.
'''

from OilSim.visualization.diagnosticPlots import createFramePlot, createDiagnosticsDashboard
