# -- Simulation Scenarios Package -- #

'''
Pre-configured oil simulation scenarios.

Each scenario provides initial conditions (spawn layout, seed,
integration mode) for a specific problem.

Sean Bowman [10/19/2026]
'''

from OilSim.scenarios.blobDrop import BlobDropConfig, createBlobDrop
