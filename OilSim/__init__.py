# -- OilSim Package -- #

'''
Cohesive oil-blob simulation using Smoothed Particle Hydrodynamics (SPH).

Liquid-light style oil blobs in a circular container: an explicit
SPH force pipeline with two-scale cohesion, an optional implicit
velocity solve (sparse CSR matrix + block-Jacobi CG), blob cluster
detection, frame export, and diagnostic plots.

Sean Bowman [10/19/2026]
'''

__version__ = '0.1.0'

from OilSim.sph.protocols import OilSimConfig, SimulationState, RenderBuffers
from OilSim.sph.oilSystem import SphOilSystem
