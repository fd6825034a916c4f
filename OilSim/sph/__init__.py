# -- SPH Core Package -- #

'''
SPH building blocks for the oil simulation.

Kernels, neighbor search, particle storage, time integration,
container boundary, blob detection, and the SphOilSystem that
orchestrates them.

Sean Bowman [10/19/2026]
'''

from OilSim.sph.protocols import OilSimConfig, SimulationState, RenderBuffers, VelocitySolver
from OilSim.sph.kernels import CubicSplineKernel, SpikyKernel, ViscosityKernel
from OilSim.sph.neighborSearch import SpatialHashGrid
from OilSim.sph.particles import OilParticleStore
from OilSim.sph.timeIntegration import DampedSymplecticEuler
from OilSim.sph.boundaryHandling import CircularContainer
from OilSim.sph.blobDetection import BlobCluster, BlobClusterDetector
from OilSim.sph.oilSystem import SphOilSystem
