# -- Physical and Numerical Constants for the SPH Oil Simulation -- #

'''
Default parameters for the cohesive oil-blob SPH model.

The model lives in a unit-less 2D world: a circular container of
radius ~0.5 centered on the origin. Values were tuned for visual
blob behavior at interactive frame rates, not physical accuracy.

References:
-----------
Muller et al. (2003) -- Particle-Based Fluid Simulation for
    Interactive Applications
Monaghan (1994) -- Simulating free surface flows with SPH

Sean Bowman [10/19/2026]
'''

#--------------------------------------------------------------------#
# -- Container and Capacity -- #
#--------------------------------------------------------------------#

# Radius of the circular container centered at the origin
containerRadius: float = 0.48

# Storage capacity of the particle arrays
maxParticles: int = 50000

# Hard spawn ceiling
particleCeiling: int = 5000

#--------------------------------------------------------------------#
# -- SPH Fluid Properties -- #
#--------------------------------------------------------------------#

# Smoothing radius h
smoothingRadius: float = 0.14

# Rest density rho_0
restDensity: float = 1000.0

# Mass of a single particle
particleMass: float = 0.02

# Viscosity coefficient mu
viscosity: float = 0.08

# Tait equation of state stiffness B and exponent gamma
eosStiffness: float = 6.0
gamma: float = 7.0

# Density floor as a fraction of rest density
densityFloorRatio: float = 0.01

#--------------------------------------------------------------------#
# -- Cohesion -- #
#--------------------------------------------------------------------#

# Short-range cohesion strength and radius (in units of h)
shortCohesion: float = 4.0
shortRadiusScale: float = 1.5

# No cohesion below this separation (in units of h)
minDistScale: float = 0.35

# Long-range cohesion strength and absolute support radius
longCohesion: float = 1.0
longCohesionRadius: float = 0.35

# Long-range pass runs every N frames
longRangeInterval: int = 3

# Pairs farther apart than splitDistance * h belong to different blobs
splitDistance: float = 2.0

# Thinning detection
thinningThreshold: float = 0.6
minNeighborsForThick: int = 8
cohesionReductionInThin: float = 0.2

#--------------------------------------------------------------------#
# -- External Forces -- #
#--------------------------------------------------------------------#

# Radial pull toward the container center (acceleration)
radialGravity: float = 0.02

# Tangential force scale applied to rotation * distance * mass
rotationForceScale: float = 500.0

# Drag toward sampled grid velocities
gridDragCoeff: float = 1.3
neighborDragNMin: int = 3
neighborDragNMax: int = 10

# Per-particle force magnitude clamp (0 disables)
forceClampMax: float = 4.0

#--------------------------------------------------------------------#
# -- Integration -- #
#--------------------------------------------------------------------#

# Largest timestep accepted by a single update
maxTimeStep: float = 0.008

# Per-step linear velocity damping factor
dampingFactor: float = 0.94

# Quadratic speed damping: v *= 1 / (1 + k * |v|)
quadraticDampingK: float = 2.0

# Speed cap |v| <= maxSpeed
maxSpeed: float = 0.6

# Velocity restitution when reflecting off the container wall
restitution: float = 0.5

#--------------------------------------------------------------------#
# -- Positional Cohesion (PBD-style) -- #
#--------------------------------------------------------------------#

posCohesionCoeff: float = 0.12
maxPosNudge: float = 0.004
posCohesionRadiusScale: float = 1.0
posCohesionBoostFrames: int = 120
posCohesionBoostCoeff: float = 0.35
posCohesionBoostIters: int = 3

#--------------------------------------------------------------------#
# -- Thermal -- #
#--------------------------------------------------------------------#

roomTemperature: float = 20.0
spawnTemperature: float = 60.0
thermalConductivity: float = 0.1
coolingRate: float = 0.001
marangoniStrength: float = 5.0
minTemperature: float = -20.0
maxTemperature: float = 200.0

#--------------------------------------------------------------------#
# -- Blob Cluster Detection -- #
#--------------------------------------------------------------------#

splitCheckInterval: int = 30
minClusterSize: int = 3

#--------------------------------------------------------------------#
# -- Implicit Solver -- #
#--------------------------------------------------------------------#

cgMaxIterations: int = 50
cgTolerance: float = 1e-4

# Effective stiffness of the cohesion velocity coupling
implicitCohesionStiffness: float = 20000.0

# Entries below this magnitude are not stored in the sparse matrix
sparseDropTolerance: float = 1e-12

# Estimated non-zeros per particle when pre-sizing the system matrix
estimatedNonZerosPerParticle: int = 200

# A run of non-converged solves is warned about on its first failure
# and then every N consecutive failures
nonConvergenceLogInterval: int = 60
