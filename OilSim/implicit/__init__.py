# -- Implicit Solver Package -- #

'''
Implicit velocity integration for the oil system.

A row-sequential CSR matrix builder, a block-Jacobi preconditioned
Conjugate Gradient solver, and the ImplicitSolver that assembles
the backward-Euler velocity system.

Sean Bowman [10/19/2026]
'''

from OilSim.implicit.growableBuffer import GrowableBuffer
from OilSim.implicit.sparseMatrix import SparseMatrix
from OilSim.implicit.conjugateGradient import CgResult, ConjugateGradient, BlockJacobiPreconditioner
from OilSim.implicit.implicitSolver import ImplicitSolver, ImplicitSolverStats
