"""Non-equilibrium Green's function (NEGF) utilities: Schur leads, contacts and T-matrices."""

from .gf import (
    CellOrbitals,
    GreenFunction,
    GreenSolution,
    Schur,
    SchurGreenSlicer,
    SparseLU,
    TMatrixSlicer,
    Conductance,
    apply,
    conductance,
    greenfunction,
    green_solver_from_config,
)
from .self_energy import MatrixSelfEnergy, SchurFactorsSolver, SchurLeadSelfEnergy

__all__ = [
    "CellOrbitals",
    "GreenFunction",
    "GreenSolution",
    "Schur",
    "SchurGreenSlicer",
    "SparseLU",
    "TMatrixSlicer",
    "Conductance",
    "apply",
    "conductance",
    "greenfunction",
    "green_solver_from_config",
    "MatrixSelfEnergy",
    "SchurFactorsSolver",
    "SchurLeadSelfEnergy",
]
