from .slicer import CellOrbitals, ContactBlockStructure, GreenSlicer
from .sparselu import SparseLUGreenSlicer, inverse_green
from .schur_slicer import SchurGreenSlicer
from .tmatrix import TMatrixSlicer
from .solvers import (
    GreenFunction,
    GreenSolution,
    Schur,
    SparseLU,
    apply,
    greenfunction,
    green_solver_from_config,
)
from .observables import Conductance, conductance, transmission

__all__ = [
    "CellOrbitals",
    "ContactBlockStructure",
    "GreenSlicer",
    "SparseLUGreenSlicer",
    "inverse_green",
    "SchurGreenSlicer",
    "TMatrixSlicer",
    "GreenFunction",
    "GreenSolution",
    "Schur",
    "SparseLU",
    "apply",
    "greenfunction",
    "green_solver_from_config",
    "Conductance",
    "conductance",
    "transmission",
]
