"""Green's function solver variants and the Green function / solution front-ends.

A solver variant is a small immutable description (``SparseLU()``,
``Schur(shift, boundary)``). :func:`apply` binds it to a Hamiltonian and its
contacts, producing an applied solver whose ``evaluate(omega, blocks)``
returns a slicer.
"""
from __future__ import annotations
import copy
import logging
import math
from dataclasses import dataclass
import numpy as np
import scipy.sparse as sp
from hamiltonian.base.aux import yaml_parser
from ..self_energy.contacts import selfenergy_blocks
from ..self_energy.schur import SchurFactorsSolver
from .schur_slicer import SchurGreenSlicer
from .slicer import ContactBlockStructure, cellorbs
from .sparselu import SparseLUGreenSlicer, inverse_green
from .tmatrix import TMatrixSlicer


@dataclass(frozen=True, slots=True)
class SparseLU:
    """Direct sparse factorization of a finite (0-D) system."""


@dataclass(frozen=True, slots=True)
class Schur:
    """Nearest-cell 1-D lead; semi-infinite when ``boundary`` is finite."""
    shift: float = 1.0
    boundary: float = math.inf


def _latdim(hamiltonian) -> int:
    if sp.issparse(hamiltonian) or isinstance(hamiltonian, np.ndarray):
        return 0
    if isinstance(hamiltonian, tuple):
        return 1
    return getattr(hamiltonian, "latdim", 1)


class AppliedSparseLUGreenSolver:

    def __init__(self, hamiltonian, contacts=()):
        if _latdim(hamiltonian) != 0:
            raise ValueError(f"SparseLU needs a 0-D Hamiltonian, got lattice dimension {_latdim(hamiltonian)}")
        h0 = hamiltonian if sp.issparse(hamiltonian) or isinstance(hamiltonian, np.ndarray) else hamiltonian.unitcell()
        self.h0 = sp.csc_matrix(h0, dtype=complex)
        self.norbitals = self.h0.shape[0]
        for c in contacts:
            if c.orbitals.cell != 0:
                raise ValueError(f"Contacts of a 0-D system must sit in cell 0, got cell {c.orbitals.cell}")
        self.contact_inds = [c.orbitals.indices(self.norbitals) for c in contacts]
        self.extoffset = self.norbitals

    def evaluate(self, omega, blocks) -> SparseLUGreenSlicer:
        size = max([self.norbitals] + [b.extent for b in blocks])
        invgreen = inverse_green(omega, self.h0, blocks, size - self.norbitals)
        return SparseLUGreenSlicer(invgreen, self.norbitals, self.contact_inds)

    def minimal_callsafe_copy(self):
        return self


class AppliedSchurGreenSolver:

    def __init__(self, hamiltonian, contacts=(), shift: float = 1.0, boundary: float = math.inf):
        self.fsolver = SchurFactorsSolver(hamiltonian, shift)
        self.boundary = boundary
        self.norbitals = self.fsolver.norbitals
        self.structure = ContactBlockStructure([c.orbitals for c in contacts], self.norbitals)
        self.contact_inds = self.structure.contact_inds
        self.extoffset = self.structure.norbitals

    def evaluate(self, omega, blocks):
        g0 = SchurGreenSlicer(omega, self.fsolver, self.boundary)
        if not self.structure.ncontacts:
            return g0
        return TMatrixSlicer(g0, blocks, self.structure)

    def minimal_callsafe_copy(self):
        new = copy.copy(self)
        new.fsolver = self.fsolver.minimal_callsafe_copy()
        return new


def apply(solver, hamiltonian, contacts=()):
    """Bind a solver variant to ``hamiltonian`` and ``contacts``."""
    if isinstance(solver, SparseLU):
        return AppliedSparseLUGreenSolver(hamiltonian, contacts)
    elif isinstance(solver, Schur):
        return AppliedSchurGreenSolver(hamiltonian, contacts, solver.shift, solver.boundary)
    raise TypeError(f"Unknown Green solver {solver!r}, expected SparseLU() or Schur(...)")


def green_solver_from_config(source):
    """Solver variant from a mapping such as ``{solver: schur, shift: 0.5, boundary: 0}``."""
    cfg = dict(yaml_parser(source))
    name = str(cfg.pop("solver", "schur")).lower()
    if name == "sparselu":
        if cfg:
            raise ValueError(f"SparseLU takes no options, got {sorted(cfg)}")
        return SparseLU()
    if name == "schur":
        unknown = set(cfg) - {"shift", "boundary"}
        if unknown:
            raise ValueError(f"Unknown Schur options: {sorted(unknown)}")
        return Schur(float(cfg.get("shift", 1.0)), float(cfg.get("boundary", math.inf)))
    raise ValueError(f"Unknown Green solver {name!r}, expected 'sparselu' or 'schur'")


class GreenSolution:
    """Green's function at one frequency.

    ``solution[a, b]`` with integers returns the block between contacts ``a``
    and ``b``; with :class:`CellOrbitals` (or ``(cell, orbitals)`` pairs) it
    returns the block between arbitrary orbitals.
    """

    def __init__(self, omega, slicer, contacts, blocks):
        self.omega = omega
        self.slicer = slicer
        self.contacts = contacts
        self.blocks = blocks

    def __getitem__(self, key):
        i, j = key
        if isinstance(i, (int, np.integer)) and isinstance(j, (int, np.integer)):
            if not (0 <= i < len(self.contacts) and 0 <= j < len(self.contacts)):
                raise IndexError(f"Contact pair ({i}, {j}) out of range, there are {len(self.contacts)} contacts")
            return self.slicer.contact_view(int(i), int(j))
        return self.slicer.slice(cellorbs(i), cellorbs(j))

    def selfenergy(self, a: int) -> np.ndarray:
        return self.contacts[a].matrix(self.omega)


class GreenFunction:

    def __init__(self, hamiltonian, solver, contacts=()):
        self.hamiltonian = hamiltonian
        self.solver = solver
        self.contacts = tuple(contacts)
        self.applied = apply(solver, hamiltonian, self.contacts)

    def __call__(self, omega) -> GreenSolution:
        blocks = selfenergy_blocks(self.contacts, omega, self.applied.contact_inds, self.applied.extoffset)
        slicer = self.applied.evaluate(omega, blocks)
        logging.debug(f"Green's function at omega={omega}: {len(self.contacts)} contacts, {len(blocks)} blocks")
        return GreenSolution(omega, slicer, self.contacts, blocks)

    def minimal_callsafe_copy(self) -> "GreenFunction":
        new = copy.copy(self)
        new.contacts = tuple(c.minimal_callsafe_copy() for c in self.contacts)
        new.applied = self.applied.minimal_callsafe_copy()
        return new


def greenfunction(hamiltonian, solver=None, contacts=()) -> GreenFunction:
    """Green function with a default solver: SparseLU for 0-D, Schur for 1-D."""
    if solver is None:
        solver = SparseLU() if _latdim(hamiltonian) == 0 else Schur()
    return GreenFunction(hamiltonian, solver, contacts)
