"""Contact self-energies and their blocks in inverse-Green convention."""
from __future__ import annotations
import copy
import numpy as np
from ..gf.slicer import cellorbs
from ..utils.common import MatrixBlock, to_ndarray
from .schur import SchurFactorsSolver, selfenergy


class MatrixSelfEnergy:
    """Regular self-energy given as a matrix or a function ``omega -> matrix``."""
    extended = False

    def __init__(self, sigma, orbitals):
        self.sigma = sigma
        self.orbitals = cellorbs(orbitals)

    def matrix(self, omega) -> np.ndarray:
        return to_ndarray(self.sigma(omega) if callable(self.sigma) else self.sigma)

    def blocks(self, omega, inds, extoffset: int):
        sigma = self.matrix(omega)
        if sigma.shape != (len(inds), len(inds)):
            raise ValueError(f"Self-energy of shape {sigma.shape} does not match {len(inds)} contact orbitals")
        return [MatrixBlock(-sigma, inds, inds)], extoffset

    def minimal_callsafe_copy(self):
        return self


class SchurLeadSelfEnergy:
    """Semi-infinite nearest-cell lead attached to the given orbitals.

    ``side="right"`` attaches a lead extending to the right (its right surface
    orbitals couple to ``orbitals``), ``side="left"`` one extending to the left.
    With ``extended=True`` the self-energy is kept as auxiliary-orbital blocks
    ``(Vre, gee^-1, Ver)`` instead of being materialized.
    """

    def __init__(self, lead, orbitals, side: str = "right", extended: bool = False, shift: float = 1.0):
        if side not in ("right", "left"):
            raise ValueError(f"side must be 'right' or 'left', got {side!r}")
        self.solver = lead if isinstance(lead, SchurFactorsSolver) else SchurFactorsSolver(lead, shift)
        self.side = side
        self.extended = extended
        self.orbitals = cellorbs(orbitals)
        surface = self.solver.rinds if side == "right" else self.solver.linds
        if self.orbitals.orbitals is not None and len(self.orbitals.orbitals) != surface.size:
            raise ValueError(f"Lead surface has {surface.size} orbitals, contact has {len(self.orbitals.orbitals)}")
        self.nsurface = surface.size

    def factors(self, omega):
        rightward, leftward = self.solver(omega)
        triple = rightward if self.side == "right" else leftward
        return tuple(np.array(m, copy=True) for m in triple)

    def matrix(self, omega) -> np.ndarray:
        return selfenergy(self.factors(omega))

    def blocks(self, omega, inds, extoffset: int):
        if len(inds) != self.nsurface:
            raise ValueError(f"Lead surface has {self.nsurface} orbitals, contact has {len(inds)}")
        if not self.extended:
            return [MatrixBlock(-self.matrix(omega), inds, inds)], extoffset
        first, second, third = self.factors(omega)
        ext = np.arange(extoffset, extoffset + second.shape[0])
        blocks = [MatrixBlock(first, inds, ext), MatrixBlock(second, ext, ext), MatrixBlock(third, ext, inds)]
        return blocks, extoffset + ext.size

    def minimal_callsafe_copy(self):
        new = copy.copy(self)
        new.solver = self.solver.minimal_callsafe_copy()
        return new


def selfenergy_blocks(selfenergies, omega, contact_inds, extoffset: int):
    """Blocks of all ``selfenergies`` at ``omega``; auxiliary orbitals start at ``extoffset``."""
    blocks = []
    for se, inds in zip(selfenergies, contact_inds):
        new, extoffset = se.blocks(omega, inds, extoffset)
        blocks.extend(new)
    return blocks
