from __future__ import annotations
import numpy as np
import scipy.linalg
from ..utils.common import assemble_dense
from .slicer import CellOrbitals, ContactBlockStructure, GreenSlicer


class TMatrixSlicer(GreenSlicer):
    """Bare slicer ``g0`` dressed with contact self-energies through a T-matrix.

    The self-energy blocks are in inverse-Green convention on the flat
    contact ordering of ``structure``; auxiliary orbitals of extended blocks
    sit past ``structure.norbitals``. With ``Sigma = -blocks`` (plus identity on
    the auxiliary diagonal) and ``g0`` extended by identity there,

        den = 1 - Sigma g0,   T = den^-1 Sigma,   Gc = g0 den^-1

    restricted to real contact orbitals, and ``G(i, j) = g0(i, j) + g0(i, k) T g0(k, j)``.

    Parameters
    ----------
    g0 : GreenSlicer
        Green's function without contacts.
    blocks : list[MatrixBlock]
        Self-energy blocks of all contacts.
    structure : ContactBlockStructure
        Merged contact orbitals.
    """

    def __init__(self, g0: GreenSlicer, blocks, structure: ContactBlockStructure):
        self.g0 = g0
        self.norbitals = g0.norbitals
        self.structure = structure
        nos = structure.norbitals
        n = max([nos] + [b.extent for b in blocks])
        sigma = -assemble_dense(blocks, n)
        aux = np.arange(nos, n)
        sigma[aux, aux] += 1
        g0mat = np.zeros((n, n), dtype=complex)
        g0mat[:nos, :nos] = self._g0_contacts()
        g0mat[aux, aux] = 1
        den = np.eye(n, dtype=complex) - sigma @ g0mat
        lu = scipy.linalg.lu_factor(den)
        self.tmatrix = scipy.linalg.lu_solve(lu, sigma)[:nos, :nos]
        self.gcontacts = scipy.linalg.lu_solve(lu, g0mat.T, trans=1).T[:nos, :nos]

    def _g0_contacts(self) -> np.ndarray:
        subcells = self.structure.subcells
        return np.block([[self.g0.slice(a, b) for b in subcells] for a in subcells])

    def _g0_to_contacts(self, i: CellOrbitals) -> np.ndarray:
        return np.hstack([self.g0.slice(i, b) for b in self.structure.subcells])

    def _g0_from_contacts(self, j: CellOrbitals) -> np.ndarray:
        return np.vstack([self.g0.slice(a, j) for a in self.structure.subcells])

    def slice(self, i: CellOrbitals, j: CellOrbitals) -> np.ndarray:
        g0ij = self.g0.slice(i, j)
        if self.structure.norbitals == 0:
            return g0ij
        return g0ij + self._g0_to_contacts(i) @ self.tmatrix @ self._g0_from_contacts(j)

    def contact_view(self, a: int, b: int) -> np.ndarray:
        return self.gcontacts[np.ix_(self.structure.contact(a), self.structure.contact(b))]
