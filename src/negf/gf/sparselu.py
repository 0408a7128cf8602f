"""Direct sparse-LU Green's function of a finite (0-D) system."""
from __future__ import annotations
from functools import cached_property
import numpy as np
import scipy.sparse as sp
from scipy.sparse.linalg import splu
from ..utils.common import assemble_sparse
from .slicer import GreenSlicer


def inverse_green(omega, h0, blocks=(), extended: int = 0) -> sp.csc_matrix:
    """``omega - h0`` padded by ``extended`` auxiliary orbitals plus the self-energy ``blocks``.

    ``blocks`` are in inverse-Green convention: a regular self-energy enters
    as ``-Sigma``, an extended one as its ``(Vre, gee^-1, Ver)`` blocks.
    """
    n = h0.shape[0]
    size = n + extended
    base = omega * sp.identity(n, dtype=complex, format="csc") - sp.csc_matrix(h0, dtype=complex)
    if extended:
        base = sp.block_diag((base, sp.csc_matrix((extended, extended), dtype=complex)), format="csc")
    return sp.csc_matrix(base + assemble_sparse(blocks, size))


class SparseLUGreenSlicer(GreenSlicer):
    """Green's function from an LU factorization of an inverse Green's matrix.

    Only the first ``norbitals`` rows and columns are physical; the rest are
    auxiliary orbitals of extended self-energies.
    """

    def __init__(self, invgreen, norbitals: int | None = None, contact_inds=None):
        invgreen = sp.csc_matrix(invgreen, dtype=complex)
        self.size = invgreen.shape[0]
        self.norbitals = self.size if norbitals is None else norbitals
        self.contact_inds = [] if contact_inds is None else list(contact_inds)
        try:
            self.lu = splu(invgreen)
        except RuntimeError as err:
            raise np.linalg.LinAlgError(f"Singular inverse Green's function: {err}") from err

    def _pad(self, rhs) -> np.ndarray:
        rhs = np.asarray(rhs, dtype=complex)
        if rhs.ndim == 1:
            rhs = rhs[:, None]
        if rhs.shape[0] == self.size:
            return rhs
        out = np.zeros((self.size, rhs.shape[1]), dtype=complex)
        out[:rhs.shape[0]] = rhs
        return out

    def solve(self, rhs) -> np.ndarray:
        """``G @ rhs`` on the physical orbitals."""
        return self.lu.solve(self._pad(rhs))[:self.norbitals]

    def solve_adjoint(self, rhs) -> np.ndarray:
        """``rhs^dagger @ G`` on the physical orbitals."""
        return self.lu.solve(self._pad(rhs), trans="H")[:self.norbitals].conj().T

    def block(self, rows, cols) -> np.ndarray:
        rows = np.asarray(rows, dtype=int)
        cols = np.asarray(cols, dtype=int)
        rhs = np.zeros((self.size, cols.size), dtype=complex)
        rhs[cols, np.arange(cols.size)] = 1
        return self.lu.solve(rhs)[rows]

    @cached_property
    def full(self) -> np.ndarray:
        return self.block(np.arange(self.norbitals), np.arange(self.norbitals))

    def slice(self, i, j) -> np.ndarray:
        if i.cell != 0 or j.cell != 0:
            raise IndexError(f"A 0-D Green's function only has cell 0, got cells {i.cell} and {j.cell}")
        return self.block(i.indices(self.norbitals), j.indices(self.norbitals))

    def contact_view(self, a: int, b: int) -> np.ndarray:
        return self.block(self.contact_inds[a], self.contact_inds[b])
