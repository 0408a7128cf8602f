"""Data containers for nearest-cell lead Hamiltonians."""
from __future__ import annotations
from dataclasses import dataclass
import numpy as np
import scipy.sparse as sp


def _dense(mat) -> np.ndarray:
    return mat.toarray() if sp.issparse(mat) else np.atleast_2d(np.asarray(mat))


@dataclass(slots=True)
class HamiltonianBlocks:
    """Block-tridiagonal pieces of a translation-invariant quasi-1D lead.

    Hl: hopping from cell i into cell i-1 (h_-1)
    H0: on-site block of one unit cell
    Hr: hopping from cell i into cell i+1 (h_+1)
    """
    Hl: np.ndarray
    H0: np.ndarray
    Hr: np.ndarray
    atol: float = 1e-12

    def validate(self) -> None:
        n = self.dim
        for name in ("Hl", "H0", "Hr"):
            shape = _dense(getattr(self, name)).shape
            if shape != (n, n):
                raise ValueError(f"{name} shape {shape} != ({n},{n})")
        if not np.allclose(_dense(self.Hl).conj().T, _dense(self.Hr), atol=self.atol):
            raise ValueError("Hl must equal Hr^dagger for a Hermitian lead")
        if not np.allclose(_dense(self.H0).conj().T, _dense(self.H0), atol=self.atol):
            raise ValueError("H0 must be Hermitian")

    @property
    def dim(self) -> int:
        return _dense(self.H0).shape[0]

    def nearest_cell_harmonics(self):
        self.validate()
        return tuple(sp.csc_matrix(_dense(m)) for m in (self.Hl, self.H0, self.Hr))

    def to_hamiltonian(self):
        from .hamiltonian_core import Hamiltonian
        return Hamiltonian.from_blocks(self)
