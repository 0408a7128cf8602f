from __future__ import annotations
import copy
from dataclasses import dataclass
import numpy as np
import scipy.linalg
import scipy.sparse as sp
import scipy.sparse.linalg as spla


@dataclass(slots=True)
class Spectrum:
    """Eigenpairs at one mesh vertex, sorted by the real part of the energies."""
    energies: np.ndarray
    states: np.ndarray

    @property
    def size(self) -> int:
        return self.energies.size


def _sorted(energies, states) -> Spectrum:
    energies = np.asarray(energies)
    order = np.argsort(np.real(energies), kind="stable")
    return Spectrum(energies[order], np.asarray(states)[:, order])


class DenseEigensolver:
    """Full diagonalization; ``eigh`` for Hermitian matrices, ``eig`` otherwise."""

    def __init__(self, hermitian: bool | None = None, atol: float = 1e-12):
        self.hermitian = hermitian
        self.atol = atol

    def __call__(self, matrix):
        matrix = matrix.toarray() if sp.issparse(matrix) else np.atleast_2d(np.asarray(matrix))
        hermitian = self.hermitian
        if hermitian is None:
            hermitian = np.allclose(matrix, matrix.conj().T, atol=self.atol)
        if hermitian:
            return np.linalg.eigh(matrix)
        return scipy.linalg.eig(matrix)


class SparseEigensolver:
    """A few eigenpairs closest to ``sigma`` via ARPACK shift-invert."""

    def __init__(self, nev: int = 6, sigma: float = 0.0, **kwargs):
        self.nev = nev
        self.sigma = sigma
        self.kwargs = kwargs

    def __call__(self, matrix):
        matrix = sp.csc_matrix(matrix)
        if self.nev >= matrix.shape[0] - 1:
            raise ValueError(f"nev={self.nev} too large for a {matrix.shape[0]}-dimensional matrix, use DenseEigensolver")
        return spla.eigsh(matrix, k=self.nev, sigma=self.sigma, **self.kwargs)


class AppliedEigensolver:
    """Mesh vertex -> :class:`Spectrum`, composing mapping, postlift and diagonalizer.

    Parameters
    ----------
    hamiltonian : callable
        ``phases -> matrix``; a scalar result is treated as a 1x1 matrix.
    diagonalizer : callable, optional
        ``matrix -> (energies, states)``. Defaults to :class:`DenseEigensolver`.
    mapping : callable, optional
        Mesh vertex to Bloch phases.
    postlift : callable, optional
        Applied to the output of ``mapping``.
    """

    def __init__(self, hamiltonian, diagonalizer=None, mapping=None, postlift=None):
        self.hamiltonian = hamiltonian
        self.diagonalizer = DenseEigensolver() if diagonalizer is None else diagonalizer
        self.mapping = mapping
        self.postlift = postlift

    def phases(self, vertex):
        phases = vertex if self.mapping is None else self.mapping(vertex)
        if self.postlift is not None:
            phases = self.postlift(phases)
        return phases

    def matrix(self, vertex):
        mat = self.hamiltonian(self.phases(vertex))
        if sp.issparse(mat):
            return mat
        return np.atleast_2d(np.asarray(mat))

    def __call__(self, vertex) -> Spectrum:
        energies, states = self.diagonalizer(self.matrix(vertex))
        return _sorted(energies, states)

    def minimal_callsafe_copy(self) -> "AppliedEigensolver":
        return AppliedEigensolver(self.hamiltonian, copy.deepcopy(self.diagonalizer), self.mapping, self.postlift)
