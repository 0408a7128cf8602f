from __future__ import annotations
import logging
from collections.abc import Mapping
import numpy as np
import scipy.sparse as sp
from .abstract_interfaces import AbstractHamiltonian


def _normalize_dn(dn) -> tuple:
    if isinstance(dn, (int, np.integer)):
        return (int(dn),)
    return tuple(int(x) for x in dn)


class Hamiltonian(AbstractHamiltonian):
    """Lattice Hamiltonian stored as a set of Bloch harmonics.

    ``harmonics[dn]`` holds the hoppings from a unit cell into the cell displaced
    by ``dn`` (rows belong to the destination cell). The Bloch matrix is

        H(phi) = sum_dn h_dn * exp(-1j * phi . dn)

    Parameters
    ----------
    harmonics : mapping
        ``{dn: matrix}`` with ``dn`` an int (1-D) or a tuple of ints. An empty
        tuple key describes a 0-D system.
    """

    def __init__(self, harmonics: Mapping, atol: float = 1e-12):
        if not harmonics:
            raise ValueError("Hamiltonian needs at least one harmonic")
        self._harmonics = {}
        self.atol = atol
        shape = None
        latdim = None
        for dn, mat in harmonics.items():
            dn = _normalize_dn(dn)
            if latdim is None:
                latdim = len(dn)
            elif len(dn) != latdim:
                raise ValueError(f"Harmonic {dn} has dimension {len(dn)}, expected {latdim}")
            mat = sp.csr_matrix(np.atleast_2d(mat) if not sp.issparse(mat) else mat)
            if mat.shape[0] != mat.shape[1]:
                raise ValueError(f"Harmonic {dn} is not square: {mat.shape}")
            if shape is None:
                shape = mat.shape
            elif mat.shape != shape:
                raise ValueError(f"Harmonic {dn} has shape {mat.shape}, expected {shape}")
            if dn in self._harmonics:
                self._harmonics[dn] = self._harmonics[dn] + mat
            else:
                self._harmonics[dn] = mat
        zero = (0,) * latdim
        if zero not in self._harmonics:
            self._harmonics[zero] = sp.csr_matrix(shape, dtype=complex)
        self._latdim = latdim
        self._norbitals = shape[0]
        logging.debug(f"Hamiltonian with {len(self._harmonics)} harmonics, L={latdim}, {shape[0]} orbitals")

    @classmethod
    def from_blocks(cls, blocks) -> "Hamiltonian":
        blocks.validate()
        return cls({-1: blocks.Hl, 0: blocks.H0, 1: blocks.Hr})

    @property
    def latdim(self) -> int:
        return self._latdim

    @property
    def norbitals(self) -> int:
        return self._norbitals

    def harmonics(self) -> dict:
        return dict(self._harmonics)

    def harmonic(self, dn):
        dn = _normalize_dn(dn)
        if dn not in self._harmonics:
            return sp.csr_matrix((self._norbitals, self._norbitals), dtype=complex)
        return self._harmonics[dn]

    def unitcell(self):
        return self._harmonics[(0,) * self._latdim]

    def __call__(self, phases=()) -> np.ndarray:
        phases = np.atleast_1d(np.asarray(phases, dtype=float)) if self._latdim else np.zeros(0)
        if phases.shape != (self._latdim,):
            raise ValueError(f"Expected {self._latdim} Bloch phases, got shape {phases.shape}")
        hk = np.zeros((self._norbitals, self._norbitals), dtype=complex)
        for dn, mat in self._harmonics.items():
            hk += np.exp(-1j * np.dot(phases, dn)) * mat.toarray()
        return hk

    def is_hermitian(self) -> bool:
        for dn, mat in self._harmonics.items():
            partner = self.harmonic(tuple(-x for x in dn))
            if abs(mat - partner.conj().T).max() > self.atol:
                return False
        return True

    def nearest_cell_harmonics(self):
        """Return ``(h_-1, h_0, h_+1)`` as CSC matrices of a 1-D nearest-cell lead."""
        if self._latdim != 1:
            raise ValueError(f"Expected a 1-D Hamiltonian, got lattice dimension {self._latdim}")
        far = [dn for dn in self._harmonics if abs(dn[0]) > 1]
        if far:
            raise ValueError(f"Only nearest-cell harmonics are allowed, found dn={far}")
        hm, h0, hp = (sp.csc_matrix(self.harmonic(dn)) for dn in (-1, 0, 1))
        if abs(hm - hp.conj().T).max() > self.atol:
            raise ValueError("Lead is not Hermitian: h_-1 != h_+1^dagger")
        if abs(h0 - h0.conj().T).max() > self.atol:
            raise ValueError("Lead is not Hermitian: h_0 != h_0^dagger")
        return hm, h0, hp
