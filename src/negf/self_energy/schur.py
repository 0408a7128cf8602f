"""Self-energies of semi-infinite nearest-cell leads from a generalized Schur decomposition.

Conventions: ``hp = h_+1`` hops from cell ``n`` into cell ``n + 1`` and
``hm = h_-1 = hp^dagger``. The left surface orbitals of a unit cell
(``linds``) are the columns stored in ``hm``, the right ones (``rinds``) the
columns stored in ``hp``. The coupling is deflated to ``hp = L R^dagger`` with
``L`` and ``R`` of width ``d = min(|linds|, |rinds|)``.

For every frequency the transfer-matrix pencil ``(A, B)`` of size ``2d`` is
reduced with ``scipy.linalg.ordqz``; its ``d`` decaying (retarded) and ``d``
growing (advanced) modes give the self-energy factors

    Sigma_R = (R Z21)[rinds] . Z11^-1 . R^dagger[:, rinds]
    Sigma_L = (L Z11')[linds] . Z21'^-1 . L^dagger[:, linds]
"""
from __future__ import annotations
import copy
import logging
from dataclasses import dataclass
import numpy as np
import scipy.linalg
import scipy.sparse as sp
from scipy.sparse.linalg import splu
from hamiltonian.base.aux import stored_cols
from hamiltonian.base.blocks import HamiltonianBlocks


def nearest_cell_harmonics(lead):
    """``(h_-1, h_0, h_+1)`` of a lead given as a Hamiltonian, blocks or a 3-tuple."""
    if isinstance(lead, tuple):
        if len(lead) != 3:
            raise ValueError(f"Expected (h_-1, h_0, h_+1), got a tuple of length {len(lead)}")
        lead = HamiltonianBlocks(*lead)
    if not hasattr(lead, "nearest_cell_harmonics"):
        raise TypeError(f"Cannot extract nearest-cell harmonics from {type(lead).__name__}")
    return tuple(sp.csc_matrix(m, dtype=complex) for m in lead.nearest_cell_harmonics())


def selfenergy(factors) -> np.ndarray:
    """Materialize ``first @ second^-1 @ third`` of a factor triple."""
    first, second, third = factors
    return first @ np.linalg.solve(second, third)


def _check_modes(retarded: np.ndarray, advanced: np.ndarray, d: int) -> None:
    nret, nadv = int(np.count_nonzero(retarded)), int(np.count_nonzero(advanced))
    if nret != d or nadv != d:
        raise np.linalg.LinAlgError(
            f"Cannot differentiate retarded from advanced modes ({nret} retarded, {nadv} advanced, "
            f"expected {d} each). Consider adding imaginary part to the frequency or checking that "
            f"the lead is Hermitian")


@dataclass(slots=True)
class SchurWorkspace:
    GL: np.ndarray
    GR: np.ndarray
    A: np.ndarray
    B: np.ndarray
    Z11: np.ndarray
    Z21: np.ndarray
    Z11a: np.ndarray
    Z21a: np.ndarray

    @classmethod
    def empty(cls, n: int, d: int) -> "SchurWorkspace":
        z = lambda *s: np.zeros(s, dtype=complex)
        return cls(z(n, d), z(n, d), z(2 * d, 2 * d), z(2 * d, 2 * d), z(d, d), z(d, d), z(d, d), z(d, d))


class SchurFactorsSolver:
    """Per-frequency self-energy factors of a 1-D nearest-cell lead.

    Parameters
    ----------
    lead : Hamiltonian | HamiltonianBlocks | tuple
        Hermitian lead with harmonics ``h_-1, h_0, h_+1`` only.
    shift : float
        Auxiliary damping ``Omega``; added as ``i Omega`` on the deflated
        surface orbitals of ``iG = omega - h_0``.
    """

    def __init__(self, lead, shift: float = 1.0):
        hm, h0, hp = nearest_cell_harmonics(lead)
        self.hm, self.h0, self.hp = hm, h0, hp
        self.shift = float(shift)
        n = h0.shape[0]
        self.norbitals = n
        self.linds = stored_cols(hm)
        self.rinds = stored_cols(hp)
        l, r = self.linds.size, self.rinds.size
        if l == 0 or r == 0:
            raise ValueError("Lead has no coupling between neighbouring cells")
        self.l_leq_r = l <= r
        if self.l_leq_r:
            self.L = np.zeros((n, l), dtype=complex)
            self.L[self.linds, np.arange(l)] = 1
            self.R = hm[:, self.linds].toarray()
            sinds = self.linds
        else:
            self.R = np.zeros((n, r), dtype=complex)
            self.R[self.rinds, np.arange(r)] = 1
            self.L = hp[:, self.rinds].toarray()
            sinds = self.rinds
        self.d = min(l, r)
        shiftdiag = np.zeros(n, dtype=complex)
        shiftdiag[sinds] = 1j * self.shift
        self.iG0 = sp.csc_matrix(-h0 + sp.diags(shiftdiag, format="csc"))
        self.RL = np.vstack([self.R.conj().T, -self.L.conj().T])
        self.workspace = SchurWorkspace.empty(n, self.d)
        self.omega = None
        logging.debug(f"Schur lead: {n} orbitals, |linds|={l}, |rinds|={r}, deflated to d={self.d}")

    def __call__(self, omega):
        """Return the rightward and leftward factor triples at ``omega``.

        The triples alias this solver's workspace and are overwritten by the
        next call.
        """
        ws, d, n = self.workspace, self.d, self.norbitals
        iG = sp.csc_matrix(omega * sp.identity(n, dtype=complex, format="csc") + self.iG0)
        try:
            lu = splu(iG)
        except RuntimeError as err:
            raise np.linalg.LinAlgError(f"Singular iG at omega={omega}: {err}") from err
        ws.GL[:] = lu.solve(self.L)
        ws.GR[:] = lu.solve(self.R)

        ws.A.fill(0)
        ws.B.fill(0)
        ws.A[:, :d] = self.RL @ ws.GL
        ws.B[:, d:] = -(self.RL @ ws.GR)
        if self.l_leq_r:
            ws.A[:, d:] = 1j * self.shift * ws.A[:, :d]
        else:
            ws.B[:, :d] = 1j * self.shift * ws.B[:, d:]
        idx = np.arange(d)
        ws.A[d + idx, d + idx] += 1
        ws.B[idx, idx] += 1

        # retarded modes |lambda| < 1 first
        _, _, alpha, beta, _, Z = scipy.linalg.ordqz(ws.A, ws.B, sort=lambda a, b: np.abs(a) < np.abs(b),
                                                     output="complex")
        _check_modes(np.abs(alpha) < np.abs(beta), np.abs(beta) < np.abs(alpha), d)
        ws.Z11[:] = Z[:d, :d]
        ws.Z21[:] = Z[d:, :d]
        # advanced modes |lambda| > 1 first
        _, _, _, _, _, Z = scipy.linalg.ordqz(ws.A, ws.B, sort=lambda a, b: np.abs(b) < np.abs(a),
                                              output="complex")
        ws.Z11a[:] = Z[:d, :d]
        ws.Z21a[:] = Z[d:, :d]
        self.omega = omega

        rightward = ((self.R @ ws.Z21)[self.rinds, :], ws.Z11, self.R.conj().T[:, self.rinds])
        leftward = ((self.L @ ws.Z11a)[self.linds, :], ws.Z21a, self.L.conj().T[:, self.linds])
        return rightward, leftward

    def selfenergies(self, omega):
        """Dense ``(Sigma_R, Sigma_L)`` on the right and left surface orbitals."""
        rightward, leftward = self(omega)
        return selfenergy(rightward), selfenergy(leftward)

    def minimal_callsafe_copy(self) -> "SchurFactorsSolver":
        new = copy.copy(self)
        new.workspace = copy.deepcopy(self.workspace)
        return new
