from __future__ import annotations
import numpy as np


def gamma(sigma: np.ndarray) -> np.ndarray:
    """Broadening ``i (Sigma - Sigma^dagger)`` of a contact self-energy."""
    return 1j * (sigma - sigma.conj().T)


def retarded_omega(omega) -> complex:
    """Real frequencies are moved to ``omega + i sqrt(eps)`` on the retarded side."""
    if np.iscomplexobj(omega) and np.imag(omega) != 0:
        return complex(omega)
    return complex(np.real(omega), np.sqrt(np.finfo(float).eps))


def nambu_taus(size: int, normalsize: int = 1):
    """Diagonals of ``tau_e`` and ``tau_z`` over ``size`` Nambu orbitals.

    Orbitals come in alternating electron and hole groups of ``normalsize``.
    """
    if normalsize < 1 or size % (2 * normalsize) != 0:
        raise ValueError(f"A Nambu contact of {size} orbitals cannot hold electron/hole groups of {normalsize}")
    hole = (np.arange(size) // normalsize) % 2 == 1
    return np.where(hole, 0.0, 1.0), np.where(hole, -1.0, 1.0)


def conductance(solution, i: int, j: int, nambu: bool = False, normalsize: int = 1) -> float:
    """Zero-temperature conductance ``G_ij`` between contacts in units of e^2/h.

        G_ij = Tr[delta_ij i (G_ii - G_ii^dagger) Gamma_i - G_ji Gamma_i G_ji^dagger Gamma_j]

    ``G_ij`` is the current into contact ``i`` per unit voltage on contact ``j``,
    so off-diagonal entries are minus the transmission. With ``nambu`` the
    contact orbitals alternate electron and hole groups of ``normalsize`` and

        G_ij = Tr[delta_ij i (G_ii - G_ii^dagger) Gamma_i tau_e - G_ji Gamma_i tau_z G_ji^dagger Gamma_j tau_e]
    """
    gamma_i = gamma(solution.selfenergy(i))
    gamma_j = gamma_i if i == j else gamma(solution.selfenergy(j))
    gr_ji = solution[j, i]
    if nambu:
        _, tauz = nambu_taus(gamma_i.shape[0], normalsize)
        taue, _ = nambu_taus(gamma_j.shape[0], normalsize)
    else:
        tauz = np.ones(gamma_i.shape[0])
        taue = np.ones(gamma_j.shape[0])
    grgr = (gr_ji @ gamma_i * tauz) @ (gr_ji.conj().T @ gamma_j)
    value = -np.sum(np.diag(grgr) * taue)
    if i == j:
        gr_ii = gr_ji
        value += np.sum(np.diag(1j * (gr_ii - gr_ii.conj().T) @ gamma_i) * taue)
    return float(np.real(value))


def transmission(solution, i: int, j: int) -> float:
    """Caroli transmission ``Tr[Gamma_i G_ij Gamma_j G_ij^dagger]`` between two distinct contacts."""
    if i == j:
        raise ValueError("Transmission needs two distinct contacts")
    gr_ij = solution[i, j]
    value = np.trace(gamma(solution.selfenergy(i)) @ gr_ij @ gamma(solution.selfenergy(j)) @ gr_ij.conj().T)
    return float(np.real(value))


class Conductance:
    """Conductance ``G_ij`` of a Green function as a function of frequency.

    ``Conductance(gf, i, j)(omega)`` evaluates ``gf`` at ``omega`` (shifted off
    the real axis when real) and returns :func:`conductance` of the solution.
    """

    def __init__(self, greenfunction, i: int = 0, j: int | None = None, nambu: bool = False, normalsize: int = 1):
        ncontacts = len(greenfunction.contacts)
        j = i if j is None else j
        if not (0 <= i < ncontacts and 0 <= j < ncontacts):
            raise IndexError(f"Contact pair ({i}, {j}) out of range, there are {ncontacts} contacts")
        self.greenfunction = greenfunction
        self.i = i
        self.j = j
        self.nambu = nambu
        self.normalsize = normalsize

    def __call__(self, omega) -> float:
        solution = self.greenfunction(retarded_omega(omega))
        return conductance(solution, self.i, self.j, self.nambu, self.normalsize)
