import sys
from pathlib import Path

import numpy as np
import pytest
import scipy.sparse as sp
from numpy.testing import assert_allclose

SRC_DIR = Path(__file__).resolve().parents[3]
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from hamiltonian import Hamiltonian
from negf.self_energy import SchurFactorsSolver, lead_self_energy, sancho_rubio_surface_gf, selfenergy
from negf.self_energy.schur import _check_modes


def chain(t=-1.0):
    return Hamiltonian({-1: [[t]], 0: [[0.0]], 1: [[t]]})


def three_orbital_lead(left_heavy: bool, seed: int = 7):
    """Lead whose inter-cell hopping couples one orbital to two."""
    rng = np.random.default_rng(seed)
    a = rng.normal(size=(3, 3)) + 1j * rng.normal(size=(3, 3))
    h0 = 0.3 * (a + a.conj().T)
    hp = np.zeros((3, 3), dtype=complex)
    if left_heavy:
        # orbital 0 hops into orbitals 1, 2 of the next cell
        hp[1, 0], hp[2, 0] = 0.8, 0.6j
    else:
        # orbitals 1, 2 hop into orbital 0 of the next cell
        hp[0, 1], hp[0, 2] = 0.8, -0.6j
    return Hamiltonian({-1: hp.conj().T, 0: h0, 1: hp})


@pytest.mark.parametrize("left_heavy", [True, False])
def test_deflation_reproduces_coupling(left_heavy):
    solver = SchurFactorsSolver(three_orbital_lead(left_heavy))
    assert solver.l_leq_r is (not left_heavy)
    assert solver.d == 1
    assert_allclose(solver.L @ solver.R.conj().T, solver.hp.toarray(), atol=1e-14)


def test_surface_orbitals():
    solver = SchurFactorsSolver(three_orbital_lead(True))
    assert solver.linds.tolist() == [1, 2]
    assert solver.rinds.tolist() == [0]


@pytest.mark.parametrize("omega", [0.5 + 0.1j, -1.7 + 0.01j, 3.0 + 0.2j, 2j])
def test_chain_selfenergy(omega):
    sigma_r, sigma_l = SchurFactorsSolver(chain()).selfenergies(omega)
    # sigma = t lambda with t lambda^2 - omega lambda + t = 0 and |lambda| < 1
    lam = (omega - np.sqrt(omega - 2) * np.sqrt(omega + 2)) / 2
    assert abs(lam) < 1
    assert_allclose(sigma_r, [[lam]], atol=1e-10)
    assert_allclose(sigma_l, [[lam]], atol=1e-10)
    assert sigma_r[0, 0].imag < 0


@pytest.mark.parametrize("left_heavy", [True, False])
@pytest.mark.parametrize("omega", [0.3 + 0.5j, -0.8 + 0.2j])
def test_selfenergy_matches_decimation(left_heavy, omega):
    solver = SchurFactorsSolver(three_orbital_lead(left_heavy))
    sigma_r, sigma_l = solver.selfenergies(omega)
    hm, h0, hp = solver.hm, solver.h0, solver.hp
    full_r = lead_self_energy(omega, hm, h0, hp, "right")
    full_l = lead_self_energy(omega, hm, h0, hp, "left")
    assert_allclose(sigma_r, full_r[np.ix_(solver.rinds, solver.rinds)], atol=1e-9)
    assert_allclose(sigma_l, full_l[np.ix_(solver.linds, solver.linds)], atol=1e-9)
    outside = np.setdiff1d(np.arange(3), solver.rinds)
    assert_allclose(full_r[outside], 0, atol=1e-12)


@pytest.mark.parametrize("left_heavy", [True, False])
def test_selfenergies_are_retarded(left_heavy):
    solver = SchurFactorsSolver(three_orbital_lead(left_heavy))
    for omega in (0.3 + 0.05j, -0.4 + 0.3j):
        for sigma in solver.selfenergies(omega):
            broadening = 1j * (sigma - sigma.conj().T)
            assert np.all(np.linalg.eigvalsh(broadening) > -1e-12)


def test_shift_does_not_change_selfenergy():
    lead = three_orbital_lead(False)
    a = SchurFactorsSolver(lead, shift=1.0).selfenergies(0.2 + 0.3j)
    b = SchurFactorsSolver(lead, shift=0.25).selfenergies(0.2 + 0.3j)
    for x, y in zip(a, b):
        assert_allclose(x, y, atol=1e-10)


def test_lead_from_block_tuple():
    hp = sp.csr_matrix(np.array([[-1.0]]))
    solver = SchurFactorsSolver((hp.T, np.array([[0.0]]), hp))
    sigma_r, _ = solver.selfenergies(0.5 + 0.1j)
    expected, _ = SchurFactorsSolver(chain()).selfenergies(0.5 + 0.1j)
    assert_allclose(sigma_r, expected)


def test_invalid_leads():
    with pytest.raises(ValueError):
        SchurFactorsSolver(Hamiltonian({-1: [[0.5]], 0: [[0.0]], 1: [[1.0]]}))
    with pytest.raises(ValueError):
        SchurFactorsSolver(Hamiltonian({-2: [[1.0]], 0: [[0.0]], 2: [[1.0]]}))
    with pytest.raises(ValueError):
        SchurFactorsSolver(Hamiltonian({-1: [[0.0]], 0: [[1.0]], 1: [[0.0]]}))
    with pytest.raises(ValueError):
        SchurFactorsSolver((np.eye(1), np.eye(1)))


def test_mode_count_check():
    _check_modes(np.array([True, False, True, False]), np.array([False, True, False, True]), 2)
    with pytest.raises(np.linalg.LinAlgError):
        _check_modes(np.array([True, True, True, False]), np.array([False, False, False, True]), 2)


def test_factors_alias_workspace_and_copies_are_independent():
    solver = SchurFactorsSolver(three_orbital_lead(True))
    rightward, _ = solver(0.1 + 0.2j)
    assert rightward[1] is solver.workspace.Z11
    before = selfenergy(rightward)
    snapshot = solver.workspace.Z11.copy()
    other = solver.minimal_callsafe_copy()
    assert other.hp is solver.hp
    other(-0.9 + 0.05j)
    assert_allclose(solver.workspace.Z11, snapshot)
    assert_allclose(selfenergy(rightward), before)
    solver(-0.9 + 0.05j)
    assert_allclose(solver.workspace.Z11, other.workspace.Z11)


def test_decimation_warns_without_convergence():
    h = np.array([[0.0]])
    t = np.array([[-1.0]])
    with pytest.warns(UserWarning, match="did not converge"):
        sancho_rubio_surface_gf(0.5 + 0.1j, h, t, t, iter_max=1)
    with pytest.raises(ValueError):
        lead_self_energy(0.5 + 0.1j, t, h, t, side="up")
