import sys
from pathlib import Path

import numpy as np
import pytest
from numpy.testing import assert_allclose

SRC_DIR = Path(__file__).resolve().parents[3]
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from hamiltonian import Hamiltonian
from negf.gf import (
    CellOrbitals,
    ContactBlockStructure,
    SchurGreenSlicer,
    SparseLUGreenSlicer,
    TMatrixSlicer,
    inverse_green,
)
from negf.self_energy import MatrixSelfEnergy, SchurFactorsSolver, SchurLeadSelfEnergy, selfenergy_blocks


def chain(t=-1.0):
    return Hamiltonian({-1: [[t]], 0: [[0.0]], 1: [[t]]})


def chain_device(n=4, t=-1.0):
    return t * (np.eye(n, k=1) + np.eye(n, k=-1))


def random_system(n, seed):
    rng = np.random.default_rng(seed)
    a = rng.normal(size=(n, n)) + 1j * rng.normal(size=(n, n))
    return 0.5 * (a + a.conj().T)


def test_dyson_equation_with_overlapping_contacts():
    rng = np.random.default_rng(3)
    h = random_system(6, seed=5)
    omega = 0.2 + 0.3j
    s1 = rng.normal(size=(2, 2)) + 1j * rng.normal(size=(2, 2))
    s2 = rng.normal(size=(2, 2)) + 1j * rng.normal(size=(2, 2))
    contacts = [MatrixSelfEnergy(s1, CellOrbitals(0, (1, 4))), MatrixSelfEnergy(s2, CellOrbitals(0, (4, 5)))]
    structure = ContactBlockStructure([c.orbitals for c in contacts], 6)
    assert structure.norbitals == 3
    assert [list(i) for i in structure.contact_inds] == [[0, 1], [1, 2]]

    g0 = SparseLUGreenSlicer(inverse_green(omega, h), 6)
    blocks = selfenergy_blocks(contacts, omega, structure.contact_inds, structure.norbitals)
    tm = TMatrixSlicer(g0, blocks, structure)

    sigma = np.zeros((6, 6), dtype=complex)
    sigma[np.ix_([1, 4], [1, 4])] += s1
    sigma[np.ix_([4, 5], [4, 5])] += s2
    expected = np.linalg.inv(omega * np.eye(6) - h - sigma)
    assert_allclose(tm[CellOrbitals(0), CellOrbitals(0)], expected, atol=1e-10)
    assert_allclose(tm.contact_view(0, 1), expected[np.ix_([1, 4], [4, 5])], atol=1e-10)
    assert_allclose(tm.contact_view(1, 1), expected[np.ix_([4, 5], [4, 5])], atol=1e-10)
    with pytest.raises(IndexError):
        tm.contact_view(2, 0)


@pytest.mark.parametrize("extended", [False, True])
def test_leads_on_finite_device_reproduce_infinite_chain(extended):
    omega = 0.6 + 0.2j
    device = chain_device(4)
    leads = [SchurLeadSelfEnergy(chain(), CellOrbitals(0, (0,)), side="left", extended=extended),
             SchurLeadSelfEnergy(chain(), CellOrbitals(0, (3,)), side="right", extended=extended)]
    structure = ContactBlockStructure([c.orbitals for c in leads], 4)
    blocks = selfenergy_blocks(leads, omega, structure.contact_inds, structure.norbitals)
    assert len(blocks) == (6 if extended else 2)
    tm = TMatrixSlicer(SparseLUGreenSlicer(inverse_green(omega, device), 4), blocks, structure)

    bulk = SchurGreenSlicer(omega, SchurFactorsSolver(chain()))
    expected = np.array([[bulk[i, j][0, 0] for j in range(4)] for i in range(4)])
    assert_allclose(tm[0, 0], expected, atol=1e-10)
    assert_allclose(tm.contact_view(0, 1), [[expected[0, 3]]], atol=1e-10)


def test_extended_blocks_in_sparse_inverse_green():
    omega = -0.3 + 0.1j
    device = chain_device(3)
    leads = [SchurLeadSelfEnergy(chain(), (0, (0,)), side="left", extended=True),
             SchurLeadSelfEnergy(chain(), (0, (2,)), side="right", extended=True)]
    blocks = selfenergy_blocks(leads, omega, [np.array([0]), np.array([2])], 3)
    invgreen = inverse_green(omega, device, blocks, extended=2)
    assert invgreen.shape == (5, 5)
    g = SparseLUGreenSlicer(invgreen, 3)
    bulk = SchurGreenSlicer(omega, SchurFactorsSolver(chain()))
    assert_allclose(g.full[0, 2], bulk[0, 2][0, 0], atol=1e-10)
    assert_allclose(g.full[1, 1], bulk[0, 0][0, 0], atol=1e-10)


@pytest.mark.parametrize("potential", [0.5, -1.3 + 0.2j])
def test_impurity_on_infinite_chain(potential):
    omega = 0.4 + 0.1j
    solver = SchurFactorsSolver(chain())
    g0 = SchurGreenSlicer(omega, solver)
    contacts = [MatrixSelfEnergy([[potential]], CellOrbitals(0, (0,)))]
    structure = ContactBlockStructure([c.orbitals for c in contacts], 1)
    blocks = selfenergy_blocks(contacts, omega, structure.contact_inds, structure.norbitals)
    tm = TMatrixSlicer(g0, blocks, structure)
    g = g0[0, 0][0, 0]
    assert tm[0, 0][0, 0] == pytest.approx(g / (1 - potential * g), abs=1e-12)
    assert tm.contact_view(0, 0)[0, 0] == pytest.approx(g / (1 - potential * g), abs=1e-12)
    expected = g0[2, -1] + g0[2, 0] * potential / (1 - potential * g) * g0[0, -1]
    assert_allclose(tm[2, -1], expected, atol=1e-12)


def test_impurity_matches_finite_chain():
    omega = 0.1 + 0.8j
    potential = 0.7
    ncells = 101
    h = chain_device(ncells)
    h[50, 50] += potential
    expected = np.linalg.inv(omega * np.eye(ncells) - h)
    g0 = SchurGreenSlicer(omega, SchurFactorsSolver(chain()))
    contacts = [MatrixSelfEnergy(lambda w: np.array([[potential]]), (0, (0,)))]
    structure = ContactBlockStructure([c.orbitals for c in contacts], 1)
    tm = TMatrixSlicer(g0, selfenergy_blocks(contacts, omega, structure.contact_inds, 1), structure)
    for i, j in [(0, 0), (1, 0), (3, -2), (-1, 1)]:
        assert tm[i, j][0, 0] == pytest.approx(expected[50 + i, 50 + j], abs=1e-10)
