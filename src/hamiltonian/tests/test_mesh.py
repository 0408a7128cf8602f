import sys
from pathlib import Path

import numpy as np
import pytest
from numpy.testing import assert_allclose

SRC_DIR = Path(__file__).resolve().parents[2]
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from hamiltonian.bandcalc.mesh import (
    NAMED_POINTS,
    LinearMeshSpec,
    MarchingMeshSpec,
    build_cliques,
    linear_mesh,
    marching_mesh,
    simplex_volume,
)


def _assert_symmetric(mesh):
    for i, ns in enumerate(mesh.neighs):
        assert i not in ns
        assert len(set(ns)) == len(ns)
        for j in ns:
            assert i in mesh.neighs[j]


def test_marching_mesh_2d_counts():
    mesh = marching_mesh((0, 1), (0, 2), points=4)
    assert mesh.nvertices == 16
    assert mesh.nedges == 12 + 12 + 9
    assert len(mesh.simps) == 2 * 9
    _assert_symmetric(mesh)
    # first axis varies fastest
    assert_allclose(mesh.vertex(1), [1 / 3, 0])
    assert_allclose(mesh.vertex(4), [0, 2 / 3])


def test_marching_mesh_simplices_are_cliques():
    mesh = marching_mesh((-1, 1), (-1, 1), points=5)
    cliques = {tuple(sorted(c)) for c in build_cliques(mesh.neighs, 3)}
    simplices = {tuple(sorted(s)) for s in mesh.simps}
    assert cliques == simplices


@pytest.mark.parametrize("ndim, expected", [(1, 1), (2, 2), (3, 6)])
def test_marching_mesh_simplices_per_cube(ndim, expected):
    mesh = marching_mesh(*[(0, 1)] * ndim, points=3)
    assert len(mesh.simps) == expected * 2 ** ndim
    _assert_symmetric(mesh)
    for s in mesh.simps:
        assert simplex_volume([mesh.vertex(i) for i in s]) > 0


def test_marching_mesh_with_axes():
    axes = np.array([[1.0, 0.5], [0.0, 1.0]])
    mesh = marching_mesh((0, 1), (0, 2), points=3, axes=axes)
    box = marching_mesh((0, 1), (0, 2), points=3)
    assert mesh.nvertices == box.nvertices
    assert mesh.neighs == box.neighs
    assert len(mesh.simps) == len(box.simps) == 8
    assert_allclose(mesh.vertex(3), [0.5, 1])
    assert_allclose(mesh.vertex(8), [2, 2])
    for s in mesh.simps:
        assert simplex_volume([mesh.vertex(i) for i in s]) > 0
    # a reflected cell flips the raw orientation, which is then restored
    flipped = marching_mesh((0, 1), (0, 1), points=3, axes=[[0, 1], [1, 0]])
    for s in flipped.simps:
        assert simplex_volume([flipped.vertex(i) for i in s]) > 0
    spec = MarchingMeshSpec(((0, 1), (0, 2)), points=3, axes=axes)
    assert_allclose(spec.build().vertex(8), [2, 2])
    with pytest.raises(ValueError):
        marching_mesh((0, 1), (0, 1), axes=np.eye(3))


def test_marching_mesh_errors():
    with pytest.raises(ValueError):
        marching_mesh()
    with pytest.raises(ValueError):
        marching_mesh((1, 0))
    with pytest.raises(ValueError):
        marching_mesh((0, 1), points=1)
    with pytest.raises(ValueError):
        marching_mesh((0, 1), (0, 1), points=(3, 3, 3))


def test_linear_mesh_path():
    mesh = linear_mesh((0, 0), (np.pi, 0), (np.pi, np.pi), points=5)
    assert mesh.nvertices == 9
    assert mesh.nedges == 8
    assert mesh.dim == 1
    _assert_symmetric(mesh)
    assert_allclose(mesh.vertex(0), [0])
    assert_allclose(mesh.vertex(8), [1])
    assert all(simplex_volume([mesh.vertex(i) for i in s]) > 0 for s in mesh.simps)


def test_closed_linear_mesh_with_named_points():
    mesh = linear_mesh("Γ", "K", "M", "Γ", points=4, closed=True)
    assert mesh.nvertices == 9
    assert all(len(ns) == 2 for ns in mesh.neighs)
    assert mesh.nedges == 9
    _assert_symmetric(mesh)


def test_linear_mesh_errors():
    with pytest.raises(ValueError):
        linear_mesh()
    with pytest.raises(ValueError):
        linear_mesh((0,))
    with pytest.raises(ValueError):
        linear_mesh("Γ", "nowhere")
    with pytest.raises(ValueError):
        linear_mesh((0, 0), (1, 0), (1, 1), closed=True)
    with pytest.raises(ValueError):
        linear_mesh((0,), (1,), (2,), points=(3, 3, 3))


def test_linear_mesh_lift():
    spec = LinearMeshSpec([(0, 0), (1, 0), (1, 1)], points=3)
    lift = spec.lift()
    assert_allclose(lift(0.0), [0, 0])
    assert_allclose(lift(0.75), [1, 0.5])
    assert_allclose(lift(1.0), [1, 1])
    spec = LinearMeshSpec([(0, 0), (2, 0), (2, 1)], points=3, samelength=False)
    assert_allclose(spec.node_coordinates(), [0, 2 / 3, 1])
    mesh = spec.build()
    assert_allclose([v[0] for v in mesh.verts], [0, 1 / 3, 2 / 3, 5 / 6, 1])


def test_named_points_are_padded():
    mesh = linear_mesh("Γ", "K", points=2)
    spec = LinearMeshSpec(("Γ", "K"), points=2)
    assert_allclose(spec.lift()(1.0), NAMED_POINTS["K"])
    assert_allclose(spec.lift()(0.0), [0, 0])
    assert mesh.nvertices == 2


def test_minmax_edge():
    mesh = marching_mesh((0, 1), (0, 2), points=3)
    shortest, longest = mesh.minmax_edge()
    assert np.linalg.norm(shortest) == pytest.approx(0.5)
    assert np.linalg.norm(longest) == pytest.approx(np.sqrt(0.25 + 1))


def test_split_edge_bisects_simplices():
    mesh = marching_mesh((0, 1), (0, 1), points=2)
    assert len(mesh.simps) == 2
    new = mesh.split_edge(0, 3, (0.5, 0.5))
    assert new == 4
    assert sorted(mesh.neighbors(4)) == [0, 1, 2, 3]
    assert 3 not in mesh.neighbors(0)
    _assert_symmetric(mesh)
    mesh.rebuild_simplices()
    assert sorted(tuple(sorted(s)) for s in mesh.simps) == [(0, 1, 4), (0, 2, 4), (1, 3, 4), (2, 3, 4)]
    assert all(simplex_volume([mesh.vertex(i) for i in s]) > 0 for s in mesh.simps)
    with pytest.raises(ValueError):
        mesh.split_edge(0, 3, (0.5, 0.5))


def test_build_cliques_on_complete_graphs():
    k4 = [[j for j in range(4) if j != i] for i in range(4)]
    k5 = [[j for j in range(5) if j != i] for i in range(5)]
    assert build_cliques(k4, 4) == [(0, 1, 2, 3)]
    assert len(build_cliques(k5, 4)) == 5
    assert len(build_cliques(k5, 2)) == 10
    with pytest.raises(ValueError):
        build_cliques(k4, 0)
