"""Simplicial meshes over Bloch-phase parameter space.

Two constructions are provided: a marching-tetrahedra grid over a box and a
linear path through a list of nodes (optionally named Brillouin-zone points).
A :class:`Mesh` only grows afterwards, through :meth:`Mesh.split_edge`.
"""
from __future__ import annotations
import itertools
import logging
import math
from dataclasses import dataclass, field
import numpy as np

NAMED_POINTS = {
    "Γ": (0.0,), "G": (0.0,), "Gamma": (0.0,),
    "X": (math.pi,),
    "Y": (0.0, math.pi),
    "Z": (0.0, 0.0, math.pi),
    "K": (2 * math.pi / 3, -2 * math.pi / 3),
    "K'": (4 * math.pi / 3, 2 * math.pi / 3), "Kp": (4 * math.pi / 3, 2 * math.pi / 3),
    "M": (math.pi, 0.0),
}


@dataclass
class Mesh:
    verts: list = field(default_factory=list)
    neighs: list = field(default_factory=list)
    simps: list = field(default_factory=list)

    @property
    def dim(self) -> int:
        return len(self.verts[0]) if self.verts else 0

    @property
    def nvertices(self) -> int:
        return len(self.verts)

    @property
    def nedges(self) -> int:
        return sum(len(ns) for ns in self.neighs) // 2

    def vertex(self, i: int) -> np.ndarray:
        return self.verts[i]

    def neighbors(self, i: int) -> list:
        return self.neighs[i]

    def neighbors_forward(self, i: int) -> list:
        return [j for j in self.neighs[i] if j > i]

    def edges(self):
        for i in range(len(self.neighs)):
            for j in self.neighbors_forward(i):
                yield i, j

    def minmax_edge(self):
        """Shortest and longest edge vectors, scanning each edge once."""
        shortest = longest = None
        dmin, dmax = math.inf, -math.inf
        for i, j in self.edges():
            vec = self.verts[j] - self.verts[i]
            d = float(np.linalg.norm(vec))
            if d < dmin:
                dmin, shortest = d, vec
            if d > dmax:
                dmax, longest = d, vec
        if shortest is None:
            raise ValueError("Mesh has no edges")
        return shortest, longest

    def split_edge(self, i: int, j: int, k) -> int:
        """Insert vertex ``k`` in place of edge ``(i, j)`` and return its index.

        The new vertex is connected to ``i``, ``j`` and to every common
        neighbour of the two, so incident simplices are bisected.
        """
        if j not in self.neighs[i]:
            raise ValueError(f"({i}, {j}) is not an edge of the mesh")
        self.neighs[i].remove(j)
        self.neighs[j].remove(i)
        common = sorted(set(self.neighs[i]) & set(self.neighs[j]))
        new = len(self.verts)
        self.verts.append(np.asarray(k, dtype=float))
        self.neighs.append(common + [i, j])
        for n in self.neighs[new]:
            self.neighs[n].append(new)
        return new

    def rebuild_simplices(self) -> None:
        simps = build_cliques(self.neighs, self.dim + 1)
        self.simps = orient_simplices(simps, self.verts)

    def copy(self) -> "Mesh":
        return Mesh([v.copy() for v in self.verts], [list(ns) for ns in self.neighs], list(self.simps))


def build_cliques(neighs, k: int) -> list:
    """All ``k``-cliques of the graph ``neighs`` as increasing index tuples."""
    if k < 1:
        raise ValueError(f"Clique size must be positive, got {k}")
    if k == 1:
        return [(i,) for i in range(len(neighs))]
    sets = [set(ns) for ns in neighs]
    cliques = []
    for src in range(len(neighs)):
        partials = [(src, j) for j in sorted(sets[src]) if j > src]
        for _ in range(k - 2):
            partials = [p + (d,) for p in partials
                        for d in sorted(sets[p[-1]]) if d > p[-1] and all(d in sets[q] for q in p[:-1])]
        cliques.extend(partials)
    return cliques


def simplex_volume(coords) -> float:
    """Signed volume of a simplex projected onto its first ``len(coords) - 1`` axes."""
    coords = [np.atleast_1d(np.real(np.asarray(c, dtype=complex))) for c in coords]
    n = len(coords) - 1
    if n == 0:
        return 0.0
    mat = np.zeros((n, n))
    for r, c in enumerate(coords[1:]):
        d = c - coords[0]
        m = min(n, d.size)
        mat[r, :m] = d[:m]
    return float(np.linalg.det(mat))


def orient_simplices(simps, coords) -> list:
    oriented = []
    for s in simps:
        if simplex_volume([coords[i] for i in s]) < 0:
            s = tuple(s[:-2]) + (s[-1], s[-2])
        oriented.append(tuple(s))
    return oriented


def _axis_points(points, ndim: int) -> tuple:
    if isinstance(points, (int, np.integer)):
        points = (int(points),) * ndim
    points = tuple(int(p) for p in points)
    if len(points) != ndim:
        raise ValueError(f"Got {len(points)} point counts for {ndim} axes")
    if any(p < 2 for p in points):
        raise ValueError(f"Every axis needs at least 2 points, got {points}")
    return points


def marching_mesh(*ranges, points=13, axes=None) -> Mesh:
    """Regular grid over ``ranges`` with the marching-tetrahedra triangulation.

    With ``axes`` (a square matrix whose columns are the cell axes) each grid
    point ``x`` is placed at ``axes @ x``, turning the box into a parallelepiped.

    Every grid point connects to the ``2^D - 1`` offsets in ``{0,1}^D`` in both
    directions; each elementary hypercube carries ``D!`` simplices, one per
    ordering of the unit directions.
    """
    if not ranges:
        raise ValueError("marching_mesh needs at least one (min, max) range")
    ranges = [tuple(float(x) for x in r) for r in ranges]
    for r in ranges:
        if len(r) != 2 or not r[0] < r[1]:
            raise ValueError(f"Invalid range {r}: expected (min, max) with min < max")
    ndim = len(ranges)
    points = _axis_points(points, ndim)
    grid = [np.linspace(lo, hi, n) for (lo, hi), n in zip(ranges, points)]
    if axes is None:
        axes = np.eye(ndim)
    axes = np.atleast_2d(np.asarray(axes, dtype=float))
    if axes.shape != (ndim, ndim):
        raise ValueError(f"Axes of shape {axes.shape} do not match {ndim} ranges")
    shape = points
    strides = np.cumprod((1,) + shape[:-1])

    def index(c):
        return int(np.dot(c, strides))

    cells = list(itertools.product(*(range(n) for n in shape)))
    # grid index i has multi-index cells[i] with the first axis fastest
    cells.sort(key=index)
    verts = [axes @ np.array([grid[a][c[a]] for a in range(ndim)]) for c in cells]
    offsets = [np.array(u) for u in itertools.product((0, 1), repeat=ndim) if any(u)]
    neighs = [[] for _ in cells]
    for c in cells:
        c = np.array(c)
        src = index(c)
        for u in offsets:
            d = c + u
            if np.all(d < shape):
                dst = index(d)
                neighs[src].append(dst)
                neighs[dst].append(src)
    units = np.eye(ndim, dtype=int)
    simps = []
    for c in cells:
        c = np.array(c)
        if np.any(c + 1 >= shape):
            continue
        for perm in itertools.permutations(range(ndim)):
            path = np.cumsum(units[list(perm)], axis=0)
            simps.append((index(c),) + tuple(index(c + p) for p in path))
    mesh = Mesh(verts, neighs, orient_simplices(simps, verts))
    logging.debug(f"Marching mesh: {mesh.nvertices} vertices, {mesh.nedges} edges, {len(mesh.simps)} simplices")
    return mesh


def _resolve_node(node) -> np.ndarray:
    if isinstance(node, str):
        if node not in NAMED_POINTS:
            raise ValueError(f"Unknown named point {node!r}, expected one of {sorted(NAMED_POINTS)}")
        node = NAMED_POINTS[node]
    return np.atleast_1d(np.asarray(node, dtype=float))


def _resolve_nodes(nodes) -> list:
    nodes = [_resolve_node(n) for n in nodes]
    ndim = max(n.size for n in nodes)
    return [np.pad(n, (0, ndim - n.size)) for n in nodes]


def _segment_points(points, nsegments: int) -> tuple:
    if isinstance(points, (int, np.integer)):
        points = (int(points),) * nsegments
    points = tuple(int(p) for p in points)
    if len(points) != nsegments:
        raise ValueError(f"Got {len(points)} point counts for {nsegments} segments")
    if any(p < 2 for p in points):
        raise ValueError(f"Every segment needs at least 2 points, got {points}")
    return points


@dataclass(slots=True)
class LinearMeshSpec:
    """Polygonal path through ``nodes`` in Bloch-phase space."""
    nodes: tuple
    points: int | tuple = 13
    samelength: bool = True
    closed: bool = False
    basis: np.ndarray | None = None

    def __post_init__(self):
        self.nodes = tuple(self.nodes)
        if not self.nodes:
            raise ValueError("Linear mesh needs at least two nodes, got none")
        if len(self.nodes) < 2:
            raise ValueError(f"Linear mesh needs at least two nodes, got {len(self.nodes)}")
        resolved = _resolve_nodes(self.nodes)
        if self.closed and not np.allclose(resolved[0], resolved[-1]):
            raise ValueError(f"Closed linear mesh needs matching endpoints, got {resolved[0]} and {resolved[-1]}")
        _segment_points(self.points, len(self.nodes) - 1)

    def phase_nodes(self) -> list:
        return _resolve_nodes(self.nodes)

    def node_coordinates(self) -> np.ndarray:
        """Mesh coordinate of every node, normalized to end at 1."""
        nodes = self.phase_nodes()
        if self.samelength:
            lengths = np.ones(len(nodes) - 1)
        else:
            ndim = nodes[0].size
            basis = np.eye(ndim) if self.basis is None else np.atleast_2d(np.asarray(self.basis, dtype=float))
            if basis.shape[1] != ndim:
                raise ValueError(f"Basis has {basis.shape[1]} columns, nodes have dimension {ndim}")
            metric = np.linalg.pinv(basis).T
            lengths = np.array([np.linalg.norm(metric @ (b - a)) for a, b in zip(nodes[:-1], nodes[1:])])
        total = lengths.sum()
        if total == 0:
            raise ValueError("Linear mesh nodes are all coincident")
        return np.concatenate([[0.0], np.cumsum(lengths) / total])

    def build(self) -> Mesh:
        xs = self.node_coordinates()
        points = _segment_points(self.points, len(xs) - 1)
        coords = [xs[0]]
        for (x0, x1), n in zip(zip(xs[:-1], xs[1:]), points):
            coords.extend(np.linspace(x0, x1, n)[1:])
        if self.closed:
            coords.pop()
        nv = len(coords)
        neighs = [[] for _ in range(nv)]
        for i in range(nv - 1):
            neighs[i].append(i + 1)
            neighs[i + 1].append(i)
        if self.closed and nv > 2:
            neighs[0].append(nv - 1)
            neighs[nv - 1].append(0)
        verts = [np.array([x]) for x in coords]
        mesh = Mesh(verts, neighs)
        mesh.rebuild_simplices()
        return mesh

    def lift(self):
        """Map a mesh coordinate back to the corresponding phase-space point."""
        xs = self.node_coordinates()
        nodes = self.phase_nodes()

        def lift(x):
            x = float(np.atleast_1d(x)[0])
            k = int(np.clip(np.searchsorted(xs, x, side="right") - 1, 0, len(xs) - 2))
            span = xs[k + 1] - xs[k]
            t = 0.0 if span == 0 else (x - xs[k]) / span
            return nodes[k] + t * (nodes[k + 1] - nodes[k])
        return lift


@dataclass(slots=True)
class MarchingMeshSpec:
    ranges: tuple
    points: int | tuple = 13
    axes: np.ndarray | None = None

    def build(self) -> Mesh:
        return marching_mesh(*self.ranges, points=self.points, axes=self.axes)

    def lift(self):
        return None


def linear_mesh(*nodes, points=13, samelength=True, closed=False, basis=None) -> Mesh:
    return LinearMeshSpec(nodes, points, samelength, closed, basis).build()


def build_mesh(spec) -> Mesh:
    if isinstance(spec, Mesh):
        return spec
    if isinstance(spec, (LinearMeshSpec, MarchingMeshSpec)):
        return spec.build()
    raise TypeError(f"Cannot build a mesh from {type(spec).__name__}")
