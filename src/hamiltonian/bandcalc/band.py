"""Band manifolds from per-vertex spectra over a base mesh.

The construction runs in three phases, each completed before the next starts:

1. diagonalize: one :class:`~.eigensolver.Spectrum` per base vertex, grouped
   into degenerate subspaces (one :class:`BandVertex` each);
2. knit: connect subspaces of neighbouring base vertices whose projector has
   non-zero connection rank, recording apparent crossings;
3. patch: refine the base mesh at frustrated crossings (band dislocations),
   starting with user supplied defects.

Band simplices are the (L+1)-cliques of the knitted graph.
"""
from __future__ import annotations
import logging
import math
import warnings
from dataclasses import dataclass
from multiprocessing.pool import ThreadPool
from typing import List, Tuple
import numpy as np
import scipy.sparse as sp
from scipy.sparse.csgraph import connected_components
from tqdm import tqdm
from ..base.aux import approxruns
from .eigensolver import AppliedEigensolver, Spectrum
from .mesh import LinearMeshSpec, MarchingMeshSpec, Mesh, build_cliques, build_mesh, orient_simplices
from .options import DEFAULT_THRESHOLD, BandOptions

ORTHO_THRESHOLD = 1e-10


@dataclass(frozen=True, slots=True)
class BandVertex:
    """Degenerate eigenspace at one base-mesh vertex."""
    coordinates: np.ndarray
    energy: float | complex
    states: np.ndarray
    parentcols: range

    @property
    def degeneracy(self) -> int:
        return self.states.shape[1]

    @property
    def point(self) -> np.ndarray:
        """Base coordinates followed by the (real part of the) energy."""
        return np.append(self.coordinates, np.real(self.energy))


def orthonormalize(states: np.ndarray, threshold: float = 0.0) -> np.ndarray:
    """Modified Gram-Schmidt on the columns of ``states``, in place.

    Columns whose residual squared norm falls below ``threshold`` are zeroed
    instead of normalized.
    """
    for j in range(states.shape[1]):
        col = states[:, j]
        for k in range(j):
            prev = states[:, k]
            col -= np.vdot(prev, col) * prev
        norm2 = np.vdot(col, col).real
        if norm2 < threshold or norm2 == 0:
            col[:] = 0
        else:
            col /= math.sqrt(norm2)
    return states


def connection_rank(proj: np.ndarray, threshold: float = DEFAULT_THRESHOLD) -> int:
    """Number of adiabatic connections carried by the projector block ``proj``.

    A block with total weight ``sum |P|^2`` below ``threshold`` connects
    nothing. Single-row or single-column blocks connect once; larger blocks
    count squared singular values above ``threshold``.
    """
    proj = np.atleast_2d(proj)
    fastrank = 1 if np.sum(np.abs(proj) ** 2) >= threshold else 0
    if fastrank == 0 or proj.shape[0] == 1 or proj.shape[1] == 1:
        return fastrank
    sv = np.linalg.svd(proj, compute_uv=False)
    return int(np.count_nonzero(sv ** 2 >= threshold))


def _make_partition(num_items: int, processes: int | None) -> List[Tuple[int, int]]:
    if num_items <= 0:
        raise ValueError("num_items must be positive.")
    if processes is None or processes <= 0:
        processes = num_items
    processes = min(processes, num_items)
    base = num_items // processes
    remainder = num_items % processes
    partition: List[Tuple[int, int]] = []
    start = 0
    for pid in range(processes):
        size = base + (1 if pid < remainder else 0)
        end = start + size - 1
        partition.append((start, end))
        start = end + 1
    return partition


class Band:
    """Immutable band manifold: band vertices, their adjacency and simplices."""

    def __init__(self, vertices, neighs, simplices, basemesh, solvers, coloffsets, dislocations=0):
        self._vertices = tuple(vertices)
        self._neighs = tuple(tuple(ns) for ns in neighs)
        self._simplices = tuple(simplices)
        self._basemesh = basemesh
        self._solvers = tuple(solvers)
        self._coloffsets = tuple(coloffsets)
        self._dislocations = dislocations

    def __repr__(self):
        return (f"Band(nvertices={self.nvertices}, nedges={self.nedges}, "
                f"nsimplices={len(self._simplices)}, dislocations={self._dislocations})")

    @property
    def vertices(self) -> tuple:
        return self._vertices

    @property
    def simplices(self) -> tuple:
        return self._simplices

    @property
    def basemesh(self) -> Mesh:
        return self._basemesh

    @property
    def solvers(self) -> tuple:
        return self._solvers

    @property
    def dislocations(self) -> int:
        return self._dislocations

    @property
    def nvertices(self) -> int:
        return len(self._vertices)

    @property
    def nedges(self) -> int:
        return sum(len(ns) for ns in self._neighs) // 2

    def neighbors(self, i: int) -> tuple:
        return self._neighs[i]

    def column_indices(self, ib: int) -> range:
        return range(self._coloffsets[ib], self._coloffsets[ib + 1])

    def column(self, ib: int) -> tuple:
        """Band vertices sitting on base vertex ``ib``."""
        return self._vertices[self._coloffsets[ib]:self._coloffsets[ib + 1]]

    def energies(self, ib: int) -> np.ndarray:
        return np.array([v.energy for v in self.column(ib)])

    def subbands(self) -> list:
        """Index arrays of the connected components of the band graph."""
        rows = [i for i, ns in enumerate(self._neighs) for _ in ns]
        cols = [j for ns in self._neighs for j in ns]
        n = self.nvertices
        graph = sp.csr_matrix((np.ones(len(rows)), (rows, cols)), shape=(n, n))
        ncomp, labels = connected_components(graph, directed=False)
        return [np.flatnonzero(labels == c) for c in range(ncomp)]


class _BandBuilder:
    """Shared state of the three band phases; single-threaded after phase 1."""

    def __init__(self, basemesh: Mesh, solvers, options: BandOptions, degtol: float):
        self.basemesh = basemesh
        self.solvers = solvers
        self.L = basemesh.dim
        self.degtol = degtol
        self.threshold = options.threshold
        self.patches = options.patches
        self.warn = options.warn
        self.showprogress = options.showprogress
        self.defects = [np.asarray(d, dtype=float) for d in options.defects]
        self.spectra: list[Spectrum] = []
        self.bandverts: list[BandVertex] = []
        self.bandneighs: list[list[int]] = []
        self.coloffsets = [0]
        self.crossed: list[tuple] = []
        self.frustrated: list[tuple] = []
        self.dislocations = 0

    # phase 1

    def diagonalize(self) -> None:
        verts = self.basemesh.verts
        spectra = [None] * len(verts)
        partition = _make_partition(len(verts), len(self.solvers))
        bar = tqdm(total=len(verts), desc="Step 1 - Diagonalizing", disable=not self.showprogress)

        def work(task):
            solver, (start, end) = task
            for i in range(start, end + 1):
                spectra[i] = solver(verts[i])
                bar.update()

        tasks = list(zip(self.solvers, partition))
        if len(tasks) > 1:
            with ThreadPool(processes=len(tasks)) as pool:
                pool.map(work, tasks)
        else:
            work(tasks[0])
        bar.close()
        for vertex, spectrum in zip(verts, spectra):
            self.append_column(vertex, spectrum)
        logging.info(f"Diagonalized {len(verts)} base vertices into {len(self.bandverts)} band vertices")

    def append_column(self, vertex, spectrum: Spectrum) -> None:
        energies = spectrum.energies
        states = np.array(spectrum.states, dtype=np.result_type(spectrum.states, float))
        for run in approxruns(energies, self.degtol):
            cols = slice(run.start, run.stop)
            orthonormalize(states[:, cols], ORTHO_THRESHOLD)
            energy = np.mean(energies[cols])
            self.bandverts.append(BandVertex(np.asarray(vertex), energy, states[:, cols], run))
            self.bandneighs.append([])
        self.spectra.append(Spectrum(energies, states))
        self.coloffsets.append(len(self.bandverts))

    def column_range(self, ib: int) -> range:
        return range(self.coloffsets[ib], self.coloffsets[ib + 1])

    # phase 2

    def knit(self) -> None:
        edges = list(self.basemesh.edges())
        for ib, jb in tqdm(edges, desc="Step 2 - Knitting", disable=not self.showprogress):
            self.knit_seam(ib, jb)
        logging.info(f"Knitted {len(edges)} seams, {len(self.crossed)} crossings found")

    def knit_seam(self, ib: int, jb: int) -> None:
        srcrange, dstrange = self.column_range(ib), self.column_range(jb)
        colproj = self.spectra[jb].states.conj().T @ self.spectra[ib].states
        for i in srcrange:
            src = self.bandverts[i].parentcols
            for j in dstrange:
                dst = self.bandverts[j].parentcols
                proj = colproj[dst.start:dst.stop, src.start:src.stop]
                if connection_rank(proj, self.threshold) > 0:
                    self.bandneighs[i].append(j)
                    self.bandneighs[j].append(i)
                    if self.L > 1:
                        self._record_crossings(ib, jb, srcrange, dstrange, i, j)

    def _record_crossings(self, ib, jb, srcrange, dstrange, i, j) -> None:
        # connection i -> j crosses every earlier i2 < i connected to some j2 > j
        for i2 in range(srcrange.start, i):
            for j2 in self.bandneighs[i2]:
                if j2 in dstrange and j2 > j:
                    self.crossed.append((ib, jb, i2, i, j2, j))

    def delete_seam(self, ib: int, jb: int) -> None:
        srcrange, dstrange = self.column_range(ib), self.column_range(jb)
        for i in srcrange:
            self.bandneighs[i] = [j for j in self.bandneighs[i] if j not in dstrange]
        for j in dstrange:
            self.bandneighs[j] = [i for i in self.bandneighs[j] if i not in srcrange]

    # phase 3

    def patch(self) -> None:
        if self.L < 2 or self.patches <= 0:
            return
        self.insert_defects()
        self.queue_frustrated()
        if self.warn and not self.defects and self.frustrated:
            warnings.warn(f"Trying to patch {len(self.frustrated)} band dislocations without a list of "
                          f"`defects` of defect positions.", stacklevel=3)
        newcols = 0
        bar = tqdm(total=None if self.patches == math.inf else self.patches,
                   desc="Step 3 - Patching", disable=not self.showprogress)
        while self.frustrated and newcols < self.patches:
            crossing = self.frustrated.pop()
            ib, jb = crossing[:2]
            if jb not in self.basemesh.neighs[ib]:
                continue
            self.insert_column(ib, jb, self.crossing_point(crossing))
            newcols += 1
            bar.update()
            self.queue_frustrated()
        bar.close()
        self.dislocations = len(self.frustrated)
        logging.info(f"Inserted {newcols} patch columns, {self.dislocations} dislocations remain")
        if self.dislocations and self.warn:
            warnings.warn(f"Band with {self.dislocations} dislocation defects. Consider specifying topological "
                          f"defect locations with `defects` (or adjusting the mesh) and/or increasing `patches`",
                          stacklevel=3)

    def insert_defects(self) -> None:
        for defect in self.defects:
            if defect.shape != (self.L,):
                raise ValueError(f"Defect {defect} does not match the {self.L}-dimensional base mesh")
            self.insert_defect_column(defect)
        mindeg = min(bv.degeneracy for bv in self.bandverts)
        for bv in list(self.bandverts):
            if bv.degeneracy > mindeg and not any(np.allclose(bv.coordinates, d) for d in self.defects):
                self.defects.append(np.array(bv.coordinates, dtype=float))

    def insert_defect_column(self, defect: np.ndarray) -> None:
        verts = self.basemesh.verts
        if any(np.allclose(v, defect) for v in verts):
            return
        ib, jb = min(self.basemesh.edges(), key=lambda e: np.linalg.norm(0.5 * (verts[e[0]] + verts[e[1]]) - defect))
        self.insert_column(ib, jb, defect)

    def insert_column(self, ib: int, jb: int, k) -> None:
        self.delete_seam(ib, jb)
        new = self.basemesh.split_edge(ib, jb, k)
        vertex = self.basemesh.verts[new]
        self.append_column(vertex, self.solvers[0](vertex))
        for nb in self.basemesh.neighs[new]:
            self.knit_seam(nb, new)

    def is_frustrated(self, crossing) -> bool:
        _, _, srclo, srchi, dsthi, dstlo = crossing
        ns = self.bandneighs
        return (set(ns[srclo]) & set(ns[dstlo])) != (set(ns[srchi]) & set(ns[dsthi]))

    def crossing_point(self, crossing) -> np.ndarray:
        """Base-edge point where the two crossing connections meet in energy."""
        ib, jb, i2, i, j2, j = crossing
        e = {n: float(np.real(self.bandverts[n].energy)) for n in (i, i2, j, j2)}
        # straight lines i2 -> j2 and i -> j in (position, energy)
        denom = (e[j2] - e[i2]) - (e[j] - e[i])
        lam = 0.5 if denom == 0 else (e[i] - e[i2]) / denom
        lam = min(max(lam, 0.0), 1.0)
        ki, kj = self.basemesh.verts[ib], self.basemesh.verts[jb]
        return ki + lam * (kj - ki)

    def distance_to_defects(self, crossing) -> float:
        k = self.crossing_point(crossing)
        return min(float(np.linalg.norm(k - d)) for d in self.defects)

    def queue_frustrated(self) -> None:
        self.crossed = [c for c in self.crossed if c[1] in self.basemesh.neighs[c[0]]]
        frustrated = [c for c in self.crossed if self.is_frustrated(c)]
        if self.defects:
            # sorted farthest first; pop() takes from the end, so the closest crossing is patched first
            frustrated.sort(key=self.distance_to_defects, reverse=True)
        self.frustrated = frustrated

    # finalization

    def build(self) -> Band:
        simplices = orient_simplices(build_cliques(self.bandneighs, self.L + 1), [bv.point for bv in self.bandverts])
        self.basemesh.rebuild_simplices()
        band = Band(self.bandverts, self.bandneighs, simplices, self.basemesh, self.solvers,
                    self.coloffsets, self.dislocations)
        logging.info(f"Built {band!r}")
        return band


def _default_degtol(mesh: Mesh) -> float:
    dtype = np.result_type(mesh.verts[0]) if mesh.verts else np.float64
    real = np.finfo(dtype).dtype if np.issubdtype(dtype, np.inexact) else np.float64
    return math.sqrt(np.finfo(real).eps)


def band(hamiltonian, mesh, *, options: BandOptions | None = None, **overrides) -> Band:
    """Compute the band manifold of ``hamiltonian`` over ``mesh``.

    Parameters
    ----------
    hamiltonian : callable
        ``phases -> Bloch matrix``, e.g. :class:`hamiltonian.Hamiltonian`.
    mesh : Mesh | LinearMeshSpec | MarchingMeshSpec
        Base mesh. A spec is built here and its lift is used as the default
        ``mapping``. A :class:`Mesh` is copied, never mutated.
    options : BandOptions, optional
        Keyword ``overrides`` replace individual fields.
    """
    options = BandOptions() if options is None else options
    if overrides:
        options = options.replace(**overrides)
    mapping = options.mapping
    if isinstance(mesh, (LinearMeshSpec, MarchingMeshSpec)):
        if mapping is None:
            mapping = mesh.lift()
        basemesh = build_mesh(mesh)
    else:
        basemesh = build_mesh(mesh).copy()
    if basemesh.nvertices == 0:
        raise ValueError("Cannot compute a band over an empty mesh")
    for defect in options.defects:
        if len(defect) != basemesh.dim:
            raise ValueError(f"Defect {defect} does not match the {basemesh.dim}-dimensional base mesh")
    solver = AppliedEigensolver(hamiltonian, options.eigensolver, mapping, options.postlift)
    solvers = [solver] + [solver.minimal_callsafe_copy() for _ in range(options.processes - 1)]
    degtol = _default_degtol(basemesh) if options.degtol is None else options.degtol
    builder = _BandBuilder(basemesh, solvers, options, degtol)
    builder.diagonalize()
    builder.knit()
    builder.patch()
    return builder.build()
