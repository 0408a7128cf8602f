from .mesh import (
    LinearMeshSpec,
    MarchingMeshSpec,
    Mesh,
    build_cliques,
    build_mesh,
    linear_mesh,
    marching_mesh,
)
from .eigensolver import AppliedEigensolver, DenseEigensolver, SparseEigensolver, Spectrum
from .options import BandOptions
from .band import Band, BandVertex, band, connection_rank, orthonormalize

__all__ = [
    "LinearMeshSpec",
    "MarchingMeshSpec",
    "Mesh",
    "build_cliques",
    "build_mesh",
    "linear_mesh",
    "marching_mesh",
    "AppliedEigensolver",
    "DenseEigensolver",
    "SparseEigensolver",
    "Spectrum",
    "BandOptions",
    "Band",
    "BandVertex",
    "band",
    "connection_rank",
    "orthonormalize",
]
