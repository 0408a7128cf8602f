"""Tight-binding Hamiltonians and their band structures."""
from .base.hamiltonian_core import Hamiltonian
from .base.blocks import HamiltonianBlocks
from .bandcalc import Band, BandOptions, BandVertex, LinearMeshSpec, MarchingMeshSpec, Mesh, band, linear_mesh, marching_mesh

__all__ = [
    "Hamiltonian",
    "HamiltonianBlocks",
    "Band",
    "BandOptions",
    "BandVertex",
    "LinearMeshSpec",
    "MarchingMeshSpec",
    "Mesh",
    "band",
    "linear_mesh",
    "marching_mesh",
]
