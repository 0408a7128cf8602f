from .schur import SchurFactorsSolver, nearest_cell_harmonics, selfenergy
from .contacts import MatrixSelfEnergy, SchurLeadSelfEnergy, selfenergy_blocks
from .surface import lead_self_energy, sancho_rubio_surface_gf

__all__ = [
    "SchurFactorsSolver",
    "nearest_cell_harmonics",
    "selfenergy",
    "MatrixSelfEnergy",
    "SchurLeadSelfEnergy",
    "selfenergy_blocks",
    "lead_self_energy",
    "sancho_rubio_surface_gf",
]
