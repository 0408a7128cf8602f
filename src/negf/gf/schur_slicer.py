from __future__ import annotations
import math
from functools import cached_property
import numpy as np
from ..utils.common import MatrixBlock
from .slicer import CellOrbitals, GreenSlicer
from .sparselu import SparseLUGreenSlicer, inverse_green


class SchurGreenSlicer(GreenSlicer):
    """Green's function ``G(n, m)`` of a nearest-cell lead at one frequency.

    With ``boundary = inf`` the lead is infinite in both directions. Otherwise
    cell ``boundary`` is removed and only cells on the same side of it are
    coupled (``G = 0`` when ``n * m <= 0``, with ``n = cell - boundary``).

    Derived quantities are computed on first use and kept for the lifetime of
    the slicer.
    """

    def __init__(self, omega, solver, boundary=math.inf):
        self.omega = omega
        self.solver = solver
        if not math.isinf(boundary):
            if float(boundary) != int(boundary):
                raise ValueError(f"boundary must be an integer cell index or inf, got {boundary}")
            boundary = int(boundary)
        self.boundary = boundary
        self.norbitals = solver.norbitals
        rightward, leftward = solver(omega)
        # the solver workspace is reused on its next call
        self.rightward = tuple(np.array(m, copy=True) for m in rightward)
        self.leftward = tuple(np.array(m, copy=True) for m in leftward)
        self.L = solver.L
        self.R = solver.R

    def _unitcell(self, attached) -> SparseLUGreenSlicer:
        n = self.norbitals
        blocks, offset = [], n
        for (first, second, third), inds in attached:
            ext = np.arange(offset, offset + second.shape[0])
            blocks += [MatrixBlock(first, inds, ext), MatrixBlock(second, ext, ext), MatrixBlock(third, ext, inds)]
            offset += ext.size
        return SparseLUGreenSlicer(inverse_green(self.omega, self.solver.h0, blocks, offset - n), n)

    @cached_property
    def g_m1m1(self) -> SparseLUGreenSlicer:
        """Surface cell of a lead extending to the left."""
        return self._unitcell([(self.leftward, self.solver.linds)])

    @cached_property
    def g_11(self) -> SparseLUGreenSlicer:
        """Surface cell of a lead extending to the right."""
        return self._unitcell([(self.rightward, self.solver.rinds)])

    @cached_property
    def g_inf00(self) -> SparseLUGreenSlicer:
        return self._unitcell([(self.rightward, self.solver.rinds), (self.leftward, self.solver.linds)])

    @cached_property
    def Ldag_ginf00(self) -> np.ndarray:
        return self.g_inf00.solve_adjoint(self.L)

    @cached_property
    def Rdag_ginf00(self) -> np.ndarray:
        return self.g_inf00.solve_adjoint(self.R)

    @cached_property
    def g11_L(self) -> np.ndarray:
        return self.g_11.solve(self.L)

    @cached_property
    def gm1m1_R(self) -> np.ndarray:
        return self.g_m1m1.solve(self.R)

    @cached_property
    def Rdag_g11_L(self) -> np.ndarray:
        return self.R.conj().T @ self.g11_L

    @cached_property
    def Ldag_gm1m1_R(self) -> np.ndarray:
        return self.L.conj().T @ self.gm1m1_R

    def slice(self, i: CellOrbitals, j: CellOrbitals) -> np.ndarray:
        if math.isinf(self.boundary):
            return self.inf_slice(i, j)
        return self.semi_slice(i, j)

    def inf_slice(self, i: CellOrbitals, j: CellOrbitals) -> np.ndarray:
        rows, cols = i.indices(self.norbitals), j.indices(self.norbitals)
        dist = i.cell - j.cell
        if dist == 0:
            return self.g_inf00.block(rows, cols)
        if dist > 0:
            return self.g11_L[rows] @ np.linalg.matrix_power(self.Rdag_g11_L, dist - 1) @ self.Rdag_ginf00[:, cols]
        return self.gm1m1_R[rows] @ np.linalg.matrix_power(self.Ldag_gm1m1_R, -dist - 1) @ self.Ldag_ginf00[:, cols]

    def semi_slice(self, i: CellOrbitals, j: CellOrbitals) -> np.ndarray:
        rows, cols = i.indices(self.norbitals), j.indices(self.norbitals)
        n, m = i.cell - self.boundary, j.cell - self.boundary
        if n * m <= 0:
            return np.zeros((rows.size, cols.size), dtype=complex)
        if n == m == 1:
            return self.g_11.block(rows, cols)
        if n == m == -1:
            return self.g_m1m1.block(rows, cols)
        g0m = self.inf_slice(CellOrbitals(self.boundary), j)
        if n > 0:
            image = self.g11_L[rows] @ np.linalg.matrix_power(self.Rdag_g11_L, n - 1) @ (self.R.conj().T @ g0m)
        else:
            image = self.gm1m1_R[rows] @ np.linalg.matrix_power(self.Ldag_gm1m1_R, -n - 1) @ (self.L.conj().T @ g0m)
        return self.inf_slice(i, j) - image
