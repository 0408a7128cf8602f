from __future__ import annotations
from dataclasses import dataclass
import numpy as np
import scipy.sparse as sp


def to_ndarray(mat, dtype=complex) -> np.ndarray:
    """Dense 2-D copy of ``mat`` (sparse, array or scalar)."""
    if sp.issparse(mat):
        return mat.toarray().astype(dtype, copy=False)
    return np.array(np.atleast_2d(mat), dtype=dtype)


@dataclass(slots=True)
class MatrixBlock:
    """Dense ``block`` living at rows ``rows`` and columns ``cols`` of a larger matrix."""
    block: np.ndarray
    rows: np.ndarray
    cols: np.ndarray

    def __post_init__(self):
        self.block = to_ndarray(self.block)
        self.rows = np.asarray(self.rows, dtype=int).ravel()
        self.cols = np.asarray(self.cols, dtype=int).ravel()
        if self.block.shape != (self.rows.size, self.cols.size):
            raise ValueError(f"Block of shape {self.block.shape} does not fit "
                             f"{self.rows.size} rows and {self.cols.size} columns")

    @property
    def extent(self) -> int:
        """Smallest square size that contains the block."""
        top = [self.rows.max() + 1] if self.rows.size else [0]
        left = [self.cols.max() + 1] if self.cols.size else [0]
        return int(max(top + left))


def assemble_dense(blocks, size: int) -> np.ndarray:
    """Sum ``blocks`` into a dense ``size x size`` matrix, adding at shared indices."""
    out = np.zeros((size, size), dtype=complex)
    for b in blocks:
        np.add.at(out, np.ix_(b.rows, b.cols), b.block)
    return out


def assemble_sparse(blocks, size: int) -> sp.csc_matrix:
    rows, cols, data = [], [], []
    for b in blocks:
        r, c = np.meshgrid(b.rows, b.cols, indexing="ij")
        rows.append(r.ravel())
        cols.append(c.ravel())
        data.append(b.block.ravel())
    if not rows:
        return sp.csc_matrix((size, size), dtype=complex)
    # duplicate entries are summed by the COO -> CSC conversion
    coo = sp.coo_matrix((np.concatenate(data), (np.concatenate(rows), np.concatenate(cols))), shape=(size, size))
    return coo.tocsc()
