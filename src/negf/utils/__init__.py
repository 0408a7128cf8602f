from .common import to_ndarray, MatrixBlock, assemble_dense, assemble_sparse

__all__ = [
    "to_ndarray",
    "MatrixBlock",
    "assemble_dense",
    "assemble_sparse",
]
