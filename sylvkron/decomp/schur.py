"""Real Schur decompositions returning quasi-triangular factors."""

from __future__ import annotations

from typing import Tuple

from scipy.linalg import schur
from torch import Tensor, as_tensor, block_diag, cat, eye, zeros

from sylvkron.structures.quasitriangular import DiagonalBlock, QuasiTriangular


def real_schur(mat: Tensor) -> Tuple[Tensor, Tensor]:
    r"""Compute the real Schur form \(\mathbf{M} = \mathbf{Q} \mathbf{T} \mathbf{Q}^\top\).

    Args:
        mat: A real square matrix.

    Returns:
        The orthogonal Schur vectors `Q` and the quasi-triangular factor `T` as
        PyTorch tensors with the data type and device of `mat`.
    """
    t, q = schur(mat.detach().cpu().numpy(), output="real")
    t, q = (as_tensor(x, dtype=mat.dtype, device=mat.device) for x in (t, q))
    return q, t


class SchurDecomp:
    r"""Real Schur decomposition \(\mathbf{M} = \mathbf{Q} \mathbf{T} \mathbf{Q}^\top\).

    Attributes:
        q: The orthogonal Schur vectors.
        t: The quasi-triangular factor.
    """

    def __init__(self, mat: Tensor) -> None:
        """Decompose a matrix.

        Args:
            mat: A real square matrix.

        Raises:
            ValueError: If `mat` is not square.
        """
        if mat.ndim != 2 or mat.shape[0] != mat.shape[1]:
            raise ValueError(f"mat must be square matrix. Got shape {mat.shape}.")
        q, t = real_schur(mat)
        self.q: Tensor = q
        self.t: QuasiTriangular = QuasiTriangular.from_dense(t)

    @property
    def dim(self) -> int:
        """Dimension of the decomposed matrix."""
        return self.q.shape[0]


class SchurDecompZero(SchurDecomp):
    r"""Real Schur decomposition of a matrix with leading zero columns.

    Decomposes the \(n \times n\) matrix \([\mathbf{0} \mid \mathbf{M}]\) where
    \(\mathbf{M}\) has \(n - z\) columns. Splitting the rows of \(\mathbf{M}\) into
    the leading \(z\) rows \(\mathbf{R}\) and the trailing square part
    \(\mathbf{S} = \mathbf{Q}_s \mathbf{T}_s \mathbf{Q}_s^\top\), the decomposition is

    \[
    \begin{pmatrix} \mathbf{0} & \mathbf{R} \\ \mathbf{0} & \mathbf{S} \end{pmatrix}
    =
    \begin{pmatrix} \mathbf{I} & \mathbf{0} \\ \mathbf{0} & \mathbf{Q}_s \end{pmatrix}
    \begin{pmatrix}
    \mathbf{0} & \mathbf{R} \mathbf{Q}_s \\ \mathbf{0} & \mathbf{T}_s
    \end{pmatrix}
    \begin{pmatrix} \mathbf{I} & \mathbf{0} \\ \mathbf{0} & \mathbf{Q}_s \end{pmatrix}^\top
    \]

    so only the trailing part needs an eigenvalue decomposition.

    Attributes:
        q: The orthogonal Schur vectors of the padded matrix.
        t: The quasi-triangular factor of the padded matrix.
        zero_cols: Number of leading zero columns.
    """

    def __init__(self, mat: Tensor) -> None:
        """Decompose the zero-padded matrix.

        Args:
            mat: An `n × (n - zero_cols)` matrix, the non-zero columns.

        Raises:
            ValueError: If `mat` has more columns than rows.
        """
        if mat.ndim != 2 or mat.shape[1] > mat.shape[0]:
            raise ValueError(
                f"mat must have at most as many columns as rows. Got shape {mat.shape}."
            )
        n, zero_cols = mat.shape[0], mat.shape[0] - mat.shape[1]
        kwargs = {"dtype": mat.dtype, "device": mat.device}

        q_s, t_s = real_schur(mat[zero_cols:])
        trailing = QuasiTriangular.from_dense(t_s)
        upper = cat([zeros(zero_cols, zero_cols, **kwargs), mat[:zero_cols] @ q_s], 1)
        lower = cat([zeros(n - zero_cols, zero_cols, **kwargs), trailing.to_dense()], 1)

        blocks = [DiagonalBlock(i, 1) for i in range(zero_cols)] + [
            DiagonalBlock(block.index + zero_cols, block.size)
            for block in trailing.diag_blocks()
        ]

        self.zero_cols = zero_cols
        self.q: Tensor = block_diag(eye(zero_cols, **kwargs), q_s)
        self.t: QuasiTriangular = QuasiTriangular(cat([upper, lower]), blocks)
