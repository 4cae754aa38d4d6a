"""Quasi-triangular (real Schur form) matrix implemented in `QuasiTriangularLike`."""

from __future__ import annotations

from dataclasses import dataclass
from math import inf
from typing import Iterable, Tuple, Union

from torch import Tensor, cat, triu
from torch.linalg import eigvals, solve

from sylvkron.kron.vector import KronVector
from sylvkron.structures.base import QuasiTriangularLike
from sylvkron.structures.utils import diag_add_, promote


@dataclass(frozen=True)
class DiagonalBlock:
    """A 1×1 or 2×2 block on the diagonal of a quasi-triangular matrix.

    Attributes:
        index: Position of the block's first row/column on the diagonal.
        size: `1` for a real eigenvalue, `2` for a complex-conjugate pair.
    """

    index: int
    size: int

    @property
    def is_real(self) -> bool:
        """Whether the block holds a single real eigenvalue."""
        return self.size == 1

    @property
    def end(self) -> int:
        """Position after the block's last row/column."""
        return self.index + self.size

    @property
    def rows(self) -> slice:
        """Slice selecting the block's rows (or columns)."""
        return slice(self.index, self.end)


def find_diagonal_blocks(mat: Tensor) -> Tuple[DiagonalBlock, ...]:
    """Detect the diagonal blocks of a quasi-triangular matrix.

    A non-zero sub-diagonal entry `mat[j + 1, j]` starts a 2×2 block at `j`.
    Scanning is greedy, so a non-zero entry directly following a 2×2 block is
    ignored.

    Args:
        mat: A square matrix.

    Returns:
        The diagonal blocks in ascending order.
    """
    dim = mat.shape[0]
    sub = mat.diagonal(-1).tolist()
    blocks = []
    j = 0
    while j < dim:
        size = 2 if j + 1 < dim and sub[j] != 0 else 1
        blocks.append(DiagonalBlock(j, size))
        j += size
    return tuple(blocks)


class QuasiTriangular(QuasiTriangularLike):
    r"""Upper quasi-triangular matrix, the real Schur form of a square matrix.

    \[
    \begin{pmatrix}
    \mathbf{T}_{11} & \mathbf{T}_{12} & \cdots & \mathbf{T}_{1K} \\
    \mathbf{0} & \mathbf{T}_{22} & \cdots & \mathbf{T}_{2K} \\
    \vdots & \ddots & \ddots & \vdots \\
    \mathbf{0} & \cdots & \mathbf{0} & \mathbf{T}_{KK}
    \end{pmatrix}
    \]

    where the diagonal blocks \(\mathbf{T}_{kk}\) are either \(1 \times 1\) (real
    eigenvalue) or \(2 \times 2\) (complex-conjugate pair of eigenvalues).

    Multiplication onto Kronecker vectors walks over the diagonal blocks. Since row
    block \(k\) only depends on rows \(\geq k\) (columns \(\leq k\) for the
    transpose), the product can be formed in place without work memory.
    """

    def __init__(
        self, mat: Tensor, blocks: Union[Iterable[DiagonalBlock], None] = None
    ) -> None:
        """Store the matrix internally.

        Note:
            For performance reasons, the zero pattern of `mat` is not checked.
            Use `from_dense` to project an arbitrary matrix.

        Args:
            mat: A quasi-triangular square matrix.
            blocks: Its diagonal blocks. If `None`, they are detected from the
                sub-diagonal of `mat`.

        Raises:
            ValueError: If `blocks` do not partition the diagonal into blocks of
                size one or two.
        """
        self._check_square(mat, name="mat")
        self._mat = mat

        blocks = find_diagonal_blocks(mat) if blocks is None else tuple(blocks)
        position = 0
        for block in blocks:
            if block.index != position or block.size not in (1, 2):
                raise ValueError(
                    f"Invalid diagonal block {block} at diagonal position {position}."
                )
            position = block.end
        if position != mat.shape[0]:
            raise ValueError(
                f"Diagonal blocks cover {position} positions, expected {mat.shape[0]}."
            )
        self._blocks = blocks

    @classmethod
    def from_dense(cls, mat: Tensor) -> QuasiTriangular:
        """Construct from a PyTorch tensor.

        Entries below the sub-diagonal, and sub-diagonal entries that would create
        blocks larger than 2×2, are discarded.

        Args:
            mat: A dense square matrix.

        Returns:
            `QuasiTriangular` approximating the passed matrix.
        """
        cls._check_square(mat, name="mat")
        mat = triu(mat, diagonal=-1)
        blocks = find_diagonal_blocks(mat)
        starts = {block.index for block in blocks if not block.is_real}
        for j in range(mat.shape[0] - 1):
            if j not in starts:
                mat[j + 1, j] = 0.0
        return cls(mat, blocks)

    def to_dense(self) -> Tensor:
        """Convert into dense PyTorch tensor.

        Returns:
            The represented matrix as PyTorch tensor.
        """
        return self._mat

    @property
    def dim(self) -> int:
        """Dimension of the (square) matrix.

        Returns:
            Number of rows.
        """
        return self._mat.shape[0]

    def diag_blocks(self) -> Tuple[DiagonalBlock, ...]:
        """Return the diagonal blocks in ascending order.

        Returns:
            Tuple of diagonal blocks.
        """
        return self._blocks

    def row_end(self, block: DiagonalBlock) -> int:
        """End (exclusive) of the non-zero part of the block's rows.

        Args:
            block: A diagonal block.

        Returns:
            Column index after the last potentially non-zero entry.
        """
        return self.dim

    def col_begin(self, block: DiagonalBlock) -> int:
        """Start of the non-zero part of the block's columns.

        Args:
            block: A diagonal block.

        Returns:
            Row index of the first potentially non-zero entry.
        """
        return 0

    def eigenvalues(self) -> Tensor:
        """Eigenvalues read off the diagonal blocks.

        Returns:
            Complex tensor with one eigenvalue per diagonal position.
        """
        return cat([eigvals(self._mat[b.rows, b.rows]) for b in self._blocks])

    def __matmul__(self, other: Tensor) -> Tensor:
        """Multiply onto a dense matrix or vector (@ operator).

        Args:
            other: A dense tensor. May be complex.

        Returns:
            Result of the multiplication.
        """
        mat, other = promote(self._mat, other)
        return mat @ other

    def rmatmat(self, mat: Tensor) -> Tensor:
        """Multiply the transpose onto a dense matrix (`self.T @ mat`).

        Args:
            mat: A dense matrix. May be complex.

        Returns:
            Result of the multiplication.
        """
        self_mat, mat = promote(self._mat, mat)
        return self_mat.T @ mat

    def mult_right(self, other: QuasiTriangularLike) -> QuasiTriangular:
        """Multiply with a matrix of identical block structure from the right.

        The product of two quasi-triangular matrices with the same diagonal blocks
        is quasi-triangular with these blocks.

        Args:
            other: A quasi-triangular matrix with the same diagonal blocks.

        Returns:
            The product `self @ other`.

        Raises:
            ValueError: If the diagonal blocks differ.
        """
        if (
            not isinstance(other, QuasiTriangular)
            or other.diag_blocks() != self._blocks
        ):
            raise ValueError("Can only multiply with identical diagonal blocks.")
        return QuasiTriangular(self._mat @ other.to_dense(), self._blocks)

    def mult_kron(self, x: KronVector) -> None:
        r"""In-place compute \((\mathbf{T} \otimes \mathbf{I}) \mathbf{x}\).

        Args:
            x: Kronecker vector whose outer dimension equals the matrix dimension.
        """
        self._check_kron_vector(x)
        rows = x.as_matrix()
        mat = promote(self._mat, rows)[0]

        # top to bottom, rows below the current block still hold their old values
        for block in self._blocks:
            end = self.row_end(block)
            new = mat[block.rows, block.rows] @ rows[block.rows]
            if block.end < end:
                new += mat[block.rows, block.end : end] @ rows[block.end : end]
            rows[block.rows] = new

    def mult_kron_trans(self, x: KronVector) -> None:
        r"""In-place compute \((\mathbf{T}^\top \otimes \mathbf{I}) \mathbf{x}\).

        Args:
            x: Kronecker vector whose outer dimension equals the matrix dimension.
        """
        self._check_kron_vector(x)
        rows = x.as_matrix()
        mat = promote(self._mat, rows)[0]

        for block in reversed(self._blocks):
            begin = self.col_begin(block)
            new = mat[block.rows, block.rows].T @ rows[block.rows]
            if begin < block.index:
                above = slice(begin, block.index)
                new += mat[above, block.rows].T @ rows[above]
            rows[block.rows] = new

    def solve_pre(self, r: complex, x: Tensor) -> float:
        r"""In-place solve \((\mathbf{I} + r \mathbf{T}) \mathbf{y} = \mathbf{x}\).

        Uses block back-substitution.

        Args:
            r: Scale of the matrix. May be complex, in which case `x` must be
                complex too.
            x: Right-hand side vector, overwritten by the solution.

        Returns:
            The smallest modulus of the eigenvalues of the solved system.
        """
        mat = promote(self._mat, x)[0]
        eig_min = inf

        for block in reversed(self._blocks):
            end = self.row_end(block)
            rhs = x[block.rows]
            if block.end < end:
                rhs = rhs - r * (mat[block.rows, block.end : end] @ x[block.end : end])
            system = diag_add_(r * mat[block.rows, block.rows], 1.0)
            if block.is_real:
                x[block.rows] = rhs / system[0, 0]
            else:
                x[block.rows] = solve(system, rhs)
            eig_min = min(eig_min, eigvals(system).abs().min().item())

        return eig_min
