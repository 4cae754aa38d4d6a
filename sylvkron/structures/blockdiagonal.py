"""Block-diagonal quasi-triangular matrix implemented in `QuasiTriangularLike`."""

from __future__ import annotations

from bisect import bisect_right
from itertools import accumulate
from typing import Iterable, Iterator, List, Tuple, Union

from torch import Tensor

from sylvkron.kron.vector import KronVector
from sylvkron.structures.base import QuasiTriangularLike
from sylvkron.structures.quasitriangular import DiagonalBlock, QuasiTriangular
from sylvkron.structures.utils import promote


class BlockDiagonal(QuasiTriangular):
    r"""Quasi-triangular matrix whose diagonal is split into decoupled clusters.

    \[
    \begin{pmatrix}
    \mathbf{T}_1 & \mathbf{0} & \cdots & \mathbf{0} \\
    \mathbf{0} & \mathbf{T}_2 & \ddots & \vdots \\
    \vdots & \ddots & \ddots & \mathbf{0} \\
    \mathbf{0} & \cdots & \mathbf{0} & \mathbf{T}_L
    \end{pmatrix}
    \]

    where each cluster \(\mathbf{T}_l\) is itself quasi-triangular and cluster
    boundaries coincide with boundaries of the \(1 \times 1\) or \(2 \times 2\)
    diagonal blocks. Entries that couple two clusters are exactly zero.

    The cluster partition is stored in the parallel lists `row_len` and `col_len`
    holding the number of rows and columns spanned by each cluster. Multiplication
    onto Kronecker vectors only touches entries inside clusters.

    Attributes:
        row_len: Number of rows of each cluster, in ascending diagonal order.
        col_len: Number of columns of each cluster, in ascending diagonal order.
    """

    def __init__(
        self,
        mat: Tensor,
        blocks: Union[Iterable[DiagonalBlock], None] = None,
        cluster_sizes: Union[Iterable[int], None] = None,
    ) -> None:
        """Store the matrix and its cluster partition internally.

        Args:
            mat: A quasi-triangular square matrix.
            blocks: Its diagonal blocks. If `None`, they are detected from the
                sub-diagonal of `mat`.
            cluster_sizes: Sizes of the clusters. If `None`, every position where
                the matrix decouples exactly (all entries coupling the leading and
                trailing part are zero) starts a new cluster.

        Raises:
            ValueError: If the cluster sizes do not sum to the matrix dimension, or
                a cluster boundary splits a diagonal block.
        """
        super().__init__(mat, blocks)
        if cluster_sizes is None:
            cluster_sizes = self._detect_cluster_sizes()
        cluster_sizes = list(cluster_sizes)

        if any(size <= 0 for size in cluster_sizes) or sum(cluster_sizes) != self.dim:
            raise ValueError(
                f"Cluster sizes {cluster_sizes} do not partition dimension {self.dim}."
            )
        block_starts = {block.index for block in self.diag_blocks()}
        for start in accumulate([0] + cluster_sizes[:-1]):
            if start not in block_starts:
                raise ValueError(f"Cluster boundary {start} splits a diagonal block.")

        self.row_len: List[int] = cluster_sizes
        self.col_len: List[int] = list(cluster_sizes)
        self._update_starts()

    @classmethod
    def from_quasi_triangular(cls, t: QuasiTriangular) -> BlockDiagonal:
        """Promote a quasi-triangular matrix.

        Existing exact decouplings are detected and become cluster boundaries.

        Args:
            t: A quasi-triangular matrix. Its data is copied.

        Returns:
            `BlockDiagonal` representing the same matrix.
        """
        return cls(t.to_dense().clone(), t.diag_blocks())

    def leading(self, p: int) -> BlockDiagonal:
        """Extract the leading `p × p` window.

        Clusters that extend beyond `p` are truncated.

        Args:
            p: Size of the window. Must be a diagonal block boundary.

        Returns:
            `BlockDiagonal` holding a copy of the leading window.

        Raises:
            ValueError: If `p` is not positive, splits a diagonal block or exceeds
                the dimension.
        """
        if not 1 <= p <= self.dim:
            raise ValueError(f"Window size must be in [1, {self.dim}]. Got {p}.")
        ends = {block.end for block in self.diag_blocks()}
        if p not in ends:
            raise ValueError(f"Window size {p} is not a diagonal block boundary.")

        blocks = [block for block in self.diag_blocks() if block.end <= p]
        cluster_sizes = [
            min(start + size, p) - start
            for start, size in zip(self._starts, self.row_len)
            if start < p
        ]
        return BlockDiagonal(self._mat[:p, :p].clone(), blocks, cluster_sizes)

    def set_zero_block_edge(self, edge: Union[DiagonalBlock, int]) -> None:
        """Split the cluster containing `edge` so that a new cluster starts there.

        Entries coupling the two parts of the split cluster are set to zero.

        Args:
            edge: The diagonal block that starts the new cluster, or its position.

        Raises:
            ValueError: If the position is not the start of a diagonal block.
        """
        position = edge.index if isinstance(edge, DiagonalBlock) else edge
        if position not in {block.index for block in self.diag_blocks()}:
            raise ValueError(f"Position {position} is not a diagonal block start.")

        cluster = bisect_right(self._starts, position) - 1
        start = self._starts[cluster]
        if start == position:
            return

        end = start + self.row_len[cluster]
        self._mat[start:position, position:end] = 0.0
        for lengths in (self.row_len, self.col_len):
            lengths[cluster : cluster + 1] = [position - start, end - position]
        self._update_starts()

    def row_end(self, block: DiagonalBlock) -> int:
        """End (exclusive) of the cluster containing the block.

        Args:
            block: A diagonal block.

        Returns:
            Column index after the last potentially non-zero entry of its rows.
        """
        return self._find_block_start(block.index)

    def col_begin(self, block: DiagonalBlock) -> int:
        """Start of the cluster containing the block.

        Args:
            block: A diagonal block.

        Returns:
            Row index of the first potentially non-zero entry of its columns.
        """
        return self._starts[bisect_right(self._starts, block.index) - 1]

    def num_blocks(self) -> int:
        """Number of clusters."""
        return len(self.row_len)

    def largest_block(self) -> int:
        """Size of the largest cluster."""
        return max(self.row_len)

    def num_zeros(self) -> int:
        """Number of upper triangular entries that are zero due to the decoupling.

        Returns:
            Number of entries right of the clusters.
        """
        return sum(
            size * (self.dim - start - size)
            for start, size in zip(self._starts, self.row_len)
        )

    def print_info(self) -> None:
        """Print the cluster partition."""
        print(f"Block sizes: {' '.join(str(size) for size in self.row_len)}")
        print(f"Num blocks: {self.num_blocks()}")
        print(f"Num zeros: {self.num_zeros()}")

    def mult_right(self, other: QuasiTriangularLike) -> BlockDiagonal:
        """Multiply with a matrix of identical block structure from the right.

        Args:
            other: A `BlockDiagonal` with the same diagonal blocks and clusters.

        Returns:
            The product `self @ other`, which keeps the structure.

        Raises:
            ValueError: If the structures differ.
        """
        if (
            not isinstance(other, BlockDiagonal)
            or other.diag_blocks() != self.diag_blocks()
            or other.row_len != self.row_len
        ):
            raise ValueError("Can only multiply with identical block structure.")
        return BlockDiagonal(
            self._mat @ other.to_dense(), self.diag_blocks(), self.row_len
        )

    def mult_kron(self, x: KronVector) -> None:
        r"""In-place compute \((\mathbf{T} \otimes \mathbf{I}) \mathbf{x}\).

        Args:
            x: Kronecker vector whose outer dimension equals the matrix dimension.
        """
        self._check_kron_vector(x)
        rows = x.as_matrix()
        mat = promote(self._mat, rows)[0]

        for start, end, blocks in self._clusters():
            work = self._save_part_of_x(start, end, rows)
            for block in blocks:
                self._mult_kron_block(block, start, end, mat, work, rows)

    def mult_kron_trans(self, x: KronVector) -> None:
        r"""In-place compute \((\mathbf{T}^\top \otimes \mathbf{I}) \mathbf{x}\).

        Args:
            x: Kronecker vector whose outer dimension equals the matrix dimension.
        """
        self._check_kron_vector(x)
        rows = x.as_matrix()
        mat = promote(self._mat, rows)[0]

        for start, end, blocks in self._clusters():
            work = self._save_part_of_x(start, end, rows)
            for block in blocks:
                self._mult_kron_block_trans(block, start, mat, work, rows)

    @staticmethod
    def _save_part_of_x(start: int, end: int, rows: Tensor) -> Tensor:
        """Copy the rows of a Kronecker vector owned by a cluster.

        Args:
            start: First row of the cluster.
            end: Row after the last row of the cluster.
            rows: Matrix view of the Kronecker vector.

        Returns:
            Copy of `rows[start:end]`.
        """
        return rows[start:end].clone()

    @staticmethod
    def _mult_kron_block(
        block: DiagonalBlock,
        start: int,
        end: int,
        mat: Tensor,
        work: Tensor,
        rows: Tensor,
    ) -> None:
        """Recompute the rows of one diagonal block from the saved cluster rows."""
        off = block.index - start
        rows[block.rows] = mat[block.rows, block.index : end] @ work[off:]

    @staticmethod
    def _mult_kron_block_trans(
        block: DiagonalBlock, start: int, mat: Tensor, work: Tensor, rows: Tensor
    ) -> None:
        """Recompute the rows of one diagonal block for the transposed product."""
        rows[block.rows] = (
            mat[start : block.end, block.rows].T @ work[: block.end - start]
        )

    def _clusters(self) -> Iterator[Tuple[int, int, List[DiagonalBlock]]]:
        """Iterate over the clusters.

        Yields:
            Start, end (exclusive) and diagonal blocks of each cluster.
        """
        blocks = iter(self.diag_blocks())
        for start, size in zip(self._starts, self.row_len):
            end = start + size
            members = []
            position = start
            while position < end:
                block = next(blocks)
                members.append(block)
                position = block.end
            yield start, end, members

    def _find_block_start(self, index: int) -> int:
        """Find the first cluster start after a position.

        Args:
            index: A diagonal position.

        Returns:
            Start of the first cluster beginning after `index`, or the dimension if
            `index` lies in the last cluster.
        """
        cluster = bisect_right(self._starts, index)
        return self._starts[cluster] if cluster < len(self._starts) else self.dim

    def _detect_cluster_sizes(self) -> List[int]:
        """Determine the clusters from exact zeros of the matrix.

        Returns:
            Sizes of the finest decoupled clusters.
        """
        starts = [0]
        for block in self.diag_blocks()[1:]:
            edge = block.index
            if not self._mat[:edge, edge:].any():
                starts.append(edge)
        return [end - start for start, end in zip(starts, starts[1:] + [self.dim])]

    def _update_starts(self):
        """Recompute the cached cluster starts from the cluster sizes."""
        self._starts = list(accumulate([0] + self.row_len[:-1]))
