"""Dense matrix implemented in the `QuasiTriangularLike` interface."""

from __future__ import annotations

from torch import Tensor

from sylvkron.structures.base import QuasiTriangularLike


class DenseMatrix(QuasiTriangularLike):
    r"""Unstructured dense matrix in the `QuasiTriangularLike` interface.

    \[
    \begin{pmatrix}
    \mathbf{A}
    \end{pmatrix}
    \]

    Used for the similarity transforms (e.g. the Schur vectors) which are applied
    to Kronecker vectors but have no exploitable structure.
    """

    WARN_NAIVE: bool = False  # Fall-back to naive base class implementations OK

    def __init__(self, mat: Tensor) -> None:
        r"""Store the dense matrix internally.

        Args:
            mat: A square matrix representing \(\mathbf{A}\).
        """
        self._check_square(mat, name="mat")
        self._mat = mat

    @classmethod
    def from_dense(cls, mat: Tensor) -> DenseMatrix:
        """Construct from a PyTorch tensor.

        Args:
            mat: A dense square matrix that will be represented as `DenseMatrix`.

        Returns:
            `DenseMatrix` representing the passed matrix.
        """
        return cls(mat)

    def to_dense(self) -> Tensor:
        """Convert into dense PyTorch tensor.

        Returns:
            The represented matrix as PyTorch tensor.
        """
        return self._mat
