"""Vectors that represent the vectorization of Kronecker-structured matrices."""

from __future__ import annotations

from typing import Union

import torch
from einops import rearrange
from torch import Tensor, zeros

from sylvkron.structures.utils import power


class KronVector:
    r"""Vector with the index structure of a Kronecker power.

    A `KronVector` of base size \(n\), dimension \(m\) and depth \(d\) has length
    \(m^d n\). It is the column-major vectorization of an \(n \times m^d\) matrix
    \(\mathbf{Y}\). Its multi-index is \((i_d, \dots, i_1, j)\) where \(i_d\) is the
    outermost (slowest) index and \(j < n\) the base index (fastest).

    Fixing the outermost index yields a contiguous sub-vector of depth \(d - 1\),
    see `sub`. Sub-vectors are views, so in-place operations on them modify the
    parent.

    Attributes:
        data: The underlying 1d tensor.
        m: Dimension of each Kronecker factor.
        n: Base size.
        depth: Number of Kronecker factors.
    """

    def __init__(self, data: Tensor, m: int, n: int, depth: int) -> None:
        """Wrap a 1d tensor.

        Args:
            data: A 1d tensor of length `m ** depth * n`. Not copied.
            m: Dimension of each Kronecker factor.
            n: Base size.
            depth: Number of Kronecker factors.

        Raises:
            ValueError: If `data` is not 1d or has the wrong length.
        """
        if data.ndim != 1:
            raise ValueError(f"Data must be 1-dimensional. Got shape {data.shape}.")
        length = power(m, depth) * n
        if data.numel() != length:
            raise ValueError(
                f"Expected {length} entries for m={m}, n={n}, depth={depth}."
                + f" Got {data.numel()}."
            )
        self.data = data
        self.m = m
        self.n = n
        self.depth = depth

    @classmethod
    def zeros(
        cls,
        m: int,
        n: int,
        depth: int,
        dtype: Union[torch.dtype, None] = None,
        device: Union[torch.device, None] = None,
    ) -> KronVector:
        """Create a zero Kronecker vector.

        Args:
            m: Dimension of each Kronecker factor.
            n: Base size.
            depth: Number of Kronecker factors.
            dtype: Optional data type. Default: `torch.float64`.
            device: Optional device.

        Returns:
            A zero `KronVector`.
        """
        dtype = torch.float64 if dtype is None else dtype
        data = zeros(power(m, depth) * n, dtype=dtype, device=device)
        return cls(data, m, n, depth)

    @classmethod
    def from_matrix(cls, mat: Tensor, m: int, depth: int) -> KronVector:
        """Vectorize an `n × m^depth` matrix column by column.

        Args:
            mat: The matrix. Will be copied.
            m: Dimension of each Kronecker factor.
            depth: Number of Kronecker factors.

        Returns:
            A `KronVector` holding a copy of the column-major vectorization.

        Raises:
            ValueError: If `mat` does not have `m ** depth` columns.
        """
        if mat.ndim != 2 or mat.shape[1] != power(m, depth):
            raise ValueError(
                f"Expected matrix with {power(m, depth)} columns. Got {mat.shape}."
            )
        data = rearrange(mat, "n cols -> (cols n)").clone()
        return cls(data, m, mat.shape[0], depth)

    def to_matrix(self) -> Tensor:
        """Return the `n × m^depth` matrix this vector vectorizes.

        Returns:
            A (non-contiguous) view on the data.
        """
        return rearrange(self.data, "(cols n) -> n cols", n=self.n)

    def sub(self, i: int) -> KronVector:
        """Return the sub-vector with fixed outermost index.

        Args:
            i: The outermost index.

        Returns:
            A `KronVector` of depth `depth - 1` viewing a contiguous range of the data.

        Raises:
            ValueError: If the vector has depth zero or `i` is out of range.
        """
        if self.depth == 0:
            raise ValueError("Cannot slice a Kronecker vector of depth zero.")
        if not 0 <= i < self.m:
            raise ValueError(f"Index {i} out of range for dimension {self.m}.")
        length = self.data.numel() // self.m
        return KronVector(
            self.data[i * length : (i + 1) * length], self.m, self.n, self.depth - 1
        )

    def as_matrix(self) -> Tensor:
        """View the data as `m × (m^(depth-1) n)`, one row per outermost index.

        Returns:
            A view on the data.

        Raises:
            ValueError: If the vector has depth zero.
        """
        if self.depth == 0:
            raise ValueError("Kronecker vector of depth zero has no outer index.")
        return self.data.view(self.m, -1)

    def base_view(self) -> Tensor:
        """View the data as `m^depth × n`, the transpose of the vectorized matrix.

        Returns:
            A view on the data.
        """
        return self.data.view(-1, self.n)

    def clone(self) -> KronVector:
        """Return an independent copy.

        Returns:
            A `KronVector` owning a copy of the data.
        """
        return KronVector(self.data.clone(), self.m, self.n, self.depth)

    def zero_(self) -> KronVector:
        """In-place set all entries to zero.

        Returns:
            Reference to the vector.
        """
        self.data.zero_()
        return self

    def add_(self, other: KronVector, alpha: complex = 1.0) -> KronVector:
        """In-place addition of another Kronecker vector.

        Args:
            other: Vector of the same structure.
            alpha: Scale applied to `other`. Default: `1.0`.

        Returns:
            Reference to the vector.

        Raises:
            ValueError: If the structures differ.
        """
        if (other.m, other.n, other.depth) != (self.m, self.n, self.depth):
            raise ValueError("Kronecker vectors have different structure.")
        self.data.add_(other.data, alpha=alpha)
        return self

    def mul_(self, value: complex) -> KronVector:
        """In-place multiplication with a scalar.

        Args:
            value: The scalar.

        Returns:
            Reference to the vector.
        """
        self.data.mul_(value)
        return self

    def max_abs(self) -> float:
        """Largest absolute entry.

        Returns:
            The infinity vector norm of the data as Python float.
        """
        if self.data.numel() == 0:
            return 0.0
        return self.data.abs().max().item()

    def __len__(self) -> int:
        return self.data.numel()
