"""Interface of square matrices that act on Kronecker-structured vectors."""

from __future__ import annotations

from abc import ABC, abstractmethod
from copy import deepcopy
from typing import Set, Union
from warnings import warn

import torch
from torch import Tensor, eye

from sylvkron.kron.vector import KronVector
from sylvkron.structures.utils import promote


class QuasiTriangularLike(ABC):
    r"""Base class for square matrices used as factors of a Kronecker operator.

    This base class defines the functions that need to be implemented to support
    a new matrix variant in the Sylvester solvers.

    The minimum amount of work to add a new variant requires implementing the
    following methods:

    - `to_dense`
    - `from_dense`

    All other operations will then use a naive implementation which internally
    re-constructs unstructured dense matrices. By default, these operations
    will trigger a warning which can be used to identify functions that can be
    implemented more efficiently using structure.

    The central operation is `mult_kron`. For a matrix \(\mathbf{M}\) of dimension
    \(m\) and a `KronVector` \(\mathbf{x}\) of depth \(d \ge 1\) it computes
    \((\mathbf{M} \otimes \mathbf{I}) \mathbf{x}\) in place, where the identity
    has dimension \(m^{d-1} n\), i.e. \(\mathbf{M}\) acts on the outermost index.

    Attributes:
        WARN_NAIVE: Warn the user if a method falls back to a naive implementation
            of this base class. This indicates a method that should be implemented to
            save memory and run time by considering the represented structure.
            Default: `True`.
        WARN_NAIVE_EXCEPTIONS: Set of methods that should not trigger a warning even
            if `WARN_NAIVE` is `True`.
    """

    WARN_NAIVE: bool = True
    WARN_NAIVE_EXCEPTIONS: Set[str] = set()

    @classmethod
    @abstractmethod
    def from_dense(cls, mat: Tensor) -> QuasiTriangularLike:
        """Extract the represented structure from a dense square matrix.

        This will discard elements that are not part of the structure, even if they
        are non-zero.

        Args:
            mat: A dense square matrix.

        Returns:
            Structured matrix.

        Raises:
            NotImplementedError: Must be implemented by a child class.
        """
        raise NotImplementedError

    @abstractmethod
    def to_dense(self) -> Tensor:
        """Return a dense tensor representing the matrix.

        Returns:
            A dense PyTorch tensor representing the matrix.

        Raises:
            NotImplementedError: Must be implemented by a child class.
        """
        raise NotImplementedError

    @property
    def dim(self) -> int:
        """Dimension of the (square) matrix.

        Returns:
            Number of rows.
        """
        return self.to_dense().shape[0]

    def __matmul__(self, other: Tensor) -> Tensor:
        """Multiply onto a dense matrix or vector (@ operator).

        Args:
            other: A dense tensor. May be complex.

        Returns:
            Result of the multiplication.
        """
        self._warn_naive_implementation("__matmul__")
        dense, other = promote(self.to_dense(), other)
        return dense @ other

    def rmatmat(self, mat: Tensor) -> Tensor:
        """Multiply the matrix's transpose onto a matrix (`self.T @ mat`).

        Args:
            mat: A dense matrix that will be multiplied onto. May be complex.

        Returns:
            A dense PyTorch tensor resulting from the multiplication.
        """
        self._warn_naive_implementation("rmatmat")
        dense, mat = promote(self.to_dense(), mat)
        return dense.T @ mat

    def mult_right(self, other: QuasiTriangularLike) -> QuasiTriangularLike:
        """Multiply with another matrix from the right (`self @ other`).

        Args:
            other: A matrix of the same variant and structure.

        Returns:
            The product, represented in the same variant as `self`.
        """
        self._warn_naive_implementation("mult_right")
        return self.from_dense(self.to_dense() @ other.to_dense())

    def mult_kron(self, x: KronVector) -> None:
        r"""In-place compute \((\mathbf{M} \otimes \mathbf{I}) \mathbf{x}\).

        Args:
            x: Kronecker vector whose outer dimension equals the matrix dimension.
        """
        self._warn_naive_implementation("mult_kron")
        self._check_kron_vector(x)
        rows = x.as_matrix()
        dense, rows_promoted = promote(self.to_dense(), rows)
        rows.copy_(dense @ rows_promoted)

    def mult_kron_trans(self, x: KronVector) -> None:
        r"""In-place compute \((\mathbf{M}^\top \otimes \mathbf{I}) \mathbf{x}\).

        Args:
            x: Kronecker vector whose outer dimension equals the matrix dimension.
        """
        self._warn_naive_implementation("mult_kron_trans")
        self._check_kron_vector(x)
        rows = x.as_matrix()
        dense, rows_promoted = promote(self.to_dense(), rows)
        rows.copy_(dense.T @ rows_promoted)

    def clone(self) -> QuasiTriangularLike:
        """Return an independent copy that can be modified without side effects.

        Returns:
            A deep copy of the matrix.
        """
        return deepcopy(self)

    @classmethod
    def _warn_naive_implementation(cls, fn_name: str):
        """Warn the user that a naive implementation is called.

        This suggests that a child class does not implement a specialized version
        that is usually more efficient.

        You can turn off the warning by setting the `WARN_NAIVE` class attribute.

        Args:
            fn_name: Name of the function whose naive version is being called.
        """
        if cls.WARN_NAIVE and fn_name not in cls.WARN_NAIVE_EXCEPTIONS:
            cls_name = cls.__name__
            warn(
                f"Calling naive implementation of {cls_name}.{fn_name}."
                + f"Consider implementing {cls_name}.{fn_name} using structure."
            )

    def _check_kron_vector(self, x: KronVector):
        """Make sure the matrix can act on the outer index of a Kronecker vector.

        Args:
            x: The Kronecker vector.

        Raises:
            ValueError: If the vector has depth zero or its outer dimension differs
                from the matrix dimension.
        """
        if x.depth < 1:
            raise ValueError("Kronecker vector must have depth at least one.")
        if x.m != self.dim:
            raise ValueError(
                f"Kronecker vector dimension {x.m} does not match matrix dimension"
                + f" {self.dim}."
            )

    @classmethod
    def eye(
        cls,
        dim: int,
        dtype: Union[torch.dtype, None] = None,
        device: Union[torch.device, None] = None,
    ) -> QuasiTriangularLike:
        """Create a structured matrix representing the identity matrix.

        Args:
            dim: Dimension of the (square) matrix.
            dtype: Optional data type of the matrix. Default: `torch.float64`.
            device: Optional device of the matrix.

        Returns:
            A structured matrix representing the identity matrix.
        """
        dtype = torch.float64 if dtype is None else dtype
        return cls.from_dense(eye(dim, dtype=dtype, device=device))

    @staticmethod
    def _check_square(t: Tensor, name: str = "tensor"):
        """Make sure the supplied tensor is a square matrix.

        Args:
            t: The tensor to be checked.
            name: Optional name of the tensor to be printed in the error message.
                Default: `"tensor"`.

        Raises:
            ValueError: If the tensor is not a square matrix.
        """
        if t.ndim != 2 or t.shape[0] != t.shape[1]:
            raise ValueError(f"{name} must be square matrix. Got shape {t.shape}.")
