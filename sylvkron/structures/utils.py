"""Utility functions for the quasi-triangular structures."""

from typing import Tuple

import torch
from torch import Tensor, arange


def power(base: int, exponent: int) -> int:
    """Integer power used for Kronecker dimensions.

    Args:
        base: The base.
        exponent: A non-negative exponent.

    Returns:
        ``base ** exponent``.

    Raises:
        ValueError: If the exponent is negative.
    """
    if exponent < 0:
        raise ValueError(f"Exponent must be non-negative. Got {exponent}.")
    return base**exponent


def promote(*tensors: Tensor) -> Tuple[Tensor, ...]:
    """Cast tensors to their common data type.

    Real matrices are multiplied onto complex Kronecker vectors inside the direct
    solver. PyTorch's matrix multiplication does not promote, hence this helper.

    Args:
        *tensors: The tensors to cast.

    Returns:
        The tensors, cast to the promoted data type. Tensors that already have the
        promoted data type are returned as is.
    """
    dtype = tensors[0].dtype
    for t in tensors[1:]:
        dtype = torch.promote_types(dtype, t.dtype)
    return tuple(t.to(dtype) for t in tensors)


def diag_add_(mat: Tensor, value: complex) -> Tensor:
    """In-place add a value to the main diagonal of a matrix.

    Args:
        mat: A square matrix of shape `[N, N]`.
        value: The value to add to the main diagonal.

    Raises:
        ValueError: If the specified tensor is not square.

    Returns:
        The input matrix with the value added to the main diagonal.
    """
    if mat.ndim != 2 or mat.shape[0] != mat.shape[1]:
        raise ValueError(f"Expected square matrix, but got {mat.shape}.")

    dim = mat.shape[0]
    idxs = arange(dim, device=mat.device)
    mat[idxs, idxs] += value

    return mat
