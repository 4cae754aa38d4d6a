"""Utility functions for the tests."""

from functools import reduce
from typing import List

import torch
from torch import Tensor, allclose, eye, isclose, kron, rand

DTYPE = torch.float64


def report_nonclose(
    tensor1: Tensor,
    tensor2: Tensor,
    rtol: float = 1e-10,
    atol: float = 1e-10,
    equal_nan: bool = False,
    name: str = "array",
):
    """Compare two tensors, raise exception if nonclose values and print them.

    Args:
        tensor1: First tensor.
        tensor2: Second tensor.
        rtol: Relative tolerance (see ``torch.allclose``). Default: ``1e-10``.
        atol: Absolute tolerance (see ``torch.allclose``). Default: ``1e-10``.
        equal_nan: Whether comparing two NaNs should be considered as ``True``
            (see ``torch.allclose``). Default: ``False``.
        name: Optional name what the compared tensors mean. Default: ``'array'``.

    Raises:
        ValueError: If the two tensors don't match in shape or have nonclose values.
    """
    if tensor1.shape != tensor2.shape:
        raise ValueError(f"{name} shapes don't match.")

    tensor1, tensor2 = tensor1.to(tensor2.dtype), tensor2
    if allclose(tensor1, tensor2, rtol=rtol, atol=atol, equal_nan=equal_nan):
        print(f"{name} values match.")
    else:
        mismatch = 0
        for a1, a2 in zip(tensor1.flatten(), tensor2.flatten()):
            if not isclose(a1, a2, atol=atol, rtol=rtol, equal_nan=equal_nan):
                mismatch += 1
                print(f"{a1} != {a2}")
        print(f"Max abs entries: {tensor1.abs().max()}, {tensor2.abs().max()}")
        raise ValueError(f"{name} values don't match ({mismatch} / {tensor1.numel()}).")


def kron_power(mat: Tensor, order: int) -> Tensor:
    """Form the Kronecker power of a matrix densely.

    Args:
        mat: A matrix.
        order: Number of Kronecker factors. `0` yields the 1×1 identity.

    Returns:
        The Kronecker power.
    """
    return reduce(kron, [mat.contiguous()] * order, eye(1, dtype=mat.dtype))


def quasi_triangular(
    block_sizes: List[int], scale: float = 1.0, dtype: torch.dtype = DTYPE
) -> Tensor:
    """Create a random upper quasi-triangular matrix.

    Diagonal blocks of size two have the form `[[a, b], [c, a]]` with `b * c < 0`,
    hence a pair of complex eigenvalues `a ± i sqrt(-b c)`.

    Args:
        block_sizes: Sizes (one or two) of the diagonal blocks.
        scale: Scale of the entries. Default: `1.0`.
        dtype: Data type. Default: `torch.float64`.

    Returns:
        A dense quasi-triangular matrix.
    """
    dim = sum(block_sizes)
    mat = (rand(dim, dim, dtype=dtype) - 0.5).triu()
    start = 0
    for size in block_sizes:
        if size == 2:
            diag = rand(1, dtype=dtype).item() - 0.5
            mat[start, start] = mat[start + 1, start + 1] = diag
            mat[start, start + 1] = 0.25 + rand(1, dtype=dtype).item()
            mat[start + 1, start] = -0.25 - rand(1, dtype=dtype).item()
        start += size
    return scale * mat


def block_diagonal(
    cluster_block_sizes: List[List[int]],
    scale: float = 1.0,
    dtype: torch.dtype = DTYPE,
) -> Tensor:
    """Create a random quasi-triangular matrix with decoupled clusters.

    Args:
        cluster_block_sizes: For every cluster, the sizes of its diagonal blocks.
        scale: Scale of the entries. Default: `1.0`.
        dtype: Data type. Default: `torch.float64`.

    Returns:
        A dense block-diagonal matrix with quasi-triangular clusters.
    """
    clusters = [
        quasi_triangular(sizes, scale=scale, dtype=dtype)
        for sizes in cluster_block_sizes
    ]
    return torch.block_diag(*clusters)


def kron_operator(f: Tensor, k: Tensor, depth: int) -> Tensor:
    """Form the operator `kron(K^T, ..., K^T, F)` densely.

    Args:
        f: Matrix acting on the base index.
        k: Matrix whose transpose acts on each Kronecker index.
        depth: Number of Kronecker factors.

    Returns:
        The dense operator.
    """
    return kron(kron_power(k.T.contiguous(), depth), f.contiguous())
