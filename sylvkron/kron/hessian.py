r"""Multiply a (sparse) Hessian onto a Kronecker product without forming it.

Computes \(\mathbf{A} (\mathbf{B} \otimes \mathbf{C})\) or
\(\mathbf{A} (\mathbf{B} \otimes \mathbf{B})\) column by column. This is useful
when \(\mathbf{A}\) is the sparse second derivative of a model, whose columns are
indexed by pairs of variables, and the Kronecker product is too large to store.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import List, Union

import torch
from einops import rearrange
from torch import Tensor, arange, zeros


def _kron_columns(b: Tensor, c: Tensor, cols_b: Tensor, cols_c: Tensor) -> Tensor:
    """Form selected columns of `kron(b, c)`.

    Args:
        b: Left Kronecker factor.
        c: Right Kronecker factor.
        cols_b: Column indices into `b`.
        cols_c: Column indices into `c`, same length as `cols_b`.

    Returns:
        Matrix whose `i`-th column is column `cols_b[i] * c.shape[1] + cols_c[i]` of
        `kron(b, c)`.
    """
    outer = b[:, cols_b][:, None, :] * c[:, cols_c][None, :, :]
    return rearrange(outer, "ib ic col -> (ib ic) col")


def _split(num: int, num_chunks: int) -> List[Tensor]:
    """Split `range(num)` into at most `num_chunks` contiguous chunks."""
    return [chunk for chunk in arange(num).chunk(num_chunks) if chunk.numel() > 0]


def sparse_hessian_times_kron(
    a: Tensor, b: Tensor, c: Union[Tensor, None] = None, num_threads: int = 1
) -> Tensor:
    r"""Compute `a @ kron(b, c)`, or `a @ kron(b, b)` if `c` is `None`.

    Output columns are distributed over a pool of `num_threads` workers. Each
    worker writes a disjoint set of columns.

    For `kron(b, b)`, `a` is assumed to be symmetric in the two variables indexing
    its columns (as is a Hessian), i.e. column `i * rows(b) + j` equals column
    `j * rows(b) + i`. Only the columns for index pairs `j2 >= j1` are computed,
    the others are copied.

    Args:
        a: Dense or sparse (COO or CSR) matrix with `rows(b) * rows(c)` columns.
        b: Dense left Kronecker factor.
        c: Dense right Kronecker factor. If `None`, `b` is used.
        num_threads: Number of workers. Default: `1`.

    Returns:
        Dense matrix of shape `[a.shape[0], cols(b) * cols(c)]`.

    Raises:
        ValueError: If the dimensions do not match or `num_threads < 1`.
    """
    if num_threads < 1:
        raise ValueError(f"num_threads must be positive. Got {num_threads}.")
    symmetric = c is None
    c = b if symmetric else c
    if a.shape[1] != b.shape[0] * c.shape[0]:
        raise ValueError(
            f"a has {a.shape[1]} columns, but kron(b, c) has"
            + f" {b.shape[0]} * {c.shape[0]} rows."
        )

    dtype = torch.promote_types(a.dtype, b.dtype)
    dtype = torch.promote_types(dtype, c.dtype)
    a, b, c = a.to(dtype), b.to(dtype), c.to(dtype)
    nb, nc = b.shape[1], c.shape[1]
    out = zeros(a.shape[0], nb * nc, dtype=dtype, device=b.device)

    def work_general(cols: Tensor):
        out[:, cols] = a @ _kron_columns(b, c, cols // nc, cols % nc)

    def work_symmetric(cols_b: Tensor):
        for j1 in cols_b.tolist():
            j2 = arange(j1, nb)
            result = a @ _kron_columns(b, b, torch.full_like(j2, j1), j2)
            out[:, j1 * nb + j2] = result
            out[:, j2 * nb + j1] = result

    if symmetric:
        work, chunks = work_symmetric, _split(nb, num_threads)
    else:
        work, chunks = work_general, _split(nb * nc, num_threads)

    with ThreadPoolExecutor(max_workers=num_threads) as pool:
        # re-raise exceptions from the workers
        for future in [pool.submit(work, chunk) for chunk in chunks]:
            future.result()

    return out
