"""Profiling script for the solution methods of ``GeneralSylvester``."""

from itertools import product
from timeit import timeit

import torch
from torch import Tensor, allclose, cat, eye, float64, kron, manual_seed, rand, zeros
from torch.linalg import solve

from sylvkron.solvers.general import solve_general_sylvester
from sylvkron.solvers.params import SylvParams


def dense_solve(
    a: Tensor, b: Tensor, c: Tensor, d: Tensor, order: int, zero_cols: int
) -> Tensor:
    """Solve the generalized Sylvester equation through its dense vectorization.

    Args:
        a: Square matrix of shape `[n, n]`.
        b: Non-zero columns of shape `[n, n - zero_cols]`.
        c: Square matrix of shape `[m, m]`.
        d: Right-hand side of shape `[n, m ** order]`.
        order: Kronecker power of `c`.
        zero_cols: Number of leading zero columns of the padded `b`.

    Returns:
        The solution.
    """
    n, cols = d.shape
    padded = cat([zeros(n, zero_cols, dtype=float64), b], dim=1)
    c_pow = eye(1, dtype=float64)
    for _ in range(order):
        c_pow = kron(c_pow, c.T.contiguous())
    system = kron(eye(cols, dtype=float64), a) + kron(c_pow, padded)
    return solve(system, d.T.flatten()).reshape(cols, n).T


def structured_solve(
    a: Tensor,
    b: Tensor,
    c: Tensor,
    d: Tensor,
    order: int,
    zero_cols: int,
    method: str,
) -> Tensor:
    """Solve the generalized Sylvester equation with the structured solver.

    Args:
        a: Square matrix of shape `[n, n]`.
        b: Non-zero columns of shape `[n, n - zero_cols]`.
        c: Square matrix of shape `[m, m]`.
        d: Right-hand side of shape `[n, m ** order]`.
        order: Kronecker power of `c`.
        zero_cols: Number of leading zero columns of the padded `b`.
        method: Solution method.

    Returns:
        The solution.
    """
    x, _ = solve_general_sylvester(
        a, b, c, d, order, zero_cols, SylvParams(method=method)
    )
    return x


if __name__ == "__main__":
    manual_seed(0)
    torch.set_num_threads(1)

    n, zero_cols = 20, 5
    dims = [3, 5]
    orders = [1, 2, 3]
    num_repeats = 5

    print("Benchmarking solve_general_sylvester")
    print(50 * "=")

    for m, order in product(dims, orders):
        a = rand(n, n, dtype=float64) + n * eye(n, dtype=float64)
        b = rand(n, n - zero_cols, dtype=float64)
        c = rand(m, m, dtype=float64) / m
        d = rand(n, m**order, dtype=float64)

        # check correctness
        dense = dense_solve(a, b, c, d, order, zero_cols)
        for method in SylvParams.SUPPORTED_METHODS:
            x = structured_solve(a, b, c, d, order, zero_cols, method)
            assert allclose(dense, x, rtol=1e-8, atol=1e-10)

        # obtain timings
        names = ("dense",) + SylvParams.SUPPORTED_METHODS
        best = {name: float("inf") for name in names}
        for _ in range(num_repeats):
            run_time = timeit(
                lambda: dense_solve(a, b, c, d, order, zero_cols),  # noqa: B023
                number=5,
            )
            best["dense"] = min(best["dense"], run_time)
            for method in SylvParams.SUPPORTED_METHODS:
                run_time = timeit(
                    lambda: structured_solve(  # noqa: B023
                        a, b, c, d, order, zero_cols, method  # noqa: B023
                    ),
                    number=5,
                )
                best[method] = min(best[method], run_time)

        print(f"n: {n}, m: {m}, order: {order}")
        for name, run_time in best.items():
            print(f"\t{name.capitalize()}: {run_time:.3e}")
        for method in SylvParams.SUPPORTED_METHODS:
            print(f"\tRatio dense/{method}: {best['dense'] / best[method]:.2f}")
