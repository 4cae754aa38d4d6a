"""Utility functions for testing the Sylvester solvers."""

from test.structures.utils import random_kron_vector
from test.utils import (
    DTYPE,
    block_diagonal,
    kron_operator,
    quasi_triangular,
    report_nonclose,
)
from typing import List, Tuple, Type

from torch import Tensor, eye
from torch.linalg import solve

from sylvkron.kron.vector import KronVector
from sylvkron.solvers.base import SylvesterSolver
from sylvkron.solvers.params import SylvParams
from sylvkron.structures.blockdiagonal import BlockDiagonal
from sylvkron.structures.quasitriangular import QuasiTriangular

# block sizes of `F` and cluster structure of `K`, with real and complex blocks
CASES = [
    ([1], [[1]]),
    ([2], [[2]]),
    ([1, 2], [[1], [2]]),
    ([2, 1], [[2, 1]]),
    ([2, 1, 2], [[1, 2], [1]]),
]
CASE_IDS = [f"F={f_sizes}-K={k_clusters}" for f_sizes, k_clusters in CASES]
DEPTHS = [0, 1, 2, 3]
DEPTH_IDS = [f"depth={depth}" for depth in DEPTHS]


def random_system(
    f_sizes: List[int], k_clusters: List[List[int]], depth: int, scale: float = 0.5
) -> Tuple[Tensor, Tensor, KronVector]:
    """Create the matrices and right-hand side of a random Kronecker system.

    Scaling the matrices keeps the spectral radius of the Kronecker operator below
    one, so both solution methods apply.

    Args:
        f_sizes: Sizes of the diagonal blocks of `F`.
        k_clusters: For every cluster of `K`, the sizes of its diagonal blocks.
        depth: Depth of the right-hand side.
        scale: Scale of the entries of `F` and `K`. Default: `0.5`.

    Returns:
        Dense `F`, dense `K` and a random right-hand side.
    """
    f = quasi_triangular(f_sizes, scale=scale)
    k = block_diagonal(k_clusters, scale=scale)
    d = random_kron_vector(k.shape[0], f.shape[0], depth, is_complex=False)
    return f, k, d


def _test_solver(
    solver_cls: Type[SylvesterSolver],
    f_sizes: List[int],
    k_clusters: List[List[int]],
    depth: int,
    pars: SylvParams,
):
    """Compare a solver with solving the dense Kronecker system.

    Args:
        solver_cls: Class of the solver.
        f_sizes: Sizes of the diagonal blocks of `F`.
        k_clusters: For every cluster of `K`, the sizes of its diagonal blocks.
        depth: Depth of the right-hand side.
        pars: Options of the solver.
    """
    f, k, d = random_system(f_sizes, k_clusters, depth)
    operator = kron_operator(f, k, depth)
    system = eye(operator.shape[0], dtype=DTYPE) + operator
    truth = solve(system, d.data)

    solver = solver_cls(QuasiTriangular.from_dense(f), BlockDiagonal.from_dense(k))
    solver.solve(pars, d)
    report_nonclose(truth, d.data)
