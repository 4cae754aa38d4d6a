"""Test ``sylvkron.solvers.triangular``."""

from test.solvers.utils import (
    CASE_IDS,
    CASES,
    DEPTH_IDS,
    DEPTHS,
    _test_solver,
    random_system,
)
from test.utils import DTYPE, kron_operator, report_nonclose
from typing import List

from pytest import mark
from torch import eye, manual_seed
from torch.linalg import eigvals, solve

from sylvkron.solvers.params import SylvParams
from sylvkron.solvers.triangular import TriangularSylvester
from sylvkron.structures.blockdiagonal import BlockDiagonal
from sylvkron.structures.quasitriangular import QuasiTriangular


@mark.parametrize("depth", DEPTHS, ids=DEPTH_IDS)
@mark.parametrize("f_sizes, k_clusters", CASES, ids=CASE_IDS)
def test_solve(f_sizes: List[int], k_clusters: List[List[int]], depth: int):
    """Test the recursive block substitution against a dense solve.

    Args:
        f_sizes: Sizes of the diagonal blocks of `F`.
        k_clusters: For every cluster of `K`, the sizes of its diagonal blocks.
        depth: Depth of the right-hand side.
    """
    manual_seed(0)
    _test_solver(TriangularSylvester, f_sizes, k_clusters, depth, SylvParams())


def test_zero_diagonal_entry():
    """Test a Kronecker factor with a vanishing eigenvalue."""
    manual_seed(0)
    f, k, d = random_system([1, 2], [[1, 1, 2]], 2)
    k[0, 0] = 0.0
    truth = solve(eye(len(d), dtype=DTYPE) + kron_operator(f, k, 2), d.data)

    TriangularSylvester(QuasiTriangular(f), BlockDiagonal(k)).solve(SylvParams(), d)
    report_nonclose(truth, d.data)


def test_eig_min():
    """Test that the smallest eigenvalue modulus of the base systems is reported."""
    manual_seed(0)
    f, k, d = random_system([2, 1], [[1], [1]], 1)
    pars = SylvParams()
    TriangularSylvester(QuasiTriangular(f), BlockDiagonal(k)).solve(pars, d)

    # depth one: one base system `I + k_jj F` per diagonal entry of `K`
    eig_f = eigvals(f)
    truth = min((1.0 + k[j, j] * eig_f).abs().min().item() for j in range(2))
    assert isinstance(pars.eig_min, float)
    assert abs(pars.eig_min - truth) < 1e-10
