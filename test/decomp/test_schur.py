"""Test ``sylvkron.decomp.schur``."""

from test.utils import DTYPE, report_nonclose

from pytest import mark, raises
from torch import cat, eye, manual_seed, rand, zeros

from sylvkron.decomp.schur import SchurDecomp, SchurDecompZero, real_schur

DIMS = [1, 2, 5, 8]
DIM_IDS = [f"dim={dim}" for dim in DIMS]


@mark.parametrize("dim", DIMS, ids=DIM_IDS)
def test_schur_decomp(dim: int):
    """Test the reconstruction from the real Schur form.

    Args:
        dim: Dimension of the decomposed matrix.
    """
    manual_seed(0)
    mat = rand(dim, dim, dtype=DTYPE)
    decomp = SchurDecomp(mat)

    assert decomp.dim == dim
    report_nonclose(eye(dim, dtype=DTYPE), decomp.q.T @ decomp.q)
    report_nonclose(mat, decomp.q @ decomp.t.to_dense() @ decomp.q.T)

    # the projection onto the quasi-triangular structure is lossless
    _, t = real_schur(mat)
    report_nonclose(t, decomp.t.to_dense())


def test_schur_decomp_complex_eigenvalues():
    """Test that a rotation yields a single 2×2 diagonal block."""
    mat = eye(2, dtype=DTYPE).flip(0)
    mat[0, 1] = -1.0
    decomp = SchurDecomp(mat)
    assert [block.size for block in decomp.t.diag_blocks()] == [2]


@mark.parametrize("zero_cols", [0, 1, 3], ids=lambda z: f"zero_cols={z}")
def test_schur_decomp_zero(zero_cols: int):
    """Test the Schur decomposition of a matrix with leading zero columns.

    Args:
        zero_cols: Number of leading zero columns.
    """
    manual_seed(0)
    n = 6
    mat = rand(n, n - zero_cols, dtype=DTYPE)
    padded = cat([zeros(n, zero_cols, dtype=DTYPE), mat], dim=1)
    decomp = SchurDecompZero(mat)

    assert decomp.zero_cols == zero_cols
    assert decomp.dim == n
    report_nonclose(eye(n, dtype=DTYPE), decomp.q.T @ decomp.q)
    report_nonclose(padded, decomp.q @ decomp.t.to_dense() @ decomp.q.T)

    # the zero columns are untouched by the transform
    report_nonclose(eye(zero_cols, dtype=DTYPE), decomp.q[:zero_cols, :zero_cols])
    assert (decomp.t.to_dense()[:, :zero_cols] == 0.0).all()
    blocks = decomp.t.diag_blocks()
    assert all(block.size == 1 for block in blocks[:zero_cols])
    assert sum(block.size for block in blocks) == n

    # zero eigenvalues for the zero columns
    eigenvalues = decomp.t.eigenvalues()
    assert (eigenvalues[:zero_cols] == 0.0).all()


def test_invalid_shapes():
    """Test that wrongly shaped matrices are rejected."""
    with raises(ValueError):
        SchurDecomp(rand(2, 3, dtype=DTYPE))
    with raises(ValueError):
        SchurDecompZero(rand(2, 3, dtype=DTYPE))
