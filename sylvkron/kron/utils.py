r"""Apply Kronecker products of structured matrices to `KronVector`s.

For a Kronecker vector \(\mathbf{x}\) of depth \(d\), level \(0\) denotes the base
index (of size \(n\)) and level \(l \ge 1\) the \(l\)-th Kronecker index, with level
\(d\) being the outermost one. Applying a matrix at every level composes the
Kronecker operator

\[
\left( (\mathbf{K}^\top)^{\otimes d} \otimes \mathbf{F} \right) \mathbf{x}
= \mathrm{vec}\left( \mathbf{F} \mathbf{Y} \mathbf{K}^{\otimes d} \right)
\]

without ever forming it.
"""

from sylvkron.kron.vector import KronVector
from sylvkron.structures.base import QuasiTriangularLike


def _check_level(level: int, x: KronVector):
    """Make sure a level is valid for a Kronecker vector.

    Args:
        level: The level.
        x: The Kronecker vector.

    Raises:
        ValueError: If the level is outside `[0, x.depth]`.
    """
    if not 0 <= level <= x.depth:
        raise ValueError(f"Level must be in [0, {x.depth}]. Got {level}.")


def mult_at_level(level: int, t: QuasiTriangularLike, x: KronVector) -> None:
    """In-place multiply a matrix onto one index of a Kronecker vector.

    Args:
        level: Index to act on. `0` is the base index, `x.depth` the outermost.
        t: The matrix. Its dimension must match the size of the index.
        x: The Kronecker vector.
    """
    _check_level(level, x)
    if 0 < level < x.depth:
        for i in range(x.m):
            mult_at_level(level, t, x.sub(i))
    elif level == x.depth and level > 0:
        t.mult_kron(x)
    elif x.depth > 0:
        # rows of the view are the base sub-vectors
        view = x.base_view()
        view.copy_((t @ view.T).T)
    else:
        x.data.copy_(t @ x.data)


def mult_at_level_trans(level: int, t: QuasiTriangularLike, x: KronVector) -> None:
    """In-place multiply a matrix's transpose onto one index of a Kronecker vector.

    Args:
        level: Index to act on. `0` is the base index, `x.depth` the outermost.
        t: The matrix. Its dimension must match the size of the index.
        x: The Kronecker vector.
    """
    _check_level(level, x)
    if 0 < level < x.depth:
        for i in range(x.m):
            mult_at_level_trans(level, t, x.sub(i))
    elif level == x.depth and level > 0:
        t.mult_kron_trans(x)
    elif x.depth > 0:
        view = x.base_view()
        view.copy_(t.rmatmat(view.T).T)
    else:
        x.data.copy_(t.rmatmat(x.data))


def mult_kron(f: QuasiTriangularLike, k: QuasiTriangularLike, x: KronVector) -> None:
    r"""In-place compute \(((\mathbf{K}^\top)^{\otimes d} \otimes \mathbf{F})\mathbf{x}\).

    Args:
        f: Matrix acting on the base index.
        k: Matrix whose transpose acts on every Kronecker index.
        x: The Kronecker vector of depth `d`.
    """
    mult_at_level(0, f, x)
    for level in range(1, x.depth + 1):
        mult_at_level_trans(level, k, x)
