r"""Solver for the generalized Sylvester equation with Kronecker power.

Solves

\[
\mathbf{A} \mathbf{X} + \mathbf{B} \mathbf{X} \mathbf{C}^{\otimes k} = \mathbf{D}
\]

for \(\mathbf{X} \in \mathbb{R}^{n \times m^k}\). After multiplying with
\(\mathbf{A}^{-1}\), the matrices \(\mathbf{F} = \mathbf{A}^{-1} \mathbf{B}\) and
\(\mathbf{C}\) are decomposed into \(\mathbf{F} = \mathbf{Q} \mathbf{T}
\mathbf{Q}^\top\) (real Schur form) and \(\mathbf{C} = \mathbf{P} \mathbf{K}
\mathbf{P}^{-1}\) (block-diagonal form). The transformed equation

\[
\mathbf{Y} + \mathbf{T} \mathbf{Y} \mathbf{K}^{\otimes k}
= \mathbf{Q}^\top \mathbf{A}^{-1} \mathbf{D} \mathbf{P}^{\otimes k}
\]

is solved for \(\mathbf{Y}\), and \(\mathbf{X} = \mathbf{Q} \mathbf{Y}
(\mathbf{P}^{-1})^{\otimes k}\).
"""

from __future__ import annotations

from time import process_time
from typing import Tuple, Union

import torch
from torch import Tensor
from torch.linalg import cond, matrix_norm, solve, vector_norm

from sylvkron.decomp.schur import SchurDecompZero
from sylvkron.decomp.similarity import SimilarityDecomp
from sylvkron.kron.utils import mult_at_level, mult_at_level_trans
from sylvkron.kron.vector import KronVector
from sylvkron.solvers.base import SylvesterSolver
from sylvkron.solvers.iterative import IterativeSylvester
from sylvkron.solvers.params import SylvParams
from sylvkron.solvers.triangular import TriangularSylvester
from sylvkron.structures.dense import DenseMatrix
from sylvkron.structures.utils import power


class GeneralSylvester:
    r"""Generalized Sylvester equation \(\mathbf{A} \mathbf{X} + \tilde{\mathbf{B}}
    \mathbf{X} \mathbf{C}^{\otimes k} = \mathbf{D}\).

    The \(n \times n\) matrix \(\tilde{\mathbf{B}} = [\mathbf{0} \mid \mathbf{B}]\)
    has `zero_cols` leading zero columns, only its non-zero columns \(\mathbf{B}\)
    are stored.

    An equation can only be solved once. All inputs are copied and converted to
    `float64`, except the right-hand side if `copy_d=False`, into which the
    solution is written instead.

    Attributes:
        SUPPORTED_SOLVERS: A string-to-class mapping of the solution methods.
        order: The Kronecker power \(k\).
        zero_cols: Number of leading zero columns of \(\tilde{\mathbf{B}}\).
        solved: Whether `solve` has been called.
        bdecomp: Schur decomposition of \(\mathbf{A}^{-1} \tilde{\mathbf{B}}\).
            `None` until solved.
        cdecomp: Block-diagonal decomposition of \(\mathbf{C}\). `None` until
            solved.
        solver: The solver of the transformed equation. `None` until solved.
    """

    SUPPORTED_SOLVERS = {
        "direct": TriangularSylvester,
        "iterative": IterativeSylvester,
    }

    def __init__(
        self,
        order: int,
        n: int,
        m: int,
        zero_cols: int,
        a: Tensor,
        b: Tensor,
        c: Tensor,
        d: Tensor,
        params: Union[SylvParams, None] = None,
        copy_d: bool = True,
    ) -> None:
        """Set up the equation.

        Args:
            order: The Kronecker power of `c`. Must be positive.
            n: Number of rows of `x`.
            m: Dimension of `c`.
            zero_cols: Number of leading zero columns that pad `b` into a square
                matrix. Must be in `[0, n)`.
            a: Square matrix of shape `[n, n]`.
            b: Non-zero columns of shape `[n, n - zero_cols]`.
            c: Square matrix of shape `[m, m]`.
            d: Right-hand side of shape `[n, m ** order]`.
            params: Options of the solve. Receives the diagnostics. If `None`,
                default options are used.
            copy_d: Whether to copy `d`. If `False`, the solution is written into
                `d`, which must then be a `float64` tensor. Default: `True`.

        Raises:
            ValueError: If any of the dimensions is inconsistent.
        """
        if order < 1:
            raise ValueError(f"order must be positive. Got {order}.")
        if not 0 <= zero_cols < n:
            raise ValueError(f"zero_cols must be in [0, {n}). Got {zero_cols}.")
        for mat, name, shape in [
            (a, "a", (n, n)),
            (b, "b", (n, n - zero_cols)),
            (c, "c", (m, m)),
            (d, "d", (n, power(m, order))),
        ]:
            if tuple(mat.shape) != shape:
                raise ValueError(f"{name} must have shape {shape}. Got {mat.shape}.")
        if not copy_d and d.dtype != torch.float64:
            raise ValueError(f"d must be float64 if not copied. Got {d.dtype}.")

        self.order = order
        self.zero_cols = zero_cols
        self._n = n
        self._m = m
        self._params = SylvParams() if params is None else params

        self._a = a.to(torch.float64, copy=True)
        self._b = b.to(torch.float64, copy=True)
        self._c = c.to(torch.float64, copy=True)
        self._d = d.to(torch.float64, copy=True) if copy_d else d
        self._d_orig = self._d.clone() if self._params.want_check else None

        self.solved = False
        self.bdecomp: Union[SchurDecompZero, None] = None
        self.cdecomp: Union[SimilarityDecomp, None] = None
        self.solver: Union[SylvesterSolver, None] = None

    @property
    def n(self) -> int:
        """Number of rows of the solution."""
        return self._n

    @property
    def m(self) -> int:
        """Dimension of the Kronecker factor."""
        return self._m

    @property
    def params(self) -> SylvParams:
        """Options and diagnostics of the solve."""
        return self._params

    @property
    def result(self) -> Tensor:
        """The solution `x` of shape `[n, m ** order]`.

        Raises:
            RuntimeError: If the equation has not been solved yet.
        """
        if not self.solved:
            raise RuntimeError("The equation has not been solved yet.")
        return self._d

    def solve(self) -> None:
        """Solve the equation.

        Writes the condition of `a`, the quality of the decomposition of `c`, the
        solver diagnostics and the consumed CPU time into `params`.

        Raises:
            RuntimeError: If the equation was already solved.
        """
        if self.solved:
            raise RuntimeError("The equation has already been solved.")
        start = process_time()
        pars = self._params

        pars.rcondA1 = 1.0 / cond(self._a, p=1).item()
        pars.rcondAI = 1.0 / cond(self._a, p=torch.inf).item()

        a_inv_b = solve(self._a, self._b)
        a_inv_d = solve(self._a, self._d)
        self.bdecomp = SchurDecompZero(a_inv_b)
        self.cdecomp = SimilarityDecomp(self._c, pars.bs_norm)
        self.cdecomp.check(pars, self._c)
        self.cdecomp.info_to_pars(pars)

        solver_cls = self.SUPPORTED_SOLVERS[pars.method]
        self.solver = solver_cls(self.bdecomp.t, self.cdecomp.b)

        x = KronVector.from_matrix(a_inv_d, self._m, self.order)
        self._transform(x, self.bdecomp.q.T, self.cdecomp.q)
        self.solver.solve(pars, x)
        self._transform(x, self.bdecomp.q, self.cdecomp.invq)
        self._d.copy_(x.to_matrix())

        pars.cpu_time = process_time() - start
        self.solved = True

    def _transform(self, x: KronVector, left: Tensor, right: Tensor):
        r"""In-place compute \(\mathbf{L} \mathbf{Y} \mathbf{R}^{\otimes k}\).

        Args:
            x: The vectorization of \(\mathbf{Y}\).
            left: Matrix \(\mathbf{L}\) acting on the base index.
            right: Matrix \(\mathbf{R}\) acting on every Kronecker index.
        """
        mult_at_level(0, DenseMatrix(left), x)
        right = DenseMatrix(right)
        for level in range(1, self.order + 1):
            mult_at_level_trans(level, right, x)

    def check(self, ds: Union[Tensor, None] = None) -> None:
        """Compute the relative residual of the solution.

        Writes `mat_err1`, `mat_errI`, `mat_errF` (matrix 1-, infinity- and
        Frobenius norm) and `vec_err1`, `vec_errI` (vector 1- and infinity norm)
        into `params`. If the corresponding norm of `ds` vanishes, the absolute
        norm of the residual is written instead.

        Args:
            ds: The right-hand side the equation was solved for. If `None`, uses
                the copy stored when the equation was set up with `want_check`.

        Raises:
            RuntimeError: If the equation has not been solved yet.
            ValueError: If `ds` is unspecified and no copy was stored.
        """
        if not self.solved:
            raise RuntimeError("The equation has not been solved yet.")
        if ds is None:
            if self._d_orig is None:
                raise ValueError("Pass ds or set up the equation with want_check.")
            ds = self._d_orig
        ds = ds.to(torch.float64)

        x = self._d
        lhs = KronVector.from_matrix(self._b @ x[self.zero_cols :], self._m, self.order)
        c = DenseMatrix(self._c)
        for level in range(1, self.order + 1):
            mult_at_level_trans(level, c, lhs)
        residual = lhs.to_matrix() + self._a @ x - ds

        pars = self._params
        for p, suffix in [(1, "1"), (torch.inf, "I"), ("fro", "F")]:
            error = matrix_norm(residual, ord=p)
            scale = matrix_norm(ds, ord=p)
            if scale > 0:
                error = error / scale
            setattr(pars, f"mat_err{suffix}", error.item())
        for p, suffix in [(1, "1"), (torch.inf, "I")]:
            error = vector_norm(residual, ord=p)
            scale = vector_norm(ds, ord=p)
            if scale > 0:
                error = error / scale
            setattr(pars, f"vec_err{suffix}", error.item())


def solve_general_sylvester(
    a: Tensor,
    b: Tensor,
    c: Tensor,
    d: Tensor,
    order: int,
    zero_cols: int = 0,
    params: Union[SylvParams, None] = None,
) -> Tuple[Tensor, SylvParams]:
    r"""Solve \(\mathbf{A} \mathbf{X} + [\mathbf{0} \mid \mathbf{B}] \mathbf{X}
    \mathbf{C}^{\otimes k} = \mathbf{D}\).

    Args:
        a: Square matrix of shape `[n, n]`.
        b: Non-zero columns of shape `[n, n - zero_cols]`.
        c: Square matrix of shape `[m, m]`.
        d: Right-hand side of shape `[n, m ** order]`. Not modified.
        order: The Kronecker power of `c`.
        zero_cols: Number of leading zero columns of the padded `b`. Default: `0`.
        params: Options of the solve. If `None`, default options are used.

    Returns:
        The solution of shape `[n, m ** order]` and the parameters holding the
        diagnostics. If `params.want_check` is set, they include the residuals.

    Raises:
        ValueError: If `a` or `c` is not a matrix, or the dimensions are
            inconsistent.
    """
    if a.ndim != 2 or c.ndim != 2:
        raise ValueError(f"a and c must be matrices. Got {a.shape} and {c.shape}.")
    equation = GeneralSylvester(
        order, a.shape[0], c.shape[0], zero_cols, a, b, c, d, params=params
    )
    equation.solve()
    if equation.params.want_check:
        equation.check()
    return equation.result, equation.params
