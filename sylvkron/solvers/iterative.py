"""Doubling iteration for Kronecker-structured Sylvester systems."""

from __future__ import annotations

from warnings import warn

from sylvkron.kron.utils import mult_kron
from sylvkron.kron.vector import KronVector
from sylvkron.solvers.base import SylvesterSolver
from sylvkron.solvers.params import SylvParams


class IterativeSylvester(SylvesterSolver):
    r"""Solve \((\mathbf{I} + \mathbf{M}) \mathbf{y} = \mathbf{d}\) by doubling.

    With \(\mathbf{M} = (\mathbf{K}^\top)^{\otimes d} \otimes \mathbf{F}\) and
    spectral radius \(\rho(\mathbf{M}) < 1\),

    \[
    (\mathbf{I} + \mathbf{M})^{-1}
    = (\mathbf{I} - \mathbf{M})
    (\mathbf{I} + \mathbf{M}^2)
    (\mathbf{I} + \mathbf{M}^4)
    \cdots
    \]

    Since \(\mathbf{M}^{2^j} = ((\mathbf{K}^{2^j})^\top)^{\otimes d} \otimes
    \mathbf{F}^{2^j}\), every factor only requires squaring \(\mathbf{F}\) and
    \(\mathbf{K}\), which keeps their structure.
    """

    def solve(self, pars: SylvParams, d: KronVector) -> None:
        """In-place solve the system, overwriting the right-hand side.

        Writes `converged`, `iter_last_norm` and `num_iter` into `pars`. Failing to
        converge within `pars.max_num_iter` steps triggers a warning.

        Args:
            pars: Options of the solver. Diagnostics are written into it.
            d: Right-hand side, overwritten by the solution.
        """
        update = d.clone()
        mult_kron(self.matrix_f, self.matrix_k, update)
        d.add_(update, alpha=-1.0)
        norm = update.max_abs()
        steps = 1

        f_pow, k_pow = self.matrix_f.clone(), self.matrix_k.clone()
        while steps < pars.max_num_iter and norm > pars.convergence_tol:
            f_pow, k_pow = f_pow.mult_right(f_pow), k_pow.mult_right(k_pow)
            update = d.clone()
            mult_kron(f_pow, k_pow, update)
            d.add_(update)
            norm = update.max_abs()
            steps += 1

        pars.converged = norm <= pars.convergence_tol
        pars.iter_last_norm = norm
        pars.num_iter = steps

        if not pars.converged:
            warn(
                f"Doubling iteration did not converge in {steps} steps. "
                + f"Last update norm: {norm:.3e}."
            )
