"""Direct recursive block substitution for Kronecker-structured Sylvester systems."""

from __future__ import annotations

from math import inf

from torch import stack
from torch.linalg import eig, solve

from sylvkron.kron.utils import mult_kron
from sylvkron.kron.vector import KronVector
from sylvkron.solvers.base import SylvesterSolver
from sylvkron.solvers.params import SylvParams
from sylvkron.structures.quasitriangular import DiagonalBlock


class TriangularSylvester(SylvesterSolver):
    r"""Solve \((\mathbf{I} + r (\mathbf{K}^\top)^{\otimes d} \otimes \mathbf{F})
    \mathbf{y} = \mathbf{d}\) by forward substitution.

    Since \(\mathbf{K}^\top\) is lower quasi-triangular, the sub-vectors of
    \(\mathbf{y}\) for a diagonal block of \(\mathbf{K}\) only depend on those of
    earlier blocks. For a real block \(k_{jj}\), the sub-vector solves a system of
    depth \(d - 1\) scaled by \(r k_{jj}\). A \(2 \times 2\) block with complex
    eigenvalues \(\lambda, \bar{\lambda}\) is diagonalized over \(\mathbb{C}\), which
    yields two systems of depth \(d - 1\) scaled by \(r \lambda\) and
    \(r \bar{\lambda}\). After solving, the contribution of the block is eliminated
    from the right-hand side of later blocks. Only blocks in the same cluster of a
    `BlockDiagonal` are affected. At depth zero, the system
    \((\mathbf{I} + r \mathbf{F}) \mathbf{y} = \mathbf{d}\) is solved by
    back-substitution.
    """

    def solve(self, pars: SylvParams, d: KronVector) -> None:
        """In-place solve the system with `r = 1`, overwriting the right-hand side.

        Writes `eig_min`, the smallest modulus of an eigenvalue of the solved
        depth zero systems, into `pars`.

        Args:
            pars: Options of the solver. Diagnostics are written into it.
            d: Right-hand side, overwritten by the solution.
        """
        self._eig_min = inf
        self._k_dense = self.matrix_k.to_dense()
        self._k = self._k_dense.tolist()
        self._solvi(1.0, d)
        pars.eig_min = self._eig_min

    def _solvi(self, r: complex, d: KronVector):
        """In-place solve the system scaled by `r`.

        Args:
            r: Scale of the Kronecker operator.
            d: Right-hand side, overwritten by the solution.
        """
        if d.depth == 0:
            eig_min = self.matrix_f.solve_pre(r, d.data)
            self._eig_min = min(self._eig_min, eig_min)
            return

        for block in self.matrix_k.diag_blocks():
            end = self.matrix_k.row_end(block)
            if block.is_real:
                self._solve_real(r, block, end, d)
            else:
                self._solve_complex(r, block, end, d)

    def _solve_real(self, r: complex, block: DiagonalBlock, end: int, d: KronVector):
        """Solve for a 1×1 block and eliminate it from later sub-vectors."""
        j = block.index
        rkj = r * self._k[j][j]
        if abs(rkj) > 1e-15:
            self._solvi(rkj, d.sub(j))

        y = self._mult_scaled(r, d.sub(j))
        for col in range(j + 1, end):
            d.sub(col).add_(y, alpha=-self._k[j][col])

    def _solve_complex(self, r: complex, block: DiagonalBlock, end: int, d: KronVector):
        """Solve for a 2×2 block over the complex numbers and eliminate it."""
        j = block.index
        eigvals, eigvecs = eig(self._k_dense[block.rows, block.rows].T)

        pair = stack([d.sub(j).data, d.sub(j + 1).data])
        coeffs = solve(eigvecs, pair.to(eigvecs.dtype)).contiguous()
        for idx in range(2):
            part = KronVector(coeffs[idx], d.m, d.n, d.depth - 1)
            self._solvi(r * eigvals[idx].item(), part)

        solution = eigvecs @ coeffs
        if solution.dtype != d.data.dtype:
            solution = solution.real
        d.sub(j).data.copy_(solution[0])
        d.sub(j + 1).data.copy_(solution[1])

        y1 = self._mult_scaled(r, d.sub(j))
        y2 = self._mult_scaled(r, d.sub(j + 1))
        for col in range(j + 2, end):
            sub = d.sub(col)
            sub.add_(y1, alpha=-self._k[j][col])
            sub.add_(y2, alpha=-self._k[j + 1][col])

    def _mult_scaled(self, r: complex, x: KronVector) -> KronVector:
        r"""Compute \(r ((\mathbf{K}^\top)^{\otimes d} \otimes \mathbf{F}) \mathbf{x}\).

        Args:
            r: The scale.
            x: A Kronecker vector, not modified.

        Returns:
            The result as new Kronecker vector.
        """
        y = x.clone()
        mult_kron(self.matrix_f, self.matrix_k, y)
        return y.mul_(r)
