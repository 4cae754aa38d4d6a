"""Block diagonalization of a square matrix by a well-conditioned similarity."""

from __future__ import annotations

from math import isfinite
from typing import Union

import torch
from scipy.linalg import get_lapack_funcs
from torch import Tensor, as_tensor, eye
from torch.linalg import matrix_norm

from sylvkron.decomp.schur import real_schur
from sylvkron.solvers.params import SylvParams
from sylvkron.structures.blockdiagonal import BlockDiagonal
from sylvkron.structures.quasitriangular import QuasiTriangular


class SimilarityDecomp:
    r"""Decomposition \(\mathbf{M} = \mathbf{Q} \mathbf{B} \mathbf{Q}^{-1}\).

    \(\mathbf{B}\) is a `BlockDiagonal` obtained from the real Schur form of
    \(\mathbf{M}\) by annihilating the coupling between clusters of eigenvalues
    (Bavely & Stewart, 1979). Starting from the real Schur form, the coupling
    \(\mathbf{T}_{12}\) between the current cluster and the remaining trailing part
    is removed by the similarity

    \[
    \begin{pmatrix} \mathbf{I} & \mathbf{X} \\ \mathbf{0} & \mathbf{I} \end{pmatrix}
    \begin{pmatrix}
    \mathbf{T}_{11} & \mathbf{T}_{12} \\ \mathbf{0} & \mathbf{T}_{22}
    \end{pmatrix}
    \begin{pmatrix} \mathbf{I} & -\mathbf{X} \\ \mathbf{0} & \mathbf{I} \end{pmatrix}
    =
    \begin{pmatrix}
    \mathbf{T}_{11} & \mathbf{0} \\ \mathbf{0} & \mathbf{T}_{22}
    \end{pmatrix}
    \quad\text{where}\quad
    \mathbf{T}_{11} \mathbf{X} - \mathbf{X} \mathbf{T}_{22} = \mathbf{T}_{12}\,.
    \]

    The split is only accepted if \(\mathbf{X}\) is small, since its size bounds
    the condition number of the transform. Otherwise, the cluster grows by the next
    diagonal block. Eigenvalues are not reordered.

    Attributes:
        q: The transform \(\mathbf{Q}\).
        invq: Its inverse \(\mathbf{Q}^{-1}\).
        b: The block-diagonal factor.
    """

    def __init__(self, mat: Tensor, log10norm: float = 1.3) -> None:
        """Decompose a matrix.

        Args:
            mat: A real square matrix.
            log10norm: Base 10 logarithm of the largest accepted max-abs entry of a
                decoupling solution. Default: `1.3`.

        Raises:
            ValueError: If `mat` is not square, or `10 ** log10norm` is not a finite
                non-zero float.
        """
        if mat.ndim != 2 or mat.shape[0] != mat.shape[1]:
            raise ValueError(f"mat must be square matrix. Got shape {mat.shape}.")
        if not (isfinite(log10norm) and abs(log10norm) < SylvParams.MAX_ABS_BS_NORM):
            raise ValueError(f"log10norm out of range. Got {log10norm}.")
        q, t = real_schur(mat)
        self.q: Tensor = q
        self.invq: Tensor = q.T.clone()
        self.b: BlockDiagonal = BlockDiagonal.from_quasi_triangular(
            QuasiTriangular.from_dense(t)
        )
        self._diagonalize(10.0**log10norm)

    def _diagonalize(self, norm: float):
        """Split off clusters from the front whenever the decoupling is accurate.

        Args:
            norm: Largest accepted max-abs entry of a decoupling solution.
        """
        blocks = self.b.diag_blocks()
        start, end = 0, 1
        while end < len(blocks):
            si, ei = blocks[start].index, blocks[end].index
            x = self._solve_x(si, ei, norm)
            if x is not None:
                self.q[:, ei:] -= self.q[:, si:ei] @ x
                self.invq[si:ei] += x @ self.invq[ei:]
                self.b.set_zero_block_edge(blocks[end])
                start = end
            end += 1

    def _solve_x(self, si: int, ei: int, norm: float) -> Union[Tensor, None]:
        """Solve for the decoupling of `[si, ei)` from the trailing part.

        Args:
            si: Start of the current cluster.
            ei: Proposed start of the next cluster.
            norm: Largest accepted max-abs entry of the solution.

        Returns:
            The solution, or `None` if the split should be rejected.

        Raises:
            RuntimeError: If LAPACK reports an illegal argument.
        """
        t = self.b.to_dense().detach().cpu().numpy()
        t11, t22, t12 = t[si:ei, si:ei], t[ei:, ei:], t[si:ei, ei:]
        trsyl = get_lapack_funcs("trsyl", (t11, t22))
        x, scale, info = trsyl(t11, t22, t12, isgn=-1)
        if info < 0:
            raise RuntimeError(f"TRSYL failed (info={info})")
        if info == 1 or scale < 1.0 or abs(x).max() > norm:
            return None
        return as_tensor(x, dtype=self.q.dtype, device=self.q.device)

    def check(self, pars: SylvParams, mat: Tensor) -> None:
        """Write the accuracy of the decomposition into the parameters.

        Sets `f_err1`, `f_errI` (error of reconstructing `mat`), `viv_err1`,
        `viv_errI` (error of `Q Q^{-1} = I`) and `ivv_err1`, `ivv_errI` (error of
        `Q^{-1} Q = I`).

        Args:
            pars: The parameters to write to.
            mat: The decomposed matrix.
        """
        identity = eye(self.q.shape[0], dtype=self.q.dtype, device=self.q.device)
        residuals = {
            "f_err": mat - self.q @ self.b.to_dense() @ self.invq,
            "viv_err": identity - self.q @ self.invq,
            "ivv_err": identity - self.invq @ self.q,
        }
        for prefix, residual in residuals.items():
            setattr(pars, f"{prefix}1", matrix_norm(residual, ord=1).item())
            setattr(pars, f"{prefix}I", matrix_norm(residual, ord=torch.inf).item())

    def info_to_pars(self, pars: SylvParams) -> None:
        """Write the block structure into the parameters.

        Sets `f_blocks`, `f_largest`, `f_zeros` and `f_offdiag`.

        Args:
            pars: The parameters to write to.
        """
        dim = self.b.dim
        pars.f_blocks = self.b.num_blocks()
        pars.f_largest = self.b.largest_block()
        pars.f_zeros = self.b.num_zeros()
        pars.f_offdiag = dim * (dim - 1) // 2
