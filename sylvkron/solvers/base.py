"""Interface of solvers for Kronecker-structured Sylvester systems."""

from __future__ import annotations

from abc import ABC, abstractmethod

from sylvkron.kron.vector import KronVector
from sylvkron.solvers.params import SylvParams
from sylvkron.structures.quasitriangular import QuasiTriangular


class SylvesterSolver(ABC):
    r"""Base class for solvers of \((\mathbf{I} + (\mathbf{K}^\top)^{\otimes d} \otimes
    \mathbf{F}) \mathbf{y} = \mathbf{d}\).

    The system is the vectorization of \(\mathbf{Y} + \mathbf{F} \mathbf{Y}
    \mathbf{K}^{\otimes d} = \mathbf{D}\), where \(\mathbf{F}\) and \(\mathbf{K}\) are
    quasi-triangular.
    """

    def __init__(self, matrix_f: QuasiTriangular, matrix_k: QuasiTriangular) -> None:
        """Store the matrices.

        Args:
            matrix_f: Matrix acting on the base index.
            matrix_k: Matrix whose transpose acts on every Kronecker index.
        """
        self.matrix_f = matrix_f
        self.matrix_k = matrix_k

    @abstractmethod
    def solve(self, pars: SylvParams, d: KronVector) -> None:
        """In-place solve the system, overwriting the right-hand side.

        Args:
            pars: Options of the solver. Diagnostics are written into it.
            d: Right-hand side, overwritten by the solution.

        Raises:
            NotImplementedError: Must be implemented by a child class.
        """
        raise NotImplementedError
