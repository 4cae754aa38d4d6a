"""Utility functions for testing the interface of quasi-triangular-like matrices."""

from abc import ABC, abstractmethod
from os import makedirs, path
from test.utils import DTYPE, report_nonclose
from typing import List, Type

import torch
from imageio import mimsave
from imageio.v2 import imread
from matplotlib import pyplot as plt
from pytest import mark, raises
from torch import Tensor, eye, kron, manual_seed, rand

from sylvkron.kron.vector import KronVector
from sylvkron.structures.base import QuasiTriangularLike
from sylvkron.structures.dense import DenseMatrix

DEPTHS = [1, 2, 3]
DEPTH_IDS = [f"depth={depth}" for depth in DEPTHS]
COMPLEX = [False, True]
COMPLEX_IDS = ["real", "complex"]


def random_kron_vector(m: int, n: int, depth: int, is_complex: bool) -> KronVector:
    """Create a random Kronecker vector.

    Args:
        m: Dimension of each Kronecker factor.
        n: Base size.
        depth: Number of Kronecker factors.
        is_complex: Whether the vector has complex entries.

    Returns:
        A random `KronVector`.
    """
    dtype = torch.complex128 if is_complex else DTYPE
    data = rand(m**depth * n, dtype=dtype)
    return KronVector(data, m, n, depth)


def _test_mult_kron(
    mat: Tensor, structured_matrix_cls: Type[QuasiTriangularLike], transpose: bool
):
    """Compare `mult_kron(_trans)` with a dense Kronecker product.

    Args:
        mat: A dense matrix in the structure of `structured_matrix_cls`.
        structured_matrix_cls: The class of the structured matrix.
        transpose: Whether to test `mult_kron_trans` instead of `mult_kron`.
    """
    structured = structured_matrix_cls.from_dense(mat)
    dim, n = mat.shape[0], 2

    for depth in DEPTHS:
        for is_complex in COMPLEX:
            x = random_kron_vector(dim, n, depth, is_complex)
            identity = eye(dim ** (depth - 1) * n, dtype=DTYPE)
            factor = mat.T.contiguous() if transpose else mat
            truth = kron(factor, identity).to(x.data.dtype) @ x.data

            if transpose:
                structured.mult_kron_trans(x)
            else:
                structured.mult_kron(x)
            report_nonclose(truth, x.data, name="mult_kron")


class _TestQuasiTriangularLike(ABC):
    """Abstract class for testing `QuasiTriangularLike` implementations.

    To test a new matrix variant, create a new class and specify the class
    attributes, then implement the `samples` method.

    `
    class TestQuasiTriangular(_TestQuasiTriangularLike):
        STRUCTURED_MATRIX_CLS = QuasiTriangular

        def samples(self) -> List[Tensor]:
            ...
    `

    `pytest` will automatically pick up the tests defined for `TestQuasiTriangular`
    via the base class.

    Attributes:
        STRUCTURED_MATRIX_CLS: The class of the structured matrix that is tested.
    """

    STRUCTURED_MATRIX_CLS: Type[QuasiTriangularLike]

    @abstractmethod
    def samples(self) -> List[Tensor]:
        """Create dense matrices that have the tested structure.

        Returns:
            Dense matrices which are represented exactly by the tested class.
        """
        raise NotImplementedError("Must be implemented by a child class.")

    def test_from_dense(self):
        """Test that converting a matrix with the structure is lossless."""
        manual_seed(0)
        for mat in self.samples():
            structured = self.STRUCTURED_MATRIX_CLS.from_dense(mat)
            report_nonclose(mat, structured.to_dense())
            assert structured.dim == mat.shape[0]

    @mark.parametrize("is_complex", COMPLEX, ids=COMPLEX_IDS)
    def test_matmul(self, is_complex: bool):
        """Test multiplication onto a dense matrix.

        Args:
            is_complex: Whether the multiplied matrix is complex.
        """
        manual_seed(0)
        dtype = torch.complex128 if is_complex else DTYPE
        for mat in self.samples():
            other = rand(mat.shape[0], 3, dtype=dtype)
            structured = self.STRUCTURED_MATRIX_CLS.from_dense(mat)
            report_nonclose(mat.to(dtype) @ other, structured @ other)

    @mark.parametrize("is_complex", COMPLEX, ids=COMPLEX_IDS)
    def test_rmatmat(self, is_complex: bool):
        """Test multiplication of the transpose onto a dense matrix.

        Args:
            is_complex: Whether the multiplied matrix is complex.
        """
        manual_seed(0)
        dtype = torch.complex128 if is_complex else DTYPE
        for mat in self.samples():
            other = rand(mat.shape[0], 3, dtype=dtype)
            structured = self.STRUCTURED_MATRIX_CLS.from_dense(mat)
            report_nonclose(mat.T.to(dtype) @ other, structured.rmatmat(other))

    def test_mult_kron(self):
        """Test in-place multiplication onto the outer index of a Kronecker vector."""
        manual_seed(0)
        for mat in self.samples():
            _test_mult_kron(mat, self.STRUCTURED_MATRIX_CLS, transpose=False)

    def test_mult_kron_trans(self):
        """Test in-place multiplication of the transpose onto a Kronecker vector."""
        manual_seed(0)
        for mat in self.samples():
            _test_mult_kron(mat, self.STRUCTURED_MATRIX_CLS, transpose=True)

    @mark.parametrize("depth", DEPTHS, ids=DEPTH_IDS)
    def test_mult_kron_trans_adjoint(self, depth: int):
        """Test that `mult_kron_trans` equals `mult_kron` with the transpose.

        Args:
            depth: Depth of the Kronecker vector.
        """
        manual_seed(0)
        for mat in self.samples():
            x = random_kron_vector(mat.shape[0], 3, depth, is_complex=False)
            y = x.clone()

            self.STRUCTURED_MATRIX_CLS.from_dense(mat).mult_kron_trans(x)
            DenseMatrix(mat.T.contiguous()).mult_kron(y)
            report_nonclose(y.data, x.data)

    @mark.parametrize("depth", DEPTHS, ids=DEPTH_IDS)
    def test_mult_kron_identity(self, depth: int):
        """Test that multiplying the identity leaves a Kronecker vector unchanged.

        Args:
            depth: Depth of the Kronecker vector.
        """
        manual_seed(0)
        for dim in [1, 3, 4]:
            x = random_kron_vector(dim, 2, depth, is_complex=False)
            truth = x.data.clone()

            identity = self.STRUCTURED_MATRIX_CLS.eye(dim)
            identity.mult_kron(x)
            report_nonclose(truth, x.data)
            identity.mult_kron_trans(x)
            report_nonclose(truth, x.data)

    def test_mult_kron_dimension_mismatch(self):
        """Test that multiplying onto a vector of wrong dimension raises."""
        manual_seed(0)
        for mat in self.samples():
            structured = self.STRUCTURED_MATRIX_CLS.from_dense(mat)
            x = random_kron_vector(mat.shape[0] + 1, 2, 1, is_complex=False)
            with raises(ValueError):
                structured.mult_kron(x)
            with raises(ValueError):
                structured.mult_kron_trans(KronVector(rand(2, dtype=DTYPE), 1, 2, 0))

    def test_mult_right(self):
        """Test squaring a structured matrix, which keeps its structure."""
        manual_seed(0)
        for mat in self.samples():
            structured = self.STRUCTURED_MATRIX_CLS.from_dense(mat)
            squared = structured.mult_right(structured)
            assert isinstance(squared, self.STRUCTURED_MATRIX_CLS)
            report_nonclose(mat @ mat, squared.to_dense())

            # the square acts like the repeated product
            x = random_kron_vector(mat.shape[0], 2, 2, is_complex=False)
            y = x.clone()
            squared.mult_kron(x)
            structured.mult_kron(y)
            structured.mult_kron(y)
            report_nonclose(y.data, x.data)

    def test_clone(self):
        """Test that a clone is independent of the original."""
        manual_seed(0)
        for mat in self.samples():
            structured = self.STRUCTURED_MATRIX_CLS.from_dense(mat.clone())
            cloned = structured.clone()
            cloned.to_dense()[0, -1] += 1.0
            report_nonclose(mat, structured.to_dense())
            assert cloned.to_dense()[0, -1] != structured.to_dense()[0, -1]

    def test_stores_tensor(self):
        """Test that the constructor keeps the passed tensor without copying it."""
        manual_seed(0)
        for mat in self.samples():
            projected = self.STRUCTURED_MATRIX_CLS.from_dense(mat).to_dense()
            structured = self.STRUCTURED_MATRIX_CLS(projected)
            assert structured.to_dense() is projected
            assert structured.dim == projected.shape[0]

    def test_eye(self):
        """Test initializing a structured matrix representing the identity matrix."""
        for dim in [1, 5]:
            identity = self.STRUCTURED_MATRIX_CLS.eye(dim)
            assert identity.to_dense().dtype == DTYPE
            report_nonclose(eye(dim, dtype=DTYPE), identity.to_dense())

    @mark.expensive
    def test_visual(self):
        """Create pictures and animations of the structure.

        Shows the matrices used in the tests next to their absolute values on a log
        scale, which reveals the zero pattern.
        """
        manual_seed(0)

        HEREDIR = path.dirname(path.abspath(__file__))
        structure_name = self.STRUCTURED_MATRIX_CLS.__name__
        FIGDIR = path.join(HEREDIR, "fig", structure_name)
        makedirs(FIGDIR, exist_ok=True)

        frames = []

        for idx, mat in enumerate(self.samples()):
            structured = self.STRUCTURED_MATRIX_CLS.from_dense(mat).to_dense()

            fig, (ax1, ax2) = plt.subplots(1, 2)
            plt.tight_layout()
            fig.suptitle(f"Dimension: {mat.shape[0]}")
            ax1.set_title(structure_name)
            ax1.imshow(structured)
            ax2.set_title("Non-zeros")
            ax2.imshow(structured != 0)

            savepath = path.join(FIGDIR, f"sample_{idx:05d}.png")
            fig.savefig(savepath)
            plt.close(fig)
            frames.append(savepath)

        # create gif
        images = [imread(frame) for frame in frames]
        mimsave(path.join(FIGDIR, "animated.gif"), images, duration=1_000, loop=0)
