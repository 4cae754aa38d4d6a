r"""# Overview of Structures.

This example visualizes the structured matrices the solver works with: the
quasi-triangular real Schur form of $\mathbf{A}^{-1} \mathbf{B}$, and the
block-diagonal form of $\mathbf{C}$.

First, the imports.
"""

from os import makedirs, path

from matplotlib import pyplot as plt
from torch import diag, float64, linspace, manual_seed, rand

from sylvkron.decomp.schur import SchurDecomp
from sylvkron.decomp.similarity import SimilarityDecomp

manual_seed(0)  # make deterministic
HEREDIR = path.dirname(path.abspath(__file__))
FIGDIR = path.join(HEREDIR, "fig")
makedirs(FIGDIR, exist_ok=True)

# %%
#
# ## Quasi-Triangular Matrices
#
# The real Schur form of a matrix is upper triangular, except for $2 \times 2$
# blocks on the diagonal that hold complex conjugate pairs of eigenvalues:

dim = 12
schur = SchurDecomp(rand(dim, dim, dtype=float64) - 0.5)
print(f"Diagonal block sizes: {[block.size for block in schur.t.diag_blocks()]}")

# %%
#
# ## Block-Diagonal Matrices
#
# Clusters of eigenvalues that are well separated can be decoupled by a
# well-conditioned similarity transform. Here, we construct a matrix with three
# groups of close eigenvalues:

offsets = linspace(0.0, 2.0, 3, dtype=float64).repeat_interleave(dim // 3)
spread = linspace(0.0, 0.1, dim // 3, dtype=float64).repeat(3)
eigenvalues = offsets + spread
coupled = diag(eigenvalues) + 0.5 * rand(dim, dim, dtype=float64).triu(1)
similarity = SimilarityDecomp(coupled)
similarity.b.print_info()

# %%
#
# Here is what they look like, non-zero entries are highlighted:

fig, axes = plt.subplots(1, 2)
plt.tight_layout()

for ax, title, mat in zip(
    axes,
    ["Quasi-triangular", "Block-diagonal"],
    [schur.t.to_dense(), similarity.b.to_dense()],
):
    ax.set_title(title)
    ax.set(xticks=[], yticks=[])  # turn off ticks
    ax.imshow(mat != 0)

fig.savefig(path.join(FIGDIR, "structures.png"))
plt.close(fig)

# %%
#
# ## Conclusion
#
# You now know the structures exploited by the solver and have a visual
# impression how they look like.
