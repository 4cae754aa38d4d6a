r"""# Basic usage.

This example demonstrates how to solve the generalized Sylvester equation

$$
\mathbf{A} \mathbf{X} + \mathbf{B} \mathbf{X} \mathbf{C}^{\otimes k} = \mathbf{D}
$$

with `sylvkron`, and how to inspect the diagnostics the solver reports.

First, the imports.
"""

from torch import eye, float64, manual_seed, rand

from sylvkron.solvers.general import GeneralSylvester, solve_general_sylvester
from sylvkron.solvers.params import SylvParams

manual_seed(0)  # make deterministic

# %%
# ## Problem Setup
#
# The unknown $\mathbf{X}$ has $n$ rows and $m^k$ columns. Here, $\mathbf{B}$ has
# two leading zero columns. We only pass its non-zero columns and tell the solver
# how many zero columns to pad:

n, m, order, zero_cols = 6, 3, 2, 2

a = rand(n, n, dtype=float64) + n * eye(n, dtype=float64)
b = rand(n, n - zero_cols, dtype=float64)
c = rand(m, m, dtype=float64) / m
d = rand(n, m**order, dtype=float64)

# %%
# ## Solving
#
# The quickest way is the functional interface. Options are passed through
# `SylvParams`; with `want_check=True`, the residual of the solution is computed
# as well:

params = SylvParams(want_check=True)
x, params = solve_general_sylvester(a, b, c, d, order, zero_cols, params)
print(f"Solution shape: {tuple(x.shape)}")

# %%
#
# The parameters now hold the diagnostics of the solve, for instance the
# relative residual norms and the block structure found for $\mathbf{C}$:

params.print_info(prefix="  ")
assert params.mat_errF < 1e-10

# %%
# ## Iterative Method
#
# If the spectral radius of the Kronecker operator is smaller than one, the
# doubling iteration can be used instead of the direct recursive solver. This
# time, we use the object interface, which also gives access to the
# decompositions:

params = SylvParams(method="iterative", want_check=True)
equation = GeneralSylvester(order, n, m, zero_cols, a, b, c, d, params=params)
equation.solve()
equation.check()

print(f"Converged: {params.converged} after {params.num_iter} doubling steps")
print(f"Max. deviation from direct solution: {(equation.result - x).abs().max():.2e}")
equation.cdecomp.b.print_info()

# %%
#
# ## Conclusion
#
# You now know how to set up, solve and check a generalized Sylvester equation.
