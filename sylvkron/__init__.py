"""Solvers for Sylvester equations with Kronecker powers of structured matrices."""
