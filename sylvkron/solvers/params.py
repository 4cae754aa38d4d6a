"""Options and diagnostics of the Sylvester solvers."""

from __future__ import annotations

from math import isfinite
from typing import Any, Dict, Tuple, Union


class SylvParams:
    """Input options of a Sylvester solve, and the diagnostics it reports.

    Attributes:
        SUPPORTED_METHODS: Names of the supported solution methods.
        INPUTS: Names of the input options.
        OUTPUTS: Names of the diagnostics written by the solvers. They are `None`
            until set.
        MAX_ABS_BS_NORM: Bound on `|bs_norm|` that keeps `10 ** bs_norm` a finite,
            non-zero float.
    """

    SUPPORTED_METHODS: Tuple[str, ...] = ("direct", "iterative")
    MAX_ABS_BS_NORM: float = 300.0
    INPUTS: Tuple[str, ...] = (
        "method",
        "convergence_tol",
        "max_num_iter",
        "bs_norm",
        "want_check",
    )
    OUTPUTS: Tuple[str, ...] = (
        "converged",
        "iter_last_norm",
        "num_iter",
        "f_err1",
        "f_errI",
        "viv_err1",
        "viv_errI",
        "ivv_err1",
        "ivv_errI",
        "f_blocks",
        "f_largest",
        "f_zeros",
        "f_offdiag",
        "rcondA1",
        "rcondAI",
        "eig_min",
        "mat_err1",
        "mat_errI",
        "mat_errF",
        "vec_err1",
        "vec_errI",
        "cpu_time",
    )

    def __init__(
        self,
        method: str = "direct",
        convergence_tol: float = 1e-30,
        max_num_iter: int = 15,
        bs_norm: float = 1.3,
        want_check: bool = False,
    ) -> None:
        """Set the options.

        Args:
            method: Solution method, `'direct'` for the recursive block substitution
                or `'iterative'` for the doubling iteration. Default: `'direct'`.
            convergence_tol: The iterative method stops once the largest absolute
                update falls below this value. Default: `1e-30`.
            max_num_iter: Maximum number of doubling steps. Default: `15`.
            bs_norm: Base 10 logarithm of the largest accepted entry of the
                transforms that block-diagonalize `C`. Default: `1.3`.
            want_check: Whether to keep a copy of the right-hand side so that the
                residual can be checked after solving. Default: `False`.

        Raises:
            ValueError: If `method` is not supported, `convergence_tol` is not a
                finite positive number, `max_num_iter` is not a positive integer,
                `bs_norm` is not finite or `10 ** bs_norm` leaves the floating point
                range, or `want_check` is not a boolean.
        """
        if method not in self.SUPPORTED_METHODS:
            raise ValueError(
                f"method has to be one out of {self.SUPPORTED_METHODS}, "
                f"but was set to {method!r}."
            )
        if not (isfinite(convergence_tol) and convergence_tol > 0):
            raise ValueError(
                f"convergence_tol must be finite and positive. Got {convergence_tol}"
            )
        if (
            not isinstance(max_num_iter, int)
            or isinstance(max_num_iter, bool)
            or max_num_iter <= 0
        ):
            raise ValueError(
                f"max_num_iter must be a positive integer. Got {max_num_iter!r}"
            )
        if not (isfinite(bs_norm) and abs(bs_norm) < self.MAX_ABS_BS_NORM):
            raise ValueError(
                f"bs_norm must be finite with absolute value below "
                f"{self.MAX_ABS_BS_NORM}. Got {bs_norm}"
            )
        if not isinstance(want_check, bool):
            raise ValueError(f"want_check must be a bool. Got {want_check!r}")

        self.method = method
        self.convergence_tol = convergence_tol
        self.max_num_iter = max_num_iter
        self.bs_norm = bs_norm
        self.want_check = want_check

        for name in self.OUTPUTS:
            setattr(self, name, None)

    @classmethod
    def from_dict(cls, options: Dict[str, Any]) -> SylvParams:
        """Create parameters from a mapping of option names to values.

        Args:
            options: Input options. Missing options use their default.

        Returns:
            The parameters.

        Raises:
            ValueError: If `options` contains an unknown option.
        """
        unknown = set(options) - set(cls.INPUTS)
        if unknown:
            raise ValueError(
                f"Unknown options {sorted(unknown)}. Supported: {cls.INPUTS}."
            )
        return cls(**options)

    def to_dict(self) -> Dict[str, Union[str, int, float, bool]]:
        """Export all options and the diagnostics that were set.

        Returns:
            Mapping of names to values.
        """
        values = {name: getattr(self, name) for name in self.INPUTS + self.OUTPUTS}
        return {name: value for name, value in values.items() if value is not None}

    def print_info(self, prefix: str = "") -> None:
        """Print all options and the diagnostics that were set.

        Args:
            prefix: String printed in front of each line. Default: `''`.
        """
        for name, value in self.to_dict().items():
            print(f"{prefix}{name:<16}= {value}")
