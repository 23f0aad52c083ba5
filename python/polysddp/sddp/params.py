"""SDDP parameters."""

from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..exceptions import InvalidInputError

FAILURE_POLICIES = ("raise", "skip")


@dataclass
class SDDPParameters:
    """
    Parameters shared by the forward and backward passes.

    Attributes:
        solver: Parameters passed to ``Model.solve`` for LP solves
            (e.g. ``{"method": "highs-ds", "time_limit": 10}``)
        mip_solver: Parameters for unrelaxed MIP solves (defaults to
            ``solver``)
        verbosity: 0 is silent, > 0 prints one line per pass, > 5 dumps
            every subproblem
        relax_integer_in_backward: Solve the LP relaxation of MIP stages in
            the backward pass (cuts need duals)
        failure_policy: What the backward pass does with a failed solve:
            ``"raise"`` propagates a SolverFailure, ``"skip"`` drops the
            cut of that (stage, trajectory) with a warning
        alpha_lower_bound: Lower bound of the continuation variable; must
            bound the true cost-to-go from below. Left as None, 0 is used,
            which is only valid for nonnegative costs: solves that realize
            a negative cost then warn. Problems with signed costs must set
            it explicitly.
    """

    solver: Dict[str, Any] = field(default_factory=lambda: {"method": "highs"})
    mip_solver: Optional[Dict[str, Any]] = None
    verbosity: int = 0
    relax_integer_in_backward: bool = True
    failure_policy: str = "raise"
    alpha_lower_bound: Optional[float] = None

    def __post_init__(self):
        if self.failure_policy not in FAILURE_POLICIES:
            raise InvalidInputError(
                f"failure_policy must be one of {FAILURE_POLICIES}, got '{self.failure_policy}'"
            )
        if self.verbosity < 0:
            raise InvalidInputError("verbosity must be non-negative")

    def solver_params(self, mixed_integer: bool = False) -> Dict[str, Any]:
        """Parameters for one solve, picking the MIP solver when relevant."""
        if mixed_integer and self.mip_solver is not None:
            return dict(self.mip_solver)
        return dict(self.solver)

    @property
    def continuation_lower_bound(self) -> float:
        """Lower bound given to every continuation variable."""
        return 0.0 if self.alpha_lower_bound is None else float(self.alpha_lower_bound)

    def check_cost_sign(self, t: int, cost: float, tol: float = 1e-8) -> None:
        """
        Warn when a realized cost breaks the nonnegative-cost assumption
        of the default continuation bound.
        """
        if self.alpha_lower_bound is None and cost < -tol:
            warnings.warn(
                f"stage {t} realized a negative cost ({cost:.6g}) but alpha_lower_bound "
                "was left at its default of 0, which assumes nonnegative costs; "
                "cuts and V0 may overestimate the optimal value. Set "
                "SDDPParameters.alpha_lower_bound to a lower bound of the cost-to-go",
                stacklevel=3,
            )
