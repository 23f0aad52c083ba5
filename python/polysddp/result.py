"""
polysddp Result Classes
=======================

Data classes for solver results and status.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Sequence

import numpy as np

if TYPE_CHECKING:
    from .model import Constraint, Variable


class Status(Enum):
    """
    Solver status codes.

    Attributes:
        OPTIMAL: Solution found within tolerance
        PRIMAL_INFEASIBLE: Problem has no feasible solution
        DUAL_INFEASIBLE: Problem is unbounded (objective → -∞)
        MAX_ITERATIONS: Maximum iteration limit reached
        TIME_LIMIT: Time limit exceeded
        NUMERICAL_ERROR: Numerical issues encountered
        UNSOLVED: Problem not yet solved
    """
    OPTIMAL = "optimal"
    PRIMAL_INFEASIBLE = "primal_infeasible"
    DUAL_INFEASIBLE = "dual_infeasible"
    MAX_ITERATIONS = "max_iterations"
    TIME_LIMIT = "time_limit"
    NUMERICAL_ERROR = "numerical_error"
    UNSOLVED = "unsolved"
    INVALID_INPUT = "invalid_input"

    def __str__(self) -> str:
        return self.value

    @property
    def is_successful(self) -> bool:
        """True if an optimal solution was found."""
        return self == Status.OPTIMAL

    @classmethod
    def from_scipy(cls, code: int) -> "Status":
        """Map a scipy ``linprog``/``milp`` status code."""
        return {
            0: cls.OPTIMAL,
            1: cls.MAX_ITERATIONS,
            2: cls.PRIMAL_INFEASIBLE,
            3: cls.DUAL_INFEASIBLE,
            4: cls.NUMERICAL_ERROR,
        }.get(code, cls.NUMERICAL_ERROR)


@dataclass
class SolveResult:
    """
    Result of solving an LP/MIP/QP problem.

    Attributes:
        status: Solver status
        objective: Optimal objective value (including constant terms)
        x: Primal solution vector
        y: Dual solution vector, one entry per constraint. ``y[i]`` is the
            sensitivity of the optimal objective to the right-hand side of
            constraint ``i``. NaN when the solver reports no duals (MIP) and
            zero for quadratic programs.
        iterations: Number of iterations performed
        solve_time: Wall clock time in seconds (0.0 when unknown)

    Example:
        >>> result = model.solve()
        >>> if result.status == Status.OPTIMAL:
        ...     print(f"Optimal value: {result.objective}")
        ...     print(f"Dual of state constraint: {result.get_dual(c)}")
    """

    status: Status
    objective: float
    x: np.ndarray
    y: np.ndarray
    iterations: int = 0
    solve_time: float = 0.0

    # Optional metadata
    problem_info: Dict[str, Any] = field(default_factory=dict)

    def __repr__(self) -> str:
        return (
            f"SolveResult(status={self.status}, "
            f"objective={self.objective:.6g}, "
            f"iterations={self.iterations}, "
            f"time={self.solve_time:.4f}s)"
        )

    @property
    def is_optimal(self) -> bool:
        return self.status.is_successful

    def get_value(self, var: "Variable") -> float:
        """
        Get the solution value for a specific variable.

        Args:
            var: Variable object from the model

        Returns:
            Optimal value of the variable
        """
        return float(self.x[var.index])

    def get_values(self, vars: Sequence["Variable"]) -> np.ndarray:
        """
        Get solution values for multiple variables.

        Args:
            vars: Sequence (or object array) of Variable objects

        Returns:
            Array of optimal values, same shape as ``vars``
        """
        arr = np.asarray(vars, dtype=object)
        indices = np.array([v.index for v in arr.ravel()], dtype=int)
        return self.x[indices].reshape(arr.shape)

    def get_dual(self, constr: "Constraint") -> float:
        """
        Get the dual value (shadow price) for a constraint.

        Args:
            constr: Constraint object from the model

        Returns:
            Dual value of the constraint
        """
        return float(self.y[constr.index])

    def get_duals(self, constrs: Sequence["Constraint"]) -> np.ndarray:
        """Get dual values for multiple constraints."""
        indices = np.array([c.index for c in constrs], dtype=int)
        return self.y[indices]

    def summary(self) -> str:
        """Return a formatted summary of the solve result."""
        lines = [
            "=" * 50,
            "polysddp Solve Summary",
            "=" * 50,
            f"Status:           {self.status}",
            f"Objective:        {self.objective:.10g}",
            f"Iterations:       {self.iterations}",
            f"Solve time:       {self.solve_time:.4f} s",
            "=" * 50,
        ]
        return "\n".join(lines)
