"""
polysddp Exception Classes
==========================

Custom exceptions for polysddp error handling.
"""

from typing import Optional


class SDDPError(Exception):
    """Base exception for all polysddp errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class SolverFailure(SDDPError):
    """
    Raised when a subproblem solve ends with a non-optimal status.

    Attributes:
        status: Status reported by the solver
        stage: Stage index of the failing subproblem, if known
        trajectory: Forward trajectory index, if known
    """

    default_message = "Solver did not reach optimality"

    def __init__(
        self,
        message: Optional[str] = None,
        status: Optional[object] = None,
        stage: Optional[int] = None,
        trajectory: Optional[int] = None,
    ) -> None:
        self.status = status
        self.stage = stage
        self.trajectory = trajectory

        message = message or self.default_message
        where = []
        if stage is not None:
            where.append(f"stage={stage}")
        if trajectory is not None:
            where.append(f"trajectory={trajectory}")
        if status is not None:
            where.append(f"status={status}")
        if where:
            message = f"{message} ({', '.join(where)})"
        super().__init__(message)

    @classmethod
    def from_status(
        cls,
        status: object,
        stage: Optional[int] = None,
        trajectory: Optional[int] = None,
    ) -> "SolverFailure":
        """Build the most specific failure for a solver status."""
        from .result import Status

        subclass = {
            Status.PRIMAL_INFEASIBLE: InfeasibleError,
            Status.DUAL_INFEASIBLE: UnboundedError,
            Status.NUMERICAL_ERROR: NumericalError,
        }.get(status, SolverFailure)
        return subclass(status=status, stage=stage, trajectory=trajectory)


class InfeasibleError(SolverFailure):
    """
    Raised when a subproblem is primal infeasible.

    In SDDP this usually means the stage lacks relatively complete recourse:
    some reachable state admits no feasible control.
    """

    default_message = "Problem is infeasible"


class UnboundedError(SolverFailure):
    """
    Raised when a subproblem is unbounded (dual infeasible).

    Typically the continuation variable alpha has no lower bound yet.
    """

    default_message = "Problem is unbounded"


class NumericalError(SolverFailure):
    """
    Raised when numerical issues are encountered.
    """

    default_message = "Numerical error encountered"


class DimensionError(SDDPError):
    """
    Raised when matrix/vector dimensions are incompatible.
    """

    def __init__(self, message: str) -> None:
        super().__init__(f"Dimension mismatch: {message}")


class InputShapeError(DimensionError):
    """
    Raised when a noise scenario array has the wrong rank or shape.

    Always raised before any subproblem is solved.
    """


class InvalidInputError(SDDPError):
    """
    Raised when input data is invalid.

    Examples: probabilities not summing to one, unknown failure policy,
    quadratic objective combined with unrelaxed integer variables.
    """

    def __init__(self, message: str) -> None:
        super().__init__(f"Invalid input: {message}")
