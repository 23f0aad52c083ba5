"""
One-Stage Subproblem
====================

Solve the Bellman equation of stage t from state x under noise w with the
current approximation of V_{t+1} embedded in the stage model:

    min_u  cost(t, x, u, w) + alpha
    s.t.   alpha >= beta_i + lambda_i' dynamics(t, x, u, w)   for every cut

The state enters through the equality constraints x == x_t (the model's
``"state"`` group); their duals give a subgradient of the optimal value with
respect to x_t, which is what the backward pass turns into cuts.
"""

from __future__ import annotations

from contextlib import nullcontext
from enum import Enum
from typing import Optional

import numpy as np

from ..exceptions import DimensionError, InvalidInputError, SolverFailure
from ..model import Model, QuadExpr
from ..result import Status
from .params import SDDPParameters
from .problem import StageSpec
from .regularization import Regularizer, with_regularization


class Mode(Enum):
    """
    Information structure of a stage.

    Attributes:
        HAZARD_DECISION: the noise is observed before the control is chosen
        DECISION_HAZARD: the control is committed before the noise is
            revealed; the stage model holds one next state per noise point
    """
    HAZARD_DECISION = "hazard_decision"
    DECISION_HAZARD = "decision_hazard"

    def __str__(self) -> str:
        return self.value


class SubproblemResult:
    """
    Outcome of one stage solve.

    When ``solved`` is False only ``status`` and ``solve_time`` are
    meaningful: reading any other field raises ``SolverFailure``.

    Attributes:
        solved: Whether the solver reached optimality
        status: Solver status
        solve_time: Solver wall time in seconds (0.0 when unknown)
        objective: Optimal value (immediate cost + continuation value)
        next_state: State reached at t+1
        optimal_control: Optimal control u_t
        sub_gradient: Duals of the state constraints
        cost_to_go: Value of the continuation term in the objective
        cut_duals: Duals of the cuts embedded in the model
    """

    __slots__ = ("solved", "status", "solve_time", "_objective", "_next_state",
                 "_optimal_control", "_sub_gradient", "_cost_to_go", "_cut_duals")

    def __init__(
        self,
        solved: bool,
        status: Status,
        solve_time: float = 0.0,
        objective: Optional[float] = None,
        next_state: Optional[np.ndarray] = None,
        optimal_control: Optional[np.ndarray] = None,
        sub_gradient: Optional[np.ndarray] = None,
        cost_to_go: Optional[float] = None,
        cut_duals: Optional[np.ndarray] = None,
    ) -> None:
        self.solved = solved
        self.status = status
        self.solve_time = solve_time
        self._objective = objective
        self._next_state = next_state
        self._optimal_control = optimal_control
        self._sub_gradient = sub_gradient
        self._cost_to_go = cost_to_go
        self._cut_duals = cut_duals

    @classmethod
    def failed(cls, status: Status, solve_time: float = 0.0) -> "SubproblemResult":
        return cls(False, status, solve_time)

    def _get(self, name: str):
        if not self.solved:
            raise SolverFailure(f"cannot read '{name}' of an unsolved subproblem", status=self.status)
        return getattr(self, f"_{name}")

    @property
    def objective(self) -> float:
        return self._get("objective")

    @property
    def next_state(self) -> np.ndarray:
        return self._get("next_state")

    @property
    def optimal_control(self) -> np.ndarray:
        return self._get("optimal_control")

    @property
    def sub_gradient(self) -> np.ndarray:
        return self._get("sub_gradient")

    @property
    def cost_to_go(self) -> float:
        return self._get("cost_to_go")

    @property
    def cut_duals(self) -> np.ndarray:
        return self._get("cut_duals")

    def __repr__(self) -> str:
        if not self.solved:
            return f"SubproblemResult(solved=False, status={self.status})"
        return (
            f"SubproblemResult(objective={self._objective:.6g}, "
            f"cost_to_go={self._cost_to_go:.6g}, time={self.solve_time:.4f}s)"
        )


def _continuation_value(model: Model, x: np.ndarray) -> float:
    """Value of the alpha terms of the objective at primal solution x."""
    objective = model.objective
    linear = objective.linear if isinstance(objective, QuadExpr) else objective
    return float(sum(linear.terms.get(a.index, 0.0) * x[a.index] for a in model["alpha"]))


def solve_one_step(
    problem: StageSpec,
    params: SDDPParameters,
    model: Model,
    t: int,
    x: np.ndarray,
    w: Optional[np.ndarray] = None,
    mode: Mode = Mode.HAZARD_DECISION,
    relax_integer: bool = False,
    regularizer: Optional[Regularizer] = None,
    reference: Optional[np.ndarray] = None,
) -> SubproblemResult:
    """
    Solve the stage-t model from state x.

    Args:
        problem: Problem definition
        params: SDDP parameters (solver settings, verbosity)
        model: Live model of stage t, mutated in place
        t: Stage index
        x: Current state (dim_states,)
        w: Noise realization (dim_noises,). Required in hazard-decision
            mode; optional in decision-hazard mode, where it only selects
            the reported next state
        mode: Hazard-decision or decision-hazard
        relax_integer: Solve the LP relaxation of a MIP stage
        regularizer: Add a quadratic penalty around ``reference``
        reference: Reference next state for the penalty

    Returns:
        SubproblemResult; ``solved`` is False on any non-optimal status
    """
    x = np.asarray(x, dtype=np.float64).ravel()
    if x.shape != (problem.dim_states,):
        raise DimensionError(f"state has shape {x.shape}, expected ({problem.dim_states},)")
    if w is not None:
        w = np.asarray(w, dtype=np.float64).ravel()
        if w.shape != (problem.dim_noises,):
            raise DimensionError(f"noise has shape {w.shape}, expected ({problem.dim_noises},)")
    if mode is Mode.HAZARD_DECISION and w is None:
        raise InvalidInputError("hazard-decision solves need a noise value")
    if regularizer is not None and reference is None:
        raise InvalidInputError("regularization needs a reference point")

    state_constrs = model.constraints("state")
    if len(state_constrs) != problem.dim_states:
        raise DimensionError(f"model has {len(state_constrs)} state constraints, expected {problem.dim_states}")

    mixed_integer = problem.is_mixed_integer and not relax_integer
    solver_params = params.solver_params(mixed_integer)

    with model.lock:
        for constr, value in zip(state_constrs, x):
            model.set_rhs(constr, value)
        if mode is Mode.HAZARD_DECISION:
            model.fix(model["w"], w)

        if params.verbosity > 5:
            print(f"One step one alea problem at time t={t} ({mode})")
            print(f"for x = {x}")
            print(f"and w = {w}")
            print(model.display())

        guard = with_regularization(model, reference, regularizer) if regularizer is not None else nullcontext()
        with guard:
            solution = model.solve(params=solver_params, relax_integer=not mixed_integer)

        solve_time = getattr(solution, "solve_time", 0.0) or 0.0
        if not solution.status.is_successful:
            if params.verbosity > 3:
                print(f"Stage {t}: solver returned {solution.status}")
            return SubproblemResult.failed(solution.status, solve_time)

        control = solution.get_values(model["u"])
        if mode is Mode.HAZARD_DECISION or w is not None:
            next_state = problem.next_state(t, x, control, w)
        else:
            next_state = solution.get_values(model["xf"])[:, 0]

        # objective without any regularization penalty
        objective = float(model.objective.value(solution.x))
        cost_to_go = _continuation_value(model, solution.x)
        params.check_cost_sign(t, objective - cost_to_go)

        return SubproblemResult(
            solved=True,
            status=solution.status,
            solve_time=solve_time,
            objective=objective,
            next_state=next_state,
            optimal_control=control,
            sub_gradient=solution.get_duals(state_constrs),
            cost_to_go=cost_to_go,
            cut_duals=solution.get_duals(model.constraints("cuts")),
        )
