"""
Forward Pass
============

Simulate trajectories under the current value-function approximations.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

import numpy as np

from ..exceptions import DimensionError, SolverFailure
from ..model import Model
from ..utils.validation import validate_noise_scenarios
from .params import SDDPParameters
from .problem import StageSpec
from .regularization import Regularizer
from .subproblem import Mode, solve_one_step


def forward_pass(
    problem: StageSpec,
    params: SDDPParameters,
    models: List[Model],
    scenarios: np.ndarray,
    return_costs: bool = True,
    mode: Mode = Mode.HAZARD_DECISION,
    regularizer: Optional[Regularizer] = None,
    reference_stocks: Optional[np.ndarray] = None,
) -> Tuple[Optional[np.ndarray], np.ndarray, np.ndarray]:
    """
    Simulate one trajectory per noise scenario.

    The stage models already embed every cut committed so far, so each
    stage solve uses the current approximation of the next value function.

    Args:
        problem: Problem definition
        params: SDDP parameters
        models: Live stage models, one per decision stage
        scenarios: Noise scenarios (T-1, K, dim_noises); scenarios[t, k] is
            the noise at stage t of trajectory k. A (T-1, K) array is read
            as scalar noise, with a warning.
        return_costs: Accumulate the realized cost of each trajectory
        mode: Information structure of the stage models
        regularizer: Penalize distance to ``reference_stocks``
        reference_stocks: Reference states (T, K, dim_states), e.g. the
            trajectories of the previous iteration

    Returns:
        (costs, stocks, controls): costs (K,) or None, stocks
        (T, K, dim_states), controls (T-1, K, dim_controls)

    Raises:
        InputShapeError: malformed scenarios, before any solve
        SolverFailure: a stage solve failed; the trajectory cannot go on
    """
    T = problem.stage_number
    xi = validate_noise_scenarios(scenarios, T, problem.dim_noises)
    n_forward = xi.shape[1]

    if len(models) < T - 1:
        raise DimensionError(f"{len(models)} stage models for {T - 1} decision stages")
    if regularizer is not None:
        if reference_stocks is None:
            raise DimensionError("regularization needs reference_stocks")
        reference_stocks = np.asarray(reference_stocks, dtype=np.float64)
        if reference_stocks.shape != (T, n_forward, problem.dim_states):
            raise DimensionError(
                f"reference_stocks has shape {reference_stocks.shape}, "
                f"expected {(T, n_forward, problem.dim_states)}"
            )

    stocks = np.zeros((T, n_forward, problem.dim_states))
    # T-1 controls: the terminal state has no decision
    controls = np.zeros((T - 1, n_forward, problem.dim_controls))
    stocks[0, :, :] = problem.initial_state

    costs = np.zeros(n_forward) if return_costs else None

    for t in range(T - 1):
        for k in range(n_forward):
            reference = reference_stocks[t + 1, k] if regularizer is not None else None
            result = solve_one_step(
                problem, params, models[t], t, stocks[t, k], xi[t, k],
                mode=mode, regularizer=regularizer, reference=reference,
            )
            if not result.solved:
                raise SolverFailure.from_status(result.status, stage=t, trajectory=k)

            stocks[t + 1, k, :] = result.next_state
            controls[t, k, :] = result.optimal_control
            if costs is not None:
                costs[k] += result.objective - result.cost_to_go

    # The last stage model hides the final cost in its continuation term
    if costs is not None and problem.final_cost is not None:
        for k in range(n_forward):
            final = problem.terminal_cost(stocks[T - 1, k])
            params.check_cost_sign(T - 1, final)
            costs[k] += final

    if params.verbosity > 0:
        line = f"Forward pass: {n_forward} trajectories"
        if costs is not None:
            line += f", mean cost {costs.mean():.6g}"
        print(line)

    return costs, stocks, controls
