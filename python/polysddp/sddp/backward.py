"""
Backward Pass
=============

Refine the value-function approximations at the visited states.

At stage t and visited state x_t^k, solving the stage problem for every
support point w_i of the noise law gives costs Q_i and subgradients g_i.
With p_i the probabilities:

    lambda = Σ_i p_i g_i
    beta   = Σ_i p_i Q_i - lambda' x_t^k

The value function is convex in the state, so beta + lambda' x bounds it
from below everywhere and is tight at x_t^k. The cut is stored in V[t] and
embedded in the model of stage t-1, whose continuation variable
approximates V[t].
"""

from __future__ import annotations

import warnings
from contextlib import nullcontext
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ..exceptions import DimensionError, SDDPError, SolverFailure
from ..model import Model
from .noise import NoiseLaw
from .params import SDDPParameters
from .polyhedral import PolyhedralFunction, install_into_model
from .problem import StageSpec
from .subproblem import Mode, SubproblemResult, solve_one_step

Cut = Tuple[float, np.ndarray, float]


def _failure(params: SDDPParameters, result: SubproblemResult, t: int, k: int) -> None:
    if params.failure_policy == "raise":
        raise SolverFailure.from_status(result.status, stage=t, trajectory=k)
    warnings.warn(
        f"backward pass: solve failed at stage {t}, trajectory {k} "
        f"({result.status}); no cut added",
        stacklevel=3,
    )


def _check_subgradient(g: np.ndarray, t: int) -> np.ndarray:
    if np.any(np.isnan(g)):
        raise SDDPError(
            f"no dual information at stage {t}; "
            "mixed-integer stages must be relaxed in the backward pass"
        )
    return g


def _hazard_decision_cut(
    problem: StageSpec,
    params: SDDPParameters,
    model: Model,
    law: NoiseLaw,
    t: int,
    k: int,
    state: np.ndarray,
    relax: bool,
) -> Optional[Cut]:
    costs = np.zeros(law.support_size)
    subgradients = np.zeros((law.support_size, problem.dim_states))

    for i, (w, _) in enumerate(law):
        result = solve_one_step(problem, params, model, t, state, w, relax_integer=relax)
        if not result.solved:
            _failure(params, result, t, k)
            return None
        costs[i] = result.objective
        subgradients[i] = _check_subgradient(result.sub_gradient, t)

    # Expectations of subgradient and cost
    subgradient = law.probabilities @ subgradients
    expected_cost = float(law.probabilities @ costs)
    beta = expected_cost - float(subgradient @ state)
    return beta, subgradient, expected_cost


def _decision_hazard_cut(
    problem: StageSpec,
    params: SDDPParameters,
    model: Model,
    t: int,
    k: int,
    state: np.ndarray,
    relax: bool,
) -> Optional[Cut]:
    # The expectation over the noise is already part of the DH model
    result = solve_one_step(problem, params, model, t, state, mode=Mode.DECISION_HAZARD,
                            relax_integer=relax)
    if not result.solved:
        _failure(params, result, t, k)
        return None
    subgradient = _check_subgradient(result.sub_gradient, t)
    beta = result.objective - float(subgradient @ state)
    return beta, subgradient, result.objective


def backward_pass(
    problem: StageSpec,
    params: SDDPParameters,
    V: List[Optional[PolyhedralFunction]],
    models: List[Model],
    stocks: np.ndarray,
    laws: Sequence[NoiseLaw],
    init: bool = False,
    mode: Mode = Mode.HAZARD_DECISION,
) -> float:
    """
    Compute one cut per (stage, trajectory) and commit it.

    Args:
        problem: Problem definition
        params: SDDP parameters
        V: Value-function approximations, one per decision stage; updated
            in place
        models: Live stage models; models[t-1] receives the cuts of V[t]
        stocks: Visited states (T, K, dim_states) from the forward pass
        laws: Noise law of every decision stage
        init: Start V[t] afresh from the first cut computed at stage t
        mode: Information structure of the stage models

    Returns:
        V0, the mean over trajectories of the expected stage-0 cost: an
        estimate of the optimal expected cost

    Raises:
        SolverFailure: a solve failed and ``params.failure_policy`` is "raise"
        SDDPError: a stage ended the pass without any cut
    """
    T = problem.stage_number
    stocks = np.asarray(stocks, dtype=np.float64)
    if stocks.ndim != 3 or stocks.shape[0] != T or stocks.shape[2] != problem.dim_states:
        raise DimensionError(
            f"stocks has shape {stocks.shape}, expected ({T}, K, {problem.dim_states})"
        )
    if len(V) != T - 1:
        raise DimensionError(f"{len(V)} value functions for {T - 1} decision stages")
    if len(models) < T - 1:
        raise DimensionError(f"{len(models)} stage models for {T - 1} decision stages")
    if mode is Mode.HAZARD_DECISION and len(laws) < T - 1:
        raise DimensionError(f"{len(laws)} noise laws for {T - 1} decision stages")

    n_forward = stocks.shape[1]
    relax = problem.is_mixed_integer and params.relax_integer_in_backward
    V0 = float("nan")

    for t in range(T - 2, -1, -1):
        expected_costs = np.full(n_forward, np.nan)
        committed = 0

        for k in range(n_forward):
            state = stocks[t, k]
            if mode is Mode.HAZARD_DECISION:
                cut = _hazard_decision_cut(problem, params, models[t], laws[t], t, k, state, relax)
            else:
                cut = _decision_hazard_cut(problem, params, models[t], t, k, state, relax)
            if cut is None:
                continue

            beta, subgradient, expected_cost = cut
            expected_costs[k] = expected_cost

            # Add cut to polyhedral function and to the previous stage model,
            # as one commit under the lock of the model receiving the cut
            target = models[t - 1] if t > 0 else None
            with target.lock if target is not None else nullcontext():
                if V[t] is None or (init and committed == 0):
                    V[t] = PolyhedralFunction.single(beta, subgradient)
                else:
                    V[t].add_cut(beta, subgradient)
                if target is not None:
                    install_into_model(target, t - 1, beta, subgradient, problem.dynamics)
            committed += 1

        if V[t] is None or V[t].num_cuts == 0:
            raise SDDPError(f"stage {t} holds no cut after the backward pass")

        if t == 0:
            V0 = float(np.nanmean(expected_costs)) if committed else float("nan")

    if params.verbosity > 0:
        print(f"Backward pass: V0 = {V0:.6g}")

    return V0
