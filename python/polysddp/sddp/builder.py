"""
Stage Model Construction
========================

Build the live per-stage models the SDDP passes operate on.

Hazard-decision layout of the model of stage t:

    variables   x (state, free), u (controls), w (noise, fixed per solve),
                xf (next state, within state bounds), alpha (cost-to-go)
    minimize    cost(t, x, u, w) + alpha
    subject to  x == x_t                      group "state"
                xf == dynamics(t, x, u, w)    group "dynamics"
                extra constraints             group "extra"
                alpha >= final_cost(xf)       last stage only, group "final"

Decision-hazard layout: no noise variables; one next state column
xf[:, i] and one alpha_i per support point w_i of the stage's noise law:

    minimize    Σ_i p_i (cost(t, x, u, w_i) + alpha_i)
    subject to  x == x_t
                xf[:, i] == dynamics(t, x, u, w_i)
"""

from __future__ import annotations

from typing import List, Optional, Sequence

import numpy as np

from ..exceptions import DimensionError
from ..model import Model
from .noise import NoiseLaw
from .params import SDDPParameters
from .polyhedral import PolyhedralFunction
from .problem import StageSpec
from .subproblem import Mode


def _as_list(exprs) -> list:
    if exprs is None:
        return []
    if isinstance(exprs, (list, tuple, np.ndarray)):
        return list(np.asarray(exprs, dtype=object).ravel())
    return [exprs]


def _add_next_state(model: Model, problem: StageSpec, t: int, x, u, w, name: str):
    nxt = np.asarray(problem.dynamics(t, x, u, w), dtype=object).ravel()
    if len(nxt) != problem.dim_states:
        raise DimensionError(f"dynamics returned {len(nxt)} entries, expected {problem.dim_states}")
    xf = model.add_vars(problem.dim_states, lb=problem.state_lb, ub=problem.state_ub, name_prefix=name)
    for var, expr in zip(xf, nxt):
        model.add_constr(var == expr, group="dynamics")
    if problem.constraints is not None:
        model.add_constrs(_as_list(problem.constraints(t, x, u, w)), group="extra")
    return xf


def _stage_cost(problem: StageSpec, t: int, x, u, w):
    if problem.cost is None:
        return 0.0
    return problem.cost(t, x, u, w)


def _bound_alpha(model: Model, problem: StageSpec, t: int, alpha, xf) -> None:
    """Final-cost constraints on the last decision stage."""
    if t != problem.stage_number - 2:
        return
    if problem.final_cost is None:
        model.fix(alpha, 0.0)
        return
    for piece in _as_list(problem.final_cost(np.asarray(xf, dtype=object))):
        model.add_constr(alpha >= piece, group="final")


def build_stage_model(
    problem: StageSpec,
    t: int,
    params: Optional[SDDPParameters] = None,
    law: Optional[NoiseLaw] = None,
    mode: Mode = Mode.HAZARD_DECISION,
) -> Model:
    """
    Build the model of stage t (0 <= t <= T-2).

    Args:
        problem: Problem definition
        t: Stage index
        params: SDDP parameters (lower bound of alpha)
        law: Noise law of stage t, required in decision-hazard mode
        mode: Layout to build

    Returns:
        Model with groups "x", "u", "xf", "alpha" (and "w" in
        hazard-decision mode)
    """
    params = params or SDDPParameters()
    if not 0 <= t <= problem.stage_number - 2:
        raise DimensionError(f"stage {t} out of range for {problem.stage_number} stages")

    model = Model(name=f"stage_{t}")
    x = model.add_vars(problem.dim_states, lb=-np.inf, name_prefix="x", group="x")
    u = model.add_vars(problem.dim_controls, lb=problem.control_lb, ub=problem.control_ub,
                       name_prefix="u", integer=problem.integer_mask, group="u")
    X, U = model["x"], model["u"]
    for var in x:
        model.add_constr(var == 0.0, group="state")

    if mode is Mode.HAZARD_DECISION:
        model.add_vars(problem.dim_noises, lb=-np.inf, name_prefix="w", group="w")
        W = model["w"]
        xf = model.register("xf", _add_next_state(model, problem, t, X, U, W, "xf"))
        alpha = model.add_var(lb=params.continuation_lower_bound, name="alpha")
        model.register("alpha", [alpha])
        _bound_alpha(model, problem, t, alpha, xf)
        model.minimize(_stage_cost(problem, t, X, U, W) + alpha)
        return model

    if law is None:
        raise DimensionError("decision-hazard models need the stage noise law")
    if law.dim != problem.dim_noises:
        raise DimensionError(f"noise law has dimension {law.dim}, expected {problem.dim_noises}")

    columns, alphas, objective = [], [], 0.0
    for i, (w, p) in enumerate(law):
        xf_i = _add_next_state(model, problem, t, X, U, w, f"xf{i}")
        alpha_i = model.add_var(lb=params.continuation_lower_bound, name=f"alpha_{i}")
        _bound_alpha(model, problem, t, alpha_i, xf_i)
        columns.append(xf_i)
        alphas.append(alpha_i)
        objective = objective + p * (_stage_cost(problem, t, X, U, w) + alpha_i)
    model.register("xf", np.array(columns, dtype=object).T)
    model.register("alpha", alphas)
    model.minimize(objective)
    return model


def build_models(
    problem: StageSpec,
    laws: Sequence[NoiseLaw],
    params: Optional[SDDPParameters] = None,
    mode: Mode = Mode.HAZARD_DECISION,
) -> List[Model]:
    """Build the T-1 stage models, one per decision stage."""
    n_stages = problem.stage_number - 1
    if len(laws) < n_stages:
        raise DimensionError(f"{len(laws)} noise laws for {n_stages} decision stages")
    return [build_stage_model(problem, t, params, laws[t], mode) for t in range(n_stages)]


def initial_value_functions(problem: StageSpec) -> List[PolyhedralFunction]:
    """Empty value-function approximations for the T-1 decision stages."""
    return [PolyhedralFunction(dim=problem.dim_states) for _ in range(problem.stage_number - 1)]
