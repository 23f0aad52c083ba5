"""
End-to-end SDDP iterations.
"""

import warnings

import pytest
import numpy as np

from polysddp.sddp import (
    Mode,
    NoiseLaw,
    SDDPParameters,
    StageSpec,
    backward_pass,
    bellman_values,
    build_models,
    estimate_upper_bound,
    forward_pass,
    initial_value_functions,
    sample_scenarios,
)


def _run(problem, laws, iterations, n_forward, mode=Mode.HAZARD_DECISION, seed=0):
    params = SDDPParameters()
    models = build_models(problem, laws, params, mode=mode)
    V = initial_value_functions(problem)
    bounds = []
    for iteration in range(iterations):
        scenarios = sample_scenarios(laws[: problem.stage_number - 1], n_forward, seed=seed + iteration)
        _, stocks, _ = forward_pass(problem, params, models, scenarios, mode=mode)
        bounds.append(backward_pass(problem, params, V, models, stocks, laws, mode=mode))
    return params, models, V, bounds


@pytest.mark.integration
class TestSDDPIterations:
    """Outer iterations on small problems."""

    def test_toy_converges(self, toy_problem):
        """The toy problem reaches its optimal value."""
        problem, laws, _ = toy_problem
        _, _, _, bounds = _run(problem, laws, iterations=4, n_forward=4)

        # Stage 0 pays u = 2 or 4; stage 1 pays 1 half of the time
        assert bounds[-1] == pytest.approx(3.5, abs=1e-6)

    def test_lower_bound_non_decreasing(self, reservoir_problem):
        """Each iteration can only raise the lower bound."""
        problem, laws = reservoir_problem
        _, _, _, bounds = _run(problem, laws, iterations=6, n_forward=3)

        assert all(b2 >= b1 - 1e-7 for b1, b2 in zip(bounds, bounds[1:]))
        assert bounds[-1] >= bounds[0]

    @pytest.mark.slow
    def test_lower_bound_below_upper_estimate(self, reservoir_problem):
        """The lower bound stays below the Monte Carlo upper bound."""
        problem, laws = reservoir_problem
        params, models, V, bounds = _run(problem, laws, iterations=8, n_forward=3)

        scenarios = sample_scenarios(laws, 200, seed=1234)
        costs, stocks, _ = forward_pass(problem, params, models, scenarios)
        estimate, lower, upper = estimate_upper_bound(costs)

        assert bounds[-1] <= upper + 1e-6
        # Every stage holds cuts after the iterations
        values = bellman_values(V, stocks)
        assert np.all(np.isfinite(values))

    def test_decision_hazard(self, toy_problem):
        """Decision-hazard iterations produce non-decreasing bounds."""
        problem, laws, _ = toy_problem
        _, _, _, bounds = _run(problem, laws, iterations=3, n_forward=2, mode=Mode.DECISION_HAZARD)

        assert all(b2 >= b1 - 1e-7 for b1, b2 in zip(bounds, bounds[1:]))
        assert bounds[-1] >= 4.0 - 1e-6


def _iterate(problem, params, iterations):
    """Deterministic iterations with a single zero-noise trajectory."""
    laws = [NoiseLaw.uniform([0.0]) for _ in range(problem.stage_number - 1)]
    models = build_models(problem, laws, params)
    V = initial_value_functions(problem)
    scenarios = np.zeros((problem.stage_number - 1, 1, 1))
    history = []
    for _ in range(iterations):
        costs, stocks, _ = forward_pass(problem, params, models, scenarios)
        V0 = backward_pass(problem, params, V, models, stocks, laws)
        history.append((costs, V0))
    return history


@pytest.mark.integration
class TestCostAccounting:
    """Forward costs and lower bounds on problems with final or signed costs."""

    def test_final_cost_counted(self):
        """Forward costs include the final cost, so they never fall below V0."""
        # Draining costs 1 per unit, stock left at the end costs 10 per unit
        problem = StageSpec(
            stage_number=3, dim_states=1, dim_controls=1, dim_noises=1,
            initial_state=[5.0],
            dynamics=lambda t, x, u, w: x - u + w,
            cost=lambda t, x, u, w: u[0],
            control_bounds=[(0.0, 2.0)],
            final_cost=lambda x: 10.0 * x[0],
        )
        history = _iterate(problem, SDDPParameters(), iterations=2)

        (first_costs, first_V0), (costs, V0) = history
        # No cut yet at stage 0: drain 2 only at stage 1, 3 units left
        assert first_costs[0] == pytest.approx(32.0)
        assert first_V0 == pytest.approx(14.0)
        # Drain 2 at both stages, 1 unit left
        assert costs[0] == pytest.approx(14.0)
        assert V0 == pytest.approx(14.0)

        estimate, _, _ = estimate_upper_bound(first_costs)
        assert estimate >= first_V0 - 1e-6

    def test_revenue_needs_explicit_bound(self):
        """Signed costs warn under the default bound and are exact with an explicit one."""
        # Selling stock earns 1 per unit, at most 5 per stage
        problem = StageSpec(
            stage_number=3, dim_states=1, dim_controls=1, dim_noises=1,
            initial_state=[10.0],
            dynamics=lambda t, x, u, w: x - u + w,
            cost=lambda t, x, u, w: -u[0],
            state_bounds=[(0.0, 10.0)],
            control_bounds=[(0.0, 5.0)],
        )

        with pytest.warns(UserWarning, match="alpha_lower_bound"):
            _iterate(problem, SDDPParameters(), iterations=1)

        with warnings.catch_warnings():
            warnings.simplefilter("error")
            history = _iterate(problem, SDDPParameters(alpha_lower_bound=-100.0), iterations=2)

        # Sell 5 at both stages
        assert history[0][0][0] == pytest.approx(-10.0)
        for costs, V0 in history:
            assert V0 == pytest.approx(-10.0, abs=1e-6)
            assert V0 <= costs.mean() + 1e-6
