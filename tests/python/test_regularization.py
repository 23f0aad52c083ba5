"""
Tests for the regularization penalty.
"""

import pytest
import numpy as np

from polysddp.exceptions import InvalidInputError
from polysddp.model import LinearExpr, QuadExpr
from polysddp.sddp import (
    Mode,
    Regularizer,
    SDDPParameters,
    build_stage_model,
    solve_one_step,
    with_regularization,
)


class TestRegularizer:
    """Tests for Regularizer."""

    def test_penalty_value(self, toy_problem):
        """The penalty is rho * ||xf - xp||^2."""
        problem, _, _ = toy_problem
        model = build_stage_model(problem, 0)
        xf = model["xf"]

        penalty = Regularizer(rho=2.0).penalty(xf, [7.0])
        x = np.zeros(model.num_vars)
        x[xf[0].index] = 4.0

        assert isinstance(penalty, QuadExpr)
        assert penalty.value(x) == pytest.approx(18.0)

    def test_update_decays(self):
        """update() shrinks rho by the decay factor."""
        reg = Regularizer(rho=1.0, decay=0.5)
        reg.update()
        reg.update()
        assert reg.rho == pytest.approx(0.25)

    @pytest.mark.parametrize("kwargs", [{"rho": -1.0}, {"decay": 0.0}, {"decay": 1.5}])
    def test_invalid(self, kwargs):
        """Negative weights and decays outside (0, 1] are rejected."""
        with pytest.raises(InvalidInputError):
            Regularizer(**kwargs)


class TestWithRegularization:
    """Tests for the scoped penalty."""

    def test_objective_restored(self, toy_problem):
        """The original objective is back after the block."""
        problem, _, _ = toy_problem
        model = build_stage_model(problem, 0)
        original = model.objective

        with with_regularization(model, [7.0], Regularizer()):
            assert isinstance(model.objective, QuadExpr)

        assert model.objective is original
        assert isinstance(model.objective, LinearExpr)

    def test_objective_restored_on_error(self, toy_problem):
        """The original objective is restored when the solve raises."""
        problem, _, _ = toy_problem
        model = build_stage_model(problem, 0)
        original = model.objective

        with pytest.raises(RuntimeError):
            with with_regularization(model, [7.0], Regularizer()):
                raise RuntimeError("solver crashed")

        assert model.objective is original

    def test_decision_hazard_rejected(self, toy_problem):
        """Decision-hazard models have no single next state to penalize."""
        problem, laws, _ = toy_problem
        model = build_stage_model(problem, 0, law=laws[0], mode=Mode.DECISION_HAZARD)

        with pytest.raises(InvalidInputError):
            with with_regularization(model, [7.0], Regularizer()):
                pass

    def test_regularized_solve(self, toy_problem):
        """The penalty pulls the next state toward the reference."""
        problem, _, _ = toy_problem
        model = build_stage_model(problem, 0)
        params = SDDPParameters()

        plain = solve_one_step(problem, params, model, 0, [2.0], [1.0])
        pulled = solve_one_step(problem, params, model, 0, [2.0], [1.0],
                                regularizer=Regularizer(rho=1.0), reference=[7.0])

        np.testing.assert_allclose(plain.next_state, [5.0], atol=1e-6)
        # min u + (3 + u - 7)^2 over u >= 2 gives u = 3.5
        np.testing.assert_allclose(pulled.next_state, [6.5], atol=1e-4)
        # Reported objective excludes the penalty
        assert pulled.objective == pytest.approx(3.5, abs=1e-4)
        assert isinstance(model.objective, LinearExpr)

    def test_reference_required(self, toy_problem):
        """A regularized solve needs a reference point."""
        problem, _, _ = toy_problem
        model = build_stage_model(problem, 0)
        with pytest.raises(InvalidInputError):
            solve_one_step(problem, SDDPParameters(), model, 0, [2.0], [1.0],
                           regularizer=Regularizer())
