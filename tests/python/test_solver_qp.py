"""
Tests for QP solver functionality.
"""

import numpy as np
import pytest
from scipy import sparse

from polysddp import Model, Status, solve
from polysddp.exceptions import InvalidInputError


class TestSolveQPSimple:
    """Tests for simple QP problems."""

    def test_solve_unconstrained_qp(self):
        """
        Test solving unconstrained QP.

        minimize (1/2)x'Px + q'x
        where P = 2I, q = [-2, -4]

        Optimal: x = [1, 2], obj = -5
        """
        P = sparse.csr_matrix([[2.0, 0.0], [0.0, 2.0]])
        q = np.array([-2.0, -4.0])
        A = sparse.csr_matrix((0, 2))  # No constraints

        result = solve(
            c=q,
            A=A,
            P=P,
            lb=np.array([-np.inf, -np.inf]),
            ub=np.array([np.inf, np.inf]),
            constraint_l=np.array([]),
            constraint_u=np.array([]),
            params={"tolerance": 1e-10},
        )

        assert result.status == Status.OPTIMAL
        assert abs(result.x[0] - 1.0) < 1e-4
        assert abs(result.x[1] - 2.0) < 1e-4
        assert abs(result.objective - (-5.0)) < 1e-4

    def test_solve_box_constrained_qp(self):
        """
        Test solving box-constrained QP.

        minimize x^2 + y^2 - 4x - 4y
        subject to 0 <= x, y <= 1

        Optimal: x = [1, 1], obj = -6
        """
        P = np.array([[2.0, 0.0], [0.0, 2.0]])
        q = np.array([-4.0, -4.0])
        lb = np.zeros(2)
        ub = np.ones(2)

        result = solve(c=q, P=P, lb=lb, ub=ub)

        assert result.status == Status.OPTIMAL
        np.testing.assert_allclose(result.x, [1.0, 1.0], atol=1e-4)
        assert np.all(result.x >= lb - 1e-6)
        assert np.all(result.x <= ub + 1e-6)

    def test_solve_qp_with_constraint(self, simple_qp):
        """Test QP with a linear inequality."""
        result = solve(
            c=simple_qp["c"],
            A=simple_qp["A"],
            b=simple_qp["b"],
            P=simple_qp["P"],
            lb=simple_qp["lb"],
            ub=simple_qp["ub"],
            constraint_senses=["<="],
        )

        assert result.status == Status.OPTIMAL
        assert abs(result.objective - simple_qp["expected_obj"]) < 1e-4
        np.testing.assert_allclose(result.x, simple_qp["expected_x"], atol=1e-3)

    def test_qp_via_model(self):
        """A squared distance objective built with the model layer."""
        model = Model()
        x = model.add_var(lb=-np.inf, name="x")
        y = model.add_var(lb=0, name="y")
        model.add_constr(x + y == 4)
        model.minimize((x - 3) * (x - 3) + y)

        result = model.solve()

        # Optimal x = 3.5 with y = 0.5
        assert result.status == Status.OPTIMAL
        assert abs(result.get_value(x) - 3.5) < 1e-4
        assert abs(result.objective - 0.75) < 1e-4


class TestQPInputValidation:
    """Tests for QP input validation."""

    def test_quadratic_with_integers(self):
        """Quadratic objectives need relaxed integrality."""
        model = Model()
        x = model.add_var(lb=0, ub=3, name="x", integer=True)
        model.minimize(x * x)

        with pytest.raises(InvalidInputError):
            model.solve()

        assert model.solve(relax_integer=True).status == Status.OPTIMAL

    def test_non_psd_P(self):
        """Test that non-PSD P doesn't crash (may not converge)."""
        P = sparse.csr_matrix([[-1.0, 0.0], [0.0, 1.0]])
        q = np.array([1.0, 1.0])

        result = solve(
            c=q,
            P=P,
            lb=np.array([-10.0, -10.0]),
            ub=np.array([10.0, 10.0]),
            params={"max_iterations": 100},
        )

        # Just verify it runs without error
        assert result is not None


class TestQPResult:
    """Tests for QP result attributes."""

    def test_qp_result_attributes(self, simple_qp):
        """Test QP result has expected attributes."""
        result = solve(
            c=simple_qp["c"],
            A=simple_qp["A"],
            b=simple_qp["b"],
            P=simple_qp["P"],
            lb=simple_qp["lb"],
            constraint_senses=["<="],
        )

        assert result.x.shape == (2,)
        assert result.solve_time > 0
        assert result.problem_info["qp"]
        # No duals from the QP path
        np.testing.assert_array_equal(result.y, np.zeros(1))
