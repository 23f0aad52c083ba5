"""
Tests for policy evaluation helpers.
"""

import pytest
import numpy as np

from polysddp.exceptions import DimensionError, InvalidInputError
from polysddp.sddp import PolyhedralFunction, bellman_values, estimate_upper_bound


class TestEstimateUpperBound:
    """Tests for estimate_upper_bound."""

    def test_interval_contains_mean(self):
        """The estimate is centered in its interval."""
        costs = np.array([1.0, 2.0, 3.0, 4.0])
        estimate, lower, upper = estimate_upper_bound(costs)

        assert estimate == pytest.approx(2.5)
        assert lower < estimate < upper
        assert estimate - lower == pytest.approx(upper - estimate)

    def test_interval_width(self):
        """Half width is z * std / sqrt(n)."""
        costs = np.array([1.0, 3.0])
        _, lower, upper = estimate_upper_bound(costs, confidence_level=0.95)

        std = np.std(costs, ddof=1)
        assert (upper - lower) / 2 == pytest.approx(1.959964 * std / np.sqrt(2), rel=1e-5)

    def test_higher_confidence_is_wider(self):
        """Higher confidence levels widen the interval."""
        costs = np.random.default_rng(0).normal(size=50)
        _, lo90, hi90 = estimate_upper_bound(costs, 0.90)
        _, lo99, hi99 = estimate_upper_bound(costs, 0.99)

        assert hi99 - lo99 > hi90 - lo90

    def test_single_sample(self):
        """A single cost gives a zero-width interval."""
        assert estimate_upper_bound([7.0]) == (7.0, 7.0, 7.0)

    def test_invalid(self):
        """Empty samples and bad levels are rejected."""
        with pytest.raises(InvalidInputError):
            estimate_upper_bound([])
        with pytest.raises(InvalidInputError):
            estimate_upper_bound([1.0, 2.0], confidence_level=1.5)


class TestBellmanValues:
    """Tests for bellman_values."""

    def test_values(self):
        """V[t] is evaluated at stocks[t, k]."""
        V = [PolyhedralFunction.single(3.0, [-0.5]), PolyhedralFunction(dim=1)]
        stocks = np.array([[[2.0], [4.0]], [[5.0], [5.0]], [[5.0], [5.0]]])

        values = bellman_values(V, stocks)

        assert values.shape == (2, 2)
        np.testing.assert_allclose(values[0], [2.0, 1.0])
        assert np.all(values[1] == -np.inf)

    def test_shape(self):
        """Stocks must be 3D."""
        with pytest.raises(DimensionError):
            bellman_values([PolyhedralFunction(dim=1)], np.zeros((2, 1)))
