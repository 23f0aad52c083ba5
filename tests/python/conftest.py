"""
pytest configuration and fixtures for polysddp tests.
"""

import pytest
import numpy as np


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def simple_lp():
    """
    Simple LP problem for testing.

    minimize: -x - y
    subject to: x + 2y <= 10
                3x + y <= 15
                x, y >= 0

    Optimal: x=4, y=3, obj=-7
    """
    c = np.array([-1.0, -1.0])
    A = np.array([
        [1.0, 2.0],
        [3.0, 1.0],
    ])
    b = np.array([10.0, 15.0])
    lb = np.array([0.0, 0.0])
    ub = np.array([np.inf, np.inf])

    return {
        "c": c,
        "A": A,
        "b": b,
        "lb": lb,
        "ub": ub,
        "senses": ["<=", "<="],
        "expected_obj": -7.0,
        "expected_x": np.array([4.0, 3.0]),
    }


@pytest.fixture
def simple_qp():
    """
    Simple QP problem for testing.

    minimize: x^2 + y^2 - 2x - 4y
    subject to: x + y <= 3
                x, y >= 0

    Optimal: x=1, y=2, obj=-5
    """
    P = np.array([
        [2.0, 0.0],
        [0.0, 2.0],
    ])
    q = np.array([-2.0, -4.0])
    A = np.array([[1.0, 1.0]])
    b = np.array([3.0])
    lb = np.array([0.0, 0.0])
    ub = np.array([np.inf, np.inf])

    return {
        "P": P,
        "c": q,
        "A": A,
        "b": b,
        "lb": lb,
        "ub": ub,
        "expected_obj": -5.0,
        "expected_x": np.array([1.0, 2.0]),
    }


@pytest.fixture
def toy_problem():
    """
    Three-stage stock problem with a hand-computed solution.

    x_{t+1} = x_t + u_t + w_t,  5 <= x_{t+1} <= 10,  0 <= u_t <= 5
    cost u_t, x_0 = 2, w_t in {-1, +1} with probability 1/2 each.

    With forward scenario (w_0, w_1) = (1, -1):
        forward stocks 2, 5, 5; controls 2, 1; cost 3
        backward stage 1: cut beta=3, lambda=-0.5
        backward stage 0: V0 = 3.5
    """
    from polysddp.sddp import NoiseLaw, StageSpec

    problem = StageSpec(
        stage_number=3,
        dim_states=1,
        dim_controls=1,
        dim_noises=1,
        initial_state=[2.0],
        dynamics=lambda t, x, u, w: x + u + w,
        cost=lambda t, x, u, w: u[0],
        state_bounds=[(5.0, 10.0)],
        control_bounds=[(0.0, 5.0)],
    )
    laws = [NoiseLaw.uniform([-1.0, 1.0]) for _ in range(2)]
    scenarios = np.array([[[1.0]], [[-1.0]]])
    return problem, laws, scenarios


@pytest.fixture
def reservoir_problem():
    """
    Two-dimensional stock problem over five stages.

    Two reservoirs, each released into a shared demand of 4 units per stage;
    a thermal plant covers the shortfall at cost 5, releases cost 0.1.
    """
    from polysddp.sddp import NoiseLaw, StageSpec

    def dynamics(t, x, u, w):
        return x - u[:2] + w

    def cost(t, x, u, w):
        return 0.1 * u[0] + 0.1 * u[1] + 5 * u[2]

    def constraints(t, x, u, w):
        return [u[0] + u[1] + u[2] >= 4.0]

    problem = StageSpec(
        stage_number=5,
        dim_states=2,
        dim_controls=3,
        dim_noises=2,
        initial_state=[5.0, 3.0],
        dynamics=dynamics,
        cost=cost,
        state_bounds=[(0.0, 10.0), (0.0, 8.0)],
        control_bounds=[(0.0, 4.0), (0.0, 4.0), (0.0, 10.0)],
        constraints=constraints,
    )
    support = np.array([[0.0, 0.0], [2.0, 1.0], [4.0, 2.0]])
    laws = [NoiseLaw(support, np.array([0.3, 0.4, 0.3])) for _ in range(4)]
    return problem, laws


# ============================================================================
# Markers
# ============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "benchmark: marks benchmark tests")
    config.addinivalue_line("markers", "integration: marks integration tests")
