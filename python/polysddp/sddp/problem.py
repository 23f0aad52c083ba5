"""
Multistage Problem Definition
=============================

The problem-definition boundary consumed by the SDDP routines.

A multistage stochastic linear program over stages t = 0..T-1:

    minimize    E[ Σ_{t=0}^{T-2} cost(t, x_t, u_t, w_t) + final_cost(x_{T-1}) ]
    subject to  x_{t+1} = dynamics(t, x_t, u_t, w_t)
                x_min <= x_{t+1} <= x_max
                u_min <= u_t <= u_max
                x_0 = initial_state

``dynamics``, ``cost``, ``final_cost`` and ``constraints`` are called both with
numeric arrays (simulation) and with numpy object arrays of model variables
(model building), so they must be written with plain arithmetic:

    >>> def dynamics(t, x, u, w):
    ...     return x + u - w
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence, Tuple

import numpy as np

from ..exceptions import DimensionError, InvalidInputError


Dynamics = Callable[[int, Any, Any, Any], Any]
StageCost = Callable[[int, Any, Any, Any], Any]


def _bounds_array(bounds, dim: int, what: str) -> Tuple[np.ndarray, np.ndarray]:
    if bounds is None:
        return np.full(dim, -np.inf), np.full(dim, np.inf)
    arr = np.asarray(bounds, dtype=np.float64)
    if arr.shape == (2,) and dim != 2:
        arr = np.tile(arr, (dim, 1))
    if arr.shape != (dim, 2):
        raise DimensionError(f"{what} bounds must have shape ({dim}, 2), got {arr.shape}")
    if np.any(arr[:, 0] > arr[:, 1]):
        raise InvalidInputError(f"{what} bounds have lower > upper")
    return arr[:, 0].copy(), arr[:, 1].copy()


@dataclass
class StageSpec:
    """
    Multistage stochastic problem.

    Args:
        stage_number: Number of stages T (states x_0..x_{T-1}, T-1 decisions)
        dim_states: State dimension
        dim_controls: Control dimension
        dim_noises: Noise dimension
        initial_state: x_0 (dim_states,)
        dynamics: (t, x, u, w) -> next state
        cost: (t, x, u, w) -> linear stage cost (defaults to zero)
        state_bounds: (dim_states, 2) bounds on every next state
        control_bounds: (dim_controls, 2) bounds on controls
        final_cost: x -> affine expression, or list of affine expressions
            whose maximum is the cost of the final state
        constraints: (t, x, u, w) -> list of extra constraints
        is_mixed_integer: Whether some controls are integer
        integer_controls: Indices of integer controls (all when omitted)

    Example:
        >>> problem = StageSpec(
        ...     stage_number=3, dim_states=1, dim_controls=1, dim_noises=1,
        ...     initial_state=[2.0],
        ...     dynamics=lambda t, x, u, w: x + u + w,
        ...     cost=lambda t, x, u, w: u[0],
        ...     state_bounds=[(5.0, 10.0)],
        ...     control_bounds=[(0.0, 5.0)],
        ... )
    """

    stage_number: int
    dim_states: int
    dim_controls: int
    dim_noises: int
    initial_state: np.ndarray
    dynamics: Dynamics
    cost: Optional[StageCost] = None
    state_bounds: Optional[Sequence[Tuple[float, float]]] = None
    control_bounds: Optional[Sequence[Tuple[float, float]]] = None
    final_cost: Optional[Callable[[Any], Any]] = None
    constraints: Optional[Callable[[int, Any, Any, Any], Sequence[Any]]] = None
    is_mixed_integer: bool = False
    integer_controls: Optional[Sequence[int]] = None

    def __post_init__(self):
        """Validate dimensions and convert arrays."""
        if self.stage_number < 2:
            raise InvalidInputError(f"stage_number must be at least 2, got {self.stage_number}")
        for name in ("dim_states", "dim_controls", "dim_noises"):
            if getattr(self, name) < 1:
                raise InvalidInputError(f"{name} must be positive")

        self.initial_state = np.asarray(self.initial_state, dtype=np.float64).ravel()
        if self.initial_state.shape != (self.dim_states,):
            raise DimensionError(
                f"initial_state has shape {self.initial_state.shape}, expected ({self.dim_states},)"
            )

        self.state_lb, self.state_ub = _bounds_array(self.state_bounds, self.dim_states, "state")
        self.control_lb, self.control_ub = _bounds_array(self.control_bounds, self.dim_controls, "control")

        if self.integer_controls is not None:
            bad = [i for i in self.integer_controls if not 0 <= i < self.dim_controls]
            if bad:
                raise DimensionError(f"integer control indices {bad} out of range")

    @property
    def integer_mask(self) -> np.ndarray:
        """Boolean mask of integer controls."""
        mask = np.zeros(self.dim_controls, dtype=bool)
        if self.is_mixed_integer:
            if self.integer_controls is None:
                mask[:] = True
            else:
                mask[list(self.integer_controls)] = True
        return mask

    def next_state(self, t: int, x: np.ndarray, u: np.ndarray, w: np.ndarray) -> np.ndarray:
        """Numeric evaluation of the dynamics."""
        nxt = np.asarray(self.dynamics(t, x, u, w), dtype=np.float64).ravel()
        if nxt.shape != (self.dim_states,):
            raise DimensionError(f"dynamics returned shape {nxt.shape}, expected ({self.dim_states},)")
        return nxt

    def terminal_cost(self, x: np.ndarray) -> float:
        """Numeric final cost of state x: the largest of the final-cost pieces."""
        if self.final_cost is None:
            return 0.0
        pieces = np.asarray(self.final_cost(np.asarray(x, dtype=np.float64)), dtype=np.float64)
        return float(pieces.ravel().max())
