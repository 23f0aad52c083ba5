"""Input validation utilities."""

import warnings
from typing import Any

import numpy as np

from ..exceptions import InputShapeError, InvalidInputError

PROBABILITY_TOLERANCE = 1e-6


def validate_probabilities(probabilities: Any, atol: float = PROBABILITY_TOLERANCE) -> np.ndarray:
    """
    Validate a probability vector.

    Returns:
        The probabilities as a float array

    Raises:
        InvalidInputError: negative, non-finite or not summing to one
    """
    p = np.asarray(probabilities, dtype=np.float64).ravel()
    if p.size == 0:
        raise InvalidInputError("probability vector is empty")
    if not np.all(np.isfinite(p)):
        raise InvalidInputError("probabilities contain NaN or inf")
    if np.any(p < 0):
        raise InvalidInputError(f"probabilities must be non-negative, got {p}")
    if abs(p.sum() - 1.0) > atol:
        raise InvalidInputError(f"probabilities sum to {p.sum():.8g}, expected 1")
    return p


def validate_noise_scenarios(scenarios: Any, stage_number: int, dim_noises: int) -> np.ndarray:
    """
    Validate a forward-pass noise array of shape (T-1, K, dim_noises).

    A rank-2 array (T-1, K) is read as scalar noise and reshaped to
    (T-1, K, 1) with a warning. Any other rank, or a mismatching shape,
    is rejected.

    Returns:
        The scenarios as a float array of shape (T-1, K, dim_noises)

    Raises:
        InputShapeError: wrong rank or shape
    """
    xi = np.asarray(scenarios, dtype=np.float64)

    if xi.ndim == 2:
        warnings.warn(
            "noise scenarios are not given in the right shape; "
            "assuming real valued noise",
            stacklevel=3,
        )
        xi = xi.reshape(xi.shape[0], xi.shape[1], 1)
    elif xi.ndim != 3:
        raise InputShapeError(
            f"noise scenarios must have rank 3 (stages, trajectories, noises), got rank {xi.ndim}"
        )

    n_stages, n_forward, dim = xi.shape
    if n_stages != stage_number - 1:
        raise InputShapeError(f"noise scenarios cover {n_stages} stages, expected {stage_number - 1}")
    if n_forward == 0:
        raise InputShapeError("noise scenarios contain no trajectory")
    if dim != dim_noises:
        raise InputShapeError(f"noise dimension is {dim}, expected {dim_noises}")
    return xi
