"""
Evaluation
==========

Statistics on the current policy:

- ``estimate_upper_bound``: Monte Carlo confidence interval on the expected
  cost of the policy from forward-pass costs
- ``bellman_values``: value-function approximations at visited states
"""

from __future__ import annotations

from typing import List, Optional, Tuple

import numpy as np

from ..exceptions import DimensionError, InvalidInputError
from .polyhedral import PolyhedralFunction


def estimate_upper_bound(
    costs: np.ndarray,
    confidence_level: float = 0.95,
) -> Tuple[float, float, float]:
    """
    Confidence interval on the expected cost of the current policy.

    Forward trajectories drawn from the noise laws are i.i.d. samples of
    the policy cost, so their mean is an unbiased estimate of an upper
    bound on the optimal value.

    Args:
        costs: Forward-pass costs (K,)
        confidence_level: Confidence level (e.g., 0.95)

    Returns:
        (estimate, lower, upper)
    """
    from scipy import stats

    costs = np.asarray(costs, dtype=np.float64).ravel()
    if costs.size == 0:
        raise InvalidInputError("no forward costs to estimate from")
    if not 0 < confidence_level < 1:
        raise InvalidInputError(f"confidence_level must be in (0, 1), got {confidence_level}")

    estimate = float(costs.mean())
    std = float(costs.std(ddof=1)) if costs.size > 1 else 0.0

    alpha = 1 - confidence_level
    z = stats.norm.ppf(1 - alpha / 2)
    margin = z * std / np.sqrt(costs.size)

    return estimate, estimate - margin, estimate + margin


def bellman_values(V: List[Optional[PolyhedralFunction]], stocks: np.ndarray) -> np.ndarray:
    """
    Evaluate V[t] at every visited state stocks[t, k].

    Args:
        V: Value-function approximations, one per decision stage
        stocks: States (T, K, dim_states)

    Returns:
        Values (T-1, K); -inf for stages without any cut
    """
    stocks = np.asarray(stocks, dtype=np.float64)
    if stocks.ndim != 3 or stocks.shape[0] < len(V):
        raise DimensionError(f"stocks has shape {stocks.shape}, expected ({len(V) + 1}, K, dim)")

    values = np.full((len(V), stocks.shape[1]), -np.inf)
    for t, fn in enumerate(V):
        if fn is not None and fn.num_cuts > 0:
            values[t] = fn.evaluate(stocks[t])
    return values
