"""
Regularization
==============

Quadratic trust-region penalty around a reference next state:

    objective + rho * ||xf - xp||^2

The penalty is added for the duration of one solve only.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

import numpy as np

from ..exceptions import DimensionError, InvalidInputError
from ..model import Model, QuadExpr


@dataclass
class Regularizer:
    """
    Quadratic penalty generator.

    Args:
        rho: Penalty weight
        decay: Factor applied to ``rho`` by ``update()`` (e.g. once per
            outer iteration), so the penalty fades out
    """

    rho: float = 1.0
    decay: float = 1.0

    def __post_init__(self):
        if self.rho < 0:
            raise InvalidInputError(f"rho must be non-negative, got {self.rho}")
        if not 0 < self.decay <= 1:
            raise InvalidInputError(f"decay must be in (0, 1], got {self.decay}")

    def penalty(self, xf: np.ndarray, xp: np.ndarray) -> QuadExpr:
        """Penalty expression rho * Σ (xf_i - xp_i)^2."""
        xp = np.asarray(xp, dtype=np.float64).ravel()
        if len(xf) != len(xp):
            raise DimensionError(f"reference point has dimension {len(xp)}, expected {len(xf)}")
        expr = QuadExpr()
        for var, ref in zip(xf, xp):
            expr = expr + self.rho * ((var - ref) * (var - ref))
        return expr

    def update(self) -> None:
        self.rho *= self.decay


@contextmanager
def with_regularization(model: Model, reference: np.ndarray, regularizer: Regularizer) -> Iterator[Model]:
    """
    Temporarily add the regularization penalty to ``model``'s objective.

    The original objective is restored on exit, whether the body returns
    normally or raises.

    Example:
        >>> with with_regularization(model, xp, Regularizer(rho=0.5)):
        ...     result = model.solve()
    """
    if "xf" not in model:
        raise InvalidInputError("regularization needs a next-state variable group 'xf'")
    xf = model["xf"]
    if xf.ndim != 1:
        raise InvalidInputError("regularization is only defined for a single next-state vector")

    original = model.objective
    model.objective = original + regularizer.penalty(xf, reference)
    try:
        yield model
    finally:
        model.objective = original
