"""
Polyhedral Value Functions
==========================

Lower approximation of a Bellman value function as the maximum of affine
cuts:

    V_t(x) = max_i  beta_i + lambda_i' x

Cuts are only ever appended. Each new cut is a valid lower bound of the
true (convex) value function, so the approximation tightens monotonically.
"""

from __future__ import annotations

import threading
from typing import Callable, List, Optional, Union

import numpy as np

from ..exceptions import DimensionError
from ..model import Constraint, Model


class PolyhedralFunction:
    """
    Maximum of affine cuts.

    Args:
        betas: Intercepts (n_cuts,)
        lambdas: Slopes (n_cuts, dim)
        dim: State dimension, required when starting without cuts

    Example:
        >>> V = PolyhedralFunction.single(beta=3.0, lambda_=[-0.5])
        >>> V.add_cut(0.0, [1.0])
        >>> V.evaluate([2.0])
        2.0
    """

    def __init__(
        self,
        betas: Optional[np.ndarray] = None,
        lambdas: Optional[np.ndarray] = None,
        dim: Optional[int] = None,
    ) -> None:
        betas = np.zeros(0) if betas is None else np.asarray(betas, dtype=np.float64).ravel()
        if lambdas is None:
            if dim is None:
                raise DimensionError("dim is required when no cut is given")
            lambdas = np.zeros((0, dim))
        lambdas = np.asarray(lambdas, dtype=np.float64)
        if lambdas.ndim == 1:
            lambdas = lambdas.reshape(len(betas), -1) if len(betas) else lambdas.reshape(0, -1)
        if len(betas) != lambdas.shape[0]:
            raise DimensionError(f"{len(betas)} betas but {lambdas.shape[0]} lambdas")
        if dim is not None and lambdas.shape[1] != dim:
            raise DimensionError(f"lambdas have dimension {lambdas.shape[1]}, expected {dim}")

        self.dim = lambdas.shape[1] if dim is None else dim
        self._betas: List[float] = [float(b) for b in betas]
        self._lambdas: List[np.ndarray] = [row.copy() for row in lambdas]
        self._lock = threading.Lock()

    @classmethod
    def single(cls, beta: float, lambda_: np.ndarray) -> "PolyhedralFunction":
        """Fresh function holding exactly one cut."""
        lambda_ = np.asarray(lambda_, dtype=np.float64).ravel()
        return cls(np.array([beta]), lambda_.reshape(1, -1))

    @property
    def num_cuts(self) -> int:
        return len(self._betas)

    def __len__(self) -> int:
        return self.num_cuts

    @property
    def betas(self) -> np.ndarray:
        return np.array(self._betas, dtype=np.float64)

    @property
    def lambdas(self) -> np.ndarray:
        if not self._lambdas:
            return np.zeros((0, self.dim))
        return np.vstack(self._lambdas)

    def add_cut(self, beta: float, lambda_: np.ndarray) -> None:
        """
        Append the cut  V(x) >= beta + lambda_' x.

        Safe to call from several threads.
        """
        lambda_ = np.asarray(lambda_, dtype=np.float64).ravel()
        if lambda_.shape != (self.dim,):
            raise DimensionError(f"cut slope has shape {lambda_.shape}, expected ({self.dim},)")
        with self._lock:
            self._betas.append(float(beta))
            self._lambdas.append(lambda_)

    def evaluate(self, x: np.ndarray) -> Union[float, np.ndarray]:
        """
        Value of the approximation at x.

        Args:
            x: A state (dim,) or a batch of states (n, dim)

        Returns:
            max_i beta_i + lambda_i' x, as a float or an (n,) array;
            -inf when the function holds no cut
        """
        x = np.asarray(x, dtype=np.float64)
        batch = x.ndim == 2
        points = x if batch else x.reshape(1, -1)
        if points.shape[1] != self.dim:
            raise DimensionError(f"state has dimension {points.shape[1]}, expected {self.dim}")

        if self.num_cuts == 0:
            values = np.full(points.shape[0], -np.inf)
        else:
            values = (self.betas[None, :] + points @ self.lambdas.T).max(axis=1)
        return values if batch else float(values[0])

    def active_cut(self, x: np.ndarray) -> int:
        """Index of the cut attaining the maximum at x."""
        if self.num_cuts == 0:
            raise ValueError("function holds no cut")
        x = np.asarray(x, dtype=np.float64).ravel()
        return int(np.argmax(self.betas + self.lambdas @ x))

    def __repr__(self) -> str:
        return f"PolyhedralFunction(dim={self.dim}, num_cuts={self.num_cuts})"


def install_into_model(
    model: Model,
    stage: int,
    beta: float,
    lambda_: np.ndarray,
    dynamics: Callable,
) -> List[Constraint]:
    """
    Embed a cut of V_{stage+1} into the model of ``stage``.

    The continuation variable of a stage model approximates the value
    function of the NEXT stage, so a cut computed at stage t goes into the
    model of stage t-1 (pass ``stage=t-1``).

    Hazard-decision models get
        alpha >= beta + lambda' dynamics(stage, x, u, w)
    Decision-hazard models (2-D ``xf`` group, one column per noise point)
    get one cut per column
        alpha_i >= beta + lambda' xf[:, i]

    Cuts are registered in the model's ``"cuts"`` group.

    Returns:
        The added constraints
    """
    lambda_ = np.asarray(lambda_, dtype=np.float64).ravel()
    with model.lock:
        alpha = model["alpha"]
        if "xf" in model and model["xf"].ndim == 2:
            xf = model["xf"]
            targets = [xf[:, i] for i in range(xf.shape[1])]
        else:
            targets = [np.asarray(dynamics(stage, model["x"], model["u"], model["w"]), dtype=object)]

        if len(targets) != len(alpha):
            raise DimensionError(f"{len(alpha)} continuation variables for {len(targets)} next states")
        if any(len(target) != len(lambda_) for target in targets):
            raise DimensionError(f"cut slope has dimension {len(lambda_)}")

        added = []
        for a, target in zip(alpha, targets):
            expr = beta + sum(float(l) * e for l, e in zip(lambda_, target))
            added.append(model.add_constr(a >= expr, group="cuts"))
    return added
