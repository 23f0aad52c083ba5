"""
Noise Laws
==========

Per-stage discrete distributions of the noise entering the dynamics.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional, Sequence, Tuple

import numpy as np

from ..exceptions import DimensionError
from ..utils.validation import validate_probabilities


@dataclass
class NoiseLaw:
    """
    Discrete distribution with finite support.

    Args:
        support: Support points (n_outcomes, dim) or (n_outcomes,) for
            scalar noise
        probabilities: Probability of each support point (n_outcomes,),
            non-negative and summing to one

    Example:
        >>> # Inflow can be 10, 20, or 30 with probabilities 0.2, 0.5, 0.3
        >>> law = NoiseLaw(
        ...     support=np.array([10, 20, 30]),
        ...     probabilities=np.array([0.2, 0.5, 0.3])
        ... )
        >>> for w, p in law:
        ...     ...
    """
    support: np.ndarray
    probabilities: np.ndarray

    def __post_init__(self):
        self.support = np.asarray(self.support, dtype=np.float64)
        if self.support.ndim == 1:
            self.support = self.support.reshape(-1, 1)
        if self.support.ndim != 2:
            raise DimensionError(f"support must be 1D or 2D, got shape {self.support.shape}")

        self.probabilities = validate_probabilities(self.probabilities)
        if len(self.probabilities) != self.support.shape[0]:
            raise DimensionError(
                f"{self.support.shape[0]} support points but {len(self.probabilities)} probabilities"
            )

    @classmethod
    def uniform(cls, support: np.ndarray) -> "NoiseLaw":
        """Equiprobable law over the given support points."""
        support = np.asarray(support, dtype=np.float64)
        n = support.shape[0]
        return cls(support, np.full(n, 1.0 / n))

    @property
    def support_size(self) -> int:
        return len(self.probabilities)

    @property
    def dim(self) -> int:
        return self.support.shape[1]

    def __len__(self) -> int:
        return self.support_size

    def __iter__(self) -> Iterator[Tuple[np.ndarray, float]]:
        """Iterate over (support point, probability) pairs."""
        for i in range(self.support_size):
            yield self.support[i], float(self.probabilities[i])

    def mean(self) -> np.ndarray:
        """Expected value."""
        return self.probabilities @ self.support

    def product(self, other: "NoiseLaw") -> "NoiseLaw":
        """
        Law of the concatenated noise (w1, w2) for independent w1, w2.

        The support of the product has ``len(self) * len(other)`` points,
        ordered with ``other`` varying fastest.
        """
        support = np.array([np.concatenate([a, b]) for a in self.support for b in other.support])
        probabilities = np.outer(self.probabilities, other.probabilities).ravel()
        return NoiseLaw(support, probabilities / probabilities.sum())

    def sample(self, n: int, seed: Optional[int] = None) -> np.ndarray:
        """
        Draw ``n`` support points according to the probabilities.

        Returns:
            Array of shape (n, dim)
        """
        rng = np.random.default_rng(seed)
        indices = rng.choice(self.support_size, size=n, replace=True, p=self.probabilities)
        return self.support[indices]


def sample_scenarios(laws: Sequence[NoiseLaw], n: int, seed: Optional[int] = None) -> np.ndarray:
    """
    Draw ``n`` independent noise trajectories, one point per stage law.

    Returns:
        Scenarios of shape (len(laws), n, dim_noises), laid out the way
        ``forward_pass`` reads them
    """
    rng = np.random.default_rng(seed)
    stages = []
    for law in laws:
        indices = rng.choice(law.support_size, size=n, replace=True, p=law.probabilities)
        stages.append(law.support[indices])
    return np.stack(stages)
