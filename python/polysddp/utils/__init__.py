"""Shared helpers."""

from .validation import validate_noise_scenarios, validate_probabilities

__all__ = ["validate_noise_scenarios", "validate_probabilities"]
