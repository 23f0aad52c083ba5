"""
polysddp SDDP Core
==================

Stochastic Dual Dynamic Programming for multistage stochastic linear and
mixed-integer programs.

SDDP approximates the Bellman value functions V_t by polyhedral functions
(maxima of affine cuts) and refines them by alternating two passes:

- **Forward pass**: simulate trajectories x_0, x_1, ..., x_{T-1} with the
  current approximations
- **Backward pass**: at each visited state, solve the stage problem for
  every noise outcome and turn the expected cost and subgradient into a
  new cut

The value returned by the backward pass is a lower bound on the optimal
expected cost; the mean forward cost estimates an upper bound.

>>> from polysddp.sddp import (
...     sample_scenarios,
...     StageSpec, NoiseLaw, SDDPParameters,
...     build_models, initial_value_functions, forward_pass, backward_pass,
... )
>>>
>>> problem = StageSpec(
...     stage_number=3, dim_states=1, dim_controls=1, dim_noises=1,
...     initial_state=[2.0],
...     dynamics=lambda t, x, u, w: x + u + w,
...     cost=lambda t, x, u, w: u[0],
...     state_bounds=[(5.0, 10.0)],
...     control_bounds=[(0.0, 5.0)],
... )
>>> laws = [NoiseLaw.uniform([-1.0, 1.0])] * 2
>>> params = SDDPParameters()
>>> models = build_models(problem, laws, params)
>>> V = initial_value_functions(problem)
>>>
>>> for iteration in range(10):
...     scenarios = sample_scenarios(laws, n=5, seed=iteration)
...     costs, stocks, controls = forward_pass(problem, params, models, scenarios)
...     lower_bound = backward_pass(problem, params, V, models, stocks, laws)

Classes
-------
StageSpec
    Multistage problem definition
NoiseLaw
    Discrete noise distribution of one stage
PolyhedralFunction
    Maximum of affine cuts
SDDPParameters
    Solver and pass settings
Regularizer
    Quadratic penalty around reference states
SubproblemResult
    Outcome of one stage solve
Mode
    Hazard-decision or decision-hazard stages

References
----------
- Pereira & Pinto (1991): "Multi-stage stochastic optimization applied to
  energy planning"
- Shapiro (2011): "Analysis of stochastic dual dynamic programming method"
"""

from .backward import backward_pass
from .builder import build_models, build_stage_model, initial_value_functions
from .evaluation import bellman_values, estimate_upper_bound
from .forward import forward_pass
from .noise import NoiseLaw, sample_scenarios
from .params import SDDPParameters
from .polyhedral import PolyhedralFunction, install_into_model
from .problem import StageSpec
from .regularization import Regularizer, with_regularization
from .subproblem import Mode, SubproblemResult, solve_one_step

__all__ = [
    # Problem definition
    "StageSpec",
    "NoiseLaw",
    "sample_scenarios",
    "SDDPParameters",
    # Value functions
    "PolyhedralFunction",
    "install_into_model",
    # Stage models
    "build_stage_model",
    "build_models",
    "initial_value_functions",
    # Passes
    "Mode",
    "SubproblemResult",
    "solve_one_step",
    "forward_pass",
    "backward_pass",
    # Regularization
    "Regularizer",
    "with_regularization",
    # Evaluation
    "estimate_upper_bound",
    "bellman_values",
]
