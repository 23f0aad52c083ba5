"""
polysddp: Stochastic Dual Dynamic Programming
=============================================

polysddp approximates the value functions of multistage stochastic linear
(and mixed-integer) programs by polyhedral functions refined with cuts.

Stage problems are written with a small modeling layer and solved with
SciPy's HiGHS interface, which also reports the duals the cuts are built
from.

Quick Start
-----------
>>> import polysddp
>>> model = polysddp.Model()
>>> x = model.add_var(lb=0, name="x")
>>> y = model.add_var(lb=0, name="y")
>>> model.add_constr(x + 2*y <= 10)
>>> model.minimize(-x - y)
>>> result = model.solve()
>>> print(result.status, result.objective)
optimal -10.0

The SDDP routines live in ``polysddp.sddp``:

>>> from polysddp.sddp import StageSpec, NoiseLaw, forward_pass, backward_pass
"""

__version__ = "0.1.0"
__author__ = "polysddp Contributors"

# Import public API
from .model import Model, Variable, Constraint, LinearExpr, QuadExpr
from .solver import solve
from .result import SolveResult, Status
from .exceptions import (
    SDDPError,
    SolverFailure,
    InfeasibleError,
    UnboundedError,
    NumericalError,
    DimensionError,
    InputShapeError,
    InvalidInputError,
)
from .sddp import (
    StageSpec,
    NoiseLaw,
    PolyhedralFunction,
    SDDPParameters,
    Regularizer,
    Mode,
    forward_pass,
    backward_pass,
)

__all__ = [
    # Version
    "__version__",

    # Model building
    "Model",
    "Variable",
    "Constraint",
    "LinearExpr",
    "QuadExpr",

    # Solving
    "solve",

    # Results
    "SolveResult",
    "Status",

    # SDDP
    "StageSpec",
    "NoiseLaw",
    "PolyhedralFunction",
    "SDDPParameters",
    "Regularizer",
    "Mode",
    "forward_pass",
    "backward_pass",

    # Exceptions
    "SDDPError",
    "SolverFailure",
    "InfeasibleError",
    "UnboundedError",
    "NumericalError",
    "DimensionError",
    "InputShapeError",
    "InvalidInputError",
]


def info() -> str:
    """Return information about the polysddp installation."""
    import platform

    import numpy
    import scipy

    lines = [
        f"polysddp version: {__version__}",
        f"Python version: {platform.python_version()}",
        f"Platform: {platform.platform()}",
        f"NumPy version: {numpy.__version__}",
        f"SciPy version: {scipy.__version__}",
    ]

    return "\n".join(lines)
