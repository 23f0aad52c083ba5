"""
Test that polysddp can be imported and basic functionality works.
"""

import pytest


def test_import_polysddp():
    """Verify polysddp package can be imported."""
    import polysddp
    assert hasattr(polysddp, "__version__")


def test_version_format():
    """Verify version string is properly formatted."""
    import polysddp
    version = polysddp.__version__

    # Should be semver format
    parts = version.split(".")
    assert len(parts) >= 2
    assert all(p.isdigit() or "-" in p for p in parts)


def test_import_model():
    """Verify Model class can be imported."""
    from polysddp import Model
    assert Model is not None


def test_import_solve():
    """Verify solve function can be imported."""
    from polysddp import solve
    assert callable(solve)


def test_import_result():
    """Verify SolveResult class can be imported."""
    from polysddp import SolveResult, Status
    assert SolveResult is not None
    assert Status is not None


def test_import_sddp():
    """Verify the SDDP routines can be imported."""
    from polysddp.sddp import (
        backward_pass,
        build_models,
        forward_pass,
        solve_one_step,
    )
    assert callable(forward_pass)
    assert callable(backward_pass)
    assert callable(solve_one_step)
    assert callable(build_models)


def test_import_exceptions():
    """Verify exception classes can be imported."""
    from polysddp import (
        SDDPError,
        SolverFailure,
        InfeasibleError,
        UnboundedError,
        NumericalError,
        DimensionError,
        InputShapeError,
    )

    # Verify inheritance
    assert issubclass(SolverFailure, SDDPError)
    assert issubclass(InfeasibleError, SolverFailure)
    assert issubclass(UnboundedError, SolverFailure)
    assert issubclass(NumericalError, SolverFailure)
    assert issubclass(InputShapeError, DimensionError)


def test_info_function():
    """Verify info() function works."""
    import polysddp
    info = polysddp.info()

    assert isinstance(info, str)
    assert "polysddp version" in info
    assert "Python version" in info
