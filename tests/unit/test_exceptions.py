"""Tests for custom exception hierarchy."""

import sys
from pathlib import Path

import numpy as np
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from convex_flow import (  # noqa: E402
    Arc,
    ConvexFlowError,
    FlowConstraintGenerator,
    InfeasibleProblemError,
    InvalidProblemError,
    Network,
    QuarticCost,
    SolverConfigurationError,
    SolverFailureError,
    ValidationError,
    solve_convex_flow,
)


def test_all_exceptions_inherit_from_base():
    """Test that all custom exceptions inherit from ConvexFlowError."""
    for exc in (
        InvalidProblemError,
        ValidationError,
        InfeasibleProblemError,
        SolverConfigurationError,
        SolverFailureError,
    ):
        assert issubclass(exc, ConvexFlowError)


def test_base_exception_is_exception():
    """Test the base class derives from Exception."""
    assert issubclass(ConvexFlowError, Exception)


def test_exception_attributes():
    """Test exceptions carry their context attributes."""
    err = ValidationError("bad length", expected=4, actual=2)
    assert err.expected == 4
    assert err.actual == 2
    assert str(err) == "bad length"

    infeasible = InfeasibleProblemError("no flow", iterations=3)
    assert infeasible.iterations == 3

    failure = SolverFailureError("backend stopped")
    assert failure.status == "error"


def test_infeasible_supply_raises():
    """Supply beyond the only arc's capacity leaves no feasible flow."""
    net = Network(2, [Arc(0, 1, capacity=2.0)], supplies=[5.0, -5.0])
    with pytest.raises(InfeasibleProblemError) as exc_info:
        solve_convex_flow(QuarticCost(net), net)
    assert exc_info.value.iterations == 1


def test_validation_error_for_wrong_vector():
    """Test wrong vector length raises ValidationError."""
    net = Network(2, [Arc(0, 1, capacity=2.0)], supplies=[1.0, -1.0])
    system = FlowConstraintGenerator(net).generate()
    with pytest.raises(ValidationError):
        system.violation(np.zeros(4))


def test_catch_all_with_base_class():
    """Test every error is caught by the base class."""
    with pytest.raises(ConvexFlowError):
        Network(2, [Arc(0, 1, capacity=-1.0)])
