"""Custom exceptions for the convex flow library."""

from __future__ import annotations


class ConvexFlowError(Exception):
    """Base exception for all convex flow errors.

    All custom exceptions in the convex_flow package inherit from this class,
    allowing users to catch all solver-related errors with a single except clause.

    Example:
        try:
            flows = engine.optimize()
        except ConvexFlowError as e:
            print(f"Solver error: {e}")
    """


class InvalidProblemError(ConvexFlowError):
    """Raised when a network definition is invalid or malformed.

    This includes:
    - Unbalanced supply/demand (total supply ≠ 0)
    - Arc endpoints outside the vertex range
    - Self-loops or non-positive capacities
    - Commodities whose origin equals their destination, or negative demand

    Example:
        InvalidProblemError("Arc 0 -> 7 references vertex 7 outside range 0..3")
    """


class ValidationError(ConvexFlowError):
    """Raised when a vector does not match the expected number of flow variables.

    This signals a programming or setup error (for example handing a
    single-commodity vector to a multi-commodity cost function) and is not
    recoverable by retrying.

    Example:
        ValidationError("Flow vector has length 3, expected 6 (arcs x commodities)",
                        expected=6, actual=3)
    """

    def __init__(self, message: str, expected: int | None = None, actual: int | None = None):
        """Initialize with message and the mismatching dimensions."""
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class InfeasibleProblemError(ConvexFlowError):
    """Raised when no flow satisfies the constraint system.

    This occurs when phase 1 cannot restore feasibility, either because the
    external solver reports the conservation/capacity polytope empty or because
    a commodity's destination is unreachable from its origin.

    Example:
        InfeasibleProblemError(
            "Constraint system is infeasible: supplies exceed arc capacities",
            iterations=1
        )
    """

    def __init__(self, message: str, iterations: int = 0):
        """Initialize with message and optional iteration count."""
        super().__init__(message)
        self.iterations = iterations


class SolverConfigurationError(ConvexFlowError):
    """Raised when solver configuration or options are invalid.

    This includes:
    - Invalid parameter values (negative iterations, invalid tolerance)
    - Unknown line search or proxy names

    Example:
        SolverConfigurationError("max_iterations must be positive, got -1")
    """


class SolverFailureError(ConvexFlowError):
    """Raised when the external convex solver stops without an answer.

    Infeasibility is reported separately (InfeasibleProblemError); this covers
    numerical trouble or an internal iteration limit inside the backend.

    Example:
        SolverFailureError("linprog failed: numerical difficulties", status="error")
    """

    def __init__(self, message: str, status: str = "error"):
        """Initialize with message and backend status."""
        super().__init__(message)
        self.status = status
