"""External convex-program solver backed by SciPy.

The engine treats the solver as a black box: it receives a linear or
separable quadratic objective plus the fixed constraint system and returns
either a minimizing vector or an infeasibility signal.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import numpy as np
from scipy.linalg import qr
from scipy.optimize import linprog, minimize

from .constraints import ConstraintSystem
from .exceptions import ValidationError
from .proxy import LinearObjective, ProxyObjective

logger = logging.getLogger(__name__)

RANK_TOLERANCE = 1e-10  # Relative pivot size below which a conservation row is redundant.


@dataclass
class SolverResult:
    """Outcome of one external solve.

    Attributes:
        status: 'optimal', 'infeasible' (the constraint system is empty) or
                'error' (the backend stopped for another reason).
        x: Minimizing vector for 'optimal', otherwise None.
        message: Backend message, kept for diagnostics.
    """

    status: str
    x: np.ndarray | None = None
    message: str = ""

    @property
    def feasible(self) -> bool:
        return self.status == "optimal"


class ConvexSolver(Protocol):
    """Collaborator contract used by the engine."""

    def solve(self, objective: ProxyObjective, constraints: ConstraintSystem) -> SolverResult:
        ...


def _independent_rows(matrix: np.ndarray, rhs: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    # Conservation rows of a connected component always sum to zero; SLSQP needs
    # a full-rank equality block, so drop rows the pivoted QR marks dependent.
    if matrix.shape[0] == 0:
        return matrix, rhs
    _, r, piv = qr(matrix.T, mode="economic", pivoting=True)
    diag = np.abs(np.diag(r))
    if diag.size == 0 or diag[0] == 0.0:
        return matrix[:0], rhs[:0]
    rank = int(np.sum(diag > RANK_TOLERANCE * diag[0]))
    keep = np.sort(piv[:rank])
    return matrix[keep], rhs[keep]


class ScipyConvexSolver:
    """Solve proxy objectives with ``scipy.optimize``.

    Linear objectives go to ``linprog`` (HiGHS). Quadratic objectives first get
    a feasible point from ``linprog`` (which also detects infeasibility), then
    are minimized by SLSQP with analytic gradients and constraint Jacobians.

    Args:
        tolerance: SLSQP function tolerance (default: 1e-10).
        max_iterations: SLSQP iteration cap (default: 500).
        feasibility_tolerance: Largest constraint violation accepted from an
                               SLSQP run that did not report success (default: 1e-6).
    """

    def __init__(
        self,
        tolerance: float = 1e-10,
        max_iterations: int = 500,
        feasibility_tolerance: float = 1e-6,
    ):
        self.tolerance = tolerance
        self.max_iterations = max_iterations
        self.feasibility_tolerance = feasibility_tolerance

    def solve(self, objective: ProxyObjective, constraints: ConstraintSystem) -> SolverResult:
        if objective.num_variables != constraints.num_variables:
            raise ValidationError(
                f"Proxy objective has {objective.num_variables} variables but the constraint "
                f"system has {constraints.num_variables}.",
                expected=constraints.num_variables,
                actual=objective.num_variables,
            )
        if constraints.num_variables == 0:
            # Nothing to optimize; the empty vector either satisfies the system or nothing does.
            x = np.zeros(0)
            if constraints.violation(x) <= self.feasibility_tolerance:
                return SolverResult(status="optimal", x=x)
            return SolverResult(status="infeasible", message="No flow variables to carry supplies.")
        if isinstance(objective, LinearObjective):
            return self._solve_linear(objective.coefficients, constraints)
        return self._solve_quadratic(objective, constraints)

    def _solve_linear(self, coefficients: np.ndarray, constraints: ConstraintSystem) -> SolverResult:
        kwargs = {}
        if constraints.a_eq.shape[0]:
            kwargs["A_eq"] = constraints.a_eq
            kwargs["b_eq"] = constraints.b_eq
        if constraints.a_ub.shape[0]:
            kwargs["A_ub"] = constraints.a_ub
            kwargs["b_ub"] = constraints.b_ub
        res = linprog(
            np.asarray(coefficients, dtype=float),
            bounds=constraints.bounds,
            method="highs",
            **kwargs,
        )
        if res.status == 0:
            return SolverResult(status="optimal", x=np.asarray(res.x, dtype=float), message=res.message)
        if res.status == 2:
            return SolverResult(status="infeasible", message=res.message)
        logger.debug("linprog stopped without a solution", extra={"status": res.status})
        return SolverResult(status="error", message=res.message)

    def _solve_quadratic(
        self, objective: ProxyObjective, constraints: ConstraintSystem
    ) -> SolverResult:
        start = self._solve_linear(np.zeros(constraints.num_variables), constraints)
        if not start.feasible:
            return start

        a_eq, b_eq = _independent_rows(constraints.a_eq.toarray(), constraints.b_eq)
        a_ub, b_ub = constraints.a_ub.toarray(), constraints.b_ub
        slsqp_constraints = []
        if a_eq.shape[0]:
            slsqp_constraints.append(
                {"type": "eq", "fun": lambda x: a_eq @ x - b_eq, "jac": lambda x: a_eq}
            )
        if a_ub.shape[0]:
            slsqp_constraints.append(
                {"type": "ineq", "fun": lambda x: b_ub - a_ub @ x, "jac": lambda x: -a_ub}
            )

        res = minimize(
            objective.value,
            start.x,
            jac=objective.gradient,
            method="SLSQP",
            bounds=constraints.bounds,
            constraints=slsqp_constraints,
            options={"ftol": self.tolerance, "maxiter": self.max_iterations},
        )
        x = np.clip(np.asarray(res.x, dtype=float), constraints.lower, constraints.upper)
        if not res.success:
            if constraints.violation(x) > self.feasibility_tolerance:
                return SolverResult(status="error", message=res.message)
            logger.debug(
                "SLSQP stopped early with a feasible point",
                extra={"status": res.status, "solver_message": res.message},
            )
        if objective.value(x) > objective.value(start.x):
            x = start.x
        return SolverResult(status="optimal", x=x, message=res.message)
