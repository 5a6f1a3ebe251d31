"""Proxy objectives: linear and quadratic stand-ins for the true convex cost.

A proxy is built fresh at every iteration from the current iterate and handed
to the external solver together with the (unchanged) constraint system.
Strategies decide which proxy each phase uses; one strategy is selected per
network type when an engine is constructed.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

import numpy as np

if TYPE_CHECKING:
    from .costs import CostFunction


@dataclass(frozen=True)
class LinearObjective:
    """Objective ``coefficients · x + constant``."""

    coefficients: np.ndarray
    constant: float = 0.0

    @property
    def num_variables(self) -> int:
        return int(self.coefficients.shape[0])

    def value(self, x: np.ndarray) -> float:
        return float(self.coefficients @ x + self.constant)

    def gradient(self, x: np.ndarray) -> np.ndarray:
        return self.coefficients


@dataclass(frozen=True)
class QuadraticObjective:
    """Separable quadratic ``0.5 * sum(hessian * x^2) + linear · x + constant``.

    Attributes:
        hessian: Diagonal of the (positive) Hessian.
        linear: Linear coefficients.
        constant: Constant offset; irrelevant to the minimizer.
    """

    hessian: np.ndarray
    linear: np.ndarray
    constant: float = 0.0

    @property
    def num_variables(self) -> int:
        return int(self.linear.shape[0])

    def value(self, x: np.ndarray) -> float:
        return float(0.5 * np.sum(self.hessian * x * x) + self.linear @ x + self.constant)

    def gradient(self, x: np.ndarray) -> np.ndarray:
        return self.hessian * x + self.linear


ProxyObjective = Union[LinearObjective, QuadraticObjective]


def linear_proxy(anchor: np.ndarray, cost: CostFunction) -> LinearObjective:
    """First-order Taylor expansion of ``cost`` around ``anchor``."""
    y = cost.check_vector(anchor)
    grad = np.asarray(cost.g(y), dtype=float)
    return LinearObjective(coefficients=grad, constant=cost.f(y) - float(grad @ y))


def quadratic_proxy(
    anchor: np.ndarray,
    weights: float | np.ndarray = 1.0,
    gradient: np.ndarray | None = None,
) -> QuadraticObjective:
    """Weighted squared distance to ``anchor``, optionally tilted by a gradient.

    Builds ``0.5 * sum(w_i * (x_i - y_i)^2) + gradient · (x - y)``. Without a
    gradient its minimizer over the feasible region is the weighted projection
    of ``anchor``; with one it is a proximal (Newton-like) step from ``anchor``.
    """
    y = np.asarray(anchor, dtype=float)
    w = np.broadcast_to(np.asarray(weights, dtype=float), y.shape).copy()
    g = np.zeros_like(y) if gradient is None else np.asarray(gradient, dtype=float)
    return QuadraticObjective(
        hessian=w,
        linear=g - w * y,
        constant=float(0.5 * np.sum(w * y * y) - g @ y),
    )


class ProxyObjectiveStrategy(ABC):
    """Chooses the proxy used in each phase of the engine."""

    @abstractmethod
    def initial_objective(self, anchor: np.ndarray) -> ProxyObjective:
        """Proxy used by phase 1 to restore feasibility from ``anchor``."""

    @abstractmethod
    def objective(self, anchor: np.ndarray, cost: CostFunction) -> ProxyObjective:
        """Proxy used by phase 2 at the feasible iterate ``anchor``."""


class ProjectionProxy(ProxyObjectiveStrategy):
    """Generic Frank-Wolfe strategy.

    Phase 1 projects the starting point onto the feasible region; phase 2 uses
    the linear Taylor proxy.
    """

    def initial_objective(self, anchor: np.ndarray) -> ProxyObjective:
        return quadratic_proxy(anchor)

    def objective(self, anchor: np.ndarray, cost: CostFunction) -> ProxyObjective:
        return linear_proxy(anchor, cost)


class ArcCostProxy(ProxyObjectiveStrategy):
    """Network strategy: phase 1 solves the linear min-cost flow on base arc costs.

    The starting point is ignored; the solver returns a cheapest feasible
    vertex which phase 2 then improves with the linear Taylor proxy.
    """

    def __init__(self, costs: np.ndarray):
        self.costs = np.asarray(costs, dtype=float)

    def initial_objective(self, anchor: np.ndarray) -> ProxyObjective:
        return LinearObjective(coefficients=self.costs)

    def objective(self, anchor: np.ndarray, cost: CostFunction) -> ProxyObjective:
        return linear_proxy(anchor, cost)


class CurvatureProxy(ProxyObjectiveStrategy):
    """Quadratic strategy for the SOCP-style refinement path.

    Phase 2 minimizes the gradient tilt plus a curvature-weighted proximal
    term, using the cost's diagonal curvature where it is finite and positive
    and ``weight`` elsewhere.
    """

    def __init__(self, weight: float = 1.0):
        self.weight = weight

    def initial_objective(self, anchor: np.ndarray) -> ProxyObjective:
        return quadratic_proxy(anchor, self.weight)

    def objective(self, anchor: np.ndarray, cost: CostFunction) -> ProxyObjective:
        y = cost.check_vector(anchor)
        curvature = cost.h(y)
        if curvature is None:
            weights = np.full_like(y, self.weight)
        else:
            curvature = np.asarray(curvature, dtype=float)
            weights = np.where(np.isfinite(curvature) & (curvature > 0), curvature, self.weight)
        return quadratic_proxy(y, weights, gradient=cost.g(y))
