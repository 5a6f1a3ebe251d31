"""Convex arc cost functions and their gradients.

Every cost function is bound to a network at construction and exposes the
objective value ``f(x)``, the gradient ``g(x)`` and a diagonal curvature
``h(x)`` for a flow vector laid out in the network's variable order. All three
are closed-form and vectorized over arcs; no finite differencing is used.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np

from .data import MultiCommodityNetwork, Network
from .exceptions import InvalidProblemError, ValidationError


class CostFunction(ABC):
    """Abstract base class for convex, differentiable flow costs.

    Subclasses implement ``f`` and ``g``; ``h`` (the diagonal of the Hessian)
    is optional and defaults to None, in which case proxies that need
    curvature fall back to a fixed weight.
    """

    num_variables: int

    @abstractmethod
    def f(self, x: np.ndarray) -> float:
        """Return the cost of flow vector ``x``."""

    @abstractmethod
    def g(self, x: np.ndarray) -> np.ndarray:
        """Return the gradient of the cost at ``x`` (same length as ``x``)."""

    def h(self, x: np.ndarray) -> np.ndarray | None:
        return None

    def __call__(self, x: np.ndarray) -> float:
        return self.f(x)

    def check_vector(self, x: np.ndarray) -> np.ndarray:
        """Coerce ``x`` to a float vector, raising ValidationError on a length mismatch."""
        vec = np.asarray(x, dtype=float)
        if vec.ndim != 1 or vec.shape[0] != self.num_variables:
            actual = vec.shape[0] if vec.ndim == 1 else vec.size
            raise ValidationError(
                f"Flow vector has shape {vec.shape}, expected ({self.num_variables},) "
                f"for {type(self).__name__}.",
                expected=self.num_variables,
                actual=actual,
            )
        return vec


class QuarticCost(CostFunction):
    """Single-commodity congestion cost with quartic, quadratic and linear terms.

    For every arc ``i`` the cost adds ``20 * (x_a / c_a)^4`` for each arc ``a``
    entering the tail of ``i``, a self term ``100 * (x_i / c_i)^2`` and a linear
    term ``r_i * x_i`` with ``r_i = (head_i + 1) / (tail_i + 1)``. An arc ``a``
    therefore carries its quartic term once per arc leaving its head.
    """

    def __init__(self, network: Network):
        self.network = network
        self.num_variables = network.num_variables
        heads = np.array([arc.head for arc in network.arcs], dtype=int)
        tails = np.array([arc.tail for arc in network.arcs], dtype=int)
        out_degree = np.bincount(tails, minlength=network.num_vertices)
        self._multiplicity = out_degree[heads].astype(float)
        self._capacity = network.capacities
        self._ratio = (heads + 1.0) / (tails + 1.0)

    def f(self, x: np.ndarray) -> float:
        x = self.check_vector(x)
        load = x / self._capacity
        quartic = 20.0 * self._multiplicity * load**4
        return float(np.sum(quartic + 100.0 * load**2 + self._ratio * x))

    def g(self, x: np.ndarray) -> np.ndarray:
        x = self.check_vector(x)
        cap = self._capacity
        return 80.0 * self._multiplicity * x**3 / cap**4 + 200.0 * x / cap**2 + self._ratio

    def h(self, x: np.ndarray) -> np.ndarray:
        x = self.check_vector(x)
        cap = self._capacity
        return 240.0 * self._multiplicity * x**2 / cap**4 + 200.0 / cap**2


class _AggregateArcCost(CostFunction):
    """Cost that depends on each arc's flow only through its commodity total.

    Derivatives with respect to any commodity's flow on an arc are equal, so
    per-arc quantities are computed once and repeated across commodities.
    """

    def __init__(self, network: MultiCommodityNetwork):
        self.network = network
        self.num_variables = network.num_variables
        self._capacity = network.capacities
        self._cost = network.costs

    def _totals(self, x: np.ndarray) -> np.ndarray:
        return self.network.aggregate(self.check_vector(x))

    def _broadcast(self, per_arc: np.ndarray) -> np.ndarray:
        return np.repeat(per_arc, self.network.num_commodities)


class BPRCost(_AggregateArcCost):
    """Bureau of Public Roads delay summed over arcs.

    Each arc contributes ``t * y * (1 + alpha / (beta + 1) * (y / c)^beta)``
    where ``y`` is the aggregate flow, ``t`` the base cost and ``c`` the
    capacity. The marginal cost ``t * (1 + alpha * (y / c)^beta)`` is shared by
    every commodity on the arc.
    """

    def __init__(self, network: MultiCommodityNetwork, alpha: float = 0.15, beta: float = 4.0):
        if alpha < 0 or beta < 0:
            raise InvalidProblemError(
                f"BPR parameters must be non-negative, got alpha={alpha}, beta={beta}."
            )
        super().__init__(network)
        self.alpha = alpha
        self.beta = beta

    def f(self, x: np.ndarray) -> float:
        y = np.maximum(self._totals(x), 0.0)
        ratio = y / self._capacity
        per_arc = self._cost * y * (1.0 + self.alpha / (self.beta + 1.0) * ratio**self.beta)
        return float(per_arc.sum())

    def g(self, x: np.ndarray) -> np.ndarray:
        y = np.maximum(self._totals(x), 0.0)
        marginal = self._cost * (1.0 + self.alpha * (y / self._capacity) ** self.beta)
        return self._broadcast(marginal)

    def h(self, x: np.ndarray) -> np.ndarray:
        y = np.maximum(self._totals(x), 0.0)
        cap = self._capacity
        if self.beta >= 1.0:
            slope = self._cost * self.alpha * self.beta * (y / cap) ** (self.beta - 1.0) / cap
        else:
            # (y/c)^(beta-1) blows up at y = 0 for beta < 1; curvature is treated as flat there.
            with np.errstate(divide="ignore"):
                slope = np.where(
                    y > 0,
                    self._cost * self.alpha * self.beta * (y / cap) ** (self.beta - 1.0) / cap,
                    0.0,
                )
        return self._broadcast(slope)


class KleinrockCost(_AggregateArcCost):
    """Kleinrock average-delay cost ``sum_a y_a / (c_a - y_a)``.

    The cost is infinite once an arc's aggregate flow reaches its capacity,
    so callers keep iterates strictly inside capacity through explicit
    capacity constraints rather than through the cost.
    """

    def f(self, x: np.ndarray) -> float:
        y = self._totals(x)
        slack = self._capacity - y
        if np.any(slack <= 0):
            return float("inf")
        return float(np.sum(y / slack))

    def g(self, x: np.ndarray) -> np.ndarray:
        y = self._totals(x)
        slack = self._capacity - y
        with np.errstate(divide="ignore"):
            marginal = np.where(slack > 0, self._capacity / slack**2, np.inf)
        return self._broadcast(marginal)

    def h(self, x: np.ndarray) -> np.ndarray:
        y = self._totals(x)
        slack = self._capacity - y
        with np.errstate(divide="ignore"):
            curvature = np.where(slack > 0, 2.0 * self._capacity / slack**3, np.inf)
        return self._broadcast(curvature)
