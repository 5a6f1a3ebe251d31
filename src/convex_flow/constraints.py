"""Linear constraint systems generated from network topology.

A ConstraintSystem holds flow-conservation equalities, optional aggregate
capacity inequalities and per-variable bounds as SciPy sparse matrices. It is
built once per engine by a ConstraintGenerator and shared read-only by every
solver call; only the Kleinrock path appends capacity rows, once, before its
refinement loop starts.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

import numpy as np
from scipy import sparse

from .data import MultiCommodityNetwork, Network, SolverOptions
from .exceptions import ValidationError
from .proxy import ArcCostProxy, CurvatureProxy, ProxyObjectiveStrategy


@dataclass
class ConstraintSystem:
    """Feasible region ``A_eq x = b_eq``, ``A_ub x <= b_ub``, ``lower <= x <= upper``."""

    a_eq: sparse.csr_matrix
    b_eq: np.ndarray
    a_ub: sparse.csr_matrix
    b_ub: np.ndarray
    lower: np.ndarray
    upper: np.ndarray

    @property
    def num_variables(self) -> int:
        return int(self.lower.shape[0])

    @property
    def bounds(self) -> list[tuple[float, float]]:
        return list(zip(self.lower.tolist(), self.upper.tolist()))

    def check_vector(self, x: np.ndarray) -> np.ndarray:
        vec = np.asarray(x, dtype=float)
        if vec.ndim != 1 or vec.shape[0] != self.num_variables:
            raise ValidationError(
                f"Vector of shape {vec.shape} does not match constraint system with "
                f"{self.num_variables} variables.",
                expected=self.num_variables,
                actual=vec.size,
            )
        return vec

    def violation(self, x: np.ndarray) -> float:
        """Largest violation of any equality, inequality or bound at ``x``."""
        vec = self.check_vector(x)
        worst = 0.0
        if self.a_eq.shape[0]:
            worst = max(worst, float(np.max(np.abs(self.a_eq @ vec - self.b_eq))))
        if self.a_ub.shape[0]:
            worst = max(worst, float(np.max(self.a_ub @ vec - self.b_ub)))
        if vec.size:
            worst = max(worst, float(np.max(self.lower - vec)), float(np.max(vec - self.upper)))
        return worst

    def is_satisfied(self, x: np.ndarray, tolerance: float) -> bool:
        return self.violation(x) <= tolerance

    def add_inequalities(self, a_ub: sparse.spmatrix, b_ub: np.ndarray) -> None:
        """Append rows ``a_ub x <= b_ub`` to the system."""
        rows = sparse.csr_matrix(a_ub)
        if rows.shape[1] != self.num_variables:
            raise ValidationError(
                f"Inequality block has {rows.shape[1]} columns, expected {self.num_variables}.",
                expected=self.num_variables,
                actual=rows.shape[1],
            )
        self.a_ub = sparse.vstack([self.a_ub, rows], format="csr")
        self.b_ub = np.concatenate([self.b_ub, np.asarray(b_ub, dtype=float)])


class ConstraintGenerator(ABC):
    """Translates a network into the solver's constraint system.

    Implementations also choose the engine's starting point and its default
    proxy strategy, since both depend on the network type.
    """

    @property
    @abstractmethod
    def num_variables(self) -> int:
        """Number of flow variables in the generated system."""

    @abstractmethod
    def generate(self) -> ConstraintSystem:
        """Build a fresh constraint system."""

    def initial_solution(self) -> np.ndarray:
        return np.zeros(self.num_variables)

    def arc_flows(self, x: np.ndarray) -> np.ndarray:
        """Flow carried by each arc (summed over commodities where there are several)."""
        return np.asarray(x, dtype=float)

    def deferred_constraints(self) -> tuple[sparse.csr_matrix, np.ndarray] | None:
        """Inequality rows added after generation, when switching to a capacity-aware system."""
        return None

    @abstractmethod
    def proxy_strategy(self, options: SolverOptions) -> ProxyObjectiveStrategy:
        """Default proxy strategy for engines built on this generator."""


class FlowConstraintGenerator(ConstraintGenerator):
    """Single-commodity conservation equalities plus ``0 <= x_a <= capacity_a``.

    Row ``v`` reads ``sum(out-flow) - sum(in-flow) = supply_v``.
    """

    def __init__(self, network: Network):
        self.network = network

    @property
    def num_variables(self) -> int:
        return self.network.num_variables

    def generate(self) -> ConstraintSystem:
        net = self.network
        num_arcs = len(net.arcs)
        rows: list[int] = []
        cols: list[int] = []
        vals: list[float] = []
        for idx, arc in enumerate(net.arcs):
            rows.extend((arc.tail, arc.head))
            cols.extend((idx, idx))
            vals.extend((1.0, -1.0))
        a_eq = sparse.csr_matrix((vals, (rows, cols)), shape=(net.num_vertices, num_arcs))
        return ConstraintSystem(
            a_eq=a_eq,
            b_eq=np.array(net.supplies, dtype=float),
            a_ub=sparse.csr_matrix((0, num_arcs)),
            b_ub=np.zeros(0),
            lower=np.zeros(num_arcs),
            upper=net.capacities,
        )

    def proxy_strategy(self, options: SolverOptions) -> ProxyObjectiveStrategy:
        return ArcCostProxy(self.network.costs)


class MultiCommodityConstraintGenerator(ConstraintGenerator):
    """Per-commodity conservation plus aggregate capacity rows.

    Conservation row ``k * N + v`` balances commodity ``k`` at vertex ``v``
    (``+demand`` at its origin, ``-demand`` at its destination). Capacity row
    ``a`` bounds the sum of all commodities on arc ``a``; this is the only
    coupling between commodities.
    """

    def __init__(self, network: MultiCommodityNetwork):
        self.network = network

    @property
    def num_variables(self) -> int:
        return self.network.num_variables

    def arc_flows(self, x: np.ndarray) -> np.ndarray:
        return self.network.aggregate(x)

    def conservation(self) -> tuple[sparse.csr_matrix, np.ndarray]:
        net = self.network
        num_vertices, num_commodities = net.num_vertices, net.num_commodities
        rows: list[int] = []
        cols: list[int] = []
        vals: list[float] = []
        for a, arc in enumerate(net.arcs):
            for k in range(num_commodities):
                col = net.variable_index(a, k)
                rows.extend((k * num_vertices + arc.tail, k * num_vertices + arc.head))
                cols.extend((col, col))
                vals.extend((1.0, -1.0))
        a_eq = sparse.csr_matrix(
            (vals, (rows, cols)), shape=(num_vertices * num_commodities, self.num_variables)
        )
        b_eq = np.zeros(num_vertices * num_commodities)
        for k, commodity in enumerate(net.commodities):
            b_eq[k * num_vertices + commodity.origin] += commodity.demand
            b_eq[k * num_vertices + commodity.destination] -= commodity.demand
        return a_eq, b_eq

    def capacity_rows(self, scale: float = 1.0) -> tuple[sparse.csr_matrix, np.ndarray]:
        """Rows ``sum_k x[a, k] <= scale * capacity_a``, one per arc."""
        net = self.network
        num_arcs, num_commodities = len(net.arcs), net.num_commodities
        rows = np.repeat(np.arange(num_arcs), num_commodities)
        cols = np.arange(self.num_variables)
        a_ub = sparse.csr_matrix(
            (np.ones(self.num_variables), (rows, cols)), shape=(num_arcs, self.num_variables)
        )
        return a_ub, scale * net.capacities

    def generate(self) -> ConstraintSystem:
        a_eq, b_eq = self.conservation()
        a_ub, b_ub = self.capacity_rows()
        return ConstraintSystem(
            a_eq=a_eq,
            b_eq=b_eq,
            a_ub=a_ub,
            b_ub=b_ub,
            lower=np.zeros(self.num_variables),
            upper=np.repeat(self.network.capacities, self.network.num_commodities),
        )

    def proxy_strategy(self, options: SolverOptions) -> ProxyObjectiveStrategy:
        return ArcCostProxy(np.repeat(self.network.costs, self.network.num_commodities))


class KleinrockConstraintGenerator(MultiCommodityConstraintGenerator):
    """Multi-commodity system for the Kleinrock delay cost.

    The generated system carries conservation and per-variable bounds only.
    Aggregate capacity enters separately through ``capacity_constraints``,
    tightened by a headroom factor so the delay ``y / (c - y)`` stays finite.
    """

    def __init__(self, network: MultiCommodityNetwork, headroom: float = 1e-3):
        super().__init__(network)
        self.headroom = headroom

    def generate(self) -> ConstraintSystem:
        a_eq, b_eq = self.conservation()
        return ConstraintSystem(
            a_eq=a_eq,
            b_eq=b_eq,
            a_ub=sparse.csr_matrix((0, self.num_variables)),
            b_ub=np.zeros(0),
            lower=np.zeros(self.num_variables),
            upper=np.repeat(self.network.capacities, self.network.num_commodities),
        )

    def capacity_constraints(self) -> tuple[sparse.csr_matrix, np.ndarray]:
        return self.capacity_rows(scale=1.0 - self.headroom)

    def deferred_constraints(self) -> tuple[sparse.csr_matrix, np.ndarray] | None:
        return self.capacity_constraints()

    def proxy_strategy(self, options: SolverOptions) -> ProxyObjectiveStrategy:
        return CurvatureProxy(options.proximal_weight)
