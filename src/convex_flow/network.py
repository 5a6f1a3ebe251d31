"""Network-specific front ends over the convex approximation engine.

Each front end binds a cost function and a constraint generator for one
network type and builds a fresh CVPEngine per solve, so no constraint system
or solver state outlives a single call.
"""

from __future__ import annotations

import logging

import numpy as np

from .constraints import (
    ConstraintGenerator,
    FlowConstraintGenerator,
    KleinrockConstraintGenerator,
    MultiCommodityConstraintGenerator,
)
from .convex_solver import ConvexSolver
from .costs import CostFunction, KleinrockCost
from .data import FlowResult, MultiCommodityNetwork, Network, SolverOptions
from .engine import CVPEngine
from .proxy import CurvatureProxy, ProxyObjectiveStrategy
from .shortest_paths import all_or_nothing, build_graph

logger = logging.getLogger(__name__)


class _FlowFrontEnd:
    def __init__(
        self,
        cost: CostFunction,
        generator: ConstraintGenerator,
        options: SolverOptions | None = None,
        solver: ConvexSolver | None = None,
    ):
        self.cost = cost
        self.generator = generator
        self.options = options if options is not None else SolverOptions()
        self.solver = solver
        self.engine: CVPEngine | None = None

    def _engine(self, proxy: ProxyObjectiveStrategy | None = None) -> CVPEngine:
        engine = CVPEngine(
            self.cost,
            self.generator,
            options=self.options,
            proxy=proxy,
            solver=self.solver,
        )
        deferred = self.generator.deferred_constraints()
        if deferred is not None:
            engine.add_constraints(*deferred)
        self.engine = engine
        return engine

    def phase1(self, initial: np.ndarray | None = None) -> np.ndarray:
        return self._engine().phase1(initial)

    def phase2(self, initial: np.ndarray | None = None) -> np.ndarray:
        return self._engine().phase2(initial)

    def optimize(self, initial: np.ndarray | None = None) -> np.ndarray:
        return self._engine().optimize(initial)

    def result(self, x: np.ndarray) -> FlowResult:
        """FlowResult for ``x`` using the statistics of the most recent engine run."""
        engine = self.engine if self.engine is not None else self._engine()
        return engine.result(x)


class SingleCommodityFlow(_FlowFrontEnd):
    """Convex min-cost flow on a single-commodity network.

    Examples:
        >>> net = Network(3, [Arc(0, 1, 10.0), Arc(1, 2, 10.0), Arc(0, 2, 4.0)],
        ...               supplies=[6.0, 0.0, -6.0])
        >>> flows = SingleCommodityFlow(QuarticCost(net), net).solve_linear()
    """

    def __init__(
        self,
        cost: CostFunction,
        network: Network,
        options: SolverOptions | None = None,
        solver: ConvexSolver | None = None,
    ):
        super().__init__(cost, FlowConstraintGenerator(network), options, solver)
        self.network = network

    def solve_linear(self) -> np.ndarray:
        """Frank-Wolfe with the linear Taylor proxy."""
        return self._engine().optimize()

    def solve_quadratic(self) -> np.ndarray:
        """Same loop with the curvature-weighted quadratic proxy."""
        return self._engine(CurvatureProxy(self.options.proximal_weight)).optimize()


class MultiCommodityFlow(_FlowFrontEnd):
    """Convex min-cost flow with commodities sharing arc capacities.

    Args:
        cost: Cost bound to ``network`` (for example BPRCost).
        network: Multi-commodity network.
        options: Engine options.
        solver: External solver override.
        generator: Constraint generator override; defaults to
                   MultiCommodityConstraintGenerator.
    """

    def __init__(
        self,
        cost: CostFunction,
        network: MultiCommodityNetwork,
        options: SolverOptions | None = None,
        solver: ConvexSolver | None = None,
        generator: MultiCommodityConstraintGenerator | None = None,
    ):
        if generator is None:
            generator = MultiCommodityConstraintGenerator(network)
        super().__init__(cost, generator, options, solver)
        self.network = network
        self._graph = build_graph(network.num_vertices, network.arcs)

    def solve_linear(self) -> np.ndarray:
        """Frank-Wolfe with the linear Taylor proxy from the default start."""
        return self._engine().optimize()

    def optimize(self, initial: np.ndarray | None = None) -> np.ndarray:
        """Phase 1 and phase 2, seeded by the shortest-path assignment by default."""
        if initial is None:
            initial = self.solve_by_dijkstra()
        return self._engine().optimize(initial)

    def solve_by_dijkstra(self, current: np.ndarray | None = None) -> np.ndarray:
        """All-or-nothing assignment under the marginal costs at ``current``.

        Args:
            current: Flow at which marginal costs are taken; defaults to zero flow.

        Returns:
            Flow vector routing each commodity on a single shortest path.
            Capacities are ignored, so the result may be infeasible.
        """
        if current is None:
            current = self.generator.initial_solution()
        marginal = self.cost.g(self.cost.check_vector(current))
        return all_or_nothing(self.network, marginal, self._graph)

    def solve_by_dijkstra_and_socp(self) -> np.ndarray:
        """Shortest-path driven loop that falls back to the quadratic proxy solve.

        Starts from the all-or-nothing assignment, projects it onto the
        capacity-constrained region, then iterates: each target is the
        all-or-nothing assignment at the current marginal costs when it fits
        the capacities, otherwise the minimizer of the curvature proxy.
        Every step is line-searched on the true cost.
        """
        graph = self._graph
        engine = self._engine(CurvatureProxy(self.options.proximal_weight))
        tolerance = self.options.tolerance

        def direction(x: np.ndarray) -> np.ndarray:
            target = all_or_nothing(self.network, self.cost.g(x), graph)
            if engine.constraints.is_satisfied(target, tolerance):
                return target
            return engine.proxy_minimizer(x)

        engine.direction_finder = direction
        start = self.solve_by_dijkstra()
        logger.info(
            "Shortest-path start computed",
            extra={"violation": engine.constraints.violation(start)},
        )
        return engine.optimize(start)


class KleinrockFlow(MultiCommodityFlow):
    """Multi-commodity flow under the Kleinrock delay ``sum y / (c - y)``.

    The delay is infinite at capacity, so every engine this front end builds
    receives the tightened capacity rows from KleinrockConstraintGenerator
    before solving, and phase 2 uses the curvature proxy.
    """

    def __init__(
        self,
        network: MultiCommodityNetwork,
        options: SolverOptions | None = None,
        solver: ConvexSolver | None = None,
    ):
        options = options if options is not None else SolverOptions()
        super().__init__(
            KleinrockCost(network),
            network,
            options,
            solver,
            generator=KleinrockConstraintGenerator(network, headroom=options.capacity_headroom),
        )
