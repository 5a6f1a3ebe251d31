"""Public solver entrypoints."""

from __future__ import annotations

from .constraints import FlowConstraintGenerator, MultiCommodityConstraintGenerator
from .convex_solver import ConvexSolver
from .costs import CostFunction
from .data import FlowResult, MultiCommodityNetwork, Network, ProgressCallback, SolverOptions
from .engine import CVPEngine
from .exceptions import SolverConfigurationError
from .network import MultiCommodityFlow

MULTICOMMODITY_METHODS = ("engine", "dijkstra", "dijkstra_socp")


def solve_convex_flow(
    cost: CostFunction,
    network: Network | MultiCommodityNetwork,
    options: SolverOptions | None = None,
    progress_callback: ProgressCallback | None = None,
    progress_interval: int = 10,
    solver: ConvexSolver | None = None,
) -> FlowResult:
    """Minimize a convex flow cost over a network by successive convex approximation.

    Runs phase 1 (feasibility restoration) and phase 2 (Frank-Wolfe style
    minimization) on a fresh engine.

    Args:
        cost: Convex cost function bound to ``network``.
        network: Single- or multi-commodity network.
        options: Engine configuration. If None, uses defaults.
        progress_callback: Optional callback receiving ProgressInfo during phase 2.
        progress_interval: Phase-2 iterations between progress callbacks (default: 10).
        solver: External convex solver; defaults to ScipyConvexSolver.

    Returns:
        FlowResult containing:
        - objective: True cost at the returned flow
        - flows: Flow vector in the network's variable order
        - status: 'optimal', 'stalled' or 'iteration_limit'
        - iterations: Phase-2 iterations performed
        - gap: Last directional derivative toward the proxy minimizer
        - arc_flows: Aggregate flow per arc

    Raises:
        ValidationError: If the cost and network disagree on the variable count.
        InfeasibleProblemError: If no flow satisfies the network constraints.

    Examples:
        >>> net = Network(2, [Arc(0, 1, capacity=10.0, cost=1.0)], supplies=[5.0, -5.0])
        >>> result = solve_convex_flow(QuarticCost(net), net)
        >>> print(f"Status: {result.status}, flow: {result.flows[0]:.1f}")
        Status: optimal, flow: 5.0
    """
    if isinstance(network, MultiCommodityNetwork):
        generator = MultiCommodityConstraintGenerator(network)
    else:
        generator = FlowConstraintGenerator(network)
    # Instantiate a fresh engine each call to avoid cross-run state sharing.
    engine = CVPEngine(cost, generator, options=options, solver=solver)
    flows = engine.optimize(progress_callback=progress_callback, progress_interval=progress_interval)
    return engine.result(flows)


def solve_multicommodity_flow(
    cost: CostFunction,
    network: MultiCommodityNetwork,
    method: str = "engine",
    options: SolverOptions | None = None,
    solver: ConvexSolver | None = None,
) -> FlowResult:
    """Solve a multi-commodity problem with one of the front-end methods.

    Args:
        cost: Convex cost bound to ``network``.
        network: Multi-commodity network.
        method: One of:
                - 'engine' (default): phase 1 + phase 2 seeded by shortest paths
                - 'dijkstra': a single all-or-nothing assignment (capacities ignored)
                - 'dijkstra_socp': shortest-path loop with quadratic-proxy repair
        options: Engine configuration.
        solver: External convex solver override.

    Returns:
        FlowResult for the computed flow. For 'dijkstra' no engine iterations
        run, so status is 'heuristic' and iterations is 0.
    """
    if method not in MULTICOMMODITY_METHODS:
        raise SolverConfigurationError(
            f"Invalid method '{method}'. Must be one of {', '.join(MULTICOMMODITY_METHODS)}."
        )
    front_end = MultiCommodityFlow(cost, network, options=options, solver=solver)
    if method == "dijkstra":
        flows = front_end.solve_by_dijkstra()
        return FlowResult(
            objective=cost.f(flows),
            flows=flows,
            status="heuristic",
            iterations=0,
            arc_flows=network.aggregate(flows),
        )
    if method == "dijkstra_socp":
        flows = front_end.solve_by_dijkstra_and_socp()
    else:
        flows = front_end.optimize()
    return front_end.result(flows)
