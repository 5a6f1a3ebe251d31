"""Shortest-path (all-or-nothing) assignment for multi-commodity networks.

Each commodity's whole demand is routed along one shortest path under the
current marginal arc costs. The assignment ignores capacity coupling between
commodities; it serves as an initializer, as a heuristic baseline and as the
direction-finding step of ``solve_by_dijkstra_only``.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import networkx as nx
import numpy as np

from .costs import CostFunction
from .data import Arc, MultiCommodityNetwork
from .exceptions import InfeasibleProblemError, ValidationError
from .line_search import LINE_SEARCHES

logger = logging.getLogger(__name__)


def build_graph(num_vertices: int, arcs: Sequence[Arc]) -> nx.MultiDiGraph:
    """Directed multigraph whose edge keys are arc indices."""
    graph = nx.MultiDiGraph()
    graph.add_nodes_from(range(num_vertices))
    for idx, arc in enumerate(arcs):
        graph.add_edge(arc.tail, arc.head, key=idx)
    return graph


def shortest_path_arcs(
    graph: nx.MultiDiGraph,
    weights: np.ndarray,
    origin: int,
    destination: int,
) -> list[int]:
    """Arc indices of a shortest ``origin`` -> ``destination`` path under ``weights``.

    Parallel arcs are resolved to the cheapest one.

    Raises:
        InfeasibleProblemError: If ``destination`` is unreachable.
    """

    def weight(u: int, v: int, edges: dict[int, dict]) -> float:
        return min(weights[key] for key in edges)

    try:
        nodes = nx.dijkstra_path(graph, origin, destination, weight=weight)
    except nx.NetworkXNoPath as exc:
        raise InfeasibleProblemError(
            f"No path from vertex {origin} to vertex {destination}."
        ) from exc
    return [min(graph[u][v], key=lambda key: weights[key]) for u, v in zip(nodes[:-1], nodes[1:])]


def all_or_nothing(
    network: MultiCommodityNetwork,
    marginal_costs: np.ndarray,
    graph: nx.MultiDiGraph | None = None,
) -> np.ndarray:
    """Route every commodity's demand along its shortest path.

    Args:
        network: Multi-commodity network.
        marginal_costs: Per-variable arc costs (typically the cost gradient);
                        commodity ``k`` uses entries ``a * K + k``.
        graph: Pre-built graph from ``build_graph`` to reuse across calls.

    Returns:
        Flow vector in the network's arc-major layout.
    """
    marginal = np.asarray(marginal_costs, dtype=float)
    if marginal.shape != (network.num_variables,):
        raise ValidationError(
            f"Marginal cost vector has shape {marginal.shape}, expected "
            f"({network.num_variables},).",
            expected=network.num_variables,
            actual=marginal.size,
        )
    if graph is None:
        graph = build_graph(network.num_vertices, network.arcs)

    num_commodities = network.num_commodities
    flows = np.zeros(network.num_variables)
    for k, commodity in enumerate(network.commodities):
        if commodity.demand == 0:
            continue
        weights = marginal[k::num_commodities]
        for arc in shortest_path_arcs(graph, weights, commodity.origin, commodity.destination):
            flows[network.variable_index(arc, k)] += commodity.demand
    return flows


def solve_by_dijkstra_only(
    network: MultiCommodityNetwork,
    cost: CostFunction,
    iterations: int,
    line_search: str = "golden",
    line_search_iterations: int = 50,
    optimality_tolerance: float = 1e-6,
) -> np.ndarray:
    """Frank-Wolfe traffic assignment with all-or-nothing direction finding.

    Starts from the all-or-nothing assignment at zero flow and repeatedly
    line-searches toward the all-or-nothing assignment at the current marginal
    costs. No LP/QP solver is involved and capacities are not enforced, so the
    result is exact only when capacities do not bind.

    Args:
        network: Multi-commodity network.
        cost: Convex cost bound to ``network``.
        iterations: Maximum number of Frank-Wolfe iterations.
        line_search: 'golden' or 'linear'.
        line_search_iterations: Depth or samples for the line search.
        optimality_tolerance: Relative gap at which the loop stops.

    Returns:
        The final flow vector.
    """
    search = LINE_SEARCHES[line_search]
    graph = build_graph(network.num_vertices, network.arcs)
    x = all_or_nothing(network, cost.g(np.zeros(network.num_variables)), graph)
    fx = cost.f(x)
    performed = 0

    for iteration in range(1, iterations + 1):
        performed = iteration
        grad = np.asarray(cost.g(x), dtype=float)
        target = all_or_nothing(network, grad, graph)
        gap = float(grad @ (target - x))
        if gap > -optimality_tolerance * max(1.0, abs(fx)):
            logger.debug("All-or-nothing direction is not improving", extra={"iteration": iteration})
            break
        beta = search(x, target, cost.f, line_search_iterations)
        candidate = x + beta * (target - x)
        f_candidate = cost.f(candidate)
        if not f_candidate < fx:
            break
        x, fx = candidate, f_candidate

    logger.info(
        "Shortest-path assignment complete",
        extra={"iterations": performed, "objective": fx},
    )
    return x
