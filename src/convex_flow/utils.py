"""Utility functions for checking and analyzing flow vectors."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .data import MultiCommodityNetwork, Network
from .exceptions import ValidationError


@dataclass
class ValidationResult:
    """Results from validating a flow vector against its network.

    Attributes:
        is_valid: True if the flow satisfies all constraints.
        errors: List of validation error messages (empty if valid).
        flow_balance: Residual of each conservation row (outflow - inflow - supply),
                      shaped (vertices,) or (commodities, vertices).
        capacity_violations: Indices of arcs whose aggregate flow exceeds capacity.
        negative_flows: Indices of variables with negative flow.
    """

    is_valid: bool
    errors: list[str]
    flow_balance: np.ndarray
    capacity_violations: list[int]
    negative_flows: list[int]


@dataclass
class BottleneckArc:
    """Represents an arc at or near capacity.

    Attributes:
        index: Arc index in the network.
        tail: Source vertex.
        head: Destination vertex.
        flow: Aggregate flow on the arc.
        capacity: Arc capacity.
        utilization: flow / capacity (1.0 = at capacity).
        slack: Remaining capacity (capacity - flow).
    """

    index: int
    tail: int
    head: int
    flow: float
    capacity: float
    utilization: float
    slack: float


def aggregate_arc_flows(network: Network | MultiCommodityNetwork, x: np.ndarray) -> np.ndarray:
    """Total flow per arc; identity for single-commodity networks."""
    flows = np.asarray(x, dtype=float)
    if flows.shape != (network.num_variables,):
        raise ValidationError(
            f"Flow vector has shape {flows.shape}, expected ({network.num_variables},).",
            expected=network.num_variables,
            actual=flows.size,
        )
    if isinstance(network, MultiCommodityNetwork):
        return network.aggregate(flows)
    return flows


def validate_flow(
    network: Network | MultiCommodityNetwork,
    x: np.ndarray,
    tolerance: float = 1e-6,
) -> ValidationResult:
    """Validate that a flow vector satisfies conservation, capacity and sign constraints.

    Args:
        network: Single- or multi-commodity network the vector belongs to.
        x: Flow vector in the network's variable order.
        tolerance: Numerical tolerance for constraint violations (default: 1e-6).

    Returns:
        ValidationResult with detailed information about any violations.
    """
    arc_flows = aggregate_arc_flows(network, x)
    flows = np.asarray(x, dtype=float)
    errors: list[str] = []

    if isinstance(network, MultiCommodityNetwork):
        num_commodities = network.num_commodities
        balance = np.zeros((num_commodities, network.num_vertices))
        for k, commodity in enumerate(network.commodities):
            balance[k, commodity.origin] -= commodity.demand
            balance[k, commodity.destination] += commodity.demand
        for a, arc in enumerate(network.arcs):
            for k in range(num_commodities):
                value = flows[network.variable_index(a, k)]
                balance[k, arc.tail] += value
                balance[k, arc.head] -= value
        for k, v in zip(*np.nonzero(np.abs(balance) > tolerance)):
            errors.append(f"Commodity {k} at vertex {v}: flow imbalance {balance[k, v]:.6f}")
    else:
        balance = -np.array(network.supplies, dtype=float)
        for a, arc in enumerate(network.arcs):
            balance[arc.tail] += flows[a]
            balance[arc.head] -= flows[a]
        for v in np.nonzero(np.abs(balance) > tolerance)[0]:
            errors.append(f"Vertex {v}: flow imbalance {balance[v]:.6f} (should be zero)")

    capacity_violations: list[int] = []
    for a, arc in enumerate(network.arcs):
        if arc_flows[a] > arc.capacity + tolerance:
            capacity_violations.append(a)
            errors.append(
                f"Arc {a} ({arc.tail} -> {arc.head}): flow {arc_flows[a]:.6f} exceeds "
                f"capacity {arc.capacity:.6f}"
            )

    negative_flows = [int(i) for i in np.nonzero(flows < -tolerance)[0]]
    for i in negative_flows:
        errors.append(f"Variable {i}: negative flow {flows[i]:.6f}")

    return ValidationResult(
        is_valid=not errors,
        errors=errors,
        flow_balance=balance,
        capacity_violations=capacity_violations,
        negative_flows=negative_flows,
    )


def compute_bottleneck_arcs(
    network: Network | MultiCommodityNetwork,
    x: np.ndarray,
    threshold: float = 0.95,
) -> list[BottleneckArc]:
    """Identify arcs whose utilization is at least ``threshold``.

    Returns:
        BottleneckArc entries sorted by utilization (descending), then slack.
    """
    arc_flows = aggregate_arc_flows(network, x)
    bottlenecks: list[BottleneckArc] = []
    for a, arc in enumerate(network.arcs):
        utilization = arc_flows[a] / arc.capacity
        if utilization >= threshold:
            bottlenecks.append(
                BottleneckArc(
                    index=a,
                    tail=arc.tail,
                    head=arc.head,
                    flow=float(arc_flows[a]),
                    capacity=arc.capacity,
                    utilization=float(utilization),
                    slack=float(arc.capacity - arc_flows[a]),
                )
            )
    bottlenecks.sort(key=lambda b: (-b.utilization, b.slack))
    return bottlenecks
