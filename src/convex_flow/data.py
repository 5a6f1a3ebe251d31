"""Core data structures for convex network flow problems."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

import numpy as np

from .exceptions import InvalidProblemError, SolverConfigurationError


@dataclass(frozen=True)
class Arc:
    """Represents a directed arc with a capacity and a base unit cost.

    Attributes:
        tail: Index of the source vertex.
        head: Index of the destination vertex.
        capacity: Upper bound on the (aggregate) flow. Must be positive.
        cost: Base cost per unit of flow, used by the BPR cost and by the
              linear initial proxy.

    Examples:
        >>> # Arc from vertex 0 to vertex 1 carrying at most 10 units
        >>> arc = Arc(tail=0, head=1, capacity=10.0, cost=1.0)

    Raises:
        InvalidProblemError: If tail == head (self-loops not supported).
        InvalidProblemError: If capacity is not positive.
    """

    tail: int
    head: int
    capacity: float
    cost: float = 0.0

    def __post_init__(self) -> None:
        if self.tail == self.head:
            raise InvalidProblemError(
                f"Self-loop detected on vertex {self.tail}. Self-loops are not supported."
            )
        if not self.capacity > 0:
            raise InvalidProblemError(
                f"Arc {self.tail} -> {self.head} has capacity ({self.capacity}). "
                f"Capacity must be positive."
            )


@dataclass(frozen=True)
class Commodity:
    """An origin/destination pair with the demand routed between them.

    Attributes:
        origin: Vertex where the commodity enters the network.
        destination: Vertex where the commodity leaves the network.
        demand: Amount of flow to route (non-negative).
    """

    origin: int
    destination: int
    demand: float

    def __post_init__(self) -> None:
        if self.origin == self.destination:
            raise InvalidProblemError(
                f"Commodity origin and destination are both vertex {self.origin}."
            )
        if self.demand < 0:
            raise InvalidProblemError(
                f"Commodity {self.origin} -> {self.destination} has negative demand "
                f"({self.demand})."
            )


def _check_endpoints(num_vertices: int, arcs: Sequence[Arc]) -> None:
    if num_vertices <= 0:
        raise InvalidProblemError(f"Network must have at least one vertex, got {num_vertices}.")
    for idx, arc in enumerate(arcs):
        for endpoint in (arc.tail, arc.head):
            if not 0 <= endpoint < num_vertices:
                raise InvalidProblemError(
                    f"Arc {idx} ({arc.tail} -> {arc.head}) references vertex {endpoint} "
                    f"outside range 0..{num_vertices - 1}."
                )


@dataclass
class Network:
    """A single-commodity network: vertices 0..N-1, arcs, and vertex supplies.

    Attributes:
        num_vertices: Number of vertices N. Vertices are implicit indices.
        arcs: Ordered arcs; the flow vector has one entry per arc in this order.
        supplies: External supply (positive) or demand (negative) per vertex.
                  Defaults to all zeros (pure transshipment).
        tolerance: Tolerance for the supply balance check (default: 1e-6).

    Examples:
        >>> # Ship 5 units from vertex 0 to vertex 1
        >>> net = Network(
        ...     num_vertices=2,
        ...     arcs=[Arc(0, 1, capacity=10.0, cost=1.0)],
        ...     supplies=[5.0, -5.0],
        ... )
        >>> net.num_variables
        1
    """

    num_vertices: int
    arcs: Sequence[Arc]
    supplies: Sequence[float] | None = None
    tolerance: float = 1e-6

    def __post_init__(self) -> None:
        self.arcs = tuple(self.arcs)
        if self.supplies is None:
            self.supplies = (0.0,) * self.num_vertices
        self.supplies = tuple(float(s) for s in self.supplies)
        self.validate()

    def validate(self) -> None:
        _check_endpoints(self.num_vertices, self.arcs)
        if len(self.supplies) != self.num_vertices:
            raise InvalidProblemError(
                f"Expected {self.num_vertices} vertex supplies, got {len(self.supplies)}."
            )
        total_supply = sum(self.supplies)
        if abs(total_supply) > self.tolerance:
            raise InvalidProblemError(
                f"Network is unbalanced: total supply {total_supply:.6f} exceeds tolerance "
                f"{self.tolerance}. The sum of all vertex supplies must equal zero."
            )

    @property
    def num_variables(self) -> int:
        return len(self.arcs)

    @property
    def capacities(self) -> np.ndarray:
        return np.array([arc.capacity for arc in self.arcs], dtype=float)

    @property
    def costs(self) -> np.ndarray:
        return np.array([arc.cost for arc in self.arcs], dtype=float)


@dataclass
class MultiCommodityNetwork:
    """A network whose arcs are shared by several commodities.

    The flow vector is arc-major: entry ``a * K + k`` is the flow of commodity
    ``k`` on arc ``a`` where ``K = len(commodities)``. Capacities bound the
    aggregate flow on an arc, which is what couples the commodities.

    Attributes:
        num_vertices: Number of vertices N.
        arcs: Ordered arcs shared by every commodity.
        commodities: Ordered origin/destination demands.
    """

    num_vertices: int
    arcs: Sequence[Arc]
    commodities: Sequence[Commodity]

    def __post_init__(self) -> None:
        self.arcs = tuple(self.arcs)
        self.commodities = tuple(self.commodities)
        self.validate()

    def validate(self) -> None:
        _check_endpoints(self.num_vertices, self.arcs)
        for commodity in self.commodities:
            for endpoint in (commodity.origin, commodity.destination):
                if not 0 <= endpoint < self.num_vertices:
                    raise InvalidProblemError(
                        f"Commodity {commodity.origin} -> {commodity.destination} references "
                        f"vertex {endpoint} outside range 0..{self.num_vertices - 1}."
                    )

    @property
    def num_commodities(self) -> int:
        return len(self.commodities)

    @property
    def num_variables(self) -> int:
        return len(self.arcs) * len(self.commodities)

    @property
    def capacities(self) -> np.ndarray:
        return np.array([arc.capacity for arc in self.arcs], dtype=float)

    @property
    def costs(self) -> np.ndarray:
        return np.array([arc.cost for arc in self.arcs], dtype=float)

    def variable_index(self, arc: int, commodity: int) -> int:
        return arc * len(self.commodities) + commodity

    def aggregate(self, x: np.ndarray) -> np.ndarray:
        """Return the total flow on each arc summed over commodities."""
        flows = np.asarray(x, dtype=float)
        return flows.reshape(len(self.arcs), len(self.commodities)).sum(axis=1)


@dataclass
class FlowResult:
    """Represents the output of a convex flow optimization.

    Attributes:
        objective: True (non-linear) cost at the returned flow.
        flows: Flow vector in the network's variable order.
        status: Solution status:
                - 'optimal': the optimality test fired
                - 'stalled': the line search found no cheaper point
                - 'iteration_limit': phase 2 exhausted its budget; best iterate returned
                - 'heuristic': plain shortest-path assignment, no optimization run
        iterations: Number of phase-2 iterations performed.
        gap: Last directional derivative g(x)·(y* - x) seen by the optimality test.
        arc_flows: Aggregate flow per arc (equal to flows for single commodity).
    """

    objective: float
    flows: np.ndarray
    status: str = "optimal"
    iterations: int = 0
    gap: float = 0.0
    arc_flows: np.ndarray = field(default_factory=lambda: np.zeros(0))


@dataclass(frozen=True)
class ProgressInfo:
    """Progress information provided during phase 2.

    Attributes:
        iteration: Current phase-2 iteration number.
        max_iterations: Phase-2 iteration budget.
        phase: Current phase (1 for feasibility, 2 for optimization).
        objective: True objective at the current iterate.
        gap: Directional derivative toward the proxy minimizer.
        elapsed_time: Elapsed time in seconds since the phase started.
    """

    iteration: int
    max_iterations: int
    phase: int
    objective: float
    gap: float
    elapsed_time: float


# Type alias for progress callback function
ProgressCallback = Callable[[ProgressInfo], None]


@dataclass
class SolverOptions:
    """Configuration options for the successive convex approximation engine.

    Attributes:
        max_iterations: Phase-2 iteration budget (default: 200). Exhausting it is
                        not an error; the best iterate found is returned.
        phase1_max_iterations: Number of feasibility-restoration solves before
                               phase 1 gives up (default: 10).
        tolerance: Feasibility tolerance for constraint checks (default: 1e-6).
        optimality_tolerance: Phase 2 stops once the directional derivative toward
                              the proxy minimizer exceeds
                              ``-optimality_tolerance * max(1, |f(x)|)`` (default: 1e-6).
        line_search: Line search strategy:
                     - "golden" (default): golden-section search
                     - "linear": uniform grid of samples
        line_search_iterations: Golden-section depth or number of grid samples (default: 50).
        proximal_weight: Weight of the quadratic term used by the curvature proxy
                         where the cost has no curvature information (default: 1.0).
        capacity_headroom: Kleinrock capacity constraints bound aggregate flow by
                           ``(1 - capacity_headroom) * capacity`` (default: 1e-3).

    Examples:
        >>> # Default options
        >>> options = SolverOptions()

        >>> # Cheap grid search with a tight budget
        >>> options = SolverOptions(line_search="linear", line_search_iterations=20,
        ...                         max_iterations=50)
    """

    max_iterations: int = 200
    phase1_max_iterations: int = 10
    tolerance: float = 1e-6
    optimality_tolerance: float = 1e-6
    line_search: str = "golden"
    line_search_iterations: int = 50
    proximal_weight: float = 1.0
    capacity_headroom: float = 1e-3

    def __post_init__(self) -> None:
        if self.max_iterations <= 0:
            raise SolverConfigurationError(
                f"max_iterations must be positive, got {self.max_iterations}."
            )
        if self.phase1_max_iterations <= 0:
            raise SolverConfigurationError(
                f"phase1_max_iterations must be positive, got {self.phase1_max_iterations}."
            )
        if self.tolerance <= 0:
            raise SolverConfigurationError(
                f"Tolerance must be positive, got {self.tolerance}. "
                f"Tolerance controls the feasibility checks on constraint rows."
            )
        if self.optimality_tolerance <= 0:
            raise SolverConfigurationError(
                f"optimality_tolerance must be positive, got {self.optimality_tolerance}."
            )
        if self.line_search not in ("golden", "linear"):
            raise SolverConfigurationError(
                f"Invalid line search '{self.line_search}'. Must be 'golden' or 'linear'."
            )
        if self.line_search_iterations <= 0:
            raise SolverConfigurationError(
                f"line_search_iterations must be positive, got {self.line_search_iterations}."
            )
        if self.proximal_weight <= 0:
            raise SolverConfigurationError(
                f"proximal_weight must be positive, got {self.proximal_weight}."
            )
        if not 0 <= self.capacity_headroom < 1:
            raise SolverConfigurationError(
                f"capacity_headroom must lie in [0, 1), got {self.capacity_headroom}."
            )
