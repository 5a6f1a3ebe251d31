"""Convex network flow optimization by successive convex approximation."""

from .constraints import (
    ConstraintGenerator,
    ConstraintSystem,
    FlowConstraintGenerator,
    KleinrockConstraintGenerator,
    MultiCommodityConstraintGenerator,
)
from .convex_solver import ConvexSolver, ScipyConvexSolver, SolverResult
from .costs import BPRCost, CostFunction, KleinrockCost, QuarticCost
from .data import (
    Arc,
    Commodity,
    FlowResult,
    MultiCommodityNetwork,
    Network,
    ProgressCallback,
    ProgressInfo,
    SolverOptions,
)
from .diagnostics import ConvergenceMonitor
from .engine import CVPEngine
from .exceptions import (
    ConvexFlowError,
    InfeasibleProblemError,
    InvalidProblemError,
    SolverConfigurationError,
    SolverFailureError,
    ValidationError,
)
from .line_search import golden_section_search, linear_search
from .network import KleinrockFlow, MultiCommodityFlow, SingleCommodityFlow
from .proxy import (
    ArcCostProxy,
    CurvatureProxy,
    LinearObjective,
    ProjectionProxy,
    ProxyObjectiveStrategy,
    QuadraticObjective,
    linear_proxy,
    quadratic_proxy,
)
from .shortest_paths import all_or_nothing, solve_by_dijkstra_only
from .solver import solve_convex_flow, solve_multicommodity_flow
from .utils import (
    BottleneckArc,
    ValidationResult,
    aggregate_arc_flows,
    compute_bottleneck_arcs,
    validate_flow,
)

__version__ = "0.1.0"

__all__ = [
    # Main API
    "solve_convex_flow",
    "solve_multicommodity_flow",
    "CVPEngine",
    "SingleCommodityFlow",
    "MultiCommodityFlow",
    "KleinrockFlow",
    # Data model and configuration
    "Arc",
    "Commodity",
    "Network",
    "MultiCommodityNetwork",
    "FlowResult",
    "SolverOptions",
    # Progress tracking
    "ProgressCallback",
    "ProgressInfo",
    # Cost functions
    "CostFunction",
    "QuarticCost",
    "BPRCost",
    "KleinrockCost",
    # Line search
    "golden_section_search",
    "linear_search",
    # Proxy objectives
    "LinearObjective",
    "QuadraticObjective",
    "linear_proxy",
    "quadratic_proxy",
    "ProxyObjectiveStrategy",
    "ProjectionProxy",
    "ArcCostProxy",
    "CurvatureProxy",
    # Constraints
    "ConstraintSystem",
    "ConstraintGenerator",
    "FlowConstraintGenerator",
    "MultiCommodityConstraintGenerator",
    "KleinrockConstraintGenerator",
    # External solver
    "ConvexSolver",
    "ScipyConvexSolver",
    "SolverResult",
    # Shortest paths
    "all_or_nothing",
    "solve_by_dijkstra_only",
    # Utilities
    "validate_flow",
    "aggregate_arc_flows",
    "compute_bottleneck_arcs",
    "ValidationResult",
    "BottleneckArc",
    # Diagnostics
    "ConvergenceMonitor",
    # Exceptions
    "ConvexFlowError",
    "InvalidProblemError",
    "ValidationError",
    "InfeasibleProblemError",
    "SolverConfigurationError",
    "SolverFailureError",
    # Version
    "__version__",
]
