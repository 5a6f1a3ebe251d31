"""Successive convex approximation engine (phase 1 / phase 2 / optimize)."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

import numpy as np
from scipy import sparse

from .constraints import ConstraintGenerator
from .convex_solver import ConvexSolver, ScipyConvexSolver, SolverResult
from .costs import CostFunction
from .data import FlowResult, ProgressCallback, ProgressInfo, SolverOptions
from .diagnostics import ConvergenceMonitor
from .exceptions import InfeasibleProblemError, SolverFailureError, ValidationError
from .line_search import LINE_SEARCHES
from .proxy import ProxyObjective, ProxyObjectiveStrategy


class CVPEngine:
    """Frank-Wolfe style minimizer of a convex cost over a network polytope.

    Each phase-2 iteration builds a proxy objective anchored at the current
    iterate, asks the external solver for its minimizer ``y*`` over the fixed
    constraint system, and line-searches the true cost on the segment from the
    iterate to ``y*``. Iterates are only replaced by strictly cheaper points,
    so the objective history is non-increasing.

    The engine owns its constraint system and solver for its whole lifetime;
    nothing is shared between engine instances.

    Args:
        cost: True convex cost, bound to the same network as ``generator``.
        generator: Builds the constraint system, the starting point and the
                   default proxy strategy for the network type.
        options: Iteration budgets, tolerances and line search choice.
        proxy: Overrides the generator's default proxy strategy.
        solver: Overrides the default SciPy backend.
        direction_finder: Replaces the proxy solve as the source of phase-2
                          targets; it may call ``proxy_minimizer`` itself.

    Attributes:
        constraints: The generated ConstraintSystem.
        history: True objective at the start point and every accepted iterate
                 of the last phase-2 run.
        iterations: Phase-2 iterations performed by the last run.
        status: 'optimal', 'stalled' (line search found no cheaper point) or
                'iteration_limit' after phase 2; 'not_started' before.
        last_gap: Last directional derivative ``g(x)·(y* - x)``.

    Examples:
        >>> net = Network(2, [Arc(0, 1, capacity=10.0, cost=1.0)], supplies=[5.0, -5.0])
        >>> engine = CVPEngine(QuarticCost(net), FlowConstraintGenerator(net))
        >>> flows = engine.optimize()
        >>> float(flows[0])
        5.0
    """

    def __init__(
        self,
        cost: CostFunction,
        generator: ConstraintGenerator,
        options: SolverOptions | None = None,
        proxy: ProxyObjectiveStrategy | None = None,
        solver: ConvexSolver | None = None,
        direction_finder: Callable[[np.ndarray], np.ndarray] | None = None,
    ):
        self.options = options if options is not None else SolverOptions()
        self.logger = logging.getLogger(__name__)
        if cost.num_variables != generator.num_variables:
            raise ValidationError(
                f"Cost function expects {cost.num_variables} variables but the network "
                f"defines {generator.num_variables}.",
                expected=generator.num_variables,
                actual=cost.num_variables,
            )
        self.cost = cost
        self.generator = generator
        self.constraints = generator.generate()
        self.proxy = proxy if proxy is not None else generator.proxy_strategy(self.options)
        self.solver = solver if solver is not None else ScipyConvexSolver()
        self.line_search = LINE_SEARCHES[self.options.line_search]
        self.direction_finder = direction_finder

        self.history: list[float] = []
        self.iterations = 0
        self.status = "not_started"
        self.last_gap = 0.0

    @property
    def num_variables(self) -> int:
        return self.constraints.num_variables

    def initial_solution(self) -> np.ndarray:
        return self.generator.initial_solution()

    def add_constraints(self, a_ub: sparse.spmatrix, b_ub: np.ndarray) -> None:
        """Append inequality rows to the engine's constraint system."""
        self.constraints.add_inequalities(a_ub, b_ub)
        self.logger.info(
            "Added inequality constraints",
            extra={"rows": int(np.asarray(b_ub).shape[0]), "total_rows": len(self.constraints.b_ub)},
        )

    def solve_proxy(self, objective: ProxyObjective) -> SolverResult:
        """Hand ``objective`` and the unchanged constraint system to the solver."""
        if objective.num_variables != self.num_variables:
            raise ValidationError(
                f"Proxy objective has {objective.num_variables} variables, constraint system "
                f"has {self.num_variables}.",
                expected=self.num_variables,
                actual=objective.num_variables,
            )
        return self.solver.solve(objective, self.constraints)

    def _start_point(self, initial: np.ndarray | None) -> np.ndarray:
        if initial is None:
            return np.asarray(self.initial_solution(), dtype=float).copy()
        return self.constraints.check_vector(initial).copy()

    def phase1(self, initial: np.ndarray | None = None) -> np.ndarray:
        """Drive a (possibly infeasible) starting point into the feasible region.

        Args:
            initial: Starting flow vector; defaults to ``initial_solution()``.

        Returns:
            A flow vector satisfying every constraint to ``options.tolerance``.

        Raises:
            ValidationError: If ``initial`` has the wrong length.
            InfeasibleProblemError: If the solver reports the constraint system
                infeasible or feasibility is not restored within
                ``options.phase1_max_iterations`` solves.
            SolverFailureError: If the solver stops without an answer.
        """
        x = self._start_point(initial)
        tolerance = self.options.tolerance
        if self.constraints.is_satisfied(x, tolerance):
            self.logger.info("Phase 1 skipped (starting point is feasible)")
            return x

        self.logger.info(
            "Phase 1: Restoring feasibility",
            extra={"initial_violation": self.constraints.violation(x)},
        )
        for iteration in range(1, self.options.phase1_max_iterations + 1):
            result = self.solve_proxy(self.proxy.initial_objective(x))
            if result.status == "infeasible":
                self.logger.error(
                    "Constraint system is infeasible - no feasible flow exists",
                    extra={"iterations": iteration},
                )
                raise InfeasibleProblemError(
                    f"Constraint system is infeasible: {result.message}", iterations=iteration
                )
            if not result.feasible:
                raise SolverFailureError(
                    f"Solver failed during phase 1: {result.message}", status=result.status
                )
            x = np.asarray(result.x, dtype=float)
            violation = self.constraints.violation(x)
            if violation <= tolerance:
                self.logger.info(
                    "Phase 1 complete", extra={"iterations": iteration, "violation": violation}
                )
                return x
            self.logger.debug(
                "Phase 1 iterate still infeasible",
                extra={"iteration": iteration, "violation": violation},
            )

        self.logger.error(
            "Phase 1 iteration limit reached before feasibility",
            extra={"iterations": self.options.phase1_max_iterations},
        )
        raise InfeasibleProblemError(
            f"Feasibility not restored within {self.options.phase1_max_iterations} solves "
            f"(violation {self.constraints.violation(x):.3e}).",
            iterations=self.options.phase1_max_iterations,
        )

    def phase2(
        self,
        initial: np.ndarray | None = None,
        progress_callback: ProgressCallback | None = None,
        progress_interval: int = 10,
    ) -> np.ndarray:
        """Minimize the true cost from a feasible starting point.

        Stops when the directional derivative toward the proxy minimizer is no
        longer meaningfully negative, when the line search finds no cheaper
        point, or after ``options.max_iterations`` iterations. Running out of
        iterations is not an error: the best iterate is returned and
        ``status`` is set to 'iteration_limit'.

        Args:
            initial: Feasible starting vector; defaults to ``initial_solution()``.
                     An infeasible start is first repaired by ``phase1``.
            progress_callback: Optional callback receiving ProgressInfo.
            progress_interval: Iterations between progress callbacks.

        Returns:
            The final iterate.
        """
        x = self._start_point(initial)
        if not self.constraints.is_satisfied(x, self.options.tolerance):
            self.logger.warning(
                "Phase 2 started from an infeasible point, running phase 1 first",
                extra={"violation": self.constraints.violation(x)},
            )
            x = self.phase1(x)

        max_iterations = self.options.max_iterations
        fx = self.cost.f(x)
        self.history = [fx]
        self.iterations = 0
        self.status = "iteration_limit"
        self.last_gap = 0.0
        monitor = ConvergenceMonitor()
        stall_reported = False
        start_time = time.time()

        self.logger.info(
            "Phase 2: Optimizing from feasible point",
            extra={
                "objective": fx,
                "max_iterations": max_iterations,
                "line_search": self.options.line_search,
            },
        )

        for iteration in range(1, max_iterations + 1):
            self.iterations = iteration
            grad = np.asarray(self.cost.g(x), dtype=float)
            target = self.find_direction(x)
            gap = float(grad @ (target - x))
            self.last_gap = gap

            if gap > -self.options.optimality_tolerance * max(1.0, abs(fx)):
                self.status = "optimal"
                break

            beta = self.line_search(x, target, self.cost.f, self.options.line_search_iterations)
            candidate = x + beta * (target - x)
            f_candidate = self.cost.f(candidate)
            if not f_candidate < fx:
                self.logger.debug(
                    "Line search found no cheaper point",
                    extra={"iteration": iteration, "beta": beta, "gap": gap},
                )
                self.status = "stalled"
                break

            x, fx = candidate, f_candidate
            self.history.append(fx)
            monitor.record_iteration(fx, iteration)

            if self.logger.isEnabledFor(logging.DEBUG):
                self.logger.debug(
                    "Phase 2 iteration",
                    extra={"iteration": iteration, "objective": fx, "gap": gap, "beta": beta},
                )
            if monitor.is_stalled() and not stall_reported:
                stall_reported = True
                self.logger.warning(
                    "Phase 2 progress has stalled", extra=monitor.get_diagnostic_summary()
                )
            if progress_callback is not None and iteration % progress_interval == 0:
                progress_callback(
                    ProgressInfo(
                        iteration=iteration,
                        max_iterations=max_iterations,
                        phase=2,
                        objective=fx,
                        gap=gap,
                        elapsed_time=time.time() - start_time,
                    )
                )

        elapsed_ms = (time.time() - start_time) * 1000
        if self.status == "iteration_limit":
            self.logger.warning(
                "Iteration limit reached before optimality",
                extra={"iterations": self.iterations, "objective": fx, "gap": self.last_gap},
            )
        self.logger.info(
            "Phase 2 complete",
            extra={
                "status": self.status,
                "iterations": self.iterations,
                "objective": fx,
                "gap": self.last_gap,
                "elapsed_ms": elapsed_ms,
            },
        )
        return x

    def optimize(
        self,
        initial: np.ndarray | None = None,
        progress_callback: ProgressCallback | None = None,
        progress_interval: int = 10,
    ) -> np.ndarray:
        """Run phase 1 followed by phase 2 and return the final iterate."""
        feasible = self.phase1(initial)
        return self.phase2(
            feasible, progress_callback=progress_callback, progress_interval=progress_interval
        )

    def result(self, x: np.ndarray) -> FlowResult:
        """Package ``x`` and the last run's statistics as a FlowResult."""
        flows = self.constraints.check_vector(x)
        return FlowResult(
            objective=self.cost.f(flows),
            flows=flows,
            status=self.status,
            iterations=self.iterations,
            gap=self.last_gap,
            arc_flows=self.generator.arc_flows(flows),
        )

    def find_direction(self, x: np.ndarray) -> np.ndarray:
        """Target point ``y*`` for the phase-2 line search from ``x``."""
        if self.direction_finder is not None:
            return np.asarray(self.direction_finder(x), dtype=float)
        return self.proxy_minimizer(x)

    def proxy_minimizer(self, x: np.ndarray) -> np.ndarray:
        """Minimizer of the phase-2 proxy anchored at ``x`` over the constraint system."""
        result = self.solve_proxy(self.proxy.objective(x, self.cost))
        if result.status == "infeasible":
            self.logger.error("Solver reported infeasibility during phase 2")
            raise InfeasibleProblemError(
                f"Constraint system became infeasible during phase 2: {result.message}",
                iterations=self.iterations,
            )
        if not result.feasible:
            raise SolverFailureError(
                f"Solver failed during phase 2: {result.message}", status=result.status
            )
        return np.asarray(result.x, dtype=float)
