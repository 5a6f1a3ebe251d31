"""Convergence diagnostics for the phase-2 optimization loop.

The monitor watches the true objective across accepted iterates and flags
stalls, i.e. runs of iterations whose relative improvement is negligible.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field


@dataclass
class ConvergenceMonitor:
    """Monitors objective progress and detects stalling.

    Attributes:
        window_size: Number of recent iterations to track
        stall_threshold: Relative improvement below which an iteration counts as stalled

    Examples:
        >>> monitor = ConvergenceMonitor(window_size=20, stall_threshold=1e-8)
        >>> for iteration, value in enumerate(objective_values):
        ...     monitor.record_iteration(value, iteration)
        ...     if monitor.is_stalled():
        ...         print("Warning: phase 2 may be stalled")
    """

    window_size: int = 50
    stall_threshold: float = 1e-8

    objective_history: deque[float] = field(default_factory=lambda: deque(maxlen=50))
    total_iterations: int = 0
    consecutive_no_improvement: int = 0
    last_significant_improvement_iter: int = 0

    def __post_init__(self) -> None:
        """Initialize history with correct maxlen."""
        self.objective_history = deque(maxlen=self.window_size)

    def record_iteration(self, objective: float, iteration: int = 0) -> None:
        """Record the objective of an accepted iterate."""
        self.objective_history.append(objective)
        self.total_iterations += 1

        if len(self.objective_history) >= 2:
            prev_obj = self.objective_history[-2]
            current_obj = self.objective_history[-1]

            # Relative improvement, absolute near zero
            if abs(prev_obj) > 1e-12:
                rel_improvement = (prev_obj - current_obj) / abs(prev_obj)
            else:
                rel_improvement = prev_obj - current_obj

            if rel_improvement < self.stall_threshold:
                self.consecutive_no_improvement += 1
            else:
                self.consecutive_no_improvement = 0
                self.last_significant_improvement_iter = iteration

    def is_stalled(self, min_consecutive: int = 10) -> bool:
        """Check whether the last ``min_consecutive`` iterations made no real progress."""
        return self.consecutive_no_improvement >= min_consecutive

    def get_recent_improvement(self) -> float | None:
        """Relative improvement from the oldest to the newest value in the window."""
        if len(self.objective_history) < 2:
            return None

        oldest = self.objective_history[0]
        newest = self.objective_history[-1]

        if abs(oldest) > 1e-12:
            return (oldest - newest) / abs(oldest)
        return oldest - newest

    def get_diagnostic_summary(self) -> dict[str, float | bool | int]:
        return {
            "total_iterations": self.total_iterations,
            "is_stalled": self.is_stalled(),
            "consecutive_no_improvement": self.consecutive_no_improvement,
            "last_significant_improvement_iter": self.last_significant_improvement_iter,
            "recent_improvement": self.get_recent_improvement() or 0.0,
        }
