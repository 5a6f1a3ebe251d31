"""One-dimensional searches along the segment between two flow vectors.

Both searches return ``beta`` in ``[0, 1]`` identifying the point
``A + beta * (B - A)``. They are pure functions of their inputs.
"""

from __future__ import annotations

from collections.abc import Callable

import numpy as np

from .exceptions import SolverConfigurationError, ValidationError

PHI = 0.6180339887498948482045868343656  # Inverse golden ratio.

Objective = Callable[[np.ndarray], float]


def _endpoints(a: np.ndarray, b: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    start = np.asarray(a, dtype=float)
    end = np.asarray(b, dtype=float)
    if start.shape != end.shape:
        raise ValidationError(
            f"Line search endpoints differ in shape: {start.shape} vs {end.shape}.",
            expected=start.size,
            actual=end.size,
        )
    return start, end


def golden_section_search(
    a: np.ndarray,
    b: np.ndarray,
    objective: Objective,
    iterations: int,
) -> float:
    """Golden-section search for the minimizer of ``objective`` on segment AB.

    Two interior samples sit at fractions ``1 - PHI`` and ``PHI``. Each step
    keeps the sub-segment around the smaller value and places one new sample,
    so the search costs ``iterations + 3`` evaluations. The returned ``beta``
    is the best sample over every evaluation, which can differ from the final
    bracket when the function is not unimodal along the segment.

    Args:
        a: Segment start (``beta = 0``).
        b: Segment end (``beta = 1``).
        objective: Function of a flow vector, e.g. ``CostFunction.f``.
        iterations: Number of narrowing steps after the first.

    Returns:
        Fraction ``beta`` of the way from ``a`` to ``b`` of the best sample.

    Examples:
        >>> beta = golden_section_search(np.array([0.0]), np.array([10.0]),
        ...                              lambda x: (x[0] - 3.0) ** 2, 50)
        >>> round(beta, 4)
        0.3
    """
    if iterations < 0:
        raise SolverConfigurationError(f"iterations must be non-negative, got {iterations}.")
    start, end = _endpoints(a, b)
    direction = end - start

    b1, b2 = 1.0 - PHI, PHI
    f1 = objective(start + b1 * direction)
    f2 = objective(start + b2 * direction)
    # Ties keep the first sample.
    fm, bm = (f1, b1) if f1 <= f2 else (f2, b2)

    for _ in range(iterations + 1):
        if f1 > f2:
            # Minimum lies right of b1: b2 becomes the left sample, a new one goes beyond it.
            b1, b2 = b2, b2 + PHI * (b2 - b1)
            f1, f2 = f2, objective(start + b2 * direction)
            if f2 < fm:
                fm, bm = f2, b2
        else:
            b1, b2 = b1 + PHI * (b1 - b2), b1
            f1, f2 = objective(start + b1 * direction), f1
            if f1 < fm:
                fm, bm = f1, b1
    return bm


def linear_search(
    a: np.ndarray,
    b: np.ndarray,
    objective: Objective,
    samples: int,
) -> float:
    """Grid search over ``samples`` evenly spaced points from A toward B.

    Evaluates ``objective`` at ``A`` and then at ``A + (i / samples) * (B - A)``
    for ``i = 1..samples`` (``samples + 1`` evaluations in total), keeping the
    first minimum found.

    Returns:
        Fraction ``beta`` of the grid point with the smallest value.
    """
    if samples <= 0:
        raise SolverConfigurationError(f"samples must be positive, got {samples}.")
    start, end = _endpoints(a, b)
    direction = end - start

    fmin = objective(start)
    imin = 0
    for i in range(1, samples + 1):
        value = objective(start + (i / samples) * direction)
        if value < fmin:
            fmin, imin = value, i
    return imin / samples


LINE_SEARCHES: dict[str, Callable[[np.ndarray, np.ndarray, Objective, int], float]] = {
    "golden": golden_section_search,
    "linear": linear_search,
}
