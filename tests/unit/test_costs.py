"""Unit tests for the convex cost functions."""

import sys
from pathlib import Path

import numpy as np
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from convex_flow.costs import BPRCost, KleinrockCost, QuarticCost  # noqa: E402
from convex_flow.data import Arc, Commodity, MultiCommodityNetwork, Network  # noqa: E402
from convex_flow.exceptions import InvalidProblemError, ValidationError  # noqa: E402


def _chain_network() -> Network:
    return Network(
        num_vertices=3,
        arcs=[Arc(0, 1, capacity=10.0), Arc(1, 2, capacity=10.0)],
        supplies=[5.0, 0.0, -5.0],
    )


def _shared_arc_network() -> MultiCommodityNetwork:
    return MultiCommodityNetwork(
        num_vertices=2,
        arcs=[Arc(0, 1, capacity=10.0, cost=2.0)],
        commodities=[Commodity(0, 1, 3.0), Commodity(0, 1, 7.0)],
    )


def _central_difference(func, x: np.ndarray, step: float = 1e-6) -> np.ndarray:
    grad = np.zeros_like(x)
    for i in range(x.size):
        e = np.zeros_like(x)
        e[i] = step
        grad[i] = (func(x + e) - func(x - e)) / (2 * step)
    return grad


class TestQuarticCost:
    def test_value_matches_closed_form(self):
        """Test cost value against the closed form."""
        # Arc 0 enters vertex 1, which has one outgoing arc, so its quartic term counts once.
        cost = QuarticCost(_chain_network())
        x = np.array([5.0, 5.0])
        expected = 20 * 0.5**4 + 100 * 0.25 + 2.0 * 5 + 100 * 0.25 + 1.5 * 5
        assert cost.f(x) == pytest.approx(expected)
        assert cost.f(x) == pytest.approx(68.75)

    def test_gradient_closed_form(self):
        """Test gradient against the closed form."""
        cost = QuarticCost(_chain_network())
        grad = cost.g(np.array([5.0, 5.0]))
        assert grad == pytest.approx([13.0, 11.5])

    def test_gradient_matches_finite_differences(self):
        """Test gradient agrees with central finite differences."""
        net = Network(
            num_vertices=4,
            arcs=[
                Arc(0, 1, capacity=8.0),
                Arc(1, 2, capacity=5.0),
                Arc(1, 3, capacity=6.0),
                Arc(2, 3, capacity=9.0),
                Arc(0, 2, capacity=4.0),
            ],
        )
        cost = QuarticCost(net)
        x = np.array([3.0, 1.5, 2.0, 4.0, 0.5])
        assert cost.g(x) == pytest.approx(_central_difference(cost.f, x), rel=1e-5)

    def test_curvature_is_positive(self):
        """Test diagonal curvature is positive."""
        cost = QuarticCost(_chain_network())
        assert np.all(cost.h(np.array([0.0, 3.0])) > 0)

    def test_zero_flow_costs_nothing(self):
        """Test zero flow has zero cost."""
        cost = QuarticCost(_chain_network())
        assert cost.f(np.zeros(2)) == 0.0

    def test_length_mismatch_raises(self):
        """Test a wrong-length vector raises ValidationError."""
        cost = QuarticCost(_chain_network())
        with pytest.raises(ValidationError) as exc_info:
            cost.f(np.zeros(3))
        assert exc_info.value.expected == 2
        assert exc_info.value.actual == 3
        with pytest.raises(ValidationError):
            cost.g([1.0])

    def test_callable_alias(self):
        """Test calling the cost object evaluates f."""
        cost = QuarticCost(_chain_network())
        x = np.array([1.0, 2.0])
        assert cost(x) == cost.f(x)


class TestBPRCost:
    def test_value_uses_aggregate_flow(self):
        """Test cost is evaluated on aggregate arc flow."""
        cost = BPRCost(_shared_arc_network(), alpha=0.15, beta=4.0)
        # y = 10 = capacity: 2 * 10 * (1 + 0.15 / 5)
        assert cost.f(np.array([3.0, 7.0])) == pytest.approx(20.6)

    def test_gradient_shared_across_commodities(self):
        """Test every commodity sees the same arc gradient."""
        cost = BPRCost(_shared_arc_network())
        grad = cost.g(np.array([3.0, 7.0]))
        assert grad[0] == grad[1]
        assert grad[0] == pytest.approx(2.0 * (1 + 0.15))

    def test_gradient_matches_finite_differences(self):
        """Test gradient agrees with central finite differences."""
        net = MultiCommodityNetwork(
            num_vertices=3,
            arcs=[Arc(0, 1, 5.0, cost=1.0), Arc(1, 2, 7.0, cost=2.0), Arc(0, 2, 4.0, cost=4.0)],
            commodities=[Commodity(0, 2, 3.0), Commodity(1, 2, 2.0)],
        )
        cost = BPRCost(net)
        x = np.array([2.0, 0.0, 1.5, 2.0, 1.0, 0.5])
        assert cost.g(x) == pytest.approx(_central_difference(cost.f, x), rel=1e-5)

    def test_curvature_matches_gradient_slope(self):
        """Test curvature matches the slope of the gradient."""
        cost = BPRCost(_shared_arc_network())
        x = np.array([2.0, 3.0])
        step = 1e-6
        slope = (cost.g(x + step)[0] - cost.g(x - step)[0]) / (4 * step)
        # Moving both commodities moves the aggregate twice as fast.
        assert cost.h(x)[0] == pytest.approx(slope, rel=1e-5)

    def test_negative_parameters_rejected(self):
        """Test negative cost parameters are rejected."""
        with pytest.raises(InvalidProblemError):
            BPRCost(_shared_arc_network(), alpha=-1.0)

    def test_single_commodity_vector_rejected(self):
        """Test a per-arc vector is rejected for multiple commodities."""
        cost = BPRCost(_shared_arc_network())
        with pytest.raises(ValidationError):
            cost.f(np.array([1.0]))


class TestKleinrockCost:
    def test_value_and_gradient(self):
        """Test delay value and gradient below capacity."""
        cost = KleinrockCost(_shared_arc_network())
        x = np.array([2.0, 3.0])
        assert cost.f(x) == pytest.approx(1.0)
        assert cost.g(x) == pytest.approx([0.4, 0.4])
        assert cost.h(x) == pytest.approx([2 * 10 / 125, 2 * 10 / 125])

    def test_infinite_at_capacity(self):
        """Test delay is infinite at or above capacity."""
        cost = KleinrockCost(_shared_arc_network())
        x = np.array([4.0, 6.0])
        assert cost.f(x) == float("inf")
        assert np.all(np.isinf(cost.g(x)))
