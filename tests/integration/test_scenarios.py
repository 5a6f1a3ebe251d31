"""End-to-end scenarios exercising the network front ends."""

import sys
from pathlib import Path

import numpy as np
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from convex_flow import (  # noqa: E402
    Arc,
    BPRCost,
    Commodity,
    KleinrockCost,
    KleinrockFlow,
    MultiCommodityFlow,
    MultiCommodityNetwork,
    Network,
    QuarticCost,
    SingleCommodityFlow,
    SolverOptions,
    compute_bottleneck_arcs,
    validate_flow,
)


def _bottleneck() -> MultiCommodityNetwork:
    # Direct arc 0 -> 1 is cheap but too small for both commodities;
    # the detour 0 -> 2 -> 1 is expensive and roomy.
    return MultiCommodityNetwork(
        num_vertices=3,
        arcs=[Arc(0, 1, 8.0, cost=1.0), Arc(0, 2, 20.0, cost=3.0), Arc(2, 1, 20.0, cost=3.0)],
        commodities=[Commodity(0, 1, 6.0), Commodity(0, 1, 6.0)],
    )


def _triangle() -> Network:
    return Network(
        3,
        [Arc(0, 1, 10.0), Arc(1, 2, 10.0), Arc(0, 2, 4.0)],
        supplies=[6.0, 0.0, -6.0],
    )


class TestBottleneck:
    def test_dijkstra_overloads_direct_arc(self):
        net = _bottleneck()
        flow = MultiCommodityFlow(BPRCost(net), net)
        x = flow.solve_by_dijkstra()
        np.testing.assert_array_equal(net.aggregate(x), [12.0, 0.0, 0.0])
        assert validate_flow(net, x).capacity_violations == [0]

    def test_socp_repair_respects_capacity(self):
        net = _bottleneck()
        cost = BPRCost(net)
        flow = MultiCommodityFlow(cost, net)
        x = flow.solve_by_dijkstra_and_socp()

        totals = net.aggregate(x)
        assert totals[0] <= 8.0 + 1e-6
        np.testing.assert_allclose(totals, [8.0, 4.0, 4.0], atol=1e-4)
        assert validate_flow(net, x, tolerance=1e-5).is_valid
        # 8 * 1.03 on the direct arc plus two lightly loaded detour arcs.
        assert cost.f(x) == pytest.approx(32.241152, rel=1e-5)

        bottlenecks = compute_bottleneck_arcs(net, x)
        assert [b.index for b in bottlenecks] == [0]

    def test_engine_and_socp_agree(self):
        net = _bottleneck()
        cost = BPRCost(net)
        engine_x = MultiCommodityFlow(cost, net).optimize()
        socp_x = MultiCommodityFlow(cost, net).solve_by_dijkstra_and_socp()
        assert cost.f(engine_x) == pytest.approx(cost.f(socp_x), rel=1e-5)

    def test_result_reports_last_engine(self):
        net = _bottleneck()
        flow = MultiCommodityFlow(BPRCost(net), net)
        result = flow.result(flow.solve_by_dijkstra_and_socp())
        assert result.status in {"optimal", "stalled"}
        np.testing.assert_allclose(result.arc_flows, [8.0, 4.0, 4.0], atol=1e-4)


class TestKleinrock:
    def _network(self) -> MultiCommodityNetwork:
        return MultiCommodityNetwork(
            num_vertices=2,
            arcs=[Arc(0, 1, 10.0), Arc(0, 1, 5.0)],
            commodities=[Commodity(0, 1, 6.0), Commodity(0, 1, 3.0)],
        )

    def test_delay_split_matches_closed_form(self):
        net = self._network()
        flow = KleinrockFlow(net)
        x = flow.optimize()
        totals = net.aggregate(x)

        # Equal marginal delay c / (c - y)^2 on both arcs.
        slack_small = 6.0 / (1.0 + np.sqrt(2.0))
        expected = np.array([10.0 - np.sqrt(2.0) * slack_small, 5.0 - slack_small])
        np.testing.assert_allclose(totals, expected, atol=5e-3)
        assert KleinrockCost(net).f(x) == pytest.approx(
            np.sum(expected / (net.capacities - expected)), rel=1e-4
        )

    def test_iterates_stay_below_capacity(self):
        net = self._network()
        flow = KleinrockFlow(net, options=SolverOptions(capacity_headroom=0.01))
        x = flow.optimize()
        assert np.all(net.aggregate(x) <= 0.99 * net.capacities + 1e-6)
        assert np.isfinite(KleinrockCost(net).f(x))
        # The tightened capacity rows were added to the engine's system.
        assert flow.engine.constraints.a_ub.shape[0] == 2

    def test_congested_start_is_repaired(self):
        net = MultiCommodityNetwork(
            num_vertices=2,
            arcs=[Arc(0, 1, 10.0), Arc(0, 1, 10.0)],
            commodities=[Commodity(0, 1, 12.0)],
        )
        flow = KleinrockFlow(net)
        # All-or-nothing puts 12 units on a 10-unit arc; phase 1 must move some off.
        x = flow.optimize()
        np.testing.assert_allclose(net.aggregate(x), [6.0, 6.0], atol=1e-3)


class TestSingleCommodity:
    def test_linear_and_quadratic_proxies_agree(self):
        net = _triangle()
        cost = QuarticCost(net)
        linear_x = SingleCommodityFlow(cost, net).solve_linear()
        quadratic_x = SingleCommodityFlow(cost, net).solve_quadratic()
        assert cost.f(linear_x) == pytest.approx(cost.f(quadratic_x), rel=1e-6)
        np.testing.assert_allclose(linear_x, quadratic_x, atol=1e-3)

    def test_optimum_is_interior(self):
        net = _triangle()
        x = SingleCommodityFlow(QuarticCost(net), net).solve_linear()
        # Stationarity of 0.008 t^3 + 16.5 t - 74.5 on the two-arc path.
        t = x[0]
        assert x[1] == pytest.approx(t, abs=1e-6)
        assert 0.008 * t**3 + 16.5 * t - 74.5 == pytest.approx(0.0, abs=1e-3)
        assert validate_flow(net, x).is_valid

    def test_phases_can_run_separately(self):
        net = _triangle()
        flow = SingleCommodityFlow(QuarticCost(net), net)
        feasible = flow.phase1()
        final = flow.phase2(feasible)
        assert QuarticCost(net).f(final) <= QuarticCost(net).f(feasible)
        assert flow.result(final).status in {"optimal", "stalled"}
