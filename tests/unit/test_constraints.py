"""Unit tests for constraint systems and their generators."""

import sys
from pathlib import Path

import numpy as np
import pytest
from scipy import sparse

PROJECT_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from convex_flow.constraints import (  # noqa: E402
    FlowConstraintGenerator,
    KleinrockConstraintGenerator,
    MultiCommodityConstraintGenerator,
)
from convex_flow.data import (  # noqa: E402
    Arc,
    Commodity,
    MultiCommodityNetwork,
    Network,
    SolverOptions,
)
from convex_flow.exceptions import ValidationError  # noqa: E402
from convex_flow.proxy import ArcCostProxy, CurvatureProxy  # noqa: E402


def _chain() -> Network:
    return Network(
        3,
        [Arc(0, 1, 10.0, cost=1.0), Arc(1, 2, 8.0, cost=2.0)],
        supplies=[5.0, 0.0, -5.0],
    )


def _two_commodities() -> MultiCommodityNetwork:
    return MultiCommodityNetwork(
        num_vertices=3,
        arcs=[Arc(0, 1, 8.0, cost=1.0), Arc(0, 2, 20.0, cost=3.0), Arc(2, 1, 20.0, cost=3.0)],
        commodities=[Commodity(0, 1, 6.0), Commodity(0, 1, 6.0)],
    )


class TestFlowConstraintGenerator:
    def test_incidence_matrix(self):
        """Test node-arc incidence rows use tail +1 and head -1."""
        system = FlowConstraintGenerator(_chain()).generate()
        np.testing.assert_array_equal(
            system.a_eq.toarray(), [[1.0, 0.0], [-1.0, 1.0], [0.0, -1.0]]
        )
        np.testing.assert_array_equal(system.b_eq, [5.0, 0.0, -5.0])
        assert system.a_ub.shape == (0, 2)
        assert system.bounds == [(0.0, 10.0), (0.0, 8.0)]

    def test_violation(self):
        """Test violation reports the largest constraint breach."""
        system = FlowConstraintGenerator(_chain()).generate()
        assert system.violation(np.array([5.0, 5.0])) == 0.0
        assert system.violation(np.array([5.0, 4.0])) == pytest.approx(1.0)
        assert system.violation(np.array([5.0, 9.0])) == pytest.approx(4.0)
        assert system.is_satisfied(np.array([5.0, 5.0 + 1e-9]), 1e-6)

    def test_default_start_and_proxy(self):
        """Test default start vector and proxy strategy."""
        generator = FlowConstraintGenerator(_chain())
        np.testing.assert_array_equal(generator.initial_solution(), [0.0, 0.0])
        assert generator.deferred_constraints() is None
        proxy = generator.proxy_strategy(SolverOptions())
        assert isinstance(proxy, ArcCostProxy)
        np.testing.assert_array_equal(proxy.costs, [1.0, 2.0])

    def test_add_inequalities(self):
        """Test appending inequality rows to the system."""
        system = FlowConstraintGenerator(_chain()).generate()
        system.add_inequalities(sparse.csr_matrix([[1.0, 1.0]]), np.array([9.0]))
        assert system.a_ub.shape == (1, 2)
        assert system.violation(np.array([5.0, 5.0])) == pytest.approx(1.0)

    def test_add_inequalities_column_mismatch(self):
        """Test appended rows with the wrong width are rejected."""
        system = FlowConstraintGenerator(_chain()).generate()
        with pytest.raises(ValidationError):
            system.add_inequalities(sparse.csr_matrix([[1.0, 1.0, 1.0]]), np.array([1.0]))


class TestMultiCommodityConstraintGenerator:
    def test_conservation_rows_per_commodity(self):
        """Test one conservation block per commodity."""
        generator = MultiCommodityConstraintGenerator(_two_commodities())
        a_eq, b_eq = generator.conservation()
        assert a_eq.shape == (6, 6)
        np.testing.assert_array_equal(b_eq, [6.0, -6.0, 0.0, 6.0, -6.0, 0.0])
        # Commodity 1 on arc 0 is column 1; it leaves vertex 0 and enters vertex 1.
        column = a_eq.toarray()[:, 1]
        np.testing.assert_array_equal(column, [0.0, 0.0, 0.0, 1.0, -1.0, 0.0])

    def test_capacity_rows_couple_commodities(self):
        """Test capacity rows sum flow across commodities."""
        system = MultiCommodityConstraintGenerator(_two_commodities()).generate()
        np.testing.assert_array_equal(
            system.a_ub.toarray(),
            [
                [1.0, 1.0, 0.0, 0.0, 0.0, 0.0],
                [0.0, 0.0, 1.0, 1.0, 0.0, 0.0],
                [0.0, 0.0, 0.0, 0.0, 1.0, 1.0],
            ],
        )
        np.testing.assert_array_equal(system.b_ub, [8.0, 20.0, 20.0])
        np.testing.assert_array_equal(system.upper, [8.0, 8.0, 20.0, 20.0, 20.0, 20.0])

    def test_all_or_nothing_on_bottleneck_violates_capacity(self):
        """Test all-or-nothing start overloads a bottleneck arc."""
        system = MultiCommodityConstraintGenerator(_two_commodities()).generate()
        direct = np.array([6.0, 6.0, 0.0, 0.0, 0.0, 0.0])
        assert system.violation(direct) == pytest.approx(4.0)

    def test_arc_flows_and_proxy(self):
        """Test arc flows and default proxy for the delay generator."""
        generator = MultiCommodityConstraintGenerator(_two_commodities())
        np.testing.assert_array_equal(
            generator.arc_flows(np.array([1.0, 2.0, 3.0, 4.0, 5.0, 6.0])), [3.0, 7.0, 11.0]
        )
        proxy = generator.proxy_strategy(SolverOptions())
        np.testing.assert_array_equal(proxy.costs, [1.0, 1.0, 3.0, 3.0, 3.0, 3.0])


class TestKleinrockConstraintGenerator:
    def test_capacity_rows_are_deferred(self):
        """Test tightened capacity rows are added later."""
        generator = KleinrockConstraintGenerator(_two_commodities(), headroom=0.01)
        system = generator.generate()
        assert system.a_ub.shape == (0, 6)
        a_ub, b_ub = generator.deferred_constraints()
        assert a_ub.shape == (3, 6)
        np.testing.assert_allclose(b_ub, [7.92, 19.8, 19.8])

    def test_default_proxy_is_curvature(self):
        """Test the default proxy strategy uses curvature."""
        generator = KleinrockConstraintGenerator(_two_commodities())
        proxy = generator.proxy_strategy(SolverOptions(proximal_weight=2.0))
        assert isinstance(proxy, CurvatureProxy)
        assert proxy.weight == 2.0
