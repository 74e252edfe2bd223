from __future__ import annotations

import pytest

from servebot.errors import EdgeNotFoundError
from servebot.models import Dish, Order
from servebot.routing.graph import RoutingGraph
from servebot.routing.router import DeliveryRouter

SOUP = Dish("Wonton Soup", 1)


def _orders(*tables):
    return [Order(oid=i, table_number=t, dish=SOUP, placed_at=0.0) for i, t in enumerate(tables, start=1)]


@pytest.fixture
def router(plan):
    return DeliveryRouter(RoutingGraph.from_floor_plan(plan), "K", plan.table_name)


class TestDeliveryRouter:

    def test_same_table_collapses_to_one_stop(self, router):
        p = router.plan(_orders(1, 1, 1))
        assert p.stops == ("T2-1",)
        assert p.route == ("K", "J1", "T2-1", "J1", "K")
        assert p.legs == (3, 3, 3, 3)
        assert p.total_distance == 12
        assert p.arrival_schedule() == [(6, "T2-1")]

    def test_nearest_stop_first(self, router):
        p = router.plan(_orders(1, 3))
        assert p.stops == ("T6-3", "T2-1")
        assert p.route == ("K", "T6-3", "K", "J1", "T2-1", "J1", "K")
        assert p.total_distance == 20
        assert p.arrival_schedule() == [(4, "T6-3"), (14, "T2-1")]

    def test_three_stops_tie_keeps_batch_order(self, router):
        p = router.plan(_orders(1, 2, 3))
        assert p.stops == ("T6-3", "T2-1", "T4-2")
        assert p.route[0] == "K" and p.route[-1] == "K"
        assert p.route == ("K", "T6-3", "K", "J1", "T2-1", "J1", "T4-2", "J1", "K")
        assert p.total_distance == 26

    def test_cumulative_distances(self, router):
        p = router.plan(_orders(3))
        assert p.cumulative_distances() == [0, 4, 8]

    def test_solve_order_trivial(self, router):
        assert router.solve_order("K", []) == []
        assert router.solve_order("K", ["T4-2"]) == ["T4-2"]

    def test_unknown_table_leg_is_skipped(self, router):
        p = router.plan(_orders(99))
        assert p.stops == ("99",)
        assert p.route == ("K",)
        assert p.total_distance == 0

    def test_route_must_follow_edges(self, router):
        with pytest.raises(EdgeNotFoundError):
            router.route_legs(["K", "T2-1"])
