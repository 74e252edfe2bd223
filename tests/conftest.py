from __future__ import annotations

import matplotlib

matplotlib.use("Agg")

import pytest

from servebot.floorplan import FloorPlan, TableType
from servebot.models import Dish


class FakeClock:
    def __init__(self) -> None:
        self.t = 0.0

    def __call__(self) -> float:
        return self.t


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def quick_menu():
    return (Dish("Water", 1), Dish("Egg Tart", 1), Dish("Wonton Soup", 1))


@pytest.fixture
def plan() -> FloorPlan:
    """
    K --(2)-- J1 --(2)-- T4-2
    |         |
   (3)       (2)
    |         |
   T6-3      T2-1
    """
    p = FloorPlan()
    k = p.add_kitchen((0, 0))
    t1 = p.add_table((3, 3), TableType.T2)
    t2 = p.add_table((6, 0), TableType.T4)
    t3 = p.add_table((0, 4), TableType.T6)
    j1 = p.add_junction((3, 0))
    p.add_edge(k.id, j1.id, [(1, 0), (2, 0)])
    p.add_edge(j1.id, t1.id, [(3, 1), (3, 2)])
    p.add_edge(j1.id, t2.id, [(4, 0), (5, 0)])
    p.add_edge(k.id, t3.id, [(0, 1), (0, 2), (0, 3)])
    return p
