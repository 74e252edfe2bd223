from __future__ import annotations

import logging

from ..errors import FloorPlanValidationError
from ..floorplan import FloorPlan
from .graph import RoutingGraph

logger = logging.getLogger(__name__)


def validate_floor_plan(plan: FloorPlan) -> RoutingGraph:
    """Confere se a planta pode ser simulada e devolve o grafo de rotas.

    Exige uma cozinha e que toda mesa seja alcançável a partir dela.
    """
    kitchen = plan.kitchen()
    if kitchen is None:
        raise FloorPlanValidationError("a planta não tem cozinha (K)")

    graph = RoutingGraph.from_floor_plan(plan)
    reachable = graph.distances_from(kitchen.name)
    unreachable = [t.name for t in plan.tables() if t.name not in reachable]
    if unreachable:
        for name in unreachable:
            logger.warning("mesa %s não é alcançável a partir da cozinha", name)
        raise FloorPlanValidationError(
            "mesas inalcançáveis a partir da cozinha: " + ", ".join(unreachable),
            tables=unreachable,
        )
    logger.info("planta válida: %d mesas, %d caminhos", len(plan.tables()), len(plan.edges))
    return graph
