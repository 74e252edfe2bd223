from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from ..models import Order
from .graph import RoutingGraph

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DeliveryPlan:
    stops: Tuple[str, ...]
    route: Tuple[str, ...]
    legs: Tuple[int, ...]  # custo de cada passo da rota (peso + 1)
    total_distance: int

    def cumulative_distances(self) -> List[int]:
        out = [0]
        for leg in self.legs:
            out.append(out[-1] + leg)
        return out

    def arrival_schedule(self) -> List[Tuple[int, str]]:
        """(distância percorrida, parada) na primeira chegada a cada parada."""
        cumulative = self.cumulative_distances()
        first_seen: Dict[str, int] = {}
        for idx, node in enumerate(self.route):
            if idx > 0 and node in self.stops and node not in first_seen:
                first_seen[node] = cumulative[idx]
        return sorted(((d, name) for name, d in first_seen.items()), key=lambda item: item[0])


class DeliveryRouter:
    """Planeja a volta do robô: cozinha -> paradas -> cozinha.

    A ordem das paradas usa vizinho mais próximo (TSP simplificado),
    suficiente para lotes de até 3 pedidos.
    """

    def __init__(self, graph: RoutingGraph, kitchen: str, resolve_table: Callable[[int], str]) -> None:
        self.graph = graph
        self.kitchen = kitchen
        self.resolve_table = resolve_table

    def stops_for(self, orders: Sequence[Order]) -> List[str]:
        stops: List[str] = []
        for order in orders:
            name = self.resolve_table(order.table_number)
            if name not in stops:
                stops.append(name)
        return stops

    def _hops(self, src: str, dest: str) -> Optional[int]:
        path = self.graph.shortest_path(src, dest)
        if not path:
            return None
        return len(path) - 1

    def solve_order(self, start: str, stops: Sequence[str]) -> List[str]:
        if len(stops) <= 1:
            return list(stops)

        result: List[str] = []
        remaining = list(stops)
        current = start
        while remaining:
            nearest: Optional[str] = None
            best: Optional[int] = None
            for node in remaining:
                hops = self._hops(current, node)
                if hops is None:
                    continue
                if best is None or hops < best:
                    best, nearest = hops, node
            if nearest is None:
                logger.error("nenhuma parada alcançável a partir de %s: %s", current, remaining)
                break
            result.append(nearest)
            remaining.remove(nearest)
            current = nearest
        return result

    def build_route(self, stops: Sequence[str]) -> List[str]:
        route = [self.kitchen]
        current = self.kitchen
        for dest in list(stops) + [self.kitchen]:
            if dest == current:
                continue
            segment = self.graph.shortest_path(current, dest)
            if len(segment) < 2:
                # Não deveria acontecer depois da validação da planta
                logger.error("sem caminho de %s para %s; trecho ignorado", current, dest)
                continue
            route.extend(segment[1:])
            current = dest
        return route

    def route_legs(self, route: Sequence[str]) -> List[int]:
        # Levanta EdgeNotFoundError se a rota não seguir arestas do grafo
        return [self.graph.edge_weight(u, v) + 1 for u, v in zip(route, route[1:])]

    def plan(self, orders: Sequence[Order]) -> DeliveryPlan:
        stops = self.solve_order(self.kitchen, self.stops_for(orders))
        route = self.build_route(stops)
        legs = self.route_legs(route)
        plan = DeliveryPlan(stops=tuple(stops), route=tuple(route), legs=tuple(legs), total_distance=sum(legs))
        logger.info("rota: %s (distância %d)", " -> ".join(plan.route), plan.total_distance)
        return plan
