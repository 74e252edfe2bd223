from __future__ import annotations

import heapq
import itertools
import math
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from ..errors import EdgeNotFoundError
from ..floorplan import FloorPlan


@dataclass(frozen=True, slots=True)
class GraphEdge:
    src: str
    dest: str
    weight: int


class RoutingGraph:
    """Grafo não direcionado, indexado pelo nome de exibição dos nós.

    Cada aresta é guardada nos dois sentidos; chamadas repetidas de
    `add_edge` criam arestas paralelas.
    """

    def __init__(self) -> None:
        self._adjacency: Dict[str, List[GraphEdge]] = {}

    @classmethod
    def from_floor_plan(cls, plan: FloorPlan) -> "RoutingGraph":
        graph = cls()
        for edge in plan.edges:
            graph.add_edge(plan.node(edge.from_id).name, plan.node(edge.to_id).name, edge.weight)
        return graph

    def add_edge(self, src: str, dest: str, weight: int) -> None:
        if weight < 0:
            raise ValueError("peso negativo")
        self._adjacency.setdefault(src, []).append(GraphEdge(src, dest, weight))
        self._adjacency.setdefault(dest, []).append(GraphEdge(dest, src, weight))

    def __contains__(self, node: str) -> bool:
        return node in self._adjacency

    def nodes(self) -> List[str]:
        return list(self._adjacency)

    def neighbors(self, node: str) -> List[str]:
        return [e.dest for e in self._adjacency.get(node, [])]

    def all_edges(self) -> List[GraphEdge]:
        return [e for edges in self._adjacency.values() for e in edges]

    def has_edge(self, src: str, dest: str) -> bool:
        return any(e.dest == dest for e in self._adjacency.get(src, []))

    def edge_weight(self, src: str, dest: str) -> int:
        weights = [e.weight for e in self._adjacency.get(src, []) if e.dest == dest]
        if not weights:
            raise EdgeNotFoundError(src, dest)
        return min(weights)

    def _dijkstra(self, start: str, end: str | None = None) -> Tuple[Dict[str, float], Dict[str, str]]:
        dist: Dict[str, float] = {start: 0}
        prev: Dict[str, str] = {}
        settled = set()
        counter = itertools.count()  # desempate pela ordem de inserção
        heap: List[Tuple[float, int, str]] = [(0, next(counter), start)]
        while heap:
            d, _, node = heapq.heappop(heap)
            if node in settled:
                continue
            settled.add(node)
            if node == end:
                break
            for edge in self._adjacency.get(node, []):
                nd = d + edge.weight
                if nd < dist.get(edge.dest, math.inf):
                    dist[edge.dest] = nd
                    prev[edge.dest] = node
                    heapq.heappush(heap, (nd, next(counter), edge.dest))
        return dist, prev

    def shortest_path(self, start: str, end: str) -> List[str]:
        """Caminho mais curto de `start` a `end` (inclusive nas duas pontas).

        Devolve ``[]`` se algum dos nós não existir ou não houver caminho,
        e ``[start]`` quando ``start == end``.
        """
        if start not in self._adjacency or end not in self._adjacency:
            return []
        if start == end:
            return [start]
        _, prev = self._dijkstra(start, end)
        if end not in prev:
            return []
        path = [end]
        while path[-1] != start:
            path.append(prev[path[-1]])
        path.reverse()
        return path

    def distances_from(self, start: str) -> Dict[str, float]:
        if start not in self._adjacency:
            return {}
        dist, _ = self._dijkstra(start)
        return dist

    def path_weight(self, path: Sequence[str]) -> int:
        return sum(self.edge_weight(u, v) for u, v in zip(path, path[1:]))
