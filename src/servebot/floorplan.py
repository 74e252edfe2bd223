"""
Planta do salão: mesas, junções e a cozinha ligadas por caminhos na grade.

O editor gráfico (fora deste pacote) monta a planta com esta API; o motor
de simulação apenas lê a planta ao iniciar uma rodada.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from .errors import DuplicateKitchenError, FloorPlanError

Cell = Tuple[int, int]


class NodeKind(Enum):
    TABLE = "table"
    JUNCTION = "junction"
    KITCHEN = "kitchen"


class TableType(Enum):
    T2 = 2
    T4 = 4
    T6 = 6
    T8 = 8
    T10 = 10

    @property
    def seats(self) -> int:
        return self.value


KITCHEN_NAME = "K"


@dataclass(frozen=True, slots=True)
class Node:
    id: str
    name: str
    position: Cell  # apenas para desenho; o roteamento ignora
    kind: NodeKind
    seats: int = 0


@dataclass(frozen=True, slots=True)
class Edge:
    from_id: str
    to_id: str
    cells: Tuple[Cell, ...]  # células intermediárias, sem as pontas

    @property
    def weight(self) -> int:
        return len(self.cells)

    def connects(self, a: str, b: str) -> bool:
        return (self.from_id == a and self.to_id == b) or (self.from_id == b and self.to_id == a)


@dataclass(frozen=True, slots=True)
class NodeInfo:
    kind: NodeKind
    number: int


class FloorPlan:
    def __init__(self) -> None:
        self._nodes: Dict[str, Node] = {}
        self._edges: List[Edge] = []
        self._numbers: Dict[str, int] = {}
        self._next_number: Dict[NodeKind, int] = {kind: 1 for kind in NodeKind}
        self._kitchen_id: Optional[str] = None

    # --- nós -----------------------------------------------------------------

    def add_node(self, position: Cell, kind: NodeKind, seats: int = 0) -> Node:
        if kind is NodeKind.KITCHEN and self._kitchen_id is not None:
            raise DuplicateKitchenError("só é permitida uma cozinha (K)")
        if kind is NodeKind.TABLE and seats <= 0:
            raise FloorPlanError("mesa precisa de ao menos um lugar")
        if kind is not NodeKind.TABLE:
            seats = 0

        number = self._next_number[kind]
        if kind is NodeKind.TABLE:
            name = f"T{seats}-{number}"
        elif kind is NodeKind.JUNCTION:
            name = f"J{number}"
        else:
            name = KITCHEN_NAME

        node = Node(id=str(len(self._nodes) + 1), name=name, position=tuple(position), kind=kind, seats=seats)
        self._nodes[node.id] = node
        self._numbers[node.id] = number
        self._next_number[kind] = number + 1
        if kind is NodeKind.KITCHEN:
            self._kitchen_id = node.id
        return node

    def add_table(self, position: Cell, table_type: TableType | int) -> Node:
        seats = table_type.seats if isinstance(table_type, TableType) else int(table_type)
        return self.add_node(position, NodeKind.TABLE, seats=seats)

    def add_junction(self, position: Cell) -> Node:
        return self.add_node(position, NodeKind.JUNCTION)

    def add_kitchen(self, position: Cell) -> Node:
        return self.add_node(position, NodeKind.KITCHEN)

    @property
    def nodes(self) -> List[Node]:
        return list(self._nodes.values())

    def node(self, node_id: str) -> Node:
        try:
            return self._nodes[node_id]
        except KeyError:
            raise FloorPlanError(f"nó desconhecido: {node_id}") from None

    def node_by_name(self, name: str) -> Optional[Node]:
        for node in self._nodes.values():
            if node.name == name:
                return node
        return None

    def node_at(self, cell: Cell) -> Optional[Node]:
        cell = tuple(cell)
        for node in self._nodes.values():
            if node.position == cell:
                return node
        return None

    def node_info(self, node_id: str) -> Optional[NodeInfo]:
        node = self._nodes.get(node_id)
        if node is None:
            return None
        return NodeInfo(kind=node.kind, number=self._numbers[node_id])

    def kitchen_id(self) -> Optional[str]:
        return self._kitchen_id

    def kitchen(self) -> Optional[Node]:
        if self._kitchen_id is None:
            return None
        return self._nodes[self._kitchen_id]

    def tables(self) -> List[Node]:
        return [n for n in self._nodes.values() if n.kind is NodeKind.TABLE]

    def table_number(self, node_id: str) -> int:
        info = self.node_info(node_id)
        if info is None or info.kind is not NodeKind.TABLE:
            raise FloorPlanError(f"{node_id} não é uma mesa")
        return info.number

    def table_by_number(self, number: int) -> Optional[Node]:
        for node in self.tables():
            if self._numbers[node.id] == number:
                return node
        return None

    def table_name(self, number: int) -> str:
        """Nome de exibição (ex.: "T4-2") da mesa de número `number`.

        Se não houver mesa com esse número devolve o próprio número como texto.
        """
        node = self.table_by_number(number)
        return node.name if node is not None else str(number)

    # --- arestas -------------------------------------------------------------

    @property
    def edges(self) -> List[Edge]:
        return list(self._edges)

    def add_edge(self, from_id: str, to_id: str, cells: Iterable[Cell] = ()) -> Edge:
        self.node(from_id)
        self.node(to_id)
        if from_id == to_id:
            raise FloorPlanError("caminho precisa ligar dois nós diferentes")
        if self.find_edge(from_id, to_id) is not None:
            raise FloorPlanError("já existe um caminho entre esses nós")
        return self._append_edge(from_id, to_id, cells)

    def _append_edge(self, from_id: str, to_id: str, cells: Iterable[Cell]) -> Edge:
        edge = Edge(from_id=from_id, to_id=to_id, cells=tuple(tuple(c) for c in cells))
        self._edges.append(edge)
        return edge

    def find_edge(self, a: str, b: str) -> Optional[Edge]:
        for edge in self._edges:
            if edge.connects(a, b):
                return edge
        return None

    def remove_edge(self, a: str, b: str) -> int:
        before = len(self._edges)
        self._edges = [e for e in self._edges if not e.connects(a, b)]
        return before - len(self._edges)

    def split_edge(self, a: str, b: str, cell: Cell) -> Node:
        """Divide o caminho a–b na célula `cell`, inserindo uma junção ali.

        Se já existir um nó nessa célula ele é reaproveitado. O caminho
        antigo é substituído por dois: a–junção e junção–b.
        """
        edge = self.find_edge(a, b)
        if edge is None:
            raise FloorPlanError(f"não existe caminho entre {a} e {b}")
        cell = tuple(cell)
        try:
            idx = edge.cells.index(cell)
        except ValueError:
            raise FloorPlanError(f"célula {cell} não pertence ao caminho") from None

        mid = self.node_at(cell)
        if mid is None:
            mid = self.add_junction(cell)
        elif mid.id in (edge.from_id, edge.to_id):
            raise FloorPlanError("não é possível dividir o caminho em uma de suas pontas")

        self.remove_edge(edge.from_id, edge.to_id)
        self._append_edge(edge.from_id, mid.id, edge.cells[:idx])
        self._append_edge(mid.id, edge.to_id, edge.cells[idx + 1:])
        return mid

    def clear(self) -> None:
        self._nodes.clear()
        self._edges.clear()
        self._numbers.clear()
        self._next_number = {kind: 1 for kind in NodeKind}
        self._kitchen_id = None
