from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Tuple

from ..models import Dish, Order


@dataclass(frozen=True, slots=True)
class CompletedOrder:
    order: Order
    started_at: float
    finished_at: float


class CookStation:
    """Fila FIFO de um prato com um único cozinheiro (não preemptivo).

    O término de cada pedido é calculado, não cronometrado:
    ``max(available_at, order.placed_at) + dish.cook_time``.
    """

    def __init__(self, dish: Dish) -> None:
        self.dish = dish
        self._queue: Deque[Order] = deque()
        # Instante em que o cozinheiro fica livre; nunca diminui
        self.available_at: float = 0.0

    def enqueue(self, order: Order) -> None:
        if order.dish != self.dish:
            raise ValueError(f"pedido de {order.dish.name} na estação de {self.dish.name}")
        self._queue.append(order)

    def _finish_time(self, order: Order) -> float:
        return max(self.available_at, order.placed_at) + self.dish.cook_time

    def drain(self, now: float) -> List[CompletedOrder]:
        done: List[CompletedOrder] = []
        while self._queue:
            head = self._queue[0]
            finish = self._finish_time(head)
            if finish > now:
                # Cabeça ainda no fogo: a fila para aqui
                break
            self._queue.popleft()
            self.available_at = finish
            done.append(CompletedOrder(order=head, started_at=finish - self.dish.cook_time, finished_at=finish))
        return done

    def advance(self, now: float) -> List[Order]:
        return [c.order for c in self.drain(now)]

    def peek_finish_time(self) -> float:
        if not self._queue:
            return self.available_at
        return self._finish_time(self._queue[0])

    @property
    def pending(self) -> Tuple[Order, ...]:
        return tuple(self._queue)

    @property
    def is_idle(self) -> bool:
        return not self._queue

    def clear(self) -> None:
        self._queue.clear()
        self.available_at = 0.0

    def __len__(self) -> int:
        return len(self._queue)
