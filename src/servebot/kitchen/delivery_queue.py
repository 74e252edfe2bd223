from __future__ import annotations

from collections import deque
from typing import Deque, List, Tuple

from ..models import Order


class DeliveryQueue:
    def __init__(self) -> None:
        self._queue: Deque[Order] = deque()

    def add(self, order: Order) -> None:
        self._queue.append(order)

    def dispatch(self, max_count: int) -> List[Order]:
        """Retira até `max_count` pedidos prontos, os mais antigos primeiro."""
        if max_count < 0:
            raise ValueError("max_count inválido")
        trip: List[Order] = []
        while self._queue and len(trip) < max_count:
            trip.append(self._queue.popleft())
        return trip

    def peek(self) -> Tuple[Order, ...]:
        return tuple(self._queue)

    def clear(self) -> None:
        self._queue.clear()

    def __len__(self) -> int:
        return len(self._queue)
