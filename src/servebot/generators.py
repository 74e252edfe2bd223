from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

import numpy as np

from .models import Dish


@dataclass(slots=True)
class OrderWorkload:
    min_delay: float = 1.0
    max_delay: float = 5.0
    max_batch: int = 3
    fewer_orders: int = 1  # total mínimo: lugares - fewer_orders (no mínimo 1)
    extra_orders: int = 3  # total máximo: lugares + extra_orders

    def __post_init__(self) -> None:
        if not 0 <= self.min_delay < self.max_delay:
            raise ValueError("intervalo de atraso inválido")
        if self.max_batch < 1:
            raise ValueError("max_batch inválido")
        if self.fewer_orders < 0 or self.extra_orders < 0:
            raise ValueError("limites de pedidos inválidos")


@dataclass(frozen=True, slots=True)
class OrderBatch:
    table_number: int
    size: int
    delay: float  # contado a partir do início da rodada, não do lote anterior


def generate_order_schedule(
    tables: Iterable[Tuple[int, int]],
    workload: OrderWorkload,
    rng: np.random.Generator,
) -> List[OrderBatch]:
    """Sorteia os lotes de pedidos de cada mesa, dados pares (número, lugares)."""
    batches: List[OrderBatch] = []
    for number, seats in tables:
        low = max(1, seats - workload.fewer_orders)
        high = max(low, seats + workload.extra_orders)
        remaining = int(rng.integers(low, high, endpoint=True))
        while remaining > 0:
            size = int(rng.integers(1, min(workload.max_batch, remaining), endpoint=True))
            delay = float(rng.uniform(workload.min_delay, workload.max_delay))
            batches.append(OrderBatch(table_number=number, size=size, delay=delay))
            remaining -= size
    batches.sort(key=lambda b: b.delay)
    return batches


def pick_dishes(rng: np.random.Generator, menu: Sequence[Dish], n: int) -> List[Dish]:
    if not menu:
        raise ValueError("cardápio vazio")
    return [menu[int(i)] for i in rng.integers(0, len(menu), size=n)]
