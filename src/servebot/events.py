from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple, Type, TypeVar

from .models import Order

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SimulationEvent:
    timestamp: float  # unidades de tempo desde o início da rodada


@dataclass(frozen=True, slots=True)
class SimulationStarted(SimulationEvent):
    tables: int
    scheduled_orders: int


@dataclass(frozen=True, slots=True)
class OrderPlaced(SimulationEvent):
    order: Order
    table_name: str


@dataclass(frozen=True, slots=True)
class OrderCooked(SimulationEvent):
    order: Order
    finished_at: float


@dataclass(frozen=True, slots=True)
class RobotDispatched(SimulationEvent):
    trip_id: int
    orders: Tuple[Order, ...]
    stops: Tuple[str, ...]
    route: Tuple[str, ...]
    distance: int


@dataclass(frozen=True, slots=True)
class TableDelivered(SimulationEvent):
    trip_id: int
    table_name: str
    orders: Tuple[Order, ...]


@dataclass(frozen=True, slots=True)
class RobotMovementComplete(SimulationEvent):
    trip_id: int


@dataclass(frozen=True, slots=True)
class SimulationComplete(SimulationEvent):
    error: Optional[str] = None


@dataclass(frozen=True, slots=True)
class SimulationReset(SimulationEvent):
    pass


E = TypeVar("E", bound=SimulationEvent)
Handler = Callable[[E], None]


class EventBus:
    """Pub/sub tipado: o assinante de uma classe recebe também as subclasses."""

    def __init__(self) -> None:
        self._handlers: Dict[Type[SimulationEvent], List[Callable]] = {}

    def subscribe(self, event_type: Type[E], handler: Handler) -> Callable[[], None]:
        self._handlers.setdefault(event_type, []).append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def publish(self, event: SimulationEvent) -> None:
        for cls in type(event).__mro__:
            for handler in list(self._handlers.get(cls, ())):
                try:
                    handler(event)
                except Exception:
                    logger.exception("listener falhou ao tratar %s", type(event).__name__)
