"""
Motor da simulação: pedidos -> estações de cozinha -> fila do robô -> entrega.

Todo o estado compartilhado (estações, fila de entrega, robô ocupado) só é
alterado dentro do event loop asyncio do motor: o tick periódico, os timers
dos lotes de pedidos e a corrida de entrega rodam todos nesse loop.
Notificações externas vindas de outras threads são remarcadas para o loop
com ``call_soon_threadsafe`` e conferidas pela época (epoch) e pelo id da
viagem, de modo que callbacks atrasados depois de ``reset()`` não fazem nada.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Set, Tuple

import numpy as np

from ..errors import FloorPlanError, RoutingError, SimulationStateError
from ..events import (
    EventBus,
    OrderCooked,
    OrderPlaced,
    RobotDispatched,
    RobotMovementComplete,
    SimulationComplete,
    SimulationReset,
    SimulationStarted,
    TableDelivered,
)
from ..floorplan import FloorPlan
from ..generators import OrderBatch, OrderWorkload, generate_order_schedule, pick_dishes
from ..kitchen.cook_station import CookStation
from ..kitchen.delivery_queue import DeliveryQueue
from ..models import DEFAULT_MENU, Dish, Order
from ..routing.graph import RoutingGraph
from ..routing.router import DeliveryPlan, DeliveryRouter
from ..routing.validation import validate_floor_plan
from .metrics import MetricsRecorder, MetricsSummary, TripRecord

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SimulationConfig:
    tick_interval: float = 1.0
    time_scale: float = 1.0  # segundos de relógio por unidade de tempo
    batch_size: int = 3
    robot_pace: float = 0.5  # unidades de tempo por unidade de distância
    return_settle: float = 0.5
    completion_grace: float = 5.0
    settle_time: float = 2.0
    external_robot: bool = False
    generate_orders: bool = True
    seed: Optional[int] = None
    workload: OrderWorkload = field(default_factory=OrderWorkload)

    def __post_init__(self) -> None:
        if self.tick_interval <= 0 or self.time_scale <= 0:
            raise ValueError("tick_interval e time_scale precisam ser positivos")
        if self.batch_size < 1:
            raise ValueError("batch_size inválido")
        if self.robot_pace < 0 or self.return_settle < 0:
            raise ValueError("ritmo do robô inválido")
        if self.settle_time < 0 or self.completion_grace <= self.settle_time:
            raise ValueError("completion_grace precisa ser maior que settle_time")


class SimulationState(Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"


@dataclass(frozen=True, slots=True)
class StationStatus:
    dish: Dish
    pending: Tuple[Order, ...]
    finish_at: float


@dataclass(slots=True)
class DeliveryTrip:
    trip_id: int
    orders: Tuple[Order, ...]
    plan: DeliveryPlan
    dispatched_at: float
    by_stop: Dict[str, Tuple[Order, ...]]
    delivered: Set[str] = field(default_factory=set)


class SimulationEngine:
    def __init__(
        self,
        floor_plan: FloorPlan,
        config: Optional[SimulationConfig] = None,
        menu: Sequence[Dish] = DEFAULT_MENU,
        bus: Optional[EventBus] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        if not menu:
            raise ValueError("cardápio vazio")
        if len({d.name for d in menu}) != len(menu):
            raise ValueError("pratos repetidos no cardápio")

        self.floor_plan = floor_plan
        self.config = config or SimulationConfig()
        self.menu: Tuple[Dish, ...] = tuple(menu)
        self.bus = bus or EventBus()
        self.metrics = MetricsRecorder()
        self.delivery_queue = DeliveryQueue()
        self._stations: Dict[str, CookStation] = {d.name: CookStation(d) for d in self.menu}
        self._clock = clock or time.monotonic

        self._state = SimulationState.NOT_STARTED
        self._epoch = 0
        self._oid_seq = itertools.count(1)
        self._trip_seq = itertools.count(1)
        self._rng = np.random.default_rng(self.config.seed)

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._tick_task: Optional[asyncio.Task] = None
        self._delivery_task: Optional[asyncio.Task] = None
        self._batch_handles: List[asyncio.TimerHandle] = []
        self._done: Optional[asyncio.Future] = None

        self._graph: Optional[RoutingGraph] = None
        self._router: Optional[DeliveryRouter] = None
        self._started_at: Optional[float] = None
        self._pending_batches = 0
        self._robot_busy = False
        self._trip: Optional[DeliveryTrip] = None
        self._quiet_since: Optional[float] = None
        self._completed = False

    # --- leitura para a interface -------------------------------------------

    @property
    def state(self) -> SimulationState:
        return self._state

    @property
    def robot_busy(self) -> bool:
        return self._robot_busy

    @property
    def current_trip(self) -> Optional[DeliveryTrip]:
        return self._trip

    @property
    def cook_stations(self) -> Mapping[str, CookStation]:
        return MappingProxyType(self._stations)

    @property
    def routing_graph(self) -> Optional[RoutingGraph]:
        return self._graph

    @property
    def pending_batches(self) -> int:
        return self._pending_batches

    def now(self) -> float:
        if self._started_at is None:
            return 0.0
        return (self._clock() - self._started_at) / self.config.time_scale

    def kitchen_snapshot(self) -> List[StationStatus]:
        return [
            StationStatus(dish=s.dish, pending=s.pending, finish_at=s.peek_finish_time())
            for s in self._stations.values()
        ]

    # --- ciclo de vida -------------------------------------------------------

    def validate(self) -> RoutingGraph:
        return validate_floor_plan(self.floor_plan)

    def start_simulation(self) -> None:
        if self._state is not SimulationState.NOT_STARTED:
            raise SimulationStateError("rodada já iniciada; chame reset() antes de começar outra")
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            raise SimulationStateError("start_simulation precisa de um event loop em execução") from None

        # Reconstrói o grafo a cada rodada para refletir edições na planta
        graph = validate_floor_plan(self.floor_plan)
        kitchen = self.floor_plan.kitchen()

        self._loop = loop
        self._graph = graph
        self._router = DeliveryRouter(graph, kitchen.name, self.floor_plan.table_name)
        self._rng = np.random.default_rng(self.config.seed)
        self._started_at = self._clock()
        self._state = SimulationState.RUNNING
        self._done = loop.create_future()
        epoch = self._epoch

        tables = [(self.floor_plan.table_number(t.id), t.seats) for t in self.floor_plan.tables()]
        schedule: List[OrderBatch] = []
        if self.config.generate_orders:
            schedule = generate_order_schedule(tables, self.config.workload, self._rng)
        for batch in schedule:
            handle = loop.call_later(batch.delay * self.config.time_scale, self._fire_batch, epoch, batch)
            self._batch_handles.append(handle)
        self._pending_batches = len(schedule)

        scheduled = sum(b.size for b in schedule)
        logger.info("simulação iniciada: %d mesas, %d pedidos em %d lotes", len(tables), scheduled, len(schedule))
        self.bus.publish(SimulationStarted(timestamp=0.0, tables=len(tables), scheduled_orders=scheduled))
        if self._epoch == epoch:
            self._tick_task = loop.create_task(self._tick_loop(epoch))

    async def run(self) -> Optional[MetricsSummary]:
        """Inicia a rodada e espera terminar; devolve None se houver reset no meio."""
        self.start_simulation()
        return await self._done

    def reset(self) -> None:
        self._epoch += 1
        self._cancel_timers(include_tick=True)

        for station in self._stations.values():
            station.clear()
        self.delivery_queue.clear()
        self.metrics.clear()
        self._robot_busy = False
        self._trip = None
        self._quiet_since = None
        self._completed = False
        self._started_at = None
        self._pending_batches = 0
        self._graph = None
        self._router = None
        self._state = SimulationState.NOT_STARTED

        done, self._done = self._done, None
        if done is not None and not done.done():
            done.set_result(None)

        logger.info("simulação reiniciada")
        self.bus.publish(SimulationReset(timestamp=0.0))

    def _cancel_timers(self, include_tick: bool) -> None:
        for handle in self._batch_handles:
            handle.cancel()
        self._batch_handles.clear()
        if self._delivery_task is not None and not self._delivery_task.done():
            self._delivery_task.cancel()
        self._delivery_task = None
        if include_tick and self._tick_task is not None and not self._tick_task.done():
            self._tick_task.cancel()
        if include_tick:
            self._tick_task = None

    # --- pedidos -------------------------------------------------------------

    def place_order(self, table_number: int, dish: Dish) -> Order:
        if self._state is not SimulationState.RUNNING:
            raise SimulationStateError("pedidos só podem ser feitos com a simulação em andamento")
        station = self._stations.get(dish.name)
        if station is None or station.dish != dish:
            raise ValueError(f"prato fora do cardápio: {dish.name}")
        table = self.floor_plan.table_by_number(table_number)
        if table is None:
            raise FloorPlanError(f"mesa {table_number} não existe na planta")

        now = self.now()
        order = Order(oid=next(self._oid_seq), table_number=table_number, dish=dish, placed_at=now)
        station.enqueue(order)
        table_name = table.name
        self.metrics.note_placed(order, table_name)
        logger.debug("pedido %s para %s", order, table_name)
        self.bus.publish(OrderPlaced(timestamp=now, order=order, table_name=table_name))
        return order

    def _fire_batch(self, epoch: int, batch: OrderBatch) -> None:
        if epoch != self._epoch or self._state is not SimulationState.RUNNING:
            return
        self._pending_batches -= 1
        for dish in pick_dishes(self._rng, self.menu, batch.size):
            self.place_order(batch.table_number, dish)

    # --- tick ----------------------------------------------------------------

    async def _tick_loop(self, epoch: int) -> None:
        interval = self.config.tick_interval * self.config.time_scale
        while self._epoch == epoch and self._state is SimulationState.RUNNING:
            await asyncio.sleep(interval)
            if self._epoch != epoch:
                break
            self.step(self.now())

    def step(self, now: float) -> None:
        """Um tick: cozinha -> fila do robô -> despacho -> detecção de término."""
        if self._state is not SimulationState.RUNNING:
            return
        epoch = self._epoch

        for station in self._stations.values():
            for completed in station.drain(now):
                self.delivery_queue.add(completed.order)
                self.metrics.note_cooked(completed)
                logger.debug("pronto: %s em %.2f", completed.order, completed.finished_at)
                self.bus.publish(OrderCooked(timestamp=now, order=completed.order, finished_at=completed.finished_at))
                if self._epoch != epoch:
                    return
        self.metrics.note_queue(now, len(self.delivery_queue))

        if not self._robot_busy and len(self.delivery_queue) > 0:
            self._dispatch(now)
            if self._epoch != epoch or self._state is not SimulationState.RUNNING:
                return

        self._check_quiescence(now)

    def _dispatch(self, now: float) -> None:
        orders = self.delivery_queue.dispatch(self.config.batch_size)
        try:
            plan = self._router.plan(orders)
        except RoutingError as exc:
            logger.exception("falha ao planejar a rota do robô")
            self._finish(now, error=str(exc))
            return

        by_stop: Dict[str, List[Order]] = {}
        for order in orders:
            by_stop.setdefault(self.floor_plan.table_name(order.table_number), []).append(order)
        trip = DeliveryTrip(
            trip_id=next(self._trip_seq),
            orders=tuple(orders),
            plan=plan,
            dispatched_at=now,
            by_stop={name: tuple(items) for name, items in by_stop.items()},
        )
        self._robot_busy = True
        self._trip = trip
        self.metrics.note_dispatched(
            TripRecord(
                trip_id=trip.trip_id,
                dispatched_at=now,
                stops=plan.stops,
                route=plan.route,
                distance=plan.total_distance,
                orders=len(orders),
            ),
            orders,
        )
        logger.info("robô saiu (viagem %d) com %d pedidos: %s", trip.trip_id, len(orders), ", ".join(map(str, orders)))
        self.bus.publish(
            RobotDispatched(
                timestamp=now,
                trip_id=trip.trip_id,
                orders=trip.orders,
                stops=plan.stops,
                route=plan.route,
                distance=plan.total_distance,
            )
        )
        if not self.config.external_robot and self._trip is trip:
            self._delivery_task = self._loop.create_task(self._run_delivery(self._epoch, trip))

    def _check_quiescence(self, now: float) -> None:
        if self._completed or now < self.config.completion_grace:
            return
        quiet = (
            len(self.delivery_queue) == 0
            and all(s.is_idle for s in self._stations.values())
            and not self._robot_busy
            and self._pending_batches == 0
        )
        if not quiet:
            self._quiet_since = None
            return
        if self._quiet_since is None:
            self._quiet_since = now
        elif now - self._quiet_since >= self.config.settle_time:
            self._finish(now)

    def _finish(self, now: float, error: Optional[str] = None) -> None:
        if self._completed:
            return
        self._completed = True
        self._state = SimulationState.COMPLETED
        self._cancel_timers(include_tick=False)
        summary = self.metrics.summary(makespan=now)
        if error is None:
            logger.info("simulação concluída em %.1f: %d pedidos entregues", now, summary.orders_delivered)
        else:
            logger.error("simulação interrompida em %.1f: %s", now, error)
        self.bus.publish(SimulationComplete(timestamp=now, error=error))
        if self._done is not None and not self._done.done():
            self._done.set_result(summary)

    # --- robô ----------------------------------------------------------------

    async def _run_delivery(self, epoch: int, trip: DeliveryTrip) -> None:
        scale = self.config.time_scale
        pace = self.config.robot_pace
        elapsed = 0.0
        for distance, table_name in trip.plan.arrival_schedule():
            at = distance * pace
            await asyncio.sleep(max(0.0, at - elapsed) * scale)
            elapsed = at
            self._deliver(epoch, trip.trip_id, table_name)
        end = trip.plan.total_distance * pace + self.config.return_settle
        await asyncio.sleep(max(0.0, end - elapsed) * scale)
        self._complete_trip(epoch, trip.trip_id)

    def notify_delivery(self, table_name: str, trip_id: int) -> None:
        """Entrega feita em `table_name` pela viagem `trip_id` de `RobotDispatched`."""
        self._marshal(self._deliver, self._epoch, trip_id, table_name)

    def notify_robot_movement_complete(self, trip_id: int) -> None:
        self._marshal(self._complete_trip, self._epoch, trip_id)

    def _marshal(self, fn: Callable[..., None], *args) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug("notificação sem event loop ativo ignorada")
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            fn(*args)
        else:
            loop.call_soon_threadsafe(fn, *args)

    def _resolve_trip(self, epoch: int, trip_id: int) -> Optional[DeliveryTrip]:
        trip = self._trip
        if epoch != self._epoch or trip is None or self._state is not SimulationState.RUNNING:
            return None
        if trip_id != trip.trip_id:
            return None
        return trip

    def _deliver(self, epoch: int, trip_id: int, table_name: str) -> None:
        trip = self._resolve_trip(epoch, trip_id)
        if trip is None:
            logger.debug("entrega atrasada para %s ignorada", table_name)
            return
        if table_name in trip.delivered:
            return
        orders = trip.by_stop.get(table_name)
        if orders is None:
            logger.debug("robô passou por %s sem entrega", table_name)
            return
        trip.delivered.add(table_name)
        now = self.now()
        self.metrics.note_delivered(orders, now)
        logger.info("entregue em %s: %s", table_name, ", ".join(o.dish.name for o in orders))
        self.bus.publish(TableDelivered(timestamp=now, trip_id=trip.trip_id, table_name=table_name, orders=orders))

    def _complete_trip(self, epoch: int, trip_id: int) -> None:
        trip = self._resolve_trip(epoch, trip_id)
        if trip is None:
            logger.debug("fim de movimento atrasado ignorado (viagem %s)", trip_id)
            return
        missing = [name for name in trip.by_stop if name not in trip.delivered]
        if missing:
            logger.warning("viagem %d voltou sem entregar em: %s", trip.trip_id, ", ".join(missing))

        now = self.now()
        self._robot_busy = False
        self._trip = None
        self._delivery_task = None
        self.metrics.note_returned(trip.trip_id, now)
        logger.info("robô de volta à cozinha (viagem %d)", trip.trip_id)
        self.bus.publish(RobotMovementComplete(timestamp=now, trip_id=trip.trip_id))
