from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd

from ..kitchen.cook_station import CompletedOrder
from ..models import Order


@dataclass(slots=True)
class OrderRecord:
    oid: int
    table_number: int
    table_name: str
    dish: str
    cook_time: float
    placed_at: float

    # Preenchidos durante a simulação
    cook_start: Optional[float] = None
    cooked_at: Optional[float] = None
    dispatched_at: Optional[float] = None
    delivered_at: Optional[float] = None
    trip_id: Optional[int] = None

    def waiting_time(self) -> Optional[float]:
        if self.cook_start is None:
            return None
        return self.cook_start - self.placed_at

    def kitchen_time(self) -> Optional[float]:
        if self.cooked_at is None:
            return None
        return self.cooked_at - self.placed_at

    def serve_time(self) -> Optional[float]:
        if self.delivered_at is None or self.cooked_at is None:
            return None
        return self.delivered_at - self.cooked_at

    def turnaround_time(self) -> Optional[float]:
        if self.delivered_at is None:
            return None
        return self.delivered_at - self.placed_at


@dataclass(slots=True)
class TripRecord:
    trip_id: int
    dispatched_at: float
    stops: Tuple[str, ...]
    route: Tuple[str, ...]
    distance: int
    orders: int
    returned_at: Optional[float] = None

    def duration(self) -> Optional[float]:
        if self.returned_at is None:
            return None
        return self.returned_at - self.dispatched_at


@dataclass(slots=True)
class MetricsSummary:
    orders_placed: int
    orders_delivered: int
    avg_waiting_time: float
    avg_kitchen_time: float
    avg_serve_time: float
    avg_turnaround_time: float
    throughput: float
    trips: int
    total_distance: int
    robot_utilization: float
    max_delivery_queue: int


@dataclass(slots=True)
class MetricsRecorder:
    orders: Dict[int, OrderRecord] = field(default_factory=dict)
    trips: Dict[int, TripRecord] = field(default_factory=dict)
    queue_samples: List[Tuple[float, int]] = field(default_factory=list)

    def note_placed(self, order: Order, table_name: str) -> None:
        self.orders[order.oid] = OrderRecord(
            oid=order.oid,
            table_number=order.table_number,
            table_name=table_name,
            dish=order.dish.name,
            cook_time=order.dish.cook_time,
            placed_at=order.placed_at,
        )

    def note_cooked(self, completed: CompletedOrder) -> None:
        rec = self.orders.get(completed.order.oid)
        if rec is not None:
            rec.cook_start = completed.started_at
            rec.cooked_at = completed.finished_at

    def note_dispatched(self, trip: TripRecord, orders: Iterable[Order]) -> None:
        self.trips[trip.trip_id] = trip
        for order in orders:
            rec = self.orders.get(order.oid)
            if rec is not None:
                rec.dispatched_at = trip.dispatched_at
                rec.trip_id = trip.trip_id

    def note_delivered(self, orders: Iterable[Order], now: float) -> None:
        for order in orders:
            rec = self.orders.get(order.oid)
            if rec is not None:
                rec.delivered_at = now

    def note_returned(self, trip_id: int, now: float) -> None:
        trip = self.trips.get(trip_id)
        if trip is not None:
            trip.returned_at = now

    def note_queue(self, now: float, size: int) -> None:
        self.queue_samples.append((now, size))

    def clear(self) -> None:
        self.orders.clear()
        self.trips.clear()
        self.queue_samples.clear()

    def summary(self, makespan: Optional[float] = None) -> MetricsSummary:
        return summarize(list(self.orders.values()), list(self.trips.values()), self.queue_samples, makespan)


def orders_to_dataframe(records: List[OrderRecord]) -> pd.DataFrame:
    data = [
        {
            "oid": r.oid,
            "table": r.table_name,
            "dish": r.dish,
            "cook_time": r.cook_time,
            "placed_at": r.placed_at,
            "cook_start": r.cook_start,
            "cooked_at": r.cooked_at,
            "dispatched_at": r.dispatched_at,
            "delivered_at": r.delivered_at,
            "trip_id": r.trip_id,
            "waiting_time": r.waiting_time(),
            "kitchen_time": r.kitchen_time(),
            "serve_time": r.serve_time(),
            "turnaround_time": r.turnaround_time(),
        }
        for r in records
    ]
    return pd.DataFrame(data)


def trips_to_dataframe(trips: List[TripRecord]) -> pd.DataFrame:
    data = [
        {
            "trip_id": t.trip_id,
            "dispatched_at": t.dispatched_at,
            "returned_at": t.returned_at,
            "duration": t.duration(),
            "orders": t.orders,
            "stops": " ".join(t.stops),
            "route": " -> ".join(t.route),
            "distance": t.distance,
        }
        for t in trips
    ]
    return pd.DataFrame(data)


def _mean(df: pd.DataFrame, column: str) -> float:
    if df.empty:
        return 0.0
    values = pd.to_numeric(df[column], errors="coerce").dropna()
    return float(values.mean()) if not values.empty else 0.0


def summarize(
    records: List[OrderRecord],
    trips: List[TripRecord],
    queue_samples: List[Tuple[float, int]],
    makespan: Optional[float] = None,
) -> MetricsSummary:
    df = orders_to_dataframe(records)
    df_trips = trips_to_dataframe(trips)

    delivered = 0 if df.empty else int(df["delivered_at"].notna().sum())
    if makespan is None:
        last = pd.to_numeric(df["delivered_at"], errors="coerce").max() if not df.empty else None
        makespan = float(last) if last is not None and pd.notna(last) else 0.0
    throughput = (delivered / makespan) if makespan > 0 else 0.0

    busy = 0.0 if df_trips.empty else float(pd.to_numeric(df_trips["duration"], errors="coerce").fillna(0.0).sum())
    utilization = (busy / makespan) if makespan > 0 else 0.0

    return MetricsSummary(
        orders_placed=len(df),
        orders_delivered=delivered,
        avg_waiting_time=_mean(df, "waiting_time"),
        avg_kitchen_time=_mean(df, "kitchen_time"),
        avg_serve_time=_mean(df, "serve_time"),
        avg_turnaround_time=_mean(df, "turnaround_time"),
        throughput=throughput,
        trips=len(df_trips),
        total_distance=0 if df_trips.empty else int(df_trips["distance"].sum()),
        robot_utilization=min(utilization, 1.0),
        max_delivery_queue=max((size for _, size in queue_samples), default=0),
    )
