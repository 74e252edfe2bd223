from __future__ import annotations

import asyncio

import pytest

from servebot.errors import EdgeNotFoundError, FloorPlanError, FloorPlanValidationError, SimulationStateError
from servebot.events import (
    OrderCooked,
    OrderPlaced,
    RobotDispatched,
    RobotMovementComplete,
    SimulationComplete,
    SimulationEvent,
    SimulationReset,
    SimulationStarted,
    TableDelivered,
)
from servebot.floorplan import TableType
from servebot.models import Dish
from servebot.routing.router import DeliveryRouter
from servebot.sim.engine import SimulationConfig, SimulationEngine, SimulationState


def _external_engine(plan, menu, clock):
    # Tick longo: nos testes com relógio falso o step() é chamado à mão
    cfg = SimulationConfig(tick_interval=1000.0, external_robot=True, generate_orders=False)
    engine = SimulationEngine(plan, cfg, menu=menu, clock=clock)
    events = []
    engine.bus.subscribe(SimulationEvent, events.append)
    return engine, events


def _types(events):
    return [type(e) for e in events]


class TestConfig:

    def test_grace_must_exceed_settle(self):
        with pytest.raises(ValueError):
            SimulationConfig(completion_grace=2.0, settle_time=2.0)

    def test_positive_intervals(self):
        with pytest.raises(ValueError):
            SimulationConfig(tick_interval=0)
        with pytest.raises(ValueError):
            SimulationConfig(batch_size=0)

    def test_menu_must_be_unique(self, plan):
        with pytest.raises(ValueError):
            SimulationEngine(plan, menu=(Dish("Water", 1), Dish("Water", 2)))


class TestLifecycle:

    def test_start_needs_running_loop(self, plan, quick_menu, clock):
        engine, _ = _external_engine(plan, quick_menu, clock)
        with pytest.raises(SimulationStateError):
            engine.start_simulation()
        assert engine.state is SimulationState.NOT_STARTED

    def test_invalid_plan_blocks_start(self, plan, quick_menu, clock):
        lonely = plan.add_table((9, 9), TableType.T8)
        engine, events = _external_engine(plan, quick_menu, clock)

        async def scenario():
            with pytest.raises(FloorPlanValidationError) as exc:
                engine.start_simulation()
            assert exc.value.tables == ("T8-4",)
            assert engine.state is SimulationState.NOT_STARTED
            assert engine.routing_graph is None

            plan.add_edge(lonely.id, plan.node_by_name("T2-1").id, [(3, 4)])
            engine.start_simulation()
            assert engine.state is SimulationState.RUNNING
            assert "T8-4" in engine.routing_graph
            engine.reset()

        asyncio.run(scenario())
        assert _types(events) == [SimulationStarted, SimulationReset]

    def test_double_start_rejected(self, plan, quick_menu, clock):
        engine, _ = _external_engine(plan, quick_menu, clock)

        async def scenario():
            engine.start_simulation()
            with pytest.raises(SimulationStateError):
                engine.start_simulation()
            engine.reset()

        asyncio.run(scenario())

    def test_reset_before_start(self, plan, quick_menu, clock):
        engine, events = _external_engine(plan, quick_menu, clock)
        engine.reset()
        engine.reset()
        assert engine.state is SimulationState.NOT_STARTED
        assert _types(events) == [SimulationReset, SimulationReset]

    def test_place_order_rules(self, plan, quick_menu, clock):
        engine, _ = _external_engine(plan, quick_menu, clock)
        with pytest.raises(SimulationStateError):
            engine.place_order(1, quick_menu[0])

        async def scenario():
            engine.start_simulation()
            with pytest.raises(ValueError):
                engine.place_order(1, Dish("Pizza", 3))
            with pytest.raises(ValueError):
                engine.place_order(1, Dish("Water", 9))
            with pytest.raises(FloorPlanError):
                engine.place_order(99, quick_menu[0])
            assert engine.cook_stations["Water"].is_idle
            assert engine.metrics.orders == {}
            engine.reset()

        asyncio.run(scenario())


class TestExternalRobot:

    def test_single_order_round_trip(self, plan, quick_menu, clock):
        engine, events = _external_engine(plan, quick_menu, clock)
        water = quick_menu[0]

        async def scenario():
            engine.start_simulation()
            engine.place_order(1, water)

            engine.step(0.5)
            assert not engine.robot_busy
            assert engine.kitchen_snapshot()[0].pending != ()

            clock.t = 1.0
            engine.step(1.0)
            trip = engine.current_trip
            assert engine.robot_busy
            assert trip.plan.route == ("K", "J1", "T2-1", "J1", "K")

            clock.t = 2.5
            engine.notify_delivery("J1", trip.trip_id)
            engine.notify_delivery("T2-1", trip.trip_id)
            engine.notify_delivery("T2-1", trip.trip_id)
            engine.notify_robot_movement_complete(trip.trip_id + 1)
            assert engine.robot_busy

            clock.t = 3.0
            engine.notify_robot_movement_complete(trip.trip_id)
            assert not engine.robot_busy

            for t in (4.0, 5.0, 6.0):
                clock.t = t
                engine.step(t)
                assert engine.state is SimulationState.RUNNING
            clock.t = 7.0
            engine.step(7.0)
            assert engine.state is SimulationState.COMPLETED
            engine.step(8.0)

        asyncio.run(scenario())

        assert _types(events) == [
            SimulationStarted,
            OrderPlaced,
            OrderCooked,
            RobotDispatched,
            TableDelivered,
            RobotMovementComplete,
            SimulationComplete,
        ]
        delivered = events[4]
        assert delivered.table_name == "T2-1" and delivered.timestamp == 2.5
        assert events[-1].timestamp == 7.0 and events[-1].error is None

        summary = engine.metrics.summary(makespan=7.0)
        assert summary.orders_delivered == 1
        assert summary.avg_turnaround_time == pytest.approx(2.5)
        assert summary.trips == 1 and summary.total_distance == 12

    def test_activity_restarts_settle_timer(self, plan, quick_menu, clock):
        engine, events = _external_engine(plan, quick_menu, clock)
        water = quick_menu[0]

        def deliver_current(at):
            clock.t = at
            trip = engine.current_trip
            for stop in trip.plan.stops:
                engine.notify_delivery(stop, trip.trip_id)
            engine.notify_robot_movement_complete(trip.trip_id)

        async def scenario():
            engine.start_simulation()
            engine.place_order(1, water)
            clock.t = 1.0
            engine.step(1.0)
            deliver_current(2.0)

            clock.t = 5.0
            engine.step(5.0)

            clock.t = 6.0
            engine.place_order(3, water)
            engine.step(6.0)
            clock.t = 7.0
            engine.step(7.0)
            assert engine.state is SimulationState.RUNNING
            deliver_current(7.5)

            for t in (8.0, 9.0):
                clock.t = t
                engine.step(t)
                assert engine.state is SimulationState.RUNNING
            clock.t = 10.0
            engine.step(10.0)

        asyncio.run(scenario())

        completes = [e for e in events if isinstance(e, SimulationComplete)]
        assert len(completes) == 1
        assert completes[0].timestamp == 10.0

    def test_batches_respect_capacity(self, plan, quick_menu, clock):
        engine, events = _external_engine(plan, quick_menu, clock)

        async def scenario():
            engine.start_simulation()
            for table in (1, 2, 3, 1, 2):
                engine.place_order(table, quick_menu[table % 3])
            clock.t = 5.0
            engine.step(5.0)
            trip = engine.current_trip
            assert len(trip.orders) == 3
            assert len(engine.delivery_queue) == 2
            engine.reset()

        asyncio.run(scenario())
        dispatched = [e for e in events if isinstance(e, RobotDispatched)]
        assert len(dispatched) == 1

    def test_stale_notifications_after_reset(self, plan, quick_menu, clock):
        engine, events = _external_engine(plan, quick_menu, clock)
        water = quick_menu[0]

        async def scenario():
            engine.start_simulation()
            engine.place_order(1, water)
            clock.t = 1.0
            engine.step(1.0)
            old_trip = engine.current_trip.trip_id

            engine.reset()
            mark = len(events)
            engine.notify_delivery("T2-1", old_trip)
            engine.notify_robot_movement_complete(old_trip)
            assert _types(events[mark:]) == []

            # A planta editada entre rodadas vale para a próxima
            extra = plan.add_table((3, 5), TableType.T2)
            plan.add_edge(plan.node_by_name("T2-1").id, extra.id, [(3, 4)])
            clock.t = 10.0
            engine.start_simulation()
            assert "T2-4" in engine.routing_graph

            engine.place_order(4, water)
            clock.t = 11.0
            engine.step(1.0)
            trip = engine.current_trip
            assert trip.trip_id != old_trip
            assert trip.plan.stops == ("T2-4",)

            engine.notify_delivery("T2-4", old_trip)
            assert not trip.delivered
            engine.notify_robot_movement_complete(old_trip)
            assert engine.robot_busy
            with pytest.raises(TypeError):
                engine.notify_robot_movement_complete()
            assert engine.robot_busy and engine.current_trip is trip
            engine.notify_delivery("T2-4", trip.trip_id)
            assert trip.delivered == {"T2-4"}
            engine.reset()

        asyncio.run(scenario())
        delivered = [e for e in events if isinstance(e, TableDelivered)]
        assert [e.table_name for e in delivered] == ["T2-4"]

    def test_notifications_from_worker_thread(self, plan, quick_menu, clock):
        engine, events = _external_engine(plan, quick_menu, clock)

        async def scenario():
            loop = asyncio.get_running_loop()
            engine.start_simulation()
            engine.place_order(2, quick_menu[1])
            clock.t = 1.0
            engine.step(1.0)
            trip_id = engine.current_trip.trip_id

            await loop.run_in_executor(None, engine.notify_delivery, "T4-2", trip_id)
            await asyncio.sleep(0)
            await loop.run_in_executor(None, engine.notify_robot_movement_complete, trip_id)
            await asyncio.sleep(0)
            assert not engine.robot_busy
            engine.reset()

        asyncio.run(scenario())
        assert TableDelivered in _types(events)
        assert RobotMovementComplete in _types(events)

    def test_routing_failure_ends_run(self, plan, quick_menu, clock, monkeypatch):
        def broken(self, route):
            raise EdgeNotFoundError("K", "T2-1")

        monkeypatch.setattr(DeliveryRouter, "route_legs", broken)
        engine, events = _external_engine(plan, quick_menu, clock)

        async def scenario():
            engine.start_simulation()
            engine.place_order(1, quick_menu[0])
            clock.t = 1.0
            engine.step(1.0)

        asyncio.run(scenario())
        assert engine.state is SimulationState.COMPLETED
        assert not engine.robot_busy
        complete = events[-1]
        assert isinstance(complete, SimulationComplete)
        assert "T2-1" in complete.error

    def test_kitchen_snapshot(self, plan, quick_menu, clock):
        engine, _ = _external_engine(plan, quick_menu, clock)

        async def scenario():
            engine.start_simulation()
            engine.place_order(1, quick_menu[0])
            engine.place_order(2, quick_menu[0])
            snapshot = {s.dish.name: s for s in engine.kitchen_snapshot()}
            engine.reset()
            return snapshot

        snapshot = asyncio.run(scenario())
        assert len(snapshot["Water"].pending) == 2
        assert snapshot["Water"].finish_at == 1.0
        assert snapshot["Egg Tart"].pending == ()
        assert snapshot["Egg Tart"].finish_at == 0.0


class TestRealTime:

    def test_full_run_delivers_everything(self, plan, quick_menu):
        engine = SimulationEngine(plan, SimulationConfig(time_scale=0.005, seed=7), menu=quick_menu)
        events = []
        engine.bus.subscribe(SimulationEvent, events.append)

        summary = asyncio.run(asyncio.wait_for(engine.run(), timeout=60))

        started = [e for e in events if isinstance(e, SimulationStarted)]
        placed = [e for e in events if isinstance(e, OrderPlaced)]
        delivered = [o for e in events if isinstance(e, TableDelivered) for o in e.orders]
        completes = [e for e in events if isinstance(e, SimulationComplete)]

        assert engine.state is SimulationState.COMPLETED
        assert len(completes) == 1 and completes[0].error is None
        assert len(placed) == started[0].scheduled_orders
        assert sorted(o.oid for o in delivered) == sorted(e.order.oid for e in placed)
        assert summary.orders_placed == summary.orders_delivered == len(placed)

        in_flight = None
        for e in events:
            if isinstance(e, RobotDispatched):
                assert in_flight is None
                assert 1 <= len(e.orders) <= 3
                assert e.route[0] == "K" and e.route[-1] == "K"
                in_flight = e.trip_id
            elif isinstance(e, TableDelivered):
                assert e.trip_id == in_flight
            elif isinstance(e, RobotMovementComplete):
                assert e.trip_id == in_flight
                in_flight = None
        assert in_flight is None

    def test_reset_mid_run(self, plan, quick_menu):
        engine = SimulationEngine(plan, SimulationConfig(time_scale=0.005, seed=3), menu=quick_menu)

        async def scenario():
            dispatched = asyncio.Event()
            engine.bus.subscribe(RobotDispatched, lambda ev: dispatched.set())
            task = asyncio.ensure_future(engine.run())
            await asyncio.wait_for(dispatched.wait(), timeout=30)

            engine.reset()
            result = await task

            after = []
            engine.bus.subscribe(SimulationEvent, after.append)
            await asyncio.sleep(0.2)
            return result, after

        result, after = asyncio.run(scenario())
        assert result is None
        assert after == []
        assert engine.state is SimulationState.NOT_STARTED
        assert len(engine.delivery_queue) == 0
        assert engine.metrics.orders == {}
        assert not engine.robot_busy
