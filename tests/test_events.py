from __future__ import annotations

import logging

from servebot.events import EventBus, RobotMovementComplete, SimulationEvent, SimulationReset


class TestEventBus:

    def test_typed_and_catch_all(self):
        bus = EventBus()
        typed, everything = [], []
        bus.subscribe(SimulationReset, typed.append)
        bus.subscribe(SimulationEvent, everything.append)

        bus.publish(SimulationReset(timestamp=0.0))
        bus.publish(RobotMovementComplete(timestamp=1.0, trip_id=3))

        assert [type(e) for e in typed] == [SimulationReset]
        assert [type(e) for e in everything] == [SimulationReset, RobotMovementComplete]

    def test_unsubscribe(self):
        bus = EventBus()
        seen = []
        unsubscribe = bus.subscribe(SimulationReset, seen.append)
        unsubscribe()
        unsubscribe()
        bus.publish(SimulationReset(timestamp=0.0))
        assert seen == []

    def test_failing_listener_does_not_stop_fanout(self, caplog):
        bus = EventBus()
        seen = []

        def broken(_event):
            raise RuntimeError("boom")

        bus.subscribe(SimulationReset, broken)
        bus.subscribe(SimulationReset, seen.append)
        with caplog.at_level(logging.ERROR, logger="servebot.events"):
            bus.publish(SimulationReset(timestamp=0.0))

        assert len(seen) == 1
        assert "SimulationReset" in caplog.text
