"""Shared test fixtures."""

from __future__ import annotations

from typing import Callable

import pytest

from auction.models import AuctionView, Phase
from auction.state_machine import AuctionStateMachine
from core.connection_manager import ConnectionManager, ReconnectPolicy
from events import EventBus


class FakeTransport:
    """Stands in for websocket.WebSocketApp; tests drive its callbacks"""

    def __init__(self, url, on_open, on_message, on_error, on_close):
        self.url = url
        self.on_open = on_open
        self.on_message = on_message
        self.on_error = on_error
        self.on_close = on_close
        self.sent: list = []
        self.closed = False
        self.run_count = 0
        self.fail_send = False

    def run_forever(self, **kwargs):
        self.run_count += 1

    def send(self, payload, opcode=None):
        if self.fail_send:
            raise ConnectionError("socket is already closed")
        self.sent.append(payload)

    def close(self):
        self.closed = True

    # Authority-side helpers

    def open(self):
        self.on_open(self)

    def deliver(self, message):
        self.on_message(self, message)

    def fail(self, error="connection refused"):
        self.on_error(self, error)

    def drop(self, code=1006, msg="abnormal closure"):
        self.on_close(self, code, msg)


class FakeTimer:
    def __init__(self, delay: float, fn: Callable[[], None]):
        self.delay = delay
        self.fn = fn
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        assert self.started and not self.cancelled
        self.fn()


class TransportFactory:
    def __init__(self):
        self.transports: list[FakeTransport] = []

    def __call__(self, url, on_open, on_message, on_error, on_close):
        transport = FakeTransport(url, on_open, on_message, on_error, on_close)
        self.transports.append(transport)
        return transport

    @property
    def latest(self) -> FakeTransport:
        return self.transports[-1]


class TimerFactory:
    def __init__(self):
        self.timers: list[FakeTimer] = []

    def __call__(self, delay, fn):
        timer = FakeTimer(delay, fn)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[FakeTimer]:
        return [t for t in self.timers if t.started and not t.cancelled]


@pytest.fixture
def inline_bus() -> EventBus:
    return EventBus(threaded=False)


@pytest.fixture
def transports() -> TransportFactory:
    return TransportFactory()


@pytest.fixture
def timers() -> TimerFactory:
    return TimerFactory()


@pytest.fixture
def manager(transports, timers, inline_bus) -> ConnectionManager:
    return ConnectionManager(
        url="ws://auction.test/ws",
        reconnect_policy=ReconnectPolicy(initial_delay=3.0),
        transport_factory=transports,
        timer_factory=timers,
        run_in_thread=False,
        event_bus=inline_bus,
    )


@pytest.fixture
def live_view() -> AuctionView:
    return AuctionView(
        item_name="Mustang",
        current_amount=5100,
        high_bidder="Guest-42",
        time_remaining=55,
        phase=Phase.LIVE,
    )


@pytest.fixture
def live_machine(live_view) -> AuctionStateMachine:
    return AuctionStateMachine(initial_view=live_view)
