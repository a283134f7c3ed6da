"""Tests for the auction client wiring."""

from __future__ import annotations

import json

import pytest

import config

from auction.client import AuctionClient, generate_guest_name
from auction.exceptions import BidRejectedError, InvalidIntentError
from auction.models import Phase, PLACEHOLDER_ITEM
from core.connection_manager import ConnectionStatus
from events import EventTypes


def _update(**fields) -> str:
    return json.dumps({"type": "update", **fields})


@pytest.fixture
def client(manager, inline_bus) -> AuctionClient:
    return AuctionClient(username="Guest-42", connection=manager, event_bus=inline_bus)


@pytest.fixture
def connected_client(client, transports) -> AuctionClient:
    client.start()
    transports.latest.open()
    return client


def _event_types(bus, event_type):
    return [e["data"] for e in bus.get_recent_events(event_type=event_type)]


def test_inbound_update_reconciles_view(connected_client, transports):
    transports.latest.deliver(_update(item_name="Mustang", amount=5000, username="House", time_left=60))

    view = connected_client.view
    assert view.item_name == "Mustang"
    assert view.current_amount == 5000
    assert view.high_bidder == "House"
    assert view.phase == Phase.LIVE


def test_end_message_marks_sold_and_publishes(connected_client, transports, inline_bus):
    transports.latest.deliver(_update(item_name="Mustang", amount=5100, username="Guest-42", time_left=3))
    transports.latest.deliver(json.dumps({"type": "end", "amount": 5100, "username": "Guest-42",
                                          "time_left": 0, "content": "SOLD!"}))

    view = connected_client.view
    assert view.phase == Phase.SOLD
    assert view.notice == "SOLD!"
    sold = _event_types(inline_bus, EventTypes.AUCTION_SOLD)
    assert sold == [{"item_name": "Mustang", "amount": 5100, "winner": "Guest-42", "won": True}]


def test_listing_changed_event_fires_once_per_item(connected_client, transports, inline_bus):
    transports.latest.deliver(_update(item_name="Mustang", amount=5000, username="House", time_left=60))
    transports.latest.deliver(_update(item_name="Mustang", amount=5100, username="Guest-1", time_left=59))
    transports.latest.deliver(_update(item_name="Corvette", amount=9000, username="House", time_left=60))

    changes = _event_types(inline_bus, EventTypes.AUCTION_LISTING_CHANGED)
    assert [c["item_name"] for c in changes] == ["Mustang", "Corvette"]


def test_malformed_frames_are_ignored(connected_client, transports):
    before = connected_client.view
    transports.latest.deliver("garbage")
    transports.latest.deliver(json.dumps({"type": "bid", "amount": 1, "username": "x"}))

    assert connected_client.view == before
    assert connected_client.frames_ignored == 2


def test_server_error_is_surfaced(connected_client, transports, inline_bus):
    transports.latest.deliver(json.dumps({"type": "error", "content": "Bid too low"}))

    assert connected_client.view.notice == "Bid too low"
    assert _event_types(inline_bus, EventTypes.AUCTION_SERVER_ERROR) == [{"content": "Bid too low"}]


def test_place_bid_sends_intent_without_local_update(connected_client, transports):
    transports.latest.deliver(_update(item_name="Mustang", amount=5000, username="House", time_left=60))

    assert connected_client.place_bid(5500) is True

    assert json.loads(transports.latest.sent[-1]) == {"type": "bid", "username": "Guest-42", "amount": 5500}
    assert connected_client.view.current_amount == 5000


def test_raise_bid_adds_increment(connected_client, transports):
    transports.latest.deliver(_update(item_name="Mustang", amount=5000, username="House", time_left=60))

    connected_client.raise_bid(100)

    assert json.loads(transports.latest.sent[-1])["amount"] == 5100


@pytest.mark.parametrize("increment", [0, -100, 1.5])
def test_raise_bid_rejects_bad_increment(connected_client, increment):
    with pytest.raises(InvalidIntentError):
        connected_client.raise_bid(increment)


def test_bid_rejected_when_not_live(connected_client, transports, inline_bus):
    transports.latest.deliver(json.dumps({"type": "end", "amount": 5600, "username": "Guest-7"}))

    with pytest.raises(BidRejectedError):
        connected_client.place_bid(6000)

    assert transports.latest.sent == []
    rejected = _event_types(inline_bus, EventTypes.INTENT_REJECTED)
    assert rejected[0]["intent"] == "bid"


def test_bid_dropped_while_offline(connected_client, transports, inline_bus):
    transports.latest.deliver(_update(item_name="Mustang", amount=5000, username="House", time_left=60))
    transports.latest.drop()

    assert connected_client.place_bid(5100) is False
    assert _event_types(inline_bus, EventTypes.INTENT_DROPPED)[0]["amount"] == 5100


def test_start_listing_allowed_while_live(connected_client, transports):
    transports.latest.deliver(_update(item_name="Mustang", amount=5000, username="House", time_left=60))

    assert connected_client.start_listing("Corvette", 9000) is True
    assert json.loads(transports.latest.sent[-1]) == {
        "type": "start",
        "username": "Guest-42",
        "item_name": "Corvette",
        "amount": 9000,
    }


def test_view_survives_reconnect(connected_client, transports, timers):
    transports.latest.deliver(_update(item_name="Mustang", amount=5000, username="House", time_left=60))
    transports.latest.drop()
    timers.pending[-1].fire()

    assert connected_client.status == ConnectionStatus.CONNECTING
    assert connected_client.view.item_name == "Mustang"

    transports.latest.open()
    transports.latest.deliver(_update(item_name="Mustang", amount=5400, username="Guest-3", time_left=41))
    assert connected_client.view.current_amount == 5400


def test_callbacks_receive_changes(manager, inline_bus, transports):
    views = []
    statuses = []
    client = AuctionClient(username="Guest-1", connection=manager, event_bus=inline_bus,
                           on_view_change=views.append, on_status_change=statuses.append)
    client.start()
    transports.latest.open()
    transports.latest.deliver(_update(item_name="Mustang", amount=1, username="House", time_left=9))

    assert statuses == [ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED]
    assert views[-1].item_name == "Mustang"


def test_is_leading(connected_client, transports):
    transports.latest.deliver(_update(item_name="Mustang", amount=5100, username="Guest-42", time_left=30))
    assert connected_client.is_leading()

    transports.latest.deliver(_update(amount=5200, username="Guest-9", time_left=29))
    assert not connected_client.is_leading()


def test_guest_name_generated_when_missing(manager, inline_bus, monkeypatch):
    monkeypatch.setitem(config.AUCTION_CONFIG, "username", "")
    client = AuctionClient(connection=manager, event_bus=inline_bus)

    assert client.username.startswith("Guest-")
    assert client.view.item_name == PLACEHOLDER_ITEM


def test_generate_guest_name_prefix():
    name = generate_guest_name("Bidder-")

    assert name.startswith("Bidder-")
    assert 0 <= int(name[len("Bidder-"):]) <= 999


def test_stop_shuts_down_connection(connected_client, transports):
    connected_client.stop()

    assert transports.latest.closed
    assert connected_client.status == ConnectionStatus.DISCONNECTED
