"""Tests for the auction wire codec."""

from __future__ import annotations

import json

import pytest

from auction.exceptions import ProtocolError
from auction.models import BidIntent, Ended, ListingIntent, ServerError, Update
from auction.protocol import decode_inbound, encode_intent, parse_int


def test_decode_update():
    raw = json.dumps({"type": "update", "item_name": "Mustang", "amount": 5100,
                      "username": "Guest-42", "time_left": 55})

    assert decode_inbound(raw) == Update(amount=5100, bidder="Guest-42", time_remaining=55, item_name="Mustang")


def test_decode_update_empty_item_name_is_absent():
    raw = json.dumps({"type": "update", "item_name": "", "amount": 0, "username": "", "time_left": 0})

    msg = decode_inbound(raw)

    assert msg.item_name is None
    assert msg.bidder == ""
    assert msg.amount == 0
    assert msg.time_remaining == 0


def test_decode_end_with_content():
    raw = json.dumps({"type": "end", "item_name": "Mustang", "amount": 5600,
                      "username": "Guest-7", "time_left": 0, "content": "SOLD!"})

    assert decode_inbound(raw) == Ended(amount=5600, bidder="Guest-7", content="SOLD!")


def test_decode_error():
    assert decode_inbound('{"type": "error", "content": "Bid too low"}') == ServerError(content="Bid too low")


def test_decode_bytes_frame():
    assert decode_inbound(b'{"type": "error", "content": "x"}') == ServerError(content="x")


@pytest.mark.parametrize("msg_type", ["bid", "start"])
def test_decode_echoed_intents_are_ignored(msg_type):
    assert decode_inbound(json.dumps({"type": msg_type, "amount": 1, "username": "a"})) is None


def test_decode_malformed_numbers_become_none():
    raw = json.dumps({"type": "update", "amount": "lots", "username": "Guest-1", "time_left": -3})

    msg = decode_inbound(raw)

    assert msg.amount is None
    assert msg.time_remaining is None
    assert msg.bidder == "Guest-1"


@pytest.mark.parametrize("raw", ["not json", "[1, 2]", "42", '{"type": "teleport"}', "{}", b"\xff\xfe"])
def test_decode_rejects_bad_frames(raw):
    with pytest.raises(ProtocolError):
        decode_inbound(raw)


@pytest.mark.parametrize("value,expected", [
    (5, 5),
    (0, 0),
    (-1, None),
    (7.0, 7),
    (7.5, None),
    (" 42 ", 42),
    ("4x", None),
    (True, None),
    (None, None),
    ([1], None),
])
def test_parse_int(value, expected):
    assert parse_int(value) == expected


def test_encode_bid():
    assert json.loads(encode_intent(BidIntent(bidder="Guest-42", amount=5200))) == {
        "type": "bid",
        "username": "Guest-42",
        "amount": 5200,
    }


def test_encode_listing():
    record = json.loads(encode_intent(ListingIntent(item_name="Mustang", starting_amount=5000, username="admin")))

    assert record == {
        "type": "start",
        "username": "admin",
        "item_name": "Mustang",
        "amount": 5000,
    }


def test_encode_rejects_non_intent():
    with pytest.raises(TypeError):
        encode_intent(Update())
