"""Tests for WebSocketUtils sends and bounded closes."""

import asyncio
import json
from typing import Optional

import pytest
from pydantic import BaseModel

from callrelay.utils.websocket_utils import WebSocketUtils
from conftest import FakePeer


class Ping(BaseModel):
    type: str = "ping"
    note: Optional[str] = None


def test_is_open():
    peer = FakePeer()
    assert WebSocketUtils.is_open(peer)
    assert not WebSocketUtils.is_open(None)
    peer.disconnect()
    assert not WebSocketUtils.is_open(peer)


def test_serialize_drops_unset_fields():
    assert json.loads(WebSocketUtils.serialize(Ping())) == {"type": "ping"}
    assert json.loads(WebSocketUtils.serialize({"a": None})) == {"a": None}


@pytest.mark.asyncio
async def test_safe_send_success():
    peer = FakePeer()

    assert await WebSocketUtils.safe_send(peer, {"type": "x"})
    assert peer.sent_json == [{"type": "x"}]


@pytest.mark.asyncio
async def test_safe_send_to_absent_or_closed_peer():
    closed = FakePeer()
    closed.disconnect()

    assert not await WebSocketUtils.safe_send(None, {"type": "x"})
    assert not await WebSocketUtils.safe_send(closed, {"type": "x"})
    assert closed.sent == []


@pytest.mark.asyncio
async def test_safe_send_failure_reported_and_contained():
    peer = FakePeer()
    peer.fail_sends = True
    errors = []

    sent = await WebSocketUtils.safe_send(peer, {"type": "x"}, on_error=errors.append)

    assert sent is False
    assert len(errors) == 1
    assert isinstance(errors[0], RuntimeError)
    assert peer.is_open


@pytest.mark.asyncio
async def test_graceful_close():
    peer = FakePeer()

    await WebSocketUtils.graceful_close(peer, timeout=1)

    assert peer.close_calls == 1
    assert not peer.aborted
    assert peer.is_closed


@pytest.mark.asyncio
async def test_graceful_close_aborts_after_timeout():
    peer = FakePeer(hang_on_close=True)

    await asyncio.wait_for(WebSocketUtils.graceful_close(peer, timeout=0.01), timeout=1)

    assert peer.aborted
    assert peer.is_closed


@pytest.mark.asyncio
async def test_graceful_close_skips_closed_or_absent_peer():
    peer = FakePeer()
    peer.disconnect()

    await WebSocketUtils.graceful_close(peer)
    await WebSocketUtils.graceful_close(None)

    assert peer.close_calls == 0


@pytest.mark.asyncio
async def test_graceful_close_survives_abort_failure():
    class Stubborn(FakePeer):
        def abort(self):
            raise OSError("transport gone")

    peer = Stubborn(hang_on_close=True)

    await WebSocketUtils.graceful_close(peer, timeout=0.01)

    assert peer.close_calls == 1


def test_format_event_log_truncates():
    line = WebSocketUtils.format_event_log("big", {"payload": "x" * 500})

    assert line.startswith("Event[big]: ")
    assert line.endswith("...")
    assert len(line) < 230
