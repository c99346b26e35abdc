import asyncio
import json
import logging
from typing import Any, List, Optional, Union

import pytest

from callrelay.config.models import OpenAIConfig, RelayConfig
from callrelay.function_handler import FunctionDescriptor, FunctionHandler
from callrelay.listeners import SessionListener
from callrelay.models.tool_models import OpenAITool, ToolParameter, ToolParameters
from callrelay.peers import Peer
from callrelay.session_manager import WebSocketSessionManager

"""
Pytest configuration file for the callrelay test suite.

This file contains fixtures that are shared across multiple test files: an
in-memory ``Peer``, a scripted model connector and a listener that records
every notification.
"""

# Captured before any test patches asyncio.sleep
REAL_SLEEP = asyncio.sleep

_CLOSED = object()


class FakePeer(Peer):
    """In-memory WebSocket leg.

    Frames queued with ``feed`` are yielded by ``messages``; ``disconnect``
    simulates the remote end dropping the connection.
    """

    def __init__(self, label: str = "fake", hang_on_close: bool = False):
        super().__init__(label)
        self.sent: List[str] = []
        self.close_calls = 0
        self.aborted = False
        self.fail_sends = False
        self.hang_on_close = hang_on_close
        self._open = True
        self._inbox: asyncio.Queue = asyncio.Queue()

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def is_closed(self) -> bool:
        return not self._open

    @property
    def sent_json(self) -> List[Any]:
        return [json.loads(text) for text in self.sent]

    def feed(self, message: Union[str, dict]) -> None:
        if not isinstance(message, str):
            message = json.dumps(message)
        self._inbox.put_nowait(message)

    def disconnect(self) -> None:
        self._open = False
        self._inbox.put_nowait(_CLOSED)

    async def send_text(self, text: str) -> None:
        if self.fail_sends:
            raise RuntimeError("send failed")
        self.sent.append(text)

    async def messages(self):
        while True:
            item = await self._inbox.get()
            if item is _CLOSED:
                return
            yield item

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.closing_initiated = True
        self.close_calls += 1
        if self.hang_on_close:
            await asyncio.Event().wait()
        self.disconnect()

    def abort(self) -> None:
        self.closing_initiated = True
        self.aborted = True
        self.disconnect()


class FakeModelConnector:
    """Stands in for ``connect_model``; hands out FakePeers or fails on demand."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.peers: List[FakePeer] = []
        self.fail = False
        self.gate: Optional[asyncio.Event] = None

    async def __call__(self, url, headers):
        self.calls.append((url, headers))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise ConnectionError("model unavailable")
        peer = FakePeer("model")
        self.peers.append(peer)
        return peer


class RecordingListener(SessionListener):
    """Keeps every notification as a tuple, in order."""

    def __init__(self):
        self.events: List[tuple] = []

    def names(self) -> List[str]:
        return [event[0] for event in self.events]

    def on_connection_established(self, connection_type):
        self.events.append(("established", connection_type))

    def on_connection_closed(self, connection_type, code=None, reason=None):
        self.events.append(("closed", connection_type))

    def on_function_call_started(self, name, call_id):
        self.events.append(("function_started", name, call_id))

    def on_function_call_completed(self, name, call_id, result):
        self.events.append(("function_completed", name, call_id, result))

    def on_function_call_error(self, name, call_id, error):
        self.events.append(("function_error", name, call_id, error))

    def on_session_reset(self):
        self.events.append(("session_reset",))

    def on_error(self, error_type, error, connection_type=None):
        self.events.append(("error", error_type, connection_type))


async def drain(manager: WebSocketSessionManager, rounds: int = 50) -> None:
    """Let readers run and wait out pending model connects and reconnects."""
    for _ in range(rounds):
        pending = [
            task
            for task in (manager._connect_task, manager._reconnect_task)
            if task is not None and not task.done()
        ]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        await REAL_SLEEP(0)


def start_frame(stream_sid: str = "ABC") -> dict:
    return {"event": "start", "start": {"streamSid": stream_sid, "callSid": "CA123"}}


def media_frame(timestamp: int, payload: str = "AAAA") -> dict:
    # Twilio sends the timestamp as a string
    return {"event": "media", "media": {"timestamp": str(timestamp), "payload": payload}}


def echo_descriptor() -> FunctionDescriptor:
    async def echo(args):
        return json.dumps({"echo": args})

    return FunctionDescriptor(
        schema=OpenAITool(
            name="echo",
            description="Echo the arguments back",
            parameters=ToolParameters(
                properties={"text": ToolParameter(type="string")}, required=["text"]
            ),
        ),
        handler=echo,
    )


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before each test"""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    logging.basicConfig(level=logging.NOTSET)
    yield


@pytest.fixture
def connector():
    return FakeModelConnector()


@pytest.fixture
def listener():
    return RecordingListener()


@pytest.fixture
def manager(connector, listener):
    """Session manager wired to fake legs, with a near-instant reconnect backoff."""
    return WebSocketSessionManager(
        function_handler=FunctionHandler([echo_descriptor()]),
        relay_config=RelayConfig(reconnect_base_delay=0.001, close_timeout=0.1),
        openai_config=OpenAIConfig(api_key="sk-config"),
        model_connector=connector,
        listeners=[listener],
    )
