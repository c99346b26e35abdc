"""
Peer adapters for the three legs of a call.

The telephony and observer legs arrive as Starlette/FastAPI WebSockets while the
model leg is an outbound ``websockets`` client connection. ``Peer`` gives the
relay one interface over both so liveness checks, sends, reader loops and the
close-then-abort sequence are written once.
"""

import abc
from typing import AsyncIterator, Dict, Optional

import websockets
from fastapi import WebSocket
from starlette.websockets import WebSocketState
from websockets.asyncio.client import ClientConnection
from websockets.protocol import State

from callrelay.config.logging_config import configure_logging

logger = configure_logging("peers")


class Peer(abc.ABC):
    """A single WebSocket leg."""

    def __init__(self, label: str):
        self.label = label
        # Set when the relay itself asked for the close
        self.closing_initiated = False

    @property
    @abc.abstractmethod
    def is_open(self) -> bool:
        """Whether the transport is open for sending."""

    @property
    @abc.abstractmethod
    def is_closed(self) -> bool:
        """Whether the transport has fully closed."""

    @abc.abstractmethod
    async def send_text(self, text: str) -> None: ...

    @abc.abstractmethod
    def messages(self) -> AsyncIterator[str]:
        """Yield inbound text frames until the transport closes."""

    @abc.abstractmethod
    async def close(self, code: int = 1000, reason: str = "") -> None: ...

    @abc.abstractmethod
    def abort(self) -> None:
        """Drop the transport without a closing handshake."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.label}>"


class StarlettePeer(Peer):
    """Server side of a FastAPI WebSocket (telephony and observer legs)."""

    def __init__(self, websocket: WebSocket, label: str):
        super().__init__(label)
        self.websocket = websocket
        self._aborted = False

    @property
    def is_open(self) -> bool:
        return (
            not self._aborted
            and self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    @property
    def is_closed(self) -> bool:
        return (
            self._aborted
            or self.websocket.client_state == WebSocketState.DISCONNECTED
            or self.websocket.application_state == WebSocketState.DISCONNECTED
        )

    async def send_text(self, text: str) -> None:
        await self.websocket.send_text(text)

    async def messages(self) -> AsyncIterator[str]:
        async for message in self.websocket.iter_text():
            yield message

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.closing_initiated = True
        if self.websocket.application_state == WebSocketState.DISCONNECTED:
            return
        if self.websocket.client_state == WebSocketState.DISCONNECTED:
            return
        await self.websocket.close(code=code, reason=reason)

    def abort(self) -> None:
        # The ASGI server owns the socket; stop treating it as usable.
        self.closing_initiated = True
        self._aborted = True


class ModelPeer(Peer):
    """Outbound connection to the realtime model."""

    def __init__(self, connection: ClientConnection, label: str = "model"):
        super().__init__(label)
        self.connection = connection

    @property
    def is_open(self) -> bool:
        return self.connection.state is State.OPEN

    @property
    def is_closed(self) -> bool:
        return self.connection.state is State.CLOSED

    @property
    def close_code(self) -> Optional[int]:
        return self.connection.close_code

    @property
    def close_reason(self) -> Optional[str]:
        return self.connection.close_reason

    async def send_text(self, text: str) -> None:
        await self.connection.send(text)

    async def messages(self) -> AsyncIterator[str]:
        async for message in self.connection:
            if isinstance(message, bytes):
                message = message.decode("utf-8", errors="replace")
            yield message

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.closing_initiated = True
        await self.connection.close(code=code, reason=reason)

    def abort(self) -> None:
        self.closing_initiated = True
        if self.connection.transport is not None:
            self.connection.transport.abort()


async def connect_model(url: str, headers: Dict[str, str]) -> ModelPeer:
    """Open the model leg.

    Raises whatever ``websockets.connect`` raises; the caller decides whether
    the failure is worth a reconnect.
    """
    logger.info(f"Connecting to model at {url}")
    connection = await websockets.connect(url, additional_headers=headers)
    return ModelPeer(connection)
