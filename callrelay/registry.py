"""
Registry of the live inbound connections, one per kind.

The entry point registers every accepted WebSocket here before handing it to
the session manager. Registering a connection of a kind that is already taken
closes the superseded one, so at most one call and one observer are ever live.
"""

import enum
from typing import Dict, Optional

from callrelay.config.constants import CALL_PATH, DEFAULT_CLOSE_TIMEOUT, LOGS_PATH
from callrelay.config.logging_config import configure_logging
from callrelay.peers import Peer
from callrelay.utils.websocket_utils import WebSocketUtils

logger = configure_logging("registry")


class ConnectionKind(str, enum.Enum):
    """First path segment of an inbound WebSocket."""

    CALL = CALL_PATH
    LOGS = LOGS_PATH


def kind_for_path(path: str) -> Optional[ConnectionKind]:
    """Map a request path such as ``/call`` or ``/logs/abc`` to its kind."""
    parts = [part for part in path.split("/") if part]
    if not parts:
        return None
    try:
        return ConnectionKind(parts[0])
    except ValueError:
        return None


class ConnectionRegistry:
    """Tracks the current connection of each kind."""

    def __init__(self, close_timeout: float = DEFAULT_CLOSE_TIMEOUT):
        self.close_timeout = close_timeout
        self._connections: Dict[ConnectionKind, Peer] = {}

    def current(self, kind: ConnectionKind) -> Optional[Peer]:
        return self._connections.get(kind)

    async def register(self, kind: ConnectionKind, peer: Peer) -> Optional[Peer]:
        """Make ``peer`` the live connection of its kind, closing the one it replaces.

        Returns:
            The superseded connection, if there was one
        """
        prior = self._connections.get(kind)
        self._connections[kind] = peer
        if prior is not None and prior is not peer:
            logger.info(f"Closing superseded {kind.value} connection")
            await WebSocketUtils.graceful_close(prior, self.close_timeout, logger)
            return prior
        return None

    def release(self, kind: ConnectionKind, peer: Peer) -> None:
        """Forget ``peer`` if it is still the live connection of its kind."""
        if self._connections.get(kind) is peer:
            del self._connections[kind]
