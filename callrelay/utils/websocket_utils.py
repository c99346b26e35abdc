"""
Shared WebSocket utilities for the call relay.

Liveness checks, contained sends and a bounded close for any ``Peer``. None of
these helpers tear a connection down on a send failure; teardown is driven only
by the transport's own close signal.
"""

import asyncio
import json
import logging
from typing import Any, Callable, Dict, Optional, Union

from pydantic import BaseModel

from callrelay.config.constants import DEFAULT_CLOSE_TIMEOUT
from callrelay.peers import Peer

logger = logging.getLogger(__name__)

Event = Union[BaseModel, Dict[str, Any]]


class WebSocketUtils:
    """Shared WebSocket utility functions."""

    @staticmethod
    def is_open(peer: Optional[Peer]) -> bool:
        """True iff the peer is present and its transport is open."""
        return peer is not None and peer.is_open

    @staticmethod
    def serialize(event: Event) -> str:
        if isinstance(event, BaseModel):
            return json.dumps(event.model_dump(mode="json", exclude_none=True))
        return json.dumps(event)

    @staticmethod
    async def safe_send(
        peer: Optional[Peer],
        event: Event,
        logger_instance: Optional[logging.Logger] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> bool:
        """
        Safely send an event to a peer.

        Args:
            peer: Destination leg, may be absent
            event: Pydantic model or plain dict, serialized to JSON
            logger_instance (Optional[logging.Logger]): Logger for error reporting
            on_error: Called with the exception when the send fails

        Returns:
            bool: True if sent successfully, False otherwise
        """
        log = logger_instance or logger
        if not WebSocketUtils.is_open(peer):
            return False

        try:
            await peer.send_text(WebSocketUtils.serialize(event))
            return True
        except Exception as e:
            log.error(f"Error sending to {peer.label}: {e}")
            if on_error is not None:
                on_error(e)
            return False

    @staticmethod
    async def graceful_close(
        peer: Optional[Peer],
        timeout: float = DEFAULT_CLOSE_TIMEOUT,
        logger_instance: Optional[logging.Logger] = None,
    ) -> None:
        """
        Request an orderly close and force termination if it does not finish in time.

        Resolves once the peer is closed either way. Errors raised while forcing
        termination are logged at debug level and otherwise ignored.
        """
        log = logger_instance or logger
        if peer is None or peer.is_closed:
            return

        try:
            await asyncio.wait_for(peer.close(), timeout=timeout)
        except asyncio.TimeoutError:
            log.warning(f"{peer.label} did not close within {timeout}s, terminating")
        except Exception as e:
            log.debug(f"Error closing {peer.label}: {e}")

        if not peer.is_closed:
            try:
                peer.abort()
            except Exception as e:
                log.debug(f"Error terminating {peer.label}: {e}")

    @staticmethod
    def format_event_log(event_type: str, data: Dict[str, Any]) -> str:
        """Format an event for logging, truncating large payloads."""
        data_str = str(data)
        if len(data_str) > 200:
            data_str = data_str[:200] + "..."
        return f"Event[{event_type}]: {data_str}"
