"""
Session state for the call relay.

A ``Session`` is the one mutable record describing the call in progress: the
three peer handles, the Twilio stream identifier, the credential for the model
leg, the observer's configuration overrides and the playback bookkeeping used
by truncation. It is owned by ``WebSocketSessionManager`` and never shared.
"""

import enum
import time
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Optional

from callrelay.peers import Peer


class ConnectionType(str, enum.Enum):
    """The three legs of a relayed call."""

    TELEPHONY = "telephony"
    OBSERVER = "observer"
    MODEL = "model"


class LegState(str, enum.Enum):
    """Lifecycle of a single leg."""

    ABSENT = "absent"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


@dataclass
class Session:
    """The in-progress call.

    Attributes:
        telephony_peer: Telephony leg, present while open.
        observer_peer: Observer leg, present while open.
        model_peer: Model leg, present while open.
        stream_sid: Assigned by the telephony ``start`` event.
        api_key: Credential handed over with the telephony leg.
        saved_config: Last ``session.update`` payload from the observer.
        last_assistant_item: Item id of the assistant utterance being played.
        response_start_timestamp: Media timestamp at which that utterance began.
        latest_media_timestamp: Timestamp of the latest inbound media frame.
        connection_started_at: When the telephony leg was accepted.
    """

    telephony_peer: Optional[Peer] = None
    observer_peer: Optional[Peer] = None
    model_peer: Optional[Peer] = None
    stream_sid: Optional[str] = None
    api_key: Optional[str] = None
    saved_config: Optional[Dict[str, Any]] = None
    last_assistant_item: Optional[str] = None
    response_start_timestamp: Optional[int] = None
    latest_media_timestamp: int = 0
    connection_started_at: Optional[float] = field(default=None, repr=False)

    @property
    def has_active_utterance(self) -> bool:
        return (
            self.last_assistant_item is not None
            and self.response_start_timestamp is not None
        )

    def has_active_connections(self) -> bool:
        return bool(self.telephony_peer or self.observer_peer or self.model_peer)

    def clear_utterance(self) -> None:
        self.last_assistant_item = None
        self.response_start_timestamp = None

    def clear_call(self) -> None:
        """Drop everything tied to the call, keeping only the observer leg."""
        observer_peer = self.observer_peer
        self.__dict__.update(Session().__dict__)
        self.observer_peer = observer_peer

    def mark_call_started(self) -> None:
        self.connection_started_at = time.time()

    def snapshot(self) -> "Session":
        """Shallow copy for read-only inspection."""
        return replace(self)


@dataclass
class ConnectionStats:
    """Point-in-time connection statistics.

    ``total_connections`` counts every leg accepted or opened since the relay
    started; ``active_connections`` counts the legs open right now.
    """

    total_connections: int
    active_connections: int
    connection_duration_ms: int
    last_activity: Optional[datetime]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_connections": self.total_connections,
            "active_connections": self.active_connections,
            "connection_duration_ms": self.connection_duration_ms,
            "last_activity": (
                self.last_activity.isoformat() if self.last_activity else None
            ),
        }
