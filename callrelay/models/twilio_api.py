"""
Pydantic models for the Twilio Media Streams WebSocket messages handled by the relay.

The telephony leg speaks JSON frames discriminated by their ``event`` field. The
relay acts on ``start``, ``media`` and ``close`` (``stop`` is what Twilio itself
sends when the call ends and is treated the same way); ``connected``, ``mark``
and ``dtmf`` are well-formed but carry nothing the relay needs.

Outgoing frames keep the exact field names Twilio expects.

Reference: https://www.twilio.com/docs/voice/media-streams/websocket-messages
"""

import enum
from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class TwilioEventType(str, enum.Enum):
    """Enumeration of the Twilio Media Streams event names."""

    # Messages from Twilio to WebSocket server
    CONNECTED = "connected"
    START = "start"
    MEDIA = "media"
    STOP = "stop"
    CLOSE = "close"
    DTMF = "dtmf"
    MARK = "mark"

    # Messages from WebSocket server to Twilio
    CLEAR = "clear"


# Events that are valid on the wire but do not drive the relay
IGNORED_EVENTS = frozenset(
    e.value for e in (TwilioEventType.CONNECTED, TwilioEventType.DTMF, TwilioEventType.MARK)
)


class BaseTwilioMessage(BaseModel):
    """Base model for all Twilio Media Streams WebSocket messages."""

    model_config = ConfigDict(extra="allow")

    event: str = Field(..., description="Message event type identifier")


# Messages from Twilio to WebSocket server


class StartMetadata(BaseModel):
    """Model for start message metadata."""

    model_config = ConfigDict(extra="allow")

    streamSid: str = Field(..., description="The unique identifier of the Stream")
    callSid: Optional[str] = Field(
        None, description="The SID of the Call that started the Stream"
    )
    customParameters: Dict[str, Any] = Field(
        default_factory=dict,
        description="Custom parameters set when defining the Stream",
    )


class StartMessage(BaseTwilioMessage):
    """Model for 'start' message from Twilio.

    Example:
    {
      "event": "start",
      "start": {"streamSid": "MZXXXXXXXXXXXXXXXXXXXXXXXXXXXXXX", ...}
    }
    """

    event: Literal[TwilioEventType.START]
    start: StartMetadata = Field(..., description="Stream metadata")


class MediaPayload(BaseModel):
    """Model for media payload in media messages."""

    model_config = ConfigDict(extra="allow")

    timestamp: int = Field(
        ..., description="Milliseconds since the start of the stream"
    )
    payload: str = Field(..., description="Base64-encoded mu-law audio, forwarded as-is")
    track: Optional[str] = Field(None, description="inbound or outbound")


class MediaMessage(BaseTwilioMessage):
    """Model for 'media' message from Twilio.

    Example:
    {
      "event": "media",
      "media": {"timestamp": "5", "payload": "no+JhoaJjpzS..."}
    }
    """

    event: Literal[TwilioEventType.MEDIA]
    media: MediaPayload = Field(..., description="Media payload data")


class CloseMessage(BaseTwilioMessage):
    """Model for 'close' message ending the stream."""

    event: Literal[TwilioEventType.CLOSE]


class StopMessage(BaseTwilioMessage):
    """Model for 'stop' message, sent by Twilio when the call has ended."""

    event: Literal[TwilioEventType.STOP]


# Messages from WebSocket server to Twilio


class OutgoingMediaPayload(BaseModel):
    """Model for media payload in outgoing media messages."""

    payload: str = Field(..., description="Raw mulaw/8000 audio encoded in base64")


class OutgoingMediaMessage(BaseModel):
    """Model for 'media' message to Twilio.

    Example:
    {
      "event": "media",
      "streamSid": "MZXXXXXXXXXXXXXXXXXXXXXXXXXXXXXX",
      "media": {"payload": "a3242sa..."}
    }
    """

    event: Literal[TwilioEventType.MEDIA] = TwilioEventType.MEDIA
    streamSid: str
    media: OutgoingMediaPayload


class OutgoingMarkMessage(BaseModel):
    """Model for 'mark' message to Twilio, used to track playback completion.

    Example:
    {
      "event": "mark",
      "streamSid": "MZXXXXXXXXXXXXXXXXXXXXXXXXXXXXXX"
    }
    """

    event: Literal[TwilioEventType.MARK] = TwilioEventType.MARK
    streamSid: str


class ClearMessage(BaseModel):
    """Model for 'clear' message to Twilio.

    Discards any audio Twilio has buffered but not yet played.

    Example:
    {
      "event": "clear",
      "streamSid": "MZXXXXXXXXXXXXXXXXXXXXXXXXXXXXXX"
    }
    """

    event: Literal[TwilioEventType.CLEAR] = TwilioEventType.CLEAR
    streamSid: str


# Messages received from Twilio that drive the relay
IncomingMessage = Union[StartMessage, MediaMessage, CloseMessage, StopMessage]

# Messages sent to Twilio
OutgoingMessage = Union[OutgoingMediaMessage, OutgoingMarkMessage, ClearMessage]
