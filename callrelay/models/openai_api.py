"""
Pydantic models for the subset of the OpenAI Realtime API used by the relay.

Server events are discriminated by their ``type`` field. Only the events that
drive the relay get a dedicated model; every other server event is mirrored to
the observer leg untouched.

Reference: https://platform.openai.com/docs/api-reference/realtime
"""

import enum
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from callrelay.config.constants import AUDIO_FORMAT, TRANSCRIPTION_MODEL, VOICE


class ClientEventType(str, enum.Enum):
    """Client events sent to the Realtime API."""

    SESSION_UPDATE = "session.update"
    INPUT_AUDIO_BUFFER_APPEND = "input_audio_buffer.append"
    CONVERSATION_ITEM_CREATE = "conversation.item.create"
    CONVERSATION_ITEM_TRUNCATE = "conversation.item.truncate"
    RESPONSE_CREATE = "response.create"


class ServerEventType(str, enum.Enum):
    """Server events the relay acts on."""

    ERROR = "error"
    INPUT_AUDIO_BUFFER_SPEECH_STARTED = "input_audio_buffer.speech_started"
    RESPONSE_AUDIO_DELTA = "response.audio.delta"
    RESPONSE_OUTPUT_ITEM_DONE = "response.output_item.done"


class BaseServerEvent(BaseModel):
    """Base model for events received from the Realtime API."""

    model_config = ConfigDict(extra="allow")

    type: str
    event_id: Optional[str] = None


class SpeechStartedEvent(BaseServerEvent):
    """The server VAD detected the caller starting to speak."""

    type: Literal[ServerEventType.INPUT_AUDIO_BUFFER_SPEECH_STARTED]
    audio_start_ms: Optional[int] = None
    item_id: Optional[str] = None


class ResponseAudioDeltaEvent(BaseServerEvent):
    """A chunk of assistant audio, base64 in the session's output format."""

    type: Literal[ServerEventType.RESPONSE_AUDIO_DELTA]
    delta: str
    item_id: Optional[str] = None
    response_id: Optional[str] = None
    output_index: Optional[int] = None
    content_index: Optional[int] = None


class OutputItem(BaseModel):
    """Output item attached to ``response.output_item.done``."""

    model_config = ConfigDict(extra="allow")

    type: str
    id: Optional[str] = None
    name: Optional[str] = None
    arguments: Optional[str] = None
    call_id: Optional[str] = None


class ResponseOutputItemDoneEvent(BaseServerEvent):
    """An output item (message or function call) has been completed."""

    type: Literal[ServerEventType.RESPONSE_OUTPUT_ITEM_DONE]
    item: OutputItem
    response_id: Optional[str] = None
    output_index: Optional[int] = None

    @property
    def is_function_call(self) -> bool:
        return self.item.type == "function_call"


class ErrorDetails(BaseModel):
    """Error payload reported by the Realtime API."""

    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None
    code: Optional[str] = None
    message: Optional[str] = None


class ErrorEvent(BaseServerEvent):
    """Error reported by the Realtime API."""

    type: Literal[ServerEventType.ERROR]
    error: ErrorDetails = Field(default_factory=ErrorDetails)


class GenericServerEvent(BaseServerEvent):
    """Any server event the relay only mirrors."""


# Client events


class SessionUpdateEvent(BaseModel):
    """Configure the realtime session."""

    type: Literal[ClientEventType.SESSION_UPDATE] = ClientEventType.SESSION_UPDATE
    session: Dict[str, Any]


class InputAudioBufferAppendEvent(BaseModel):
    """Append caller audio to the input buffer."""

    type: Literal[ClientEventType.INPUT_AUDIO_BUFFER_APPEND] = (
        ClientEventType.INPUT_AUDIO_BUFFER_APPEND
    )
    audio: str


class ConversationItemTruncateEvent(BaseModel):
    """Cut an assistant item down to the audio the caller actually heard."""

    type: Literal[ClientEventType.CONVERSATION_ITEM_TRUNCATE] = (
        ClientEventType.CONVERSATION_ITEM_TRUNCATE
    )
    item_id: str
    content_index: int = 0
    audio_end_ms: int = Field(..., ge=0)


class FunctionCallOutputItem(BaseModel):
    """Function call result returned to the model."""

    type: Literal["function_call_output"] = "function_call_output"
    call_id: Optional[str] = None
    output: str


class ConversationItemCreateEvent(BaseModel):
    """Add an item to the conversation."""

    type: Literal[ClientEventType.CONVERSATION_ITEM_CREATE] = (
        ClientEventType.CONVERSATION_ITEM_CREATE
    )
    item: FunctionCallOutputItem


class ResponseCreateEvent(BaseModel):
    """Ask the model for a new response turn."""

    type: Literal[ClientEventType.RESPONSE_CREATE] = ClientEventType.RESPONSE_CREATE


def default_session_config(voice: str = VOICE) -> Dict[str, Any]:
    """Session configuration sent whenever the model leg opens."""
    return {
        "modalities": ["text", "audio"],
        "turn_detection": {"type": "server_vad"},
        "voice": voice,
        "input_audio_transcription": {"model": TRANSCRIPTION_MODEL},
        "input_audio_format": AUDIO_FORMAT,
        "output_audio_format": AUDIO_FORMAT,
    }


def merge_session_config(
    overrides: Optional[Dict[str, Any]], voice: str = VOICE
) -> Dict[str, Any]:
    """Merge observer overrides over the defaults; overrides replace whole top-level keys."""
    config = default_session_config(voice)
    if overrides:
        config.update(overrides)
    return config

