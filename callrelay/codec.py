"""
Message codec for the telephony, model and observer legs.

Every inbound frame is decoded into a closed set of typed variants before any
relay logic sees it. Frames that are not JSON objects, lack their discriminator
or fail validation come back as ``UnrecognizedMessage``; the relay logs and
drops them. Decoded messages keep the raw dict so the relay can forward them
byte-for-byte in meaning.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Type, Union

from pydantic import BaseModel, ValidationError

from callrelay.models.openai_api import (
    BaseServerEvent,
    ConversationItemCreateEvent,
    ConversationItemTruncateEvent,
    ErrorEvent,
    FunctionCallOutputItem,
    GenericServerEvent,
    InputAudioBufferAppendEvent,
    ResponseAudioDeltaEvent,
    ResponseCreateEvent,
    ResponseOutputItemDoneEvent,
    ServerEventType,
    SessionUpdateEvent,
    SpeechStartedEvent,
)
from callrelay.models.twilio_api import (
    IGNORED_EVENTS,
    BaseTwilioMessage,
    ClearMessage,
    CloseMessage,
    IncomingMessage,
    MediaMessage,
    OutgoingMarkMessage,
    OutgoingMediaMessage,
    OutgoingMediaPayload,
    StartMessage,
    StopMessage,
    TwilioEventType,
)

SESSION_UPDATE = "session.update"


@dataclass(frozen=True)
class UnrecognizedMessage:
    """A frame that could not be decoded.

    ``raw`` holds the parsed JSON object when the frame was at least a JSON
    object, otherwise ``None``.
    """

    reason: str
    raw: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class IgnoredTelephonyMessage:
    """A well-formed Twilio event the relay has no use for (connected, mark, dtmf)."""

    event: str
    raw: Dict[str, Any] = field(repr=False)


@dataclass(frozen=True)
class TelephonyFrame:
    message: IncomingMessage
    raw: Dict[str, Any] = field(repr=False)


@dataclass(frozen=True)
class ModelFrame:
    event: BaseServerEvent
    raw: Dict[str, Any] = field(repr=False)


@dataclass(frozen=True)
class ObserverFrame:
    raw: Dict[str, Any]
    # Payload of a session.update, captured as the saved configuration
    session_config: Optional[Dict[str, Any]] = None


TelephonyDecoded = Union[TelephonyFrame, IgnoredTelephonyMessage, UnrecognizedMessage]
ModelDecoded = Union[ModelFrame, UnrecognizedMessage]
ObserverDecoded = Union[ObserverFrame, UnrecognizedMessage]

TELEPHONY_VARIANTS: Dict[str, Type[BaseTwilioMessage]] = {
    TwilioEventType.START.value: StartMessage,
    TwilioEventType.MEDIA.value: MediaMessage,
    TwilioEventType.CLOSE.value: CloseMessage,
    TwilioEventType.STOP.value: StopMessage,
}

MODEL_VARIANTS: Dict[str, Type[BaseServerEvent]] = {
    ServerEventType.INPUT_AUDIO_BUFFER_SPEECH_STARTED.value: SpeechStartedEvent,
    ServerEventType.RESPONSE_AUDIO_DELTA.value: ResponseAudioDeltaEvent,
    ServerEventType.RESPONSE_OUTPUT_ITEM_DONE.value: ResponseOutputItemDoneEvent,
    ServerEventType.ERROR.value: ErrorEvent,
}


def _parse_object(data: Union[str, bytes]) -> Union[Dict[str, Any], UnrecognizedMessage]:
    try:
        parsed = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError) as e:
        return UnrecognizedMessage(reason=f"invalid JSON: {e}")
    if not isinstance(parsed, dict):
        return UnrecognizedMessage(reason=f"expected a JSON object, got {type(parsed).__name__}")
    return parsed


def decode_telephony_message(data: Union[str, bytes]) -> TelephonyDecoded:
    """Decode a Twilio Media Streams frame."""
    parsed = _parse_object(data)
    if isinstance(parsed, UnrecognizedMessage):
        return parsed

    event = parsed.get("event")
    if not isinstance(event, str):
        return UnrecognizedMessage(reason="missing 'event' field", raw=parsed)

    if event in IGNORED_EVENTS:
        return IgnoredTelephonyMessage(event=event, raw=parsed)

    model = TELEPHONY_VARIANTS.get(event)
    if model is None:
        return UnrecognizedMessage(reason=f"unknown telephony event '{event}'", raw=parsed)

    try:
        return TelephonyFrame(message=model.model_validate(parsed), raw=parsed)
    except ValidationError as e:
        return UnrecognizedMessage(reason=f"invalid '{event}' frame: {e}", raw=parsed)


def decode_model_message(data: Union[str, bytes]) -> ModelDecoded:
    """Decode a Realtime API server event.

    Types the relay does not act on decode to ``GenericServerEvent`` so they can
    still be mirrored.
    """
    parsed = _parse_object(data)
    if isinstance(parsed, UnrecognizedMessage):
        return parsed

    event_type = parsed.get("type")
    if not isinstance(event_type, str):
        return UnrecognizedMessage(reason="missing 'type' field", raw=parsed)

    model = MODEL_VARIANTS.get(event_type, GenericServerEvent)
    try:
        return ModelFrame(event=model.model_validate(parsed), raw=parsed)
    except ValidationError as e:
        return UnrecognizedMessage(reason=f"invalid '{event_type}' event: {e}", raw=parsed)


def decode_observer_message(data: Union[str, bytes]) -> ObserverDecoded:
    """Decode a frame from the observer leg; any JSON object is accepted."""
    parsed = _parse_object(data)
    if isinstance(parsed, UnrecognizedMessage):
        return parsed

    session_config = None
    if parsed.get("type") == SESSION_UPDATE and isinstance(parsed.get("session"), dict):
        session_config = parsed["session"]
    return ObserverFrame(raw=parsed, session_config=session_config)


# Outbound builders


def media_message(stream_sid: str, payload: str) -> OutgoingMediaMessage:
    return OutgoingMediaMessage(
        streamSid=stream_sid, media=OutgoingMediaPayload(payload=payload)
    )


def mark_message(stream_sid: str) -> OutgoingMarkMessage:
    return OutgoingMarkMessage(streamSid=stream_sid)


def clear_message(stream_sid: str) -> ClearMessage:
    return ClearMessage(streamSid=stream_sid)


def session_update(config: Dict[str, Any]) -> SessionUpdateEvent:
    return SessionUpdateEvent(session=config)


def audio_append(audio: str) -> InputAudioBufferAppendEvent:
    return InputAudioBufferAppendEvent(audio=audio)


def truncate_item(item_id: str, audio_end_ms: int) -> ConversationItemTruncateEvent:
    return ConversationItemTruncateEvent(
        item_id=item_id, content_index=0, audio_end_ms=audio_end_ms
    )


def function_call_output(call_id: Optional[str], output: str) -> ConversationItemCreateEvent:
    return ConversationItemCreateEvent(
        item=FunctionCallOutputItem(call_id=call_id, output=output)
    )


def response_create() -> ResponseCreateEvent:
    return ResponseCreateEvent()


def dump(message: BaseModel) -> Dict[str, Any]:
    """Wire form of an outbound model, as sent by ``WebSocketUtils.safe_send``."""
    return message.model_dump(mode="json", exclude_none=True)
