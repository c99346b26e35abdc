"""
Session relay between Twilio, the OpenAI Realtime API and an observer.

``WebSocketSessionManager`` owns the one call session that may be live at any
time and multiplexes its three legs:

- the telephony leg (Twilio Media Streams, ``/call``), whose caller audio is
  forwarded to the model;
- the model leg (Realtime API), whose assistant audio is played back to the
  caller and whose every event is mirrored to the observer;
- the observer leg (``/logs``), which watches the model traffic and may inject
  ``session.update`` overrides that survive model reconnects.

Playback bookkeeping supports barge-in: when the caller starts speaking over
the assistant, the model's item is truncated to the audio actually heard and
Twilio's playback buffer is cleared. Function calls issued by the model are
dispatched through ``FunctionHandler`` and their output fed back into the
conversation. An unexpected drop of the model leg is retried with exponential
backoff (1s, 2s, 4s) before the model is abandoned for the rest of the call.

All handlers run on a single asyncio loop. Each leg has one reader coroutine
and state is only mutated between awaits, so no locking is needed.
"""

import asyncio
import time
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from callrelay.codec import (
    IgnoredTelephonyMessage,
    UnrecognizedMessage,
    audio_append,
    clear_message,
    decode_model_message,
    decode_observer_message,
    decode_telephony_message,
    function_call_output,
    mark_message,
    media_message,
    response_create,
    session_update,
    truncate_item,
)
from callrelay.config.logging_config import configure_logging
from callrelay.config.models import OpenAIConfig, RelayConfig
from callrelay.function_handler import FunctionHandler
from callrelay.functions import create_default_function_handler
from callrelay.listeners import SessionListener
from callrelay.models.openai_api import (
    ErrorEvent,
    OutputItem,
    ResponseAudioDeltaEvent,
    ResponseOutputItemDoneEvent,
    SpeechStartedEvent,
    merge_session_config,
)
from callrelay.models.session_state import (
    ConnectionStats,
    ConnectionType,
    LegState,
    Session,
)
from callrelay.models.twilio_api import (
    CloseMessage,
    MediaMessage,
    StartMessage,
    StopMessage,
)
from callrelay.peers import ModelPeer, Peer, connect_model
from callrelay.utils.retry_utils import RetryUtils
from callrelay.utils.websocket_utils import Event, WebSocketUtils

logger = configure_logging("session_manager")

ModelConnector = Callable[[str, Dict[str, str]], Awaitable[Peer]]


class WebSocketSessionManager:
    """Relays one call at a time between the telephony, model and observer legs.

    Attributes:
        session (Session): The in-progress call, empty between calls
        function_handler (FunctionHandler): Dispatch table for model function calls
        relay_config (RelayConfig): Reconnect budget, backoff and close timeout
        openai_config (OpenAIConfig): Model endpoint and headers
        reconnect_attempts (int): Reconnects fired since the model leg last opened
    """

    def __init__(
        self,
        function_handler: Optional[FunctionHandler] = None,
        relay_config: Optional[RelayConfig] = None,
        openai_config: Optional[OpenAIConfig] = None,
        model_connector: ModelConnector = connect_model,
        listeners: Optional[List[SessionListener]] = None,
    ):
        self.session = Session()
        self.function_handler = function_handler or create_default_function_handler()
        self.relay_config = relay_config or RelayConfig()
        self.openai_config = openai_config or OpenAIConfig()
        self.model_connector = model_connector
        self.reconnect_attempts = 0

        self._listeners: List[SessionListener] = list(listeners or [])
        self._reconnect_task: Optional[asyncio.Task] = None
        self._model_reader: Optional[asyncio.Task] = None
        self._connect_task: Optional[asyncio.Task] = None
        # Telephony peer the in-flight model connect belongs to
        self._connecting_for: Optional[Peer] = None
        self._leg_states: Dict[ConnectionType, LegState] = {
            leg: LegState.ABSENT for leg in ConnectionType
        }
        self._total_connections = 0
        self._last_activity: Optional[datetime] = None

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------
    def add_listener(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SessionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, callback: str, *args: Any) -> None:
        for listener in list(self._listeners):
            try:
                getattr(listener, callback)(*args)
            except Exception as e:
                logger.error(f"Listener {listener!r} failed in {callback}: {e}")

    def _report_error(
        self,
        error_type: str,
        error: BaseException,
        connection_type: Optional[ConnectionType] = None,
    ) -> None:
        self._notify("on_error", error_type, error, connection_type)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------
    async def handle_call_connection(self, peer: Peer, api_key: Optional[str]) -> None:
        """Adopt a new telephony leg and relay it until it closes.

        Any call already in progress is torn down first. Returns once the
        telephony leg has closed and its teardown has finished.
        """
        if self.session.telephony_peer is not None:
            logger.info("New call supersedes the current one, tearing it down")
            await self._teardown_call()

        self.session.telephony_peer = peer
        self.session.api_key = api_key
        self.session.mark_call_started()
        self._opened(ConnectionType.TELEPHONY)

        error: Optional[Exception] = None
        try:
            async for text in peer.messages():
                if self.session.telephony_peer is not peer:
                    break
                self._last_activity = datetime.now()
                try:
                    await self._handle_telephony_message(text)
                except Exception as e:
                    logger.error(f"Error handling telephony message: {e}")
                    self._report_error("message_handling", e, ConnectionType.TELEPHONY)
                if self.session.telephony_peer is not peer:
                    break
        except Exception as e:
            error = e
            logger.error(f"Telephony connection error: {e}")
            self._report_error("websocket_error", e, ConnectionType.TELEPHONY)

        await self._on_telephony_closed(peer, error)

    async def handle_frontend_connection(self, peer: Peer) -> None:
        """Adopt a new observer leg and relay it until it closes."""
        prior = self.session.observer_peer
        if prior is not None and prior is not peer:
            logger.info("New observer supersedes the current one")
            self.session.observer_peer = None
            await WebSocketUtils.graceful_close(
                prior, self.relay_config.close_timeout, logger
            )

        self.session.observer_peer = peer
        self._opened(ConnectionType.OBSERVER)

        try:
            async for text in peer.messages():
                if self.session.observer_peer is not peer:
                    break
                self._last_activity = datetime.now()
                try:
                    await self._handle_observer_message(text)
                except Exception as e:
                    logger.error(f"Error handling observer message: {e}")
                    self._report_error("message_handling", e, ConnectionType.OBSERVER)
        except Exception as e:
            logger.error(f"Observer connection error: {e}")
            self._report_error("websocket_error", e, ConnectionType.OBSERVER)

        if self.session.observer_peer is peer:
            self.session.observer_peer = None
            self._closed(ConnectionType.OBSERVER)
            self._reset_if_idle()

    # ------------------------------------------------------------------
    # Telephony leg
    # ------------------------------------------------------------------
    async def _handle_telephony_message(self, text: str) -> None:
        decoded = decode_telephony_message(text)
        if isinstance(decoded, UnrecognizedMessage):
            logger.warning(f"Dropping telephony frame: {decoded.reason}")
            return
        if isinstance(decoded, IgnoredTelephonyMessage):
            logger.debug(f"Ignoring telephony event: {decoded.event}")
            return

        message = decoded.message
        if isinstance(message, StartMessage):
            self.session.stream_sid = message.start.streamSid
            self.session.latest_media_timestamp = 0
            self.session.clear_utterance()
            logger.info(f"Twilio stream started (SID: {self.session.stream_sid})")
            self._try_connect_model()
        elif isinstance(message, MediaMessage):
            self.session.latest_media_timestamp = message.media.timestamp
            if WebSocketUtils.is_open(self.session.model_peer):
                await self._send(
                    self.session.model_peer,
                    audio_append(message.media.payload),
                    ConnectionType.MODEL,
                )
        elif isinstance(message, (CloseMessage, StopMessage)):
            logger.info(f"Twilio sent '{message.event}', closing the session")
            await self.close_all_connections()

    async def _on_telephony_closed(
        self, peer: Peer, error: Optional[Exception] = None
    ) -> None:
        if self.session.telephony_peer is not peer:
            # Already superseded or torn down
            return
        logger.info(f"Telephony connection closed{f' after error: {error}' if error else ''}")
        await self._teardown_call()

    async def _teardown_call(self) -> None:
        """Close the telephony and model legs and clear the call, keeping the observer."""
        telephony = self.session.telephony_peer
        model = self.session.model_peer
        connecting = telephony is not None and self._connecting_for is telephony
        self._cancel_reconnect()
        self.session.clear_call()
        self.reconnect_attempts = 0
        if model is not None or connecting:
            self._leg_states[ConnectionType.MODEL] = LegState.CLOSED
        if telephony is not None:
            self._leg_states[ConnectionType.TELEPHONY] = LegState.CLOSED

        await asyncio.gather(
            WebSocketUtils.graceful_close(model, self.relay_config.close_timeout, logger),
            WebSocketUtils.graceful_close(
                telephony, self.relay_config.close_timeout, logger
            ),
        )

        if model is not None:
            self._notify("on_connection_closed", ConnectionType.MODEL, None, "call ended")
        if telephony is not None:
            self._notify("on_connection_closed", ConnectionType.TELEPHONY, None, None)
        self._reset_if_idle()

    # ------------------------------------------------------------------
    # Model leg
    # ------------------------------------------------------------------
    def _try_connect_model(self) -> Optional[asyncio.Task]:
        """Start opening the model leg if the call is ready for it.

        The connect runs as its own task so the telephony reader keeps
        consuming frames meanwhile.
        """
        session = self.session
        call_peer = session.telephony_peer
        if call_peer is None or not session.stream_sid or not session.api_key:
            return None
        if WebSocketUtils.is_open(session.model_peer):
            return None
        if self._connecting_for is call_peer:
            return None

        self._cancel_reconnect()
        self._connecting_for = call_peer
        self._leg_states[ConnectionType.MODEL] = LegState.CONNECTING
        self._connect_task = asyncio.create_task(
            self._open_model(call_peer, session.api_key)
        )
        return self._connect_task

    async def _open_model(self, call_peer: Peer, api_key: str) -> None:
        try:
            peer = await self.model_connector(
                self.openai_config.get_websocket_url(),
                self.openai_config.get_headers(api_key),
            )
        except Exception as e:
            logger.error(f"Failed to connect to model: {e}")
            self._report_error("model_connection", e, ConnectionType.MODEL)
            if self.session.telephony_peer is call_peer:
                self._leg_states[ConnectionType.MODEL] = LegState.CLOSED
                self._handle_model_unavailable()
            return
        finally:
            if self._connecting_for is call_peer:
                self._connecting_for = None

        if self.session.telephony_peer is not call_peer:
            logger.info("Call ended while the model was connecting, closing it")
            await WebSocketUtils.graceful_close(
                peer, self.relay_config.close_timeout, logger
            )
            return

        self.session.model_peer = peer
        self.reconnect_attempts = 0

        config = merge_session_config(self.session.saved_config, self.relay_config.voice)
        await self._send(peer, session_update(config), ConnectionType.MODEL)
        if self.session.model_peer is not peer:
            return
        self._opened(ConnectionType.MODEL)
        self._model_reader = asyncio.create_task(self._read_model(peer))

    async def _read_model(self, peer: Peer) -> None:
        error: Optional[Exception] = None
        try:
            async for text in peer.messages():
                self._last_activity = datetime.now()
                try:
                    await self._handle_model_message(text)
                except Exception as e:
                    logger.error(f"Error handling model message: {e}")
                    self._report_error("message_handling", e, ConnectionType.MODEL)
        except Exception as e:
            error = e
            if not peer.closing_initiated:
                logger.error(f"Model connection error: {e}")
                self._report_error("websocket_error", e, ConnectionType.MODEL)

        self._on_model_closed(peer, error)

    def _on_model_closed(self, peer: Peer, error: Optional[Exception] = None) -> None:
        if self.session.model_peer is not peer:
            return

        self.session.model_peer = None
        self._leg_states[ConnectionType.MODEL] = LegState.CLOSED
        code = peer.close_code if isinstance(peer, ModelPeer) else None
        reason = peer.close_reason if isinstance(peer, ModelPeer) else None
        logger.info(f"Model connection closed. Code: {code}, Reason: {reason}")
        self._notify("on_connection_closed", ConnectionType.MODEL, code, reason)

        if not peer.closing_initiated:
            self._handle_model_unavailable()
        else:
            self._reset_if_idle()

    def _handle_model_unavailable(self) -> None:
        """Retry the model leg while the budget lasts, otherwise give it up for this call."""
        if RetryUtils.should_retry(
            self.reconnect_attempts, self.relay_config.max_reconnect_attempts
        ):
            self._schedule_reconnect()
        else:
            logger.error(
                f"Model unavailable after {self.reconnect_attempts} reconnect attempts, "
                "continuing the call without it"
            )
        self._reset_if_idle()

    def _schedule_reconnect(self) -> float:
        self._cancel_reconnect()
        delay = RetryUtils.calculate_backoff_delay(
            self.reconnect_attempts, self.relay_config.reconnect_base_delay
        )
        logger.info(
            f"Reconnecting to model in {delay:.1f}s "
            f"(attempt {self.reconnect_attempts + 1}/{self.relay_config.max_reconnect_attempts})"
        )
        self._reconnect_task = asyncio.create_task(self._reconnect_after(delay))
        return delay

    async def _reconnect_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        self._reconnect_task = None
        self.reconnect_attempts += 1
        self._try_connect_model()

    def _cancel_reconnect(self) -> None:
        task = self._reconnect_task
        self._reconnect_task = None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

    async def _handle_model_message(self, text: str) -> None:
        decoded = decode_model_message(text)
        if isinstance(decoded, UnrecognizedMessage):
            logger.warning(f"Dropping model event: {decoded.reason}")
            if decoded.raw is not None:
                await self._send(
                    self.session.observer_peer, decoded.raw, ConnectionType.OBSERVER
                )
            return

        await self._send(self.session.observer_peer, decoded.raw, ConnectionType.OBSERVER)

        event = decoded.event
        logger.debug(WebSocketUtils.format_event_log(event.type, decoded.raw))
        if isinstance(event, SpeechStartedEvent):
            await self.handle_truncation()
        elif isinstance(event, ResponseAudioDeltaEvent):
            await self._handle_audio_delta(event)
        elif isinstance(event, ResponseOutputItemDoneEvent):
            if event.is_function_call:
                await self._handle_function_call(event.item)
        elif isinstance(event, ErrorEvent):
            logger.error(f"Model reported an error: {event.error.message} ({event.error.code})")

    async def _handle_audio_delta(self, event: ResponseAudioDeltaEvent) -> None:
        session = self.session
        telephony, stream_sid = session.telephony_peer, session.stream_sid
        if telephony is None or not stream_sid:
            return

        if event.item_id:
            if session.response_start_timestamp is None:
                session.response_start_timestamp = session.latest_media_timestamp
            session.last_assistant_item = event.item_id

        await self._send(
            telephony, media_message(stream_sid, event.delta), ConnectionType.TELEPHONY
        )
        await self._send(telephony, mark_message(stream_sid), ConnectionType.TELEPHONY)

    async def handle_truncation(self) -> Optional[int]:
        """Cut the playing assistant utterance short.

        Tells the model how much of the utterance the caller heard and makes
        Twilio drop the audio it has buffered. Does nothing when no utterance
        is being played.

        Returns:
            The ``audio_end_ms`` sent to the model, or None if nothing was playing
        """
        session = self.session
        if not session.has_active_utterance:
            return None

        item_id = session.last_assistant_item
        audio_end_ms = max(
            0, session.latest_media_timestamp - session.response_start_timestamp
        )
        model, telephony, stream_sid = (
            session.model_peer,
            session.telephony_peer,
            session.stream_sid,
        )
        session.clear_utterance()

        if WebSocketUtils.is_open(model):
            await self._send(model, truncate_item(item_id, audio_end_ms), ConnectionType.MODEL)
        if telephony is not None and stream_sid:
            await self._send(telephony, clear_message(stream_sid), ConnectionType.TELEPHONY)

        logger.info(f"Truncated {item_id} at {audio_end_ms}ms")
        return audio_end_ms

    async def _handle_function_call(self, item: OutputItem) -> None:
        name, call_id = item.name or "", item.call_id
        self._notify("on_function_call_started", name, call_id)
        try:
            result = await self.function_handler.execute(name, item.arguments)
            if result.succeeded:
                self._notify("on_function_call_completed", name, call_id, result.output)
            else:
                self._notify("on_function_call_error", name, call_id, result.error)

            model = self.session.model_peer
            if not WebSocketUtils.is_open(model):
                logger.info(f"Model leg gone, discarding result of {name}")
                return
            await self._send(model, function_call_output(call_id, result.output), ConnectionType.MODEL)
            await self._send(model, response_create(), ConnectionType.MODEL)
        except Exception as e:
            logger.error(f"Error handling function call: {e}")
            self._report_error("function_call", e, ConnectionType.MODEL)

    # ------------------------------------------------------------------
    # Observer leg
    # ------------------------------------------------------------------
    async def _handle_observer_message(self, text: str) -> None:
        decoded = decode_observer_message(text)
        if isinstance(decoded, UnrecognizedMessage):
            logger.warning(f"Dropping observer frame: {decoded.reason}")
            return

        if WebSocketUtils.is_open(self.session.model_peer):
            await self._send(self.session.model_peer, decoded.raw, ConnectionType.MODEL)

        if decoded.session_config is not None:
            self.session.saved_config = decoded.session_config
            logger.info(f"Saved session config from observer: {list(decoded.session_config)}")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def _opened(self, connection_type: ConnectionType) -> None:
        self._leg_states[connection_type] = LegState.OPEN
        self._total_connections += 1
        self._notify("on_connection_established", connection_type)

    def _closed(self, connection_type: ConnectionType) -> None:
        self._leg_states[connection_type] = LegState.CLOSED
        self._notify("on_connection_closed", connection_type, None, None)

    async def _send(
        self, peer: Optional[Peer], event: Event, connection_type: ConnectionType
    ) -> bool:
        return await WebSocketUtils.safe_send(
            peer,
            event,
            logger,
            on_error=lambda e: self._report_error("json_send", e, connection_type),
        )

    async def close_all_connections(self) -> None:
        """Close every leg concurrently and reset the session."""
        session = self.session
        legs = {
            ConnectionType.TELEPHONY: session.telephony_peer,
            ConnectionType.MODEL: session.model_peer,
            ConnectionType.OBSERVER: session.observer_peer,
        }
        self._cancel_reconnect()
        session.telephony_peer = session.model_peer = session.observer_peer = None
        for connection_type, peer in legs.items():
            if peer is not None:
                self._leg_states[connection_type] = LegState.CLOSED

        await asyncio.gather(
            *(
                WebSocketUtils.graceful_close(peer, self.relay_config.close_timeout, logger)
                for peer in legs.values()
                if peer is not None
            )
        )
        for connection_type, peer in legs.items():
            if peer is not None:
                self._notify("on_connection_closed", connection_type, None, "session closed")
        self._reset_session()

    def _reset_if_idle(self) -> None:
        if not self.session.has_active_connections():
            self._reset_session()

    def _reset_session(self) -> None:
        self._cancel_reconnect()
        self.session = Session()
        self.reconnect_attempts = 0
        self._leg_states = {leg: LegState.ABSENT for leg in ConnectionType}
        logger.info("Session reset")
        self._notify("on_session_reset")

    async def destroy(self) -> None:
        """Drop all listeners and close every leg."""
        self._listeners.clear()
        await self.close_all_connections()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    def leg_state(self, connection_type: ConnectionType) -> LegState:
        return self._leg_states[connection_type]

    def get_session_info(self) -> Session:
        return self.session.snapshot()

    def is_connected(self) -> bool:
        return self.session.has_active_connections()

    def has_pending_reconnect(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    def get_connection_stats(self) -> ConnectionStats:
        session = self.session
        active = sum(
            1
            for peer in (session.telephony_peer, session.observer_peer, session.model_peer)
            if WebSocketUtils.is_open(peer)
        )
        started = session.connection_started_at
        return ConnectionStats(
            total_connections=self._total_connections,
            active_connections=active,
            connection_duration_ms=int((time.time() - started) * 1000) if started else 0,
            last_activity=self._last_activity,
        )

    async def health_check(self) -> Dict[str, Any]:
        healthy = self.session.has_active_connections()
        return {
            "status": "healthy" if healthy else "unhealthy",
            "details": {
                "connections": self.get_connection_stats().to_dict(),
                "legs": {leg.value: state.value for leg, state in self._leg_states.items()},
                "session": {
                    "stream_sid": bool(self.session.stream_sid),
                    "has_api_key": bool(self.session.api_key),
                    "has_config": bool(self.session.saved_config),
                },
                "reconnect_attempts": self.reconnect_attempts,
            },
        }
