"""
Notification channels for the session relay.

``WebSocketSessionManager`` reports every state transition through the
``SessionListener`` interface. Listeners are plain objects; override only the
callbacks you care about. Exceptions raised by a listener are logged and do not
reach the relay.
"""

from typing import Any, Dict, Optional

from callrelay.config.logging_config import configure_logging
from callrelay.models.session_state import ConnectionType

logger = configure_logging("listeners")


class SessionListener:
    """Callbacks invoked by the relay on state transitions. All are no-ops by default."""

    def on_connection_established(self, connection_type: ConnectionType) -> None:
        pass

    def on_connection_closed(
        self,
        connection_type: ConnectionType,
        code: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> None:
        pass

    def on_function_call_started(self, name: str, call_id: Optional[str]) -> None:
        pass

    def on_function_call_completed(
        self, name: str, call_id: Optional[str], result: str
    ) -> None:
        pass

    def on_function_call_error(
        self, name: str, call_id: Optional[str], error: Dict[str, Any]
    ) -> None:
        pass

    def on_session_reset(self) -> None:
        pass

    def on_error(
        self,
        error_type: str,
        error: BaseException,
        connection_type: Optional[ConnectionType] = None,
    ) -> None:
        pass


class LoggingSessionListener(SessionListener):
    """Writes every notification to the relay log."""

    def on_connection_established(self, connection_type):
        logger.info(f"{connection_type.value} connection established")

    def on_connection_closed(self, connection_type, code=None, reason=None):
        logger.info(
            f"{connection_type.value} connection closed. Code: {code}, Reason: {reason}"
        )

    def on_function_call_started(self, name, call_id):
        logger.info(f"Function call started: {name} (call_id={call_id})")

    def on_function_call_completed(self, name, call_id, result):
        logger.info(f"Function call completed: {name} (call_id={call_id})")

    def on_function_call_error(self, name, call_id, error):
        logger.warning(f"Function call failed: {name} (call_id={call_id}): {error}")

    def on_session_reset(self):
        logger.info("Session reset")

    def on_error(self, error_type, error, connection_type=None):
        leg = connection_type.value if connection_type else "session"
        logger.error(f"SessionManager error [{error_type}] on {leg}: {error}")
