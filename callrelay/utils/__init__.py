from .retry_utils import RetryUtils
from .websocket_utils import WebSocketUtils

__all__ = ["RetryUtils", "WebSocketUtils"]
