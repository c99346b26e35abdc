"""
Constants and configuration values used throughout the application.

This module defines constants that are used across different parts of the application,
providing a centralized location for wire-level values and making it easier to
maintain consistent naming throughout the codebase.
"""

# Logger name used throughout the application
LOGGER_NAME = "callrelay"

# OpenAI Realtime API
DEFAULT_MODEL = "gpt-4o-realtime-preview-2024-12-17"
DEFAULT_REALTIME_BASE_URL = "wss://api.openai.com"
REALTIME_BETA_HEADER = "realtime=v1"

# Default voice for the assistant
VOICE = "ash"

# Twilio Media Streams carry 8kHz mu-law, which the Realtime API accepts as-is
AUDIO_FORMAT = "g711_ulaw"
TRANSCRIPTION_MODEL = "whisper-1"

# Model leg reconnection
DEFAULT_MAX_RECONNECT_ATTEMPTS = 3
DEFAULT_RECONNECT_BASE_DELAY = 1.0  # seconds, doubled on every attempt

# Upper bound for an orderly close before the transport is aborted
DEFAULT_CLOSE_TIMEOUT = 5.0  # seconds

# WebSocket path prefixes routed to the session manager
CALL_PATH = "call"
LOGS_PATH = "logs"

# Third-party endpoints used by function handlers
OPEN_METEO_FORECAST_URL = "https://api.open-meteo.com/v1/forecast"
CALENDLY_SCHEDULED_EVENTS_URL = "https://api.calendly.com/scheduled_events"
HTTP_TIMEOUT = 10.0  # seconds
