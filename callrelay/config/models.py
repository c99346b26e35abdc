"""
Configuration models for the callrelay application.

This module defines dataclasses for the different configuration domains,
providing type safety and validation for all application settings.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from callrelay.config.constants import (
    DEFAULT_CLOSE_TIMEOUT,
    DEFAULT_MAX_RECONNECT_ATTEMPTS,
    DEFAULT_MODEL,
    DEFAULT_REALTIME_BASE_URL,
    DEFAULT_RECONNECT_BASE_DELAY,
    REALTIME_BETA_HEADER,
    VOICE,
)


class Environment(Enum):
    """Application environment types."""

    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"


class LogLevel(Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class ServerConfig:
    """Server configuration settings."""

    host: str = "0.0.0.0"
    port: int = 8081
    public_url: str = "http://localhost:8081"
    environment: Environment = Environment.DEVELOPMENT
    allowed_origins: List[str] = field(default_factory=lambda: ["*"])


@dataclass
class OpenAIConfig:
    """OpenAI Realtime API configuration."""

    api_key: Optional[str] = None
    model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_REALTIME_BASE_URL

    def get_websocket_url(self) -> str:
        """Get the OpenAI Realtime API WebSocket URL."""
        return f"{self.base_url}/v1/realtime?model={self.model}"

    def get_headers(self, api_key: Optional[str] = None) -> Dict[str, str]:
        """Get headers for OpenAI API authentication.

        Args:
            api_key: Credential handed over with the call; falls back to the
                configured key.
        """
        key = api_key or self.api_key
        if not key:
            raise ValueError("OpenAI API key is required")
        return {
            "Authorization": f"Bearer {key}",
            "OpenAI-Beta": REALTIME_BETA_HEADER,
        }


@dataclass
class RelayConfig:
    """Session relay behaviour."""

    max_reconnect_attempts: int = DEFAULT_MAX_RECONNECT_ATTEMPTS
    reconnect_base_delay: float = DEFAULT_RECONNECT_BASE_DELAY
    close_timeout: float = DEFAULT_CLOSE_TIMEOUT
    voice: str = VOICE


@dataclass
class IntegrationsConfig:
    """Credentials for the third-party APIs used by function handlers."""

    calendly_access_token: Optional[str] = None


@dataclass
class LoggingConfig:
    """Logging configuration settings."""

    level: LogLevel = LogLevel.INFO


@dataclass
class ApplicationConfig:
    """Master application configuration containing all domain configs."""

    server: ServerConfig = field(default_factory=ServerConfig)
    openai: OpenAIConfig = field(default_factory=OpenAIConfig)
    relay: RelayConfig = field(default_factory=RelayConfig)
    integrations: IntegrationsConfig = field(default_factory=IntegrationsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> List[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if not self.openai.api_key:
            errors.append(
                "OpenAI API key is required. Please set the OPENAI_API_KEY environment variable"
            )

        if self.server.port <= 0 or self.server.port > 65535:
            errors.append("Server port must be between 1 and 65535")

        if self.relay.max_reconnect_attempts < 0:
            errors.append("MAX_RECONNECT_ATTEMPTS must not be negative")

        if self.relay.reconnect_base_delay <= 0:
            errors.append("RECONNECT_BASE_DELAY must be greater than 0")

        if self.relay.close_timeout <= 0:
            errors.append("CLOSE_TIMEOUT must be greater than 0")

        return errors

    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.server.environment == Environment.DEVELOPMENT

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.server.environment == Environment.PRODUCTION
