"""
Environment variable loader for callrelay configuration.

This module handles loading configuration from environment variables,
with type conversion, validation, and fallback to defaults.

Environment variables must be explicitly loaded using load_env_file() before
accessing any configuration functions.
"""

import os
from pathlib import Path
from typing import Optional, Type, TypeVar, cast

from dotenv import load_dotenv

from .constants import (
    DEFAULT_CLOSE_TIMEOUT,
    DEFAULT_MAX_RECONNECT_ATTEMPTS,
    DEFAULT_MODEL,
    DEFAULT_REALTIME_BASE_URL,
    DEFAULT_RECONNECT_BASE_DELAY,
    VOICE,
)
from .models import (
    ApplicationConfig,
    Environment,
    IntegrationsConfig,
    LoggingConfig,
    LogLevel,
    OpenAIConfig,
    RelayConfig,
    ServerConfig,
)

# Track if environment variables have been loaded
_env_loaded = False


def load_env_file(env_file: Optional[str] = None) -> None:
    """Load environment variables from .env files.

    Without an explicit path, ``.env.<ENV>`` is loaded first and ``.env`` second;
    values already present in the process environment are never overridden.

    Args:
        env_file: Path to a specific .env file.
    """
    global _env_loaded
    if env_file:
        load_dotenv(env_file)
    else:
        env_name = os.getenv("ENV", "development").lower()
        load_dotenv(f".env.{env_name}")
        load_dotenv()
    _env_loaded = True


def _check_env_loaded() -> None:
    """Check if environment variables have been loaded, raise error if not."""
    if not _env_loaded:
        raise RuntimeError(
            "Environment variables not loaded. Call load_env_file() before accessing configuration."
        )


T = TypeVar("T")


def safe_convert(value: Optional[str], target_type: Type[T], default: T) -> T:
    """Safely convert environment variable string to target type."""
    if value is None or value == "":
        return default

    try:
        if target_type == bool:
            return cast(T, value.lower() == "true")
        elif target_type == int:
            return cast(T, int(value))
        elif target_type == float:
            return cast(T, float(value))
        elif target_type == str:
            return cast(T, value)
        elif target_type == Path:
            return cast(T, Path(value))
        else:
            return default
    except (ValueError, TypeError):
        return default


def safe_string_or_none(value: Optional[str]) -> Optional[str]:
    """Convert environment variable to string or None if empty."""
    if value is None or value.strip() == "":
        return None
    return value.strip()


def load_server_config() -> ServerConfig:
    """Load server configuration from environment variables."""
    _check_env_loaded()

    env_str = os.getenv("ENV", "development").lower()
    try:
        environment = Environment(env_str)
    except ValueError:
        environment = Environment.DEVELOPMENT

    host = os.getenv("HOST", "localhost")
    port = safe_convert(os.getenv("PORT"), int, 8081)
    public_url = safe_string_or_none(os.getenv("PUBLIC_URL")) or f"http://{host}:{port}"

    return ServerConfig(
        host=host,
        port=port,
        public_url=public_url,
        environment=environment,
        allowed_origins=[
            origin.strip()
            for origin in os.getenv("ALLOWED_ORIGINS", "*").split(",")
            if origin.strip()
        ],
    )


def load_openai_config() -> OpenAIConfig:
    """Load OpenAI configuration from environment variables."""
    _check_env_loaded()

    return OpenAIConfig(
        api_key=safe_string_or_none(os.getenv("OPENAI_API_KEY")),
        model=os.getenv("OPENAI_MODEL", DEFAULT_MODEL),
        base_url=os.getenv("OPENAI_REALTIME_BASE_URL", DEFAULT_REALTIME_BASE_URL),
    )


def load_relay_config() -> RelayConfig:
    """Load relay configuration from environment variables."""
    _check_env_loaded()

    return RelayConfig(
        max_reconnect_attempts=safe_convert(
            os.getenv("MAX_RECONNECT_ATTEMPTS"), int, DEFAULT_MAX_RECONNECT_ATTEMPTS
        ),
        reconnect_base_delay=safe_convert(
            os.getenv("RECONNECT_BASE_DELAY"), float, DEFAULT_RECONNECT_BASE_DELAY
        ),
        close_timeout=safe_convert(
            os.getenv("CLOSE_TIMEOUT"), float, DEFAULT_CLOSE_TIMEOUT
        ),
        voice=os.getenv("VOICE", VOICE),
    )


def load_integrations_config() -> IntegrationsConfig:
    """Load third-party credentials from environment variables."""
    _check_env_loaded()

    return IntegrationsConfig(
        calendly_access_token=safe_string_or_none(os.getenv("CALENDLY_ACCESS_TOKEN")),
    )


def load_logging_config() -> LoggingConfig:
    """Load logging configuration from environment variables."""
    _check_env_loaded()

    log_level = LogLevel.INFO
    try:
        log_level = LogLevel(os.getenv("LOG_LEVEL", "INFO").upper())
    except ValueError:
        pass

    return LoggingConfig(level=log_level)


def load_application_config() -> ApplicationConfig:
    """Load the complete application configuration from environment variables."""
    return ApplicationConfig(
        server=load_server_config(),
        openai=load_openai_config(),
        relay=load_relay_config(),
        integrations=load_integrations_config(),
        logging=load_logging_config(),
    )

