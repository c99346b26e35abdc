"""
Centralized configuration settings for callrelay.

This module provides singleton access to the application configuration.
"""

from typing import Optional

from .env_loader import load_application_config
from .models import ApplicationConfig

# Global configuration instance
_config: Optional[ApplicationConfig] = None


def get_config() -> ApplicationConfig:
    """Get the global application configuration instance."""
    global _config
    if _config is None:
        _config = load_application_config()
    return _config


def reload_config() -> ApplicationConfig:
    """Reload configuration from environment variables."""
    global _config
    _config = load_application_config()
    return _config


def set_config(config: ApplicationConfig) -> None:
    """Set a custom configuration instance (useful for testing)."""
    global _config
    _config = config


def validate_config() -> None:
    """Validate the active configuration.

    Raises:
        ValueError: If the configuration has any problems.
    """
    errors = get_config().validate()
    if errors:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"- {error}" for error in errors)
        )


# Convenience aliases for common configurations
def server_config():
    """Get server configuration."""
    return get_config().server


def openai_config():
    """Get OpenAI configuration."""
    return get_config().openai


def relay_config():
    """Get relay configuration."""
    return get_config().relay


def integrations_config():
    """Get third-party integrations configuration."""
    return get_config().integrations
