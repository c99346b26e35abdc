"""
Configuration module for the call relay.

Usage:

```python
from callrelay.config import get_config
config = get_config()
print(f"Server: {config.server.host}:{config.server.port}")

from callrelay.config.logging_config import configure_logging
logger = configure_logging("my_module")
```

Environment variables are read only after ``load_env_file()`` has been called.
"""

from .env_loader import load_env_file
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
from .settings import (
    get_config,
    integrations_config,
    openai_config,
    relay_config,
    reload_config,
    server_config,
    set_config,
    validate_config,
)

__all__ = [
    "ApplicationConfig",
    "Environment",
    "IntegrationsConfig",
    "LoggingConfig",
    "LogLevel",
    "OpenAIConfig",
    "RelayConfig",
    "ServerConfig",
    "get_config",
    "integrations_config",
    "load_env_file",
    "openai_config",
    "relay_config",
    "reload_config",
    "server_config",
    "set_config",
    "validate_config",
]
