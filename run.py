"""
Run script for starting the call relay server.

Validates the configuration, then serves ``callrelay.main:app`` with uvicorn.

Usage:
    python run.py [--port PORT] [--host HOST] [--log-level LEVEL]
"""

import argparse
import sys

import uvicorn

from callrelay.config import get_config, validate_config
from callrelay.config.env_loader import load_env_file
from callrelay.config.logging_config import configure_logging

load_env_file()

logger = configure_logging("run")


def parse_args():
    """Parse command line arguments."""
    config = get_config()
    parser = argparse.ArgumentParser(description="Start the call relay server")
    parser.add_argument(
        "--port",
        type=int,
        default=config.server.port,
        help=f"Port to run the server on (default: {config.server.port} or PORT env var)",
    )
    parser.add_argument(
        "--host",
        default=config.server.host,
        help="Host to bind the server to (default: HOST env var)",
    )
    parser.add_argument(
        "--log-level",
        default=config.logging.level.value,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO or LOG_LEVEL env var)",
    )
    return parser.parse_args()


def main():
    """Main entry point: refuse to start on an invalid configuration."""
    args = parse_args()

    try:
        validate_config()
    except ValueError as e:
        logger.error(str(e))
        print(f"\nError: {e}")
        sys.exit(1)

    config = get_config()
    logger.info("=== Server Configuration ===")
    logger.info(f"Host: {args.host}")
    logger.info(f"Port: {args.port}")
    logger.info(f"Public URL: {config.server.public_url}")
    logger.info(f"Model: {config.openai.model}")
    logger.info(f"Environment: {config.server.environment.value}")
    logger.info("=========================")

    try:
        uvicorn.run(
            "callrelay.main:app",
            host=args.host,
            port=args.port,
            log_level=args.log_level.lower(),
            http="h11",
            access_log=False,
            reload=config.is_development(),
            # WebSocket settings
            ws_ping_interval=5,
            ws_ping_timeout=10,
            workers=1,
            loop="asyncio",
        )
    except Exception as e:
        logger.error(f"Failed to start server: {str(e)}")
        print(f"\nError: Failed to start server: {str(e)}")
        sys.exit(1)


if __name__ == "__main__":
    main()
