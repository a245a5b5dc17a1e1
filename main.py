#!/usr/bin/env python3
"""CLI entry point for the Frontend Development Proxy"""
import argparse
import os

import uvicorn

from devproxy.core.config import get_config, get_env_config
from devproxy.core.exceptions import ConfigError
from devproxy.core.logging import setup_logging, get_logger


def main():
    """Main entry point"""
    env_config = get_env_config()
    setup_logging(log_level=env_config.log_level, log_file=env_config.log_file)
    logger = get_logger()

    parser = argparse.ArgumentParser(description="Frontend Development Proxy")
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="YAML file with a feo_interceptor section (default: FEO_* environment variables)",
    )
    args = parser.parse_args()

    if args.config:
        os.environ["CONFIG_PATH"] = args.config

    # Validate options before uvicorn imports the app
    try:
        config = get_config()
    except ConfigError as e:
        logger.error(f"Invalid interceptor configuration: {e}")
        raise SystemExit(1)

    host = config.server.host
    port = config.server.port

    logger.info("Starting Frontend Development Proxy")
    logger.info(f"Listening on {host}:{port}")

    uvicorn.run(
        "devproxy.main:create_app",
        factory=True,
        host=host,
        port=port,
        log_config=None,  # Disable uvicorn's default logging config
        access_log=True,  # Enable access logs (will be intercepted by loguru)
    )


if __name__ == "__main__":
    main()
