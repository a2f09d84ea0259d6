"""Entry point for the Kagikanri server.

Usage:
    python -m kagikanri [options]

Options:
    --port PORT       HTTP port (default: PORT or 8080)
    --host HOST       Bind address (default: HOST or 0.0.0.0)
    --config PATH     YAML config file overriding environment variables
"""

import argparse
import sys

import uvicorn

from .config import Settings
from .errors import ConfigError
from .logging import get_logger, parse_level, setup_logging
from .main import create_app
from .state import AppState


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="kagikanri",
        description="A secure, self-hosted password manager",
    )
    parser.add_argument("--port", type=int, default=None, help="HTTP port")
    parser.add_argument("--host", default=None, help="Bind address")
    parser.add_argument("--config", default=None, help="YAML config file")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    try:
        settings = Settings.load(config_path=args.config, port=args.port)
    except ConfigError as exc:
        print(f"Configuration error: {exc.message}", file=sys.stderr)
        sys.exit(2)

    if args.host:
        settings.server.host = args.host

    setup_logging(
        log_dir=settings.server.log_dir,
        console_level=parse_level(settings.server.log_level),
    )
    logger = get_logger("main")

    state = AppState.build(settings)
    app = create_app(state)

    logger.info(f"Starting Kagikanri server on {settings.server.host}:{settings.server.port}")
    logger.info(f"  Store:   {settings.pass_store.store_dir}")
    logger.info(f"  Sync:    every {settings.git.sync_interval_minutes} min")
    logger.info(f"  Session: {settings.auth.session_timeout_hours} h")

    uvicorn.run(
        app,
        host=settings.server.host,
        port=settings.server.port,
        log_level="warning",
    )


if __name__ == "__main__":
    main()
