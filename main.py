#!/usr/bin/env python3
"""
link-snap Main Entry Point

Runs the webhook server that shortens links in incoming chat messages.
"""

import logging
import os
import signal
import sys
from types import FrameType

WEB_LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


def setup_logging() -> None:
    """Configure root logging from LOG_LEVEL and optional LOG_FILE"""
    log_level = os.getenv('LOG_LEVEL', 'INFO').upper()
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    log_file = os.getenv('LOG_FILE', '')
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format=WEB_LOG_FORMAT,
        datefmt='%Y-%m-%d %H:%M:%S',
        handlers=handlers,
    )


def _shutdown(signum: int, frame: FrameType | None) -> None:
    """Graceful shutdown handler"""
    logging.getLogger(__name__).info("Shutting down (signal %s)", signum)
    sys.exit(0)


def main() -> None:
    """Main entry point"""
    setup_logging()

    signal.signal(signal.SIGTERM, _shutdown)
    signal.signal(signal.SIGINT, _shutdown)

    # Imported after logging is configured so startup warnings are emitted
    from web import run_web_ui
    run_web_ui()


if __name__ == '__main__':
    main()
