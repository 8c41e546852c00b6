"""
Logging setup for checkout services.

Modules log through `logging.getLogger(__name__)`; the service entry point
calls `setup_logging()` once to install a single stdout handler.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s - %(levelname)s - [PID:%(process)d] - %(name)s - %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """
    Configure the root logger with a stdout handler (container friendly).

    Noisy third-party loggers (httpx, SQLAlchemy engine) are kept at WARNING.
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
