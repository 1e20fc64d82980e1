"""Centralised logging configuration.

Modules only call ``logging.getLogger(__name__)``; entry points (CLI, API
lifespan) call :func:`configure_logging` once.
"""

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: int | str = logging.INFO) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)
