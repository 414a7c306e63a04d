"""Process-wide logging setup for the API and worker entry points."""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str) -> None:
    """Configure root logging once per process.

    Args:
        level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
    # SQL echo is controlled by ENTREGAHUB_DATABASE__ECHO, not the root level
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
