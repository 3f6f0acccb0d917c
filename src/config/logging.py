"""
Logging setup - stdlib logging configuration for the service.

Modules log through logging.getLogger(__name__); this only installs the
root handler and level once at startup.
"""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """
    Configure root logging.

    Unknown level names fall back to INFO rather than failing startup.
    """
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO

    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    logging.getLogger(__name__).debug("Logging configured at %s", logging.getLevelName(resolved))
