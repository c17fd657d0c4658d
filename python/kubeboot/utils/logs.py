"""
kubeboot/utils/logs.py

Logging setup for the command-line entry points. Library modules only create
module-level loggers and never configure handlers themselves.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Send log records to stderr at the given level name (e.g. "DEBUG")."""
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level!r}")
    logging.basicConfig(stream=sys.stderr, level=numeric, format=LOG_FORMAT)
