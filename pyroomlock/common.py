"""Common code."""
import logging
from typing import Optional


def init_logging(logger: logging.Logger, logger_level: Optional[str]) -> None:
    """Initialize the logger."""
    # Set logging level (such as INFO, DEBUG, etc) via an environment variable
    # Defaults to WARNING log level unless PYROOMLOCK_LOGLEVEL variable exists
    if logger_level:
        logger.setLevel(logger_level)
        log_handler = logging.StreamHandler()
        log_handler.setFormatter(
            logging.Formatter("%(levelname)s@{%(name)s:%(lineno)d} - %(message)s")
        )
        logger.addHandler(log_handler)


class PyroomlockError(Exception):
    """Simple error."""


class XapiError(PyroomlockError):
    """The device rejected a command."""

    def __init__(self, reason: str):
        """Init error with the reason reported by the device."""
        super().__init__(reason)
        self.reason = reason
