"""Test module."""
import logging

from pyroomlock.common import init_logging


def test_init_logging() -> None:
    """Test function."""
    logger = logging.getLogger("pyroomlock.test_common")
    init_logging(logger, None)
    assert logger.level == logging.NOTSET
    assert not logger.handlers

    init_logging(logger, "DEBUG")
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0], logging.StreamHandler)
    logger.removeHandler(logger.handlers[0])
