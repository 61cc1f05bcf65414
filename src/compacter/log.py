"""Logging helpers shared by the whole package"""
import logging
import logging.config

from compacter.conf import settings


def logged(cls):
    """
    Class decorator. Adds a `logger` attribute named after the class
    under the user_info hierarchy.
    """
    cls.logger = logging.getLogger(f"user_info.{cls.__module__}.{cls.__name__}")
    return cls


def setup_logging(config=None):
    logging.config.dictConfig(config or settings.LOGGERS)
