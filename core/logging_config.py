"""
Logging configuration module for the invoicing backend.

This module provides centralized configuration and initialization
for the structured logging system using structlog and Django's
logging framework.
"""

import structlog
from django.conf import settings


class LoggingConfig:
    """
    Centralized logging configuration class.

    Sets up structlog on top of the stdlib loggers configured by
    Django's ``LOGGING`` setting.
    """

    _initialized = False

    @staticmethod
    def configure_structlog():
        """
        Configure structlog with custom processors and settings.

        Request context, sanitization and business-domain processors run
        after the logger name and level are attached so they can use them.
        """
        from .logging.processors import (
            ContextProcessor,
            SanitizationProcessor,
            BusinessContextProcessor
        )

        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                ContextProcessor(),
                SanitizationProcessor(),
                BusinessContextProcessor(),
                structlog.stdlib.PositionalArgumentsFormatter(),
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.UnicodeDecoder(),
                structlog.processors.JSONRenderer()
            ],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

    @staticmethod
    def get_logger(name):
        """
        Get a configured logger instance.

        Args:
            name (str): Logger name, typically __name__

        Returns:
            structlog.BoundLogger: Configured logger instance
        """
        return structlog.get_logger(name)

    @classmethod
    def initialize(cls):
        """
        Initialize the structured logging system.

        Called once from ``CoreConfig.ready``; Django has already applied
        ``settings.LOGGING`` by then.
        """
        if cls._initialized:
            return
        cls.configure_structlog()
        cls._initialized = True

        logger = cls.get_logger(__name__)
        logger.info("Logging system initialized",
                    environment=getattr(settings, 'ENVIRONMENT', 'development'))


def get_logger(name):
    """
    Convenience function to get a configured logger.

    Args:
        name (str): Logger name, typically __name__

    Returns:
        structlog.BoundLogger: Configured logger instance
    """
    return LoggingConfig.get_logger(name)

