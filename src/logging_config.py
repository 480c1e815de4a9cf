"""
Structured logging setup
"""

import logging

import structlog

from src.config import ApiConfig


def configure_logging(config: ApiConfig) -> None:
    """Configure structlog for the API process"""
    level = getattr(logging, config.log_level)

    if config.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            renderer
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=False
    )
