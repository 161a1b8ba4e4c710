"""Logging configuration with structlog integration.

Two logging channels are used:
1. loguru: general diagnostic logs
2. structlog: structured logs for key business events
"""

import sys
from typing import Any

import structlog
from loguru import logger

from festival_finder.core.config import settings


def setup_logging() -> None:
    """Configure application logging with structlog and loguru."""
    _configure_structlog()
    _configure_loguru()

    logger.info(f"Logging configured with level: {settings.LOG_LEVEL}")


def _configure_structlog() -> None:
    """Configure the structlog processor chain."""
    if settings.ENVIRONMENT == "local":
        renderer = structlog.dev.ConsoleRenderer(colors=True)
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.CallsiteParameterAdder(
                [
                    structlog.processors.CallsiteParameter.MODULE,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                    structlog.processors.CallsiteParameter.LINENO,
                ]
            ),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            _get_log_level_number(settings.LOG_LEVEL)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def _configure_loguru() -> None:
    """Configure loguru."""
    logger.remove()

    logger.add(
        sys.stderr,
        level=settings.LOG_LEVEL,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
        colorize=True,
    )

    if settings.ENVIRONMENT != "local":
        logger.add(
            "logs/festival_finder_{time:YYYY-MM-DD}.log",
            rotation="00:00",
            retention="30 days",
            level="INFO",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        )


def _get_log_level_number(level: str) -> int:
    """Translate a log level name into its numeric value."""
    levels = {
        "DEBUG": 10,
        "INFO": 20,
        "WARNING": 30,
        "ERROR": 40,
        "CRITICAL": 50,
    }
    return levels.get(level.upper(), 20)


# ============================================================================
# Business event logger
# ============================================================================


def get_business_logger() -> structlog.BoundLogger:
    """Return the structured business event logger.

    Usage:
        from festival_finder.core.infrastructure.logging import get_business_logger

        log = get_business_logger()
        log.info("catalog_loaded", loaded=27, dropped=1)
    """
    return structlog.get_logger("business")


class BusinessEvents:
    """Helpers that keep business event names and fields consistent.

    Usage:
        from festival_finder.core.infrastructure.logging import BusinessEvents

        BusinessEvents.catalog_loaded(loaded=27, dropped=1, duration_ms=40)
    """

    _log = structlog.get_logger("business.events")

    @classmethod
    def catalog_loaded(
        cls,
        loaded: int,
        dropped: int,
        duration_ms: int,
        **extra: Any,
    ) -> None:
        """Record a completed catalog load."""
        cls._log.info(
            "catalog_loaded",
            event_type="catalog",
            loaded=loaded,
            dropped=dropped,
            duration_ms=duration_ms,
            **extra,
        )

    @classmethod
    def catalog_load_failed(
        cls,
        error: str,
        **extra: Any,
    ) -> None:
        """Record a failed catalog load."""
        cls._log.warning(
            "catalog_load_failed",
            event_type="catalog_error",
            error=error,
            **extra,
        )

    @classmethod
    def location_acquired(
        cls,
        strategy: str,
        **extra: Any,
    ) -> None:
        """Record a successful geolocation fix.

        Coordinates are intentionally not logged.
        """
        cls._log.info(
            "location_acquired",
            event_type="location",
            strategy=strategy,
            **extra,
        )

    @classmethod
    def location_failed(
        cls,
        kind: str,
        strategy: str | None = None,
        **extra: Any,
    ) -> None:
        """Record a failed geolocation attempt."""
        cls._log.warning(
            "location_failed",
            event_type="location_error",
            kind=kind,
            strategy=strategy,
            **extra,
        )

    @classmethod
    def watch_started(cls, **extra: Any) -> None:
        cls._log.info("watch_started", event_type="location_watch", **extra)

    @classmethod
    def watch_stopped(cls, reason: str, **extra: Any) -> None:
        cls._log.info(
            "watch_stopped",
            event_type="location_watch",
            reason=reason,
            **extra,
        )

    @classmethod
    def page_grown(
        cls,
        size: int,
        total: int,
        **extra: Any,
    ) -> None:
        """Record a grown page window."""
        cls._log.debug(
            "page_grown",
            event_type="pagination",
            size=size,
            total=total,
            has_more=size < total,
            **extra,
        )

    @classmethod
    def feature_degraded(
        cls,
        feature: str,
        reason: str,
        **extra: Any,
    ) -> None:
        """Record a degraded feature."""
        cls._log.warning(
            "feature_degraded",
            event_type="degradation",
            feature=feature,
            reason=reason,
            **extra,
        )
