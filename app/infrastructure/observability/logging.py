"""
Structured logging for the API and worker processes.

JSON lines in every deployed environment, a readable console renderer in
development. Every entry carries the service name and environment so API
and worker logs can be told apart after aggregation.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.stdlib import LoggerFactory

SERVICE_NAME = "codenotify"


def _service_context(environment: str):
    def add_service_context(logger, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        event_dict.setdefault("service", SERVICE_NAME)
        event_dict.setdefault("environment", environment)
        return event_dict

    return add_service_context


def setup_logging(log_level: str = "INFO", environment: str = "production") -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        environment: Deployment environment; "development" switches to console output
    """
    renderer = (
        structlog.dev.ConsoleRenderer()
        if environment == "development"
        else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            _service_context(environment),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    # Outbound platform and provider calls are logged by the adapters themselves
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("psycopg.pool").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def log_health_check(service: str, healthy: bool, latency_ms: float, error: str = None):
    """Log health check results with consistent fields."""
    logger = get_logger("health")

    log_data = {
        "dependency": service,
        "healthy": healthy,
        "latency_ms": latency_ms,
        "kind": "health_check",
    }

    if error:
        log_data["error"] = error

    if healthy:
        logger.info("Health check passed", **log_data)
    else:
        logger.error("Health check failed", **log_data)


def log_sync_result(platform: str, result: dict[str, Any]) -> None:
    """Log one platform sync outcome with consistent fields."""
    logger = get_logger("contest_sync")

    log_data = {
        "platform": platform,
        "success": result.get("success", False),
        "contests_fetched": result.get("contests_fetched", 0),
        "contests_added": result.get("contests_added", 0),
        "contests_updated": result.get("contests_updated", 0),
        "contests_failed": result.get("contests_failed", 0),
        "duration_ms": result.get("duration_ms"),
        "kind": "platform_sync",
    }

    if result.get("error"):
        log_data["error"] = result["error"]

    if log_data["success"]:
        logger.info("Platform sync completed", **log_data)
    else:
        logger.warning("Platform sync failed", **log_data)


def log_notification_outcome(
    notification_id: str | None,
    user_id: str,
    status: str,
    sent: list[str],
    failed: list[str],
    next_retry_at: str | None = None,
) -> None:
    """Log the state of a notification after a delivery attempt."""
    logger = get_logger("notifications")

    log_data = {
        "notification_id": notification_id,
        "user_id": user_id,
        "status": status,
        "sent_channels": sent,
        "failed_channels": failed,
        "kind": "notification_delivery",
    }
    if next_retry_at:
        log_data["next_retry_at"] = next_retry_at

    if status == "FAILED":
        logger.warning("Notification delivery failed", **log_data)
    else:
        logger.info("Notification dispatched", **log_data)
