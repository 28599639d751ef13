"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

from permis_gateway.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_checkout_created(
    request_id: str,
    session_id: str,
    offer_id: str,
    mode_label: str,
    unit_amount_cents: int,
    duration_ms: float,
) -> None:
    """Log a created checkout session"""
    logging.info(
        "Checkout session created",
        extra={
            "request_id": request_id,
            "session_id": session_id,
            "offer_id": offer_id,
            "step": "checkout_created",
            "mode": mode_label,
            "unit_amount_cents": unit_amount_cents,
            "duration_ms": duration_ms,
        },
    )


def log_cancellation_scheduled(subscription_id: str, cycles: int, cancel_at: datetime, attempts: int) -> None:
    """Log a subscription capped at its final cycle"""
    logging.info(
        "Subscription auto-cancel scheduled",
        extra={
            "subscription_id": subscription_id,
            "step": "cancellation_scheduled",
            "cycles": cycles,
            "cancel_at": cancel_at.isoformat(),
            "attempts": attempts,
        },
    )
