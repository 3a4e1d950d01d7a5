"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

from billing_ledger.config import settings

logger = logging.getLogger("billing_ledger")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    root = logging.getLogger()
    root.setLevel(level)

    # Remove existing handlers
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
    handler.setFormatter(formatter)
    root.addHandler(handler)


def log_side_effect_failure(step: str, error: BaseException, **context: Any) -> None:
    """Log a trailing step that failed after its primary operation committed"""
    logger.error(
        "Best-effort step failed",
        extra={
            "step": step,
            "error_type": type(error).__name__,
            "error": str(error),
            **{key: str(value) for key, value in context.items()},
        },
        exc_info=error,
    )


def log_payment(kind: str, user_id: str, entity_id: Any, amount_cents: int) -> None:
    """Log a recorded payment for reconciliation analysis"""
    logger.info(
        "Payment recorded",
        extra={
            "step": "payment_recorded",
            "payment_kind": kind,
            "user_id": user_id,
            "entity_id": str(entity_id),
            "amount_cents": amount_cents,
        },
    )
