"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

from treasury_engine.config import settings


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

    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_settlement(
    logger: logging.Logger,
    workspace_id: str,
    source_type: str,
    instance_id: str,
    movement_id: Optional[str],
    outcome: str,
) -> None:
    """Log structured settlement outcome"""
    logger.info(
        "Settlement %s",
        outcome,
        extra={
            "workspace_id": workspace_id,
            "step": "settlement",
            "source_type": source_type,
            "instance_id": instance_id,
            "movement_id": movement_id,
            "outcome": outcome,
        },
    )


def log_reconciliation_event(
    logger: logging.Logger,
    event: str,
    workspace_id: str,
    external_transaction_id: str,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    """Log reconciliation event for audit trail"""
    logger.info(
        "Reconciliation event: %s",
        event,
        extra={
            "workspace_id": workspace_id,
            "step": event,
            "external_transaction_id": external_transaction_id,
            "details": details or {},
        },
    )
