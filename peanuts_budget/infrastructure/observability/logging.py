"""Structured JSON logging"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

from peanuts_budget.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str | None = None) -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level or settings.log_level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_scheduler_pass(
    today: str,
    created: int,
    already_materialized: int,
    ended: int,
    not_due: int,
    failed: int,
    duration_ms: float,
) -> None:
    """Log structured scheduler pass outcome"""
    logging.info(
        "Recurring scheduler pass completed",
        extra={
            "step": "scheduler_pass",
            "today": today,
            "created": created,
            "already_materialized": already_materialized,
            "ended": ended,
            "not_due": not_due,
            "failed": failed,
            "duration_ms": duration_ms,
        },
    )


def log_document_loaded(file_name: str, migrated: bool, counts: Dict[str, int]) -> None:
    """Log what a ledger document contained once it has been loaded"""
    logging.info(
        "Ledger document loaded",
        extra={
            "step": "document_load",
            "file_name": file_name,
            "migrated": migrated,
            **counts,
        },
    )
