"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

from charge_mgmt.config import settings


class ChargeJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON records stamped with the emitting service and the request they belong to.

    Every record carries ``request_id`` (null outside a request) so log queries can
    group on it without checking for the key.
    """

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name
        log_record["version"] = settings.service_version
        log_record.setdefault("request_id", None)


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ChargeJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s"))
    logger.addHandler(handler)

    # uvicorn installs its own plain-text handlers; send its records through ours
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        server_logger = logging.getLogger(name)
        server_logger.handlers.clear()
        server_logger.propagate = True


def log_calculation(
    request_id: str,
    transaction_id: str,
    customer_code: str,
    rules_applied: int,
    total_charges: float,
    duration_ms: float,
) -> None:
    """Log structured single-calculation outcome"""
    logging.info(
        "Charge calculation completed",
        extra={
            "request_id": request_id,
            "transaction_id": transaction_id,
            "customer_code": customer_code,
            "step": "calculation_complete",
            "rules_applied": rules_applied,
            "total_charges": total_charges,
            "duration_ms": duration_ms,
        },
    )


def log_batch(
    request_id: str,
    batch_id: str,
    requested: int,
    successful: int,
    failed: int,
    incomplete: bool,
    duration_ms: int,
) -> None:
    """Log structured batch or test-run outcome"""
    logging.info(
        "Batch processing completed",
        extra={
            "request_id": request_id,
            "batch_id": batch_id,
            "step": "batch_complete",
            "requested_transactions": requested,
            "successful_calculations": successful,
            "failed_calculations": failed,
            "incomplete": incomplete,
            "duration_ms": duration_ms,
        },
    )


def log_transition(request_id: str, entity: str, entity_id: Any, action: str, status: str) -> None:
    """Log a lifecycle transition that was applied"""
    logging.info(
        "Lifecycle transition applied",
        extra={
            "request_id": request_id,
            "entity": entity,
            "entity_id": entity_id,
            "action": action,
            "new_status": status,
        },
    )
