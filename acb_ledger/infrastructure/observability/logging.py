"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger

logger = logging.getLogger("acb_ledger")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = "acb-ledger"


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    root = logging.getLogger()
    root.setLevel(level)

    # Remove existing handlers
    root.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    root.addHandler(handler)


def log_ledger_event(
    operation: str,
    user_id: Optional[int],
    amount: Optional[int] = None,
    loan_id: Optional[int] = None,
    **fields: Any,
) -> None:
    """Log a committed ledger mutation. Amounts are logged as strings to keep wei precision."""
    logger.info(
        "Ledger operation committed",
        extra={
            "step": operation,
            "user_id": user_id,
            "amount": str(amount) if amount is not None else None,
            "loan_id": loan_id,
            **fields,
        },
    )


def log_rejection(operation: str, user_id: Optional[int], kind: str, detail: str) -> None:
    """Log a rejected operation"""
    logger.warning(
        "Ledger operation rejected",
        extra={
            "step": operation,
            "user_id": user_id,
            "error_kind": kind,
            "detail": detail,
        },
    )
