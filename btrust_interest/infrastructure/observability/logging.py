"""Structured JSON logging for interest processing"""

import logging
import sys
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

from btrust_interest.config import settings
from btrust_interest.domain.models import CalculationStatus, DueItem, InterestKind, RunSummary
from btrust_interest.utils.date_utils import utc_now


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = utc_now().isoformat()
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


def log_item_outcome(
    run_id: str,
    kind: InterestKind,
    item: DueItem,
    status: CalculationStatus,
    transaction_id: Optional[int] = None,
    error: Optional[str] = None,
) -> None:
    """One line per due item that reached the ledger"""
    fields = {
        "run_id": run_id,
        "kind": kind.value,
        "step": "interest_item",
        "status": status.value,
        "source_id": item.source_id,
        "credit_account_id": item.credit_account_id,
        "amount": str(item.amount),
        "period_days": item.period_days,
        "as_of_date": item.as_of_date.isoformat(),
    }
    if status is CalculationStatus.CREDITED:
        logging.info("Interest credited", extra={**fields, "transaction_id": transaction_id})
    else:
        logging.error("Interest credit failed", extra={**fields, "error": error})


def log_anomaly(run_id: str, kind: InterestKind, item: DueItem) -> None:
    """Negative interest from the ledger is a data integrity signal, never posted"""
    logging.warning(
        "Negative interest amount skipped",
        extra={
            "run_id": run_id,
            "kind": kind.value,
            "step": "interest_anomaly",
            "source_id": item.source_id,
            "amount": str(item.amount),
        },
    )


def log_run_summary(summary: RunSummary, duration_ms: float) -> None:
    fields = {
        "run_id": summary.run_id,
        "kind": summary.kind.value,
        "step": "interest_run_complete",
        "period": summary.period.isoformat(),
        "success": summary.success,
        "items_credited": summary.items_credited,
        "items_failed": summary.items_failed,
        "items_skipped": summary.items_skipped,
        "anomalies": summary.anomalies,
        "total_interest_credited": str(summary.total_interest_credited),
        "duration_ms": duration_ms,
    }
    if summary.kind is InterestKind.FD:
        fields["matured_processed_count"] = summary.matured_processed_count
        fields["principal_returned"] = None if summary.principal_returned is None else str(summary.principal_returned)

    if summary.success:
        logging.info(f"{summary.kind.label} interest run completed", extra=fields)
    else:
        # item lines already logged for this run_id describe work that was rolled back
        logging.error(
            f"{summary.kind.label} interest run failed and was rolled back: {summary.error}",
            extra={**fields, "error": summary.error, "rolled_back": True},
        )
