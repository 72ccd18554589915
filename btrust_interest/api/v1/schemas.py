"""Pydantic schemas for API responses"""

from pydantic import BaseModel
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from btrust_interest.domain.models import RunSummary


class RunSummaryResponse(BaseModel):
    """Response for POST /v1/interest/{kind}/run"""

    run_id: str
    kind: str
    success: bool
    period: date
    items_credited: int
    total_interest_credited: Decimal
    items_failed: int
    items_skipped: int
    anomalies: int
    matured_processed_count: Optional[int] = None
    principal_returned: Optional[Decimal] = None
    error: Optional[str] = None
    credited_sources: List[int] = []
    failed_sources: List[int] = []

    @classmethod
    def from_summary(cls, summary: RunSummary) -> "RunSummaryResponse":
        return cls(
            run_id=summary.run_id,
            kind=summary.kind.value,
            success=summary.success,
            period=summary.period,
            items_credited=summary.items_credited,
            total_interest_credited=summary.total_interest_credited,
            items_failed=summary.items_failed,
            items_skipped=summary.items_skipped,
            anomalies=summary.anomalies,
            matured_processed_count=summary.matured_processed_count,
            principal_returned=summary.principal_returned,
            error=summary.error,
            credited_sources=summary.credited_sources,
            failed_sources=summary.failed_sources,
        )


class ScheduleEntry(BaseModel):
    """Schedule of one interest kind"""

    schedule: str
    debug_mode: bool
    next_run_at: Optional[str] = None
    running: bool = False


class ScheduleResponse(BaseModel):
    """Response for GET /v1/interest/schedule"""

    scheduler_running: bool
    kinds: Dict[str, ScheduleEntry]
