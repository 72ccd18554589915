"""Interest batch endpoints - manual trigger and schedule inspection"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response

from btrust_interest.api.dependencies import get_batch_runner, get_request_id, get_run_guard, get_scheduler_handle
from btrust_interest.api.v1.schemas import RunSummaryResponse, ScheduleEntry, ScheduleResponse
from btrust_interest.config import resolve_schedules, settings
from btrust_interest.domain.exceptions import ConfigurationError, RunInProgressError
from btrust_interest.domain.models import InterestKind
from btrust_interest.scheduler.interest_scheduler import BatchRunner, InterestSchedulerHandle, RunGuard

router = APIRouter()


@router.post("/interest/{kind}/run", response_model=RunSummaryResponse)
def trigger_interest_run(
    kind: InterestKind,
    request: Request,
    response: Response,
    as_of: Optional[date] = Query(None, description="Processing date (YYYY-MM-DD), defaults to today (UTC)"),
    runner: BatchRunner = Depends(get_batch_runner),
    guard: RunGuard = Depends(get_run_guard),
):
    """
    Run one interest batch now.

    Shares the per-kind guard with the scheduler: 409 while the same kind is
    already running. A run-fatal failure is returned with status 500 and the
    run summary (nothing from that run was committed).
    """
    request_id = get_request_id(request)
    try:
        with guard.hold(kind):
            summary = runner(kind, as_of)
    except RunInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ConfigurationError as e:
        logging.error(f"Interest processing misconfigured: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail=str(e))

    logging.info(
        "Manual interest run finished",
        extra={"request_id": request_id, "run_id": summary.run_id, "kind": kind.value, "success": summary.success},
    )
    if not summary.success:
        response.status_code = 500
    return RunSummaryResponse.from_summary(summary)


@router.get("/interest/schedule", response_model=ScheduleResponse)
def get_interest_schedule(
    handle: Optional[InterestSchedulerHandle] = Depends(get_scheduler_handle),
    guard: RunGuard = Depends(get_run_guard),
):
    """Configured schedules and next firing per interest kind"""
    if handle is not None and handle.running:
        kinds = {name: ScheduleEntry(**entry) for name, entry in handle.describe().items()}
        return ScheduleResponse(scheduler_running=True, kinds=kinds)

    fd_schedule, savings_schedule = resolve_schedules(settings)
    kinds = {
        InterestKind.FD.value: ScheduleEntry(
            schedule=fd_schedule,
            debug_mode=settings.interest_cron_debug,
            running=guard.is_running(InterestKind.FD),
        ),
        InterestKind.SAVINGS.value: ScheduleEntry(
            schedule=savings_schedule,
            debug_mode=settings.interest_cron_debug,
            running=guard.is_running(InterestKind.SAVINGS),
        ),
    }
    return ScheduleResponse(scheduler_running=False, kinds=kinds)
