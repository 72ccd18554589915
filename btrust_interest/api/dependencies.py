"""Dependency injection for FastAPI endpoints"""

from typing import Optional

from fastapi import Request

from btrust_interest.config import settings
from btrust_interest.scheduler.interest_scheduler import BatchRunner, InterestSchedulerHandle, RunGuard
from btrust_interest.services.interest_batch import run_interest_batch


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_scheduler_handle(request: Request) -> Optional[InterestSchedulerHandle]:
    """Scheduler started by the lifespan, or None when scheduling is disabled"""
    return getattr(request.app.state, "scheduler", None)


def get_run_guard(request: Request) -> RunGuard:
    """Guard shared with the scheduler so manual and scheduled runs never overlap"""
    return request.app.state.run_guard


def get_batch_runner() -> BatchRunner:
    """Runner for manual interest batches"""

    def run(kind, as_of_date=None):
        return run_interest_batch(kind, as_of_date, system_actor_id=settings.system_actor_employee_id)

    return run
