"""Data access layer for interest calculation history"""

from datetime import date, datetime
from typing import Dict, List, Optional, Union

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from btrust_interest.domain.exceptions import RecorderError
from btrust_interest.domain.models import CalculationStatus, DueItem, InterestKind
from btrust_interest.infrastructure.database.models import FDInterestCalculation, SavingsInterestCalculation

CalculationRow = Union[FDInterestCalculation, SavingsInterestCalculation]


class InterestCalculationRepository:
    """Append-only recorder of interest credit attempts"""

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        kind: InterestKind,
        item: DueItem,
        status: CalculationStatus,
        calculation_date: date,
        credited_at: Optional[datetime] = None,
    ) -> CalculationRow:
        """
        Insert one calculation row and flush it immediately.

        Rows are never updated; a retried source gets a new row on a later run.

        Raises:
            RecorderError: insert failed; callers treat this as run-fatal
        """
        if status is CalculationStatus.CREDITED and credited_at is None:
            raise ValueError("credited rows need credited_at")

        if kind is InterestKind.FD:
            # dated by the end of the accrued period, the anchor of the next cycle
            row = FDInterestCalculation(
                fd_id=item.source_id,
                calculation_date=item.accrual_end or calculation_date,
                interest_amount=item.amount,
                days_in_period=item.period_days,
                credited_to_account_id=item.credit_account_id,
                interest_rate=item.interest_rate,
                status=status.value,
                credited_at=credited_at if status is CalculationStatus.CREDITED else None,
            )
        else:
            row = SavingsInterestCalculation(
                account_id=item.source_id,
                calculation_date=calculation_date,
                interest_amount=item.amount,
                interest_rate=item.interest_rate,
                plan_type=item.rate_label,
                days_in_period=item.period_days,
                status=status.value,
                credited_at=credited_at if status is CalculationStatus.CREDITED else None,
            )

        try:
            self.db.add(row)
            self.db.flush()  # Surface insert errors here, in due-list order
        except SQLAlchemyError as e:
            raise RecorderError(f"Failed to record {kind.value} calculation for {item.source_id}: {e}") from e
        return row

    def latest_credited_dates(self, kind: InterestKind) -> Dict[int, date]:
        """Calculation date of each source's last successful credit, the anchor of its next cycle"""
        model = _model_for(kind)
        source_column = _source_column(kind)
        stmt = (
            select(source_column, func.max(model.calculation_date))
            .where(model.status == CalculationStatus.CREDITED.value)
            .group_by(source_column)
        )
        return {source_id: latest for source_id, latest in self.db.execute(stmt)}

    def list_for_source(self, kind: InterestKind, source_id: int) -> List[CalculationRow]:
        """Calculation history of one account or deposit, oldest first"""
        model = _model_for(kind)
        return list(
            self.db.execute(
                select(model).where(_source_column(kind) == source_id).order_by(model.id)
            ).scalars()
        )


def _model_for(kind: InterestKind):
    return FDInterestCalculation if kind is InterestKind.FD else SavingsInterestCalculation


def _source_column(kind: InterestKind):
    if kind is InterestKind.FD:
        return FDInterestCalculation.fd_id
    return SavingsInterestCalculation.account_id
