"""Ledger gateway over the PostgreSQL server-side interest functions"""

from datetime import date
from decimal import Decimal
from typing import Any, List, Mapping, Optional

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from btrust_interest.domain.exceptions import LedgerUnavailableError, PostingRejectedError
from btrust_interest.domain.interest import CYCLE_DAYS, format_rate
from btrust_interest.domain.models import DueItem, InterestKind, MaturitySummary
from btrust_interest.infrastructure.ledger.base import is_connectivity_error

FD_DUE_SQL = text("SELECT * FROM calculate_fd_interest_due(CAST(:as_of AS DATE))")
SAVINGS_DUE_SQL = text("SELECT * FROM calculate_savings_interest_due(CAST(:as_of AS DATE))")
POST_SQL = text(
    "SELECT create_transaction_with_validation("
    ":transaction_type, :amount, :description, :account_id, :actor_id) AS transaction_id"
)
SWEEP_SQL = text("SELECT * FROM process_matured_fixed_deposits()")


class StoredProcedureGateway:
    """
    Thin adapter: cycle arithmetic, rate lookup and maturity handling stay in
    the database. Statements run on the caller's session and transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def compute_due(self, kind: InterestKind, as_of_date: date) -> List[DueItem]:
        stmt = FD_DUE_SQL if kind is InterestKind.FD else SAVINGS_DUE_SQL
        try:
            rows = self.db.execute(stmt, {"as_of": as_of_date}).mappings().all()
        except DBAPIError as e:
            raise LedgerUnavailableError(f"calculate_{kind.value}_interest_due failed: {e}") from e

        if kind is InterestKind.FD:
            return [_fd_row_to_item(row, as_of_date) for row in rows]
        return [_savings_row_to_item(row, as_of_date) for row in rows]

    def post_interest_credit(self, account_id: int, amount: Decimal, memo: str, actor_id: int) -> int:
        params = {
            "transaction_type": "Interest",
            "amount": amount,
            "description": memo,
            "account_id": account_id,
            "actor_id": actor_id,
        }
        try:
            return self.db.execute(POST_SQL, params).scalar_one()
        except DBAPIError as e:
            if is_connectivity_error(e):
                raise LedgerUnavailableError(f"Ledger connection lost while posting to {account_id}") from e
            # Validation failures surface as RAISE EXCEPTION from the function
            raise PostingRejectedError(account_id, str(e.orig).strip()) from e

    def sweep_matured_deposits(self, as_of_date: Optional[date] = None) -> MaturitySummary:
        """as_of_date is ignored: the procedure matures against the server's CURRENT_DATE"""
        try:
            row = self.db.execute(SWEEP_SQL).mappings().first()
        except DBAPIError as e:
            raise LedgerUnavailableError(f"process_matured_fixed_deposits failed: {e}") from e

        if row is None:
            return MaturitySummary()
        return MaturitySummary(
            processed_count=int(row["processed_count"] or 0),
            total_principal_returned=_decimal(row["total_principal_returned"] or 0),
        )


def _fd_row_to_item(row: Mapping[str, Any], as_of: date) -> DueItem:
    rate = _decimal(row["interest_rate"])
    return DueItem(
        source_id=row["fd_id"],
        credit_account_id=row["linked_account_id"],
        amount=_decimal(row["interest_amount"]),
        period_days=int(row["days_in_period"]),
        rate_label=format_rate(rate),
        as_of_date=as_of,
        interest_rate=rate,
    )


def _savings_row_to_item(row: Mapping[str, Any], as_of: date) -> DueItem:
    return DueItem(
        source_id=row["account_id"],
        credit_account_id=row["account_id"],
        amount=_decimal(row["interest_amount"]),
        period_days=int(row.get("days_in_period") or CYCLE_DAYS),
        rate_label=row["plan_type"],
        as_of_date=as_of,
        interest_rate=_decimal(row["interest_rate"]),
    )


def _decimal(value: Any) -> Decimal:
    # floats go through str() to keep their printed value
    return value if isinstance(value, Decimal) else Decimal(str(value))
