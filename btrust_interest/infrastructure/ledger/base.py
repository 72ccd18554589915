"""Ledger gateway contract shared by the stored-procedure and ORM implementations"""

from datetime import date
from decimal import Decimal
from typing import List, Optional, Protocol

from sqlalchemy.exc import DBAPIError, OperationalError

from btrust_interest.domain.models import DueItem, InterestKind, MaturitySummary


class LedgerGateway(Protocol):
    """
    System of record for balances and postings.

    compute_due must only surface interest still owed as of the given date;
    cycles that already have a credited record must not reappear. That is
    what makes re-running a batch for the same date safe.
    """

    def compute_due(self, kind: InterestKind, as_of_date: date) -> List[DueItem]:
        ...

    def post_interest_credit(self, account_id: int, amount: Decimal, memo: str, actor_id: int) -> int:
        ...

    def sweep_matured_deposits(self, as_of_date: Optional[date] = None) -> MaturitySummary:
        ...


def is_connectivity_error(exc: DBAPIError) -> bool:
    """Lost or unusable connection, as opposed to a statement the ledger refused"""
    return isinstance(exc, OperationalError) or bool(getattr(exc, "connection_invalidated", False))
