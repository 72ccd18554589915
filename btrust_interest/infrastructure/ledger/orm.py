"""Ledger gateway backed by SQLAlchemy ORM - cycle and maturity rules evaluated in Python"""

import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm import Session

from btrust_interest.domain.exceptions import LedgerUnavailableError, PostingRejectedError
from btrust_interest.domain.interest import (
    calculate_interest,
    fd_period_days,
    format_rate,
    next_maturity,
    savings_period_days,
)
from btrust_interest.domain.models import DueItem, InterestKind, MaturitySummary
from btrust_interest.infrastructure.database.models import Account, FixedDeposit, SavingPlan, Transaction
from btrust_interest.infrastructure.database.repositories import InterestCalculationRepository
from btrust_interest.infrastructure.ledger.base import is_connectivity_error
from btrust_interest.utils.date_utils import utc_today

logger = logging.getLogger(__name__)

ACTIVE = "Active"
MATURED = "Matured"


class OrmLedgerGateway:
    """Ledger operations on the caller's session; nothing here commits"""

    def __init__(self, db: Session, actor_id: Optional[int] = None):
        self.db = db
        self.actor_id = actor_id
        self.history = InterestCalculationRepository(db)

    def compute_due(self, kind: InterestKind, as_of_date: date) -> List[DueItem]:
        """
        Interest owed per source as of as_of_date.

        Pure read. Cycles are anchored on the last credited calculation (or the
        open date), so a cycle credited today does not reappear today.
        """
        try:
            if kind is InterestKind.FD:
                return self._fd_due(as_of_date)
            return self._savings_due(as_of_date)
        except DBAPIError as e:
            raise LedgerUnavailableError(f"Could not compute {kind.value} interest due: {e}") from e

    def _savings_due(self, as_of: date) -> List[DueItem]:
        anchors = self.history.latest_credited_dates(InterestKind.SAVINGS)
        rows = self.db.execute(
            select(Account, SavingPlan)
            .join(SavingPlan, Account.saving_plan_id == SavingPlan.saving_plan_id)
            .where(Account.account_status == ACTIVE)
            .order_by(Account.account_id)
        ).all()

        items = []
        for account, plan in rows:
            anchor = anchors.get(account.account_id, account.open_date)
            days = savings_period_days(anchor, as_of)
            if days is None:
                continue

            # Below the plan minimum the cycle earns nothing
            if account.balance < plan.min_balance:
                amount = Decimal("0.00")
            else:
                amount = calculate_interest(account.balance, plan.interest, days)

            items.append(
                DueItem(
                    source_id=account.account_id,
                    credit_account_id=account.account_id,
                    amount=amount,
                    period_days=days,
                    rate_label=plan.plan_type,
                    as_of_date=as_of,
                    interest_rate=plan.interest,
                )
            )
        return items

    def _fd_due(self, as_of: date) -> List[DueItem]:
        anchors = self.history.latest_credited_dates(InterestKind.FD)
        rows = self.db.execute(
            select(FixedDeposit, Account)
            .join(Account, Account.fd_id == FixedDeposit.fd_id)
            .where(FixedDeposit.fd_status == ACTIVE, Account.account_status == ACTIVE)
            .order_by(FixedDeposit.fd_id, Account.account_id)
        ).all()

        items = []
        seen = set()
        for deposit, linked in rows:
            if deposit.fd_id in seen:
                continue
            seen.add(deposit.fd_id)

            anchor = anchors.get(deposit.fd_id, deposit.open_date)
            days = fd_period_days(anchor, as_of, deposit.maturity_date)
            if days is None:
                continue

            rate = deposit.plan.interest
            items.append(
                DueItem(
                    source_id=deposit.fd_id,
                    credit_account_id=linked.account_id,
                    amount=calculate_interest(deposit.fd_balance, rate, days),
                    period_days=days,
                    rate_label=format_rate(rate),
                    as_of_date=as_of,
                    interest_rate=rate,
                    accrual_end=min(as_of, deposit.maturity_date),
                )
            )
        return items

    def post_interest_credit(self, account_id: int, amount: Decimal, memo: str, actor_id: int) -> int:
        """Credit interest to an active account; returns the new transaction id"""
        return self._post(account_id, amount, "Interest", memo, actor_id)

    def _post(self, account_id: int, amount: Decimal, transaction_type: str, memo: str, actor_id: int) -> int:
        if amount is None or amount <= 0:
            raise PostingRejectedError(account_id, f"amount must be positive, got {amount}")

        try:
            account = self.db.get(Account, account_id, with_for_update=True)
            if account is None:
                raise PostingRejectedError(account_id, "account not found")
            if account.account_status != ACTIVE:
                raise PostingRejectedError(account_id, f"account is {account.account_status}")

            account.balance = account.balance + amount
            txn = Transaction(
                transaction_type=transaction_type,
                amount=amount,
                description=memo,
                account_id=account_id,
                employee_id=actor_id,
            )
            self.db.add(txn)
            self.db.flush()
            return txn.transaction_id

        except DBAPIError as e:
            if is_connectivity_error(e):
                raise LedgerUnavailableError(f"Ledger connection lost while posting to {account_id}") from e
            raise PostingRejectedError(account_id, str(e.orig)) from e
        except SQLAlchemyError as e:
            raise PostingRejectedError(account_id, str(e)) from e

    def sweep_matured_deposits(self, as_of_date: Optional[date] = None) -> MaturitySummary:
        """
        Renew or close every active deposit whose maturity date has passed.

        Auto-renewing deposits roll into the next term of the same plan and
        keep their principal. Others return principal to the linked account
        and become Matured, so they are never picked up again.
        """
        as_of = as_of_date or utc_today()
        try:
            deposits = self.db.execute(
                select(FixedDeposit)
                .where(FixedDeposit.fd_status == ACTIVE, FixedDeposit.maturity_date <= as_of)
                .order_by(FixedDeposit.fd_id)
            ).scalars().all()
        except DBAPIError as e:
            raise LedgerUnavailableError(f"Could not load matured deposits: {e}") from e

        processed = 0
        principal_returned = Decimal("0")
        for deposit in deposits:
            options = deposit.plan.fd_options

            if deposit.auto_renewal_status:
                while deposit.maturity_date <= as_of:
                    deposit.open_date = deposit.maturity_date
                    deposit.maturity_date = next_maturity(deposit.maturity_date, options)
                processed += 1
                logger.info(
                    "FD renewed",
                    extra={"fd_id": deposit.fd_id, "maturity_date": deposit.maturity_date.isoformat()},
                )
                continue

            linked = self.db.execute(
                select(Account).where(Account.fd_id == deposit.fd_id, Account.account_status == ACTIVE)
            ).scalars().first()
            if linked is None:
                logger.warning("Matured FD has no active linked account", extra={"fd_id": deposit.fd_id})
                continue

            principal = deposit.fd_balance
            try:
                with self.db.begin_nested():
                    self._post(
                        linked.account_id,
                        principal,
                        "Deposit",
                        f"FD Maturity - Principal Return ({options} Plan)",
                        self.actor_id,
                    )
                    deposit.fd_status = MATURED
                    deposit.fd_balance = Decimal("0")
                    linked.fd_id = None
            except PostingRejectedError as e:
                # Deposit stays Active and is retried by the next sweep
                logger.error("FD maturity payout rejected", extra={"fd_id": deposit.fd_id, "error": e.reason})
                continue

            processed += 1
            principal_returned += principal

        self.db.flush()
        return MaturitySummary(processed_count=processed, total_principal_returned=principal_returned)
