"""Pytest fixtures for testing"""

import pytest
from contextlib import contextmanager
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Generator, Optional
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker, Session

from btrust_interest.api.main import create_app
from btrust_interest.domain.exceptions import LedgerUnavailableError, PostingRejectedError
from btrust_interest.domain.models import DueItem, InterestKind, MaturitySummary
from btrust_interest.infrastructure.database.models import Account, Base, FDPlan, FixedDeposit, SavingPlan
from btrust_interest.infrastructure.database.session import build_engine
from btrust_interest.services.interest_batch import InterestBatchProcessor

SYSTEM_ACTOR_ID = 99
FIXED_NOW = datetime(2024, 7, 1, 3, 0, tzinfo=timezone.utc)


@pytest.fixture
def engine(tmp_path):
    """SQLite test database with savepoint support"""
    test_engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(bind=test_engine)
    try:
        yield test_engine
    finally:
        Base.metadata.drop_all(bind=test_engine)
        test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


class BankBuilder:
    """Seeds plans, accounts and fixed deposits"""

    def __init__(self, db: Session):
        self.db = db

    def savings_plan(self, plan_type="Adult", interest="10.00", min_balance="1000.00") -> SavingPlan:
        plan = SavingPlan(plan_type=plan_type, interest=Decimal(interest), min_balance=Decimal(min_balance))
        self.db.add(plan)
        self.db.flush()
        return plan

    def fd_plan(self, fd_options="1 year", interest="12.00") -> FDPlan:
        plan = FDPlan(fd_options=fd_options, interest=Decimal(interest))
        self.db.add(plan)
        self.db.flush()
        return plan

    def account(
        self,
        balance="10000.00",
        plan: Optional[SavingPlan] = None,
        open_date=date(2024, 1, 1),
        status="Active",
        account_id: Optional[int] = None,
        fd: Optional[FixedDeposit] = None,
    ) -> Account:
        account = Account(
            account_id=account_id,
            balance=Decimal(balance),
            account_status=status,
            open_date=open_date,
            saving_plan_id=plan.saving_plan_id if plan else None,
            fd_id=fd.fd_id if fd else None,
        )
        self.db.add(account)
        self.db.flush()
        return account

    def fixed_deposit(
        self,
        plan: FDPlan,
        principal="100000.00",
        open_date=date(2024, 1, 1),
        maturity_date=date(2025, 1, 1),
        auto_renewal=False,
        status="Active",
    ) -> FixedDeposit:
        deposit = FixedDeposit(
            fd_balance=Decimal(principal),
            auto_renewal_status=auto_renewal,
            fd_status=status,
            open_date=open_date,
            maturity_date=maturity_date,
            fd_plan_id=plan.fd_plan_id,
        )
        self.db.add(deposit)
        self.db.flush()
        return deposit


@pytest.fixture
def bank(db: Session) -> BankBuilder:
    return BankBuilder(db)


class FakeLedgerGateway:
    """In-memory ledger gateway recording every call"""

    def __init__(self, due=None, maturity: Optional[MaturitySummary] = None, errors=None, unavailable=False):
        self.due = list(due or [])
        self.maturity = maturity or MaturitySummary()
        self.errors = dict(errors or {})  # credit_account_id -> exception raised on posting
        self.unavailable = unavailable
        self.postings = []
        self.compute_calls = []
        self.sweep_calls = []

    def compute_due(self, kind, as_of_date):
        self.compute_calls.append((kind, as_of_date))
        if self.unavailable:
            raise LedgerUnavailableError("connection refused")
        return list(self.due)

    def post_interest_credit(self, account_id, amount, memo, actor_id):
        if account_id in self.errors:
            raise self.errors[account_id]
        self.postings.append({"account_id": account_id, "amount": amount, "memo": memo, "actor_id": actor_id})
        return 1000 + len(self.postings)

    def sweep_matured_deposits(self, as_of_date=None):
        self.sweep_calls.append(as_of_date)
        return self.maturity


class FakeSession:
    """Transactional scope stand-in: recorded rows only survive commit"""

    def __init__(self, fail_commit=False):
        self.fail_commit = fail_commit
        self.pending = []
        self.committed = []
        self.savepoints = 0
        self.rolled_back = False
        self.closed = False

    @contextmanager
    def begin_nested(self):
        self.savepoints += 1
        yield self

    def commit(self):
        if self.fail_commit:
            raise RuntimeError("commit failed: could not serialize access")
        self.committed.extend(self.pending)
        self.pending = []

    def rollback(self):
        self.pending = []
        self.rolled_back = True

    def close(self):
        self.closed = True


class FakeRecorder:
    def __init__(self, db: FakeSession):
        self.db = db

    def record(self, kind, item, status, calculation_date, credited_at=None):
        self.db.pending.append(
            {
                "kind": kind,
                "source_id": item.source_id,
                "credit_account_id": item.credit_account_id,
                "amount": item.amount,
                "period_days": item.period_days,
                "status": status.value,
                "calculation_date": calculation_date,
                "credited_at": credited_at,
            }
        )


def due_item(source_id, amount, credit_account_id=None, period_days=30, rate_label="Adult", as_of=date(2024, 7, 1)):
    return DueItem(
        source_id=source_id,
        credit_account_id=credit_account_id if credit_account_id is not None else source_id,
        amount=Decimal(str(amount)),
        period_days=period_days,
        rate_label=rate_label,
        as_of_date=as_of,
        interest_rate=Decimal("10.00"),
    )


@pytest.fixture
def make_due_item():
    return due_item


@pytest.fixture
def fake_gateway_cls():
    return FakeLedgerGateway


@pytest.fixture
def fake_session_cls():
    return FakeSession


@pytest.fixture
def make_processor():
    """Processor wired to a fake gateway, session and recorder"""

    def _make(kind: InterestKind, gateway: FakeLedgerGateway, session: Optional[FakeSession] = None, recorder_cls=FakeRecorder):
        session = session or FakeSession()
        return InterestBatchProcessor(
            kind,
            session_factory=lambda: session,
            system_actor_id=SYSTEM_ACTOR_ID,
            gateway_factory=lambda db, actor_id: gateway,
            recorder_factory=recorder_cls,
            clock=lambda: FIXED_NOW,
        ), session

    return _make


@pytest.fixture
def posting_rejected():
    def _rejected(account_id, reason="Account not found or closed"):
        return PostingRejectedError(account_id, reason)

    return _rejected


@pytest.fixture
def client() -> TestClient:
    """FastAPI test client; lifespan is not entered, so no scheduler starts"""
    return TestClient(create_app())
