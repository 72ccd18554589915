"""Integration tests for the stored-procedure ledger gateway with a mocked session"""

import pytest
from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock
from sqlalchemy.exc import InternalError, OperationalError

from btrust_interest.domain.exceptions import ConfigurationError, LedgerUnavailableError, PostingRejectedError
from btrust_interest.domain.models import InterestKind
from btrust_interest.infrastructure.ledger.factory import build_ledger_gateway
from btrust_interest.infrastructure.ledger.orm import OrmLedgerGateway
from btrust_interest.infrastructure.ledger.procedures import StoredProcedureGateway

AS_OF = date(2024, 7, 1)


def session_returning(rows=None, scalar=None, first=None):
    db = MagicMock()
    result = db.execute.return_value
    result.mappings.return_value.all.return_value = rows or []
    result.mappings.return_value.first.return_value = first
    result.scalar_one.return_value = scalar
    return db


def test_fd_rows_map_to_due_items():
    db = session_returning(
        rows=[
            {
                "fd_id": 1,
                "linked_account_id": 501,
                "interest_amount": Decimal("1200.00"),
                "days_in_period": 30,
                "interest_rate": Decimal("5.50"),
            }
        ]
    )

    (item,) = StoredProcedureGateway(db).compute_due(InterestKind.FD, AS_OF)

    assert item.source_id == 1
    assert item.credit_account_id == 501
    assert item.amount == Decimal("1200.00")
    assert item.period_days == 30
    assert item.rate_label == "5.5%"
    assert item.as_of_date == AS_OF
    assert db.execute.call_args.args[1] == {"as_of": AS_OF}


def test_savings_rows_map_to_due_items():
    db = session_returning(
        rows=[{"account_id": 10, "interest_amount": 50.1, "plan_type": "Senior", "interest_rate": 13}]
    )

    (item,) = StoredProcedureGateway(db).compute_due(InterestKind.SAVINGS, AS_OF)

    assert item.source_id == 10
    assert item.credit_account_id == 10
    assert item.amount == Decimal("50.1")
    assert item.period_days == 30
    assert item.rate_label == "Senior"


def test_compute_due_connection_failure():
    db = MagicMock()
    db.execute.side_effect = OperationalError("SELECT", {}, Exception("could not connect to server"))

    with pytest.raises(LedgerUnavailableError):
        StoredProcedureGateway(db).compute_due(InterestKind.SAVINGS, AS_OF)


def test_posting_returns_transaction_id():
    db = session_returning(scalar=7731)

    transaction_id = StoredProcedureGateway(db).post_interest_credit(
        10, Decimal("50.00"), "Monthly Savings Interest - Adult Plan", 99
    )

    assert transaction_id == 7731
    params = db.execute.call_args.args[1]
    assert params == {
        "transaction_type": "Interest",
        "amount": Decimal("50.00"),
        "description": "Monthly Savings Interest - Adult Plan",
        "account_id": 10,
        "actor_id": 99,
    }


def test_posting_rule_violation_is_rejected():
    db = MagicMock()
    db.execute.side_effect = InternalError("SELECT", {}, Exception("Account 11 is not active\n"))

    with pytest.raises(PostingRejectedError) as exc_info:
        StoredProcedureGateway(db).post_interest_credit(11, Decimal("75.00"), "memo", 99)

    assert exc_info.value.account_id == 11
    assert exc_info.value.reason == "Account 11 is not active"


def test_posting_connection_lost():
    db = MagicMock()
    db.execute.side_effect = OperationalError("SELECT", {}, Exception("server closed the connection"))

    with pytest.raises(LedgerUnavailableError):
        StoredProcedureGateway(db).post_interest_credit(11, Decimal("75.00"), "memo", 99)


def test_sweep_maps_summary_row():
    db = session_returning(first={"processed_count": 3, "total_principal_returned": Decimal("45000.00")})

    summary = StoredProcedureGateway(db).sweep_matured_deposits(AS_OF)

    assert summary.processed_count == 3
    assert summary.total_principal_returned == Decimal("45000.00")


def test_sweep_without_row_is_empty():
    summary = StoredProcedureGateway(session_returning(first=None)).sweep_matured_deposits()

    assert summary.processed_count == 0
    assert summary.total_principal_returned == Decimal("0")


def test_factory_selects_backend():
    db = MagicMock()
    assert isinstance(build_ledger_gateway(db, "orm", 1), OrmLedgerGateway)
    assert isinstance(build_ledger_gateway(db, "procedures", 1), StoredProcedureGateway)
    with pytest.raises(ConfigurationError):
        build_ledger_gateway(db, "mainframe", 1)
