"""Interest cycle rules - 30-day per-account accrual and fixed deposit terms"""

from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from dateutil.relativedelta import relativedelta

from btrust_interest.domain.models import InterestKind

CYCLE_DAYS = 30
DAYS_IN_YEAR = 365
CENTS = Decimal("0.01")

# fd_options label -> term length in months
FD_PLAN_TERMS = {
    "6 months": 6,
    "1 year": 12,
    "3 years": 36,
}


def calculate_interest(principal: Decimal, annual_rate: Decimal, days: int) -> Decimal:
    """
    Simple interest for a number of days on an Actual/365 basis.

    annual_rate is a percentage (5.5 means 5.5% p.a.). Result is rounded
    half-up to cents.

    Example:
        100000 at 12% for 30 days -> 100000 * 0.12 * 30 / 365 = 986.30
    """
    if principal <= 0 or annual_rate <= 0 or days <= 0:
        return Decimal("0.00")
    raw = Decimal(principal) * Decimal(annual_rate) / Decimal(100) * Decimal(days) / Decimal(DAYS_IN_YEAR)
    return raw.quantize(CENTS, rounding=ROUND_HALF_UP)


def savings_period_days(anchor: date, as_of: date) -> Optional[int]:
    """Elapsed days since the cycle anchor, or None while the 30-day cycle is still open"""
    elapsed = (as_of - anchor).days
    if elapsed < CYCLE_DAYS:
        return None
    return elapsed


def fd_period_days(anchor: date, as_of: date, maturity_date: date) -> Optional[int]:
    """
    Elapsed accrual days for a fixed deposit, capped at maturity.

    A full cycle is due after 30 days. The last stretch before maturity may be
    shorter; it becomes due once the deposit has matured.
    """
    accrual_end = min(as_of, maturity_date)
    elapsed = (accrual_end - anchor).days
    if elapsed <= 0:
        return None
    if elapsed >= CYCLE_DAYS or as_of >= maturity_date:
        return elapsed
    return None


def format_rate(rate: Decimal) -> str:
    """5.50 -> '5.5%'"""
    return f"{format(Decimal(rate).normalize(), 'f')}%"


def build_memo(kind: InterestKind, rate_label: str) -> str:
    """Ledger description for an interest credit"""
    return f"Monthly {kind.label} Interest - {rate_label} Plan"


def term_months(fd_options: str) -> int:
    try:
        return FD_PLAN_TERMS[fd_options]
    except KeyError:
        raise ValueError(f"Unknown FD plan term: {fd_options!r}") from None


def next_maturity(start: date, fd_options: str) -> date:
    """Maturity date of a term starting on start"""
    return start + relativedelta(months=term_months(fd_options))
