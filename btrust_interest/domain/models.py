"""Domain models - pure Python dataclasses representing interest processing entities"""

import enum
from dataclasses import dataclass, field, asdict
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional


class InterestKind(str, enum.Enum):
    """Interest product processed by one batch"""

    FD = "fd"
    SAVINGS = "savings"

    @property
    def label(self) -> str:
        return "FD" if self is InterestKind.FD else "Savings"


class CalculationStatus(str, enum.Enum):
    CREDITED = "credited"
    FAILED = "failed"


@dataclass(frozen=True)
class DueItem:
    """One pending interest obligation for an account or fixed deposit"""

    source_id: int
    credit_account_id: int  # FD interest lands in the linked savings account
    amount: Decimal
    period_days: int
    rate_label: str  # "5.5%" for FDs, plan type for savings
    as_of_date: date
    interest_rate: Optional[Decimal] = None
    accrual_end: Optional[date] = None  # FD: last accrued day when capped at maturity


@dataclass(frozen=True)
class MaturitySummary:
    """Result of one matured fixed deposit sweep"""

    processed_count: int = 0
    total_principal_returned: Decimal = Decimal("0")


@dataclass
class RunSummary:
    """Aggregate result of one batch run (returned and logged, never persisted)"""

    kind: InterestKind
    period: date
    run_id: str
    success: bool = True
    items_credited: int = 0
    total_interest_credited: Decimal = Decimal("0")
    items_failed: int = 0
    items_skipped: int = 0
    anomalies: int = 0
    matured_processed_count: Optional[int] = None
    principal_returned: Optional[Decimal] = None
    error: Optional[str] = None
    credited_sources: list = field(default_factory=list)
    failed_sources: list = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["kind"] = self.kind.value
        data["period"] = self.period.isoformat()
        data["total_interest_credited"] = str(self.total_interest_credited)
        if self.principal_returned is not None:
            data["principal_returned"] = str(self.principal_returned)
        return data
