"""Ledger gateway selection"""

from sqlalchemy.orm import Session

from btrust_interest.domain.exceptions import ConfigurationError
from btrust_interest.infrastructure.ledger.base import LedgerGateway
from btrust_interest.infrastructure.ledger.orm import OrmLedgerGateway
from btrust_interest.infrastructure.ledger.procedures import StoredProcedureGateway

LEDGER_BACKENDS = ("orm", "procedures")


def validate_ledger_backend(backend: str) -> None:
    """
    Raises:
        ConfigurationError: backend is not one of LEDGER_BACKENDS
    """
    if backend not in LEDGER_BACKENDS:
        raise ConfigurationError(f"Unknown ledger backend: {backend!r} (expected one of {LEDGER_BACKENDS})")


def build_ledger_gateway(db: Session, backend: str, actor_id: int) -> LedgerGateway:
    """Gateway bound to the run's session so every call shares its transaction"""
    if backend == "orm":
        return OrmLedgerGateway(db, actor_id=actor_id)
    validate_ledger_backend(backend)
    return StoredProcedureGateway(db)
