"""Interest batch processor - one all-or-nothing run per interest kind and date"""

import logging
import time
import uuid
from datetime import date, datetime
from typing import Callable, Optional, Union

from sqlalchemy.orm import Session

from btrust_interest.config import settings
from btrust_interest.domain.exceptions import ConfigurationError, LedgerUnavailableError
from btrust_interest.domain.interest import build_memo
from btrust_interest.domain.models import CalculationStatus, DueItem, InterestKind, RunSummary
from btrust_interest.infrastructure.database.repositories import InterestCalculationRepository
from btrust_interest.infrastructure.database.session import SessionLocal
from btrust_interest.infrastructure.ledger.base import LedgerGateway
from btrust_interest.infrastructure.ledger.factory import build_ledger_gateway, validate_ledger_backend
from btrust_interest.infrastructure.observability.logging import log_anomaly, log_item_outcome, log_run_summary
from btrust_interest.infrastructure.observability.metrics import record_run
from btrust_interest.utils.date_utils import utc_now

SessionFactory = Callable[[], Session]
GatewayFactory = Callable[[Session, int], LedgerGateway]
RecorderFactory = Callable[[Session], InterestCalculationRepository]


def default_gateway_factory(db: Session, actor_id: int) -> LedgerGateway:
    return build_ledger_gateway(db, settings.ledger_backend, actor_id)


class InterestBatchProcessor:
    """
    Credits due interest for one kind (FD or Savings) inside a single
    transactional scope.

    Flow:
    1. Fetch due items from the ledger gateway
    2. Post each positive item sequentially, each posting in its own savepoint
    3. Record a credited/failed calculation row per posted item
    4. FD only: sweep matured deposits
    5. Commit; any run-fatal error rolls the whole run back

    A rejected posting is recorded as failed and the run moves on. Gateway
    outages and recorder failures abort the run.
    """

    def __init__(
        self,
        kind: Union[InterestKind, str],
        session_factory: Optional[SessionFactory] = None,
        system_actor_id: Optional[int] = None,
        gateway_factory: Optional[GatewayFactory] = None,
        recorder_factory: RecorderFactory = InterestCalculationRepository,
        clock: Callable[[], datetime] = utc_now,
    ):
        if system_actor_id is None:
            raise ConfigurationError("SYSTEM_ACTOR_EMPLOYEE_ID is not set; automated postings need an actor")
        if gateway_factory is None:
            validate_ledger_backend(settings.ledger_backend)
        self.kind = InterestKind(kind)
        self.session_factory = session_factory or SessionLocal
        self.system_actor_id = system_actor_id
        self.gateway_factory = gateway_factory or default_gateway_factory
        self.recorder_factory = recorder_factory
        self.clock = clock

    def run(self, as_of_date: Optional[date] = None) -> RunSummary:
        """
        Process one run. Never raises: run-fatal errors come back as success=False.

        Item-level metrics are recorded only for committed runs.
        """
        period = as_of_date or self.clock().date()
        summary = RunSummary(kind=self.kind, period=period, run_id=str(uuid.uuid4()))
        start_time = time.time()
        logging.info(
            f"Starting {self.kind.label} interest run",
            extra={"run_id": summary.run_id, "kind": self.kind.value, "period": period.isoformat()},
        )

        db = None
        try:
            db = self.session_factory()
            self._process(db, summary)
            db.commit()
        except Exception as e:
            if db is not None:
                self._rollback(db, summary.run_id)
            summary = RunSummary(
                kind=self.kind,
                period=period,
                run_id=summary.run_id,
                success=False,
                error=str(e) or type(e).__name__,
            )
        finally:
            if db is not None:
                db.close()

        duration = time.time() - start_time
        record_run(summary, duration)
        log_run_summary(summary, duration * 1000)
        return summary

    def _process(self, db: Session, summary: RunSummary) -> None:
        gateway = self.gateway_factory(db, self.system_actor_id)
        recorder = self.recorder_factory(db)

        for item in gateway.compute_due(self.kind, summary.period):
            if item.amount < 0:
                summary.anomalies += 1
                log_anomaly(summary.run_id, self.kind, item)
                continue
            if item.amount == 0:
                # Zero-interest periods are not part of the audit trail
                summary.items_skipped += 1
                continue
            self._credit_item(db, gateway, recorder, item, summary)

        if self.kind is InterestKind.FD:
            maturity = gateway.sweep_matured_deposits(summary.period)
            summary.matured_processed_count = maturity.processed_count
            summary.principal_returned = maturity.total_principal_returned

    def _credit_item(
        self,
        db: Session,
        gateway: LedgerGateway,
        recorder: InterestCalculationRepository,
        item: DueItem,
        summary: RunSummary,
    ) -> None:
        memo = build_memo(self.kind, item.rate_label)
        try:
            with db.begin_nested():
                transaction_id = gateway.post_interest_credit(
                    item.credit_account_id, item.amount, memo, self.system_actor_id
                )
        except LedgerUnavailableError:
            raise
        except Exception as e:
            recorder.record(self.kind, item, CalculationStatus.FAILED, calculation_date=summary.period)
            summary.items_failed += 1
            summary.failed_sources.append(item.source_id)
            log_item_outcome(summary.run_id, self.kind, item, CalculationStatus.FAILED, error=str(e))
            return

        recorder.record(
            self.kind,
            item,
            CalculationStatus.CREDITED,
            calculation_date=summary.period,
            credited_at=self.clock(),
        )
        summary.items_credited += 1
        summary.total_interest_credited += item.amount
        summary.credited_sources.append(item.source_id)
        log_item_outcome(summary.run_id, self.kind, item, CalculationStatus.CREDITED, transaction_id=transaction_id)

    @staticmethod
    def _rollback(db: Session, run_id: str) -> None:
        try:
            db.rollback()
        except Exception:
            # The connection is gone; the server discards the open transaction
            logging.exception("Rollback of interest run failed", extra={"run_id": run_id})


def run_interest_batch(
    kind: Union[InterestKind, str],
    as_of_date: Optional[date] = None,
    *,
    session_factory: Optional[SessionFactory] = None,
    system_actor_id: Optional[int] = None,
    gateway_factory: Optional[GatewayFactory] = None,
) -> RunSummary:
    """
    Run one interest batch.

    Args:
        kind: "fd" or "savings"
        as_of_date: processing date, defaults to today on the UTC boundary
        system_actor_id: posting actor, defaults to SYSTEM_ACTOR_EMPLOYEE_ID

    Raises:
        ConfigurationError: no system actor configured
    """
    actor_id = system_actor_id if system_actor_id is not None else settings.system_actor_employee_id
    processor = InterestBatchProcessor(
        kind,
        session_factory=session_factory,
        system_actor_id=actor_id,
        gateway_factory=gateway_factory,
    )
    return processor.run(as_of_date)
