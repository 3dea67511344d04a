from typing import Optional

from loguru import logger
from sqlalchemy.orm import Session

from qc_worker.monitoring.metrics import MetricsCollector
from qc_worker.schemas import SweepResult
from shared.db.effects import SideEffectExecutor
from shared.db.exceptions import StaleRentalException
from shared.db.repositories.rental import RentalRepository
from shared.lifecycle import LifecycleEngine, LifecycleException, RentalStatus


class QCSweepService:
    """
    Auto-approves QC records whose decision window has run out.

    Each rental is written and committed on its own so that one conflict or bad
    record does not hold back the rest of the sweep.
    """

    def __init__(
        self,
        session: Session,
        rental_repo: RentalRepository,
        executor: SideEffectExecutor,
        engine: LifecycleEngine,
    ):
        self._session = session
        self._rental_repo = rental_repo
        self._executor = executor
        self._engine = engine

    def process_rental(self, rental_id: str) -> Optional[str]:
        rental = self._rental_repo.get_rental(rental_id)
        if rental is None:
            return None

        if rental.status == RentalStatus.DELIVERED:
            kind, result = "delivery", self._engine.auto_approve_delivery_qc(rental)
        elif rental.status == RentalStatus.RETURN_DELIVERED:
            kind, result = "return", self._engine.auto_approve_return_qc(rental)
        else:
            return None

        self._rental_repo.save_rental(result.rental)
        self._executor.execute(result.side_effects)

        MetricsCollector.record_auto_approval(kind)
        logger.info(
            f"Auto-approved {kind} QC for rental {rental_id}: "
            f"{rental.status.value} -> {result.next_status.value}"
        )
        return kind

    def sweep(self) -> SweepResult:
        now = self._engine.clock.now()
        expired_ids = self._rental_repo.get_expired_qc_rental_ids(now)
        result = SweepResult(expired=len(expired_ids))

        for rental_id in expired_ids:
            try:
                kind = self.process_rental(rental_id)
                self._session.commit()
            except (LifecycleException, StaleRentalException) as e:
                self._session.rollback()
                result.skipped += 1
                MetricsCollector.record_worker_error("rental_skipped")
                logger.warning(f"Skipped QC auto-approval for rental {rental_id}: {e}")
                continue
            except Exception as e:
                self._session.rollback()
                result.failed += 1
                MetricsCollector.record_worker_error("rental_processing_error")
                logger.error(f"Error auto-approving QC for rental {rental_id}: {e}")
                continue

            if kind == "delivery":
                result.delivery_approved += 1
            elif kind == "return":
                result.return_approved += 1
            else:
                result.skipped += 1

        return result
