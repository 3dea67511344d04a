from datetime import datetime, timezone
from typing import Iterable, List, Optional

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from shared.db.exceptions import StaleRentalException
from shared.db.models import Rental as RentalRow
from shared.lifecycle.models import Rental
from shared.lifecycle.status import QCStatus, RentalStatus

_JSON_FIELDS = (
    "delivery_address",
    "timeline",
    "annotations",
    "pricing",
    "delivery_qc",
    "return_qc",
    "issue_report",
    "payment_details",
    "tracking",
    "return_tracking",
)


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def pending_qc_deadline(rental: Rental) -> Optional[datetime]:
    if rental.status == RentalStatus.DELIVERED:
        qc = rental.delivery_qc
    elif rental.status == RentalStatus.RETURN_DELIVERED:
        qc = rental.return_qc
    else:
        return None
    if qc is None or qc.status != QCStatus.PENDING:
        return None
    return _utc(qc.deadline)


def _row_values(rental: Rental) -> dict:
    # exclude_none keeps absent notes/links out of the stored documents
    data = rental.model_dump(mode="json", exclude_none=True)
    values = {field: data.get(field) for field in _JSON_FIELDS}
    values["timeline"] = values["timeline"] or []
    values["annotations"] = values["annotations"] or []
    values.update(
        outfit_id=rental.outfit_id,
        curator_id=rental.curator_id,
        renter_user_id=rental.renter_user_id,
        renter_email=rental.renter_email,
        renter_name=rental.renter_name,
        start_date=rental.start_date,
        end_date=rental.end_date,
        nights=rental.nights,
        status=RentalStatus(rental.status).value,
        curator_earnings=rental.curator_earnings,
        qc_deadline=pending_qc_deadline(rental),
        updated_at=_utc(rental.updated_at) or datetime.now(timezone.utc),
    )
    return values


def to_aggregate(row: RentalRow) -> Rental:
    data = {field: getattr(row, field) for field in _JSON_FIELDS}
    data.update(
        id=row.id,
        outfit_id=row.outfit_id,
        curator_id=row.curator_id,
        renter_user_id=row.renter_user_id,
        renter_email=row.renter_email,
        renter_name=row.renter_name,
        start_date=row.start_date,
        end_date=row.end_date,
        nights=row.nights,
        status=row.status,
        curator_earnings=row.curator_earnings,
        version=row.version,
        created_at=_utc(row.created_at),
        updated_at=_utc(row.updated_at),
    )
    return Rental.model_validate(data)


class RentalRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, rental_id: str) -> Optional[RentalRow]:
        return self.session.get(RentalRow, rental_id)

    def get_rental(self, rental_id: str) -> Optional[Rental]:
        row = self.get_by_id(rental_id)
        return to_aggregate(row) if row else None

    def create_rental(self, rental: Rental) -> Rental:
        row = RentalRow(
            id=rental.id,
            version=0,
            created_at=_utc(rental.created_at) or datetime.now(timezone.utc),
            **_row_values(rental),
        )
        self.session.add(row)
        self.session.flush()
        logger.debug(f"Inserted rental {rental.id} ({rental.status.value})")
        return rental.model_copy(update={"version": 0})

    def save_rental(self, rental: Rental) -> Rental:
        """
        Compare-and-swap write of an aggregate produced by the engine.

        Succeeds only when the stored version still equals ``rental.version``;
        otherwise another writer got there first.
        """
        expected = rental.version
        result = self.session.execute(
            update(RentalRow)
            .where(RentalRow.id == rental.id, RentalRow.version == expected)
            .values(version=expected + 1, **_row_values(rental))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(
                f"Stale write for rental {rental.id}: expected version {expected}"
            )
            raise StaleRentalException(rental.id, expected)

        # keep any identity-mapped row in step with the database
        row = self.session.get(RentalRow, rental.id)
        if row is not None:
            self.session.refresh(row)

        logger.debug(
            f"Saved rental {rental.id} status={rental.status.value} version={expected + 1}"
        )
        return rental.model_copy(update={"version": expected + 1})

    def list_for_outfit(
        self, outfit_id: str, statuses: Optional[Iterable[RentalStatus]] = None
    ) -> List[Rental]:
        stmt = select(RentalRow).where(RentalRow.outfit_id == outfit_id)
        if statuses is not None:
            stmt = stmt.where(RentalRow.status.in_([RentalStatus(s).value for s in statuses]))
        rows = self.session.execute(stmt.order_by(RentalRow.start_date)).scalars().all()
        return [to_aggregate(row) for row in rows]

    def list_by_curator(self, curator_id: str) -> List[Rental]:
        rows = (
            self.session.execute(
                select(RentalRow)
                .where(RentalRow.curator_id == curator_id)
                .order_by(RentalRow.created_at.desc())
            )
            .scalars()
            .all()
        )
        return [to_aggregate(row) for row in rows]

    def list_by_renter(self, renter_user_id: str) -> List[Rental]:
        rows = (
            self.session.execute(
                select(RentalRow)
                .where(RentalRow.renter_user_id == renter_user_id)
                .order_by(RentalRow.created_at.desc())
            )
            .scalars()
            .all()
        )
        return [to_aggregate(row) for row in rows]

    def get_expired_qc_rental_ids(self, now: datetime) -> List[str]:
        result = (
            self.session.execute(
                select(RentalRow.id)
                .where(
                    RentalRow.qc_deadline.is_not(None),
                    RentalRow.qc_deadline <= _utc(now),
                    RentalRow.status.in_(
                        [RentalStatus.DELIVERED.value, RentalStatus.RETURN_DELIVERED.value]
                    ),
                )
                .order_by(RentalRow.qc_deadline)
            )
            .scalars()
            .all()
        )
        return list(result)
