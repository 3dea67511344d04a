"""
Rental lifecycle engine.

Every operation takes a rental aggregate, validates the requested change against
the transition table and QC rules, and returns a new aggregate together with the
side-effect intents the caller has to execute (calendar blocks, stats). The
engine never reads the wall clock directly and never touches storage; the input
rental is left untouched, so a failed call applies nothing.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Iterable, List, Optional

from shared.lifecycle.availability import dates_to_block
from shared.lifecycle.clock import Clock, SystemClock
from shared.lifecycle.effects import (
    BlockDates,
    IncrementClosetStats,
    IncrementOutfitStats,
    QCResult,
    SideEffect,
    TransitionResult,
    UnblockDates,
)
from shared.lifecycle.exceptions import (
    InvalidInputException,
    InvalidTransitionException,
    NotDisputedException,
    QCAlreadySubmittedException,
    QCNotApplicableException,
)
from shared.lifecycle.models import (
    Amount,
    DeliveryAddress,
    DeliveryQC,
    DeliveryQCInput,
    IssueReport,
    IssueReportInput,
    IssueResolution,
    PaymentDetails,
    Rental,
    ReturnQC,
    ReturnQCInput,
    TimelineAnnotation,
    TimelineEntry,
    Tracking,
)
from shared.lifecycle.pricing import calculate_nights, compute_pricing
from shared.lifecycle.status import (
    DamageLevel,
    QCStatus,
    RentalStatus,
    ReporterType,
    TrackingLeg,
    apply_transition,
)

QC_WINDOW = timedelta(minutes=30)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class LifecycleEngine:
    def __init__(self, clock: Optional[Clock] = None, qc_window: timedelta = QC_WINDOW):
        self.clock = clock or SystemClock()
        self.qc_window = qc_window

    def _now(self) -> datetime:
        return _as_utc(self.clock.now())

    # --- creation ---

    def create_rental(
        self,
        *,
        rental_id: str,
        outfit_id: str,
        curator_id: str,
        renter_user_id: str,
        start_date: date,
        end_date: date,
        per_night_price: Amount,
        renter_email: Optional[str] = None,
        renter_name: Optional[str] = None,
        delivery_address: Optional[DeliveryAddress] = None,
    ) -> Rental:
        nights = calculate_nights(start_date, end_date)
        pricing = compute_pricing(per_night_price, nights)
        now = self._now()

        return Rental(
            id=rental_id,
            outfit_id=outfit_id,
            curator_id=curator_id,
            renter_user_id=renter_user_id,
            renter_email=renter_email,
            renter_name=renter_name,
            delivery_address=delivery_address,
            start_date=start_date,
            end_date=end_date,
            nights=nights,
            status=RentalStatus.REQUESTED,
            timeline=[
                TimelineEntry(
                    status=RentalStatus.REQUESTED, timestamp=now, note="Rental requested"
                )
            ],
            pricing=pricing,
            curator_earnings=pricing.curator_earnings,
            created_at=now,
            updated_at=now,
        )

    # --- status transitions ---

    def transition_rental(
        self,
        rental: Rental,
        new_status: RentalStatus,
        note: Optional[str] = None,
        link: Optional[str] = None,
        payment_details: Optional[PaymentDetails] = None,
    ) -> TransitionResult:
        apply_transition(rental.status, new_status)

        updated = rental.model_copy(deep=True)
        side_effects = self._advance(
            updated, RentalStatus(new_status), self._now(), note, link, payment_details
        )
        return TransitionResult(rental=updated, side_effects=side_effects)

    def _advance(
        self,
        rental: Rental,
        new_status: RentalStatus,
        now: datetime,
        note: Optional[str] = None,
        link: Optional[str] = None,
        payment_details: Optional[PaymentDetails] = None,
    ) -> List[SideEffect]:
        """Apply an already validated status change to a working copy."""
        last = _as_utc(rental.timeline[-1].timestamp)
        entry = TimelineEntry(status=new_status, timestamp=max(now, last))
        if note:
            entry.note = note
        if link:
            entry.link = link

        rental.timeline.append(entry)
        rental.status = new_status
        rental.updated_at = now

        if new_status == RentalStatus.DELIVERED and not self._qc_pending(rental.delivery_qc):
            rental.delivery_qc = DeliveryQC(deadline=now + self.qc_window)

        if new_status == RentalStatus.RETURN_DELIVERED and not self._qc_pending(
            rental.return_qc
        ):
            rental.return_qc = ReturnQC(deadline=now + self.qc_window)

        if payment_details is not None and rental.payment_details is None:
            rental.payment_details = payment_details

        return self._side_effects_for(rental, new_status)

    @staticmethod
    def _qc_pending(qc) -> bool:
        return qc is not None and qc.status == QCStatus.PENDING

    @staticmethod
    def _side_effects_for(rental: Rental, status: RentalStatus) -> List[SideEffect]:
        if status == RentalStatus.PAID:
            return [
                BlockDates(
                    outfit_id=rental.outfit_id,
                    rental_id=rental.id,
                    dates=dates_to_block(rental.start_date, rental.end_date),
                )
            ]

        if status in (RentalStatus.CANCELLED, RentalStatus.REJECTED):
            return [
                UnblockDates(
                    outfit_id=rental.outfit_id,
                    rental_id=rental.id,
                    dates=dates_to_block(rental.start_date, rental.end_date),
                )
            ]

        if status == RentalStatus.COMPLETED:
            return [
                IncrementOutfitStats(outfit_id=rental.outfit_id, rentals_count=1),
                IncrementClosetStats(
                    curator_id=rental.curator_id,
                    rentals_count=1,
                    earnings=rental.curator_earnings,
                ),
            ]

        return []

    # --- quality control ---

    @staticmethod
    def _check_qc(rental: Rental, qc, expected_status: RentalStatus, kind: str) -> None:
        if qc is not None and qc.status != QCStatus.PENDING:
            raise QCAlreadySubmittedException(
                f"{kind} QC for rental {rental.id} is already {qc.status.value}"
            )
        if rental.status != expected_status or qc is None:
            raise QCNotApplicableException(
                f"{kind} QC is not expected while rental {rental.id} is {rental.status.value}"
            )

    def submit_delivery_qc(self, rental: Rental, qc_input: DeliveryQCInput) -> QCResult:
        self._check_qc(rental, rental.delivery_qc, RentalStatus.DELIVERED, "delivery")

        now = self._now()
        all_ok = qc_input.items_received and qc_input.condition_ok and qc_input.size_ok

        updated = rental.model_copy(deep=True)
        qc = updated.delivery_qc
        qc.status = QCStatus.APPROVED if all_ok else QCStatus.ISSUE_REPORTED
        qc.submitted_at = now
        qc.items_received = qc_input.items_received
        qc.condition_ok = qc_input.condition_ok
        qc.size_ok = qc_input.size_ok
        qc.issue_description = qc_input.issue_description
        qc.return_requested = qc_input.return_requested

        if all_ok:
            next_status, note = RentalStatus.IN_USE, "Delivery confirmed by user"
        else:
            next_status, note = RentalStatus.DISPUTED, "User reported issue with delivery"

        apply_transition(updated.status, next_status)
        side_effects = self._advance(updated, next_status, now, note)
        return QCResult(rental=updated, next_status=next_status, side_effects=side_effects)

    def submit_return_qc(self, rental: Rental, qc_input: ReturnQCInput) -> QCResult:
        self._check_qc(rental, rental.return_qc, RentalStatus.RETURN_DELIVERED, "return")

        now = self._now()
        damage = DamageLevel(qc_input.damage_level)
        deposit_refunded = damage == DamageLevel.NONE

        updated = rental.model_copy(deep=True)
        qc = updated.return_qc
        qc.status = QCStatus.APPROVED if qc_input.condition_ok else QCStatus.ISSUE_REPORTED
        qc.submitted_at = now
        qc.condition_ok = qc_input.condition_ok
        qc.damage_level = damage
        qc.issue_description = qc_input.issue_description
        qc.deposit_refunded = deposit_refunded
        if deposit_refunded:
            qc.deposit_refunded_at = now

        # minor damage forfeits the deposit but still completes the rental
        if damage in (DamageLevel.NONE, DamageLevel.MINOR):
            next_status = RentalStatus.COMPLETED
        else:
            next_status = RentalStatus.DISPUTED

        if deposit_refunded:
            note = "Return confirmed, deposit refunded"
        else:
            note = f"Return confirmed with {damage.value} damage"

        apply_transition(updated.status, next_status)
        side_effects = self._advance(updated, next_status, now, note)
        return QCResult(rental=updated, next_status=next_status, side_effects=side_effects)

    def _check_expired(self, rental: Rental, qc, expected_status: RentalStatus, kind: str):
        self._check_qc(rental, qc, expected_status, kind)
        now = self._now()
        if now < _as_utc(qc.deadline):
            raise QCNotApplicableException(
                f"{kind} QC window for rental {rental.id} is open until {qc.deadline.isoformat()}"
            )
        return now

    def auto_approve_delivery_qc(self, rental: Rental) -> QCResult:
        now = self._check_expired(
            rental, rental.delivery_qc, RentalStatus.DELIVERED, "delivery"
        )

        updated = rental.model_copy(deep=True)
        updated.delivery_qc.status = QCStatus.AUTO_APPROVED
        updated.delivery_qc.submitted_at = now

        next_status = RentalStatus.IN_USE
        side_effects = self._advance(
            updated, next_status, now, "Delivery auto-approved after QC window expired"
        )
        return QCResult(rental=updated, next_status=next_status, side_effects=side_effects)

    def auto_approve_return_qc(self, rental: Rental) -> QCResult:
        now = self._check_expired(
            rental, rental.return_qc, RentalStatus.RETURN_DELIVERED, "return"
        )

        updated = rental.model_copy(deep=True)
        qc = updated.return_qc
        qc.status = QCStatus.AUTO_APPROVED
        qc.submitted_at = now
        qc.deposit_refunded = True
        qc.deposit_refunded_at = now

        next_status = RentalStatus.COMPLETED
        side_effects = self._advance(
            updated,
            next_status,
            now,
            "Return auto-approved after QC window expired, deposit refunded",
        )
        return QCResult(rental=updated, next_status=next_status, side_effects=side_effects)

    # --- disputes ---

    def report_issue(
        self,
        rental: Rental,
        report: IssueReportInput,
        allowed_from: Optional[Iterable[RentalStatus]] = None,
    ) -> Rental:
        """
        Move a rental into dispute.

        Not gated by the transition table: any status, terminal ones included,
        can be disputed unless the caller narrows it with ``allowed_from``.
        """
        if allowed_from is not None and rental.status not in set(allowed_from):
            raise InvalidTransitionException(
                rental.status,
                RentalStatus.DISPUTED,
                "issue reports are not accepted in this status",
            )

        now = self._now()
        reporter_type = ReporterType(report.reporter_type)
        reporter_label = "User" if reporter_type == ReporterType.USER else "Curator"

        updated = rental.model_copy(deep=True)
        updated.issue_report = IssueReport(
            reporter_id=report.reporter_id,
            reporter_type=reporter_type,
            category=report.category,
            description=report.description,
            image_urls=list(report.image_urls),
            reported_at=now,
        )
        self._advance(
            updated,
            RentalStatus.DISPUTED,
            now,
            f"{reporter_label} reported an issue: {report.category}. Under investigation.",
        )
        return updated

    def resolve_issue(self, rental: Rental, resolution: IssueResolution) -> TransitionResult:
        """
        Administrative close-out of a dispute.

        The target status is a human decision and is deliberately not checked
        against the transition table.
        """
        if rental.status != RentalStatus.DISPUTED:
            raise NotDisputedException(
                f"rental {rental.id} is {rental.status.value}, not disputed"
            )

        if resolution.new_status == RentalStatus.DISPUTED:
            raise InvalidInputException("a resolution must move the rental out of dispute")

        earnings = resolution.curator_earnings
        if earnings is not None and not 0 <= earnings <= rental.pricing.rental_fee:
            raise InvalidInputException(
                f"curator earnings must be between 0 and {rental.pricing.rental_fee}, got {earnings}"
            )

        already_completed = any(e.status == RentalStatus.COMPLETED for e in rental.timeline)

        now = self._now()
        updated = rental.model_copy(deep=True)
        if earnings is not None:
            updated.curator_earnings = earnings
        if updated.issue_report is not None:
            updated.issue_report.resolved_at = now
            updated.issue_report.resolution_note = resolution.note

        side_effects = self._advance(
            updated,
            RentalStatus(resolution.new_status),
            now,
            f"Issue resolved: {resolution.note}",
        )
        if already_completed:
            # stats were credited on the first completion
            side_effects = [
                effect
                for effect in side_effects
                if not isinstance(effect, (IncrementOutfitStats, IncrementClosetStats))
            ]
        return TransitionResult(rental=updated, side_effects=side_effects)

    # --- non-status changes ---

    def annotate_timeline(
        self, rental: Rental, entry_index: int, note: str, author_id: str
    ) -> Rental:
        if not 0 <= entry_index < len(rental.timeline):
            raise InvalidInputException(f"invalid timeline index {entry_index}")
        if not note or not note.strip():
            raise InvalidInputException("annotation note must not be empty")

        now = self._now()
        updated = rental.model_copy(deep=True)
        updated.annotations.append(
            TimelineAnnotation(
                entry_index=entry_index,
                note=note.strip(),
                author_id=author_id,
                created_at=now,
            )
        )
        updated.updated_at = now
        return updated

    def update_tracking(
        self, rental: Rental, tracking: Tracking, leg: TrackingLeg = TrackingLeg.OUTBOUND
    ) -> Rental:
        updated = rental.model_copy(deep=True)
        if TrackingLeg(leg) == TrackingLeg.RETURN:
            updated.return_tracking = tracking.model_copy()
        else:
            updated.tracking = tracking.model_copy()
        updated.updated_at = self._now()
        return updated
