from datetime import date
from unittest.mock import Mock

import pytest

from rental_core.core.exceptions import (
    DatesUnavailableException,
    PaymentGatewayUnavailableException,
    QCRequiredException,
    RentalNotFoundException,
)
from rental_core.schemas import (
    AnnotationRequest,
    BlockedDatesRequest,
    CreateRentalRequest,
    PaymentConfirmRequest,
    PricingRequest,
    StatusUpdateRequest,
)
from rental_core.services.payment import PaymentService
from rental_core.services.rental import RentalService
from shared.db.exceptions import OutfitNotFoundException
from shared.lifecycle import (
    DamageLevel,
    DeliveryQCInput,
    InvalidInputException,
    InvalidTransitionException,
    IssueReportInput,
    IssueResolution,
    PaymentDetails,
    RentalStatus,
    ReporterType,
    ReturnQCInput,
    Tracking,
    TrackingLeg,
    dates_to_block,
)

S = RentalStatus


@pytest.fixture
def service(repositories, executor, engine):
    rental_repo, outfit_repo, _ = repositories
    return RentalService(rental_repo, outfit_repo, executor, engine)


def _request(start=date(2025, 3, 10), end=date(2025, 3, 13), outfit_id="outfit-1"):
    return CreateRentalRequest(
        outfit_id=outfit_id,
        renter_user_id="user-1",
        start_date=start,
        end_date=end,
        renter_email="renter@example.com",
    )


def _paid(service, sqlite_session, **kwargs):
    rental = service.create_rental(_request(**kwargs))
    rental = service.mark_paid(
        rental.id, PaymentDetails(payment_id="pay_1", order_id="order_1", signature="sig")
    )
    sqlite_session.commit()
    return rental


def test_create_and_read_rental(service, sqlite_session):
    created = service.create_rental(_request())
    sqlite_session.commit()

    loaded = service.get_rental(created.id)
    assert loaded.status == S.REQUESTED
    assert loaded.curator_id == "curator-1"
    assert loaded.renter_email == "renter@example.com"
    assert loaded.pricing.total == 1880
    assert loaded.version == 0


def test_get_unknown_rental(service):
    with pytest.raises(RentalNotFoundException):
        service.get_rental("missing")


def test_create_rental_for_unknown_outfit(service):
    with pytest.raises(OutfitNotFoundException):
        service.create_rental(_request(outfit_id="nope"))


def test_create_rental_on_disabled_outfit(service, repositories, sqlite_session):
    _, outfit_repo, _ = repositories
    outfit_repo.get_by_id("outfit-1").availability_enabled = False
    sqlite_session.commit()

    with pytest.raises(DatesUnavailableException):
        service.create_rental(_request())


def test_quote_price_reports_conflicts(service, sqlite_session):
    _paid(service, sqlite_session)

    free = service.quote_price(
        PricingRequest(outfit_id="outfit-1", start_date=date(2025, 4, 1), end_date=date(2025, 4, 3))
    )
    taken = service.quote_price(
        PricingRequest(outfit_id="outfit-1", start_date=date(2025, 3, 14), end_date=date(2025, 3, 16))
    )

    assert free.available is True
    assert free.pricing.total == 450 * 2 + 450 + 20 + 50
    assert taken.available is False
    assert taken.conflicts == [date(2025, 3, 14)]


def test_payment_blocks_dates_and_cancel_releases_them(service, repositories, sqlite_session):
    _, outfit_repo, _ = repositories
    outfit_repo.block_manual_dates("outfit-1", [date(2025, 3, 20)])
    paid = _paid(service, sqlite_session)

    assert outfit_repo.get_rental_blocked_dates("outfit-1", paid.id) == {
        date(2025, 3, d) for d in range(10, 15)
    }

    service.cancel(paid.id, "Renter changed plans")
    sqlite_session.commit()

    assert outfit_repo.get_blocked_dates("outfit-1") == {date(2025, 3, 20)}


def test_overlapping_request_is_refused_after_payment(service, sqlite_session):
    _paid(service, sqlite_session)

    with pytest.raises(DatesUnavailableException) as exc_info:
        service.create_rental(_request(start=date(2025, 3, 12), end=date(2025, 3, 15)))

    assert exc_info.value.conflicts == [date(2025, 3, d) for d in range(12, 15)]


def test_second_payment_for_same_dates_is_refused(service, sqlite_session):
    first = service.create_rental(_request())
    second = service.create_rental(_request())
    details = PaymentDetails(payment_id="pay_1", order_id="order_1", signature="sig")
    service.mark_paid(first.id, details)
    sqlite_session.commit()

    with pytest.raises(DatesUnavailableException):
        service.mark_paid(second.id, details)


def test_delivery_edges_require_qc(service, sqlite_session):
    rental = _paid(service, sqlite_session)
    for status in (S.ACCEPTED, S.SHIPPED, S.DELIVERED):
        rental = service.update_status(rental.id, StatusUpdateRequest(status=status))

    with pytest.raises(QCRequiredException):
        service.update_status(rental.id, StatusUpdateRequest(status=S.IN_USE))

    rental = service.submit_delivery_qc(
        rental.id, DeliveryQCInput(items_received=True, condition_ok=True, size_ok=True)
    )
    assert rental.status == S.IN_USE


def test_update_status_with_tracking_only(service, sqlite_session):
    rental = service.create_rental(_request())

    updated = service.update_status(
        rental.id,
        StatusUpdateRequest(
            tracking=Tracking(courier_name="Delhivery", tracking_number="DL42"),
            leg=TrackingLeg.RETURN,
        ),
    )

    assert updated.status == S.REQUESTED
    assert updated.return_tracking.tracking_number == "DL42"
    assert updated.version == 1


def test_update_status_needs_something_to_do(service, sqlite_session):
    rental = service.create_rental(_request())

    with pytest.raises(InvalidInputException):
        service.update_status(rental.id, StatusUpdateRequest(note="just a note"))


def test_invalid_status_update_is_rejected(service, sqlite_session):
    rental = service.create_rental(_request())

    with pytest.raises(InvalidTransitionException):
        service.update_status(rental.id, StatusUpdateRequest(status=S.SHIPPED))


def test_full_lifecycle_updates_stats(service, repositories, sqlite_session):
    _, outfit_repo, closet_repo = repositories
    rental = _paid(service, sqlite_session)
    for status in (S.ACCEPTED, S.SHIPPED, S.DELIVERED):
        rental = service.update_status(rental.id, StatusUpdateRequest(status=status))
    rental = service.submit_delivery_qc(
        rental.id, DeliveryQCInput(items_received=True, condition_ok=True, size_ok=True)
    )
    for status in (S.RETURN_SHIPPED, S.RETURN_DELIVERED):
        rental = service.update_status(rental.id, StatusUpdateRequest(status=status))
    rental = service.submit_return_qc(
        rental.id, ReturnQCInput(condition_ok=True, damage_level=DamageLevel.NONE)
    )
    sqlite_session.commit()

    assert rental.status == S.COMPLETED
    assert outfit_repo.get_by_id("outfit-1").rentals_count == 1
    closet = closet_repo.get_by_curator("curator-1")
    assert closet.rentals_count == 1
    assert closet.total_earnings == 1350


def test_restricted_issue_reports(repositories, executor, engine, sqlite_session):
    rental_repo, outfit_repo, _ = repositories
    service = RentalService(
        rental_repo, outfit_repo, executor, engine, restrict_issue_reports=True
    )
    rental = service.create_rental(_request())
    report = IssueReportInput(
        reporter_id="user-1",
        reporter_type=ReporterType.USER,
        category="Other",
        description="Changed my mind",
    )

    with pytest.raises(InvalidTransitionException):
        service.report_issue(rental.id, report)


def test_dispute_and_resolution(service, sqlite_session):
    rental = _paid(service, sqlite_session)
    report = IssueReportInput(
        reporter_id="curator-1",
        reporter_type=ReporterType.CURATOR,
        category="Payment",
        description="Chargeback received",
    )

    disputed = service.report_issue(rental.id, report)
    resolved = service.resolve_issue(
        rental.id, IssueResolution(new_status=S.CANCELLED, note="Refunded")
    )

    assert disputed.status == S.DISPUTED
    assert resolved.status == S.CANCELLED
    assert resolved.issue_report.resolution_note == "Refunded"


def test_annotate(service, sqlite_session):
    rental = service.create_rental(_request())

    annotated = service.annotate(
        rental.id, AnnotationRequest(entry_index=0, note="Called renter", author_id="admin-1")
    )

    assert annotated.annotations[0].note == "Called renter"
    assert len(annotated.timeline) == 1


def test_confirm_payment_verified(service, sqlite_session):
    rental = service.create_rental(_request())
    external_client = Mock()
    external_client.verify_payment.return_value = True
    payments = PaymentService(service, external_client)

    paid = payments.confirm_payment(
        rental.id, PaymentConfirmRequest(payment_id="pay_9", order_id="order_9", signature="s")
    )

    external_client.verify_payment.assert_called_once_with("pay_9", "order_9", "s")
    assert paid.status == S.PAID
    assert paid.payment_details.payment_id == "pay_9"
    assert paid.timeline[-1].note == "Payment confirmed"


def test_confirm_payment_denied_cancels(service, repositories, sqlite_session):
    _, outfit_repo, _ = repositories
    rental = service.create_rental(_request())
    external_client = Mock()
    external_client.verify_payment.return_value = False
    payments = PaymentService(service, external_client)

    cancelled = payments.confirm_payment(
        rental.id, PaymentConfirmRequest(payment_id="pay_9", order_id="order_9", signature="bad")
    )

    assert cancelled.status == S.CANCELLED
    assert cancelled.payment_details is None
    assert cancelled.timeline[-1].note == "Payment verification failed"
    assert outfit_repo.get_blocked_dates("outfit-1") == set()


@pytest.mark.parametrize("status", [S.PAID, S.ACCEPTED, S.SHIPPED])
def test_confirm_payment_only_for_requested_rentals(service, sqlite_session, status):
    rental = _paid(service, sqlite_session)
    if status != S.PAID:
        rental = service.update_status(rental.id, StatusUpdateRequest(status=S.ACCEPTED))
    if status == S.SHIPPED:
        rental = service.update_status(rental.id, StatusUpdateRequest(status=S.SHIPPED))
    sqlite_session.commit()
    external_client = Mock()
    external_client.verify_payment.return_value = False
    payments = PaymentService(service, external_client)

    with pytest.raises(InvalidTransitionException):
        payments.confirm_payment(
            rental.id,
            PaymentConfirmRequest(payment_id="pay_2", order_id="order_2", signature="bogus"),
        )

    external_client.verify_payment.assert_not_called()
    stored = service.get_rental(rental.id)
    assert stored.status == status
    assert stored.payment_details.payment_id == "pay_1"


def test_confirm_payment_keeps_rental_when_gateway_is_down(
    service, repositories, sqlite_session
):
    _, outfit_repo, _ = repositories
    rental = service.create_rental(_request())
    sqlite_session.commit()
    external_client = Mock()
    external_client.verify_payment.side_effect = PaymentGatewayUnavailableException(
        "pay_9", "breaker open"
    )
    payments = PaymentService(service, external_client)

    with pytest.raises(PaymentGatewayUnavailableException):
        payments.confirm_payment(
            rental.id,
            PaymentConfirmRequest(payment_id="pay_9", order_id="order_9", signature="s"),
        )

    stored = service.get_rental(rental.id)
    assert stored.status == S.REQUESTED
    assert len(stored.timeline) == 1
    assert outfit_repo.get_blocked_dates("outfit-1") == set()


def test_curator_and_renter_listings(service, sqlite_session):
    first = service.create_rental(_request())
    second = service.create_rental(
        CreateRentalRequest(
            outfit_id="outfit-1",
            renter_user_id="user-2",
            start_date=date(2025, 4, 1),
            end_date=date(2025, 4, 3),
        )
    )
    sqlite_session.commit()

    assert {r.id for r in service.list_for_curator("curator-1")} == {first.id, second.id}
    assert [r.id for r in service.list_for_renter("user-2")] == [second.id]
    assert service.list_for_renter("nobody") == []


def test_curator_blocks_and_releases_dates(service, sqlite_session):
    calendar = service.block_dates(
        "outfit-1", BlockedDatesRequest(start_date=date(2025, 5, 1), end_date=date(2025, 5, 3))
    )
    sqlite_session.commit()

    assert calendar.manual_dates == [date(2025, 5, 1), date(2025, 5, 2), date(2025, 5, 3)]
    with pytest.raises(DatesUnavailableException):
        service.create_rental(_request(start=date(2025, 4, 29), end=date(2025, 5, 1)))

    calendar = service.unblock_dates(
        "outfit-1", BlockedDatesRequest(start_date=date(2025, 5, 2), end_date=date(2025, 5, 3))
    )
    sqlite_session.commit()

    assert calendar.manual_dates == [date(2025, 5, 1)]
    assert calendar.blocked_dates == [date(2025, 5, 1)]


def test_releasing_curator_blocks_keeps_rental_holds(service, sqlite_session):
    rental = _paid(service, sqlite_session)
    service.block_dates(
        "outfit-1", BlockedDatesRequest(start_date=date(2025, 3, 12), end_date=date(2025, 3, 20))
    )

    calendar = service.unblock_dates(
        "outfit-1", BlockedDatesRequest(start_date=date(2025, 3, 1), end_date=date(2025, 3, 31))
    )
    sqlite_session.commit()

    assert calendar.manual_dates == []
    assert calendar.blocked_dates == sorted(dates_to_block(rental.start_date, rental.end_date))


def test_calendar_rejects_reversed_range_and_unknown_outfit(service):
    with pytest.raises(InvalidInputException):
        service.block_dates(
            "outfit-1",
            BlockedDatesRequest(start_date=date(2025, 5, 3), end_date=date(2025, 5, 1)),
        )
    with pytest.raises(OutfitNotFoundException):
        service.block_dates(
            "missing",
            BlockedDatesRequest(start_date=date(2025, 5, 1), end_date=date(2025, 5, 1)),
        )
    with pytest.raises(OutfitNotFoundException):
        service.unblock_dates(
            "missing",
            BlockedDatesRequest(start_date=date(2025, 5, 1), end_date=date(2025, 5, 1)),
        )


def test_fractional_price_flows_into_earnings(service, repositories, sqlite_session):
    rental_repo, outfit_repo, _ = repositories
    outfit_repo.create_outfit("outfit-2", "curator-2", "Sharara", 399.5)
    sqlite_session.commit()

    rental = service.create_rental(_request(outfit_id="outfit-2"))
    sqlite_session.commit()

    assert rental.pricing.rental_fee == 1198.5
    assert rental.pricing.total == 1198.5 + 399.5 + 30 + 50
    assert rental_repo.get_rental(rental.id).curator_earnings == 1198.5


def test_resolving_a_reopened_completion_keeps_stats(service, repositories, sqlite_session):
    _, outfit_repo, closet_repo = repositories
    rental = _paid(service, sqlite_session)
    for status in (S.ACCEPTED, S.SHIPPED, S.DELIVERED):
        service.update_status(rental.id, StatusUpdateRequest(status=status))
    service.submit_delivery_qc(
        rental.id, DeliveryQCInput(items_received=True, condition_ok=True, size_ok=True)
    )
    for status in (S.RETURN_SHIPPED, S.RETURN_DELIVERED):
        service.update_status(rental.id, StatusUpdateRequest(status=status))
    service.submit_return_qc(
        rental.id, ReturnQCInput(condition_ok=True, damage_level=DamageLevel.NONE)
    )
    service.report_issue(
        rental.id,
        IssueReportInput(
            reporter_id="user-1",
            reporter_type=ReporterType.USER,
            category="Billing",
            description="Charged twice",
        ),
    )
    resolved = service.resolve_issue(
        rental.id, IssueResolution(new_status=S.COMPLETED, note="Refund issued by gateway")
    )
    sqlite_session.commit()

    assert resolved.status == S.COMPLETED
    assert outfit_repo.get_by_id("outfit-1").rentals_count == 1
    closet = closet_repo.get_by_curator("curator-1")
    assert closet.rentals_count == 1
    assert closet.total_earnings == 1350
