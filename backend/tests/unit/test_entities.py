"""
Unit tests for domain entities.

Covers construction-time validation and the small derived properties
the services rely on (availability, expiry, counter holding).
"""

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from fitcenter.domain.entities import (
    Appointment,
    AppointmentStatus,
    Member,
    MembershipStatus,
    Purchase,
    PurchaseStatus,
    Reservation,
    ReservationStatus,
    Role,
    Service,
    User,
)


@pytest.mark.unit
class TestService:
    def test_group_service_when_capacity_above_one(self, sample_service):
        assert sample_service.is_group_service is True

    def test_single_capacity_service_is_not_group(self):
        service = Service(name="Personal Training", max_capacity=1, location_ids=[1])
        assert service.is_group_service is False

    def test_is_offered_at(self, sample_service):
        assert sample_service.is_offered_at(10)
        assert not sample_service.is_offered_at(11)

    @pytest.mark.parametrize(
        "kwargs, message",
        [
            ({"name": ""}, "name is required"),
            ({"name": "Yoga", "duration_minutes": 0}, "Duration must be positive"),
            ({"name": "Yoga", "max_capacity": 0}, "Max capacity must be positive"),
            ({"name": "Yoga", "price": Decimal("-1")}, "Price cannot be negative"),
        ],
    )
    def test_invalid_service_rejected(self, kwargs, message):
        with pytest.raises(ValueError, match=message):
            Service(**kwargs)


@pytest.mark.unit
class TestMember:
    def test_full_name_and_active_flag(self, sample_member):
        assert sample_member.full_name == "Anna Tester"
        assert sample_member.is_active_member is True

    def test_status_string_is_coerced(self):
        member = Member(user_id=1, location_id=1, membership_status="SUSPENDED")
        assert member.membership_status is MembershipStatus.SUSPENDED
        assert member.is_active_member is False

    def test_end_before_start_rejected(self):
        with pytest.raises(ValueError, match="must not precede"):
            Member(
                user_id=1,
                location_id=1,
                membership_start_date=date(2030, 2, 1),
                membership_end_date=date(2030, 1, 1),
            )

    def test_location_required(self):
        with pytest.raises(ValueError, match="location_id"):
            Member(user_id=1, location_id=0)


@pytest.mark.unit
class TestUser:
    def test_role_is_coerced(self):
        user = User(email="staff@fit.test", role="EMPLOYEE", location_id=3)
        assert user.role is Role.EMPLOYEE

    def test_email_required(self):
        with pytest.raises(ValueError, match="email"):
            User(email="not-an-email")


@pytest.mark.unit
@pytest.mark.purchase
class TestPurchase:
    def test_remaining_uses_bounded_by_quantity(self):
        with pytest.raises(ValueError, match="between 0 and quantity"):
            Purchase(member_id=1, service_id=1, quantity=2, remaining_uses=3)

    def test_quantity_at_least_one(self):
        with pytest.raises(ValueError, match="at least 1"):
            Purchase(member_id=1, service_id=1, quantity=0, remaining_uses=0)

    def test_expiry_is_exclusive_of_the_expiry_day(self, sample_purchase):
        expiry = sample_purchase.expiry_date
        assert sample_purchase.is_expired(expiry) is False
        assert sample_purchase.is_expired(expiry + timedelta(days=1)) is True

    def test_without_expiry_never_expires(self):
        purchase = Purchase(member_id=1, service_id=1, quantity=1, remaining_uses=1)
        assert purchase.is_expired(date(2999, 1, 1)) is False

    def test_status_string_is_coerced(self):
        purchase = Purchase(
            member_id=1, service_id=1, quantity=1, remaining_uses=0, status="USED"
        )
        assert purchase.status is PurchaseStatus.USED


@pytest.mark.unit
@pytest.mark.appointment
class TestAppointment:
    def test_available_spaces(self, sample_appointment):
        assert sample_appointment.available_spaces == 7
        assert sample_appointment.is_full is False

    def test_full_appointment(self, sample_appointment):
        sample_appointment.current_capacity = sample_appointment.max_capacity
        assert sample_appointment.is_full is True
        assert sample_appointment.available_spaces == 0

    def test_capacity_above_max_rejected(self):
        with pytest.raises(ValueError, match="Current capacity"):
            Appointment(max_capacity=2, current_capacity=3)

    def test_end_must_follow_start(self):
        start = datetime(2030, 1, 16, 10, 0)
        with pytest.raises(ValueError, match="End time"):
            Appointment(start_time=start, end_time=start)

    def test_is_bookable(self, sample_appointment):
        before = sample_appointment.start_time - timedelta(minutes=1)
        assert sample_appointment.is_bookable(before) is True
        assert sample_appointment.is_bookable(sample_appointment.start_time) is False

        sample_appointment.status = AppointmentStatus.CANCELLED
        assert sample_appointment.is_bookable(before) is False


@pytest.mark.unit
@pytest.mark.reservation
class TestReservation:
    @pytest.mark.parametrize(
        "status, holds",
        [
            (ReservationStatus.CONFIRMED, True),
            (ReservationStatus.ATTENDED, True),
            (ReservationStatus.NO_SHOW, True),
            (ReservationStatus.CANCELLED, False),
            (ReservationStatus.WAITING_LIST, False),
        ],
    )
    def test_holds_counters(self, sample_reservation, status, holds):
        sample_reservation.status = status
        assert sample_reservation.holds_counters is holds

    def test_ids_required(self):
        with pytest.raises(ValueError, match="purchase_id"):
            Reservation(member_id=1, appointment_id=1, purchase_id=0)
