"""
Integration tests for the reservation engine.

Every test checks the three counters together: appointment capacity,
purchase remaining uses and the reservation status.
"""

from datetime import datetime

import pytest

from fitcenter.core.exceptions import (
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from fitcenter.core.security import principal_from_claims
from fitcenter.db import base as models
from fitcenter.schemas.dtos import ReservationCreateRequest, ReservationUpdateRequest


def reserve(booking, principal, appointment_id, purchase_id, notes=None):
    return booking.reservations.create_reservation(
        principal,
        ReservationCreateRequest(
            appointment_id=appointment_id, purchase_id=purchase_id, notes=notes
        ),
    )


def ids(rows):
    return sorted(r.id for r in rows)


@pytest.fixture
def counters(fetch):
    """(appointment current_capacity, purchase remaining_uses, purchase status)"""

    def _counters(appointment_id, purchase_id):
        appointment = fetch(models.Appointment, appointment_id)
        purchase = fetch(models.Purchase, purchase_id)
        return appointment.current_capacity, purchase.remaining_uses, purchase.status

    return _counters


@pytest.mark.integration
@pytest.mark.reservation
class TestCreateReservation:
    def test_last_slot_then_full(self, booking, seed, make_appointment, counters):
        appointment_id = make_appointment(max_capacity=10, current_capacity=9)

        result = reserve(booking, seed.anna_principal, appointment_id, seed.anna_yoga)

        assert result.status == "CONFIRMED"
        assert result.member_id == seed.anna
        assert counters(appointment_id, seed.anna_yoga) == (10, 9, "ACTIVE")

        with pytest.raises(ValidationError, match="fully booked"):
            reserve(booking, seed.ben_principal, appointment_id, seed.ben_yoga)
        assert counters(appointment_id, seed.ben_yoga) == (10, 5, "ACTIVE")

    def test_duplicate_reservation(self, booking, seed, make_appointment, counters):
        appointment_id = make_appointment()
        reserve(booking, seed.anna_principal, appointment_id, seed.anna_yoga)

        with pytest.raises(ValidationError, match="already have a reservation"):
            reserve(booking, seed.anna_principal, appointment_id, seed.anna_yoga_spare)

        assert counters(appointment_id, seed.anna_yoga) == (1, 9, "ACTIVE")
        assert counters(appointment_id, seed.anna_yoga_spare) == (1, 5, "ACTIVE")

    def test_last_use_marks_purchase_used(self, booking, seed, make_appointment, counters):
        appointment_id = make_appointment(service_id=seed.personal, max_capacity=1)

        reserve(booking, seed.anna_principal, appointment_id, seed.anna_personal)

        assert counters(appointment_id, seed.anna_personal) == (1, 0, "USED")

    def test_expired_purchase(self, booking, seed, make_appointment, counters):
        appointment_id = make_appointment()
        with pytest.raises(ValidationError, match="expired"):
            reserve(booking, seed.anna_principal, appointment_id, seed.anna_expired)
        assert counters(appointment_id, seed.anna_expired) == (0, 5, "ACTIVE")

    def test_purchase_for_other_service(self, booking, seed, make_appointment):
        appointment_id = make_appointment()
        with pytest.raises(ValidationError, match="not valid for this appointment"):
            reserve(booking, seed.anna_principal, appointment_id, seed.anna_personal)

    def test_someone_elses_purchase(self, booking, seed, make_appointment):
        appointment_id = make_appointment()
        with pytest.raises(UnauthorizedError):
            reserve(booking, seed.anna_principal, appointment_id, seed.ben_yoga)

    def test_cancelled_appointment(self, booking, seed, make_appointment):
        appointment_id = make_appointment(status="CANCELLED")
        with pytest.raises(ValidationError, match="cancelled"):
            reserve(booking, seed.anna_principal, appointment_id, seed.anna_yoga)

    def test_missing_records(self, booking, seed, make_appointment):
        appointment_id = make_appointment()
        with pytest.raises(NotFoundError):
            reserve(booking, seed.anna_principal, 9999, seed.anna_yoga)
        with pytest.raises(NotFoundError):
            reserve(booking, seed.anna_principal, appointment_id, 9999)
        with pytest.raises(NotFoundError, match="No member profile"):
            reserve(booking, seed.no_profile_principal, appointment_id, seed.anna_yoga)

    def test_member_token_without_member_claim(
        self, booking, seed, make_appointment, counters
    ):
        principal = principal_from_claims(
            {"sub": seed.anna_principal.user_id, "role": "MEMBER", "location_id": seed.downtown}
        )
        appointment_id = make_appointment()

        with pytest.raises(NotFoundError, match="No member profile"):
            reserve(booking, principal, appointment_id, seed.anna_yoga)

        assert counters(appointment_id, seed.anna_yoga) == (0, 10, "ACTIVE")
        assert booking.purchases.list_current_member_purchases(principal) == []
        assert booking.reservations.list_current_member_reservations(principal) == []


@pytest.mark.integration
@pytest.mark.reservation
class TestReservationStatus:
    def test_cancel_releases_and_allows_rebooking(
        self, booking, seed, make_appointment, counters
    ):
        appointment_id = make_appointment()
        reservation = reserve(booking, seed.anna_principal, appointment_id, seed.anna_yoga)

        result = booking.reservations.update_reservation_status(
            seed.employee, reservation.id, "CANCELLED"
        )

        assert result.status == "CANCELLED"
        assert counters(appointment_id, seed.anna_yoga) == (0, 10, "ACTIVE")

        again = reserve(booking, seed.anna_principal, appointment_id, seed.anna_yoga)
        assert again.id != reservation.id
        assert counters(appointment_id, seed.anna_yoga) == (1, 9, "ACTIVE")

    def test_cancel_returns_used_purchase_to_active(
        self, booking, seed, make_appointment, counters
    ):
        appointment_id = make_appointment(service_id=seed.personal, max_capacity=1)
        reservation = reserve(booking, seed.anna_principal, appointment_id, seed.anna_personal)

        booking.reservations.update_reservation_status(
            seed.admin, reservation.id, "CANCELLED"
        )

        assert counters(appointment_id, seed.anna_personal) == (0, 1, "ACTIVE")

    def test_attended_keeps_counters_and_is_final(
        self, booking, seed, make_appointment, counters
    ):
        appointment_id = make_appointment()
        reservation = reserve(booking, seed.anna_principal, appointment_id, seed.anna_yoga)

        booking.reservations.update_reservation_status(
            seed.employee, reservation.id, "attended"
        )
        assert counters(appointment_id, seed.anna_yoga) == (1, 9, "ACTIVE")

        with pytest.raises(InvalidStateError):
            booking.reservations.update_reservation_status(
                seed.employee, reservation.id, "CANCELLED"
            )
        assert counters(appointment_id, seed.anna_yoga) == (1, 9, "ACTIVE")

    def test_reapplying_status_is_a_no_op(self, booking, seed, make_appointment, counters):
        appointment_id = make_appointment()
        reservation = reserve(booking, seed.anna_principal, appointment_id, seed.anna_yoga)
        booking.reservations.update_reservation_status(seed.admin, reservation.id, "CANCELLED")

        result = booking.reservations.update_reservation_status(
            seed.admin, reservation.id, "CANCELLED"
        )

        assert result.status == "CANCELLED"
        assert counters(appointment_id, seed.anna_yoga) == (0, 10, "ACTIVE")

    def test_members_cannot_change_status(self, booking, seed, make_appointment):
        appointment_id = make_appointment()
        reservation = reserve(booking, seed.anna_principal, appointment_id, seed.anna_yoga)
        with pytest.raises(UnauthorizedError):
            booking.reservations.update_reservation_status(
                seed.anna_principal, reservation.id, "CANCELLED"
            )

    def test_employee_of_other_location(self, booking, seed, make_appointment):
        appointment_id = make_appointment()
        reservation = reserve(booking, seed.anna_principal, appointment_id, seed.anna_yoga)
        with pytest.raises(UnauthorizedError):
            booking.reservations.update_reservation_status(
                seed.uptown_employee, reservation.id, "NO_SHOW"
            )

    def test_waiting_list_rejected(self, booking, seed, make_appointment):
        appointment_id = make_appointment()
        reservation = reserve(booking, seed.anna_principal, appointment_id, seed.anna_yoga)
        with pytest.raises(ValidationError, match="Waiting list"):
            booking.reservations.update_reservation_status(
                seed.admin, reservation.id, "WAITING_LIST"
            )


@pytest.mark.integration
@pytest.mark.reservation
class TestDeleteReservation:
    def test_delete_confirmed_refunds(self, booking, seed, make_appointment, counters, fetch):
        appointment_id = make_appointment()
        reservation = reserve(booking, seed.anna_principal, appointment_id, seed.anna_yoga)

        booking.reservations.delete_reservation(seed.anna_principal, reservation.id)

        assert fetch(models.Reservation, reservation.id) is None
        assert counters(appointment_id, seed.anna_yoga) == (0, 10, "ACTIVE")

    def test_delete_after_cancel_does_not_refund_twice(
        self, booking, seed, make_appointment, counters
    ):
        appointment_id = make_appointment()
        reserve(booking, seed.ben_principal, appointment_id, seed.ben_yoga)
        reservation = reserve(booking, seed.anna_principal, appointment_id, seed.anna_yoga)
        # keep anna_yoga below its quantity so a second refund would show
        next_day = make_appointment(start=datetime(2030, 1, 17, 10))
        reserve(booking, seed.anna_principal, next_day, seed.anna_yoga)
        booking.reservations.update_reservation_status(seed.admin, reservation.id, "CANCELLED")
        assert counters(appointment_id, seed.anna_yoga) == (1, 9, "ACTIVE")

        booking.reservations.delete_reservation(seed.admin, reservation.id)

        assert counters(appointment_id, seed.anna_yoga) == (1, 9, "ACTIVE")

    def test_member_cannot_delete_others(self, booking, seed, make_appointment):
        appointment_id = make_appointment()
        reservation = reserve(booking, seed.ben_principal, appointment_id, seed.ben_yoga)
        with pytest.raises(UnauthorizedError):
            booking.reservations.delete_reservation(seed.anna_principal, reservation.id)


@pytest.mark.integration
@pytest.mark.reservation
class TestPurchaseSwap:
    def test_swap_moves_the_use(self, booking, seed, make_appointment, counters):
        appointment_id = make_appointment()
        reservation = reserve(booking, seed.anna_principal, appointment_id, seed.anna_yoga)

        result = booking.reservations.update_reservation(
            seed.anna_principal,
            reservation.id,
            ReservationUpdateRequest(purchase_id=seed.anna_yoga_spare, notes="switch"),
        )

        assert result.purchase_id == seed.anna_yoga_spare
        assert result.notes == "switch"
        assert counters(appointment_id, seed.anna_yoga) == (1, 10, "ACTIVE")
        assert counters(appointment_id, seed.anna_yoga_spare) == (1, 4, "ACTIVE")

    @pytest.mark.parametrize(
        "target, error",
        [
            ("anna_expired", ValidationError),
            ("anna_personal", ValidationError),
            ("ben_yoga", UnauthorizedError),
        ],
    )
    def test_swap_rejected(self, booking, seed, make_appointment, counters, target, error):
        appointment_id = make_appointment()
        reservation = reserve(booking, seed.anna_principal, appointment_id, seed.anna_yoga)

        with pytest.raises(error):
            booking.reservations.update_reservation(
                seed.admin,
                reservation.id,
                ReservationUpdateRequest(purchase_id=getattr(seed, target)),
            )
        assert counters(appointment_id, seed.anna_yoga) == (1, 9, "ACTIVE")

    def test_swap_on_cancelled_reservation(self, booking, seed, make_appointment):
        appointment_id = make_appointment()
        reservation = reserve(booking, seed.anna_principal, appointment_id, seed.anna_yoga)
        booking.reservations.update_reservation_status(seed.admin, reservation.id, "CANCELLED")

        with pytest.raises(InvalidStateError):
            booking.reservations.update_reservation(
                seed.admin,
                reservation.id,
                ReservationUpdateRequest(purchase_id=seed.anna_yoga_spare),
            )


@pytest.mark.integration
@pytest.mark.reservation
class TestReservationQueries:
    @pytest.fixture
    def booked(self, booking, seed, make_appointment):
        downtown_today = make_appointment(start=datetime(2030, 1, 15, 18))
        downtown_later = make_appointment(start=datetime(2030, 1, 20, 10))
        uptown = make_appointment(
            service_id=seed.personal,
            location_id=seed.uptown,
            member_id=seed.cara,
            start=datetime(2030, 1, 16, 10),
        )
        cara_personal = booking.purchases.create_purchase(
            seed.cara, seed.personal, 2, total_price=80
        )
        return {
            "anna_today": reserve(booking, seed.anna_principal, downtown_today, seed.anna_yoga).id,
            "ben_later": reserve(booking, seed.ben_principal, downtown_later, seed.ben_yoga).id,
            "cara": reserve(booking, seed.cara_principal, uptown, cara_personal.id).id,
            "downtown_today": downtown_today,
            "downtown_later": downtown_later,
        }

    def test_list_reservations_by_role(self, booking, seed, booked):
        assert ids(booking.reservations.list_reservations(seed.admin)) == sorted(
            [booked["anna_today"], booked["ben_later"], booked["cara"]]
        )
        assert ids(booking.reservations.list_reservations(seed.employee)) == sorted(
            [booked["anna_today"], booked["ben_later"]]
        )
        assert ids(booking.reservations.list_reservations(seed.anna_principal)) == [
            booked["anna_today"]
        ]

    def test_today_by_location(self, booking, seed, booked):
        result = booking.reservations.list_today_by_location(seed.employee, seed.downtown)
        assert [r.id for r in result] == [booked["anna_today"]]

        with pytest.raises(UnauthorizedError):
            booking.reservations.list_today_by_location(seed.anna_principal, seed.downtown)

    def test_date_range_is_scoped(self, booking, seed, booked):
        start, end = datetime(2030, 1, 15), datetime(2030, 1, 31)

        assert len(booking.reservations.list_by_date_range(seed.admin, start, end)) == 3
        assert [
            r.id for r in booking.reservations.list_by_date_range(seed.ben_principal, start, end)
        ] == [booked["ben_later"]]
        assert len(booking.reservations.list_by_date_range(seed.uptown_employee, start, end)) == 1

    def test_by_status_and_member(self, booking, seed, booked):
        booking.reservations.update_reservation_status(
            seed.employee, booked["ben_later"], "NO_SHOW"
        )

        no_shows = booking.reservations.list_by_status(seed.employee, "NO_SHOW")
        assert [r.id for r in no_shows] == [booked["ben_later"]]
        assert booking.reservations.list_by_status(seed.anna_principal, "NO_SHOW") == []
        with pytest.raises(ValidationError):
            booking.reservations.list_by_status(seed.admin, "LOST")

        with pytest.raises(UnauthorizedError):
            booking.reservations.list_by_member(seed.anna_principal, seed.ben)

    def test_by_appointment_and_capacity(self, booking, seed, booked):
        appointment_id = booked["downtown_today"]

        rows = booking.reservations.list_by_appointment(seed.employee, appointment_id)
        capacity = booking.reservations.get_appointment_capacity(appointment_id)

        assert [r.id for r in rows] == [booked["anna_today"]]
        assert (capacity.current_capacity, capacity.available_spaces) == (1, 9)
        assert booking.reservations.reservation_exists_for_appointment(appointment_id)
        assert {
            c.appointment_id
            for c in booking.reservations.list_location_capacity(seed.employee, seed.downtown)
        } == {appointment_id, booked["downtown_later"]}

    def test_get_reservation_access(self, booking, seed, booked):
        assert booking.reservations.get_reservation(seed.anna_principal, booked["anna_today"])
        with pytest.raises(UnauthorizedError):
            booking.reservations.get_reservation(seed.anna_principal, booked["cara"])


@pytest.mark.integration
@pytest.mark.purchase
def test_purchase_list_for_current_member(booking, seed):
    active = booking.purchases.list_current_member_active_purchases(seed.anna_principal)
    assert {p.id for p in active} == {
        seed.anna_yoga,
        seed.anna_yoga_spare,
        seed.anna_personal,
        seed.anna_expired,
    }
    assert booking.purchases.list_current_member_purchases(seed.no_profile_principal) == []
