"""
Reservation engine.

A CONFIRMED, ATTENDED or NO_SHOW reservation holds exactly one slot of its
appointment and one use of its purchase. Every operation here keeps the
three records in step inside a single transaction:

    create              capacity +1, purchase use -1, insert CONFIRMED
    CONFIRMED->CANCELLED capacity -1, purchase use +1
    delete (holding)    capacity -1, purchase use +1, hard delete
    purchase swap       old purchase +1, new purchase -1

Appointment and purchase rows are locked before they are read, and every
counter move is a guarded UPDATE, so a lost race surfaces as a domain error
and rolls the whole unit back.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fitcenter.core import config
from fitcenter.core.access_policy import (
    ReservationScope,
    require_access,
    require_location,
    require_role,
)
from fitcenter.core.exceptions import (
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from fitcenter.core.security import Principal
from fitcenter.db.session import transactional
from fitcenter.domain.entities import (
    Appointment,
    AppointmentStatus,
    Purchase,
    PurchaseStatus,
    Reservation,
    ReservationStatus,
    Role,
)
from fitcenter.domain.interfaces import (
    IAppointmentRepository,
    IMemberReader,
    IPurchaseRepository,
    IReservationRepository,
)
from fitcenter.schemas.dtos import (
    AppointmentCapacityResponse,
    ReservationCreateRequest,
    ReservationResponse,
    ReservationUpdateRequest,
    parse_reservation_status,
)
from fitcenter.services.purchase_service import PurchaseService

logger = logging.getLogger(__name__)

STAFF_ROLES = (Role.ADMIN, Role.EMPLOYEE)


class ReservationService:
    """Application service for reservation use-cases."""

    def __init__(
        self,
        session: Session,
        reservation_repo: IReservationRepository,
        appointment_repo: IAppointmentRepository,
        member_repo: IMemberReader,
        purchase_repo: IPurchaseRepository,
        purchase_service: PurchaseService,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.session = session
        self.reservation_repo = reservation_repo
        self.appointment_repo = appointment_repo
        self.member_repo = member_repo
        self.purchase_repo = purchase_repo
        self.purchase_service = purchase_service
        self.clock = clock or config.now_local

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_reservation(
        self, principal: Principal, request: ReservationCreateRequest
    ) -> ReservationResponse:
        """Book one slot of an appointment for the calling member.

        Raises:
            NotFoundError: appointment, member profile or purchase missing
            UnauthorizedError: the purchase belongs to someone else
            ValidationError: full, duplicate, unusable purchase, cancelled appointment
        """
        request.validate()

        with transactional(self.session):
            appointment = self._get_appointment_or_404(
                request.appointment_id, for_update=True
            )
            member = self._member_of(principal)
            if member is None:
                raise NotFoundError(
                    "No member profile for the current user",
                    context={"user_id": principal.user_id},
                )
            purchase = self._get_purchase_or_404(request.purchase_id)

            if purchase.member_id != member.id:
                raise UnauthorizedError(
                    "Purchase does not belong to the current member",
                    context={"purchase_id": purchase.id, "member_id": member.id},
                )

            if appointment.is_full:
                raise ValidationError(
                    "Appointment is fully booked",
                    context={"appointment_id": appointment.id},
                )
            if self.reservation_repo.exists_active(member.id, appointment.id):
                raise ValidationError(
                    "You already have a reservation for this appointment",
                    context={"appointment_id": appointment.id, "member_id": member.id},
                )
            self._check_purchase_usable(purchase, appointment)
            if appointment.status == AppointmentStatus.CANCELLED:
                raise ValidationError(
                    "Appointment has been cancelled",
                    context={"appointment_id": appointment.id},
                )

            if not self.appointment_repo.increment_capacity(appointment.id):
                raise ValidationError(
                    "Appointment is fully booked",
                    context={"appointment_id": appointment.id},
                )
            if not self.purchase_repo.decrement_remaining_uses(purchase.id):
                raise ValidationError(
                    "Purchase has no remaining sessions",
                    context={"purchase_id": purchase.id},
                )
            try:
                created = self.reservation_repo.create(
                    Reservation(
                        member_id=member.id,
                        appointment_id=appointment.id,
                        purchase_id=purchase.id,
                        status=ReservationStatus.CONFIRMED,
                        notes=request.notes,
                    )
                )
            except IntegrityError as e:
                raise ValidationError(
                    "You already have a reservation for this appointment",
                    context={"appointment_id": appointment.id, "member_id": member.id},
                ) from e

        logger.info(
            "Reservation created",
            extra={
                "context": {
                    "reservation_id": created.id,
                    "appointment_id": created.appointment_id,
                    "member_id": created.member_id,
                    "purchase_id": created.purchase_id,
                }
            },
        )
        return ReservationResponse.from_domain(created)

    def update_reservation_status(
        self, principal: Principal, reservation_id: int, status
    ) -> ReservationResponse:
        """Staff-only status change.

        CONFIRMED may move to CANCELLED (releasing slot and use), ATTENDED
        or NO_SHOW. Other statuses are final; re-applying the current status
        changes nothing.
        """
        require_role(principal, STAFF_ROLES, "change reservation status")
        new_status = parse_reservation_status(status)

        with transactional(self.session):
            reservation = self._get_or_404(reservation_id, for_update=True)
            appointment = self._get_appointment_or_404(
                reservation.appointment_id, for_update=True
            )
            require_access(
                principal,
                ReservationScope(reservation, appointment.location_id),
                "update",
            )

            if reservation.status == new_status:
                return ReservationResponse.from_domain(reservation)
            if reservation.status != ReservationStatus.CONFIRMED:
                raise InvalidStateError(
                    f"Cannot change a {reservation.status.value} reservation "
                    f"to {new_status.value}",
                    context={
                        "reservation_id": reservation_id,
                        "status": reservation.status.value,
                    },
                )

            if new_status == ReservationStatus.CANCELLED:
                self._release(reservation, "reservation cancelled")
            previous = reservation.status
            reservation.status = new_status
            updated = self.reservation_repo.update(reservation)

        logger.info(
            "Reservation status changed",
            extra={
                "context": {
                    "reservation_id": reservation_id,
                    "from": previous.value,
                    "to": new_status.value,
                    "user_id": principal.user_id,
                }
            },
        )
        return ReservationResponse.from_domain(updated)

    def update_reservation(
        self,
        principal: Principal,
        reservation_id: int,
        request: ReservationUpdateRequest,
    ) -> ReservationResponse:
        """Change notes, or move a CONFIRMED reservation onto another purchase."""
        request.validate()

        with transactional(self.session):
            reservation = self._get_or_404(reservation_id, for_update=True)
            appointment = self._get_appointment_or_404(
                reservation.appointment_id, for_update=True
            )
            require_access(
                principal,
                ReservationScope(reservation, appointment.location_id),
                "modify",
            )

            old_purchase_id = reservation.purchase_id
            if request.purchase_id is not None and request.purchase_id != old_purchase_id:
                self._swap_purchase(reservation, appointment, request.purchase_id)
            if request.notes is not None:
                reservation.notes = request.notes
            updated = self.reservation_repo.update(reservation)

        logger.info(
            "Reservation updated",
            extra={
                "context": {
                    "reservation_id": reservation_id,
                    "old_purchase_id": old_purchase_id,
                    "purchase_id": updated.purchase_id,
                    "user_id": principal.user_id,
                }
            },
        )
        return ReservationResponse.from_domain(updated)

    def delete_reservation(self, principal: Principal, reservation_id: int) -> None:
        """Hard-delete, first releasing slot and use if the reservation holds them."""
        with transactional(self.session):
            reservation = self._get_or_404(reservation_id, for_update=True)
            appointment = self._get_appointment_or_404(
                reservation.appointment_id, for_update=True
            )
            require_access(
                principal,
                ReservationScope(reservation, appointment.location_id),
                "delete",
            )
            released = reservation.holds_counters
            if released:
                self._release(reservation, "reservation deleted")
            self.reservation_repo.delete(reservation_id)

        logger.info(
            "Reservation deleted",
            extra={
                "context": {
                    "reservation_id": reservation_id,
                    "released_counters": released,
                    "user_id": principal.user_id,
                }
            },
        )

    # ------------------------------------------------------------------
    # Capacity
    # ------------------------------------------------------------------

    def get_appointment_capacity(self, appointment_id: int) -> AppointmentCapacityResponse:
        return AppointmentCapacityResponse.from_domain(
            self._get_appointment_or_404(appointment_id)
        )

    def list_location_capacity(
        self, principal: Principal, location_id: int
    ) -> List[AppointmentCapacityResponse]:
        require_role(principal, STAFF_ROLES, "view location capacity")
        require_location(principal, location_id, "view capacity of")
        return [
            AppointmentCapacityResponse.from_domain(a)
            for a in self.appointment_repo.list_by_location(location_id)
        ]

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_reservation(
        self, principal: Principal, reservation_id: int
    ) -> ReservationResponse:
        reservation = self._get_or_404(reservation_id)
        appointment = self._get_appointment_or_404(reservation.appointment_id)
        require_access(
            principal, ReservationScope(reservation, appointment.location_id), "view"
        )
        return ReservationResponse.from_domain(reservation)

    def list_reservations(self, principal: Principal) -> List[ReservationResponse]:
        """All reservations the caller may see."""
        if principal.role == Role.ADMIN:
            return self._responses(self.reservation_repo.list_all())
        if principal.role == Role.EMPLOYEE:
            return self._responses(
                self.reservation_repo.list_by_location(principal.location_id)
            )
        return self.list_current_member_reservations(principal)

    def list_by_member(
        self, principal: Principal, member_id: int
    ) -> List[ReservationResponse]:
        member = self.member_repo.get_by_id(member_id)
        if not member:
            raise NotFoundError(
                f"Member {member_id} not found", context={"member_id": member_id}
            )
        require_access(principal, member, "view reservations of")
        return self._responses(self.reservation_repo.list_by_member(member_id))

    def list_by_appointment(
        self, principal: Principal, appointment_id: int
    ) -> List[ReservationResponse]:
        require_role(principal, STAFF_ROLES, "view appointment reservations")
        appointment = self._get_appointment_or_404(appointment_id)
        require_location(principal, appointment.location_id, "view reservations of")
        return self._responses(self.reservation_repo.list_by_appointment(appointment_id))

    def list_by_status(self, principal: Principal, status) -> List[ReservationResponse]:
        status = self._status_filter(status)
        if principal.role == Role.ADMIN:
            return self._responses(self.reservation_repo.list_by_status(status))
        if principal.role == Role.EMPLOYEE:
            return self._responses(
                self.reservation_repo.list_by_location(principal.location_id, status)
            )
        member = self._member_of(principal)
        if member is None:
            return []
        return self._responses(self.reservation_repo.list_by_member(member.id, status))

    def list_by_date_range(
        self, principal: Principal, start_date: datetime, end_date: datetime
    ) -> List[ReservationResponse]:
        """Reservations whose appointment starts in the range, scoped to the caller."""
        if end_date < start_date:
            raise ValidationError("End date must not precede start date")
        location_id = None
        member_id = None
        if principal.role == Role.EMPLOYEE:
            location_id = principal.location_id
        elif principal.role == Role.MEMBER:
            member = self._member_of(principal)
            if member is None:
                return []
            member_id = member.id
        return self._responses(
            self.reservation_repo.list_by_appointment_start(
                start_date, end_date, location_id=location_id, member_id=member_id
            )
        )

    def list_by_location(
        self, principal: Principal, location_id: int, status=None
    ) -> List[ReservationResponse]:
        require_role(principal, STAFF_ROLES, "view location reservations")
        require_location(principal, location_id, "view reservations of")
        if status is not None:
            status = self._status_filter(status)
        return self._responses(
            self.reservation_repo.list_by_location(location_id, status)
        )

    def list_today_by_location(
        self, principal: Principal, location_id: int
    ) -> List[ReservationResponse]:
        require_role(principal, STAFF_ROLES, "view location reservations")
        require_location(principal, location_id, "view reservations of")
        start = datetime.combine(self.clock().date(), time.min)
        end = start + timedelta(days=1) - timedelta(microseconds=1)
        return self._responses(
            self.reservation_repo.list_by_appointment_start(
                start, end, location_id=location_id
            )
        )

    def list_current_member_reservations(
        self, principal: Principal
    ) -> List[ReservationResponse]:
        member = self._member_of(principal)
        if member is None:
            return []
        return self._responses(self.reservation_repo.list_by_member(member.id))

    def reservation_exists_for_appointment(self, appointment_id: int) -> bool:
        return self.reservation_repo.exists_for_appointment(appointment_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _check_purchase_usable(self, purchase: Purchase, appointment: Appointment) -> None:
        today: date = self.clock().date()
        context = {"purchase_id": purchase.id, "appointment_id": appointment.id}
        if purchase.status != PurchaseStatus.ACTIVE:
            raise ValidationError(
                f"Purchase is not active ({purchase.status.value})", context=context
            )
        if purchase.remaining_uses <= 0:
            raise ValidationError("Purchase has no remaining sessions", context=context)
        if purchase.is_expired(today):
            raise ValidationError("Purchase has expired", context=context)
        if purchase.service_id != appointment.service_id:
            raise ValidationError(
                "Purchase is not valid for this appointment's service", context=context
            )

    def _swap_purchase(
        self, reservation: Reservation, appointment: Appointment, new_purchase_id: int
    ) -> None:
        if reservation.status != ReservationStatus.CONFIRMED:
            raise InvalidStateError(
                f"Cannot change the purchase of a {reservation.status.value} reservation",
                context={"reservation_id": reservation.id},
            )
        new_purchase = self._get_purchase_or_404(new_purchase_id)
        if new_purchase.member_id != reservation.member_id:
            raise UnauthorizedError(
                "Purchase does not belong to the reservation's member",
                context={
                    "purchase_id": new_purchase_id,
                    "member_id": reservation.member_id,
                },
            )
        self._check_purchase_usable(new_purchase, appointment)

        if not self.purchase_repo.decrement_remaining_uses(new_purchase_id):
            raise ValidationError(
                "Purchase has no remaining sessions",
                context={"purchase_id": new_purchase_id},
            )
        self.purchase_service.give_back_use(
            reservation.purchase_id, reason="reservation moved to another purchase"
        )
        reservation.purchase_id = new_purchase_id

    def _release(self, reservation: Reservation, reason: str) -> None:
        """Give back the slot and the purchase use a reservation holds."""
        if not self.appointment_repo.decrement_capacity(reservation.appointment_id):
            logger.error(
                "Capacity release refused: appointment has no occupied slots",
                extra={
                    "context": {
                        "reservation_id": reservation.id,
                        "appointment_id": reservation.appointment_id,
                        "reason": reason,
                    }
                },
            )
        self.purchase_service.give_back_use(reservation.purchase_id, reason=reason)

    @staticmethod
    def _status_filter(status) -> ReservationStatus:
        try:
            return ReservationStatus(str(getattr(status, "value", status)).upper())
        except ValueError as e:
            raise ValidationError(
                f"Invalid reservation status: {status}", context={"status": str(status)}
            ) from e

    def _member_of(self, principal: Principal):
        # member_id is fixed when the principal is resolved
        if principal.member_id is None:
            return None
        return self.member_repo.get_by_id(principal.member_id)

    def _get_or_404(self, reservation_id: int, for_update: bool = False) -> Reservation:
        reservation = self.reservation_repo.get_by_id(
            reservation_id, for_update=for_update
        )
        if not reservation:
            raise NotFoundError(
                f"Reservation {reservation_id} not found",
                context={"reservation_id": reservation_id},
            )
        return reservation

    def _get_appointment_or_404(
        self, appointment_id: int, for_update: bool = False
    ) -> Appointment:
        appointment = self.appointment_repo.get_by_id(
            appointment_id, for_update=for_update
        )
        if not appointment:
            raise NotFoundError(
                f"Appointment {appointment_id} not found",
                context={"appointment_id": appointment_id},
            )
        return appointment

    def _get_purchase_or_404(self, purchase_id: int) -> Purchase:
        purchase = self.purchase_repo.get_by_id(purchase_id, for_update=True)
        if not purchase:
            raise NotFoundError(
                f"Purchase {purchase_id} not found",
                context={"purchase_id": purchase_id},
            )
        return purchase

    @staticmethod
    def _responses(reservations) -> List[ReservationResponse]:
        return [ReservationResponse.from_domain(r) for r in reservations]
