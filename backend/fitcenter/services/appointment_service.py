"""
Appointment service following SOLID principles.

Owns the appointment registry: creation with the full booking validation
chain, schedule changes, lifecycle transitions and availability queries.
Capacity counters are never changed here; only reservations move them.
"""

import logging
from datetime import date, datetime, time, timedelta
from time import perf_counter
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from fitcenter.core import config
from fitcenter.core.access_policy import require_access, require_location
from fitcenter.core.config import BookingPolicy
from fitcenter.core.exceptions import (
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from fitcenter.core.logging_config import log_performance
from fitcenter.core.security import Principal
from fitcenter.db.session import transactional
from fitcenter.domain.entities import Appointment as DomainAppointment
from fitcenter.domain.entities import (
    AppointmentStatus,
    MembershipStatus,
    PurchaseStatus,
    Role,
    Service,
)
from fitcenter.domain.interfaces import (
    IAppointmentRepository,
    ICatalogReader,
    IMemberReader,
    IPurchaseReader,
)
from fitcenter.schemas.dtos import (
    AppointmentCreateRequest,
    AppointmentResponse,
    AppointmentUpdateRequest,
    LocationCapacityStatus,
)

logger = logging.getLogger(__name__)


class AppointmentService:
    """Application service for appointment-related use-cases.

    This service demonstrates:
    - Single Responsibility: Handles only appointment business logic
    - Dependency Inversion: Depends on interfaces, not concrete implementations
    """

    def __init__(
        self,
        session: Session,
        appointment_repo: IAppointmentRepository,
        member_repo: IMemberReader,
        catalog_repo: ICatalogReader,
        purchase_repo: IPurchaseReader,
        policy: Optional[BookingPolicy] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.session = session
        self.appointment_repo = appointment_repo
        self.member_repo = member_repo
        self.catalog_repo = catalog_repo
        self.purchase_repo = purchase_repo
        self.policy = policy or config.BOOKING_POLICY
        self.clock = clock or config.now_local

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_appointment(
        self, principal: Principal, request: AppointmentCreateRequest
    ) -> AppointmentResponse:
        """Create a new appointment with business rule validation.

        Business Rules (first failure wins):
        - Location follows the caller's role; admins must name one
        - Start time is in the future
        - Employees book at their location, members only for themselves
        - Service, member and location exist; service offered there
        - Member has an ACTIVE membership at the same location
        - Start hour within opening hours and far enough ahead
        - Member is free around the slot; group classes need a free room
        """
        request.validate()
        with transactional(self.session):
            created = self._create_validated(principal, request, self.clock())

        logger.info(
            "Appointment created",
            extra={
                "context": {
                    "appointment_id": created.id,
                    "service_id": created.service_id,
                    "member_id": created.member_id,
                    "location_id": created.location_id,
                    "start_time": created.start_time,
                    "created_by": principal.user_id,
                }
            },
        )
        return AppointmentResponse.from_domain(created)

    def _create_validated(
        self, principal: Principal, request: AppointmentCreateRequest, now: datetime
    ) -> DomainAppointment:
        location_id = self._resolve_location(principal, request)

        if request.start_time <= now:
            raise ValidationError(
                "Appointment must be scheduled in the future",
                context={"start_time": request.start_time},
            )

        if principal.role == Role.EMPLOYEE and location_id != principal.location_id:
            raise UnauthorizedError(
                "Employees can only create appointments at their own location"
            )
        if principal.role == Role.MEMBER and request.member_id != principal.member_id:
            raise UnauthorizedError("Members can only book appointments for themselves")

        service = self._get_service_or_404(request.service_id)
        member = self.member_repo.get_by_id(request.member_id)
        if not member:
            raise NotFoundError(
                f"Member {request.member_id} not found",
                context={"member_id": request.member_id},
            )
        if not self.catalog_repo.get_location(location_id):
            raise NotFoundError(
                f"Location {location_id} not found",
                context={"location_id": location_id},
            )
        if not service.is_offered_at(location_id):
            raise ValidationError(
                "Service is not offered at this location",
                context={"service_id": service.id, "location_id": location_id},
            )

        if member.membership_status != MembershipStatus.ACTIVE:
            raise ValidationError(
                "Member does not have an active membership",
                context={
                    "member_id": member.id,
                    "membership_status": member.membership_status.value,
                },
            )
        if member.location_id != location_id:
            raise ValidationError(
                "Member does not belong to this location",
                context={"member_id": member.id, "location_id": location_id},
            )

        self._check_opening_hours(request.start_time)

        earliest = now + timedelta(minutes=self.policy.lead_time_minutes)
        if request.start_time < earliest:
            raise ValidationError(
                f"Appointments must be booked at least "
                f"{self.policy.lead_time_minutes} minutes in advance",
                context={"start_time": request.start_time, "earliest": earliest},
            )

        end_time = request.start_time + timedelta(minutes=service.duration_minutes)
        self._check_member_free(member.id, request.start_time, end_time)
        self._check_room_free(service, location_id, request.start_time, end_time)

        appointment = DomainAppointment(
            service_id=service.id,
            member_id=member.id,
            location_id=location_id,
            created_by=principal.user_id,
            start_time=request.start_time,
            end_time=end_time,
            max_capacity=service.max_capacity,
            current_capacity=0,
            status=AppointmentStatus.SCHEDULED,
            notes=request.notes,
        )
        return self.appointment_repo.create(appointment)

    def update_appointment(
        self,
        principal: Principal,
        appointment_id: int,
        request: AppointmentUpdateRequest,
    ) -> AppointmentResponse:
        """Change service, start time or notes of an existing appointment."""
        request.validate()

        with transactional(self.session):
            appointment = self._get_or_404(appointment_id, for_update=True)
            require_access(principal, appointment, "modify")
            if appointment.status in (
                AppointmentStatus.CANCELLED,
                AppointmentStatus.COMPLETED,
            ):
                raise InvalidStateError(
                    f"Cannot modify a {appointment.status.value.lower()} appointment",
                    context={"appointment_id": appointment_id},
                )

            service = self._get_service_or_404(
                request.service_id or appointment.service_id
            )
            if service.id != appointment.service_id:
                if not service.is_offered_at(appointment.location_id):
                    raise ValidationError(
                        "Service is not offered at this location",
                        context={
                            "service_id": service.id,
                            "location_id": appointment.location_id,
                        },
                    )
                if service.max_capacity < appointment.current_capacity:
                    raise ValidationError(
                        "New service capacity is below the current number of reservations",
                        context={
                            "max_capacity": service.max_capacity,
                            "current_capacity": appointment.current_capacity,
                        },
                    )
                appointment.service_id = service.id
                appointment.max_capacity = service.max_capacity

            if request.start_time is not None:
                if request.start_time <= self.clock():
                    raise ValidationError(
                        "Appointment must be scheduled in the future",
                        context={"start_time": request.start_time},
                    )
                self._check_opening_hours(request.start_time)
                appointment.start_time = request.start_time
            appointment.end_time = appointment.start_time + timedelta(
                minutes=service.duration_minutes
            )
            if request.notes is not None:
                appointment.notes = request.notes

            updated = self.appointment_repo.update(appointment)

        logger.info(
            "Appointment updated",
            extra={
                "context": {
                    "appointment_id": updated.id,
                    "service_id": updated.service_id,
                    "start_time": updated.start_time,
                    "user_id": principal.user_id,
                }
            },
        )
        return AppointmentResponse.from_domain(updated)

    def delete_appointment(self, principal: Principal, appointment_id: int) -> None:
        """Hard-delete an appointment nobody holds a slot in."""
        with transactional(self.session):
            appointment = self._get_or_404(appointment_id, for_update=True)
            require_access(principal, appointment, "delete")
            if appointment.current_capacity > 0:
                raise InvalidStateError(
                    "Cannot delete an appointment that has reservations",
                    context={
                        "appointment_id": appointment_id,
                        "current_capacity": appointment.current_capacity,
                    },
                )
            self.appointment_repo.delete(appointment_id)

        logger.info(
            "Appointment deleted",
            extra={
                "context": {
                    "appointment_id": appointment_id,
                    "user_id": principal.user_id,
                }
            },
        )

    def cancel_appointment(
        self, principal: Principal, appointment_id: int, reason: Optional[str] = None
    ) -> AppointmentResponse:
        """Cancel an appointment; the reason is appended to its notes.

        Existing reservations are left as they are.
        """
        with transactional(self.session):
            appointment = self._get_or_404(appointment_id, for_update=True)
            require_access(principal, appointment, "cancel")
            if appointment.status == AppointmentStatus.CANCELLED:
                raise InvalidStateError(
                    "Appointment is already cancelled",
                    context={"appointment_id": appointment_id},
                )

            deadline = self.clock() + timedelta(
                minutes=self.policy.cancellation_notice_minutes
            )
            if appointment.start_time < deadline:
                raise ValidationError(
                    f"Appointments can only be cancelled at least "
                    f"{self.policy.cancellation_notice_minutes} minutes before start",
                    context={"appointment_id": appointment_id},
                )

            appointment.status = AppointmentStatus.CANCELLED
            line = f"Cancelled: {reason or 'no reason given'}"
            appointment.notes = f"{appointment.notes}\n{line}" if appointment.notes else line
            updated = self.appointment_repo.update(appointment)

        logger.info(
            "Appointment cancelled",
            extra={
                "context": {
                    "appointment_id": appointment_id,
                    "reason": reason,
                    "user_id": principal.user_id,
                }
            },
        )
        return AppointmentResponse.from_domain(updated)

    def confirm_appointment(
        self, principal: Principal, appointment_id: int
    ) -> AppointmentResponse:
        return self._transition(
            principal,
            appointment_id,
            allowed_from=(AppointmentStatus.SCHEDULED,),
            target=AppointmentStatus.CONFIRMED,
        )

    def complete_appointment(
        self, principal: Principal, appointment_id: int
    ) -> AppointmentResponse:
        return self._transition(
            principal,
            appointment_id,
            allowed_from=(AppointmentStatus.CONFIRMED, AppointmentStatus.IN_PROGRESS),
            target=AppointmentStatus.COMPLETED,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_appointment(self, appointment_id: int) -> AppointmentResponse:
        return AppointmentResponse.from_domain(self._get_or_404(appointment_id))

    def list_available(self) -> List[AppointmentResponse]:
        """Future, scheduled appointments with at least one free slot."""
        return self._responses(self._available())

    def list_available_for_member(
        self, principal: Principal
    ) -> List[AppointmentResponse]:
        """Available appointments the member holds a usable purchase for."""
        member = self._member_of(principal)
        if member is None:
            return []

        today = self.clock().date()
        service_ids = {
            p.service_id
            for p in self.purchase_repo.list_by_member_and_status(
                member.id, PurchaseStatus.ACTIVE
            )
            if p.remaining_uses > 0 and not p.is_expired(today)
        }
        return self._responses(
            a for a in self._available() if a.service_id in service_ids
        )

    def list_upcoming(
        self, from_date: Optional[datetime] = None
    ) -> List[AppointmentResponse]:
        after = from_date or self.clock()
        return self._responses(
            self.appointment_repo.list_starting_after(after, AppointmentStatus.SCHEDULED)
        )

    def list_by_service(self, service_id: int) -> List[AppointmentResponse]:
        return self._responses(self.appointment_repo.list_by_service(service_id))

    def list_by_date_range(
        self, start_date: datetime, end_date: datetime
    ) -> List[AppointmentResponse]:
        """Get appointments within a date range."""
        if end_date < start_date:
            raise ValidationError("End date must not precede start date")
        return self._responses(
            self.appointment_repo.list_by_date_range(start_date, end_date)
        )

    def list_by_location(
        self, principal: Principal, location_id: int
    ) -> List[AppointmentResponse]:
        require_location(principal, location_id, "view appointments of")
        return self._responses(self.appointment_repo.list_by_location(location_id))

    def list_today_by_location(
        self, principal: Principal, location_id: int
    ) -> List[AppointmentResponse]:
        require_location(principal, location_id, "view appointments of")
        start, end = self._day_bounds(self.clock().date())
        return self._responses(
            self.appointment_repo.list_by_location(location_id, start, end)
        )

    def list_current_member_appointments(
        self, principal: Principal
    ) -> List[AppointmentResponse]:
        member = self._member_of(principal)
        if member is None:
            return []
        return self._responses(self.appointment_repo.list_by_member(member.id))

    def get_location_capacity_status(
        self, principal: Principal, location_id: int, day: Optional[date] = None
    ) -> LocationCapacityStatus:
        """Count appointments starting in each opening hour of the day."""
        require_location(principal, location_id, "view capacity of")
        location = self.catalog_repo.get_location(location_id)
        if not location:
            raise NotFoundError(
                f"Location {location_id} not found",
                context={"location_id": location_id},
            )

        day = day or self.clock().date()
        started = perf_counter()
        start, end = self._day_bounds(day)
        appointments = self.appointment_repo.list_by_location(location_id, start, end)

        hours = range(self.policy.opening_hour, self.policy.last_start_hour + 1)
        hourly_counts = {
            hour: sum(1 for a in appointments if a.start_time.hour == hour)
            for hour in hours
        }
        average = sum(hourly_counts.values()) / len(hourly_counts) if hourly_counts else 0.0
        log_performance(
            "get_location_capacity_status",
            (perf_counter() - started) * 1000,
            location_id=location_id,
            record_count=len(appointments),
        )
        return LocationCapacityStatus(
            location_id=location.id,
            location_name=location.name,
            day=day,
            hourly_counts=hourly_counts,
            total_appointments=len(appointments),
            average_per_hour=round(average, 2),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _resolve_location(
        self, principal: Principal, request: AppointmentCreateRequest
    ) -> int:
        if principal.role == Role.EMPLOYEE:
            if principal.location_id is None:
                raise UnauthorizedError("Employee is not assigned to a location")
            return principal.location_id
        if principal.role == Role.ADMIN:
            if request.location_id is None:
                raise ValidationError("Administrators must specify a location")
            return request.location_id

        member = self._member_of(principal)
        if member is None:
            raise UnauthorizedError("No member profile for the current user")
        return member.location_id

    def _check_opening_hours(self, start_time: datetime) -> None:
        hour = start_time.hour
        if hour < self.policy.opening_hour or hour > self.policy.last_start_hour:
            raise ValidationError(
                f"Appointments can only start between "
                f"{self.policy.opening_hour:02d}:00 and "
                f"{self.policy.last_start_hour:02d}:59",
                context={"start_time": start_time},
            )

    def _check_member_free(self, member_id: int, start: datetime, end: datetime) -> None:
        buffer = timedelta(minutes=self.policy.member_buffer_minutes)
        if self.appointment_repo.member_has_overlap(member_id, start - buffer, end + buffer):
            raise ValidationError(
                f"Member already has an appointment within "
                f"{self.policy.member_buffer_minutes} minutes of this time",
                context={"member_id": member_id, "start_time": start},
            )

    def _check_room_free(
        self, service: Service, location_id: int, start: datetime, end: datetime
    ) -> None:
        if not service.is_group_service:
            return
        if self.appointment_repo.count_location_overlaps(location_id, start, end) > 0:
            raise ValidationError(
                "Another appointment is already scheduled at this location and time",
                context={"location_id": location_id, "start_time": start},
            )

    def _transition(
        self,
        principal: Principal,
        appointment_id: int,
        allowed_from,
        target: AppointmentStatus,
    ) -> AppointmentResponse:
        with transactional(self.session):
            appointment = self._get_or_404(appointment_id, for_update=True)
            require_location(principal, appointment.location_id, "manage appointments of")
            if appointment.status not in allowed_from:
                raise InvalidStateError(
                    f"Cannot move appointment from {appointment.status.value} "
                    f"to {target.value}",
                    context={
                        "appointment_id": appointment_id,
                        "status": appointment.status.value,
                    },
                )
            previous = appointment.status
            appointment.status = target
            updated = self.appointment_repo.update(appointment)

        logger.info(
            "Appointment status changed",
            extra={
                "context": {
                    "appointment_id": appointment_id,
                    "from": previous.value,
                    "to": target.value,
                    "user_id": principal.user_id,
                }
            },
        )
        return AppointmentResponse.from_domain(updated)

    def _available(self) -> List[DomainAppointment]:
        appointments = self.appointment_repo.list_starting_after(
            self.clock(), AppointmentStatus.SCHEDULED
        )
        return [a for a in appointments if not a.is_full]

    def _member_of(self, principal: Principal):
        # member_id is fixed when the principal is resolved
        if principal.member_id is None:
            return None
        return self.member_repo.get_by_id(principal.member_id)

    def _get_service_or_404(self, service_id: int) -> Service:
        service = self.catalog_repo.get_service(service_id)
        if not service:
            raise NotFoundError(
                f"Service {service_id} not found", context={"service_id": service_id}
            )
        return service

    def _get_or_404(
        self, appointment_id: int, for_update: bool = False
    ) -> DomainAppointment:
        appointment = self.appointment_repo.get_by_id(
            appointment_id, for_update=for_update
        )
        if not appointment:
            raise NotFoundError(
                f"Appointment {appointment_id} not found",
                context={"appointment_id": appointment_id},
            )
        return appointment

    @staticmethod
    def _day_bounds(day: date):
        start = datetime.combine(day, time.min)
        return start, start + timedelta(days=1)

    @staticmethod
    def _responses(appointments) -> List[AppointmentResponse]:
        return [AppointmentResponse.from_domain(a) for a in appointments]
