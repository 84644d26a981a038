"""
Appointment repository implementation following SOLID principles.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import func

from fitcenter.db.base import Appointment as DbAppointment
from fitcenter.domain.entities import Appointment as DomainAppointment
from fitcenter.domain.entities import AppointmentStatus
from fitcenter.domain.interfaces import IAppointmentRepository

_CANCELLED = AppointmentStatus.CANCELLED.value


class AppointmentRepository(IAppointmentRepository):
    """Repository for Appointment persistence operations.

    Capacity is only changed through increment_capacity/decrement_capacity;
    update() writes everything else.
    """

    def __init__(self, db_session) -> None:
        self.db = db_session

    def get_by_id(
        self, appointment_id: int, for_update: bool = False
    ) -> Optional[DomainAppointment]:
        """Get appointment by ID."""
        query = self.db.query(DbAppointment).filter(DbAppointment.id == appointment_id)
        if for_update:
            query = query.with_for_update()
        db_appointment = query.populate_existing().first()
        return self._to_domain(db_appointment) if db_appointment else None

    def list_all(self) -> List[DomainAppointment]:
        return self._list(self.db.query(DbAppointment))

    def list_by_member(self, member_id: int) -> List[DomainAppointment]:
        return self._list(
            self.db.query(DbAppointment).filter(DbAppointment.member_id == member_id)
        )

    def list_by_service(self, service_id: int) -> List[DomainAppointment]:
        return self._list(
            self.db.query(DbAppointment).filter(DbAppointment.service_id == service_id)
        )

    def list_by_location(
        self,
        location_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[DomainAppointment]:
        query = self.db.query(DbAppointment).filter(
            DbAppointment.location_id == location_id
        )
        if start is not None:
            query = query.filter(DbAppointment.start_time >= start)
        if end is not None:
            query = query.filter(DbAppointment.start_time < end)
        return self._list(query)

    def list_by_date_range(
        self, start: datetime, end: datetime
    ) -> List[DomainAppointment]:
        """Get appointments starting in [start, end]."""
        return self._list(
            self.db.query(DbAppointment).filter(
                DbAppointment.start_time >= start, DbAppointment.start_time <= end
            )
        )

    def list_starting_after(
        self, after: datetime, status: AppointmentStatus
    ) -> List[DomainAppointment]:
        return self._list(
            self.db.query(DbAppointment).filter(
                DbAppointment.start_time > after,
                DbAppointment.status == AppointmentStatus(status).value,
            )
        )

    def member_has_overlap(
        self,
        member_id: int,
        start: datetime,
        end: datetime,
        exclude_id: Optional[int] = None,
    ) -> bool:
        query = self._overlapping(start, end, exclude_id).filter(
            DbAppointment.member_id == member_id
        )
        return query.first() is not None

    def count_location_overlaps(
        self,
        location_id: int,
        start: datetime,
        end: datetime,
        exclude_id: Optional[int] = None,
    ) -> int:
        query = self._overlapping(start, end, exclude_id).filter(
            DbAppointment.location_id == location_id
        )
        return query.with_entities(func.count(DbAppointment.id)).scalar() or 0

    def create(self, appointment: DomainAppointment) -> DomainAppointment:
        """Create a new appointment."""
        db_appointment = DbAppointment(
            service_id=appointment.service_id,
            member_id=appointment.member_id,
            location_id=appointment.location_id,
            created_by=appointment.created_by,
            start_time=appointment.start_time,
            end_time=appointment.end_time,
            max_capacity=appointment.max_capacity,
            current_capacity=appointment.current_capacity,
            status=appointment.status.value,
            notes=appointment.notes,
        )
        self.db.add(db_appointment)
        self.db.flush()
        self.db.refresh(db_appointment)
        return self._to_domain(db_appointment)

    def update(self, appointment: DomainAppointment) -> DomainAppointment:
        """Update an existing appointment."""
        if not appointment.id:
            raise ValueError("Appointment ID is required for update")

        db_appointment = (
            self.db.query(DbAppointment).filter_by(id=appointment.id).first()
        )
        if not db_appointment:
            raise ValueError(f"Appointment with ID {appointment.id} not found")

        db_appointment.service_id = appointment.service_id
        db_appointment.start_time = appointment.start_time
        db_appointment.end_time = appointment.end_time
        db_appointment.max_capacity = appointment.max_capacity
        db_appointment.status = appointment.status.value
        db_appointment.notes = appointment.notes
        self.db.flush()
        self.db.refresh(db_appointment)
        return self._to_domain(db_appointment)

    def delete(self, appointment_id: int) -> bool:
        db_appointment = self.db.query(DbAppointment).filter_by(id=appointment_id).first()
        if not db_appointment:
            return False
        self.db.delete(db_appointment)
        self.db.flush()
        return True

    def increment_capacity(self, appointment_id: int) -> bool:
        updated = (
            self.db.query(DbAppointment)
            .filter(
                DbAppointment.id == appointment_id,
                DbAppointment.current_capacity < DbAppointment.max_capacity,
            )
            .update(
                {DbAppointment.current_capacity: DbAppointment.current_capacity + 1},
                synchronize_session=False,
            )
        )
        return updated == 1

    def decrement_capacity(self, appointment_id: int) -> bool:
        updated = (
            self.db.query(DbAppointment)
            .filter(
                DbAppointment.id == appointment_id,
                DbAppointment.current_capacity > 0,
            )
            .update(
                {DbAppointment.current_capacity: DbAppointment.current_capacity - 1},
                synchronize_session=False,
            )
        )
        return updated == 1

    def _overlapping(self, start: datetime, end: datetime, exclude_id: Optional[int]):
        # Half-open intervals: touching appointments do not overlap
        query = self.db.query(DbAppointment).filter(
            DbAppointment.status != _CANCELLED,
            DbAppointment.start_time < end,
            DbAppointment.end_time > start,
        )
        if exclude_id is not None:
            query = query.filter(DbAppointment.id != exclude_id)
        return query

    def _list(self, query) -> List[DomainAppointment]:
        db_appointments = query.order_by(
            DbAppointment.start_time, DbAppointment.id
        ).all()
        return [self._to_domain(a) for a in db_appointments]

    def _to_domain(self, db_appointment: DbAppointment) -> DomainAppointment:
        """Convert database model to domain entity."""
        return DomainAppointment(
            id=db_appointment.id,
            service_id=db_appointment.service_id,
            member_id=db_appointment.member_id,
            location_id=db_appointment.location_id,
            created_by=db_appointment.created_by,
            start_time=db_appointment.start_time,
            end_time=db_appointment.end_time,
            max_capacity=db_appointment.max_capacity,
            current_capacity=db_appointment.current_capacity,
            status=db_appointment.status,
            notes=db_appointment.notes,
            created_at=db_appointment.created_at,
            updated_at=db_appointment.updated_at,
        )
