"""
Reservation repository implementation following SOLID principles.
"""

from datetime import datetime
from typing import List, Optional

from fitcenter.db.base import Appointment as DbAppointment
from fitcenter.db.base import Reservation as DbReservation
from fitcenter.domain.entities import Reservation as DomainReservation
from fitcenter.domain.entities import ReservationStatus
from fitcenter.domain.interfaces import IReservationRepository


class ReservationRepository(IReservationRepository):
    """Repository for Reservation persistence operations."""

    def __init__(self, db_session) -> None:
        self.db = db_session

    def get_by_id(
        self, reservation_id: int, for_update: bool = False
    ) -> Optional[DomainReservation]:
        query = self.db.query(DbReservation).filter(DbReservation.id == reservation_id)
        if for_update:
            query = query.with_for_update()
        db_reservation = query.populate_existing().first()
        return self._to_domain(db_reservation) if db_reservation else None

    def list_all(self) -> List[DomainReservation]:
        return self._list(self.db.query(DbReservation))

    def list_by_member(
        self, member_id: int, status: Optional[ReservationStatus] = None
    ) -> List[DomainReservation]:
        query = self.db.query(DbReservation).filter(DbReservation.member_id == member_id)
        if status is not None:
            query = query.filter(DbReservation.status == ReservationStatus(status).value)
        return self._list(query)

    def list_by_appointment(self, appointment_id: int) -> List[DomainReservation]:
        return self._list(
            self.db.query(DbReservation).filter(
                DbReservation.appointment_id == appointment_id
            )
        )

    def list_by_location(
        self, location_id: int, status: Optional[ReservationStatus] = None
    ) -> List[DomainReservation]:
        query = (
            self.db.query(DbReservation)
            .join(DbAppointment, DbReservation.appointment_id == DbAppointment.id)
            .filter(DbAppointment.location_id == location_id)
        )
        if status is not None:
            query = query.filter(DbReservation.status == ReservationStatus(status).value)
        return self._list(query)

    def list_by_status(self, status: ReservationStatus) -> List[DomainReservation]:
        return self._list(
            self.db.query(DbReservation).filter(
                DbReservation.status == ReservationStatus(status).value
            )
        )

    def list_by_appointment_start(
        self,
        start: datetime,
        end: datetime,
        location_id: Optional[int] = None,
        member_id: Optional[int] = None,
    ) -> List[DomainReservation]:
        """Reservations whose appointment starts in [start, end]."""
        query = (
            self.db.query(DbReservation)
            .join(DbAppointment, DbReservation.appointment_id == DbAppointment.id)
            .filter(DbAppointment.start_time >= start, DbAppointment.start_time <= end)
        )
        if location_id is not None:
            query = query.filter(DbAppointment.location_id == location_id)
        if member_id is not None:
            query = query.filter(DbReservation.member_id == member_id)
        return self._list(query)

    def exists_active(self, member_id: int, appointment_id: int) -> bool:
        return (
            self.db.query(DbReservation.id)
            .filter(
                DbReservation.member_id == member_id,
                DbReservation.appointment_id == appointment_id,
                DbReservation.status != ReservationStatus.CANCELLED.value,
            )
            .first()
            is not None
        )

    def exists_for_appointment(self, appointment_id: int) -> bool:
        return (
            self.db.query(DbReservation.id)
            .filter(DbReservation.appointment_id == appointment_id)
            .first()
            is not None
        )

    def create(self, reservation: DomainReservation) -> DomainReservation:
        db_reservation = DbReservation(
            member_id=reservation.member_id,
            appointment_id=reservation.appointment_id,
            purchase_id=reservation.purchase_id,
            status=reservation.status.value,
            notes=reservation.notes,
        )
        self.db.add(db_reservation)
        # Flush so the active-reservation unique index is checked inside the transaction
        self.db.flush()
        self.db.refresh(db_reservation)
        return self._to_domain(db_reservation)

    def update(self, reservation: DomainReservation) -> DomainReservation:
        if not reservation.id:
            raise ValueError("Reservation ID is required for update")

        db_reservation = self.db.query(DbReservation).filter_by(id=reservation.id).first()
        if not db_reservation:
            raise ValueError(f"Reservation with ID {reservation.id} not found")

        db_reservation.purchase_id = reservation.purchase_id
        db_reservation.status = reservation.status.value
        db_reservation.notes = reservation.notes
        self.db.flush()
        self.db.refresh(db_reservation)
        return self._to_domain(db_reservation)

    def delete(self, reservation_id: int) -> bool:
        db_reservation = self.db.query(DbReservation).filter_by(id=reservation_id).first()
        if not db_reservation:
            return False
        self.db.delete(db_reservation)
        self.db.flush()
        return True

    def _list(self, query) -> List[DomainReservation]:
        db_reservations = query.order_by(DbReservation.id).all()
        return [self._to_domain(r) for r in db_reservations]

    def _to_domain(self, db_reservation: DbReservation) -> DomainReservation:
        """Convert database model to domain entity."""
        return DomainReservation(
            id=db_reservation.id,
            member_id=db_reservation.member_id,
            appointment_id=db_reservation.appointment_id,
            purchase_id=db_reservation.purchase_id,
            status=db_reservation.status,
            notes=db_reservation.notes,
            created_at=db_reservation.created_at,
            updated_at=db_reservation.updated_at,
        )
