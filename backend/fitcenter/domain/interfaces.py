"""
Abstract interfaces for repositories following Interface Segregation Principle.

These interfaces define contracts without implementation details,
enabling dependency injection and easier testing. Writers never commit:
the calling service owns the transaction boundary.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import List, Optional

from .entities import (
    Appointment,
    AppointmentStatus,
    Location,
    Member,
    PaymentTransaction,
    Purchase,
    PurchaseStatus,
    Reservation,
    ReservationStatus,
    Service,
    User,
)


class ICatalogReader(ABC):
    """Read access to locations and the services offered there."""

    @abstractmethod
    def get_location(self, location_id: int) -> Optional[Location]:
        pass

    @abstractmethod
    def get_service(self, service_id: int) -> Optional[Service]:
        pass

    @abstractmethod
    def list_locations(self) -> List[Location]:
        pass


class IUserReader(ABC):
    """Principal directory: account lookups."""

    @abstractmethod
    def get_by_id(self, user_id: int) -> Optional[User]:
        pass

    @abstractmethod
    def get_by_email(self, email: str) -> Optional[User]:
        pass


class IMemberReader(ABC):
    """Member profile lookups."""

    @abstractmethod
    def get_by_id(self, member_id: int) -> Optional[Member]:
        pass

    @abstractmethod
    def get_by_user_id(self, user_id: int) -> Optional[Member]:
        pass


class IPurchaseReader(ABC):
    """Interface for purchase read operations."""

    @abstractmethod
    def get_by_id(self, purchase_id: int, for_update: bool = False) -> Optional[Purchase]:
        """Get purchase by ID, optionally locking the row."""
        pass

    @abstractmethod
    def list_by_member(self, member_id: int) -> List[Purchase]:
        pass

    @abstractmethod
    def list_by_member_and_service(
        self, member_id: int, service_id: int
    ) -> List[Purchase]:
        pass

    @abstractmethod
    def list_by_member_and_status(
        self, member_id: int, status: PurchaseStatus
    ) -> List[Purchase]:
        pass


class IPurchaseWriter(ABC):
    """Interface for purchase write operations."""

    @abstractmethod
    def create(self, purchase: Purchase) -> Purchase:
        pass

    @abstractmethod
    def decrement_remaining_uses(self, purchase_id: int) -> bool:
        """Take one use if any remain; mark USED at zero. False if none remained."""
        pass

    @abstractmethod
    def increment_remaining_uses(self, purchase_id: int) -> bool:
        """Give one use back if below quantity; USED becomes ACTIVE. False at quantity."""
        pass


class IPurchaseRepository(IPurchaseReader, IPurchaseWriter):
    """Complete purchase repository interface."""

    pass


class IAppointmentReader(ABC):
    """Interface for appointment read operations."""

    @abstractmethod
    def get_by_id(
        self, appointment_id: int, for_update: bool = False
    ) -> Optional[Appointment]:
        pass

    @abstractmethod
    def list_all(self) -> List[Appointment]:
        pass

    @abstractmethod
    def list_by_member(self, member_id: int) -> List[Appointment]:
        pass

    @abstractmethod
    def list_by_service(self, service_id: int) -> List[Appointment]:
        pass

    @abstractmethod
    def list_by_location(
        self,
        location_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Appointment]:
        pass

    @abstractmethod
    def list_by_date_range(self, start: datetime, end: datetime) -> List[Appointment]:
        pass

    @abstractmethod
    def list_starting_after(
        self, after: datetime, status: AppointmentStatus
    ) -> List[Appointment]:
        pass

    @abstractmethod
    def member_has_overlap(
        self,
        member_id: int,
        start: datetime,
        end: datetime,
        exclude_id: Optional[int] = None,
    ) -> bool:
        """True if a non-cancelled appointment of the member overlaps [start, end)."""
        pass

    @abstractmethod
    def count_location_overlaps(
        self,
        location_id: int,
        start: datetime,
        end: datetime,
        exclude_id: Optional[int] = None,
    ) -> int:
        """Count non-cancelled appointments at the location overlapping [start, end)."""
        pass


class IAppointmentWriter(ABC):
    """Interface for appointment write operations."""

    @abstractmethod
    def create(self, appointment: Appointment) -> Appointment:
        pass

    @abstractmethod
    def update(self, appointment: Appointment) -> Appointment:
        """Persist schedule, service, status and notes. Never touches capacity."""
        pass

    @abstractmethod
    def delete(self, appointment_id: int) -> bool:
        pass

    @abstractmethod
    def increment_capacity(self, appointment_id: int) -> bool:
        """Occupy one slot if one is free. False when the appointment is full."""
        pass

    @abstractmethod
    def decrement_capacity(self, appointment_id: int) -> bool:
        """Release one slot. False when nothing was occupied."""
        pass


class IAppointmentRepository(IAppointmentReader, IAppointmentWriter):
    """Complete appointment repository interface."""

    pass


class IReservationReader(ABC):
    """Interface for reservation read operations."""

    @abstractmethod
    def get_by_id(
        self, reservation_id: int, for_update: bool = False
    ) -> Optional[Reservation]:
        pass

    @abstractmethod
    def list_all(self) -> List[Reservation]:
        pass

    @abstractmethod
    def list_by_member(
        self, member_id: int, status: Optional[ReservationStatus] = None
    ) -> List[Reservation]:
        pass

    @abstractmethod
    def list_by_appointment(self, appointment_id: int) -> List[Reservation]:
        pass

    @abstractmethod
    def list_by_location(
        self, location_id: int, status: Optional[ReservationStatus] = None
    ) -> List[Reservation]:
        pass

    @abstractmethod
    def list_by_status(self, status: ReservationStatus) -> List[Reservation]:
        pass

    @abstractmethod
    def list_by_appointment_start(
        self,
        start: datetime,
        end: datetime,
        location_id: Optional[int] = None,
        member_id: Optional[int] = None,
    ) -> List[Reservation]:
        pass

    @abstractmethod
    def exists_active(self, member_id: int, appointment_id: int) -> bool:
        """True if the member holds a non-cancelled reservation for the appointment."""
        pass

    @abstractmethod
    def exists_for_appointment(self, appointment_id: int) -> bool:
        pass


class IReservationWriter(ABC):
    """Interface for reservation write operations."""

    @abstractmethod
    def create(self, reservation: Reservation) -> Reservation:
        pass

    @abstractmethod
    def update(self, reservation: Reservation) -> Reservation:
        pass

    @abstractmethod
    def delete(self, reservation_id: int) -> bool:
        pass


class IReservationRepository(IReservationReader, IReservationWriter):
    """Complete reservation repository interface."""

    pass


class IPaymentRepository(ABC):
    """Payment transaction bookkeeping."""

    @abstractmethod
    def create(self, transaction: PaymentTransaction) -> PaymentTransaction:
        pass

    @abstractmethod
    def get_by_reference(
        self, external_reference: str, for_update: bool = False
    ) -> Optional[PaymentTransaction]:
        pass

    @abstractmethod
    def mark_succeeded(
        self,
        transaction_id: int,
        purchase_id: int,
        payment_method: str,
        payment_date: date,
    ) -> bool:
        """Move a PENDING transaction to SUCCESS. False if it was not PENDING."""
        pass
