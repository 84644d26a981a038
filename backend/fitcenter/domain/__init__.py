"""
Domain package - Pure business logic layer.

This package contains:
- entities.py: Domain entities and status enums
- interfaces.py: Repository contracts
"""

from .entities import (
    Appointment,
    AppointmentStatus,
    Location,
    Member,
    MembershipStatus,
    PaymentStatus,
    PaymentTransaction,
    Purchase,
    PurchasePolicy,
    PurchaseStatus,
    Reservation,
    ReservationStatus,
    Role,
    Service,
    User,
)
from .interfaces import (
    IAppointmentReader,
    IAppointmentRepository,
    IAppointmentWriter,
    ICatalogReader,
    IMemberReader,
    IPaymentRepository,
    IPurchaseReader,
    IPurchaseRepository,
    IPurchaseWriter,
    IReservationReader,
    IReservationRepository,
    IReservationWriter,
    IUserReader,
)

__all__ = [
    "Appointment",
    "AppointmentStatus",
    "Location",
    "Member",
    "MembershipStatus",
    "PaymentStatus",
    "PaymentTransaction",
    "Purchase",
    "PurchasePolicy",
    "PurchaseStatus",
    "Reservation",
    "ReservationStatus",
    "Role",
    "Service",
    "User",
    "IAppointmentReader",
    "IAppointmentRepository",
    "IAppointmentWriter",
    "ICatalogReader",
    "IMemberReader",
    "IPaymentRepository",
    "IPurchaseReader",
    "IPurchaseRepository",
    "IPurchaseWriter",
    "IReservationReader",
    "IReservationRepository",
    "IReservationWriter",
    "IUserReader",
]
