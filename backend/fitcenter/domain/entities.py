"""
Domain entities - Pure business logic, no framework dependencies.

Each entity represents one business concept of the booking core and
validates its own structural rules on construction. Cross-entity rules
(capacity, entitlement, access scope) live in the services.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional


class Role(str, Enum):
    ADMIN = "ADMIN"
    EMPLOYEE = "EMPLOYEE"
    MEMBER = "MEMBER"


class MembershipStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"
    EXPIRED = "EXPIRED"
    PENDING_PAYMENT = "PENDING_PAYMENT"
    TRIAL = "TRIAL"


class PurchaseStatus(str, Enum):
    ACTIVE = "ACTIVE"
    USED = "USED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


class AppointmentStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


class ReservationStatus(str, Enum):
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    ATTENDED = "ATTENDED"
    NO_SHOW = "NO_SHOW"
    # Kept for stored rows only; no transition produces it.
    WAITING_LIST = "WAITING_LIST"


# Statuses in which a reservation occupies one capacity slot and one purchase use
HOLDING_RESERVATION_STATUSES = frozenset(
    {
        ReservationStatus.CONFIRMED,
        ReservationStatus.ATTENDED,
        ReservationStatus.NO_SHOW,
    }
)


class PurchasePolicy(str, Enum):
    """Which validity window a new purchase gets."""

    MANUAL = "MANUAL"
    PAYMENT_CONFIRMED = "PAYMENT_CONFIRMED"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    CANCELLED = "CANCELLED"


@dataclass
class Location:
    """Domain entity for a gym location."""

    id: Optional[int] = None
    name: str = ""
    address: str = ""

    def __post_init__(self):
        if not self.name:
            raise ValueError("Location name is required")


@dataclass
class Service:
    """Domain entity for a bookable service offered at one or more locations."""

    id: Optional[int] = None
    name: str = ""
    description: Optional[str] = None
    price: Decimal = Decimal("0")
    duration_minutes: int = 60
    max_capacity: int = 20
    is_active: bool = True
    location_ids: List[int] = field(default_factory=list)

    def __post_init__(self):
        if not self.name:
            raise ValueError("Service name is required")
        if self.duration_minutes <= 0:
            raise ValueError("Duration must be positive")
        if self.max_capacity <= 0:
            raise ValueError("Max capacity must be positive")
        if self.price < 0:
            raise ValueError("Price cannot be negative")

    @property
    def is_group_service(self) -> bool:
        return self.max_capacity > 1

    def is_offered_at(self, location_id: int) -> bool:
        return location_id in self.location_ids


@dataclass
class User:
    """Domain entity for an authenticated account (credentials live elsewhere)."""

    id: Optional[int] = None
    email: str = ""
    name: str = ""
    role: Role = Role.MEMBER
    location_id: Optional[int] = None
    is_active: bool = True

    def __post_init__(self):
        if not self.email or "@" not in self.email:
            raise ValueError("Valid email is required")
        self.role = Role(self.role)


@dataclass
class Member:
    """Domain entity for a gym member, linked 1:1 to a User."""

    id: Optional[int] = None
    user_id: int = 0
    location_id: int = 0
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    membership_status: MembershipStatus = MembershipStatus.ACTIVE
    membership_start_date: Optional[date] = None
    membership_end_date: Optional[date] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if self.user_id <= 0:
            raise ValueError("Valid user_id is required")
        if self.location_id <= 0:
            raise ValueError("Valid location_id is required")
        self.membership_status = MembershipStatus(self.membership_status)
        if (
            self.membership_start_date
            and self.membership_end_date
            and self.membership_end_date < self.membership_start_date
        ):
            raise ValueError("Membership end date must not precede start date")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_active_member(self) -> bool:
        return self.membership_status == MembershipStatus.ACTIVE


@dataclass
class Purchase:
    """Entitlement bundle: `quantity` uses of one service for one member."""

    id: Optional[int] = None
    member_id: int = 0
    service_id: int = 0
    quantity: int = 1
    remaining_uses: int = 1
    total_price: Decimal = Decimal("0")
    purchase_date: Optional[date] = None
    expiry_date: Optional[date] = None
    status: PurchaseStatus = PurchaseStatus.ACTIVE
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if self.quantity < 1:
            raise ValueError("Quantity must be at least 1")
        if not 0 <= self.remaining_uses <= self.quantity:
            raise ValueError("Remaining uses must be between 0 and quantity")
        self.status = PurchaseStatus(self.status)

    def is_expired(self, today: date) -> bool:
        return self.expiry_date is not None and self.expiry_date < today


@dataclass
class Appointment:
    """A scheduled service occurrence at a location with capacity counters."""

    id: Optional[int] = None
    service_id: int = 0
    member_id: int = 0
    location_id: int = 0
    created_by: Optional[int] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    max_capacity: int = 1
    current_capacity: int = 0
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if self.max_capacity <= 0:
            raise ValueError("Max capacity must be positive")
        if not 0 <= self.current_capacity <= self.max_capacity:
            raise ValueError("Current capacity must be between 0 and max capacity")
        if self.start_time and self.end_time and self.end_time <= self.start_time:
            raise ValueError("End time must be after start time")
        self.status = AppointmentStatus(self.status)

    @property
    def available_spaces(self) -> int:
        return self.max_capacity - self.current_capacity

    @property
    def is_full(self) -> bool:
        return self.current_capacity >= self.max_capacity

    def is_bookable(self, now: datetime) -> bool:
        """Open for anyone: future, still scheduled and not full."""
        return (
            self.start_time is not None
            and self.start_time > now
            and self.status == AppointmentStatus.SCHEDULED
            and not self.is_full
        )


@dataclass
class Reservation:
    """Binding of one purchase use to one appointment slot for one member."""

    id: Optional[int] = None
    member_id: int = 0
    appointment_id: int = 0
    purchase_id: int = 0
    status: ReservationStatus = ReservationStatus.CONFIRMED
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if self.member_id <= 0:
            raise ValueError("Valid member_id is required")
        if self.appointment_id <= 0:
            raise ValueError("Valid appointment_id is required")
        if self.purchase_id <= 0:
            raise ValueError("Valid purchase_id is required")
        self.status = ReservationStatus(self.status)

    @property
    def holds_counters(self) -> bool:
        return self.status in HOLDING_RESERVATION_STATUSES


@dataclass
class PaymentTransaction:
    """Record of an external checkout, confirmed into a Purchase."""

    id: Optional[int] = None
    member_id: int = 0
    service_id: int = 0
    quantity: int = 1
    amount: Decimal = Decimal("0")
    currency: str = "EUR"
    status: PaymentStatus = PaymentStatus.PENDING
    external_reference: Optional[str] = None
    payment_method: Optional[str] = None
    payment_date: Optional[date] = None
    purchase_id: Optional[int] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if self.quantity < 1:
            raise ValueError("Quantity must be at least 1")
        if self.amount < 0:
            raise ValueError("Amount cannot be negative")
        self.status = PaymentStatus(self.status)
