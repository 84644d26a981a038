"""
Data Transfer Objects (DTOs) and validation schemas.

Following SOLID principles:
- Single Responsibility: Each schema validates one specific data contract
- Open/Closed: Schemas can be extended without modification

Request DTOs raise ValidationError from validate(); response DTOs are built
from domain entities with from_domain() and serialise with to_dict().
"""

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from fitcenter.core import config
from fitcenter.core.exceptions import ValidationError
from fitcenter.domain.entities import PurchasePolicy, ReservationStatus


def _json_value(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {str(k): _json_value(v) for k, v in value.items()}
    return value


class _ResponseMixin:
    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready dictionary (dates as ISO strings, money as strings)."""
        return {k: _json_value(v) for k, v in asdict(self).items()}


def _require_positive_id(value: Optional[int], name: str) -> None:
    if not isinstance(value, int) or value <= 0:
        raise ValidationError(f"Valid {name} is required", context={name: value})


def _local_naive(value: datetime) -> datetime:
    """Express an aware datetime as naive local time (APP_TZ)."""
    if value.tzinfo is None:
        return value
    return value.astimezone(config.APP_TZ).replace(tzinfo=None)


# ===========================
# Appointments
# ===========================


@dataclass
class AppointmentCreateRequest:
    """DTO for appointment creation requests.

    location_id is only honoured for administrators; employees and members
    always book at their own location.
    """

    service_id: int
    member_id: int
    start_time: datetime
    location_id: Optional[int] = None
    notes: Optional[str] = None

    def validate(self) -> None:
        """Validate the request data."""
        _require_positive_id(self.service_id, "service_id")
        _require_positive_id(self.member_id, "member_id")
        if not isinstance(self.start_time, datetime):
            raise ValidationError("Start time is required")
        self.start_time = _local_naive(self.start_time)
        if self.location_id is not None:
            _require_positive_id(self.location_id, "location_id")


@dataclass
class AppointmentUpdateRequest:
    """DTO for appointment update requests."""

    service_id: Optional[int] = None
    start_time: Optional[datetime] = None
    notes: Optional[str] = None

    def validate(self) -> None:
        """Validate the request data."""
        if self.service_id is not None:
            _require_positive_id(self.service_id, "service_id")
        if self.start_time is not None and not isinstance(self.start_time, datetime):
            raise ValidationError("Start time must be a datetime")
        if self.start_time is not None:
            self.start_time = _local_naive(self.start_time)


@dataclass
class AppointmentResponse(_ResponseMixin):
    """DTO for appointment API responses."""

    id: int
    service_id: int
    member_id: int
    location_id: int
    created_by: Optional[int]
    start_time: datetime
    end_time: datetime
    max_capacity: int
    current_capacity: int
    available_spaces: int
    status: str
    notes: Optional[str]

    @classmethod
    def from_domain(cls, appointment) -> "AppointmentResponse":
        """Create response from domain entity."""
        return cls(
            id=appointment.id,
            service_id=appointment.service_id,
            member_id=appointment.member_id,
            location_id=appointment.location_id,
            created_by=appointment.created_by,
            start_time=appointment.start_time,
            end_time=appointment.end_time,
            max_capacity=appointment.max_capacity,
            current_capacity=appointment.current_capacity,
            available_spaces=appointment.available_spaces,
            status=appointment.status.value,
            notes=appointment.notes,
        )


@dataclass
class AppointmentCapacityResponse(_ResponseMixin):
    appointment_id: int
    max_capacity: int
    current_capacity: int
    available_spaces: int

    @classmethod
    def from_domain(cls, appointment) -> "AppointmentCapacityResponse":
        return cls(
            appointment_id=appointment.id,
            max_capacity=appointment.max_capacity,
            current_capacity=appointment.current_capacity,
            available_spaces=appointment.available_spaces,
        )


@dataclass
class LocationCapacityStatus(_ResponseMixin):
    """Appointments starting per opening hour at one location on one day."""

    location_id: int
    location_name: str
    day: date
    hourly_counts: Dict[int, int] = field(default_factory=dict)
    total_appointments: int = 0
    average_per_hour: float = 0.0


# ===========================
# Reservations
# ===========================


@dataclass
class ReservationCreateRequest:
    """DTO for reservation creation requests.

    The member is always the authenticated principal's own profile.
    """

    appointment_id: int
    purchase_id: int
    notes: Optional[str] = None

    def validate(self) -> None:
        """Validate the request data."""
        _require_positive_id(self.appointment_id, "appointment_id")
        _require_positive_id(self.purchase_id, "purchase_id")


@dataclass
class ReservationUpdateRequest:
    """DTO for reservation update requests."""

    purchase_id: Optional[int] = None
    notes: Optional[str] = None

    def validate(self) -> None:
        if self.purchase_id is not None:
            _require_positive_id(self.purchase_id, "purchase_id")


def parse_reservation_status(value) -> ReservationStatus:
    """Parse a requested reservation status.

    WAITING_LIST is a stored value only and is refused here like any
    unknown status.
    """
    raw = value.value if isinstance(value, ReservationStatus) else str(value or "")
    try:
        status = ReservationStatus(raw.strip().upper())
    except ValueError as e:
        raise ValidationError(
            f"Invalid reservation status: {value}", context={"status": str(value)}
        ) from e
    if status == ReservationStatus.WAITING_LIST:
        raise ValidationError(
            "Waiting list reservations are not supported",
            context={"status": status.value},
        )
    return status


@dataclass
class ReservationResponse(_ResponseMixin):
    """DTO for reservation API responses."""

    id: int
    member_id: int
    appointment_id: int
    purchase_id: int
    status: str
    notes: Optional[str]
    created_at: Optional[datetime]

    @classmethod
    def from_domain(cls, reservation) -> "ReservationResponse":
        """Create response from domain entity."""
        return cls(
            id=reservation.id,
            member_id=reservation.member_id,
            appointment_id=reservation.appointment_id,
            purchase_id=reservation.purchase_id,
            status=reservation.status.value,
            notes=reservation.notes,
            created_at=reservation.created_at,
        )


# ===========================
# Purchases and payments
# ===========================


@dataclass
class PurchaseCreateRequest:
    """DTO for manually granted or payment-confirmed purchases."""

    member_id: int
    service_id: int
    quantity: int
    total_price: Decimal
    policy: PurchasePolicy = PurchasePolicy.MANUAL

    def validate(self) -> None:
        """Validate the request data."""
        _require_positive_id(self.member_id, "member_id")
        _require_positive_id(self.service_id, "service_id")
        if not isinstance(self.quantity, int) or self.quantity < 1:
            raise ValidationError(
                "Quantity must be at least 1", context={"quantity": self.quantity}
            )
        if self.total_price is None or Decimal(self.total_price) < 0:
            raise ValidationError(
                "Total price cannot be negative",
                context={"total_price": str(self.total_price)},
            )
        try:
            self.policy = PurchasePolicy(self.policy)
        except ValueError:
            raise ValidationError(
                f"Unknown purchase policy: {self.policy}",
                context={"policy": str(self.policy)},
            )


@dataclass
class PurchaseResponse(_ResponseMixin):
    """DTO for purchase API responses."""

    id: int
    member_id: int
    service_id: int
    quantity: int
    remaining_uses: int
    total_price: Decimal
    purchase_date: Optional[date]
    expiry_date: Optional[date]
    status: str

    @classmethod
    def from_domain(cls, purchase) -> "PurchaseResponse":
        """Create response from domain entity."""
        return cls(
            id=purchase.id,
            member_id=purchase.member_id,
            service_id=purchase.service_id,
            quantity=purchase.quantity,
            remaining_uses=purchase.remaining_uses,
            total_price=purchase.total_price,
            purchase_date=purchase.purchase_date,
            expiry_date=purchase.expiry_date,
            status=purchase.status.value,
        )


@dataclass
class PaymentPendingRequest:
    """Checkout data recorded before the customer is sent to the provider."""

    member_id: int
    service_id: int
    quantity: int
    amount: Decimal
    external_reference: str
    currency: str = "EUR"

    def validate(self) -> None:
        _require_positive_id(self.member_id, "member_id")
        _require_positive_id(self.service_id, "service_id")
        if not isinstance(self.quantity, int) or self.quantity < 1:
            raise ValidationError("Quantity must be at least 1")
        if self.amount is None or Decimal(self.amount) < 0:
            raise ValidationError("Amount cannot be negative")
        if not self.external_reference or not self.external_reference.strip():
            raise ValidationError("External reference is required")


@dataclass
class PaymentTransactionResponse(_ResponseMixin):
    id: int
    member_id: int
    service_id: int
    quantity: int
    amount: Decimal
    currency: str
    status: str
    external_reference: Optional[str]
    purchase_id: Optional[int]

    @classmethod
    def from_domain(cls, transaction) -> "PaymentTransactionResponse":
        return cls(
            id=transaction.id,
            member_id=transaction.member_id,
            service_id=transaction.service_id,
            quantity=transaction.quantity,
            amount=transaction.amount,
            currency=transaction.currency,
            status=transaction.status.value,
            external_reference=transaction.external_reference,
            purchase_id=transaction.purchase_id,
        )
