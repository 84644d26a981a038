"""
Schemas package - Data Transfer Objects and validation.

This package contains DTOs that define the service-layer contracts
and handle request validation.
"""

from .dtos import (
    AppointmentCapacityResponse,
    AppointmentCreateRequest,
    AppointmentResponse,
    AppointmentUpdateRequest,
    LocationCapacityStatus,
    PaymentPendingRequest,
    PaymentTransactionResponse,
    PurchaseCreateRequest,
    PurchaseResponse,
    ReservationCreateRequest,
    ReservationResponse,
    ReservationUpdateRequest,
    parse_reservation_status,
)

__all__ = [
    "AppointmentCapacityResponse",
    "AppointmentCreateRequest",
    "AppointmentResponse",
    "AppointmentUpdateRequest",
    "LocationCapacityStatus",
    "PaymentPendingRequest",
    "PaymentTransactionResponse",
    "PurchaseCreateRequest",
    "PurchaseResponse",
    "ReservationCreateRequest",
    "ReservationResponse",
    "ReservationUpdateRequest",
    "parse_reservation_status",
]
