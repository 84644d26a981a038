"""Application services and the factory that wires them to one session."""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from fitcenter.core.config import BookingPolicy
from fitcenter.repositories.appointment_repo import AppointmentRepository
from fitcenter.repositories.catalog_repo import CatalogRepository
from fitcenter.repositories.member_repo import MemberRepository
from fitcenter.repositories.payment_repo import PaymentRepository
from fitcenter.repositories.purchase_repo import PurchaseRepository
from fitcenter.repositories.reservation_repo import ReservationRepository
from fitcenter.repositories.user_repo import UserRepository
from fitcenter.services.appointment_service import AppointmentService
from fitcenter.services.payment_service import PaymentService
from fitcenter.services.principal_service import PrincipalService
from fitcenter.services.purchase_service import PurchaseService
from fitcenter.services.reservation_service import ReservationService


@dataclass
class BookingServices:
    purchases: PurchaseService
    appointments: AppointmentService
    reservations: ReservationService
    payments: PaymentService
    principals: PrincipalService


def create_booking_services(
    session: Session,
    policy: Optional[BookingPolicy] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> BookingServices:
    """Wire every service to repositories sharing one session (one unit of work)."""
    catalog_repo = CatalogRepository(session)
    member_repo = MemberRepository(session)
    purchase_repo = PurchaseRepository(session)
    appointment_repo = AppointmentRepository(session)

    purchases = PurchaseService(
        session, purchase_repo, member_repo, catalog_repo, policy=policy, clock=clock
    )
    return BookingServices(
        purchases=purchases,
        appointments=AppointmentService(
            session,
            appointment_repo,
            member_repo,
            catalog_repo,
            purchase_repo,
            policy=policy,
            clock=clock,
        ),
        reservations=ReservationService(
            session,
            ReservationRepository(session),
            appointment_repo,
            member_repo,
            purchase_repo,
            purchases,
            clock=clock,
        ),
        payments=PaymentService(
            session,
            PaymentRepository(session),
            member_repo,
            catalog_repo,
            purchases,
            clock=clock,
        ),
        principals=PrincipalService(UserRepository(session), member_repo),
    )


__all__ = [
    "AppointmentService",
    "BookingServices",
    "PaymentService",
    "PrincipalService",
    "PurchaseService",
    "ReservationService",
    "create_booking_services",
]
