"""
Domain entity fixtures for unit tests.

Plain dataclass instances; no database involved.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from fitcenter.core.security import Principal
from fitcenter.domain.entities import (
    Appointment,
    Member,
    Purchase,
    Reservation,
    Role,
    Service,
)


@pytest.fixture
def admin_principal():
    return Principal(user_id=1, role=Role.ADMIN)


@pytest.fixture
def employee_principal():
    return Principal(user_id=2, role=Role.EMPLOYEE, location_id=10)


@pytest.fixture
def member_principal():
    return Principal(user_id=3, role=Role.MEMBER, location_id=10, member_id=100)


@pytest.fixture
def no_profile_member_principal():
    """A MEMBER account that has not completed its member profile yet."""
    return Principal(user_id=4, role=Role.MEMBER)


@pytest.fixture
def sample_member():
    return Member(
        id=100,
        user_id=3,
        location_id=10,
        first_name="Anna",
        last_name="Tester",
        email="anna@fit.test",
    )


@pytest.fixture
def sample_service():
    return Service(
        id=7,
        name="Yoga",
        price=Decimal("15.00"),
        duration_minutes=60,
        max_capacity=10,
        location_ids=[10],
    )


@pytest.fixture
def sample_purchase():
    return Purchase(
        id=50,
        member_id=100,
        service_id=7,
        quantity=5,
        remaining_uses=5,
        total_price=Decimal("75.00"),
        purchase_date=date(2030, 1, 14),
        expiry_date=date(2030, 2, 13),
    )


@pytest.fixture
def sample_appointment():
    return Appointment(
        id=200,
        service_id=7,
        member_id=100,
        location_id=10,
        start_time=datetime(2030, 1, 16, 10, 0),
        end_time=datetime(2030, 1, 16, 11, 0),
        max_capacity=10,
        current_capacity=3,
    )


@pytest.fixture
def sample_reservation():
    return Reservation(id=300, member_id=100, appointment_id=200, purchase_id=50)
