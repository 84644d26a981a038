"""
Access policy: who may act on which appointment, reservation, purchase,
member or location.

Every resource type registers how to compute its ResourceScope; the single
rule below then decides for all of them:

- ADMIN may access anything.
- EMPLOYEE may access resources of their own location.
- MEMBER may access resources they own; for resources without an owner
  (a location, a service schedule) the member's home location applies.
"""

import logging
from dataclasses import dataclass
from functools import singledispatch
from typing import Iterable, Optional

from fitcenter.core.exceptions import UnauthorizedError
from fitcenter.core.security import Principal
from fitcenter.domain.entities import (
    Appointment,
    Location,
    Member,
    Purchase,
    Reservation,
    Role,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResourceScope:
    location_id: Optional[int]
    owner_member_id: Optional[int] = None


@dataclass(frozen=True)
class ReservationScope:
    """A reservation together with the location it inherits from its appointment."""

    reservation: Reservation
    location_id: int


@dataclass(frozen=True)
class PurchaseScope:
    """A purchase together with its owner's home location."""

    purchase: Purchase
    location_id: Optional[int] = None


@singledispatch
def scope_of(resource) -> ResourceScope:
    raise TypeError(f"No access scope registered for {type(resource).__name__}")


@scope_of.register
def _(resource: ResourceScope) -> ResourceScope:
    return resource


@scope_of.register
def _(resource: Appointment) -> ResourceScope:
    return ResourceScope(resource.location_id, resource.member_id)


@scope_of.register
def _(resource: ReservationScope) -> ResourceScope:
    return ResourceScope(resource.location_id, resource.reservation.member_id)


@scope_of.register
def _(resource: PurchaseScope) -> ResourceScope:
    return ResourceScope(resource.location_id, resource.purchase.member_id)


@scope_of.register
def _(resource: Member) -> ResourceScope:
    return ResourceScope(resource.location_id, resource.id)


@scope_of.register
def _(resource: Location) -> ResourceScope:
    return ResourceScope(resource.id)


def can_access(principal: Principal, resource) -> bool:
    """Return True if the principal may act on the resource."""
    if principal.role == Role.ADMIN:
        return True

    scope = scope_of(resource)
    if principal.role == Role.EMPLOYEE:
        return (
            principal.location_id is not None
            and scope.location_id == principal.location_id
        )

    if scope.owner_member_id is not None:
        return (
            principal.member_id is not None
            and scope.owner_member_id == principal.member_id
        )
    return (
        principal.location_id is not None
        and scope.location_id == principal.location_id
    )


def require_access(principal: Principal, resource, action: str = "access") -> None:
    """Raise UnauthorizedError unless the principal may act on the resource."""
    if can_access(principal, resource):
        return
    scope = scope_of(resource)
    logger.warning(
        f"Access denied: {action}",
        extra={
            "context": {
                "user_id": principal.user_id,
                "role": principal.role.value,
                "resource": type(resource).__name__,
                "resource_location_id": scope.location_id,
                "resource_owner_member_id": scope.owner_member_id,
            }
        },
    )
    raise UnauthorizedError(
        f"You are not allowed to {action} this resource",
        context={"user_id": principal.user_id, "action": action},
    )


def require_role(principal: Principal, allowed: Iterable[Role], action: str) -> None:
    """Raise UnauthorizedError unless the principal holds one of the roles."""
    allowed = frozenset(allowed)
    if principal.role in allowed:
        return
    logger.warning(
        f"Role denied: {action}",
        extra={
            "context": {
                "user_id": principal.user_id,
                "role": principal.role.value,
                "allowed": sorted(r.value for r in allowed),
            }
        },
    )
    raise UnauthorizedError(
        f"Your role is not allowed to {action}",
        context={"user_id": principal.user_id, "role": principal.role.value},
    )


def require_location(principal: Principal, location_id: int, action: str) -> None:
    """Location-only scope check for staff operations on a whole location."""
    require_access(principal, ResourceScope(location_id), action)
