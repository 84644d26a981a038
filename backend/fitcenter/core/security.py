from dataclasses import dataclass
from typing import Any, Dict, Optional

import jwt

from fitcenter.core.config import JWT_ALGORITHM, get_jwt_secret_key
from fitcenter.core.exceptions import UnauthorizedError
from fitcenter.domain.entities import Role


@dataclass(frozen=True)
class Principal:
    """The authenticated caller, resolved once per request.

    Attributes:
        user_id: ID of the authenticated user
        role: ADMIN, EMPLOYEE or MEMBER
        location_id: Employee's location, or the member's home location
        member_id: Member profile ID, None for staff accounts
    """

    user_id: int
    role: Role
    location_id: Optional[int] = None
    member_id: Optional[int] = None

    def __post_init__(self):
        # frozen: normalise through object.__setattr__
        object.__setattr__(self, "role", Role(self.role))

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_employee(self) -> bool:
        return self.role == Role.EMPLOYEE

    @property
    def is_member(self) -> bool:
        return self.role == Role.MEMBER


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Decode and validate a JWT access token.

    Args:
        token: JWT token string to decode

    Returns:
        Decoded payload if valid, None if invalid or expired
    """
    try:
        return jwt.decode(token, get_jwt_secret_key(), algorithms=[JWT_ALGORITHM])
    except jwt.PyJWTError:
        return None


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


def principal_from_claims(claims: Dict[str, Any]) -> Principal:
    """Build a Principal from decoded token claims.

    Raises:
        UnauthorizedError: If required claims are missing or malformed
    """
    try:
        return Principal(
            user_id=int(claims["sub"]),
            role=Role(str(claims["role"]).upper()),
            location_id=_optional_int(claims.get("location_id")),
            member_id=_optional_int(claims.get("member_id")),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise UnauthorizedError(
            "Token does not identify a valid principal", context={"error": str(e)}
        ) from e


def principal_from_token(token: str) -> Principal:
    """Decode a bearer token into a Principal.

    Raises:
        UnauthorizedError: If the token is invalid, expired or incomplete
    """
    claims = decode_access_token(token)
    if claims is None:
        raise UnauthorizedError("Invalid or expired token")
    return principal_from_claims(claims)
