"""Resolves the authenticated user into the Principal every service expects."""

import logging

from fitcenter.core.exceptions import NotFoundError, UnauthorizedError
from fitcenter.core.security import Principal
from fitcenter.domain.entities import Role
from fitcenter.domain.interfaces import IMemberReader, IUserReader

logger = logging.getLogger(__name__)


class PrincipalService:
    def __init__(self, user_repo: IUserReader, member_repo: IMemberReader):
        self.user_repo = user_repo
        self.member_repo = member_repo

    def resolve(self, user_id: int) -> Principal:
        """Build the Principal for a user from the directory.

        Members carry their profile id and home location; employees their
        assigned location.

        Raises:
            NotFoundError: unknown user
            UnauthorizedError: deactivated account
        """
        user = self.user_repo.get_by_id(user_id)
        if not user:
            raise NotFoundError(f"User {user_id} not found", context={"user_id": user_id})
        if not user.is_active:
            logger.warning(
                "Inactive user attempted access", extra={"context": {"user_id": user_id}}
            )
            raise UnauthorizedError("User account is inactive", context={"user_id": user_id})

        if user.role == Role.MEMBER:
            member = self.member_repo.get_by_user_id(user.id)
            if member is None:
                return Principal(user_id=user.id, role=user.role)
            return Principal(
                user_id=user.id,
                role=user.role,
                location_id=member.location_id,
                member_id=member.id,
            )

        return Principal(user_id=user.id, role=user.role, location_id=user.location_id)
