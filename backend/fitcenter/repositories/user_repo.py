"""
User repository implementation following SOLID principles.
"""

from typing import Optional

from fitcenter.db.base import User as DbUser
from fitcenter.domain.entities import User as DomainUser
from fitcenter.domain.interfaces import IUserReader


class UserRepository(IUserReader):
    """Repository for User lookups."""

    def __init__(self, db_session) -> None:
        self.db = db_session

    def get_by_id(self, user_id: int) -> Optional[DomainUser]:
        db_user = self.db.query(DbUser).filter_by(id=user_id).first()
        return self._to_domain(db_user) if db_user else None

    def get_by_email(self, email: str) -> Optional[DomainUser]:
        db_user = self.db.query(DbUser).filter_by(email=email).first()
        return self._to_domain(db_user) if db_user else None

    def _to_domain(self, db_user: DbUser) -> DomainUser:
        """Convert database model to domain entity."""
        return DomainUser(
            id=db_user.id,
            email=db_user.email,
            name=db_user.name or "",
            role=db_user.role,
            location_id=db_user.location_id,
            is_active=db_user.active_flag,
        )
