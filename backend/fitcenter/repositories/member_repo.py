"""Member repository implementation."""

from typing import Optional

from fitcenter.db.base import Member as DbMember
from fitcenter.domain.entities import Member as DomainMember
from fitcenter.domain.interfaces import IMemberReader


class MemberRepository(IMemberReader):
    def __init__(self, db_session) -> None:
        self.db = db_session

    def get_by_id(self, member_id: int) -> Optional[DomainMember]:
        db_member = self.db.query(DbMember).filter_by(id=member_id).first()
        return self._to_domain(db_member) if db_member else None

    def get_by_user_id(self, user_id: int) -> Optional[DomainMember]:
        db_member = self.db.query(DbMember).filter_by(user_id=user_id).first()
        return self._to_domain(db_member) if db_member else None

    def _to_domain(self, db_member: DbMember) -> DomainMember:
        return DomainMember(
            id=db_member.id,
            user_id=db_member.user_id,
            location_id=db_member.location_id,
            first_name=db_member.first_name or "",
            last_name=db_member.last_name or "",
            email=db_member.email or "",
            phone=db_member.phone or "",
            membership_status=db_member.membership_status,
            membership_start_date=db_member.membership_start_date,
            membership_end_date=db_member.membership_end_date,
            created_at=db_member.created_at,
        )
