"""
Purchase repository implementation.

remaining_uses is never read-modified-written from Python: both counter
moves are single conditional UPDATE statements whose WHERE clause carries
the bound check, so two concurrent bookings cannot both take the last use.
"""

from typing import List, Optional

from sqlalchemy import case

from fitcenter.db.base import Purchase as DbPurchase
from fitcenter.domain.entities import Purchase as DomainPurchase
from fitcenter.domain.entities import PurchaseStatus
from fitcenter.domain.interfaces import IPurchaseRepository


class PurchaseRepository(IPurchaseRepository):
    """Repository for Purchase persistence operations."""

    def __init__(self, db_session) -> None:
        self.db = db_session

    def get_by_id(
        self, purchase_id: int, for_update: bool = False
    ) -> Optional[DomainPurchase]:
        query = self.db.query(DbPurchase).filter(DbPurchase.id == purchase_id)
        if for_update:
            query = query.with_for_update()
        db_purchase = query.populate_existing().first()
        return self._to_domain(db_purchase) if db_purchase else None

    def list_by_member(self, member_id: int) -> List[DomainPurchase]:
        db_purchases = (
            self.db.query(DbPurchase)
            .filter(DbPurchase.member_id == member_id)
            .order_by(DbPurchase.purchase_date.desc(), DbPurchase.id.desc())
            .all()
        )
        return [self._to_domain(p) for p in db_purchases]

    def list_by_member_and_service(
        self, member_id: int, service_id: int
    ) -> List[DomainPurchase]:
        db_purchases = (
            self.db.query(DbPurchase)
            .filter(
                DbPurchase.member_id == member_id,
                DbPurchase.service_id == service_id,
            )
            .order_by(DbPurchase.purchase_date.desc(), DbPurchase.id.desc())
            .all()
        )
        return [self._to_domain(p) for p in db_purchases]

    def list_by_member_and_status(
        self, member_id: int, status: PurchaseStatus
    ) -> List[DomainPurchase]:
        db_purchases = (
            self.db.query(DbPurchase)
            .filter(
                DbPurchase.member_id == member_id,
                DbPurchase.status == PurchaseStatus(status).value,
            )
            .order_by(DbPurchase.purchase_date.desc(), DbPurchase.id.desc())
            .all()
        )
        return [self._to_domain(p) for p in db_purchases]

    def create(self, purchase: DomainPurchase) -> DomainPurchase:
        db_purchase = DbPurchase(
            member_id=purchase.member_id,
            service_id=purchase.service_id,
            quantity=purchase.quantity,
            remaining_uses=purchase.remaining_uses,
            total_price=purchase.total_price,
            purchase_date=purchase.purchase_date,
            expiry_date=purchase.expiry_date,
            status=purchase.status.value,
        )
        self.db.add(db_purchase)
        self.db.flush()
        self.db.refresh(db_purchase)
        return self._to_domain(db_purchase)

    def decrement_remaining_uses(self, purchase_id: int) -> bool:
        updated = (
            self.db.query(DbPurchase)
            .filter(DbPurchase.id == purchase_id, DbPurchase.remaining_uses > 0)
            .update(
                {
                    DbPurchase.remaining_uses: DbPurchase.remaining_uses - 1,
                    DbPurchase.status: case(
                        (
                            DbPurchase.remaining_uses == 1,
                            PurchaseStatus.USED.value,
                        ),
                        else_=DbPurchase.status,
                    ),
                },
                synchronize_session=False,
            )
        )
        return updated == 1

    def increment_remaining_uses(self, purchase_id: int) -> bool:
        updated = (
            self.db.query(DbPurchase)
            .filter(
                DbPurchase.id == purchase_id,
                DbPurchase.remaining_uses < DbPurchase.quantity,
            )
            .update(
                {
                    DbPurchase.remaining_uses: DbPurchase.remaining_uses + 1,
                    DbPurchase.status: case(
                        (
                            DbPurchase.status == PurchaseStatus.USED.value,
                            PurchaseStatus.ACTIVE.value,
                        ),
                        else_=DbPurchase.status,
                    ),
                },
                synchronize_session=False,
            )
        )
        return updated == 1

    def _to_domain(self, db_purchase: DbPurchase) -> DomainPurchase:
        """Convert database model to domain entity."""
        return DomainPurchase(
            id=db_purchase.id,
            member_id=db_purchase.member_id,
            service_id=db_purchase.service_id,
            quantity=db_purchase.quantity,
            remaining_uses=db_purchase.remaining_uses,
            total_price=db_purchase.total_price,
            purchase_date=db_purchase.purchase_date,
            expiry_date=db_purchase.expiry_date,
            status=db_purchase.status,
            created_at=db_purchase.created_at,
            updated_at=db_purchase.updated_at,
        )
