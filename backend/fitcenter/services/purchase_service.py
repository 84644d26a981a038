"""
Purchase (entitlement ledger) service.

A purchase grants `quantity` uses of one service. Uses are taken by
reservations and given back when a reservation releases its slot; both
moves are guarded updates in the repository, so the counter stays within
0..quantity under concurrency.
"""

import calendar
import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from fitcenter.core import config
from fitcenter.core.config import BookingPolicy
from fitcenter.core.exceptions import InvalidStateError, NotFoundError
from fitcenter.core.security import Principal
from fitcenter.db.session import transactional
from fitcenter.domain.entities import Purchase as DomainPurchase
from fitcenter.domain.entities import PurchasePolicy, PurchaseStatus
from fitcenter.domain.interfaces import (
    ICatalogReader,
    IMemberReader,
    IPurchaseRepository,
)
from fitcenter.schemas.dtos import PurchaseCreateRequest, PurchaseResponse

logger = logging.getLogger(__name__)


def add_months(start: date, months: int) -> date:
    """Calendar month arithmetic, clamping to the last day of short months."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


class PurchaseService:
    """Application service for the entitlement ledger."""

    def __init__(
        self,
        session: Session,
        purchase_repo: IPurchaseRepository,
        member_repo: IMemberReader,
        catalog_repo: ICatalogReader,
        policy: Optional[BookingPolicy] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.session = session
        self.purchase_repo = purchase_repo
        self.member_repo = member_repo
        self.catalog_repo = catalog_repo
        self.policy = policy or config.BOOKING_POLICY
        self.clock = clock or config.now_local

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_purchase(
        self,
        member_id: int,
        service_id: int,
        quantity: int,
        total_price: Decimal,
        policy: PurchasePolicy = PurchasePolicy.MANUAL,
    ) -> PurchaseResponse:
        """Grant a new purchase with all uses remaining.

        Raises:
            ValidationError: quantity < 1 or negative price
            NotFoundError: member or service does not exist
        """
        request = PurchaseCreateRequest(
            member_id=member_id,
            service_id=service_id,
            quantity=quantity,
            total_price=total_price,
            policy=policy,
        )
        with transactional(self.session):
            purchase = self.create_in_transaction(request)
        return PurchaseResponse.from_domain(purchase)

    def create_in_transaction(self, request: PurchaseCreateRequest) -> DomainPurchase:
        """Create a purchase inside the caller's transaction (no commit)."""
        request.validate()

        if not self.member_repo.get_by_id(request.member_id):
            raise NotFoundError(
                f"Member {request.member_id} not found",
                context={"member_id": request.member_id},
            )
        if not self.catalog_repo.get_service(request.service_id):
            raise NotFoundError(
                f"Service {request.service_id} not found",
                context={"service_id": request.service_id},
            )

        purchase_date = self.clock().date()
        purchase = DomainPurchase(
            member_id=request.member_id,
            service_id=request.service_id,
            quantity=request.quantity,
            remaining_uses=request.quantity,
            total_price=Decimal(request.total_price),
            purchase_date=purchase_date,
            expiry_date=self.expiry_for(purchase_date, request.policy),
            status=PurchaseStatus.ACTIVE,
        )
        created = self.purchase_repo.create(purchase)
        logger.info(
            "Purchase created",
            extra={
                "context": {
                    "purchase_id": created.id,
                    "member_id": created.member_id,
                    "service_id": created.service_id,
                    "quantity": created.quantity,
                    "policy": request.policy.value,
                    "expiry_date": created.expiry_date,
                }
            },
        )
        return created

    def expiry_for(self, purchase_date: date, policy: PurchasePolicy) -> date:
        if PurchasePolicy(policy) == PurchasePolicy.PAYMENT_CONFIRMED:
            return add_months(purchase_date, self.policy.paid_purchase_validity_months)
        return purchase_date + timedelta(days=self.policy.manual_purchase_validity_days)

    def use_one_session(self, purchase_id: int) -> PurchaseResponse:
        """Consume one use of the purchase.

        Raises:
            NotFoundError: purchase does not exist
            InvalidStateError: no uses remain
        """
        with transactional(self.session):
            self.take_use(purchase_id)
            purchase = self.purchase_repo.get_by_id(purchase_id)
        return PurchaseResponse.from_domain(purchase)

    def refund_one_session(self, purchase_id: int) -> PurchaseResponse:
        """Give one use back, never beyond the purchased quantity."""
        with transactional(self.session):
            self._get_or_404(purchase_id, for_update=True)
            self.give_back_use(purchase_id, reason="manual refund")
            purchase = self.purchase_repo.get_by_id(purchase_id)
        return PurchaseResponse.from_domain(purchase)

    def take_use(self, purchase_id: int) -> None:
        """Decrement inside the caller's transaction."""
        purchase = self._get_or_404(purchase_id, for_update=True)
        if purchase.remaining_uses <= 0 or not self.purchase_repo.decrement_remaining_uses(
            purchase_id
        ):
            logger.warning(
                "No remaining uses on purchase",
                extra={"context": {"purchase_id": purchase_id}},
            )
            raise InvalidStateError(
                "No remaining sessions available for this purchase",
                context={"purchase_id": purchase_id},
            )
        logger.info(
            "Purchase use consumed",
            extra={
                "context": {
                    "purchase_id": purchase_id,
                    "remaining_uses": purchase.remaining_uses - 1,
                }
            },
        )

    def give_back_use(self, purchase_id: int, reason: str) -> bool:
        """Increment inside the caller's transaction.

        Returns False, leaving the counter untouched, when the purchase is
        already at full quantity; that state means a use was refunded twice.
        """
        if self.purchase_repo.increment_remaining_uses(purchase_id):
            logger.info(
                "Purchase use refunded",
                extra={"context": {"purchase_id": purchase_id, "reason": reason}},
            )
            return True
        logger.error(
            "Refund refused: purchase already at full quantity",
            extra={"context": {"purchase_id": purchase_id, "reason": reason}},
        )
        return False

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_purchase(self, purchase_id: int) -> PurchaseResponse:
        return PurchaseResponse.from_domain(self._get_or_404(purchase_id))

    def list_for_member(self, member_id: int) -> List[PurchaseResponse]:
        return self._responses(self.purchase_repo.list_by_member(member_id))

    def list_for_member_and_service(
        self, member_id: int, service_id: int
    ) -> List[PurchaseResponse]:
        return self._responses(
            self.purchase_repo.list_by_member_and_service(member_id, service_id)
        )

    def list_for_member_by_status(
        self, member_id: int, status: PurchaseStatus
    ) -> List[PurchaseResponse]:
        return self._responses(
            self.purchase_repo.list_by_member_and_status(member_id, status)
        )

    def list_active_for_member(self, member_id: int) -> List[PurchaseResponse]:
        """ACTIVE purchases that still have uses left."""
        purchases = self.purchase_repo.list_by_member_and_status(
            member_id, PurchaseStatus.ACTIVE
        )
        return self._responses(p for p in purchases if p.remaining_uses > 0)

    def list_current_member_purchases(
        self, principal: Principal
    ) -> List[PurchaseResponse]:
        member = self._member_of(principal)
        if member is None:
            return []
        return self.list_for_member(member.id)

    def list_current_member_active_purchases(
        self, principal: Principal
    ) -> List[PurchaseResponse]:
        member = self._member_of(principal)
        if member is None:
            return []
        return self.list_active_for_member(member.id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _member_of(self, principal: Principal):
        # member_id is fixed when the principal is resolved
        if principal.member_id is None:
            return None
        return self.member_repo.get_by_id(principal.member_id)

    def _get_or_404(self, purchase_id: int, for_update: bool = False) -> DomainPurchase:
        purchase = self.purchase_repo.get_by_id(purchase_id, for_update=for_update)
        if not purchase:
            raise NotFoundError(
                f"Purchase {purchase_id} not found",
                context={"purchase_id": purchase_id},
            )
        return purchase

    def _responses(self, purchases) -> List[PurchaseResponse]:
        return [PurchaseResponse.from_domain(p) for p in purchases]
