"""
Payment confirmation bookkeeping.

Checkout sessions are created by the payment provider integration outside
this package; it records a PENDING transaction here and, once the provider
reports success, calls confirm_payment() which turns the transaction into
a purchase valid for the paid validity window.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fitcenter.core import config
from fitcenter.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from fitcenter.db.session import transactional
from fitcenter.domain.entities import PaymentStatus, PaymentTransaction, PurchasePolicy
from fitcenter.domain.interfaces import ICatalogReader, IMemberReader, IPaymentRepository
from fitcenter.schemas.dtos import (
    PaymentPendingRequest,
    PaymentTransactionResponse,
    PurchaseCreateRequest,
    PurchaseResponse,
)
from fitcenter.services.purchase_service import PurchaseService

logger = logging.getLogger(__name__)


class PaymentService:
    def __init__(
        self,
        session: Session,
        payment_repo: IPaymentRepository,
        member_repo: IMemberReader,
        catalog_repo: ICatalogReader,
        purchase_service: PurchaseService,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.session = session
        self.payment_repo = payment_repo
        self.member_repo = member_repo
        self.catalog_repo = catalog_repo
        self.purchase_service = purchase_service
        self.clock = clock or config.now_local

    def record_pending(self, request: PaymentPendingRequest) -> PaymentTransactionResponse:
        """Register the transaction behind a freshly created checkout session."""
        request.validate()

        with transactional(self.session):
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
            if self.payment_repo.get_by_reference(request.external_reference):
                raise ValidationError(
                    "A transaction with this reference already exists",
                    context={"external_reference": request.external_reference},
                )
            try:
                transaction = self.payment_repo.create(
                    PaymentTransaction(
                        member_id=request.member_id,
                        service_id=request.service_id,
                        quantity=request.quantity,
                        amount=Decimal(request.amount),
                        currency=request.currency,
                        status=PaymentStatus.PENDING,
                        external_reference=request.external_reference,
                    )
                )
            except IntegrityError as e:
                raise ValidationError(
                    "A transaction with this reference already exists",
                    context={"external_reference": request.external_reference},
                ) from e

        logger.info(
            "Payment transaction recorded",
            extra={
                "context": {
                    "transaction_id": transaction.id,
                    "external_reference": transaction.external_reference,
                    "member_id": transaction.member_id,
                    "amount": transaction.amount,
                }
            },
        )
        return PaymentTransactionResponse.from_domain(transaction)

    def confirm_payment(
        self, external_reference: str, payment_method: str = "card"
    ) -> PurchaseResponse:
        """Mark a PENDING transaction as paid and create its purchase.

        Raises:
            NotFoundError: no transaction with this reference
            InvalidStateError: the transaction is not PENDING (already confirmed,
                failed, refunded or cancelled)
        """
        with transactional(self.session):
            transaction = self.payment_repo.get_by_reference(
                external_reference, for_update=True
            )
            if not transaction:
                raise NotFoundError(
                    "Payment transaction not found",
                    context={"external_reference": external_reference},
                )
            if transaction.status != PaymentStatus.PENDING:
                logger.warning(
                    "Payment confirmation ignored: transaction not pending",
                    extra={
                        "context": {
                            "transaction_id": transaction.id,
                            "status": transaction.status.value,
                        }
                    },
                )
                raise InvalidStateError(
                    f"Payment is already {transaction.status.value.lower()}",
                    context={
                        "transaction_id": transaction.id,
                        "status": transaction.status.value,
                    },
                )

            purchase = self.purchase_service.create_in_transaction(
                PurchaseCreateRequest(
                    member_id=transaction.member_id,
                    service_id=transaction.service_id,
                    quantity=transaction.quantity,
                    total_price=transaction.amount,
                    policy=PurchasePolicy.PAYMENT_CONFIRMED,
                )
            )
            if not self.payment_repo.mark_succeeded(
                transaction.id, purchase.id, payment_method, self.clock().date()
            ):
                raise InvalidStateError(
                    "Payment was confirmed concurrently",
                    context={"transaction_id": transaction.id},
                )

        logger.info(
            "Payment confirmed",
            extra={
                "context": {
                    "transaction_id": transaction.id,
                    "purchase_id": purchase.id,
                    "external_reference": external_reference,
                }
            },
        )
        return PurchaseResponse.from_domain(purchase)
