"""Payment transaction repository."""

from datetime import date
from typing import Optional

from fitcenter.db.base import PaymentTransaction as DbPaymentTransaction
from fitcenter.domain.entities import PaymentStatus
from fitcenter.domain.entities import PaymentTransaction as DomainPaymentTransaction
from fitcenter.domain.interfaces import IPaymentRepository


class PaymentRepository(IPaymentRepository):
    """Repository for PaymentTransaction model operations."""

    def __init__(self, db_session) -> None:
        """
        Initialize the repository with database session.

        Args:
            db_session: SQLAlchemy database session
        """
        self.db = db_session

    def create(
        self, transaction: DomainPaymentTransaction
    ) -> DomainPaymentTransaction:
        """
        Create a new payment transaction record.

        Args:
            transaction: Domain transaction to persist

        Returns:
            The persisted transaction with its ID
        """
        db_transaction = DbPaymentTransaction(
            member_id=transaction.member_id,
            service_id=transaction.service_id,
            quantity=transaction.quantity,
            amount=transaction.amount,
            currency=transaction.currency,
            status=transaction.status.value,
            external_reference=transaction.external_reference,
            payment_method=transaction.payment_method,
            payment_date=transaction.payment_date,
            purchase_id=transaction.purchase_id,
        )
        self.db.add(db_transaction)
        self.db.flush()
        self.db.refresh(db_transaction)
        return self._to_domain(db_transaction)

    def get_by_reference(
        self, external_reference: str, for_update: bool = False
    ) -> Optional[DomainPaymentTransaction]:
        """
        Get a transaction by its checkout session reference.

        Args:
            external_reference: Reference issued by the payment provider
            for_update: Lock the row for the rest of the transaction

        Returns:
            Transaction or None if not found
        """
        query = self.db.query(DbPaymentTransaction).filter(
            DbPaymentTransaction.external_reference == external_reference
        )
        if for_update:
            query = query.with_for_update()
        db_transaction = query.populate_existing().first()
        return self._to_domain(db_transaction) if db_transaction else None

    def mark_succeeded(
        self,
        transaction_id: int,
        purchase_id: int,
        payment_method: str,
        payment_date: date,
    ) -> bool:
        updated = (
            self.db.query(DbPaymentTransaction)
            .filter(
                DbPaymentTransaction.id == transaction_id,
                DbPaymentTransaction.status == PaymentStatus.PENDING.value,
            )
            .update(
                {
                    DbPaymentTransaction.status: PaymentStatus.SUCCESS.value,
                    DbPaymentTransaction.purchase_id: purchase_id,
                    DbPaymentTransaction.payment_method: payment_method,
                    DbPaymentTransaction.payment_date: payment_date,
                },
                synchronize_session=False,
            )
        )
        return updated == 1

    def _to_domain(
        self, db_transaction: DbPaymentTransaction
    ) -> DomainPaymentTransaction:
        return DomainPaymentTransaction(
            id=db_transaction.id,
            member_id=db_transaction.member_id,
            service_id=db_transaction.service_id,
            quantity=db_transaction.quantity,
            amount=db_transaction.amount,
            currency=db_transaction.currency,
            status=db_transaction.status,
            external_reference=db_transaction.external_reference,
            payment_method=db_transaction.payment_method,
            payment_date=db_transaction.payment_date,
            purchase_id=db_transaction.purchase_id,
            created_at=db_transaction.created_at,
        )
