"""Integration tests for turning a confirmed payment into a purchase."""

from datetime import date
from decimal import Decimal

import pytest

from fitcenter.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from fitcenter.db import base as models
from fitcenter.schemas.dtos import PaymentPendingRequest


def pending(seed, reference="cs_test_001", quantity=10):
    return PaymentPendingRequest(
        member_id=seed.anna,
        service_id=seed.yoga,
        quantity=quantity,
        amount=Decimal("120.00"),
        external_reference=reference,
    )


@pytest.mark.integration
@pytest.mark.purchase
class TestPaymentConfirmation:
    def test_confirm_creates_paid_purchase(self, booking, seed, fetch, db_session):
        transaction = booking.payments.record_pending(pending(seed))
        assert transaction.status == "PENDING"

        purchase = booking.payments.confirm_payment("cs_test_001")

        assert purchase.member_id == seed.anna
        assert purchase.quantity == purchase.remaining_uses == 10
        assert purchase.purchase_date == date(2030, 1, 15)
        assert purchase.expiry_date == date(2031, 1, 15)

        stored = fetch(models.PaymentTransaction, transaction.id)
        assert stored.status == "SUCCESS"
        assert stored.purchase_id == purchase.id
        assert stored.payment_method == "card"
        assert stored.payment_date == date(2030, 1, 15)

    def test_second_confirmation_is_refused(self, booking, seed, db_session):
        booking.payments.record_pending(pending(seed))
        booking.payments.confirm_payment("cs_test_001")

        with pytest.raises(InvalidStateError, match="already success"):
            booking.payments.confirm_payment("cs_test_001")

        purchases = (
            db_session.query(models.Purchase)
            .filter(models.Purchase.member_id == seed.anna)
            .count()
        )
        # four seeded purchases plus the paid one
        assert purchases == 5

    def test_unknown_reference(self, booking, seed):
        with pytest.raises(NotFoundError):
            booking.payments.confirm_payment("cs_missing")

    def test_duplicate_reference(self, booking, seed):
        booking.payments.record_pending(pending(seed))
        with pytest.raises(ValidationError, match="already exists"):
            booking.payments.record_pending(pending(seed, quantity=1))

    def test_manual_grant_uses_day_window(self, booking, seed):
        purchase = booking.purchases.create_purchase(
            seed.ben, seed.personal, 3, Decimal("120.00")
        )
        assert purchase.expiry_date == date(2030, 2, 14)

    def test_use_and_refund_round_trip(self, booking, seed):
        purchase = booking.purchases.create_purchase(seed.ben, seed.personal, 1, Decimal("40"))

        used = booking.purchases.use_one_session(purchase.id)
        assert (used.remaining_uses, used.status) == (0, "USED")
        with pytest.raises(InvalidStateError):
            booking.purchases.use_one_session(purchase.id)

        refunded = booking.purchases.refund_one_session(purchase.id)
        assert (refunded.remaining_uses, refunded.status) == (1, "ACTIVE")

        clamped = booking.purchases.refund_one_session(purchase.id)
        assert clamped.remaining_uses == 1
