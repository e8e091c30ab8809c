"""Payment domain service.

Payments cannot be edited once recorded; a wrong payment is deleted and
entered again.
"""

import logging
from datetime import datetime
from typing import Optional

from clinicsplit.database.base import Database
from clinicsplit.domain.entities import Payment, PaymentMethod
from clinicsplit.domain.errors import (
    NotFoundError,
    ValidationError,
    case_not_found,
    dated_before_case,
    payment_not_found,
)
from clinicsplit.domain.replay import sort_payments
from clinicsplit.domain.validation import coerce_enum, require_positive_int

logger = logging.getLogger(__name__)


class PaymentService:
    """Service for recording payments."""

    def __init__(self, db: Database):
        """Initialize payment service.

        Args:
            db: Database instance
        """
        self.db = db

    def record_payment(
        self,
        case_id: int,
        amount: int,
        method: PaymentMethod | str,
        date: Optional[datetime] = None,
        reference: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> int:
        """Record a payment collected for a case.

        The first payment locks the case's financial fields.

        Args:
            case_id: Case being paid
            amount: Amount in minor units (> 0)
            method: cash, transfer, card or other
            date: When the money was collected (defaults to now)
            reference: Optional receipt reference
            notes: Optional notes

        Returns:
            Payment ID

        Raises:
            NotFoundError: If the case does not exist
            ValidationError: If amount or method is invalid, or the payment
                is dated before the case started
        """
        require_positive_int(amount, "amount")
        method = coerce_enum(PaymentMethod, method, "method")
        case = self.db.get_case(case_id)
        if case is None:
            raise NotFoundError(case_not_found(case_id))

        date = date or datetime.now()
        if date < case.created_at:
            raise ValidationError(
                dated_before_case("Payment", case_id, case.created_at), field="date"
            )

        payment_id = self.db.create_payment(
            case_id=case_id,
            amount=amount,
            date=date,
            method=method,
            reference=reference,
            notes=notes,
        )
        logger.info("Recorded payment %s of %s (%s) on case %s", payment_id, amount, method.value, case_id)
        return payment_id

    def get_payment(self, payment_id: int) -> Optional[Payment]:
        """Get payment by ID."""
        return self.db.get_payment(payment_id)

    def list_payments(self, case_id: int) -> list[Payment]:
        """List the payments of a case in waterfall order.

        Raises:
            NotFoundError: If the case does not exist
        """
        if self.db.get_case(case_id) is None:
            raise NotFoundError(case_not_found(case_id))
        return sort_payments(self.db.list_payments(case_ids=[case_id]))

    def delete_payment(self, payment_id: int) -> Payment:
        """Delete a payment and return what was deleted.

        Raises:
            NotFoundError: If the payment does not exist
        """
        payment = self.db.get_payment(payment_id)
        if payment is None:
            raise NotFoundError(payment_not_found(payment_id))
        self.db.delete_payment(payment_id)
        logger.info("Deleted payment %s from case %s", payment_id, payment.case_id)
        return payment
