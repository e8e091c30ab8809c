"""Expense domain service."""

import logging
from datetime import datetime
from typing import Optional

from clinicsplit.database.base import Database
from clinicsplit.domain.entities import Expense, ExpenseKind
from clinicsplit.domain.errors import (
    NotFoundError,
    ValidationError,
    case_not_found,
    dated_before_case,
    expense_not_found,
)
from clinicsplit.domain.validation import coerce_enum, require_non_negative_int

logger = logging.getLogger(__name__)


class ExpenseService:
    """Service for recording case expenses."""

    def __init__(self, db: Database):
        """Initialize expense service.

        Args:
            db: Database instance
        """
        self.db = db

    def add_expense(
        self,
        case_id: int,
        amount: int,
        kind: ExpenseKind | str = ExpenseKind.REIMBURSABLE,
        date: Optional[datetime] = None,
        description: Optional[str] = None,
        settled: bool = False,
    ) -> int:
        """Record an expense.

        Args:
            case_id: Case the expense belongs to
            amount: Amount in minor units (>= 0)
            kind: reimbursable (enters the lab target) or other
            date: When the expense happened (defaults to now)
            description: Optional description
            settled: Whether the expense was already paid out

        Returns:
            Expense ID

        Raises:
            NotFoundError: If the case does not exist
            ValidationError: If amount or kind is invalid, or the expense is
                dated before the case started
        """
        require_non_negative_int(amount, "amount")
        kind = coerce_enum(ExpenseKind, kind, "kind")
        case = self.db.get_case(case_id)
        if case is None:
            raise NotFoundError(case_not_found(case_id))

        date = date or datetime.now()
        if date < case.created_at:
            raise ValidationError(
                dated_before_case("Expense", case_id, case.created_at), field="date"
            )

        expense_id = self.db.create_expense(
            case_id=case_id,
            kind=kind,
            amount=amount,
            date=date,
            description=description,
            settled=settled,
        )
        logger.info("Recorded %s expense %s of %s on case %s", kind.value, expense_id, amount, case_id)
        return expense_id

    def get_expense(self, expense_id: int) -> Optional[Expense]:
        """Get expense by ID."""
        return self.db.get_expense(expense_id)

    def list_expenses(self, case_id: int) -> list[Expense]:
        """List the expenses of a case by date.

        Raises:
            NotFoundError: If the case does not exist
        """
        if self.db.get_case(case_id) is None:
            raise NotFoundError(case_not_found(case_id))
        return self.db.list_expenses(case_ids=[case_id])

    def delete_expense(self, expense_id: int) -> Expense:
        """Delete an expense and return what was deleted.

        Raises:
            NotFoundError: If the expense does not exist
        """
        expense = self.db.get_expense(expense_id)
        if expense is None:
            raise NotFoundError(expense_not_found(expense_id))
        self.db.delete_expense(expense_id)
        logger.info("Deleted expense %s from case %s", expense_id, expense.case_id)
        return expense
