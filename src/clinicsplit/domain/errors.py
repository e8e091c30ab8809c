"""Shared domain error messages and error types."""

from datetime import datetime
from typing import Optional


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as editing the financials of a locked case."""


class DependencyError(DomainError):
    """Operation blocked by configuration or dependent domain data."""


class InternalInconsistencyError(DomainError):
    """Derived totals disagree with each other. Indicates a defect."""


def patient_not_found(patient_id: int) -> str:
    """Return message for missing patient."""
    return f"Patient {patient_id} not found"


def case_not_found(case_id: int) -> str:
    """Return message for missing case."""
    return f"Case {case_id} not found"


def payment_not_found(payment_id: int) -> str:
    """Return message for missing payment."""
    return f"Payment {payment_id} not found"


def expense_not_found(expense_id: int) -> str:
    """Return message for missing expense."""
    return f"Expense {expense_id} not found"


def case_financials_locked(case_id: int, fields: list[str]) -> str:
    """Return message when a case with payments gets a financial edit."""
    return (
        f"Cannot change {', '.join(fields)} of case {case_id}: "
        "it already has payments recorded"
    )


def hard_delete_disabled(case_id: int) -> str:
    """Return message when hard delete is switched off."""
    return (
        f"Cannot delete case {case_id}: hard delete is disabled. "
        "Set CLINICSPLIT_ALLOW_HARD_DELETE=1 or void the case instead."
    )


def replay_mismatch(case_id: int, bucket: str, replayed: int, covered: int) -> str:
    """Return message when per-payment replay disagrees with the allocation."""
    return (
        f"Replay of case {case_id} attributes {replayed} to {bucket} "
        f"but the allocation covers {covered}"
    )


def dated_before_case(record: str, case_id: int, created_at: datetime) -> str:
    """Return message when a payment or expense predates its case."""
    return (
        f"{record} date is before case {case_id} started "
        f"({created_at:%Y-%m-%d %H:%M})"
    )
