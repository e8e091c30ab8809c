"""Mapper functions to convert between domain models and SQLAlchemy models.

Enum-valued columns are stored as plain strings and turned back into enum
members here, so the rest of the code only ever sees domain types.
"""

from clinicsplit.domain import entities as domain
from clinicsplit.database.models import (
    Patient as ORMPatient,
    Case as ORMCase,
    Expense as ORMExpense,
    Payment as ORMPayment,
)


def patient_to_domain(orm_patient: ORMPatient) -> domain.Patient:
    """Convert SQLAlchemy Patient model to domain Patient entity."""
    return domain.Patient(
        id=orm_patient.id,
        name=orm_patient.name,
        created_at=orm_patient.created_at,
        document=orm_patient.document,
        phone=orm_patient.phone,
        notes=orm_patient.notes,
        active=bool(orm_patient.active),
    )


def case_to_domain(orm_case: ORMCase) -> domain.FinancialCase:
    """Convert SQLAlchemy Case model to domain FinancialCase entity."""
    mode = orm_case.distribution_mode
    return domain.FinancialCase(
        id=orm_case.id,
        patient_id=orm_case.patient_id,
        gross_price=orm_case.gross_price,
        created_at=orm_case.created_at,
        fixed_amount_a=orm_case.fixed_amount_a or 0,
        fixed_amount_b=orm_case.fixed_amount_b or 0,
        distribution_mode=domain.DistributionMode(mode) if mode else None,
        frozen_percent_a=orm_case.frozen_percent_a,
        frozen_percent_b=orm_case.frozen_percent_b,
        status=domain.CaseStatus(orm_case.status),
        closed_at=orm_case.closed_at,
        treatment_type=domain.TreatmentType(orm_case.treatment_type),
        description=orm_case.description,
    )


def expense_to_domain(orm_expense: ORMExpense) -> domain.Expense:
    """Convert SQLAlchemy Expense model to domain Expense entity."""
    return domain.Expense(
        id=orm_expense.id,
        case_id=orm_expense.case_id,
        kind=domain.ExpenseKind(orm_expense.kind),
        amount=orm_expense.amount,
        date=orm_expense.date,
        description=orm_expense.description,
        settled=bool(orm_expense.settled),
    )


def payment_to_domain(orm_payment: ORMPayment) -> domain.Payment:
    """Convert SQLAlchemy Payment model to domain Payment entity."""
    return domain.Payment(
        id=orm_payment.id,
        case_id=orm_payment.case_id,
        amount=orm_payment.amount,
        date=orm_payment.date,
        method=domain.PaymentMethod(orm_payment.method),
        reference=orm_payment.reference,
        notes=orm_payment.notes,
    )
