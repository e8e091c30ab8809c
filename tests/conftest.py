"""Shared pytest fixtures for clinicsplit tests."""

import logging
import os
import tempfile
from datetime import datetime

import pytest

from clinicsplit.config import Settings
from clinicsplit.database.factories import create_sqlite_database
from clinicsplit.domain.case import CaseService
from clinicsplit.domain.entities import (
    DistributionMode,
    Expense,
    ExpenseKind,
    FinancialCase,
    Payment,
    PaymentMethod,
)
from clinicsplit.domain.expense import ExpenseService
from clinicsplit.domain.patient import PatientService
from clinicsplit.domain.payment import PaymentService
from clinicsplit.domain.reports import ReportService
from clinicsplit.logging_config import LOGGER_NAME, _ClinicsplitHandler


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    db = create_sqlite_database(database_path=db_path)
    # Store the path for CLI tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture(autouse=True)
def reset_cli_logging():
    """Drop handlers the CLI installed on captured (and then closed) streams."""
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if isinstance(handler, _ClinicsplitHandler):
            logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def settings():
    """Default settings with hard delete enabled."""
    return Settings(allow_hard_delete=True)


@pytest.fixture
def patient_service(temp_db, settings):
    return PatientService(temp_db, settings)


@pytest.fixture
def case_service(temp_db, settings):
    return CaseService(temp_db, settings)


@pytest.fixture
def expense_service(temp_db):
    return ExpenseService(temp_db)


@pytest.fixture
def payment_service(temp_db):
    return PaymentService(temp_db)


@pytest.fixture
def report_service(temp_db, settings):
    return ReportService(temp_db, settings)


@pytest.fixture
def sample_patient(patient_service):
    """Create a sample patient for testing."""
    patient_id = patient_service.create_patient(name="Ana Pérez", document="30111222")
    return patient_service.get_patient(patient_id)


@pytest.fixture
def clinic(case_service, expense_service, payment_service, sample_patient):
    """Two cases with history spanning January and February 2026.

    Case 1 (auto, 70/30): lab 2000; pays 3000 in January and 5000 in February.
    Case 2 (manual, A 4000 / B 1000): other expense 300; pays 4500 in February.
    Case 3 starts in March.
    """
    first = case_service.create_case(
        sample_patient.id, gross_price=10000, created_at=datetime(2026, 1, 5, 9, 0)
    )
    case_service.update_case(first, frozen_percent_a=70.0, frozen_percent_b=30.0)
    expense_service.add_expense(first, amount=2000, date=datetime(2026, 1, 5, 10, 0))
    payment_service.record_payment(
        first, amount=3000, method="cash", date=datetime(2026, 1, 20, 12, 0)
    )
    payment_service.record_payment(
        first, amount=5000, method="transfer", date=datetime(2026, 2, 10, 10, 0)
    )

    second = case_service.create_case(
        sample_patient.id,
        gross_price=6000,
        fixed_amount_a=4000,
        fixed_amount_b=1000,
        created_at=datetime(2026, 2, 3, 9, 0),
    )
    expense_service.add_expense(
        second, amount=300, kind="other", date=datetime(2026, 2, 3, 9, 30)
    )
    payment_service.record_payment(
        second, amount=4500, method="card", date=datetime(2026, 2, 10, 15, 0)
    )

    third = case_service.create_case(
        sample_patient.id, gross_price=999, created_at=datetime(2026, 3, 1, 0, 0)
    )
    return {"first": first, "second": second, "third": third}


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()


def make_case(**overrides) -> FinancialCase:
    """Build an in-memory case for engine tests."""
    values = {
        "id": 1,
        "patient_id": 1,
        "gross_price": 10000,
        "created_at": datetime(2026, 1, 5, 9, 0),
        "distribution_mode": DistributionMode.AUTO,
    }
    values.update(overrides)
    return FinancialCase(**values)


def make_expense(amount: int, kind=ExpenseKind.REIMBURSABLE, expense_id: int = 1,
                 date: datetime = datetime(2026, 1, 5, 10, 0)) -> Expense:
    return Expense(id=expense_id, case_id=1, kind=kind, amount=amount, date=date)


def make_payment(payment_id: int, amount: int, date: datetime,
                 method=PaymentMethod.CASH) -> Payment:
    return Payment(id=payment_id, case_id=1, amount=amount, date=date, method=method)
