"""Tests for case service."""

import logging
from datetime import datetime

import pytest

from clinicsplit.config import AllocationSettings, Settings
from clinicsplit.domain.case import CaseService
from clinicsplit.domain.entities import CaseStatus, DistributionMode, TreatmentType
from clinicsplit.domain.errors import (
    ConflictError,
    DependencyError,
    NotFoundError,
    ValidationError,
)


def test_create_auto_case_freezes_default_split(case_service, sample_patient):
    """Test that a new auto case stores the current default percentages."""
    case_id = case_service.create_case(sample_patient.id, gross_price=10000)
    case = case_service.get_case(case_id)

    assert case.distribution_mode == DistributionMode.AUTO
    assert case.frozen_percent_a == pytest.approx(68.42105)
    assert case.frozen_percent_b == pytest.approx(31.57895)
    assert case.fixed_amount_a == 0
    assert case.fixed_amount_b == 0
    assert case.status == CaseStatus.ACTIVE
    assert case.treatment_type == TreatmentType.BOTH


def test_frozen_split_survives_default_change(temp_db, sample_patient):
    """Test that changing the default later does not touch existing cases."""
    sixty = Settings(allocation=AllocationSettings.from_percent_a(60.0))
    case_id = CaseService(temp_db, sixty).create_case(sample_patient.id, gross_price=10000)

    summary = CaseService(temp_db).get_financial_summary(case_id)

    assert summary.allocation.control.percent_a == 60.0
    assert summary.allocation.targets.a == 6000
    assert summary.allocation.targets.b == 4000


def test_create_manual_case(case_service, sample_patient):
    """Test that passing a fixed amount makes the case manual."""
    case_id = case_service.create_case(
        sample_patient.id,
        gross_price=10000,
        fixed_amount_a=5000,
        treatment_type="endodontics",
        description="Molar 36",
    )
    case = case_service.get_case(case_id)

    assert case.distribution_mode == DistributionMode.MANUAL
    assert case.fixed_amount_a == 5000
    assert case.fixed_amount_b == 0
    assert case.frozen_percent_a is None
    assert case.treatment_type == TreatmentType.ENDODONTICS
    assert case.description == "Molar 36"


def test_create_case_with_start_date(case_service, sample_patient):
    started = datetime(2025, 12, 1, 10, 30)
    case_id = case_service.create_case(sample_patient.id, gross_price=100, created_at=started)
    assert case_service.get_case(case_id).created_at == started


def test_create_case_unknown_patient(case_service):
    with pytest.raises(NotFoundError, match="Patient 999 not found"):
        case_service.create_case(999, gross_price=1000)


def test_create_case_inactive_patient(case_service, patient_service, sample_patient):
    patient_service.deactivate_patient(sample_patient.id)
    with pytest.raises(NotFoundError):
        case_service.create_case(sample_patient.id, gross_price=1000)


@pytest.mark.parametrize("price", [-1, 10.5, "1000", None])
def test_create_case_invalid_price(case_service, sample_patient, price):
    with pytest.raises(ValidationError) as exc_info:
        case_service.create_case(sample_patient.id, gross_price=price)
    assert exc_info.value.field == "gross_price"


def test_create_case_invalid_treatment_type(case_service, sample_patient):
    with pytest.raises(ValidationError, match="Invalid treatment_type"):
        case_service.create_case(sample_patient.id, gross_price=1000, treatment_type="implant")


def test_require_case_missing(case_service):
    with pytest.raises(NotFoundError, match="Case 42 not found"):
        case_service.require_case(42)


def test_list_cases_hides_void(case_service, sample_patient):
    kept = case_service.create_case(sample_patient.id, gross_price=100)
    voided = case_service.create_case(sample_patient.id, gross_price=200)
    case_service.void_case(voided)

    assert [c.id for c in case_service.list_cases()] == [kept]
    assert {c.id for c in case_service.list_cases(include_void=True)} == {kept, voided}
    assert [c.id for c in case_service.list_cases(status="void")] == [voided]


class TestUpdateCase:
    """Tests for CaseService.update_case."""

    def test_update_price_before_payments(self, case_service, sample_patient):
        case_id = case_service.create_case(sample_patient.id, gross_price=1000)
        case = case_service.update_case(case_id, gross_price=1500)
        assert case.gross_price == 1500

    def test_financial_fields_locked_after_payment(
        self, case_service, payment_service, sample_patient
    ):
        """Test that a case with payments refuses financial edits."""
        case_id = case_service.create_case(sample_patient.id, gross_price=1000)
        assert not case_service.financials_locked(case_id)

        payment_service.record_payment(case_id, amount=100, method="cash")

        assert case_service.financials_locked(case_id)
        with pytest.raises(ConflictError, match="gross_price"):
            case_service.update_case(case_id, gross_price=2000)
        with pytest.raises(ConflictError):
            case_service.update_case(case_id, frozen_percent_a=50.0)
        assert case_service.get_case(case_id).gross_price == 1000

    def test_inception_locked_after_payment(
        self, case_service, payment_service, report_service, sample_patient
    ):
        """Test that a paid case cannot move out of an earlier closing."""
        case_id = case_service.create_case(
            sample_patient.id, gross_price=1000, created_at=datetime(2026, 3, 1, 9, 0)
        )
        payment_service.record_payment(
            case_id, amount=400, method="cash", date=datetime(2026, 3, 4, 12, 0)
        )

        with pytest.raises(ConflictError, match="Cannot change created_at of case"):
            case_service.update_case(case_id, created_at=datetime(2026, 4, 2))

        report = report_service.monthly_report(2026, 3)
        assert report.closing.case_count == 1
        assert report.distribution.to_a == 400

    def test_inception_editable_before_payment(self, case_service, sample_patient):
        case_id = case_service.create_case(
            sample_patient.id, gross_price=1000, created_at=datetime(2026, 3, 1, 9, 0)
        )
        case = case_service.update_case(case_id, created_at=datetime(2026, 2, 27, 9, 0))
        assert case.created_at == datetime(2026, 2, 27, 9, 0)

    def test_inception_cannot_pass_expenses(
        self, case_service, expense_service, sample_patient
    ):
        case_id = case_service.create_case(
            sample_patient.id, gross_price=1000, created_at=datetime(2026, 3, 1, 9, 0)
        )
        expense_service.add_expense(case_id, amount=200, date=datetime(2026, 3, 2, 9, 0))

        with pytest.raises(ValidationError) as exc_info:
            case_service.update_case(case_id, created_at=datetime(2026, 3, 3, 9, 0))
        assert exc_info.value.field == "created_at"
        assert case_service.get_case(case_id).created_at == datetime(2026, 3, 1, 9, 0)

    def test_informational_fields_editable_after_payment(
        self, case_service, payment_service, sample_patient
    ):
        case_id = case_service.create_case(sample_patient.id, gross_price=1000)
        payment_service.record_payment(case_id, amount=100, method="card")

        case = case_service.update_case(case_id, description="Premolar", treatment_type="post")

        assert case.description == "Premolar"
        assert case.treatment_type == TreatmentType.POST

    def test_fixed_amount_switches_to_manual(self, case_service, sample_patient):
        case_id = case_service.create_case(sample_patient.id, gross_price=1000)
        case = case_service.update_case(case_id, fixed_amount_a=600, fixed_amount_b=300)
        assert case.distribution_mode == DistributionMode.MANUAL

    def test_switch_to_auto_freezes_defaults(self, case_service, sample_patient):
        case_id = case_service.create_case(
            sample_patient.id, gross_price=1000, fixed_amount_a=600
        )
        case = case_service.update_case(case_id, distribution_mode="auto", fixed_amount_a=0)

        assert case.distribution_mode == DistributionMode.AUTO
        assert case.frozen_percent_a == pytest.approx(68.42105)
        assert case.frozen_percent_b == pytest.approx(31.57895)

    def test_switch_to_auto_with_explicit_percentages(self, case_service, sample_patient):
        case_id = case_service.create_case(
            sample_patient.id, gross_price=1000, fixed_amount_a=600
        )
        case = case_service.update_case(
            case_id, distribution_mode="auto", fixed_amount_a=0, frozen_percent_a=55.0
        )
        assert case.frozen_percent_a == 55.0
        assert case.frozen_percent_b is None

    def test_unknown_field(self, case_service, sample_patient):
        case_id = case_service.create_case(sample_patient.id, gross_price=1000)
        with pytest.raises(ValidationError, match="Cannot update field"):
            case_service.update_case(case_id, status="closed")

    def test_percentage_out_of_range(self, case_service, sample_patient):
        case_id = case_service.create_case(sample_patient.id, gross_price=1000)
        with pytest.raises(ValidationError) as exc_info:
            case_service.update_case(case_id, frozen_percent_a=120.0)
        assert exc_info.value.field == "frozen_percent_a"

    def test_update_missing_case(self, case_service):
        with pytest.raises(NotFoundError):
            case_service.update_case(7, description="x")


class TestStatus:
    """Tests for case lifecycle."""

    def test_close_and_reopen(self, case_service, sample_patient):
        case_id = case_service.create_case(sample_patient.id, gross_price=1000)

        closed = case_service.set_status(case_id, "closed")
        assert closed.status == CaseStatus.CLOSED
        assert closed.closed_at is not None

        reopened = case_service.set_status(case_id, CaseStatus.ACTIVE)
        assert reopened.status == CaseStatus.ACTIVE
        assert reopened.closed_at is None

    def test_void_keeps_records(self, case_service, payment_service, sample_patient):
        case_id = case_service.create_case(sample_patient.id, gross_price=1000)
        payment_id = payment_service.record_payment(case_id, amount=100, method="cash")

        voided = case_service.void_case(case_id)

        assert voided.status == CaseStatus.VOID
        assert payment_service.get_payment(payment_id) is not None

    def test_invalid_status(self, case_service, sample_patient):
        case_id = case_service.create_case(sample_patient.id, gross_price=1000)
        with pytest.raises(ValidationError, match="Invalid status"):
            case_service.set_status(case_id, "archived")


class TestDeleteCase:
    """Tests for hard delete."""

    def test_delete_disabled_by_default(self, temp_db, sample_patient):
        service = CaseService(temp_db)
        case_id = service.create_case(sample_patient.id, gross_price=1000)

        with pytest.raises(DependencyError, match="CLINICSPLIT_ALLOW_HARD_DELETE"):
            service.delete_case(case_id)
        assert service.get_case(case_id) is not None

    def test_delete_cascades(
        self, case_service, payment_service, expense_service, sample_patient
    ):
        """Test that deleting a case removes its payments and expenses."""
        case_id = case_service.create_case(sample_patient.id, gross_price=1000)
        payment_id = payment_service.record_payment(case_id, amount=100, method="cash")
        expense_id = expense_service.add_expense(case_id, amount=50)

        case_service.delete_case(case_id)

        assert case_service.get_case(case_id) is None
        assert payment_service.get_payment(payment_id) is None
        assert expense_service.get_expense(expense_id) is None

    def test_delete_missing_case(self, case_service):
        with pytest.raises(NotFoundError):
            case_service.delete_case(404)


class TestFinancialSummary:
    """Tests for the single-case summary."""

    def test_summary(self, case_service, payment_service, expense_service, sample_patient):
        case_id = case_service.create_case(
            sample_patient.id, gross_price=10000, created_at=datetime(2026, 1, 8, 9, 0)
        )
        case_service.update_case(case_id, frozen_percent_a=70.0, frozen_percent_b=30.0)
        expense_service.add_expense(case_id, amount=2000, date=datetime(2026, 1, 9))
        expense_service.add_expense(case_id, amount=300, kind="other", date=datetime(2026, 1, 9))
        second = payment_service.record_payment(
            case_id, amount=5000, method="transfer", date=datetime(2026, 1, 11)
        )
        first = payment_service.record_payment(
            case_id, amount=3000, method="cash", date=datetime(2026, 1, 10)
        )

        summary = case_service.get_financial_summary(case_id)

        assert [p.id for p in summary.payments] == [first, second]
        assert len(summary.expenses) == 2
        assert summary.allocation.covered.a == 5600
        assert summary.allocation.covered.b == 400
        assert summary.allocation.balances.payer == 2000
        assert summary.attributions[first].to_lab == 2000
        assert summary.attributions[second].to_b == 400
        assert not summary.needs_review

    def test_summary_flags_conflicting_data(self, case_service, sample_patient, caplog):
        case_id = case_service.create_case(sample_patient.id, gross_price=10000)
        case_service.update_case(case_id, fixed_amount_a=5000, distribution_mode="auto")

        with caplog.at_level(logging.WARNING, logger="clinicsplit"):
            summary = case_service.get_financial_summary(case_id)

        assert summary.needs_review
        assert summary.allocation.control.mode == DistributionMode.AUTO
        assert "both frozen percentages and fixed amounts" in caplog.text

    def test_summary_missing_case(self, case_service):
        with pytest.raises(NotFoundError):
            case_service.get_financial_summary(1)
