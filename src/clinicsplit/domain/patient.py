"""Patient domain service."""

import logging
from collections import defaultdict
from typing import Any, Optional

from clinicsplit.config import Settings
from clinicsplit.database.base import Database
from clinicsplit.domain.allocation import (
    compute_allocation,
    has_conflicting_distribution_data,
)
from clinicsplit.domain.entities import (
    Expense,
    Patient,
    PatientCaseAllocation,
    PatientSummary,
    PatientTotals,
    Payment,
)
from clinicsplit.domain.errors import NotFoundError, ValidationError, patient_not_found
from clinicsplit.domain.replay import sort_payments

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("name", "document", "phone", "notes")


def _clean_text(value: Optional[str]) -> Optional[str]:
    """Strip text; blank values are stored as None."""
    if value is None:
        return None
    value = str(value).strip()
    return value or None


class PatientService:
    """Service for managing patients."""

    def __init__(self, db: Database, settings: Optional[Settings] = None):
        """Initialize patient service.

        Args:
            db: Database instance
            settings: Application settings (defaults apply when omitted)
        """
        self.db = db
        self.settings = settings or Settings()

    def create_patient(
        self,
        name: str,
        document: Optional[str] = None,
        phone: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> int:
        """Create a new patient.

        Args:
            name: Patient name
            document: Optional identity document, to tell namesakes apart
            phone: Optional phone number
            notes: Optional free text

        Returns:
            Patient ID

        Raises:
            ValidationError: If name is empty
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Patient name is required", field="name")

        patient_id = self.db.create_patient(
            name=name, document=document, phone=phone, notes=notes
        )
        logger.info("Created patient %s (%s)", patient_id, name)
        return patient_id

    def get_patient(self, patient_id: int) -> Optional[Patient]:
        """Get patient by ID."""
        return self.db.get_patient(patient_id)

    def require_patient(self, patient_id: int) -> Patient:
        """Get patient by ID.

        Raises:
            NotFoundError: If the patient does not exist
        """
        patient = self.db.get_patient(patient_id)
        if patient is None:
            raise NotFoundError(patient_not_found(patient_id))
        return patient

    def list_patients(
        self, include_inactive: bool = False, query: Optional[str] = None
    ) -> list[Patient]:
        """List patients ordered by name.

        Args:
            include_inactive: Include deactivated patients
            query: Optional text; only patients whose name, phone or document
                contains it (ignoring case) are listed
        """
        return self.db.list_patients(
            include_inactive=include_inactive, search=_clean_text(query)
        )

    def update_patient(self, patient_id: int, **changes: Any) -> Patient:
        """Update a patient's name, document, phone or notes.

        Text is stripped. Clearing an optional field stores nothing; the
        name cannot be cleared.

        Returns:
            Updated patient

        Raises:
            NotFoundError: If the patient does not exist
            ValidationError: If a field is unknown or the name is blank
        """
        self.require_patient(patient_id)

        unknown = sorted(set(changes) - set(UPDATABLE_FIELDS))
        if unknown:
            raise ValidationError(
                f"Cannot update field(s): {', '.join(unknown)}", field=unknown[0]
            )

        updates = {name: _clean_text(value) for name, value in changes.items()}
        if "name" in updates and updates["name"] is None:
            raise ValidationError("Patient name cannot be empty", field="name")

        if updates:
            self.db.update_patient(patient_id, updates)
            logger.info("Updated patient %s: %s", patient_id, ", ".join(sorted(updates)))

        return self.require_patient(patient_id)

    def deactivate_patient(self, patient_id: int) -> None:
        """Hide a patient from listings and from new cases.

        Raises:
            NotFoundError: If the patient does not exist
        """
        self.require_patient(patient_id)
        self.db.set_patient_active(patient_id, False)
        logger.info("Deactivated patient %s", patient_id)

    def get_financial_summary(self, patient_id: int) -> PatientSummary:
        """Allocate every case of a patient that is not void and add them up.

        Cases are listed newest first. The totals cover what was collected,
        the patient's outstanding balance, and target, covered and balance
        for lab, A and B.

        Raises:
            NotFoundError: If the patient does not exist
            ValidationError: If a case has malformed stored amounts
        """
        patient = self.require_patient(patient_id)
        cases = self.db.list_cases(patient_id=patient_id, include_void=False)
        case_ids = [case.id for case in cases]

        expenses_by_case: dict[int, list[Expense]] = defaultdict(list)
        payments_by_case: dict[int, list[Payment]] = defaultdict(list)
        if case_ids:
            for expense in self.db.list_expenses(case_ids=case_ids):
                expenses_by_case[expense.case_id].append(expense)
            for payment in self.db.list_payments(case_ids=case_ids):
                payments_by_case[payment.case_id].append(payment)

        items = []
        totals: dict[str, int] = defaultdict(int)
        for case in cases:
            allocation = compute_allocation(
                case,
                expenses_by_case.get(case.id, []),
                sort_payments(payments_by_case.get(case.id, [])),
                self.settings.allocation,
            )
            needs_review = has_conflicting_distribution_data(case)
            if needs_review:
                logger.warning(
                    "Case %s stores both frozen percentages and fixed amounts; "
                    "resolved as %s",
                    case.id,
                    allocation.control.mode.value,
                )
            items.append(
                PatientCaseAllocation(
                    case=case, allocation=allocation, needs_review=needs_review
                )
            )

            totals["total_collected"] += allocation.total_collected
            totals["balance_payer"] += allocation.balances.payer
            for bucket in ("lab", "a", "b"):
                totals[f"target_{bucket}"] += getattr(allocation.targets, bucket)
                totals[f"covered_{bucket}"] += getattr(allocation.covered, bucket)
                totals[f"balance_{bucket}"] += getattr(allocation.balances, bucket)

        return PatientSummary(
            patient=patient,
            cases=tuple(items),
            totals=PatientTotals(**totals),
        )
