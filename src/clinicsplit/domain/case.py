"""Financial case domain service.

This is the write path for cases. It owns two rules the allocation engine
relies on but never checks itself:

- auto-mode cases get their percentage split frozen when they are created,
  so later changes to the default never touch them;
- once a payment references a case, its financial fields are locked.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from clinicsplit.config import Settings
from clinicsplit.database.base import Database
from clinicsplit.domain.allocation import (
    compute_allocation,
    has_conflicting_distribution_data,
    has_frozen_percentages,
)
from clinicsplit.domain.entities import (
    CaseStatus,
    CaseSummary,
    DistributionMode,
    FinancialCase,
    TreatmentType,
)
from clinicsplit.domain.errors import (
    ConflictError,
    DependencyError,
    NotFoundError,
    ValidationError,
    case_financials_locked,
    case_not_found,
    hard_delete_disabled,
    patient_not_found,
)
from clinicsplit.domain.replay import replay_waterfall, sort_payments, verify_replay
from clinicsplit.domain.validation import (
    coerce_enum,
    require_non_negative_int,
    require_percent,
)

logger = logging.getLogger(__name__)

# Fields that feed the allocation and freeze once a payment exists
FINANCIAL_FIELDS = (
    "gross_price",
    "fixed_amount_a",
    "fixed_amount_b",
    "distribution_mode",
    "frozen_percent_a",
    "frozen_percent_b",
)

# Inception decides which closings include the case
LOCKED_FIELDS = FINANCIAL_FIELDS + ("created_at",)

EDITABLE_FIELDS = LOCKED_FIELDS + (
    "treatment_type",
    "description",
)


class CaseService:
    """Service for managing financial cases."""

    def __init__(self, db: Database, settings: Optional[Settings] = None):
        """Initialize case service.

        Args:
            db: Database instance
            settings: Application settings (defaults apply when omitted)
        """
        self.db = db
        self.settings = settings or Settings()

    def create_case(
        self,
        patient_id: int,
        gross_price: int,
        fixed_amount_a: Optional[int] = None,
        fixed_amount_b: Optional[int] = None,
        treatment_type: TreatmentType | str = TreatmentType.BOTH,
        description: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> int:
        """Create a case.

        Passing either fixed amount makes the case manual. Otherwise the case
        is auto and the current default percentages are frozen on it.

        Args:
            patient_id: Owning patient
            gross_price: Price charged to the patient
            fixed_amount_a: Optional fixed amount owed to A
            fixed_amount_b: Optional fixed amount owed to B
            treatment_type: Informational treatment type
            description: Optional description
            created_at: Inception timestamp (defaults to now)

        Returns:
            Case ID

        Raises:
            NotFoundError: If the patient does not exist or is inactive
            ValidationError: If an amount is not a non-negative integer
        """
        patient = self.db.get_patient(patient_id)
        if patient is None or not patient.active:
            raise NotFoundError(patient_not_found(patient_id))

        require_non_negative_int(gross_price, "gross_price")
        if fixed_amount_a is not None:
            require_non_negative_int(fixed_amount_a, "fixed_amount_a")
        if fixed_amount_b is not None:
            require_non_negative_int(fixed_amount_b, "fixed_amount_b")

        is_manual = fixed_amount_a is not None or fixed_amount_b is not None
        fields: dict[str, Any] = {
            "fixed_amount_a": fixed_amount_a or 0,
            "fixed_amount_b": fixed_amount_b or 0,
            "treatment_type": coerce_enum(TreatmentType, treatment_type, "treatment_type"),
            "description": description,
            "created_at": created_at,
        }
        if is_manual:
            fields["distribution_mode"] = DistributionMode.MANUAL
        else:
            fields.update(self._frozen_default_split())

        case_id = self.db.create_case(patient_id=patient_id, gross_price=gross_price, **fields)
        logger.info(
            "Created case %s for patient %s (%s mode)",
            case_id,
            patient_id,
            "manual" if is_manual else "auto",
        )
        return case_id

    def _frozen_default_split(self) -> dict[str, Any]:
        allocation = self.settings.allocation
        return {
            "distribution_mode": DistributionMode.AUTO,
            "frozen_percent_a": allocation.default_percent_a,
            "frozen_percent_b": allocation.default_percent_b,
        }

    def get_case(self, case_id: int) -> Optional[FinancialCase]:
        """Get case by ID."""
        return self.db.get_case(case_id)

    def require_case(self, case_id: int) -> FinancialCase:
        """Get case by ID.

        Raises:
            NotFoundError: If the case does not exist
        """
        case = self.db.get_case(case_id)
        if case is None:
            raise NotFoundError(case_not_found(case_id))
        return case

    def list_cases(
        self,
        patient_id: Optional[int] = None,
        status: Optional[CaseStatus | str] = None,
        include_void: bool = False,
    ) -> list[FinancialCase]:
        """List cases, newest first. Void cases are hidden unless asked for."""
        if status is not None:
            status = coerce_enum(CaseStatus, status, "status")
        return self.db.list_cases(
            patient_id=patient_id, status=status, include_void=include_void
        )

    def financials_locked(self, case_id: int) -> bool:
        """Return True if the case's financial fields can no longer change."""
        return self.db.case_has_payments(case_id)

    def update_case(self, case_id: int, **changes: Any) -> FinancialCase:
        """Update case fields.

        Sending a fixed amount without a mode switches the case to manual.
        Switching a case to auto without percentages freezes the current
        defaults on it.

        Args:
            case_id: Case to update
            **changes: Field values keyed by FinancialCase field name

        Returns:
            Updated case

        Raises:
            NotFoundError: If the case does not exist
            ValidationError: If a field is unknown or a value is invalid
            ConflictError: If a financial field or created_at changes on a case
                with payments
        """
        case = self.require_case(case_id)

        unknown = sorted(set(changes) - set(EDITABLE_FIELDS))
        if unknown:
            raise ValidationError(
                f"Cannot update field(s): {', '.join(unknown)}", field=unknown[0]
            )

        updates = self._validate_changes(changes)

        locked = [name for name in LOCKED_FIELDS if name in updates]
        if locked and self.financials_locked(case_id):
            raise ConflictError(case_financials_locked(case_id, locked))

        if "created_at" in updates:
            self._check_inception(case_id, updates["created_at"])

        sent_fixed = "fixed_amount_a" in updates or "fixed_amount_b" in updates
        if sent_fixed and "distribution_mode" not in updates:
            updates["distribution_mode"] = DistributionMode.MANUAL

        if updates.get("distribution_mode") == DistributionMode.AUTO:
            sent_percent = "frozen_percent_a" in updates or "frozen_percent_b" in updates
            if not sent_percent and not has_frozen_percentages(case):
                updates.update(self._frozen_default_split())

        if updates:
            self.db.update_case(case_id, updates)
            logger.info("Updated case %s: %s", case_id, ", ".join(sorted(updates)))

        return self.require_case(case_id)

    def _check_inception(self, case_id: int, created_at: datetime) -> None:
        expenses = self.db.list_expenses(case_ids=[case_id], end=created_at)
        if expenses:
            raise ValidationError(
                f"Cannot move case {case_id} to {created_at:%Y-%m-%d %H:%M}: "
                f"expense {expenses[0].id} is dated earlier",
                field="created_at",
            )

    def _validate_changes(self, changes: dict[str, Any]) -> dict[str, Any]:
        updates: dict[str, Any] = {}
        for name, value in changes.items():
            if name in ("gross_price", "fixed_amount_a", "fixed_amount_b"):
                updates[name] = require_non_negative_int(value, name)
            elif name in ("frozen_percent_a", "frozen_percent_b"):
                updates[name] = require_percent(value, name)
            elif name == "distribution_mode":
                updates[name] = coerce_enum(DistributionMode, value, name)
            elif name == "treatment_type":
                updates[name] = coerce_enum(TreatmentType, value, name)
            elif name == "created_at":
                if not isinstance(value, datetime):
                    raise ValidationError("created_at must be a datetime", field=name)
                updates[name] = value
            else:
                updates[name] = value
        return updates

    def set_status(self, case_id: int, status: CaseStatus | str) -> FinancialCase:
        """Move a case to another lifecycle state.

        Closing or voiding stamps closed_at; reactivating clears it.

        Raises:
            NotFoundError: If the case does not exist
            ValidationError: If status is unknown
        """
        status = coerce_enum(CaseStatus, status, "status")
        case = self.require_case(case_id)
        if case.status == status:
            return case

        closed_at = None if status == CaseStatus.ACTIVE else datetime.now()
        self.db.update_case(case_id, {"status": status, "closed_at": closed_at})
        logger.info("Case %s is now %s", case_id, status.value)
        return self.require_case(case_id)

    def void_case(self, case_id: int) -> FinancialCase:
        """Void a case, keeping its records."""
        return self.set_status(case_id, CaseStatus.VOID)

    def delete_case(self, case_id: int) -> None:
        """Delete a case and all its expenses and payments.

        Raises:
            NotFoundError: If the case does not exist
            DependencyError: If hard delete is disabled in settings
        """
        self.require_case(case_id)
        if not self.settings.allow_hard_delete:
            raise DependencyError(hard_delete_disabled(case_id))
        self.db.delete_case(case_id)
        logger.warning("Deleted case %s with its expenses and payments", case_id)

    def get_financial_summary(self, case_id: int) -> CaseSummary:
        """Compute the current allocation of one case.

        Raises:
            NotFoundError: If the case does not exist
            ValidationError: If stored amounts are malformed
        """
        case = self.require_case(case_id)
        payments = sort_payments(self.db.list_payments(case_ids=[case_id]))
        expenses = self.db.list_expenses(case_ids=[case_id])

        allocation = compute_allocation(case, expenses, payments, self.settings.allocation)
        attributions = replay_waterfall(payments, allocation.targets)
        verify_replay(case, allocation, attributions)

        needs_review = has_conflicting_distribution_data(case)
        if needs_review:
            logger.warning(
                "Case %s stores both frozen percentages and fixed amounts; "
                "resolved as %s",
                case_id,
                allocation.control.mode.value,
            )

        return CaseSummary(
            case=case,
            payments=tuple(payments),
            expenses=tuple(expenses),
            allocation=allocation,
            attributions=attributions,
            needs_review=needs_review,
        )
