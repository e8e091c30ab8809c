"""Abstract database interface."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Iterable, Optional

# Import entities directly to avoid circular import through domain/__init__.py
from clinicsplit.domain.entities import (
    CaseStatus,
    Expense,
    FinancialCase,
    Patient,
    Payment,
)


class Database(ABC):
    """Abstract database interface for clinicsplit."""

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    # Patient operations
    @abstractmethod
    def create_patient(
        self,
        name: str,
        document: Optional[str] = None,
        phone: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> int:
        """Create a patient. Returns patient ID."""
        pass

    @abstractmethod
    def get_patient(self, patient_id: int) -> Optional[Patient]:
        """Get patient by ID."""
        pass

    @abstractmethod
    def list_patients(
        self, include_inactive: bool = False, search: Optional[str] = None
    ) -> list[Patient]:
        """List patients ordered by name.

        Args:
            include_inactive: Include deactivated patients
            search: Case-insensitive text matched against name, phone and
                document
        """
        pass

    @abstractmethod
    def update_patient(self, patient_id: int, changes: dict[str, Any]) -> None:
        """Update patient fields by name."""
        pass

    @abstractmethod
    def set_patient_active(self, patient_id: int, active: bool) -> None:
        """Activate or deactivate a patient."""
        pass

    # Case operations
    @abstractmethod
    def create_case(self, patient_id: int, gross_price: int, **fields: Any) -> int:
        """Create a financial case. Returns case ID.

        Extra keyword arguments are FinancialCase field names.
        """
        pass

    @abstractmethod
    def get_case(self, case_id: int) -> Optional[FinancialCase]:
        """Get case by ID."""
        pass

    @abstractmethod
    def list_cases(
        self,
        patient_id: Optional[int] = None,
        status: Optional[CaseStatus] = None,
        include_void: bool = False,
    ) -> list[FinancialCase]:
        """List cases, newest first.

        Args:
            patient_id: Optional patient filter
            status: Optional status filter (takes precedence over include_void)
            include_void: If True, void cases are listed as well
        """
        pass

    @abstractmethod
    def list_cases_started_before(self, cutoff: datetime) -> list[FinancialCase]:
        """List cases whose inception precedes cutoff, oldest first."""
        pass

    @abstractmethod
    def update_case(self, case_id: int, changes: dict[str, Any]) -> None:
        """Update case fields by name."""
        pass

    @abstractmethod
    def delete_case(self, case_id: int) -> None:
        """Delete a case together with its expenses and payments."""
        pass

    @abstractmethod
    def case_has_payments(self, case_id: int) -> bool:
        """Check whether at least one payment references the case."""
        pass

    # Expense operations
    @abstractmethod
    def create_expense(
        self,
        case_id: int,
        kind: str,
        amount: int,
        date: datetime,
        description: Optional[str] = None,
        settled: bool = False,
    ) -> int:
        """Create an expense. Returns expense ID."""
        pass

    @abstractmethod
    def get_expense(self, expense_id: int) -> Optional[Expense]:
        """Get expense by ID."""
        pass

    @abstractmethod
    def list_expenses(
        self,
        case_ids: Optional[Iterable[int]] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[Expense]:
        """List expenses ordered by date, then ID.

        Args:
            case_ids: Optional set of case IDs to restrict to
            start: Optional inclusive lower bound on date
            end: Optional exclusive upper bound on date
        """
        pass

    @abstractmethod
    def delete_expense(self, expense_id: int) -> None:
        """Delete an expense."""
        pass

    # Payment operations
    @abstractmethod
    def create_payment(
        self,
        case_id: int,
        amount: int,
        date: datetime,
        method: str,
        reference: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> int:
        """Create a payment. Returns payment ID."""
        pass

    @abstractmethod
    def get_payment(self, payment_id: int) -> Optional[Payment]:
        """Get payment by ID."""
        pass

    @abstractmethod
    def list_payments(
        self,
        case_ids: Optional[Iterable[int]] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[Payment]:
        """List payments ordered by date, then ID.

        Args:
            case_ids: Optional set of case IDs to restrict to
            start: Optional inclusive lower bound on date
            end: Optional exclusive upper bound on date
        """
        pass

    @abstractmethod
    def delete_payment(self, payment_id: int) -> None:
        """Delete a payment."""
        pass
