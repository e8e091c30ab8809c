"""Domain model entities for clinicsplit.

These are pure data classes representing business concepts, independent of
database schema. Money is always an integer number of minor currency units.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class DistributionMode(str, Enum):
    """How the A/B targets of a case are obtained."""

    AUTO = "auto"
    MANUAL = "manual"


class CaseStatus(str, Enum):
    """Lifecycle state of a financial case."""

    ACTIVE = "active"
    CLOSED = "closed"
    VOID = "void"


class TreatmentType(str, Enum):
    """Informational treatment type."""

    ENDODONTICS = "endodontics"
    POST = "post"
    BOTH = "both"
    OTHER = "other"


class ExpenseKind(str, Enum):
    """Expense kind. Only reimbursable expenses enter the lab target."""

    REIMBURSABLE = "reimbursable"
    OTHER = "other"


class PaymentMethod(str, Enum):
    """Payment method tag, used for reporting only."""

    CASH = "cash"
    TRANSFER = "transfer"
    CARD = "card"
    OTHER = "other"


@dataclass(frozen=True)
class Patient:
    """Patient (payer) domain entity."""

    id: int
    name: str
    created_at: datetime
    document: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None
    active: bool = True


@dataclass(frozen=True)
class FinancialCase:
    """Treatment case accumulating expenses and payments.

    distribution_mode is None only for legacy rows stored before the mode
    existed; allocation resolves those through the legacy fallback.
    """

    id: int
    patient_id: int
    gross_price: int
    created_at: datetime
    fixed_amount_a: int = 0
    fixed_amount_b: int = 0
    distribution_mode: Optional[DistributionMode] = DistributionMode.AUTO
    frozen_percent_a: Optional[float] = None
    frozen_percent_b: Optional[float] = None
    status: CaseStatus = CaseStatus.ACTIVE
    closed_at: Optional[datetime] = None
    treatment_type: TreatmentType = TreatmentType.BOTH
    description: Optional[str] = None


@dataclass(frozen=True)
class Expense:
    """Expense recorded against a case."""

    id: int
    case_id: int
    kind: ExpenseKind
    amount: int
    date: datetime
    description: Optional[str] = None
    settled: bool = False


@dataclass(frozen=True)
class Payment:
    """Payment collected from the payer for a case."""

    id: int
    case_id: int
    amount: int
    date: datetime
    method: PaymentMethod
    reference: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class Targets:
    """Amounts owed to each bucket."""

    lab: int
    a: int
    b: int

    @property
    def total(self) -> int:
        return self.lab + self.a + self.b


@dataclass(frozen=True)
class Covered:
    """Amounts of the collected money applied to each bucket."""

    lab: int
    a: int
    b: int

    @property
    def total(self) -> int:
        return self.lab + self.a + self.b


@dataclass(frozen=True)
class Balances:
    """Outstanding balances. payer is negative on overpayment."""

    payer: int
    lab: int
    a: int
    b: int


@dataclass(frozen=True)
class AllocationControl:
    """Diagnostics describing how targets were derived."""

    gross_price: int
    net_margin: int
    net_base: int
    mode: DistributionMode
    percent_a: Optional[float]
    percent_b: Optional[float]
    delta: int


@dataclass(frozen=True)
class AllocationResult:
    """Point-in-time allocation of one case."""

    total_collected: int
    lab_actual: int
    targets: Targets
    covered: Covered
    balances: Balances
    control: AllocationControl


@dataclass(frozen=True)
class PaymentAttribution:
    """Share of a single payment applied to each bucket."""

    to_lab: int = 0
    to_a: int = 0
    to_b: int = 0
    surplus: int = 0

    @property
    def total(self) -> int:
        return self.to_lab + self.to_a + self.to_b + self.surplus


@dataclass(frozen=True)
class CaseSummary:
    """Single-case financial summary."""

    case: FinancialCase
    payments: tuple[Payment, ...]
    expenses: tuple[Expense, ...]
    allocation: AllocationResult
    attributions: dict[int, PaymentAttribution]
    needs_review: bool = False


@dataclass(frozen=True)
class PatientCaseAllocation:
    """Allocation of one of a patient's cases."""

    case: FinancialCase
    allocation: AllocationResult
    needs_review: bool = False


@dataclass(frozen=True)
class PatientTotals:
    """Allocation totals across a patient's cases."""

    total_collected: int = 0
    balance_payer: int = 0
    target_lab: int = 0
    covered_lab: int = 0
    balance_lab: int = 0
    target_a: int = 0
    covered_a: int = 0
    balance_a: int = 0
    target_b: int = 0
    covered_b: int = 0
    balance_b: int = 0


@dataclass(frozen=True)
class PatientSummary:
    """Financial summary of a patient over every case that is not void."""

    patient: Patient
    cases: tuple[PatientCaseAllocation, ...]
    totals: PatientTotals


@dataclass(frozen=True)
class ReportPeriod:
    """Report window, [start, end)."""

    label: str
    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end


@dataclass(frozen=True)
class CashFlow:
    """Money moved inside the window, by transaction date."""

    total_collected: int = 0
    total_expenses: int = 0
    total_reimbursable: int = 0
    payment_count: int = 0
    expense_count: int = 0
    by_method: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class WindowDistribution:
    """Waterfall attribution of the payments dated inside the window.

    The lab_* fields are only filled for daily reports.
    """

    to_lab: int = 0
    to_a: int = 0
    to_b: int = 0
    surplus: int = 0
    lab_commitment: Optional[int] = None
    lab_covered_by_payments: Optional[int] = None
    lab_pending: Optional[int] = None


@dataclass(frozen=True)
class ClosingSnapshot:
    """Totals across cases recomputed as of the window's exclusive end."""

    target_lab: int = 0
    covered_lab: int = 0
    balance_lab: int = 0
    target_a: int = 0
    covered_a: int = 0
    balance_a: int = 0
    target_b: int = 0
    covered_b: int = 0
    balance_b: int = 0
    balance_payer: int = 0
    case_count: int = 0


@dataclass(frozen=True)
class AttributedPayment:
    """A payment together with its waterfall attribution."""

    payment: Payment
    attribution: PaymentAttribution


@dataclass(frozen=True)
class CaseDetail:
    """Per-case breakdown for a daily report."""

    case: FinancialCase
    allocation: AllocationResult
    payments: tuple[AttributedPayment, ...]
    expenses: tuple[Expense, ...]


@dataclass(frozen=True)
class MonthlyReport:
    """Monthly closing report."""

    period: ReportPeriod
    cash_flow: CashFlow
    distribution: WindowDistribution
    closing: ClosingSnapshot
    flagged_case_ids: tuple[int, ...] = ()
    skipped_case_ids: tuple[int, ...] = ()


@dataclass(frozen=True)
class DailyReport:
    """Daily closing report."""

    period: ReportPeriod
    cash_flow: CashFlow
    distribution: WindowDistribution
    closing: ClosingSnapshot
    details: tuple[CaseDetail, ...] = ()
    flagged_case_ids: tuple[int, ...] = ()
    skipped_case_ids: tuple[int, ...] = ()


@dataclass(frozen=True)
class PendingItem:
    """Case with an outstanding balance towards A or B."""

    case: FinancialCase
    patient_name: Optional[str]
    total_collected: int
    balance_payer: int
    target_a: int
    covered_a: int
    balance_a: int
    target_b: int
    covered_b: int
    balance_b: int


@dataclass(frozen=True)
class PendingTotals:
    """Counts and sums of the pending partitions."""

    pending_a_count: int = 0
    pending_b_count: int = 0
    pending_a_sum: int = 0
    pending_b_sum: int = 0


@dataclass(frozen=True)
class PendingBalancesReport:
    """Cases still owing A, then cases owing only B."""

    period: ReportPeriod
    pending_a: tuple[PendingItem, ...]
    pending_b: tuple[PendingItem, ...]
    totals: PendingTotals
    skipped_case_ids: tuple[int, ...] = ()
