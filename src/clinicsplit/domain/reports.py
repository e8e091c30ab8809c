"""Period reports: monthly closing, daily closing and pending balances.

Every report looks at two time filters at once:

- the window itself, [start, end), which selects the cash that moved and the
  payments whose attribution counts as earned in the period;
- everything dated before the window's exclusive end, which is what each
  case's allocation and waterfall replay are computed from.

A payment inside the window may land in lab, A or B depending on payments
made months earlier, so each case is replayed over its full history up to
the cutoff and only then filtered down to the window.
"""

import logging
import re
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Optional

from dateutil.relativedelta import relativedelta

from clinicsplit.config import Settings
from clinicsplit.database.base import Database
from clinicsplit.domain.allocation import (
    compute_allocation,
    has_conflicting_distribution_data,
)
from clinicsplit.domain.entities import (
    AllocationResult,
    AttributedPayment,
    CaseDetail,
    CashFlow,
    ClosingSnapshot,
    DailyReport,
    Expense,
    ExpenseKind,
    FinancialCase,
    MonthlyReport,
    Payment,
    PaymentAttribution,
    PaymentMethod,
    PendingBalancesReport,
    PendingItem,
    PendingTotals,
    ReportPeriod,
    WindowDistribution,
)
from clinicsplit.domain.errors import ValidationError
from clinicsplit.domain.replay import replay_waterfall, sort_payments, verify_replay
from clinicsplit.utils.date_parser import start_of_day

logger = logging.getLogger(__name__)

DAY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def monthly_period(year: Any, month: Any) -> ReportPeriod:
    """Window from the first instant of the month to the first of the next.

    Raises:
        ValidationError: If year or month is not an integer, or month is
            outside 1..12
    """
    for name, value in (("year", year), ("month", month)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f"{name} must be an integer, got {value!r}", field=name)
    if month < 1 or month > 12:
        raise ValidationError(f"month must be between 1 and 12, got {month}", field="month")
    if year < 1 or year > 9998:
        raise ValidationError(f"year out of range: {year}", field="year")

    start = datetime(year, month, 1)
    return ReportPeriod(
        label=f"{year:04d}-{month:02d}",
        start=start,
        end=start + relativedelta(months=1),
    )


def daily_period(day: Optional[str] = None, today: Optional[date] = None) -> ReportPeriod:
    """Window from midnight of day to the next midnight.

    Args:
        day: Date as YYYY-MM-DD. Empty or None means today.
        today: Override for the current date

    Raises:
        ValidationError: If day is not a real YYYY-MM-DD date
    """
    if day is None or day == "":
        target = today or date.today()
    else:
        if not DAY_PATTERN.match(str(day)):
            raise ValidationError(f"Invalid date '{day}'. Use YYYY-MM-DD", field="date")
        year, month, day_of_month = (int(part) for part in str(day).split("-"))
        try:
            target = date(year, month, day_of_month)
        except ValueError as e:
            raise ValidationError(f"Invalid date '{day}': {e}", field="date")

    start = start_of_day(target)
    return ReportPeriod(
        label=target.isoformat(),
        start=start,
        end=start + timedelta(days=1),
    )


@dataclass
class CaseState:
    """Allocation and replay of one case as of a cutoff."""

    case: FinancialCase
    expenses: list[Expense]
    payments: list[Payment]
    allocation: AllocationResult
    attributions: dict[int, PaymentAttribution]


@dataclass
class CaseStates:
    """Outcome of computing every case in a closing universe."""

    states: list[CaseState]
    flagged_case_ids: list[int]
    skipped_case_ids: list[int]


class ReportService:
    """Service for building period reports."""

    def __init__(self, db: Database, settings: Optional[Settings] = None):
        """Initialize report service.

        Args:
            db: Database instance
            settings: Application settings (defaults apply when omitted)
        """
        self.db = db
        self.settings = settings or Settings()

    def monthly_report(self, year: Any, month: Any, best_effort: bool = False) -> MonthlyReport:
        """Build the monthly closing report.

        Args:
            year: Calendar year
            month: Month number, 1..12
            best_effort: If True, skip cases with malformed data instead of
                failing the whole report

        Returns:
            MonthlyReport

        Raises:
            ValidationError: On invalid period, or malformed case data when
                best_effort is False
            InternalInconsistencyError: If a replay disagrees with its
                allocation
        """
        period = monthly_period(year, month)
        cash_flow = self.build_cash_flow(period)
        computed = self.compute_case_states(period.end, best_effort=best_effort)

        return MonthlyReport(
            period=period,
            cash_flow=cash_flow,
            distribution=self.build_window_distribution(computed.states, period),
            closing=self.build_closing_snapshot(computed.states),
            flagged_case_ids=tuple(computed.flagged_case_ids),
            skipped_case_ids=tuple(computed.skipped_case_ids),
        )

    def daily_report(
        self,
        day: Optional[str] = None,
        today: Optional[date] = None,
        best_effort: bool = False,
    ) -> DailyReport:
        """Build the daily closing report.

        Besides the monthly views, the distribution splits the lab share into
        what was committed today (reimbursable expenses dated today) and what
        today's payments covered, and details lists every case that had a
        payment or expense today.

        Args:
            day: Date as YYYY-MM-DD, or None for today
            today: Override for the current date
            best_effort: If True, skip cases with malformed data

        Returns:
            DailyReport

        Raises:
            ValidationError: On an invalid date, or malformed case data when
                best_effort is False
            InternalInconsistencyError: If a replay disagrees with its
                allocation
        """
        period = daily_period(day, today=today)
        cash_flow = self.build_cash_flow(period)
        computed = self.compute_case_states(period.end, best_effort=best_effort)

        distribution = self.build_window_distribution(computed.states, period)
        lab_commitment = cash_flow.total_reimbursable
        distribution = WindowDistribution(
            to_lab=distribution.to_lab,
            to_a=distribution.to_a,
            to_b=distribution.to_b,
            surplus=distribution.surplus,
            lab_commitment=lab_commitment,
            lab_covered_by_payments=distribution.to_lab,
            lab_pending=lab_commitment - distribution.to_lab,
        )

        return DailyReport(
            period=period,
            cash_flow=cash_flow,
            distribution=distribution,
            closing=self.build_closing_snapshot(computed.states),
            details=tuple(self.build_case_details(computed.states, period)),
            flagged_case_ids=tuple(computed.flagged_case_ids),
            skipped_case_ids=tuple(computed.skipped_case_ids),
        )

    def pending_balances(self, year: Any, month: Any, best_effort: bool = False) -> PendingBalancesReport:
        """List cases still owing A, and cases owing only B, at month end.

        A case is pending A while its A balance is positive. Only once A is
        exactly settled does a positive B balance make it pending B. Each
        list is sorted by its outstanding balance, largest first.

        Raises:
            ValidationError: On invalid period, or malformed case data when
                best_effort is False
        """
        period = monthly_period(year, month)
        computed = self.compute_case_states(period.end, best_effort=best_effort)
        patient_names = {
            patient.id: patient.name
            for patient in self.db.list_patients(include_inactive=True)
        }

        pending_a: list[PendingItem] = []
        pending_b: list[PendingItem] = []
        for state in computed.states:
            allocation = state.allocation
            item = PendingItem(
                case=state.case,
                patient_name=patient_names.get(state.case.patient_id),
                total_collected=allocation.total_collected,
                balance_payer=allocation.balances.payer,
                target_a=allocation.targets.a,
                covered_a=allocation.covered.a,
                balance_a=allocation.balances.a,
                target_b=allocation.targets.b,
                covered_b=allocation.covered.b,
                balance_b=allocation.balances.b,
            )
            if allocation.balances.a > 0:
                pending_a.append(item)
            elif allocation.balances.a == 0 and allocation.balances.b > 0:
                pending_b.append(item)

        pending_a.sort(key=lambda item: item.balance_a, reverse=True)
        pending_b.sort(key=lambda item: item.balance_b, reverse=True)

        return PendingBalancesReport(
            period=period,
            pending_a=tuple(pending_a),
            pending_b=tuple(pending_b),
            totals=PendingTotals(
                pending_a_count=len(pending_a),
                pending_b_count=len(pending_b),
                pending_a_sum=sum(item.balance_a for item in pending_a),
                pending_b_sum=sum(item.balance_b for item in pending_b),
            ),
            skipped_case_ids=tuple(computed.skipped_case_ids),
        )

    def compute_case_states(self, cutoff: datetime, best_effort: bool = False) -> CaseStates:
        """Allocate and replay every case started before cutoff.

        Only expenses and payments dated before cutoff are considered.

        Args:
            cutoff: Exclusive end of the period
            best_effort: If True, cases with malformed data are logged and
                skipped instead of failing the whole computation

        Raises:
            ValidationError: If a case has malformed data and best_effort is
                False
            InternalInconsistencyError: If a replay disagrees with its
                allocation
        """
        cases = self.db.list_cases_started_before(cutoff)
        result = CaseStates(states=[], flagged_case_ids=[], skipped_case_ids=[])
        if not cases:
            return result

        case_ids = [case.id for case in cases]
        expenses_by_case: dict[int, list[Expense]] = defaultdict(list)
        for expense in self.db.list_expenses(case_ids=case_ids, end=cutoff):
            expenses_by_case[expense.case_id].append(expense)
        payments_by_case: dict[int, list[Payment]] = defaultdict(list)
        for payment in self.db.list_payments(case_ids=case_ids, end=cutoff):
            payments_by_case[payment.case_id].append(payment)

        for case in cases:
            expenses = expenses_by_case.get(case.id, [])
            payments = sort_payments(payments_by_case.get(case.id, []))
            try:
                allocation = compute_allocation(
                    case, expenses, payments, self.settings.allocation
                )
                attributions = replay_waterfall(payments, allocation.targets)
            except ValidationError as e:
                if not best_effort:
                    raise
                logger.warning("Skipping case %s in report: %s", case.id, e)
                result.skipped_case_ids.append(case.id)
                continue

            verify_replay(case, allocation, attributions)

            if has_conflicting_distribution_data(case):
                logger.warning(
                    "Case %s stores both frozen percentages and fixed amounts; "
                    "resolved as %s",
                    case.id,
                    allocation.control.mode.value,
                )
                result.flagged_case_ids.append(case.id)

            result.states.append(
                CaseState(
                    case=case,
                    expenses=expenses,
                    payments=payments,
                    allocation=allocation,
                    attributions=attributions,
                )
            )

        logger.debug(
            "Computed %d case(s) before %s (%d skipped)",
            len(result.states),
            cutoff.isoformat(),
            len(result.skipped_case_ids),
        )
        return result

    def build_cash_flow(self, period: ReportPeriod) -> CashFlow:
        """Sum the payments and expenses dated inside the window."""
        payments = self.db.list_payments(start=period.start, end=period.end)
        expenses = self.db.list_expenses(start=period.start, end=period.end)

        by_method = {method.value: 0 for method in PaymentMethod}
        for payment in payments:
            key = getattr(payment.method, "value", payment.method) or PaymentMethod.OTHER.value
            by_method[key] = by_method.get(key, 0) + payment.amount

        return CashFlow(
            total_collected=sum(payment.amount for payment in payments),
            total_expenses=sum(expense.amount for expense in expenses),
            total_reimbursable=sum(
                expense.amount
                for expense in expenses
                if expense.kind == ExpenseKind.REIMBURSABLE
            ),
            payment_count=len(payments),
            expense_count=len(expenses),
            by_method=by_method,
        )

    def build_window_distribution(
        self, states: list[CaseState], period: ReportPeriod
    ) -> WindowDistribution:
        """Sum the attributions of payments dated inside the window."""
        to_lab = to_a = to_b = surplus = 0
        for state in states:
            for payment in state.payments:
                if not period.contains(payment.date):
                    continue
                attribution = state.attributions[payment.id]
                to_lab += attribution.to_lab
                to_a += attribution.to_a
                to_b += attribution.to_b
                surplus += attribution.surplus
        return WindowDistribution(to_lab=to_lab, to_a=to_a, to_b=to_b, surplus=surplus)

    def build_closing_snapshot(self, states: list[CaseState]) -> ClosingSnapshot:
        """Sum targets, covered amounts and balances over all cases."""
        totals = defaultdict(int)
        for state in states:
            allocation = state.allocation
            totals["target_lab"] += allocation.targets.lab
            totals["covered_lab"] += allocation.covered.lab
            totals["balance_lab"] += allocation.balances.lab
            totals["target_a"] += allocation.targets.a
            totals["covered_a"] += allocation.covered.a
            totals["balance_a"] += allocation.balances.a
            totals["target_b"] += allocation.targets.b
            totals["covered_b"] += allocation.covered.b
            totals["balance_b"] += allocation.balances.b
            totals["balance_payer"] += allocation.balances.payer
        return ClosingSnapshot(case_count=len(states), **totals)

    def build_case_details(
        self, states: list[CaseState], period: ReportPeriod
    ) -> list[CaseDetail]:
        """Per-case breakdown for cases with a payment or expense in the window.

        Cases are listed newest first.
        """
        details = []
        for state in sorted(
            states, key=lambda s: (s.case.created_at, s.case.id), reverse=True
        ):
            payments = tuple(
                AttributedPayment(payment=payment, attribution=state.attributions[payment.id])
                for payment in state.payments
                if period.contains(payment.date)
            )
            expenses = tuple(
                expense for expense in state.expenses if period.contains(expense.date)
            )
            if not payments and not expenses:
                continue
            details.append(
                CaseDetail(
                    case=state.case,
                    allocation=state.allocation,
                    payments=payments,
                    expenses=expenses,
                )
            )
        return details
