"""Allocation engine.

Computes, for one case, the amounts owed to the lab and to parties A and B,
and applies the collected money to them in fixed priority: lab first, then
A, then B. Targets come either from fixed amounts stored on the case (manual
mode) or from a percentage split of the net base (auto mode), where the net
base is the gross price minus reimbursable expenses.

Everything here is a pure function of its arguments.
"""

import math
from typing import Iterable, Optional

from clinicsplit.config import AllocationSettings
from clinicsplit.domain.entities import (
    AllocationControl,
    AllocationResult,
    Balances,
    Covered,
    DistributionMode,
    Expense,
    ExpenseKind,
    FinancialCase,
    Payment,
    Targets,
)
from clinicsplit.domain.validation import (
    coerce_enum,
    optional_percent,
    require_non_negative_int,
    require_positive_int,
)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves going up."""
    return int(math.floor(value + 0.5))


def _frozen_percentages(case: FinancialCase) -> tuple[Optional[float], Optional[float]]:
    return (
        optional_percent(case.frozen_percent_a, "frozen_percent_a"),
        optional_percent(case.frozen_percent_b, "frozen_percent_b"),
    )


def has_frozen_percentages(case: FinancialCase) -> bool:
    """Return True if the case stores at least one finite percentage."""
    percent_a, percent_b = _frozen_percentages(case)
    return percent_a is not None or percent_b is not None


def classify_distribution_mode(case: FinancialCase) -> DistributionMode:
    """Resolve the effective distribution mode of a case.

    An explicit manual flag always wins. Otherwise a case without frozen
    percentages but with a positive fixed amount predates percentage
    freezing and resolves to its stored amounts.
    """
    if case.distribution_mode == DistributionMode.MANUAL:
        return DistributionMode.MANUAL
    if not has_frozen_percentages(case) and (
        case.fixed_amount_a > 0 or case.fixed_amount_b > 0
    ):
        return DistributionMode.MANUAL
    return DistributionMode.AUTO


def has_conflicting_distribution_data(case: FinancialCase) -> bool:
    """Return True if both frozen percentages and fixed amounts are set.

    Such a case still resolves through classify_distribution_mode, but the
    stored data is ambiguous and should be reviewed by hand.
    """
    return has_frozen_percentages(case) and (
        case.fixed_amount_a > 0 or case.fixed_amount_b > 0
    )


def resolve_percentages(
    case: FinancialCase, settings: Optional[AllocationSettings] = None
) -> tuple[float, float]:
    """Return the (A, B) percentages for an auto-mode case.

    Each value is clamped to [0, 100] independently. The pair is not
    renormalised, so inconsistent stored percentages are kept as they are.
    """
    if settings is None:
        settings = AllocationSettings()

    percent_a, percent_b = _frozen_percentages(case)
    if percent_a is not None:
        if percent_b is None:
            percent_b = 100 - percent_a
    elif percent_b is not None:
        percent_a = 100 - percent_b
    else:
        percent_a = settings.default_percent_a
        percent_b = settings.default_percent_b

    return _clamp_percent(percent_a), _clamp_percent(percent_b)


def _clamp_percent(value: float) -> float:
    return min(max(value, 0.0), 100.0)


def split_net_base(net_base: int, percent_a: float) -> tuple[int, int]:
    """Split net_base into (A, B); B takes the remainder so nothing leaks."""
    target_a = round_half_up(net_base * percent_a / 100)
    return target_a, net_base - target_a


def apply_waterfall(total_collected: int, targets: Targets) -> Covered:
    """Apply collected money to lab, then A, then B."""
    covered_lab = min(total_collected, targets.lab)
    remainder = max(total_collected - covered_lab, 0)
    covered_a = min(remainder, targets.a)
    remainder = max(remainder - covered_a, 0)
    covered_b = min(remainder, targets.b)
    return Covered(lab=covered_lab, a=covered_a, b=covered_b)


def lab_target(expenses: Iterable[Expense]) -> int:
    """Sum of reimbursable expense amounts, never negative."""
    total = 0
    for expense in expenses:
        amount = require_non_negative_int(expense.amount, "expense.amount")
        kind = coerce_enum(ExpenseKind, expense.kind, "expense.kind")
        if kind == ExpenseKind.REIMBURSABLE:
            total += amount
    return max(total, 0)


def total_collected(payments: Iterable[Payment]) -> int:
    """Sum of payment amounts."""
    return sum(
        require_positive_int(payment.amount, "payment.amount") for payment in payments
    )


def compute_allocation(
    case: FinancialCase,
    expenses: Iterable[Expense],
    payments: Iterable[Payment],
    settings: Optional[AllocationSettings] = None,
) -> AllocationResult:
    """Compute the allocation of one case.

    Args:
        case: Case to allocate
        expenses: Expenses of the case, in any order
        payments: Payments of the case, in any order
        settings: Default percentages for cases without frozen ones

    Returns:
        AllocationResult with targets, covered amounts, balances and
        diagnostics

    Raises:
        ValidationError: If any amount or stored percentage is malformed
    """
    gross_price = require_non_negative_int(case.gross_price, "gross_price")
    fixed_a = require_non_negative_int(case.fixed_amount_a, "fixed_amount_a")
    fixed_b = require_non_negative_int(case.fixed_amount_b, "fixed_amount_b")

    lab = lab_target(expenses)
    collected = total_collected(payments)

    net_margin = gross_price - lab
    net_base = max(net_margin, 0)

    mode = classify_distribution_mode(case)
    if mode == DistributionMode.MANUAL:
        target_a = max(round_half_up(fixed_a), 0)
        target_b = max(round_half_up(fixed_b), 0)
        percent_a = percent_b = None
    else:
        percent_a, percent_b = resolve_percentages(case, settings)
        target_a, target_b = split_net_base(net_base, percent_a)

    targets = Targets(lab=lab, a=target_a, b=target_b)
    covered = apply_waterfall(collected, targets)

    return AllocationResult(
        total_collected=collected,
        lab_actual=lab,
        targets=targets,
        covered=covered,
        balances=Balances(
            payer=gross_price - collected,
            lab=targets.lab - covered.lab,
            a=targets.a - covered.a,
            b=targets.b - covered.b,
        ),
        control=AllocationControl(
            gross_price=gross_price,
            net_margin=net_margin,
            net_base=net_base,
            mode=mode,
            percent_a=percent_a,
            percent_b=percent_b,
            delta=gross_price - targets.total,
        ),
    )
