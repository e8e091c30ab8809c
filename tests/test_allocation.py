"""Tests for the allocation engine."""

import math
from datetime import datetime

import pytest

from clinicsplit.config import AllocationSettings
from clinicsplit.domain.allocation import (
    apply_waterfall,
    classify_distribution_mode,
    compute_allocation,
    has_conflicting_distribution_data,
    lab_target,
    resolve_percentages,
    round_half_up,
    split_net_base,
)
from clinicsplit.domain.entities import DistributionMode, ExpenseKind, Targets
from clinicsplit.domain.errors import ValidationError

from conftest import make_case, make_expense, make_payment

DAY1 = datetime(2026, 1, 10, 9, 0)
DAY2 = datetime(2026, 1, 11, 9, 0)


def test_worked_example():
    """Test the reference lab 2000 / 70% case end to end."""
    case = make_case(gross_price=10000, frozen_percent_a=70.0)
    expenses = [make_expense(2000)]
    payments = [make_payment(1, 3000, DAY1), make_payment(2, 5000, DAY2)]

    result = compute_allocation(case, expenses, payments)

    assert result.control.net_base == 8000
    assert result.targets.lab == 2000
    assert result.targets.a == 5600
    assert result.targets.b == 2400
    assert result.targets.total == 10000
    assert result.covered.lab == 2000
    assert result.covered.a == 5600
    assert result.covered.b == 400
    assert result.balances.payer == 2000
    assert result.balances.lab == 0
    assert result.balances.a == 0
    assert result.balances.b == 2000
    assert result.control.delta == 0
    assert result.control.mode == DistributionMode.AUTO
    assert result.control.percent_a == 70.0
    assert result.control.percent_b == 30.0


def test_input_order_does_not_matter():
    """Test that expenses and payments may arrive in any order."""
    case = make_case(gross_price=10000, frozen_percent_a=70.0)
    expenses = [make_expense(500, expense_id=1), make_expense(1500, expense_id=2)]
    payments = [make_payment(1, 3000, DAY1), make_payment(2, 5000, DAY2)]

    forward = compute_allocation(case, expenses, payments)
    backward = compute_allocation(case, list(reversed(expenses)), list(reversed(payments)))

    assert forward == backward


def test_zero_fixed_amounts_resolve_to_auto_with_defaults():
    """Test that a legacy case with both fixed amounts at zero is auto, not manual."""
    case = make_case(
        gross_price=1000,
        distribution_mode=None,
        fixed_amount_a=0,
        fixed_amount_b=0,
    )

    result = compute_allocation(case, [], [])

    assert result.control.mode == DistributionMode.AUTO
    assert result.control.percent_a == pytest.approx(68.42105)
    assert result.control.percent_b == pytest.approx(31.57895)
    assert result.targets.a == 684
    assert result.targets.b == 316
    assert result.balances.payer == 1000


def test_legacy_fixed_amounts_resolve_to_manual():
    """Test that positive fixed amounts without frozen percentages mean manual."""
    case = make_case(
        gross_price=10000,
        distribution_mode=None,
        fixed_amount_a=5000,
        fixed_amount_b=0,
    )

    result = compute_allocation(case, [make_expense(1000)], [])

    assert result.control.mode == DistributionMode.MANUAL
    assert result.targets.a == 5000
    assert result.targets.b == 0
    assert result.control.percent_a is None
    assert result.control.percent_b is None
    assert result.control.delta == 10000 - 1000 - 5000


def test_auto_flag_without_percentages_falls_back_to_fixed_amounts():
    """Test the fallback also applies to cases flagged auto with nothing frozen."""
    case = make_case(fixed_amount_a=3000, fixed_amount_b=2000)

    assert classify_distribution_mode(case) == DistributionMode.MANUAL


def test_explicit_manual_wins():
    """Test that an explicit manual flag is honoured even with zero amounts."""
    case = make_case(distribution_mode=DistributionMode.MANUAL, gross_price=1000)

    result = compute_allocation(case, [], [make_payment(1, 400, DAY1)])

    assert result.control.mode == DistributionMode.MANUAL
    assert result.targets == Targets(lab=0, a=0, b=0)
    assert result.covered.total == 0
    assert result.balances.payer == 600


def test_conflicting_data_is_detected_but_explicit_mode_kept():
    """Test a case with both frozen percentages and fixed amounts."""
    case = make_case(frozen_percent_a=70.0, frozen_percent_b=30.0, fixed_amount_a=5000)

    assert has_conflicting_distribution_data(case)
    assert classify_distribution_mode(case) == DistributionMode.AUTO
    assert compute_allocation(case, [], []).targets.a == 7000

    manual = make_case(
        distribution_mode=DistributionMode.MANUAL,
        frozen_percent_a=70.0,
        fixed_amount_a=5000,
    )
    assert has_conflicting_distribution_data(manual)
    assert compute_allocation(manual, [], []).targets.a == 5000


def test_no_conflict_for_plain_cases():
    assert not has_conflicting_distribution_data(make_case(frozen_percent_a=70.0))
    assert not has_conflicting_distribution_data(
        make_case(distribution_mode=DistributionMode.MANUAL, fixed_amount_a=10)
    )


@pytest.mark.parametrize("net_base", [0, 1, 2, 3, 7, 99, 100, 101, 999, 8000, 12345, 1000001])
@pytest.mark.parametrize("percent_a", [0.0, 0.5, 33.33333, 50.0, 68.42105, 70.0, 99.99, 100.0])
def test_auto_split_is_exact(net_base, percent_a):
    """Test that A and B targets always add up to the net base."""
    target_a, target_b = split_net_base(net_base, percent_a)
    assert target_a + target_b == net_base
    assert target_a >= 0


def test_default_change_does_not_touch_existing_cases():
    """Test that a new default split leaves frozen and fixed cases alone."""
    frozen = make_case(frozen_percent_a=70.0, frozen_percent_b=30.0)
    manual = make_case(
        distribution_mode=DistributionMode.MANUAL, fixed_amount_a=5000, fixed_amount_b=3000
    )
    other_default = AllocationSettings.from_percent_a(50.0)

    for case in (frozen, manual):
        before = compute_allocation(case, [make_expense(1000)], [make_payment(1, 4000, DAY1)])
        after = compute_allocation(
            case, [make_expense(1000)], [make_payment(1, 4000, DAY1)], other_default
        )
        assert before == after


def test_default_setting_applies_to_cases_without_percentages():
    case = make_case(gross_price=1000)
    result = compute_allocation(case, [], [], AllocationSettings.from_percent_a(50.0))
    assert result.targets.a == 500
    assert result.targets.b == 500


def test_percentages_are_clamped_independently():
    """Test that out-of-range percentages are clamped, not renormalised."""
    case = make_case(frozen_percent_a=150.0, frozen_percent_b=-10.0)
    assert resolve_percentages(case) == (100.0, 0.0)

    inconsistent = make_case(frozen_percent_a=60.0, frozen_percent_b=60.0)
    assert resolve_percentages(inconsistent) == (60.0, 60.0)
    result = compute_allocation(inconsistent, [], [])
    assert result.targets.a == 6000
    assert result.targets.b == 4000


def test_missing_percentage_is_complemented():
    assert resolve_percentages(make_case(frozen_percent_a=70.0)) == (70.0, 30.0)
    assert resolve_percentages(make_case(frozen_percent_b=25.0)) == (75.0, 25.0)


def test_non_finite_percentages_count_as_absent():
    case = make_case(frozen_percent_a=math.nan, frozen_percent_b=math.inf)
    settings = AllocationSettings.from_percent_a(40.0)
    assert resolve_percentages(case, settings) == (40.0, 60.0)


def test_net_base_never_negative():
    """Test that expenses above the price leave nothing to split."""
    case = make_case(gross_price=1000, frozen_percent_a=70.0)

    result = compute_allocation(case, [make_expense(1500)], [make_payment(1, 1200, DAY1)])

    assert result.control.net_margin == -500
    assert result.control.net_base == 0
    assert result.targets == Targets(lab=1500, a=0, b=0)
    assert result.covered.lab == 1200
    assert result.balances.lab == 300
    assert result.balances.payer == -200
    assert result.control.delta == -500


def test_other_expenses_do_not_enter_lab_target():
    expenses = [
        make_expense(2000, expense_id=1),
        make_expense(700, kind=ExpenseKind.OTHER, expense_id=2),
    ]
    assert lab_target(expenses) == 2000


def test_overpayment_leaves_negative_payer_balance():
    case = make_case(gross_price=1000, frozen_percent_a=50.0)

    result = compute_allocation(case, [], [make_payment(1, 1200, DAY1)])

    assert result.covered.a == 500
    assert result.covered.b == 500
    assert result.balances.payer == -200
    assert result.balances.a == 0
    assert result.balances.b == 0


@pytest.mark.parametrize("collected", [0, 1, 1999, 2000, 2001, 7600, 9999, 10000, 15000])
def test_waterfall_conserves_money(collected):
    """Test that covered amounts never exceed collections or targets."""
    targets = Targets(lab=2000, a=5600, b=2400)

    covered = apply_waterfall(collected, targets)

    assert covered.total == min(collected, targets.total)
    assert 0 <= covered.lab <= targets.lab
    assert 0 <= covered.a <= targets.a
    assert 0 <= covered.b <= targets.b
    if covered.a > 0:
        assert covered.lab == targets.lab
    if covered.b > 0:
        assert covered.a == targets.a


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(2.4999) == 2
    assert round_half_up(-2.5) == -2
    assert round_half_up(0) == 0


class TestValidation:
    """Tests for malformed numeric input."""

    def test_negative_price(self):
        with pytest.raises(ValidationError) as exc_info:
            compute_allocation(make_case(gross_price=-1), [], [])
        assert exc_info.value.field == "gross_price"

    def test_fractional_price(self):
        with pytest.raises(ValidationError):
            compute_allocation(make_case(gross_price=100.5), [], [])

    def test_zero_payment(self):
        with pytest.raises(ValidationError) as exc_info:
            compute_allocation(make_case(), [], [make_payment(1, 0, DAY1)])
        assert exc_info.value.field == "payment.amount"

    def test_negative_expense(self):
        with pytest.raises(ValidationError):
            compute_allocation(make_case(), [make_expense(-5)], [])

    def test_boolean_amount_rejected(self):
        with pytest.raises(ValidationError):
            compute_allocation(make_case(), [], [make_payment(1, True, DAY1)])

    def test_garbage_percentage(self):
        with pytest.raises(ValidationError):
            compute_allocation(make_case(frozen_percent_a="seventy"), [], [])

    def test_negative_fixed_amount(self):
        with pytest.raises(ValidationError):
            compute_allocation(
                make_case(distribution_mode=DistributionMode.MANUAL, fixed_amount_a=-10), [], []
            )
