"""Report commands."""

from typing import Optional

import click

from clinicsplit.cli.error_handling import handle_domain_error
from clinicsplit.cli.formatting import (
    echo_heading,
    echo_json,
    echo_row,
    format_amount,
    format_timestamp,
)
from clinicsplit.domain.entities import ClosingSnapshot, CashFlow, PendingItem
from clinicsplit.domain.errors import DomainError
from clinicsplit.domain.reports import ReportService
from clinicsplit.utils.date_parser import current_month, previous_month


def _report_service(ctx) -> ReportService:
    return ReportService(ctx.obj["db"], ctx.obj.get("settings"))


def _resolve_month(
    year: Optional[int], month: Optional[int], this_month: bool, last_month: bool
) -> tuple[int, int]:
    """Pick the report month from the command line options.

    Defaults to the previous month, the one usually being closed.
    """
    if this_month and last_month:
        raise click.UsageError("Use only one of --this-month and --last-month")
    if this_month:
        return current_month()
    if last_month or (year is None and month is None):
        return previous_month()

    default_year, default_month = current_month()
    year = year if year is not None else default_year
    month = month if month is not None else default_month
    return year, month


def _echo_cash_flow(cash_flow: CashFlow) -> None:
    echo_heading("Cash flow")
    echo_row(f"Collected ({cash_flow.payment_count} payment(s))", format_amount(cash_flow.total_collected))
    for method, amount in cash_flow.by_method.items():
        if amount:
            echo_row(method, format_amount(amount), indent=2)
    echo_row(f"Expenses ({cash_flow.expense_count})", format_amount(cash_flow.total_expenses))
    echo_row("Reimbursable", format_amount(cash_flow.total_reimbursable), indent=2)


def _echo_closing(closing: ClosingSnapshot) -> None:
    echo_heading(f"Closing position ({closing.case_count} case(s))")
    click.echo(f"{'':<20} {'Target':>18} {'Covered':>18} {'Balance':>18}")
    for label, prefix in (("Lab", "lab"), ("A", "a"), ("B", "b")):
        click.echo(
            f"{label:<20} {format_amount(getattr(closing, f'target_{prefix}')):>18} "
            f"{format_amount(getattr(closing, f'covered_{prefix}')):>18} "
            f"{format_amount(getattr(closing, f'balance_{prefix}')):>18}"
        )
    echo_row("Owed by patients", format_amount(closing.balance_payer))


def _echo_case_warnings(flagged: tuple[int, ...], skipped: tuple[int, ...]) -> None:
    if flagged:
        click.echo(
            "\nWarning: cases storing both percentages and fixed amounts: "
            + ", ".join(str(case_id) for case_id in flagged)
        )
    if skipped:
        click.echo(
            "\nWarning: skipped cases with invalid data: "
            + ", ".join(str(case_id) for case_id in skipped)
        )


@click.group()
def report_group():
    """Closing and balance reports."""
    pass


@report_group.command("monthly")
@click.option("--year", type=int, help="Report year")
@click.option("--month", type=int, help="Report month (1-12)")
@click.option("--this-month", is_flag=True, help="Report on the current month")
@click.option("--last-month", is_flag=True, help="Report on the previous month (default)")
@click.option("--best-effort", is_flag=True, help="Skip cases with invalid data instead of failing")
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON")
@click.pass_context
def monthly_report(
    ctx,
    year: Optional[int],
    month: Optional[int],
    this_month: bool,
    last_month: bool,
    best_effort: bool,
    as_json: bool,
):
    """Monthly closing: cash moved, how it was split, and what is still owed.

    Examples:
        clinicsplit report monthly
        clinicsplit report monthly --year 2026 --month 3
        clinicsplit report monthly --this-month --json
    """
    report_year, report_month = _resolve_month(year, month, this_month, last_month)

    try:
        report = _report_service(ctx).monthly_report(
            report_year, report_month, best_effort=best_effort
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    if as_json:
        echo_json(report)
        return

    click.echo(f"\nMonthly closing {report.period.label}")
    click.echo("=" * 80)
    _echo_cash_flow(report.cash_flow)

    distribution = report.distribution
    echo_heading("Distribution of payments this month")
    echo_row("Lab", format_amount(distribution.to_lab))
    echo_row("A", format_amount(distribution.to_a))
    echo_row("B", format_amount(distribution.to_b))
    if distribution.surplus:
        echo_row("Surplus", format_amount(distribution.surplus))

    _echo_closing(report.closing)
    _echo_case_warnings(report.flagged_case_ids, report.skipped_case_ids)


@report_group.command("daily")
@click.option("--date", "day", help="Day to close as YYYY-MM-DD (defaults to today)")
@click.option("--best-effort", is_flag=True, help="Skip cases with invalid data instead of failing")
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON")
@click.pass_context
def daily_report(ctx, day: Optional[str], best_effort: bool, as_json: bool):
    """Daily closing with a per-case breakdown of the day's activity.

    Examples:
        clinicsplit report daily
        clinicsplit report daily --date 2026-03-14
    """
    try:
        report = _report_service(ctx).daily_report(day, best_effort=best_effort)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    if as_json:
        echo_json(report)
        return

    click.echo(f"\nDaily closing {report.period.label}")
    click.echo("=" * 80)
    _echo_cash_flow(report.cash_flow)

    distribution = report.distribution
    echo_heading("Distribution of today's payments")
    echo_row("Lab committed today", format_amount(distribution.lab_commitment))
    echo_row("Lab covered by payments", format_amount(distribution.lab_covered_by_payments))
    echo_row("Lab pending", format_amount(distribution.lab_pending))
    echo_row("A", format_amount(distribution.to_a))
    echo_row("B", format_amount(distribution.to_b))
    if distribution.surplus:
        echo_row("Surplus", format_amount(distribution.surplus))

    if report.details:
        echo_heading("Cases with activity")
        for detail in report.details:
            balances = detail.allocation.balances
            click.echo(
                f"Case {detail.case.id} (patient {detail.case.patient_id}) | "
                f"owes {format_amount(balances.payer)} | A {format_amount(balances.a)} | "
                f"B {format_amount(balances.b)}"
            )
            for item in detail.payments:
                attribution = item.attribution
                click.echo(
                    f"  payment {item.payment.id:<5} {format_timestamp(item.payment.date)} "
                    f"{format_amount(item.payment.amount):>10} -> lab {format_amount(attribution.to_lab)}, "
                    f"A {format_amount(attribution.to_a)}, B {format_amount(attribution.to_b)}"
                )
            for expense in detail.expenses:
                click.echo(
                    f"  expense {expense.id:<5} {format_timestamp(expense.date)} "
                    f"{format_amount(expense.amount):>10} {expense.kind.value}"
                )

    _echo_closing(report.closing)
    _echo_case_warnings(report.flagged_case_ids, report.skipped_case_ids)


def _echo_pending_items(items: tuple[PendingItem, ...], bucket: str) -> None:
    for item in items:
        balance = item.balance_a if bucket == "a" else item.balance_b
        name = item.patient_name or f"patient {item.case.patient_id}"
        click.echo(
            f"Case {item.case.id:<5} {name[:25]:<25} collected {format_amount(item.total_collected):>10} "
            f"owes {format_amount(balance):>10}"
        )


@report_group.command("pending")
@click.option("--year", type=int, help="Report year")
@click.option("--month", type=int, help="Report month (1-12)")
@click.option("--this-month", is_flag=True, help="Balances at the end of the current month (default)")
@click.option("--last-month", is_flag=True, help="Balances at the end of the previous month")
@click.option("--best-effort", is_flag=True, help="Skip cases with invalid data instead of failing")
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON")
@click.pass_context
def pending_report(
    ctx,
    year: Optional[int],
    month: Optional[int],
    this_month: bool,
    last_month: bool,
    best_effort: bool,
    as_json: bool,
):
    """Cases still owing A, and cases owing only B, at the end of a month."""
    if year is None and month is None and not last_month:
        this_month = True
    report_year, report_month = _resolve_month(year, month, this_month, last_month)

    try:
        report = _report_service(ctx).pending_balances(
            report_year, report_month, best_effort=best_effort
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    if as_json:
        echo_json(report)
        return

    totals = report.totals
    click.echo(f"\nPending balances at the end of {report.period.label}")
    click.echo("=" * 80)

    echo_heading(f"Pending A ({totals.pending_a_count}, {format_amount(totals.pending_a_sum)})")
    _echo_pending_items(report.pending_a, "a")

    echo_heading(f"Pending B ({totals.pending_b_count}, {format_amount(totals.pending_b_sum)})")
    _echo_pending_items(report.pending_b, "b")

    _echo_case_warnings((), report.skipped_case_ids)


def register_commands(cli: click.Group) -> None:
    """Register report commands with main CLI."""
    cli.add_command(report_group, name="report")
