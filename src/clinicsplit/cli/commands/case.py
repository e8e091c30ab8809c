"""Case management commands."""

import click

from clinicsplit.cli.error_handling import handle_domain_error
from clinicsplit.cli.formatting import (
    echo_heading,
    echo_json,
    echo_row,
    format_amount,
    format_percent,
    format_timestamp,
)
from clinicsplit.domain.case import CaseService
from clinicsplit.domain.entities import CaseStatus, DistributionMode, TreatmentType
from clinicsplit.domain.errors import DomainError
from clinicsplit.utils.amount_parser import parse_amount
from clinicsplit.utils.date_parser import parse_timestamp


def _parse_amount_option(ctx, value: str | None, option: str) -> int | None:
    if value is None:
        return None
    try:
        return parse_amount(value)
    except ValueError as e:
        click.echo(f"Error: Invalid {option}: {e}", err=True)
        ctx.exit(1)


def _case_service(ctx) -> CaseService:
    return CaseService(ctx.obj["db"], ctx.obj.get("settings"))


@click.group()
def case_group():
    """Manage treatment cases."""
    pass


@case_group.command("create")
@click.argument("patient_id", type=int)
@click.option("--price", required=True, help="Price charged to the patient")
@click.option("--amount-a", help="Fixed amount owed to A (makes the case manual)")
@click.option("--amount-b", help="Fixed amount owed to B (makes the case manual)")
@click.option(
    "--type",
    "treatment_type",
    type=click.Choice([t.value for t in TreatmentType]),
    default=TreatmentType.BOTH.value,
    show_default=True,
    help="Treatment type",
)
@click.option("--description", help="Case description")
@click.option("--date", "started", help="Start date (defaults to now)")
@click.pass_context
def create_case(
    ctx,
    patient_id: int,
    price: str,
    amount_a: str | None,
    amount_b: str | None,
    treatment_type: str,
    description: str | None,
    started: str | None,
):
    """Create a case for a patient.

    Without --amount-a/--amount-b the case is split by percentage, and the
    current default percentages are frozen on it.

    Examples:
        clinicsplit case create 1 --price 10000
        clinicsplit case create 1 --price 10000 --amount-a 5000 --amount-b 3000
    """
    service = _case_service(ctx)

    gross_price = _parse_amount_option(ctx, price, "price")
    fixed_a = _parse_amount_option(ctx, amount_a, "amount-a")
    fixed_b = _parse_amount_option(ctx, amount_b, "amount-b")

    created_at = None
    if started is not None:
        try:
            created_at = parse_timestamp(started)
        except ValueError as e:
            click.echo(f"Error: Invalid date: {e}", err=True)
            ctx.exit(1)

    try:
        case_id = service.create_case(
            patient_id=patient_id,
            gross_price=gross_price,
            fixed_amount_a=fixed_a,
            fixed_amount_b=fixed_b,
            treatment_type=treatment_type,
            description=description,
            created_at=created_at,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    case = service.require_case(case_id)
    click.echo(f"Created case {case_id} for patient {patient_id}")
    if case.distribution_mode == DistributionMode.MANUAL:
        click.echo(
            f"Mode: manual (A: {format_amount(case.fixed_amount_a)}, "
            f"B: {format_amount(case.fixed_amount_b)})"
        )
    else:
        click.echo(
            f"Mode: auto (A: {format_percent(case.frozen_percent_a)}, "
            f"B: {format_percent(case.frozen_percent_b)})"
        )


@case_group.command("list")
@click.option("--patient", "patient_id", type=int, help="Only cases of this patient")
@click.option(
    "--status",
    type=click.Choice([s.value for s in CaseStatus]),
    help="Only cases in this state",
)
@click.option("--all", "include_void", is_flag=True, help="Include void cases")
@click.pass_context
def list_cases(ctx, patient_id: int | None, status: str | None, include_void: bool):
    """List cases, newest first."""
    service = _case_service(ctx)

    cases = service.list_cases(patient_id=patient_id, status=status, include_void=include_void)
    if not cases:
        click.echo("No cases found.")
        return

    click.echo(f"\nFound {len(cases)} case(s):")
    click.echo("-" * 100)
    click.echo(
        f"{'ID':<6} {'Started':<17} {'Patient':<8} {'Status':<8} {'Mode':<7} {'Price':>12}  {'Description':<30}"
    )
    click.echo("-" * 100)
    for c in cases:
        mode = c.distribution_mode.value if c.distribution_mode else "legacy"
        click.echo(
            f"{c.id:<6} {format_timestamp(c.created_at):<17} {c.patient_id:<8} "
            f"{c.status.value:<8} {mode:<7} {format_amount(c.gross_price):>12}  "
            f"{(c.description or '')[:30]:<30}"
        )


@case_group.command("show")
@click.argument("case_id", type=int)
@click.option("--json", "as_json", is_flag=True, help="Print the summary as JSON")
@click.pass_context
def show_case(ctx, case_id: int, as_json: bool):
    """Show the financial summary of a case."""
    service = _case_service(ctx)

    try:
        summary = service.get_financial_summary(case_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    if as_json:
        echo_json(summary)
        return

    case = summary.case
    allocation = summary.allocation
    control = allocation.control

    click.echo(f"\nCase {case.id} | patient {case.patient_id} | {case.status.value}")
    if case.description:
        click.echo(case.description)
    click.echo(f"Started: {format_timestamp(case.created_at)}")
    if case.closed_at:
        click.echo(f"Closed:  {format_timestamp(case.closed_at)}")
    click.echo(
        f"Mode: {control.mode.value} | A: {format_percent(control.percent_a)} | "
        f"B: {format_percent(control.percent_b)}"
    )
    if summary.needs_review:
        click.echo("Warning: case stores both percentages and fixed amounts; review it.")

    echo_heading("Allocation")
    click.echo(f"{'':<20} {'Target':>18} {'Covered':>18} {'Balance':>18}")
    for label, target, covered, balance in (
        ("Lab", allocation.targets.lab, allocation.covered.lab, allocation.balances.lab),
        ("A", allocation.targets.a, allocation.covered.a, allocation.balances.a),
        ("B", allocation.targets.b, allocation.covered.b, allocation.balances.b),
    ):
        click.echo(
            f"{label:<20} {format_amount(target):>18} {format_amount(covered):>18} "
            f"{format_amount(balance):>18}"
        )
    click.echo("-" * 80)
    echo_row("Price", format_amount(control.gross_price))
    echo_row("Collected", format_amount(allocation.total_collected))
    echo_row("Patient balance", format_amount(allocation.balances.payer))
    if control.delta:
        echo_row("Price minus targets", format_amount(control.delta))

    if summary.payments:
        echo_heading("Payments")
        click.echo(
            f"{'ID':<6} {'Date':<17} {'Method':<9} {'Amount':>10} {'Lab':>10} {'A':>10} {'B':>10} {'Surplus':>10}"
        )
        for p in summary.payments:
            a = summary.attributions[p.id]
            click.echo(
                f"{p.id:<6} {format_timestamp(p.date):<17} {p.method.value:<9} "
                f"{format_amount(p.amount):>10} {format_amount(a.to_lab):>10} "
                f"{format_amount(a.to_a):>10} {format_amount(a.to_b):>10} "
                f"{format_amount(a.surplus):>10}"
            )

    if summary.expenses:
        echo_heading("Expenses")
        for e in summary.expenses:
            click.echo(
                f"{e.id:<6} {format_timestamp(e.date):<17} {e.kind.value:<13} "
                f"{format_amount(e.amount):>10}  {(e.description or '')[:30]}"
            )


@case_group.command("update")
@click.argument("case_id", type=int)
@click.option("--price", help="New price")
@click.option("--amount-a", help="Fixed amount owed to A (switches to manual)")
@click.option("--amount-b", help="Fixed amount owed to B (switches to manual)")
@click.option("--mode", type=click.Choice([m.value for m in DistributionMode]), help="Distribution mode")
@click.option("--percent-a", type=float, help="Frozen percentage for A")
@click.option("--percent-b", type=float, help="Frozen percentage for B")
@click.option("--type", "treatment_type", type=click.Choice([t.value for t in TreatmentType]), help="Treatment type")
@click.option("--description", help="Case description")
@click.pass_context
def update_case(
    ctx,
    case_id: int,
    price: str | None,
    amount_a: str | None,
    amount_b: str | None,
    mode: str | None,
    percent_a: float | None,
    percent_b: float | None,
    treatment_type: str | None,
    description: str | None,
):
    """Update a case.

    Financial fields (price, amounts, mode, percentages) cannot change once
    the case has payments.

    Examples:
        clinicsplit case update 3 --price 12000
        clinicsplit case update 3 --description "Molar 36"
    """
    service = _case_service(ctx)

    changes = {}
    for field, value in (
        ("gross_price", _parse_amount_option(ctx, price, "price")),
        ("fixed_amount_a", _parse_amount_option(ctx, amount_a, "amount-a")),
        ("fixed_amount_b", _parse_amount_option(ctx, amount_b, "amount-b")),
        ("distribution_mode", mode),
        ("frozen_percent_a", percent_a),
        ("frozen_percent_b", percent_b),
        ("treatment_type", treatment_type),
        ("description", description),
    ):
        if value is not None:
            changes[field] = value

    if not changes:
        click.echo("Nothing to update.")
        return

    try:
        service.update_case(case_id, **changes)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    click.echo(f"Updated case {case_id}")


@case_group.command("status")
@click.argument("case_id", type=int)
@click.argument("status", type=click.Choice([s.value for s in CaseStatus]))
@click.pass_context
def set_status(ctx, case_id: int, status: str):
    """Set the lifecycle state of a case (active, closed, void)."""
    service = _case_service(ctx)

    try:
        case = service.set_status(case_id, status)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    click.echo(f"Case {case_id} is now {case.status.value}")


@case_group.command("void")
@click.argument("case_id", type=int)
@click.pass_context
def void_case(ctx, case_id: int):
    """Void a case, keeping its payments and expenses."""
    service = _case_service(ctx)

    try:
        service.void_case(case_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    click.echo(f"Case {case_id} is now void")


@case_group.command("delete")
@click.argument("case_id", type=int)
@click.pass_context
def delete_case(ctx, case_id: int):
    """Delete a case together with its payments and expenses.

    Irreversible. Requires CLINICSPLIT_ALLOW_HARD_DELETE=1.
    """
    service = _case_service(ctx)

    try:
        service.require_case(case_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    if not click.confirm(
        f"Are you sure you want to delete case {case_id} with all its payments and expenses?"
    ):
        click.echo("Deletion cancelled.")
        return

    try:
        service.delete_case(case_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    click.echo(f"Deleted case {case_id}")


def register_commands(cli: click.Group) -> None:
    """Register case commands with main CLI."""
    cli.add_command(case_group, name="case")
