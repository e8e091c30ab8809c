"""Patient management commands."""

import click

from clinicsplit.cli.error_handling import handle_domain_error
from clinicsplit.cli.formatting import echo_json, echo_row, format_amount, format_timestamp
from clinicsplit.domain.errors import DomainError
from clinicsplit.domain.patient import PatientService


def _patient_service(ctx) -> PatientService:
    return PatientService(ctx.obj["db"], ctx.obj.get("settings"))


@click.group()
def patient_group():
    """Manage patients."""
    pass


@patient_group.command("create")
@click.argument("name", metavar="NAME")
@click.option("--document", help="Identity document, to tell namesakes apart")
@click.option("--phone", help="Phone number")
@click.option("--notes", help="Free-text notes")
@click.pass_context
def create_patient(ctx, name: str, document: str | None, phone: str | None, notes: str | None):
    """Create a new patient.

    Examples:
        clinicsplit patient create "Ana Pérez"
        clinicsplit patient create "Ana Pérez" --document 30111222 --phone 555-0101
    """
    service = _patient_service(ctx)

    try:
        patient_id = service.create_patient(
            name=name, document=document, phone=phone, notes=notes
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    click.echo(f"Created patient '{name.strip()}' (ID: {patient_id})")


@patient_group.command("list")
@click.option("--all", "include_inactive", is_flag=True, help="Include inactive patients")
@click.option("--search", "query", help="Only patients whose name, phone or document contains TEXT")
@click.pass_context
def list_patients(ctx, include_inactive: bool, query: str | None):
    """List patients.

    Examples:
        clinicsplit patient list
        clinicsplit patient list --search perez
    """
    service = _patient_service(ctx)

    patients = service.list_patients(include_inactive=include_inactive, query=query)
    if not patients:
        click.echo("No patients found.")
        return

    click.echo("\nPatients:")
    click.echo("-" * 60)
    for p in patients:
        suffix = "" if p.active else " (inactive)"
        document = f" | Doc: {p.document}" if p.document else ""
        click.echo(f"ID: {p.id:3d} | {p.name:25s}{document}{suffix}")


@patient_group.command("update")
@click.argument("patient_id", type=int)
@click.option("--name", help="New name")
@click.option("--document", help="Identity document (empty string clears it)")
@click.option("--phone", help="Phone number (empty string clears it)")
@click.option("--notes", help="Free-text notes (empty string clears them)")
@click.pass_context
def update_patient(
    ctx,
    patient_id: int,
    name: str | None,
    document: str | None,
    phone: str | None,
    notes: str | None,
):
    """Update a patient's details."""
    service = _patient_service(ctx)

    changes = {
        field: value
        for field, value in (
            ("name", name),
            ("document", document),
            ("phone", phone),
            ("notes", notes),
        )
        if value is not None
    }
    if not changes:
        click.echo("Nothing to update.")
        return

    try:
        patient = service.update_patient(patient_id, **changes)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    click.echo(f"Updated patient {patient.id} ({patient.name})")


@patient_group.command("summary")
@click.argument("patient_id", type=int)
@click.option("--json", "as_json", is_flag=True, help="Print the summary as JSON")
@click.pass_context
def patient_summary(ctx, patient_id: int, as_json: bool):
    """Show what a patient owes and how their payments were split.

    Void cases are left out.
    """
    service = _patient_service(ctx)

    try:
        summary = service.get_financial_summary(patient_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    if as_json:
        echo_json(summary)
        return

    patient = summary.patient
    click.echo(f"\n{patient.name} (ID: {patient.id})")
    details = [
        f"Doc: {patient.document}" if patient.document else "",
        f"Phone: {patient.phone}" if patient.phone else "",
    ]
    if any(details):
        click.echo(" | ".join(d for d in details if d))

    if not summary.cases:
        click.echo("No cases for this patient.")
        return

    click.echo(f"\n{'Case':<6} {'Started':<17} {'Status':<8} {'Price':>12} {'Collected':>12} {'Balance':>12}")
    click.echo("-" * 72)
    for item in summary.cases:
        case = item.case
        allocation = item.allocation
        flag = " !" if item.needs_review else ""
        click.echo(
            f"{case.id:<6} {format_timestamp(case.created_at):<17} {case.status.value:<8} "
            f"{format_amount(case.gross_price):>12} {format_amount(allocation.total_collected):>12} "
            f"{format_amount(allocation.balances.payer):>12}{flag}"
        )

    totals = summary.totals
    click.echo(f"\n{'':<20} {'Target':>18} {'Covered':>18} {'Balance':>18}")
    click.echo("-" * 80)
    for label, target, covered, balance in (
        ("Lab", totals.target_lab, totals.covered_lab, totals.balance_lab),
        ("A", totals.target_a, totals.covered_a, totals.balance_a),
        ("B", totals.target_b, totals.covered_b, totals.balance_b),
    ):
        click.echo(
            f"{label:<20} {format_amount(target):>18} {format_amount(covered):>18} "
            f"{format_amount(balance):>18}"
        )
    click.echo("-" * 80)
    echo_row("Collected", format_amount(totals.total_collected))
    echo_row("Patient balance", format_amount(totals.balance_payer))
    if any(item.needs_review for item in summary.cases):
        click.echo("Warning: cases marked ! store both percentages and fixed amounts; review them.")


@patient_group.command("deactivate")
@click.argument("patient_id", type=int)
@click.pass_context
def deactivate_patient(ctx, patient_id: int):
    """Hide a patient from listings and from new cases."""
    service = _patient_service(ctx)

    try:
        service.deactivate_patient(patient_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    click.echo(f"Deactivated patient {patient_id}")


def register_commands(cli: click.Group) -> None:
    """Register patient commands with main CLI."""
    cli.add_command(patient_group, name="patient")
