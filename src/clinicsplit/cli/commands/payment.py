"""Payment commands."""

import click

from clinicsplit.cli.error_handling import handle_domain_error
from clinicsplit.cli.formatting import format_amount, format_timestamp
from clinicsplit.domain.entities import PaymentMethod
from clinicsplit.domain.errors import DomainError
from clinicsplit.domain.payment import PaymentService
from clinicsplit.utils.amount_parser import parse_amount
from clinicsplit.utils.date_parser import parse_timestamp


@click.group()
def payment_group():
    """Record patient payments."""
    pass


@payment_group.command("add")
@click.argument("case_id", type=int)
@click.option("--amount", required=True, help="Amount collected")
@click.option(
    "--method",
    type=click.Choice([m.value for m in PaymentMethod]),
    required=True,
    help="How the patient paid",
)
@click.option("--date", "when", help="Payment date (defaults to now)")
@click.option("--reference", help="Receipt or transfer reference")
@click.option("--notes", help="Free-text notes")
@click.pass_context
def add_payment(
    ctx,
    case_id: int,
    amount: str,
    method: str,
    when: str | None,
    reference: str | None,
    notes: str | None,
):
    """Record a payment for a case.

    The first payment locks the price and split of the case.

    Examples:
        clinicsplit payment add 3 --amount 4000 --method cash
        clinicsplit payment add 3 --amount 2500 --method transfer --date 2026-03-14
    """
    service = PaymentService(ctx.obj["db"])

    try:
        parsed_amount = parse_amount(amount)
        date = parse_timestamp(when) if when is not None else None
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)
        return

    try:
        payment_id = service.record_payment(
            case_id=case_id,
            amount=parsed_amount,
            method=method,
            date=date,
            reference=reference,
            notes=notes,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    click.echo(f"Recorded payment {payment_id} of {format_amount(parsed_amount)} ({method}) for case {case_id}")


@payment_group.command("list")
@click.argument("case_id", type=int)
@click.pass_context
def list_payments(ctx, case_id: int):
    """List the payments of a case, oldest first."""
    service = PaymentService(ctx.obj["db"])

    try:
        payments = service.list_payments(case_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    if not payments:
        click.echo(f"No payments for case {case_id}.")
        return

    click.echo(f"\nPayments of case {case_id}:")
    click.echo("-" * 80)
    for p in payments:
        click.echo(
            f"{p.id:<6} {format_timestamp(p.date):<17} {p.method.value:<9} "
            f"{format_amount(p.amount):>10}  {(p.reference or '')[:20]}"
        )
    click.echo("-" * 80)
    click.echo(f"Total: {format_amount(sum(p.amount for p in payments))}")


@payment_group.command("delete")
@click.argument("payment_id", type=int)
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_payment(ctx, payment_id: int, yes: bool):
    """Delete a payment entered by mistake."""
    service = PaymentService(ctx.obj["db"])

    payment = service.get_payment(payment_id)
    if payment is None:
        click.echo(f"Error: Payment {payment_id} not found", err=True)
        ctx.exit(1)
        return

    if not yes and not click.confirm(
        f"Delete payment {payment_id} ({format_amount(payment.amount)}) from case {payment.case_id}?"
    ):
        click.echo("Deletion cancelled.")
        return

    try:
        service.delete_payment(payment_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    click.echo(f"Deleted payment {payment_id}")


def register_commands(cli: click.Group) -> None:
    """Register payment commands with main CLI."""
    cli.add_command(payment_group, name="payment")
