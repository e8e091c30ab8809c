"""Expense commands."""

import click

from clinicsplit.cli.error_handling import handle_domain_error
from clinicsplit.cli.formatting import format_amount, format_timestamp
from clinicsplit.domain.entities import ExpenseKind
from clinicsplit.domain.errors import DomainError
from clinicsplit.domain.expense import ExpenseService
from clinicsplit.utils.amount_parser import parse_amount
from clinicsplit.utils.date_parser import parse_timestamp


@click.group()
def expense_group():
    """Record case expenses."""
    pass


@expense_group.command("add")
@click.argument("case_id", type=int)
@click.option("--amount", required=True, help="Expense amount")
@click.option(
    "--kind",
    type=click.Choice([k.value for k in ExpenseKind]),
    default=ExpenseKind.REIMBURSABLE.value,
    show_default=True,
    help="Reimbursable expenses are covered first out of patient payments",
)
@click.option("--date", "when", help="Expense date (defaults to now)")
@click.option("--description", help="What the expense was for")
@click.option("--settled", is_flag=True, help="Mark the expense as already paid out")
@click.pass_context
def add_expense(
    ctx,
    case_id: int,
    amount: str,
    kind: str,
    when: str | None,
    description: str | None,
    settled: bool,
):
    """Add an expense to a case.

    Examples:
        clinicsplit expense add 3 --amount 2000 --description "Crown, lab X"
        clinicsplit expense add 3 --amount 150 --kind other --date yesterday
    """
    service = ExpenseService(ctx.obj["db"])

    try:
        parsed_amount = parse_amount(amount)
        date = parse_timestamp(when) if when is not None else None
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)
        return

    try:
        expense_id = service.add_expense(
            case_id=case_id,
            amount=parsed_amount,
            kind=kind,
            date=date,
            description=description,
            settled=settled,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    click.echo(f"Added {kind} expense {expense_id} of {format_amount(parsed_amount)} to case {case_id}")


@expense_group.command("list")
@click.argument("case_id", type=int)
@click.pass_context
def list_expenses(ctx, case_id: int):
    """List the expenses of a case."""
    service = ExpenseService(ctx.obj["db"])

    try:
        expenses = service.list_expenses(case_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    if not expenses:
        click.echo(f"No expenses for case {case_id}.")
        return

    click.echo(f"\nExpenses of case {case_id}:")
    click.echo("-" * 80)
    for e in expenses:
        settled = " (settled)" if e.settled else ""
        click.echo(
            f"{e.id:<6} {format_timestamp(e.date):<17} {e.kind.value:<13} "
            f"{format_amount(e.amount):>10}  {(e.description or '')[:25]}{settled}"
        )


@expense_group.command("delete")
@click.argument("expense_id", type=int)
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_expense(ctx, expense_id: int, yes: bool):
    """Delete an expense."""
    service = ExpenseService(ctx.obj["db"])

    expense = service.get_expense(expense_id)
    if expense is None:
        click.echo(f"Error: Expense {expense_id} not found", err=True)
        ctx.exit(1)
        return

    if not yes and not click.confirm(
        f"Delete expense {expense_id} ({format_amount(expense.amount)}) from case {expense.case_id}?"
    ):
        click.echo("Deletion cancelled.")
        return

    try:
        service.delete_expense(expense_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    click.echo(f"Deleted expense {expense_id}")


def register_commands(cli: click.Group) -> None:
    """Register expense commands with main CLI."""
    cli.add_command(expense_group, name="expense")
