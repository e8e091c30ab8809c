"""Main CLI entry point."""

from dataclasses import replace

import click

from clinicsplit.config import AllocationSettings, DB_PATH_ENV, DEFAULT_PERCENT_A_ENV, load_settings
from clinicsplit.database.factories import create_sqlite_database
from clinicsplit.logging_config import configure_logging

# Import and register all commands at module level
from clinicsplit.cli.commands import (
    patient,
    case,
    expense,
    payment,
    report,
)


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides CLINICSPLIT_DB_PATH environment variable)",
    envvar=DB_PATH_ENV,
)
@click.option(
    "--default-percent-a",
    type=float,
    help="Default share of A for new auto-mode cases (overrides CLINICSPLIT_DEFAULT_PERCENT_A)",
    envvar=DEFAULT_PERCENT_A_ENV,
)
@click.option("-v", "--verbose", count=True, help="Log more (-v info, -vv debug)")
@click.pass_context
def cli(ctx, db_path: str | None, default_percent_a: float | None, verbose: int):
    """Clinicsplit - treatment payment distribution.

    Record what each patient pays for a treatment and see how the money is
    split: lab costs are covered first, then A's share, then B's share.
    """
    ctx.ensure_object(dict)
    configure_logging(verbose)

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        try:
            settings = load_settings()
            if default_percent_a is not None:
                settings = replace(
                    settings,
                    allocation=AllocationSettings.from_percent_a(default_percent_a),
                )
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--default-percent-a")

        db = create_sqlite_database(database_path=db_path, settings=settings)
        db.connect()
        db.initialize_schema()
        ctx.call_on_close(db.disconnect)
        ctx.obj["db"] = db
        ctx.obj["settings"] = settings


# Register all commands
patient.register_commands(cli)
case.register_commands(cli)
expense.register_commands(cli)
payment.register_commands(cli)
report.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
