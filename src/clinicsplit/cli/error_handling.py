"""CLI error handling helpers."""

import logging

import click

from clinicsplit.domain.errors import DomainError, InternalInconsistencyError

logger = logging.getLogger(__name__)


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError) -> None:
    """Print the error to stderr and exit with status 1.

    Internal inconsistencies point at a defect rather than bad input, so they
    also get a hint to report the case.
    """
    logger.debug("Command %s failed", ctx.info_name, exc_info=error)
    message = f"Error: {error}"
    if isinstance(error, InternalInconsistencyError):
        message += "\nThis is a bug; please report it with the case ID."
    click.echo(message, err=True)
    ctx.exit(1)
