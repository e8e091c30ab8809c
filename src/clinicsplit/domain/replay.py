"""Per-payment waterfall replay.

The allocation engine only says how much of the collected total went to each
bucket. Reports also need to know how much of *one* payment went where, which
depends on every earlier payment of the case. The replay walks the full,
date-ordered payment history and hands out each payment to lab, A, B and
surplus in that order.

Replaying only the payments of a report window gives a different (wrong)
answer whenever an earlier payment already filled a bucket: always replay the
whole history up to the cutoff and filter afterwards.
"""

import logging
from typing import Iterable, Sequence

from clinicsplit.domain.entities import (
    AllocationResult,
    FinancialCase,
    Payment,
    PaymentAttribution,
    Targets,
)
from clinicsplit.domain.errors import (
    InternalInconsistencyError,
    ValidationError,
    replay_mismatch,
)

logger = logging.getLogger(__name__)


def sort_payments(payments: Iterable[Payment]) -> list[Payment]:
    """Return payments ordered by date; equal dates keep their input order."""
    return sorted(payments, key=lambda payment: payment.date)


def replay_waterfall(
    payments: Sequence[Payment], targets: Targets
) -> dict[int, PaymentAttribution]:
    """Attribute each payment to lab, A, B and surplus.

    Args:
        payments: Full payment history of one case, ascending by date
        targets: Targets computed by the allocation engine

    Returns:
        Mapping of payment ID to its attribution, in payment order

    Raises:
        ValidationError: If payments are not ordered by date
    """
    covered_lab = 0
    covered_a = 0
    covered_b = 0
    attributions: dict[int, PaymentAttribution] = {}

    previous = None
    for payment in payments:
        if previous is not None and payment.date < previous.date:
            raise ValidationError(
                f"Payments must be ordered by date: payment {payment.id} "
                f"precedes payment {previous.id}",
                field="payments",
            )
        previous = payment

        remaining = payment.amount

        to_lab = min(remaining, max(targets.lab - covered_lab, 0))
        remaining -= to_lab

        to_a = min(remaining, max(targets.a - covered_a, 0))
        remaining -= to_a

        to_b = min(remaining, max(targets.b - covered_b, 0))
        remaining -= to_b

        covered_lab += to_lab
        covered_a += to_a
        covered_b += to_b

        attributions[payment.id] = PaymentAttribution(
            to_lab=to_lab, to_a=to_a, to_b=to_b, surplus=max(remaining, 0)
        )

    return attributions


def sum_attributions(attributions: Iterable[PaymentAttribution]) -> PaymentAttribution:
    """Add up attributions bucket by bucket."""
    to_lab = to_a = to_b = surplus = 0
    for attribution in attributions:
        to_lab += attribution.to_lab
        to_a += attribution.to_a
        to_b += attribution.to_b
        surplus += attribution.surplus
    return PaymentAttribution(to_lab=to_lab, to_a=to_a, to_b=to_b, surplus=surplus)


def verify_replay(
    case: FinancialCase,
    allocation: AllocationResult,
    attributions: dict[int, PaymentAttribution],
) -> None:
    """Check that a full replay adds up to the allocation's covered amounts.

    Raises:
        InternalInconsistencyError: If any bucket disagrees
    """
    totals = sum_attributions(attributions.values())
    for bucket, replayed, covered in (
        ("lab", totals.to_lab, allocation.covered.lab),
        ("A", totals.to_a, allocation.covered.a),
        ("B", totals.to_b, allocation.covered.b),
    ):
        if replayed != covered:
            message = replay_mismatch(case.id, bucket, replayed, covered)
            logger.error(message)
            raise InternalInconsistencyError(message)
