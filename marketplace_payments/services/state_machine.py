"""
Transaction status state machine.

    PENDING --succeeded--> COMPLETED --refunded--> REFUNDED
       |
       +------failed-----> FAILED

TRANSITIONS is the complete set of legal edges. Anything not listed is
illegal. ALREADY_APPLIED says, for each outcome, which statuses mean the
outcome has taken effect already (a REFUNDED transaction has necessarily
been COMPLETED), so a redelivery is recognized as a duplicate rather than an
illegal edge.
"""

import enum

from marketplace_payments.models.gateway_event import GatewayOutcome
from marketplace_payments.models.transaction import TransactionStatus

TRANSITIONS: dict[tuple[TransactionStatus, GatewayOutcome], TransactionStatus] = {
    (TransactionStatus.PENDING, GatewayOutcome.SUCCEEDED): TransactionStatus.COMPLETED,
    (TransactionStatus.PENDING, GatewayOutcome.FAILED): TransactionStatus.FAILED,
    (TransactionStatus.COMPLETED, GatewayOutcome.REFUNDED): TransactionStatus.REFUNDED,
}

ALREADY_APPLIED: dict[GatewayOutcome, frozenset[TransactionStatus]] = {
    GatewayOutcome.SUCCEEDED: frozenset(
        {TransactionStatus.COMPLETED, TransactionStatus.REFUNDED}
    ),
    GatewayOutcome.FAILED: frozenset({TransactionStatus.FAILED}),
    GatewayOutcome.REFUNDED: frozenset({TransactionStatus.REFUNDED}),
}

# Administrative overrides name a target status; each maps onto the outcome
# that would produce it. PENDING has no entry: nothing moves back to it.
OUTCOME_FOR_TARGET: dict[TransactionStatus, GatewayOutcome] = {
    TransactionStatus.COMPLETED: GatewayOutcome.SUCCEEDED,
    TransactionStatus.FAILED: GatewayOutcome.FAILED,
    TransactionStatus.REFUNDED: GatewayOutcome.REFUNDED,
}


class Verdict(str, enum.Enum):
    ADVANCE = "advance"
    DUPLICATE = "duplicate"
    ILLEGAL = "illegal"


def evaluate(
    current: TransactionStatus, outcome: GatewayOutcome
) -> tuple[Verdict, TransactionStatus | None]:
    """
    Decide what an outcome does to a transaction in `current`.

    Returns (ADVANCE, next_status), (DUPLICATE, None) or (ILLEGAL, None).
    """
    if current in ALREADY_APPLIED[outcome]:
        return Verdict.DUPLICATE, None
    next_status = TRANSITIONS.get((current, outcome))
    if next_status is None:
        return Verdict.ILLEGAL, None
    return Verdict.ADVANCE, next_status
