"""
Reconciliation engine - applies gateway events to transactions.

This is the only code that changes a transaction's status after creation.
Both entry points run the same advance routine:

  apply_gateway_event  - a verified webhook delivery
  override_status      - an administrator's explicit correction

Apply routine for one event:
  1. Find the transaction by (provider, reference), locking the row.
     No match: record the event as UNMATCHED and stop. The initiation write
     may not have committed yet, or the reference is foreign.
  2. Evaluate the outcome against the state machine:
       DUPLICATE -> nothing to do (absorbs provider redeliveries)
       ILLEGAL   -> log the inconsistency, change nothing
       ADVANCE   -> conditional UPDATE ... WHERE status = <observed status>
  3. If the conditional update matched no row, another applier won the race.
     Reload the row and evaluate again against the status it left behind.
  4. Insert the audit row with the disposition reached.

Steps 2-4 share the caller's session transaction, so the status write and
its audit row commit together or not at all.

Webhook anomalies (UNMATCHED, REJECTED) never raise. The webhook endpoint
acknowledges them so the provider stops redelivering; a resend cannot
resolve them. Administrative overrides do raise on illegal edges because a
user asked for them.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

import structlog
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_payments.exceptions import IllegalTransitionError
from marketplace_payments.gateways.base import GatewayEvent
from marketplace_payments.models.gateway_event import EventDisposition, GatewayOutcome
from marketplace_payments.models.transaction import Transaction, TransactionStatus
from marketplace_payments.models.user import User
from marketplace_payments.services import state_machine, transaction_service
from marketplace_payments.services.state_machine import Verdict

logger = structlog.get_logger(__name__)


@dataclass
class ApplyResult:
    disposition: EventDisposition
    transaction: Transaction | None
    previous_status: TransactionStatus | None = None

    @property
    def completed_sale(self) -> bool:
        """True when this application is what moved the transaction into COMPLETED."""
        return (
            self.disposition is EventDisposition.APPLIED
            and self.transaction is not None
            and self.transaction.status == TransactionStatus.COMPLETED
        )


async def _advance(
    db: AsyncSession,
    txn: Transaction,
    outcome: GatewayOutcome,
) -> EventDisposition:
    """Move `txn` along the edge for `outcome`, tolerating concurrent appliers."""
    while True:
        observed = txn.status
        verdict, next_status = state_machine.evaluate(observed, outcome)

        if verdict is Verdict.DUPLICATE:
            return EventDisposition.DUPLICATE
        if verdict is Verdict.ILLEGAL:
            return EventDisposition.REJECTED

        result = await db.execute(
            update(Transaction)
            .where(Transaction.id == txn.id, Transaction.status == observed)
            .values(status=next_status, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        await db.refresh(txn)

        if result.rowcount == 1:
            return EventDisposition.APPLIED

        logger.info(
            "transition_race_lost",
            transaction_id=str(txn.id),
            expected_status=observed.value,
            found_status=txn.status.value,
        )


async def apply_gateway_event(db: AsyncSession, event: GatewayEvent) -> ApplyResult:
    """
    Apply one verified gateway event. Never raises for state anomalies.

    Returns:
        ApplyResult with the disposition recorded in the audit log and the
        matched transaction (None when unmatched).
    """
    log = logger.bind(
        provider=event.provider.value,
        provider_reference=event.provider_reference,
        outcome=event.outcome.value,
        event_type=event.event_type,
    )

    txn = await transaction_service.find_by_reference(
        db, event.provider, event.provider_reference, lock=True
    )

    if txn is None:
        await transaction_service.record_gateway_event(
            db, event, EventDisposition.UNMATCHED, transaction_id=None
        )
        log.warning("gateway_event_unmatched")
        return ApplyResult(EventDisposition.UNMATCHED, None)

    previous_status = txn.status
    disposition = await _advance(db, txn, event.outcome)
    await transaction_service.record_gateway_event(
        db, event, disposition, transaction_id=txn.id
    )

    log = log.bind(transaction_id=str(txn.id), status=txn.status.value)
    if disposition is EventDisposition.APPLIED:
        log.info("gateway_event_applied", previous_status=previous_status.value)
    elif disposition is EventDisposition.DUPLICATE:
        log.info("gateway_event_duplicate")
    else:
        log.warning("gateway_event_rejected")

    return ApplyResult(disposition, txn, previous_status)


async def override_status(
    db: AsyncSession,
    transaction_id: uuid.UUID,
    target_status: TransactionStatus,
    admin: User,
) -> ApplyResult:
    """
    [ADMIN ONLY] Move a transaction to `target_status` along a legal edge.

    Requesting the status a transaction already has is a no-op.

    Raises:
        TransactionNotFoundError: If the transaction does not exist.
        IllegalTransitionError: If no legal edge leads to `target_status`.
    """
    txn = await transaction_service.get_transaction(db, transaction_id, admin)
    previous_status = txn.status
    if previous_status == target_status:
        logger.info(
            "transaction_status_override_noop",
            transaction_id=str(txn.id),
            admin_id=str(admin.id),
            status=previous_status.value,
        )
        return ApplyResult(EventDisposition.DUPLICATE, txn, previous_status)

    outcome = state_machine.OUTCOME_FOR_TARGET.get(target_status)
    if outcome is None:
        raise IllegalTransitionError(previous_status.value, target_status.value)

    disposition = await _advance(db, txn, outcome)
    # A REFUNDED transaction counts as already COMPLETED for webhooks, but an
    # admin asking for COMPLETED must not get a silent no-op
    if disposition is EventDisposition.REJECTED or txn.status != target_status:
        raise IllegalTransitionError(txn.status.value, target_status.value)

    logger.info(
        "transaction_status_overridden",
        transaction_id=str(txn.id),
        admin_id=str(admin.id),
        previous_status=previous_status.value,
        status=txn.status.value,
        disposition=disposition.value,
    )
    return ApplyResult(disposition, txn, previous_status)
