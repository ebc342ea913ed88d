"""
Transaction store and query service.

Store functions (called by the payment and reconciliation services):
  - insert_pending_transaction: persist a freshly initiated payment
  - find_by_reference: match a webhook to its transaction, optionally
    locking the row (SELECT ... FOR UPDATE)
  - record_gateway_event: append a delivery to the audit log

Query functions (called by the transactions router):
  - get_transaction: one transaction, visible only to its buyer, its
    seller, or an admin
  - list_transactions_for_buyer: a buyer's purchases, newest first
  - get_transaction_events: the audit trail of one transaction (admin)

None of these commit. The caller's session scope decides when the work
becomes durable, so a status change and its audit row always commit or roll
back together.

SQLite note:
  with_for_update() is a no-op on SQLite; its database-level write lock
  serializes writers instead. On PostgreSQL the row lock makes concurrent
  webhook appliers queue behind each other.
"""

import uuid

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_payments.exceptions import (
    DuplicateProviderReferenceError,
    TransactionNotFoundError,
    UnauthorizedAccessError,
)
from marketplace_payments.gateways.base import GatewayEvent
from marketplace_payments.models.gateway_event import EventDisposition, GatewayEventLog
from marketplace_payments.models.transaction import (
    PaymentProvider,
    Transaction,
    TransactionStatus,
)
from marketplace_payments.models.user import User

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

async def insert_pending_transaction(
    db: AsyncSession,
    buyer_id: uuid.UUID,
    seller_id: uuid.UUID,
    listing_id: int,
    offer_id: int | None,
    amount_minor: int,
    currency: str,
    provider: PaymentProvider,
    provider_reference: str,
) -> Transaction:
    """
    Insert a PENDING transaction and flush it so the id is assigned.

    Raises:
        DuplicateProviderReferenceError: If (provider, provider_reference)
            is already bound to a row. The session is rolled back.
    """
    txn = Transaction(
        buyer_id=buyer_id,
        seller_id=seller_id,
        listing_id=listing_id,
        offer_id=offer_id,
        amount_minor=amount_minor,
        currency=currency,
        provider=provider,
        provider_reference=provider_reference,
        status=TransactionStatus.PENDING,
    )
    db.add(txn)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        if await find_by_reference(db, provider, provider_reference) is None:
            raise
        logger.error(
            "provider_reference_conflict",
            provider=provider.value,
            provider_reference=provider_reference,
        )
        raise DuplicateProviderReferenceError(provider.value, provider_reference)
    return txn


async def find_by_reference(
    db: AsyncSession,
    provider: PaymentProvider,
    provider_reference: str,
    lock: bool = False,
) -> Transaction | None:
    query = select(Transaction).where(
        Transaction.provider == provider,
        Transaction.provider_reference == provider_reference,
    )
    if lock:
        query = query.with_for_update()
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def record_gateway_event(
    db: AsyncSession,
    event: GatewayEvent,
    disposition: EventDisposition,
    transaction_id: uuid.UUID | None,
) -> GatewayEventLog:
    entry = GatewayEventLog(
        provider=event.provider,
        provider_reference=event.provider_reference,
        outcome=event.outcome,
        event_type=event.event_type,
        provider_event_id=event.provider_event_id,
        transaction_id=transaction_id,
        disposition=disposition,
        raw_payload=event.raw_payload,
        received_at=event.received_at,
    )
    db.add(entry)
    await db.flush()
    return entry


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

async def _load(db: AsyncSession, transaction_id: uuid.UUID) -> Transaction:
    result = await db.execute(
        select(Transaction).where(Transaction.id == transaction_id)
    )
    txn = result.scalar_one_or_none()
    if txn is None:
        raise TransactionNotFoundError(transaction_id)
    return txn


async def get_transaction(
    db: AsyncSession,
    transaction_id: uuid.UUID,
    requester: User,
) -> Transaction:
    """
    Get a single transaction, narrowed to the parties allowed to see it.

    Raises:
        TransactionNotFoundError: If no such transaction exists.
        UnauthorizedAccessError: If the requester is neither the buyer, the
            seller, nor an admin.
    """
    txn = await _load(db, transaction_id)

    if requester.is_admin or requester.id in (txn.buyer_id, txn.seller_id):
        return txn

    raise UnauthorizedAccessError("You do not have access to this transaction")


async def list_transactions_for_buyer(
    db: AsyncSession,
    buyer_id: uuid.UUID,
    limit: int = 50,
    offset: int = 0,
) -> list[Transaction]:
    """List the transactions a user paid for, newest first."""
    result = await db.execute(
        select(Transaction)
        .where(Transaction.buyer_id == buyer_id)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all())


async def get_transaction_events(
    db: AsyncSession,
    transaction_id: uuid.UUID,
) -> list[GatewayEventLog]:
    """[ADMIN ONLY] The gateway deliveries matched to a transaction, oldest first."""
    await _load(db, transaction_id)

    result = await db.execute(
        select(GatewayEventLog)
        .where(GatewayEventLog.transaction_id == transaction_id)
        .order_by(GatewayEventLog.received_at.asc())
    )
    return list(result.scalars().all())
