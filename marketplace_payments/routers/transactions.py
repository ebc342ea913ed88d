"""
Transactions router - read payment records and apply admin overrides.

Endpoints:
  GET /transactions                    - The caller's purchases, newest first
  GET /transactions/{transaction_id}   - One transaction (buyer, seller, admin)
  GET /transactions/{transaction_id}/events  - [Admin] its webhook audit trail
  PUT /transactions/{transaction_id}/status  - [Admin] status override
"""

import uuid

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_payments.database import get_db
from marketplace_payments.dependencies import (
    get_current_user,
    get_listing_notifier,
    require_admin,
)
from marketplace_payments.models.user import User
from marketplace_payments.schemas.transaction import (
    GatewayEventResponse,
    StatusOverrideRequest,
    TransactionResponse,
)
from marketplace_payments.services import reconciliation_service, transaction_service
from marketplace_payments.services.listing_notifier import ListingNotifier

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get(
    "",
    response_model=list[TransactionResponse],
    summary="List my transactions",
)
async def list_transactions(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List the transactions the caller paid for, newest first."""
    return await transaction_service.list_transactions_for_buyer(
        db=db,
        buyer_id=user.id,
        limit=limit,
        offset=offset,
    )


@router.get(
    "/{transaction_id}",
    response_model=TransactionResponse,
    summary="Get a single transaction",
)
async def get_transaction(
    transaction_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Visible to the transaction's buyer, its seller, and admins."""
    return await transaction_service.get_transaction(
        db=db,
        transaction_id=transaction_id,
        requester=user,
    )


@router.get(
    "/{transaction_id}/events",
    response_model=list[GatewayEventResponse],
    summary="[Admin] List webhook deliveries for a transaction",
)
async def get_transaction_events(
    transaction_id: uuid.UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await transaction_service.get_transaction_events(db, transaction_id)


@router.put(
    "/{transaction_id}/status",
    response_model=TransactionResponse,
    summary="[Admin] Override a transaction's status",
)
async def override_status(
    transaction_id: uuid.UUID,
    request: StatusOverrideRequest,
    admin: User = Depends(require_admin),
    notifier: ListingNotifier = Depends(get_listing_notifier),
    db: AsyncSession = Depends(get_db),
):
    """
    Correct a transaction by hand, e.g. cancel a stuck payment (-> failed)
    or record a refund made outside the gateway (-> refunded).

    Only edges of the status state machine are allowed; anything else is 409.
    """
    result = await reconciliation_service.override_status(
        db=db,
        transaction_id=transaction_id,
        target_status=request.status,
        admin=admin,
    )
    await db.commit()

    if result.completed_sale:
        try:
            await notifier.transaction_completed(result.transaction)
        except Exception:
            # The override is committed; retrying it would be a no-op
            logger.exception(
                "listing_notification_failed",
                transaction_id=str(result.transaction.id),
            )

    return result.transaction
