"""
Hand-off of completed sales to the listing catalog.

The catalog marks a listing sold when it learns a payment for it completed.
It is reached through this small interface; the default implementation only
logs, and deployments swap in a real client by overriding the
get_listing_notifier dependency.

Called after the status change has been committed, and only by the applier
that actually performed the PENDING -> COMPLETED transition, so a
redelivered webhook never notifies twice.
"""

import structlog

from marketplace_payments.models.transaction import Transaction

logger = structlog.get_logger(__name__)


class ListingNotifier:
    async def transaction_completed(self, transaction: Transaction) -> None:
        logger.info(
            "listing_sale_completed",
            transaction_id=str(transaction.id),
            listing_id=transaction.listing_id,
            offer_id=transaction.offer_id,
            seller_id=str(transaction.seller_id),
        )
