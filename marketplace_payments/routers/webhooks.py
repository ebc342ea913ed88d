"""
Webhooks router - inbound provider notifications.

Endpoints:
  POST /webhooks/{provider}  - Stripe or Flutterwave delivery

No session authentication: the provider's signature is the only credential.

Response policy:
  - 400 only when verification fails. Unknown provider, missing or wrong
    signature, and unconfigured secret all get the identical body.
  - 200 for every verified delivery, whatever the reconciliation engine
    decided (applied, duplicate, rejected, unmatched). The response means
    "delivery received", never "payment accepted"; answering anything else
    would make the provider redeliver an event a resend cannot fix.

The status change and its audit row are committed before the 200 goes out.
"""

import structlog
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_payments.database import get_db
from marketplace_payments.dependencies import get_listing_notifier, get_verifiers
from marketplace_payments.exceptions import WebhookVerificationError
from marketplace_payments.gateways.base import WebhookVerifier
from marketplace_payments.models.transaction import PaymentProvider
from marketplace_payments.schemas.payment import WebhookAck
from marketplace_payments.services import reconciliation_service
from marketplace_payments.services.listing_notifier import ListingNotifier

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post(
    "/{provider}",
    response_model=WebhookAck,
    summary="Receive a payment provider webhook",
)
async def receive_webhook(
    provider: str,
    request: Request,
    verifiers: dict[PaymentProvider, WebhookVerifier] = Depends(get_verifiers),
    notifier: ListingNotifier = Depends(get_listing_notifier),
    db: AsyncSession = Depends(get_db),
):
    raw_body = await request.body()

    try:
        verifier = verifiers[PaymentProvider(provider)]
    except (ValueError, KeyError):
        verifier = None

    if verifier is None:
        logger.warning("webhook_rejected")
        raise WebhookVerificationError()

    signature = request.headers.get(verifier.signature_header)
    try:
        event = verifier.verify(raw_body, signature)
    except WebhookVerificationError:
        logger.warning("webhook_rejected", provider=verifier.provider.value)
        raise

    if event is None:
        return WebhookAck()

    result = await reconciliation_service.apply_gateway_event(db, event)
    await db.commit()

    if result.completed_sale:
        try:
            await notifier.transaction_completed(result.transaction)
        except Exception:
            # The sale is committed; a notifier outage must not trigger redelivery
            logger.exception(
                "listing_notification_failed",
                transaction_id=str(result.transaction.id),
            )

    return WebhookAck()
