"""
Payments router - initiate a payment for a listing or offer.

Endpoints:
  POST /payments  - Create a provider intent and a PENDING transaction

The transaction is committed before the 201 is returned, so a webhook that
arrives as soon as the payer completes checkout can already find it.
"""

from fastapi import APIRouter, Depends, Header, status
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_payments.database import get_db
from marketplace_payments.dependencies import get_gateways, require_buyer
from marketplace_payments.gateways.base import PaymentGateway
from marketplace_payments.models.transaction import PaymentProvider
from marketplace_payments.models.user import User
from marketplace_payments.schemas.payment import (
    PaymentInitiationRequest,
    PaymentInitiationResponse,
)
from marketplace_payments.services import payment_service

router = APIRouter()


@router.post(
    "",
    response_model=PaymentInitiationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Initiate a payment",
)
async def initiate_payment(
    request: PaymentInitiationRequest,
    idempotency_key: str | None = Header(None, max_length=200),
    buyer: User = Depends(require_buyer),
    gateways: dict[PaymentProvider, PaymentGateway] = Depends(get_gateways),
    db: AsyncSession = Depends(get_db),
):
    """
    Start paying for a listing (or a negotiated offer on it).

    - **stripe**: `client_handle` is a PaymentIntent client secret for Stripe.js
    - **flutterwave**: `client_handle` is the hosted checkout link

    A 502 means the provider could not be reached and the outcome is
    unknown; retry only with a new `Idempotency-Key`.
    """
    txn, client_handle = await payment_service.initiate_payment(
        db=db,
        gateways=gateways,
        buyer=buyer,
        request=request,
        idempotency_key=idempotency_key,
    )
    await db.commit()

    return PaymentInitiationResponse(
        transaction_id=txn.id,
        provider=txn.provider,
        provider_reference=txn.provider_reference,
        status=txn.status,
        amount=txn.amount,
        currency=txn.currency,
        client_handle=client_handle,
    )
