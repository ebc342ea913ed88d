"""
Payment initiation - create the provider intent, then the local record.

Flow:
  1. Validate the money (known currency, positive amount, no more decimals
     than the currency allows) and the seller (an active SELLER other than
     the buyer).
  2. When the reference is known up front (Flutterwave with an idempotency
     key), refuse a retry whose reference is already recorded. The provider
     is not called again, so no second checkout link exists.
  3. Ask the selected gateway for exactly one payment intent.
  4. Insert the PENDING transaction carrying the provider's reference.

Steps 3 and 4 cannot be made atomic: one is a network call to a third party,
the other a local write. The local insert runs inside the request's session
scope (commit on success, rollback on any error, connection always
released). If the process dies or the insert fails after step 3, the intent
exists at the provider with no local row; that case is logged as
`payment_intent_orphaned` with the reference so an out-of-band sweep against
the provider can find it.
"""

import uuid

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_payments.exceptions import (
    DuplicateProviderReferenceError,
    GatewayConfigurationError,
    InvalidSellerError,
)
from marketplace_payments.gateways.base import (
    CustomerContact,
    InitiationRequest,
    PaymentGateway,
)
from marketplace_payments.models.transaction import PaymentProvider, Transaction
from marketplace_payments.models.user import User, UserRole
from marketplace_payments.money import normalize_currency, to_minor_units
from marketplace_payments.schemas.payment import PaymentInitiationRequest
from marketplace_payments.services import transaction_service

logger = structlog.get_logger(__name__)


async def _check_seller(db: AsyncSession, seller_id: uuid.UUID, buyer: User) -> None:
    if seller_id == buyer.id:
        raise InvalidSellerError(seller_id, "A buyer cannot pay themselves")

    seller = await db.get(User, seller_id)
    if seller is None or not seller.is_active or seller.role != UserRole.SELLER:
        raise InvalidSellerError(seller_id, f"User {seller_id} is not an active seller")


async def initiate_payment(
    db: AsyncSession,
    gateways: dict[PaymentProvider, PaymentGateway],
    buyer: User,
    request: PaymentInitiationRequest,
    idempotency_key: str | None = None,
) -> tuple[Transaction, str]:
    """
    Start a payment for a listing or offer.

    Args:
        db: Database session (request scope).
        gateways: The configured gateway per provider.
        buyer: The authenticated buyer.
        request: Validated initiation payload.
        idempotency_key: Optional client key forwarded to the provider so a
            deliberate retry does not create a second intent.

    Returns:
        Tuple of (pending Transaction, client handle for the payer).

    Raises:
        InvalidAmountError / InvalidCurrencyError: Bad money.
        InvalidSellerError: The seller is unknown, inactive, not a seller, or
            the buyer.
        GatewayUnavailableError / GatewayRejectedError /
        GatewayConfigurationError: From the gateway, unchanged.
        DuplicateProviderReferenceError: The reference is already recorded,
            including a retried idempotency key (raised before the gateway
            is called).
    """
    currency = normalize_currency(request.currency)
    amount_minor = to_minor_units(request.amount, currency)

    await _check_seller(db, request.seller_id, buyer)

    gateway = gateways.get(request.provider)
    if gateway is None:
        raise GatewayConfigurationError(request.provider.value)

    customer = None
    if request.customer is not None:
        customer = CustomerContact(
            email=request.customer.email,
            name=request.customer.name,
            phone=request.customer.phone,
        )
    elif request.provider == PaymentProvider.FLUTTERWAVE:
        customer = CustomerContact(email=buyer.email, name=buyer.full_name)

    buyer_id = buyer.id
    log = logger.bind(
        buyer_id=str(buyer_id),
        listing_id=request.listing_id,
        offer_id=request.offer_id,
        provider=request.provider.value,
    )

    known_reference = gateway.reference_for(str(buyer_id), idempotency_key)
    if known_reference is not None:
        existing = await transaction_service.find_by_reference(
            db, request.provider, known_reference
        )
        if existing is not None:
            log.info(
                "payment_initiation_replayed",
                provider_reference=known_reference,
                transaction_id=str(existing.id),
            )
            raise DuplicateProviderReferenceError(request.provider.value, known_reference)

    result = await gateway.initiate(
        InitiationRequest(
            amount=request.amount,
            amount_minor=amount_minor,
            currency=currency,
            payer_id=str(buyer_id),
            listing_id=request.listing_id,
            offer_id=request.offer_id,
            customer=customer,
            idempotency_key=idempotency_key,
            redirect_url=request.redirect_url,
        )
    )
    log = log.bind(provider_reference=result.provider_reference)

    try:
        txn = await transaction_service.insert_pending_transaction(
            db,
            buyer_id=buyer_id,
            seller_id=request.seller_id,
            listing_id=request.listing_id,
            offer_id=request.offer_id,
            amount_minor=amount_minor,
            currency=currency,
            provider=request.provider,
            provider_reference=result.provider_reference,
        )
    except Exception:
        log.error("payment_intent_orphaned")
        raise

    log.info(
        "payment_initiated",
        transaction_id=str(txn.id),
        amount_minor=amount_minor,
        currency=currency,
    )
    return txn, result.client_handle
