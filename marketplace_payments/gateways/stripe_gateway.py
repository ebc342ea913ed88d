"""
Stripe integration: PaymentIntent creation and webhook verification.

Initiation creates a PaymentIntent and hands its client secret back to the
caller; the browser confirms the payment with Stripe.js. Stripe then reports
the result through signed webhooks.

Webhook mapping:
  payment_intent.succeeded       -> SUCCEEDED  (reference: PaymentIntent id)
  payment_intent.payment_failed  -> FAILED
  payment_intent.canceled        -> FAILED
  charge.refunded                -> REFUNDED   (reference: charge.payment_intent,
                                                full refunds only)
Anything else is authentic but irrelevant and is ignored.

Error classification follows the SDK's exception types: connection, rate
limit and API (5xx) errors are transient and surface as
GatewayUnavailableError; card, request, authentication and idempotency errors
are permanent and surface as GatewayRejectedError. Unknown Stripe errors are
treated as transient because the intent may exist.
"""

import json

import stripe
import structlog
from fastapi.concurrency import run_in_threadpool

from marketplace_payments.exceptions import (
    GatewayConfigurationError,
    GatewayError,
    GatewayRejectedError,
    GatewayUnavailableError,
    WebhookVerificationError,
)
from marketplace_payments.gateways.base import (
    GatewayEvent,
    InitiationRequest,
    InitiationResult,
    PaymentGateway,
    WebhookVerifier,
)
from marketplace_payments.models.gateway_event import GatewayOutcome
from marketplace_payments.models.transaction import PaymentProvider

logger = structlog.get_logger(__name__)

_TRANSIENT_ERRORS = (
    stripe.APIConnectionError,
    stripe.RateLimitError,
    stripe.APIError,
)
_PERMANENT_ERRORS = (
    stripe.CardError,
    stripe.InvalidRequestError,
    stripe.AuthenticationError,
    stripe.PermissionError,
    stripe.IdempotencyError,
)

_EVENT_OUTCOMES = {
    "payment_intent.succeeded": GatewayOutcome.SUCCEEDED,
    "payment_intent.payment_failed": GatewayOutcome.FAILED,
    "payment_intent.canceled": GatewayOutcome.FAILED,
    "charge.refunded": GatewayOutcome.REFUNDED,
}


class StripeGateway(PaymentGateway):
    """Creates Stripe PaymentIntents."""

    provider = PaymentProvider.STRIPE

    def __init__(
        self,
        secret_key: str | None,
        timeout: float,
        client: stripe.StripeClient | None = None,
    ):
        super().__init__(timeout)
        self._secret_key = secret_key
        self._client = client

    def _get_client(self) -> stripe.StripeClient:
        if self._client is None:
            if not self._secret_key:
                raise GatewayConfigurationError(self.provider.value)
            # The SDK's own retries are disabled: one call, one intent
            self._client = stripe.StripeClient(
                self._secret_key,
                max_network_retries=0,
                http_client=stripe.RequestsClient(timeout=self.timeout),
            )
        return self._client

    async def _create_intent(self, request: InitiationRequest) -> InitiationResult:
        client = self._get_client()

        metadata = {
            "buyer_id": request.payer_id,
            "listing_id": str(request.listing_id),
        }
        if request.offer_id is not None:
            metadata["offer_id"] = str(request.offer_id)

        params = {
            "amount": request.amount_minor,
            "currency": request.currency.lower(),
            "description": f"Payment for {request.subject}",
            "metadata": metadata,
            "automatic_payment_methods": {"enabled": True},
        }
        if request.customer is not None and request.customer.email:
            params["receipt_email"] = request.customer.email

        options = {}
        if request.idempotency_key:
            options["idempotency_key"] = request.idempotency_key

        logger.info(
            "stripe_intent_creating",
            amount_minor=request.amount_minor,
            currency=request.currency,
            listing_id=request.listing_id,
        )

        try:
            intent = await run_in_threadpool(
                client.payment_intents.create, params=params, options=options
            )
        except stripe.StripeError as exc:
            raise self._classify_error(exc) from exc

        return InitiationResult(
            provider_reference=intent.id,
            client_handle=intent.client_secret,
        )

    def _classify_error(self, error: stripe.StripeError) -> GatewayError:
        provider = self.provider.value
        message = getattr(error, "user_message", None) or str(error) or type(error).__name__

        if isinstance(error, _PERMANENT_ERRORS):
            logger.warning(
                "stripe_request_rejected",
                error_type=type(error).__name__,
                error_code=getattr(error, "code", None),
                http_status=getattr(error, "http_status", None),
            )
            return GatewayRejectedError(provider, message)

        logger.error(
            "stripe_unavailable",
            error_type=type(error).__name__,
            http_status=getattr(error, "http_status", None),
            known_transient=isinstance(error, _TRANSIENT_ERRORS),
        )
        return GatewayUnavailableError(provider, f"Stripe is unavailable: {message}")


class StripeWebhookVerifier(WebhookVerifier):
    """Verifies the Stripe-Signature header and normalizes Stripe events."""

    provider = PaymentProvider.STRIPE
    signature_header = "Stripe-Signature"

    def __init__(self, webhook_secret: str | None):
        self._webhook_secret = webhook_secret

    def verify(self, raw_body: bytes, signature: str | None) -> GatewayEvent | None:
        if not self._webhook_secret:
            logger.error("webhook_secret_missing", provider=self.provider.value)
            raise WebhookVerificationError()
        if not signature:
            raise WebhookVerificationError()

        try:
            stripe.Webhook.construct_event(raw_body, signature, self._webhook_secret)
            text = raw_body.decode("utf-8")
            payload = json.loads(text)
        except (stripe.SignatureVerificationError, ValueError):
            raise WebhookVerificationError()
        if not isinstance(payload, dict):
            raise WebhookVerificationError()

        event_type = payload.get("type")
        outcome = _EVENT_OUTCOMES.get(event_type)
        if outcome is None:
            logger.info("stripe_event_ignored", event_type=event_type)
            return None

        data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
        obj = data.get("object") if isinstance(data.get("object"), dict) else {}
        if outcome is GatewayOutcome.REFUNDED:
            if not obj.get("refunded"):
                # Partial refunds do not change the transaction status
                logger.info("stripe_partial_refund_ignored", charge_id=obj.get("id"))
                return None
            reference = obj.get("payment_intent")
        else:
            reference = obj.get("id")

        if not reference:
            logger.warning("stripe_event_without_reference", event_type=event_type)
            return None

        return GatewayEvent(
            provider=self.provider,
            provider_reference=reference,
            outcome=outcome,
            event_type=event_type,
            raw_payload=text,
            provider_event_id=payload.get("id"),
        )
