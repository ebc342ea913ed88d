"""
Flutterwave integration: Standard checkout links and webhook verification.

Initiation calls POST /v3/payments with a locally generated tx_ref and
returns the hosted checkout link; the buyer is redirected there and
Flutterwave reports the outcome by webhook. The tx_ref is the provider
reference stored on the transaction.

Webhook authentication:
  Flutterwave echoes the dashboard "secret hash" in the verif-hash header of
  every delivery. It is compared in constant time with the configured value.

Webhook mapping (charge.completed payloads, plus the flat legacy shape):
  data.status == "successful" -> SUCCEEDED
  data.status == "failed"     -> FAILED
Other statuses are ignored.
"""

import hashlib
import hmac
import json
import uuid

import httpx
import structlog

from marketplace_payments.exceptions import (
    GatewayConfigurationError,
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

_STATUS_OUTCOMES = {
    "successful": GatewayOutcome.SUCCEEDED,
    "failed": GatewayOutcome.FAILED,
}


class FlutterwaveGateway(PaymentGateway):
    """Creates Flutterwave Standard payment links."""

    provider = PaymentProvider.FLUTTERWAVE

    def __init__(
        self,
        secret_key: str | None,
        timeout: float,
        base_url: str,
        default_redirect_url: str,
        title: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(timeout)
        self._secret_key = secret_key
        self._default_redirect_url = default_redirect_url
        self._title = title
        self._http = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
        )

    @staticmethod
    def make_reference(payer_id: str, idempotency_key: str | None) -> str:
        if idempotency_key:
            # Scoped to the payer so two buyers reusing a key never collide
            digest = hashlib.sha256(f"{payer_id}:{idempotency_key}".encode("utf-8"))
            return f"tx_{digest.hexdigest()[:32]}"
        return f"tx_{uuid.uuid4().hex}"

    def reference_for(self, payer_id: str, idempotency_key: str | None) -> str | None:
        if not idempotency_key:
            return None
        return self.make_reference(payer_id, idempotency_key)

    async def _create_intent(self, request: InitiationRequest) -> InitiationResult:
        if not self._secret_key:
            raise GatewayConfigurationError(self.provider.value)

        customer = request.customer
        if customer is None or not customer.email:
            raise GatewayRejectedError(
                self.provider.value, "Flutterwave requires a customer email"
            )

        tx_ref = self.make_reference(request.payer_id, request.idempotency_key)
        meta = {"buyer_id": request.payer_id, "listing_id": request.listing_id}
        if request.offer_id is not None:
            meta["offer_id"] = request.offer_id

        payload = {
            "tx_ref": tx_ref,
            # Major units, as a string so no float is involved
            "amount": str(request.amount),
            "currency": request.currency,
            "redirect_url": request.redirect_url or self._default_redirect_url,
            "customer": {
                key: value
                for key, value in (
                    ("email", customer.email),
                    ("name", customer.name),
                    ("phonenumber", customer.phone),
                )
                if value
            },
            "customizations": {
                "title": self._title,
                "description": f"Payment for {request.subject}",
            },
            "meta": meta,
        }

        logger.info(
            "flutterwave_payment_creating",
            tx_ref=tx_ref,
            amount=str(request.amount),
            currency=request.currency,
        )

        try:
            response = await self._http.post(
                "/v3/payments",
                json=payload,
                headers={"Authorization": f"Bearer {self._secret_key}"},
            )
        except httpx.HTTPError as exc:
            logger.error("flutterwave_unavailable", error_type=type(exc).__name__)
            raise GatewayUnavailableError(
                self.provider.value, f"Flutterwave is unavailable: {type(exc).__name__}"
            ) from exc

        if response.status_code >= 500 or response.status_code == 429:
            logger.error("flutterwave_unavailable", http_status=response.status_code)
            raise GatewayUnavailableError(
                self.provider.value,
                f"Flutterwave returned HTTP {response.status_code}",
            )

        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            body = {}

        data = body.get("data") if isinstance(body.get("data"), dict) else {}
        link = data.get("link")
        if response.status_code >= 400 or body.get("status") != "success" or not link:
            message = body.get("message")
            logger.warning(
                "flutterwave_request_rejected",
                http_status=response.status_code,
                provider_message=message,
            )
            raise GatewayRejectedError(
                self.provider.value,
                message or f"Flutterwave rejected the payment (HTTP {response.status_code})",
            )

        return InitiationResult(provider_reference=tx_ref, client_handle=link)

    async def aclose(self) -> None:
        await self._http.aclose()


class FlutterwaveWebhookVerifier(WebhookVerifier):
    """Checks the verif-hash header and normalizes Flutterwave payloads."""

    provider = PaymentProvider.FLUTTERWAVE
    signature_header = "verif-hash"

    def __init__(self, secret_hash: str | None):
        self._secret_hash = secret_hash

    def verify(self, raw_body: bytes, signature: str | None) -> GatewayEvent | None:
        if not self._secret_hash:
            logger.error("webhook_secret_missing", provider=self.provider.value)
            raise WebhookVerificationError()
        if not signature or not hmac.compare_digest(
            signature.encode("utf-8"), self._secret_hash.encode("utf-8")
        ):
            raise WebhookVerificationError()

        try:
            text = raw_body.decode("utf-8")
            payload = json.loads(text)
        except ValueError:
            raise WebhookVerificationError()
        if not isinstance(payload, dict):
            raise WebhookVerificationError()

        # charge.completed nests the charge under "data"; legacy hooks are flat
        data = payload.get("data") if isinstance(payload.get("data"), dict) else payload
        status = str(data.get("status", "")).lower()
        outcome = _STATUS_OUTCOMES.get(status)
        if outcome is None:
            logger.info("flutterwave_event_ignored", status=status)
            return None

        reference = data.get("tx_ref") or data.get("txRef")
        if not reference:
            logger.warning("flutterwave_event_without_reference", status=status)
            return None

        provider_event_id = data.get("id")
        return GatewayEvent(
            provider=self.provider,
            provider_reference=str(reference),
            outcome=outcome,
            event_type=payload.get("event") or payload.get("event.type") or f"charge.{status}",
            raw_payload=text,
            provider_event_id=str(provider_event_id) if provider_event_id is not None else None,
        )
