"""
Gateway contracts shared by every payment provider.

Two capabilities are defined here, one per direction of traffic:

  PaymentGateway  - outbound: create a provider-side payment intent
  WebhookVerifier - inbound: authenticate a webhook and normalize it into
                    a provider-agnostic GatewayEvent

Each provider module supplies one implementation of each. Callers select an
implementation by the `provider` value stored on the request or transaction
and never branch on the provider themselves.

Timeouts:
  PaymentGateway.initiate() bounds every provider call with asyncio.wait_for.
  Expiry raises GatewayUnavailableError: the provider may or may not have
  created the intent, so the outcome is reported as unknown, never as failed.
"""

import abc
import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal

import structlog

from marketplace_payments.exceptions import GatewayUnavailableError
from marketplace_payments.models.gateway_event import GatewayOutcome
from marketplace_payments.models.transaction import PaymentProvider

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CustomerContact:
    """Optional payer contact details some providers require."""
    email: str | None = None
    name: str | None = None
    phone: str | None = None


@dataclass(frozen=True)
class InitiationRequest:
    amount: Decimal
    amount_minor: int
    currency: str
    payer_id: str
    listing_id: int
    offer_id: int | None = None
    customer: CustomerContact | None = None
    idempotency_key: str | None = None
    redirect_url: str | None = None

    @property
    def subject(self) -> str:
        """The thing being paid for: the offer when present, else the listing."""
        if self.offer_id is not None:
            return f"offer {self.offer_id}"
        return f"listing {self.listing_id}"


@dataclass(frozen=True)
class InitiationResult:
    provider_reference: str
    # Client secret (Stripe) or hosted checkout link (Flutterwave); opaque
    client_handle: str


@dataclass(frozen=True)
class GatewayEvent:
    """A verified webhook delivery in provider-agnostic form."""
    provider: PaymentProvider
    provider_reference: str
    outcome: GatewayOutcome
    event_type: str
    raw_payload: str
    provider_event_id: str | None = None
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class PaymentGateway(abc.ABC):
    """Creates payment intents with one external provider."""

    provider: PaymentProvider

    def __init__(self, timeout: float):
        self.timeout = timeout

    async def initiate(self, request: InitiationRequest) -> InitiationResult:
        """
        Create exactly one provider-side payment intent.

        Never retried here: a retry after an ambiguous failure could create a
        second charge, so that decision belongs to the caller.

        Raises:
            GatewayUnavailableError: Network failure, timeout, provider 5xx.
            GatewayRejectedError: The provider refused the request.
            GatewayConfigurationError: Credentials are missing.
        """
        try:
            return await asyncio.wait_for(
                self._create_intent(request), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.warning(
                "gateway_timeout",
                provider=self.provider.value,
                timeout_seconds=self.timeout,
            )
            raise GatewayUnavailableError(
                self.provider.value,
                f"{self.provider.value} did not respond within {self.timeout}s; "
                "the payment outcome is unknown",
            )

    def reference_for(self, payer_id: str, idempotency_key: str | None) -> str | None:
        """
        The reference an initiation will carry, when it is fixed before the call.

        Providers that assign their own reference (Stripe) return None.
        """
        return None

    @abc.abstractmethod
    async def _create_intent(self, request: InitiationRequest) -> InitiationResult:
        ...

    async def aclose(self) -> None:
        """Release network resources held by the gateway."""


class WebhookVerifier(abc.ABC):
    """Authenticates and decodes webhook deliveries from one provider."""

    provider: PaymentProvider
    # Request header carrying the provider's signature
    signature_header: str

    @abc.abstractmethod
    def verify(self, raw_body: bytes, signature: str | None) -> GatewayEvent | None:
        """
        Authenticate a delivery and normalize it.

        Returns None for authentic deliveries that do not concern payment
        status (other event types); these are acknowledged and not recorded.

        Raises:
            WebhookVerificationError: For any authentication or decoding
                failure. The reason is never exposed to the sender.
        """
