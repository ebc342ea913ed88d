"""
Construction of the per-provider gateway and verifier sets.

create_app() calls these once at startup and keeps the results on app.state;
request handlers reach them through the get_gateways / get_verifiers
dependencies, which tests override with fakes.
"""

from marketplace_payments.config import Settings
from marketplace_payments.gateways.base import PaymentGateway, WebhookVerifier
from marketplace_payments.gateways.flutterwave_gateway import (
    FlutterwaveGateway,
    FlutterwaveWebhookVerifier,
)
from marketplace_payments.gateways.stripe_gateway import (
    StripeGateway,
    StripeWebhookVerifier,
)
from marketplace_payments.models.transaction import PaymentProvider


def build_gateways(settings: Settings) -> dict[PaymentProvider, PaymentGateway]:
    return {
        PaymentProvider.STRIPE: StripeGateway(
            secret_key=settings.STRIPE_SECRET_KEY,
            timeout=settings.GATEWAY_TIMEOUT_SECONDS,
        ),
        PaymentProvider.FLUTTERWAVE: FlutterwaveGateway(
            secret_key=settings.FLUTTERWAVE_SECRET_KEY,
            timeout=settings.GATEWAY_TIMEOUT_SECONDS,
            base_url=settings.FLUTTERWAVE_BASE_URL,
            default_redirect_url=settings.FLUTTERWAVE_REDIRECT_URL,
            title=settings.PAYMENT_TITLE,
        ),
    }


def build_verifiers(settings: Settings) -> dict[PaymentProvider, WebhookVerifier]:
    return {
        PaymentProvider.STRIPE: StripeWebhookVerifier(settings.STRIPE_WEBHOOK_SECRET),
        PaymentProvider.FLUTTERWAVE: FlutterwaveWebhookVerifier(
            settings.FLUTTERWAVE_WEBHOOK_HASH
        ),
    }
