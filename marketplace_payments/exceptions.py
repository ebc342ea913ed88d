"""
Custom exception classes and FastAPI exception handlers.

The service layer raises domain-specific errors without importing HTTP
concepts; the handlers registered here translate them into HTTP responses
with a consistent JSON body: {"detail": ..., "error_type": ...}.

Exception hierarchy:
    PaymentAPIError (base)
    ├── InvalidAmountError               - amount <= 0 or too many decimals
    ├── InvalidCurrencyError             - unknown ISO-4217 code
    ├── InvalidSellerError               - seller unknown, not a seller, or the buyer
    ├── GatewayError                     - base for provider failures
    │   ├── GatewayUnavailableError      - network/timeout/5xx, retryable
    │   ├── GatewayRejectedError         - 4xx, card or credential problem
    │   └── GatewayConfigurationError    - credentials missing, fatal
    ├── WebhookVerificationError         - bad signature / unknown provider
    ├── TransactionNotFoundError         - no such transaction
    ├── UnauthorizedAccessError          - requester not a party to it
    ├── IllegalTransitionError           - admin override off the state graph
    ├── DuplicateProviderReferenceError  - (provider, reference) already used
    ├── DuplicateEmailError              - signup with a registered email
    └── InvalidCredentialsError          - bad login

Gateway errors carry a `retryable` flag so callers can tell "try again later"
from "fix the request" without matching on message text.
"""

import uuid

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class PaymentAPIError(Exception):
    """Base exception for all Marketplace Payments API domain errors."""

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)


# ---------------------------------------------------------------------------
# Money validation
# ---------------------------------------------------------------------------

class InvalidAmountError(PaymentAPIError):
    """Raised when an amount is not positive or not representable in the currency."""


class InvalidCurrencyError(PaymentAPIError):
    """Raised when a currency code is not a supported ISO-4217 code."""

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Unsupported currency: {currency!r}")


class InvalidSellerError(PaymentAPIError):
    """Raised when a payment names a seller that cannot be credited with the sale."""

    def __init__(self, seller_id: uuid.UUID, detail: str):
        self.seller_id = seller_id
        super().__init__(detail)


# ---------------------------------------------------------------------------
# Gateway errors
# ---------------------------------------------------------------------------

class GatewayError(PaymentAPIError):
    """
    Base class for failures talking to an external payment gateway.

    Attributes:
        provider: The provider identifier ("stripe", "flutterwave").
        retryable: Whether the same request may be retried later.
    """

    retryable: bool = False

    def __init__(self, provider: str, detail: str):
        self.provider = provider
        super().__init__(detail)


class GatewayUnavailableError(GatewayError):
    """
    The gateway could not be reached, timed out, or failed server-side.

    The outcome of the call is unknown: the provider may have created the
    payment intent. A retry must use a fresh idempotency key.
    """

    retryable = True


class GatewayRejectedError(GatewayError):
    """The gateway refused the request (amount, currency, card, credentials)."""


class GatewayConfigurationError(GatewayError):
    """The gateway has no credentials configured."""

    def __init__(self, provider: str):
        super().__init__(provider, f"Payment provider {provider} is not configured")


# ---------------------------------------------------------------------------
# Webhooks
# ---------------------------------------------------------------------------

class WebhookVerificationError(PaymentAPIError):
    """
    Raised when an inbound webhook cannot be authenticated.

    The message is deliberately the same for every cause (unknown provider,
    missing header, wrong signature, unconfigured secret, undecodable body).
    """

    def __init__(self):
        super().__init__("Webhook verification failed")


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------

class TransactionNotFoundError(PaymentAPIError):
    """Raised when a requested transaction does not exist."""

    def __init__(self, transaction_id: uuid.UUID):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction {transaction_id} not found")


class UnauthorizedAccessError(PaymentAPIError):
    """Raised when a user attempts to access a resource they are not party to."""

    def __init__(self, detail: str = "You do not have access to this resource"):
        super().__init__(detail)


class IllegalTransitionError(PaymentAPIError):
    """Raised when an administrative override asks for an edge the state machine forbids."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move transaction from {current} to {target}")


class DuplicateProviderReferenceError(PaymentAPIError):
    """Raised when a provider reference is already bound to another transaction."""

    def __init__(self, provider: str, provider_reference: str):
        self.provider = provider
        self.provider_reference = provider_reference
        super().__init__(
            f"Provider reference {provider_reference} is already recorded for {provider}"
        )


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

class DuplicateEmailError(PaymentAPIError):
    """Raised when attempting to register with an email that's already in use."""

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Email {email} is already registered")


class InvalidCredentialsError(PaymentAPIError):
    """Raised when login credentials are incorrect."""

    def __init__(self):
        super().__init__("Invalid email or password")


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def _error(status_code: int, exc: PaymentAPIError, error_type: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.detail, "error_type": error_type, **extra},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register custom exception handlers with the FastAPI application.

    Each handler maps a domain exception to an HTTP status code and the
    shared JSON error shape. Called once from create_app().
    """

    @app.exception_handler(InvalidAmountError)
    async def invalid_amount_handler(
        request: Request, exc: InvalidAmountError
    ) -> JSONResponse:
        return _error(400, exc, "invalid_amount")

    @app.exception_handler(InvalidCurrencyError)
    async def invalid_currency_handler(
        request: Request, exc: InvalidCurrencyError
    ) -> JSONResponse:
        return _error(400, exc, "invalid_currency")

    @app.exception_handler(InvalidSellerError)
    async def invalid_seller_handler(
        request: Request, exc: InvalidSellerError
    ) -> JSONResponse:
        return _error(400, exc, "invalid_seller")

    @app.exception_handler(GatewayUnavailableError)
    async def gateway_unavailable_handler(
        request: Request, exc: GatewayUnavailableError
    ) -> JSONResponse:
        # 502 Bad Gateway - the upstream processor failed, not this service
        return _error(
            502, exc, "gateway_unavailable",
            provider=exc.provider, retryable=exc.retryable,
        )

    @app.exception_handler(GatewayRejectedError)
    async def gateway_rejected_handler(
        request: Request, exc: GatewayRejectedError
    ) -> JSONResponse:
        return _error(
            400, exc, "gateway_rejected",
            provider=exc.provider, retryable=exc.retryable,
        )

    @app.exception_handler(GatewayConfigurationError)
    async def gateway_configuration_handler(
        request: Request, exc: GatewayConfigurationError
    ) -> JSONResponse:
        return _error(
            500, exc, "gateway_not_configured",
            provider=exc.provider, retryable=exc.retryable,
        )

    @app.exception_handler(WebhookVerificationError)
    async def webhook_verification_handler(
        request: Request, exc: WebhookVerificationError
    ) -> JSONResponse:
        return _error(400, exc, "webhook_verification_failed")

    @app.exception_handler(TransactionNotFoundError)
    async def transaction_not_found_handler(
        request: Request, exc: TransactionNotFoundError
    ) -> JSONResponse:
        return _error(404, exc, "transaction_not_found")

    @app.exception_handler(UnauthorizedAccessError)
    async def unauthorized_access_handler(
        request: Request, exc: UnauthorizedAccessError
    ) -> JSONResponse:
        return _error(403, exc, "unauthorized_access")

    @app.exception_handler(IllegalTransitionError)
    async def illegal_transition_handler(
        request: Request, exc: IllegalTransitionError
    ) -> JSONResponse:
        return _error(
            409, exc, "illegal_transition",
            current_status=exc.current, requested_status=exc.target,
        )

    @app.exception_handler(DuplicateProviderReferenceError)
    async def duplicate_reference_handler(
        request: Request, exc: DuplicateProviderReferenceError
    ) -> JSONResponse:
        return _error(409, exc, "duplicate_provider_reference")

    @app.exception_handler(DuplicateEmailError)
    async def duplicate_email_handler(
        request: Request, exc: DuplicateEmailError
    ) -> JSONResponse:
        return _error(409, exc, "duplicate_email")

    @app.exception_handler(InvalidCredentialsError)
    async def invalid_credentials_handler(
        request: Request, exc: InvalidCredentialsError
    ) -> JSONResponse:
        return _error(401, exc, "invalid_credentials")
