"""
Pydantic schemas for payment initiation and webhook acknowledgement.

Amounts are decimal strings or JSON numbers in major units (e.g. "100.00"
USD). They are parsed straight into decimal.Decimal; the service layer checks
them against the currency's minor-unit exponent.
"""

import uuid
from decimal import Decimal

from pydantic import BaseModel, EmailStr, Field

from marketplace_payments.models.transaction import PaymentProvider, TransactionStatus


class CustomerDetails(BaseModel):
    """Payer contact details forwarded to providers that need them."""
    email: EmailStr | None = None
    name: str | None = Field(None, max_length=200)
    phone: str | None = Field(None, max_length=30)


class PaymentInitiationRequest(BaseModel):
    """Request body for POST /payments."""
    # Sign, precision and currency are checked by the service (400, not 422)
    amount: Decimal = Field(max_digits=18, description="Amount in major units")
    currency: str = Field(max_length=8, description="ISO 4217 code")
    listing_id: int = Field(gt=0)
    offer_id: int | None = Field(
        None, gt=0, description="Set when paying for a negotiated offer"
    )
    seller_id: uuid.UUID = Field(description="The user credited by the sale")
    provider: PaymentProvider
    customer: CustomerDetails | None = None
    redirect_url: str | None = Field(
        None, max_length=2048, description="Flutterwave only: where to send the payer afterwards"
    )


class PaymentInitiationResponse(BaseModel):
    """Response body for a successful POST /payments."""
    transaction_id: uuid.UUID
    provider: PaymentProvider
    provider_reference: str
    status: TransactionStatus
    amount: Decimal
    currency: str
    # Stripe client secret or Flutterwave checkout link
    client_handle: str


class WebhookAck(BaseModel):
    """Acknowledges receipt only; says nothing about the payment's outcome."""
    received: bool = True
