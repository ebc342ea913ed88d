"""
Pydantic schemas for the transaction read and override endpoints.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel

from marketplace_payments.models.gateway_event import EventDisposition, GatewayOutcome
from marketplace_payments.models.transaction import PaymentProvider, TransactionStatus


class TransactionResponse(BaseModel):
    """Public representation of a transaction."""
    id: uuid.UUID
    buyer_id: uuid.UUID
    seller_id: uuid.UUID
    listing_id: int
    offer_id: int | None
    amount: Decimal
    currency: str
    provider: PaymentProvider
    provider_reference: str
    status: TransactionStatus
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class StatusOverrideRequest(BaseModel):
    """Request body for PUT /transactions/{id}/status."""
    status: TransactionStatus


class GatewayEventResponse(BaseModel):
    """One audited webhook delivery."""
    id: uuid.UUID
    provider: PaymentProvider
    provider_reference: str
    outcome: GatewayOutcome
    event_type: str
    provider_event_id: str | None
    disposition: EventDisposition
    received_at: datetime

    model_config = {"from_attributes": True}
