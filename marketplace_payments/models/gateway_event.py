"""
Gateway event audit log - one row per verified webhook delivery.

Every delivery that passes signature verification is recorded here,
including redeliveries of an event that was already applied and events for
references no transaction matches. The table is append-only: rows are
inserted by the reconciliation engine in the same database transaction as
any status change they cause, and are never updated or deleted.

`disposition` records what the engine decided:
  - APPLIED:   the event moved the transaction along a legal edge
  - DUPLICATE: the transaction had already reached the event's target
  - REJECTED:  the event asked for an edge the state machine forbids
  - UNMATCHED: no transaction carries this (provider, reference)
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Enum, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from marketplace_payments.database import Base
from marketplace_payments.models.transaction import PaymentProvider, _enum_values


class GatewayOutcome(str, enum.Enum):
    """What the provider says happened to the payment."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"


class EventDisposition(str, enum.Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    REJECTED = "rejected"
    UNMATCHED = "unmatched"


class GatewayEventLog(Base):
    __tablename__ = "gateway_events"

    __table_args__ = (
        Index("ix_gateway_events_provider_reference", "provider", "provider_reference"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    provider: Mapped[PaymentProvider] = mapped_column(
        Enum(PaymentProvider, values_callable=_enum_values),
        nullable=False,
    )

    provider_reference: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    outcome: Mapped[GatewayOutcome] = mapped_column(
        Enum(GatewayOutcome, values_callable=_enum_values),
        nullable=False,
    )

    # Provider event name, e.g. "payment_intent.succeeded" or "charge.completed"
    event_type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    # Provider-side delivery id (Stripe evt_..., Flutterwave data.id)
    provider_event_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    # NULL when the event matched no transaction
    transaction_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("transactions.id"),
        nullable=True,
        index=True,
    )

    disposition: Mapped[EventDisposition] = mapped_column(
        Enum(EventDisposition, values_callable=_enum_values),
        nullable=False,
    )

    # The verified request body exactly as received
    raw_payload: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )

    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
