"""
Transaction model - the authoritative record of one payment attempt.

A row is inserted in PENDING when a buyer initiates a payment and the
gateway has returned its reference. From then on only the reconciliation
engine changes it, and only along the edges of the status state machine
(see services/state_machine.py). Rows are never deleted; cancellation and
failure are statuses.

Key fields:
  - provider / provider_reference: The gateway and the identifier it
    assigned (Stripe PaymentIntent id, Flutterwave tx_ref). The pair is
    UNIQUE so two local rows can never claim the same external payment,
    and it is how webhooks are matched back to a row.
  - amount_minor: The charged amount in the currency's minor unit, always
    positive. `amount` exposes it as a Decimal.
  - listing_id / offer_id: Catalog identifiers. offer_id is set only when
    the payment settles a negotiated offer.
  - seller_id: The user credited by the sale, supplied by the catalog.
    Used to let the seller read the transaction.
"""

import enum
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from marketplace_payments.database import Base
from marketplace_payments.money import from_minor_units


class PaymentProvider(str, enum.Enum):
    STRIPE = "stripe"
    FLUTTERWAVE = "flutterwave"


class TransactionStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Transaction(Base):
    __tablename__ = "transactions"

    __table_args__ = (
        CheckConstraint("amount_minor > 0", name="ck_transactions_positive_amount"),
        UniqueConstraint(
            "provider",
            "provider_reference",
            name="uq_transactions_provider_reference",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    buyer_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )

    seller_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )

    listing_id: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        index=True,
    )

    offer_id: Mapped[int | None] = mapped_column(
        BigInteger,
        nullable=True,
    )

    amount_minor: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    # ISO 4217 currency code, upper case
    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
    )

    provider: Mapped[PaymentProvider] = mapped_column(
        Enum(PaymentProvider, values_callable=_enum_values),
        nullable=False,
    )

    provider_reference: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    status: Mapped[TransactionStatus] = mapped_column(
        Enum(TransactionStatus, values_callable=_enum_values),
        nullable=False,
        default=TransactionStatus.PENDING,
    )

    # Indexed for newest-first listing
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    @property
    def amount(self) -> Decimal:
        return from_minor_units(self.amount_minor, self.currency)
