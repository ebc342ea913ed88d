"""
User model - the authenticated actor.

Authentication itself is an upstream concern; this table exists so the
service can issue and validate its own tokens and so every transaction can
reference its buyer and seller by a real identity.

Roles:
  - BUYER: May initiate payments and read the transactions they paid for
  - SELLER: May read transactions that credit them
  - ADMIN: May read any transaction and apply administrative status
    overrides; cannot initiate payments

New signups choose BUYER or SELLER. ADMIN is provisioned by an operator
(see demo/promote_admin.py).
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Boolean, DateTime, Enum
from sqlalchemy.orm import Mapped, mapped_column

from marketplace_payments.database import Base


class UserRole(str, enum.Enum):
    """
    The role a user holds in the marketplace.

    Inherits from str so the value serializes naturally to JSON.
    """
    BUYER = "buyer"
    SELLER = "seller"
    ADMIN = "admin"


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    # Login identifier - unique and indexed for fast lookups
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )

    # Argon2id hash of the password
    hashed_password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    full_name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )

    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, values_callable=lambda e: [m.value for m in e]),
        default=UserRole.BUYER,
        nullable=False,
    )

    # Soft-disable: deactivated users can't log in but their history is kept
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
