"""
SQLAlchemy ORM models package.

All models are imported here so that:
  1. Base.metadata knows every table before create_all() runs
  2. Other modules can import from marketplace_payments.models directly
"""

from marketplace_payments.models.user import User, UserRole  # noqa: F401
from marketplace_payments.models.transaction import (  # noqa: F401
    PaymentProvider,
    Transaction,
    TransactionStatus,
)
from marketplace_payments.models.gateway_event import (  # noqa: F401
    EventDisposition,
    GatewayEventLog,
    GatewayOutcome,
)
