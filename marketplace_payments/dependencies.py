"""
FastAPI dependencies: authentication, role checks, and shared components.

Authentication chain:

  get_current_user (JWT -> User)
      ├── require_buyer (User -> User)   [BUYER role]
      └── require_admin (User -> User)   [ADMIN role]

Shared components built once by create_app() and kept on app.state:

  get_gateways        -> {provider: PaymentGateway}
  get_verifiers       -> {provider: WebhookVerifier}
  get_listing_notifier -> ListingNotifier

Routes depend on these getters rather than reading app.state directly, so
tests can swap any of them through app.dependency_overrides.
"""

import uuid

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_payments.database import get_db
from marketplace_payments.gateways.base import PaymentGateway, WebhookVerifier
from marketplace_payments.models.transaction import PaymentProvider
from marketplace_payments.models.user import User, UserRole
from marketplace_payments.security import decode_access_token
from marketplace_payments.services.listing_notifier import ListingNotifier


# Reads the "Authorization: Bearer <token>" header; tokenUrl feeds Swagger UI
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Extract and validate the JWT token, then return the corresponding User.

    Raises:
        HTTPException 401: If the token is invalid or the user doesn't exist
            or is deactivated.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = decode_access_token(token)
        user_id_str: str | None = payload.get("sub")
        if user_id_str is None:
            raise credentials_exception
        user_id = uuid.UUID(user_id_str)
    except (JWTError, ValueError):
        raise credentials_exception

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None or not user.is_active:
        raise credentials_exception

    return user


async def require_buyer(
    user: User = Depends(get_current_user),
) -> User:
    """
    Require the BUYER role.

    Sellers and admins cannot initiate payments; admins in particular only
    observe and correct.
    """
    if user.role != UserRole.BUYER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Buyer role required",
        )
    return user


async def require_admin(
    user: User = Depends(get_current_user),
) -> User:
    """Require the ADMIN role."""
    if user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user


def get_gateways(request: Request) -> dict[PaymentProvider, PaymentGateway]:
    return request.app.state.gateways


def get_verifiers(request: Request) -> dict[PaymentProvider, WebhookVerifier]:
    return request.app.state.verifiers


def get_listing_notifier(request: Request) -> ListingNotifier:
    return request.app.state.listing_notifier
