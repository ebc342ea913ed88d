"""
Authentication router.

Endpoints:
  POST /auth/signup  - Register a buyer or seller, returns a bearer token
  POST /auth/login   - Exchange email + password for a bearer token

With the webhook endpoint, these are the only routes reachable without a
token.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_payments.database import get_db
from marketplace_payments.models.user import UserRole
from marketplace_payments.schemas.auth import (
    SignupResponse,
    TokenResponse,
    UserLoginRequest,
    UserSignupRequest,
)
from marketplace_payments.services import auth_service

router = APIRouter()


@router.post(
    "/signup",
    response_model=SignupResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register as a buyer or seller",
)
async def signup(
    request: UserSignupRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    - **role**: `buyer` (default) or `seller`; admins are provisioned by an
      operator
    - **password**: at least 8 characters
    """
    user, token = await auth_service.signup(
        db=db,
        email=request.email,
        password=request.password,
        full_name=request.full_name,
        role=UserRole(request.role),
    )
    return SignupResponse(
        user_id=user.id,
        email=user.email,
        role=user.role.value,
        token=token,
    )


@router.post("/login", response_model=TokenResponse, summary="Log in")
async def login(
    request: UserLoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """Send the returned token as `Authorization: Bearer <token>`."""
    _, token = await auth_service.login(
        db=db,
        email=request.email,
        password=request.password,
    )
    return TokenResponse(token=token)
