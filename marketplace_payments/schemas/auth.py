"""
Pydantic schemas for authentication endpoints (signup and login).

Pydantic validates incoming data automatically - a missing field or wrong
type is answered with 422 before any handler runs.
"""

import uuid
from typing import Literal

from pydantic import BaseModel, EmailStr, Field


class UserSignupRequest(BaseModel):
    """Request body for POST /auth/signup."""
    email: EmailStr
    password: str = Field(min_length=8)
    full_name: str = Field(min_length=1, max_length=200)
    # Admins are provisioned by an operator, never through signup
    role: Literal["buyer", "seller"] = "buyer"


class UserLoginRequest(BaseModel):
    """Request body for POST /auth/login."""
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    """Response body for successful login - contains the JWT."""
    token: str
    token_type: str = "bearer"


class SignupResponse(BaseModel):
    """Response body for successful signup - user info + JWT."""
    user_id: uuid.UUID
    email: str
    role: str
    token: str
    token_type: str = "bearer"
