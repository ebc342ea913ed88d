"""
Security utilities: password hashing and bearer tokens for marketplace users.

Passwords are hashed with Argon2id through passlib; the CryptContext re-hashes
transparently if the scheme is ever rotated.

Access tokens are HS256 JWTs signed with SECRET_KEY. The "sub" claim is the
user id and "role" records the role at issue time for clients that want to
adapt their UI; authorization always re-reads the role from the database.

Webhook authentication lives with each gateway (gateways/*_gateway.py)
because every provider signs differently.
"""

from datetime import datetime, timedelta, timezone

from jose import jwt
from passlib.context import CryptContext

from marketplace_payments.config import settings
from marketplace_payments.models.user import User

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(plain_password: str) -> str:
    return pwd_context.hash(plain_password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Constant-time check of a password against its stored Argon2 hash."""
    return pwd_context.verify(plain_password, hashed_password)


def issue_access_token(user: User, lifetime: timedelta | None = None) -> str:
    """
    Sign a bearer token for `user`.

    Tokens expire after ACCESS_TOKEN_EXPIRE_MINUTES unless `lifetime` says
    otherwise.
    """
    issued_at = datetime.now(timezone.utc)
    lifetime = lifetime or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {
        "sub": str(user.id),
        "role": user.role.value,
        "iat": issued_at,
        "exp": issued_at + lifetime,
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict:
    """
    Verify a bearer token's signature and expiry and return its claims.

    Raises:
        JWTError: If the token is expired, tampered with, or malformed.
    """
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
