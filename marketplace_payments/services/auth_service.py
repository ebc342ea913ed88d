"""
Marketplace user registration and login.

Buyers and sellers register themselves; admins are promoted by an operator
(demo/promote_admin.py). Both operations return the user together with a
freshly issued bearer token.

Login answers "unknown email", "wrong password" and "deactivated user" with
the same InvalidCredentialsError so the endpoint cannot be used to discover
which emails are registered.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_payments.exceptions import DuplicateEmailError, InvalidCredentialsError
from marketplace_payments.models.user import User, UserRole
from marketplace_payments.security import hash_password, issue_access_token, verify_password


async def _find_user(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def signup(
    db: AsyncSession,
    email: str,
    password: str,
    full_name: str,
    role: UserRole = UserRole.BUYER,
) -> tuple[User, str]:
    """
    Register a buyer or seller.

    Raises:
        DuplicateEmailError: If the email is already registered.
    """
    if await _find_user(db, email) is not None:
        raise DuplicateEmailError(email)

    user = User(
        email=email,
        hashed_password=hash_password(password),
        full_name=full_name,
        role=role,
    )
    db.add(user)
    # The token needs the generated id
    await db.flush()

    return user, issue_access_token(user)


async def login(db: AsyncSession, email: str, password: str) -> tuple[User, str]:
    """
    Raises:
        InvalidCredentialsError: For any reason the credentials don't
            identify an active user.
    """
    user = await _find_user(db, email)
    if user is None or not user.is_active:
        raise InvalidCredentialsError()
    if not verify_password(password, user.hashed_password):
        raise InvalidCredentialsError()

    return user, issue_access_token(user)
