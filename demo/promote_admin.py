#!/usr/bin/env python3
"""Promote an existing user to ADMIN. Run on the server.

    python demo/promote_admin.py ops@example.com
"""
import asyncio
import sys

from sqlalchemy import update

from marketplace_payments.config import settings
from marketplace_payments.database import create_engine, create_session_factory, session_scope
from marketplace_payments.models.user import User, UserRole


async def promote(email: str) -> int:
    engine = create_engine(settings)
    try:
        async with session_scope(create_session_factory(engine)) as s:
            r = await s.execute(
                update(User)
                .where(User.email == email)
                .values(role=UserRole.ADMIN)
            )
            return r.rowcount
    finally:
        await engine.dispose()


if __name__ == "__main__":
    if len(sys.argv) != 2:
        sys.exit("usage: promote_admin.py <email>")
    print(f"Rows updated: {asyncio.run(promote(sys.argv[1]))}")
