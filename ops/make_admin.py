from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from sqlalchemy import or_, select

from koda.core.db import get_sessionmaker, reset_engine
from koda.core.errors import KodaError
from koda.models.user import User
from koda.services.users import set_user_role


async def _run(identifier: str, role: str) -> int:
    Session = await get_sessionmaker()
    try:
        async with Session() as db:
            stmt = select(User).where(or_(User.clerk_id == identifier, User.email == identifier))
            user = (await db.execute(stmt)).scalar_one_or_none()
            if user is None:
                print(f"No user matches {identifier!r} (clerk id or email).", file=sys.stderr)
                return 1

            try:
                await set_user_role(db, user.clerk_id, role)
            except KodaError as e:
                print(f"{e.key}: {e.message}", file=sys.stderr)
                return 1
            await db.commit()
            print(f"{user.clerk_id} ({user.email or 'no email'}) is now {role}")
            return 0
    finally:
        await reset_engine()


def main() -> int:
    p = argparse.ArgumentParser(description="Grant or revoke the admin role.")
    p.add_argument("identifier", help="identity provider user id or email")
    p.add_argument("--role", choices=["admin", "user"], default="admin")
    args = p.parse_args()

    logging.basicConfig(level=logging.INFO)
    return asyncio.run(_run(args.identifier.strip(), args.role))


if __name__ == "__main__":
    raise SystemExit(main())
