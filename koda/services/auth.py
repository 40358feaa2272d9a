from dataclasses import dataclass
from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from koda.core.config import settings
from koda.core.db import get_db
from koda.core.errors import AuthorizationError
from koda.services.users import get_user, is_seller_ready


@dataclass(frozen=True)
class Actor:
    user_id: str  # identity provider id
    role: str  # "user" | "admin"
    seller_ready: bool


async def get_actor(
    x_user_id: str | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
) -> Actor:
    # The identity gateway authenticates the caller and forwards its id.
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id")

    user = await get_user(db, x_user_id)
    if user is not None and user.is_banned:
        raise AuthorizationError("Access Denied: Your account has been suspended.", key="accountSuspended")

    return Actor(
        user_id=x_user_id,
        role=user.role if user is not None else "user",
        seller_ready=is_seller_ready(user),
    )


def require_admin(actor: Actor = Depends(get_actor)) -> Actor:
    if actor.role != "admin":
        raise HTTPException(status_code=403, detail="Admin role required")
    return actor


async def require_internal_admin(x_internal_admin_key: str | None = Header(default=None)) -> None:
    if not x_internal_admin_key or x_internal_admin_key != settings.internal_admin_key:
        raise HTTPException(status_code=403, detail="Internal admin key required")
