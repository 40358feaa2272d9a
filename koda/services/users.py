from __future__ import annotations

import logging

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from koda.core.errors import AuthorizationError, NotFoundError, PreconditionError, ValidationError
from koda.models.product import Product
from koda.models.review import Review
from koda.models.user import User
from koda.schemas.user import UserFilters


log = logging.getLogger(__name__)


def is_seller_ready(user: User | None) -> bool:
    """A seller needs a connected payment account with onboarding finished."""
    return bool(user is not None and user.stripe_connect_id and user.onboarding_complete)


def ensure_seller_ready(user: User | None) -> None:
    if not is_seller_ready(user):
        raise PreconditionError("Please configure your payment account in the Dashboard before selling.")


async def get_user(db: AsyncSession, clerk_id: str) -> User | None:
    stmt = select(User).where(User.clerk_id == clerk_id)
    return (await db.execute(stmt)).scalar_one_or_none()


async def get_user_or_404(db: AsyncSession, clerk_id: str) -> User:
    user = await get_user(db, clerk_id)
    if user is None:
        raise NotFoundError("User not found.", key="userNotFound")
    return user


async def get_or_create_user(db: AsyncSession, clerk_id: str) -> User:
    user = await get_user(db, clerk_id)
    if user is None:
        user = User(clerk_id=clerk_id, cart=[], favorites=[])
        db.add(user)
        await db.flush()
    return user


def _violates(exc: IntegrityError, constraint: str, column: str) -> bool:
    text = str(exc.orig)
    return constraint in text or column in text


async def _upsert_identity_user(db: AsyncSession, clerk_id: str, profile: dict[str, str | None]) -> User:
    async with db.begin_nested():
        user = await get_user(db, clerk_id)
        if user is None:
            user = User(clerk_id=clerk_id, cart=[], favorites=[])
            db.add(user)
        # absent fields keep what is stored
        for field, value in profile.items():
            if value:
                setattr(user, field, value)
        await db.flush()
    return user


async def sync_identity_user(
    db: AsyncSession,
    *,
    clerk_id: str,
    email: str | None = None,
    username: str | None = None,
    first_name: str | None = None,
    last_name: str | None = None,
    image_url: str | None = None,
) -> User:
    """
    Upsert the profile pushed by the identity provider.
    Role, ban state, payment account and cart are left untouched.

    Runs in a savepoint: a conflict leaves the caller's transaction usable.
    """
    profile = {
        "email": email,
        "username": username,
        "first_name": first_name,
        "last_name": last_name,
        "image_url": image_url,
    }
    try:
        user = await _upsert_identity_user(db, clerk_id, profile)
    except IntegrityError as e:
        if _violates(e, "uq_users_email", "users.email"):
            raise ValidationError(
                "Email already in use",
                key="emailTaken",
                details=[{"loc": ["email"], "msg": "email already in use", "type": "unique"}],
            ) from None
        if not _violates(e, "uq_users_clerk_id", "users.clerk_id"):
            raise
        # a concurrent sync inserted the same user first; update that row
        log.info("identity sync raced on %s, retrying as update", clerk_id)
        user = await _upsert_identity_user(db, clerk_id, profile)

    log.info("user synced from identity provider: %s", clerk_id)
    return user


async def update_payment_account(
    db: AsyncSession,
    *,
    clerk_id: str,
    stripe_connect_id: str | None,
    onboarding_complete: bool,
) -> User:
    user = await get_or_create_user(db, clerk_id)
    user.stripe_connect_id = stripe_connect_id
    user.onboarding_complete = onboarding_complete
    await db.flush()
    log.info("payment account updated: user=%s ready=%s", clerk_id, is_seller_ready(user))
    return user


def _filter_conditions(filters: UserFilters) -> list:
    conds = []

    if filters.role != "all":
        conds.append(User.role == filters.role)

    if filters.status == "active":
        conds.append(User.is_banned.is_(False))
    elif filters.status == "banned":
        conds.append(User.is_banned.is_(True))

    if filters.seller_status == "sellers":
        conds.append(User.stripe_connect_id.is_not(None))
    elif filters.seller_status == "non-sellers":
        conds.append(or_(User.stripe_connect_id.is_(None), User.stripe_connect_id == ""))

    if filters.created_after is not None:
        conds.append(User.created_at >= filters.created_after)
    if filters.created_before is not None:
        conds.append(User.created_at <= filters.created_before)

    return conds


async def filter_users(db: AsyncSession, filters: UserFilters) -> list[User]:
    stmt = select(User).where(*_filter_conditions(filters)).order_by(User.created_at.desc())
    return list((await db.execute(stmt)).scalars().all())


async def count_users(db: AsyncSession, filters: UserFilters) -> int:
    stmt = select(func.count()).select_from(User).where(*_filter_conditions(filters))
    return int((await db.execute(stmt)).scalar_one())


async def set_user_role(db: AsyncSession, clerk_id: str, role: str) -> User:
    if role not in ("user", "admin"):
        raise ValidationError(details=[{"loc": ["role"], "msg": "role must be user or admin", "type": "enum"}])
    user = await get_user_or_404(db, clerk_id)
    user.role = role
    await db.flush()
    log.info("role changed: user=%s role=%s", clerk_id, role)
    return user


async def toggle_ban(db: AsyncSession, *, admin_id: str, clerk_id: str) -> User:
    if admin_id == clerk_id:
        raise AuthorizationError("You cannot ban yourself.", key="cannotBanSelf")

    user = await get_user_or_404(db, clerk_id)
    user.is_banned = not user.is_banned
    await db.flush()
    log.info("ban toggled: user=%s banned=%s by=%s", clerk_id, user.is_banned, admin_id)
    return user


async def delete_user(db: AsyncSession, clerk_id: str) -> int:
    """
    Remove a user, every listing they sell and the reviews on those
    listings. Purchases stay as ledger
    history; carts and favorites pointing at the removed listings are
    filtered out when read.

    Returns the number of listings removed.
    """
    user = await get_user_or_404(db, clerk_id)

    owned = select(Product.id).where(Product.seller_id == clerk_id)
    await db.execute(delete(Review).where(Review.product_id.in_(owned)))
    result = await db.execute(delete(Product).where(Product.seller_id == clerk_id))
    removed = int(result.rowcount or 0)

    await db.delete(user)
    await db.flush()
    log.info("user deleted: %s (listings removed: %d)", clerk_id, removed)
    return removed


async def delete_identity_user(db: AsyncSession, clerk_id: str) -> bool:
    """Identity provider removed the account; a missing local row is fine."""
    user = await get_user(db, clerk_id)
    if user is None:
        return False
    await db.delete(user)
    await db.flush()
    log.info("user removed by identity provider: %s", clerk_id)
    return True
