from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from koda.core.errors import AuthorizationError, NotFoundError, PreconditionError, ValidationError
from koda.models.product import Product
from koda.schemas.user import UserFilters
from koda.services import users
from koda.services.purchases import list_purchases_for_buyer, record_purchase
from koda.services.users import (
    count_users,
    delete_identity_user,
    delete_user,
    ensure_seller_ready,
    filter_users,
    get_user,
    is_seller_ready,
    set_user_role,
    sync_identity_user,
    toggle_ban,
    update_payment_account,
)
from fixtures_seed import add_automation, add_user


@pytest.mark.asyncio
async def test_seller_readiness(db_session):
    user = await add_user(db_session, "u1")
    assert not is_seller_ready(user)
    assert not is_seller_ready(None)

    await update_payment_account(db_session, clerk_id="u1", stripe_connect_id="acct_1", onboarding_complete=False)
    assert not is_seller_ready(user)
    with pytest.raises(PreconditionError):
        ensure_seller_ready(user)

    await update_payment_account(db_session, clerk_id="u1", stripe_connect_id="acct_1", onboarding_complete=True)
    assert is_seller_ready(user)
    ensure_seller_ready(user)


@pytest.mark.asyncio
async def test_identity_sync_creates_then_updates(db_session):
    user = await sync_identity_user(db_session, clerk_id="user_1", email="a@test.com", first_name="Ada")
    assert user.id.startswith("usr_")
    assert (user.role, user.is_banned, user.cart) == ("user", False, [])

    user.role = "admin"
    again = await sync_identity_user(db_session, clerk_id="user_1", last_name="Lovelace")
    assert again is user
    assert (again.email, again.first_name, again.last_name, again.role) == ("a@test.com", "Ada", "Lovelace", "admin")


@pytest.mark.asyncio
async def test_identity_sync_rejects_taken_email(db_session):
    # not committed: the conflict must not take the caller's work with it
    await sync_identity_user(db_session, clerk_id="user_1", email="same@test.com")

    with pytest.raises(ValidationError) as ei:
        await sync_identity_user(db_session, clerk_id="user_2", email="same@test.com")
    assert ei.value.key == "emailTaken"
    assert await get_user(db_session, "user_2") is None

    kept = await get_user(db_session, "user_1")
    assert kept is not None and kept.email == "same@test.com"
    assert await count_users(db_session, UserFilters()) == 1


@pytest.mark.asyncio
async def test_identity_sync_race_becomes_update(db_session, monkeypatch):
    existing = await sync_identity_user(db_session, clerk_id="user_1", email="a@test.com")

    # the first lookup misses as if another request inserted the row meanwhile
    real_get_user = users.get_user
    misses = []

    async def stale_get_user(db, clerk_id):
        if not misses:
            misses.append(clerk_id)
            return None
        return await real_get_user(db, clerk_id)

    monkeypatch.setattr(users, "get_user", stale_get_user)
    synced = await sync_identity_user(db_session, clerk_id="user_1", first_name="Ada")

    assert misses == ["user_1"]
    assert synced.id == existing.id
    assert (synced.email, synced.first_name) == ("a@test.com", "Ada")
    assert await count_users(db_session, UserFilters()) == 1


@pytest.mark.asyncio
async def test_users_without_email_do_not_collide(db_session):
    await sync_identity_user(db_session, clerk_id="user_1")
    await sync_identity_user(db_session, clerk_id="user_2")
    assert await count_users(db_session, UserFilters()) == 2


@pytest.mark.asyncio
async def test_admin_filters(db_session, seller, buyer, admin):
    await toggle_ban(db_session, admin_id=admin.clerk_id, clerk_id=buyer.clerk_id)
    old = await add_user(db_session, "old_timer")
    old.created_at = datetime.now(timezone.utc) - timedelta(days=30)
    await db_session.flush()

    async def ids(**kw):
        return sorted(u.clerk_id for u in await filter_users(db_session, UserFilters(**kw)))

    assert await ids(role="admin") == ["admin1"]
    assert await ids(status="banned") == ["buyer1"]
    assert await ids(status="active") == ["admin1", "old_timer", "seller1"]
    assert await ids(seller_status="sellers") == ["seller1"]
    assert await ids(seller_status="non-sellers") == ["admin1", "buyer1", "old_timer"]
    assert await ids(created_before=datetime.now(timezone.utc) - timedelta(days=1)) == ["old_timer"]
    assert await ids(created_after=datetime.now(timezone.utc) - timedelta(days=1), role="user", status="active") == ["seller1"]
    assert await count_users(db_session, UserFilters(role="user")) == 3


@pytest.mark.asyncio
async def test_ban_toggles_and_self_ban_is_refused(db_session, buyer, admin):
    assert (await toggle_ban(db_session, admin_id=admin.clerk_id, clerk_id=buyer.clerk_id)).is_banned
    assert not (await toggle_ban(db_session, admin_id=admin.clerk_id, clerk_id=buyer.clerk_id)).is_banned

    with pytest.raises(AuthorizationError) as ei:
        await toggle_ban(db_session, admin_id=admin.clerk_id, clerk_id=admin.clerk_id)
    assert ei.value.key == "cannotBanSelf"

    with pytest.raises(NotFoundError) as ei:
        await toggle_ban(db_session, admin_id=admin.clerk_id, clerk_id="ghost")
    assert ei.value.key == "userNotFound"


@pytest.mark.asyncio
async def test_set_role(db_session, buyer):
    assert (await set_user_role(db_session, buyer.clerk_id, "admin")).role == "admin"
    with pytest.raises(ValidationError):
        await set_user_role(db_session, buyer.clerk_id, "owner")


@pytest.mark.asyncio
async def test_delete_user_removes_listings_but_keeps_ledger(db_session, seller, buyer):
    listing = await add_automation(db_session, seller.clerk_id)
    await add_automation(db_session, seller.clerk_id, title="Another Bot")
    await record_purchase(
        db_session,
        session_id="sess_keep",
        buyer_id=buyer.clerk_id,
        seller_id=seller.clerk_id,
        product_id=listing.id,
        gross_amount=10,
        category=None,
        platform=None,
    )

    assert await delete_user(db_session, seller.clerk_id) == 2
    assert await get_user(db_session, seller.clerk_id) is None
    remaining = (await db_session.execute(select(func.count()).select_from(Product))).scalar_one()
    assert remaining == 0
    assert len(await list_purchases_for_buyer(db_session, buyer.clerk_id)) == 1

    with pytest.raises(NotFoundError):
        await delete_user(db_session, seller.clerk_id)


@pytest.mark.asyncio
async def test_identity_delete_tolerates_missing_user(db_session, buyer):
    assert await delete_identity_user(db_session, buyer.clerk_id)
    assert not await delete_identity_user(db_session, buyer.clerk_id)
