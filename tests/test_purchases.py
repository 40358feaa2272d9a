from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from koda.core.errors import DuplicateTransactionError, NotFoundError, ValidationError
from koda.models.notification import Notification
from koda.models.purchase import Purchase
from koda.services.cart import load_cart, save_cart
from koda.services.purchases import (
    complete_checkout,
    compute_commission_split,
    has_user_purchased,
    list_purchases_for_buyer,
    list_purchases_for_seller,
    purchased_product_ids,
    record_purchase,
    seller_sales_summary,
)
from fixtures_seed import add_automation


def test_commission_split_for_round_amount():
    split = compute_commission_split(100)
    assert split.amount == Decimal("100.00")
    assert split.net_amount == Decimal("85.00")
    assert split.platform_fee == Decimal("15.00")


@pytest.mark.parametrize(
    "gross,net",
    [("19.99", "16.99"), ("0.01", "0.01"), ("0.10", "0.09"), ("33.33", "28.33"), ("999.99", "849.99"), ("1", "0.85")],
)
def test_net_is_rounded_half_up_and_fee_is_the_rest(gross, net):
    split = compute_commission_split(gross)
    assert split.net_amount == Decimal(net)
    assert split.net_amount + split.platform_fee == split.amount


@pytest.mark.parametrize("gross", [0, -1, "abc"])
def test_invalid_amounts_are_rejected(gross):
    with pytest.raises(ValidationError) as ei:
        compute_commission_split(gross)
    assert ei.value.fields == ["amount"]


async def _count(db, session_id: str) -> int:
    stmt = select(func.count()).select_from(Purchase).where(Purchase.stripe_session_id == session_id)
    return int((await db.execute(stmt)).scalar_one())


@pytest.mark.asyncio
async def test_duplicate_session_is_rejected_once_recorded(db_session, seller, buyer, listing):
    kwargs = dict(
        session_id="sess_abc",
        buyer_id=buyer.clerk_id,
        seller_id=seller.clerk_id,
        product_id=listing.id,
        gross_amount=100,
        category=listing.category,
        platform=listing.platform,
    )
    first = await record_purchase(db_session, **kwargs)
    assert first.id.startswith("pur_")
    assert (first.amount, first.net_amount, first.platform_fee) == (Decimal("100.00"), Decimal("85.00"), Decimal("15.00"))

    with pytest.raises(DuplicateTransactionError) as ei:
        await record_purchase(db_session, **kwargs)
    assert ei.value.session_id == "sess_abc"

    # the first purchase survives the failed second insert
    assert await _count(db_session, "sess_abc") == 1


@pytest.mark.asyncio
async def test_sale_notifies_the_seller(db_session, seller, buyer, listing):
    await record_purchase(
        db_session,
        session_id="sess_notify",
        buyer_id=buyer.clerk_id,
        seller_id=seller.clerk_id,
        product_id=listing.id,
        gross_amount="19.99",
        category=None,
        platform=None,
    )
    rows = (await db_session.execute(select(Notification).where(Notification.user_id == seller.clerk_id))).scalars().all()
    assert [(n.type, n.read) for n in rows] == [("PURCHASE", False)]


@pytest.mark.asyncio
async def test_missing_session_id_is_rejected(db_session, seller, buyer, listing):
    with pytest.raises(ValidationError):
        await record_purchase(
            db_session,
            session_id="",
            buyer_id=buyer.clerk_id,
            seller_id=seller.clerk_id,
            product_id=listing.id,
            gross_amount=10,
            category=None,
            platform=None,
        )


@pytest.mark.asyncio
async def test_purchase_queries(db_session, seller, buyer, listing):
    other = await add_automation(db_session, seller.clerk_id, title="Second Bot")
    now = datetime.now(timezone.utc)

    for i, (product, session) in enumerate([(listing, "sess_1"), (other, "sess_2")]):
        p = await record_purchase(
            db_session,
            session_id=session,
            buyer_id=buyer.clerk_id,
            seller_id=seller.clerk_id,
            product_id=product.id,
            gross_amount=10,
            category=product.category,
            platform=product.platform,
        )
        p.created_at = now - timedelta(minutes=10 - i)
    await db_session.flush()

    assert await has_user_purchased(db_session, buyer.clerk_id, listing.id)
    assert not await has_user_purchased(db_session, seller.clerk_id, listing.id)
    assert sorted(await purchased_product_ids(db_session, buyer.clerk_id)) == sorted([listing.id, other.id])

    sales = await list_purchases_for_seller(db_session, seller.clerk_id)
    assert [p.stripe_session_id for p in sales] == ["sess_2", "sess_1"]
    assert await list_purchases_for_buyer(db_session, seller.clerk_id) == []

    summary = await seller_sales_summary(db_session, seller.clerk_id)
    assert summary.count == 2
    assert summary.gross == Decimal("20.00")
    assert summary.net == Decimal("17.00")
    assert summary.fees == Decimal("3.00")


@pytest.mark.asyncio
async def test_empty_sales_summary(db_session, seller):
    summary = await seller_sales_summary(db_session, seller.clerk_id)
    assert (summary.count, summary.gross, summary.net, summary.fees) == (0, Decimal("0.00"), Decimal("0.00"), Decimal("0.00"))


@pytest.mark.asyncio
async def test_complete_checkout_is_idempotent_and_clears_cart(db_session, seller, buyer, listing):
    await save_cart(db_session, buyer.clerk_id, [listing.id])

    first = await complete_checkout(
        db_session, session_id="sess_abc", buyer_id=buyer.clerk_id, product_id=listing.id, amount=Decimal("25.00")
    )
    assert first.status == "recorded"
    assert first.purchase.seller_id == seller.clerk_id
    assert first.purchase.platform == "n8n"
    assert await load_cart(db_session, buyer.clerk_id) == []

    again = await complete_checkout(
        db_session, session_id="sess_abc", buyer_id=buyer.clerk_id, product_id=listing.id, amount=Decimal("25.00")
    )
    assert again.status == "already_recorded"
    assert again.purchase is None
    assert await _count(db_session, "sess_abc") == 1


@pytest.mark.asyncio
async def test_checkout_for_missing_product(db_session, buyer):
    with pytest.raises(NotFoundError):
        await complete_checkout(db_session, session_id="sess_x", buyer_id=buyer.clerk_id, product_id="prd_nope", amount=Decimal("5"))


@pytest.mark.asyncio
async def test_rollback_discards_recorded_purchase(db_session, seller, buyer, listing):
    await db_session.commit()

    await record_purchase(
        db_session,
        session_id="sess_undo",
        buyer_id=buyer.clerk_id,
        seller_id=seller.clerk_id,
        product_id=listing.id,
        gross_amount=25,
        category=listing.category,
        platform=listing.platform,
    )
    assert await _count(db_session, "sess_undo") == 1

    # the purchase savepoint was released into the outer transaction, not committed
    await db_session.rollback()
    assert await _count(db_session, "sess_undo") == 0
    notes = await db_session.execute(select(func.count()).select_from(Notification))
    assert notes.scalar_one() == 0
