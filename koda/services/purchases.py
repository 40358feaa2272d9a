from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from koda.core.errors import DuplicateTransactionError, ValidationError
from koda.models.purchase import Purchase
from koda.services.cart import clear_cart
from koda.services.catalog import get_listing
from koda.services.notifications import create_notification, queue_event


log = logging.getLogger(__name__)

PLATFORM_FEE_RATE = Decimal("0.15")
SELLER_RATE = Decimal("1") - PLATFORM_FEE_RATE
CENT = Decimal("0.01")

SESSION_CONSTRAINT = "uq_purchases_stripe_session_id"


@dataclass(frozen=True)
class CommissionSplit:
    amount: Decimal
    net_amount: Decimal
    platform_fee: Decimal


def compute_commission_split(gross_amount: Decimal | int | float | str) -> CommissionSplit:
    """
    Seller keeps 85% rounded half-up to the cent; the platform fee is the
    remainder, so net + fee always equals the gross exactly.
    """
    try:
        gross = Decimal(str(gross_amount)).quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError(details=[{"loc": ["amount"], "msg": "amount must be a number", "type": "decimal_parsing"}])
    if gross <= 0:
        raise ValidationError(details=[{"loc": ["amount"], "msg": "amount must be positive", "type": "greater_than"}])

    net = (gross * SELLER_RATE).quantize(CENT, rounding=ROUND_HALF_UP)
    return CommissionSplit(amount=gross, net_amount=net, platform_fee=gross - net)


def _is_session_conflict(exc: IntegrityError) -> bool:
    text = str(exc.orig)
    return SESSION_CONSTRAINT in text or "stripe_session_id" in text


async def record_purchase(
    db: AsyncSession,
    *,
    session_id: str,
    buyer_id: str,
    seller_id: str,
    product_id: str,
    gross_amount: Decimal | int | float | str,
    category: str | None,
    platform: str | None,
) -> Purchase:
    """
    Record one completed sale. The unique index on the payment session is
    the only duplicate check: no read-before-write.

    Raises DuplicateTransactionError when the session is already recorded;
    callers treat that as already applied.
    """
    if not session_id:
        raise ValidationError(details=[{"loc": ["session_id"], "msg": "Field required", "type": "missing"}])

    split = compute_commission_split(gross_amount)

    try:
        async with db.begin_nested():
            purchase = Purchase(
                stripe_session_id=session_id,
                buyer_id=buyer_id,
                seller_id=seller_id,
                product_id=product_id,
                amount=split.amount,
                net_amount=split.net_amount,
                platform_fee=split.platform_fee,
                category=category,
                platform=platform,
            )
            db.add(purchase)
            await db.flush()
    except IntegrityError as e:
        if not _is_session_conflict(e):
            raise
        log.info("duplicate payment session ignored: %s", session_id)
        raise DuplicateTransactionError(session_id) from None

    log.info(
        "purchase recorded: id=%s session=%s product=%s amount=%s net=%s fee=%s",
        purchase.id, session_id, product_id, split.amount, split.net_amount, split.platform_fee,
    )

    # notify after the insert; failures here never undo it
    queue_event(
        db,
        f"private-user-{seller_id}",
        "new-purchase",
        {"purchase_id": purchase.id, "product_id": product_id, "amount": str(split.amount)},
    )
    try:
        async with db.begin_nested():
            await create_notification(
                db,
                user_id=seller_id,
                type="PURCHASE",
                title="New sale",
                body=f"You sold a product for {split.amount}",
                link="/dashboard",
            )
    except Exception:
        log.warning("sale notification failed for purchase %s", purchase.id, exc_info=True)

    return purchase


async def list_purchases_for_seller(db: AsyncSession, seller_id: str) -> list[Purchase]:
    stmt = select(Purchase).where(Purchase.seller_id == seller_id).order_by(Purchase.created_at.desc())
    return list((await db.execute(stmt)).scalars().all())


async def list_purchases_for_buyer(db: AsyncSession, buyer_id: str) -> list[Purchase]:
    stmt = select(Purchase).where(Purchase.buyer_id == buyer_id).order_by(Purchase.created_at.desc())
    return list((await db.execute(stmt)).scalars().all())


async def has_user_purchased(db: AsyncSession, buyer_id: str, product_id: str) -> bool:
    stmt = select(Purchase.id).where(Purchase.buyer_id == buyer_id, Purchase.product_id == product_id).limit(1)
    return (await db.execute(stmt)).scalar_one_or_none() is not None


async def purchased_product_ids(db: AsyncSession, buyer_id: str) -> list[str]:
    stmt = select(Purchase.product_id).where(Purchase.buyer_id == buyer_id).distinct()
    return list((await db.execute(stmt)).scalars().all())


@dataclass(frozen=True)
class SalesSummary:
    count: int
    gross: Decimal
    net: Decimal
    fees: Decimal


async def seller_sales_summary(db: AsyncSession, seller_id: str) -> SalesSummary:
    stmt = select(
        func.count(Purchase.id),
        func.coalesce(func.sum(Purchase.amount), 0),
        func.coalesce(func.sum(Purchase.net_amount), 0),
        func.coalesce(func.sum(Purchase.platform_fee), 0),
    ).where(Purchase.seller_id == seller_id)
    count, gross, net, fees = (await db.execute(stmt)).one()
    return SalesSummary(
        count=int(count),
        gross=Decimal(str(gross)).quantize(CENT),
        net=Decimal(str(net)).quantize(CENT),
        fees=Decimal(str(fees)).quantize(CENT),
    )


@dataclass(frozen=True)
class CheckoutOutcome:
    # "recorded" | "already_recorded"
    status: str
    purchase: Purchase | None


async def complete_checkout(
    db: AsyncSession,
    *,
    session_id: str,
    buyer_id: str,
    product_id: str,
    amount: Decimal,
) -> CheckoutOutcome:
    """
    Payment-completion flow. Completion notices may arrive more than once for
    the same session; a repeat is reported as already recorded.
    """
    listing = await get_listing(db, product_id)

    try:
        purchase = await record_purchase(
            db,
            session_id=session_id,
            buyer_id=buyer_id,
            seller_id=listing.seller_id,
            product_id=listing.id,
            gross_amount=amount,
            category=listing.category,
            platform=getattr(listing, "platform", None),
        )
    except DuplicateTransactionError:
        return CheckoutOutcome(status="already_recorded", purchase=None)

    await clear_cart(db, buyer_id)
    return CheckoutOutcome(status="recorded", purchase=purchase)
