from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from koda.models.product import Product
from koda.models.purchase import Purchase
from koda.models.user import User
from koda.services.catalog import list_seller_listings
from koda.services.reviews import round_rating
from koda.services.users import get_user_or_404


@dataclass(frozen=True)
class SellerStats:
    total_products: int
    total_sales: int
    # mean of the listings that have at least one review
    average_rating: float
    member_since: datetime


@dataclass(frozen=True)
class SellerProfile:
    user: User
    stats: SellerStats
    listings: list[Product]


async def get_seller_profile(db: AsyncSession, seller_id: str) -> SellerProfile:
    user = await get_user_or_404(db, seller_id)
    listings = await list_seller_listings(db, seller_id)

    stmt = select(func.count()).select_from(Purchase).where(Purchase.seller_id == seller_id)
    sales = int((await db.execute(stmt)).scalar_one())

    rated = [p.average_rating for p in listings if p.review_count > 0]
    average = round_rating(sum(rated) / len(rated)) if rated else 0.0

    return SellerProfile(
        user=user,
        stats=SellerStats(
            total_products=len(listings),
            total_sales=sales,
            average_rating=average,
            member_since=user.created_at,
        ),
        listings=listings,
    )
