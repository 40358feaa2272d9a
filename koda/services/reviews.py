from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from koda.core.errors import AuthorizationError, ValidationError
from koda.models.product import Product
from koda.models.review import Review
from koda.services.catalog import get_listing
from koda.services.purchases import has_user_purchased
from koda.services.users import get_user


log = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 1000
TENTH = Decimal("0.1")


def round_rating(value) -> float:
    """Ratings are shown with one decimal, halves rounded up."""
    return float(Decimal(str(value)).quantize(TENTH, rounding=ROUND_HALF_UP))


async def can_review(db: AsyncSession, user_id: str, listing: Product) -> bool:
    """Only buyers rate a listing; sellers cannot rate their own."""
    if listing.seller_id == user_id:
        return False
    return await has_user_purchased(db, user_id, listing.id)


async def refresh_listing_rating(db: AsyncSession, listing: Product) -> None:
    stmt = select(func.avg(Review.rating), func.count(Review.id)).where(Review.product_id == listing.id)
    avg, count = (await db.execute(stmt)).one()
    listing.review_count = int(count)
    listing.average_rating = round_rating(avg) if count else 0.0
    await db.flush()


async def _upsert_review(
    db: AsyncSession, *, user_id: str, product_id: str, author_name: str, rating: int, comment: str
) -> Review:
    async with db.begin_nested():
        stmt = select(Review).where(Review.product_id == product_id, Review.user_id == user_id)
        review = (await db.execute(stmt)).scalar_one_or_none()
        if review is None:
            review = Review(product_id=product_id, user_id=user_id)
            db.add(review)
        review.author_name = author_name
        review.rating = rating
        review.comment = comment
        await db.flush()
    return review


async def submit_review(
    db: AsyncSession,
    *,
    user_id: str,
    product_id: str,
    rating: int,
    comment: str = "",
) -> Review:
    """
    Create or replace the caller's review of a listing, then recompute the
    listing's average rating and review count.
    """
    errors = []
    if not isinstance(rating, int) or not 1 <= rating <= 5:
        errors.append({"loc": ["rating"], "msg": "rating must be between 1 and 5", "type": "range"})
    comment = (comment or "").strip()
    if len(comment) > MAX_COMMENT_LENGTH:
        errors.append({"loc": ["comment"], "msg": f"comment cannot exceed {MAX_COMMENT_LENGTH} characters", "type": "string_too_long"})
    if errors:
        raise ValidationError(details=errors)

    listing = await get_listing(db, product_id)
    if not await can_review(db, user_id, listing):
        raise AuthorizationError("Purchase required to review this product", key="purchaseRequired")

    user = await get_user(db, user_id)
    author_name = (user.first_name or user.username) if user is not None else None

    values = dict(user_id=user_id, product_id=listing.id, author_name=author_name or "User", rating=rating, comment=comment)
    try:
        review = await _upsert_review(db, **values)
    except IntegrityError as e:
        if "uq_reviews_product_user" not in str(e.orig) and "reviews.product_id" not in str(e.orig):
            raise
        # another request created it first; this one becomes the update
        review = await _upsert_review(db, **values)

    await refresh_listing_rating(db, listing)
    log.info("review saved: product=%s user=%s rating=%d", listing.id, user_id, rating)
    return review


async def list_reviews(db: AsyncSession, product_id: str) -> list[Review]:
    listing = await get_listing(db, product_id)
    stmt = select(Review).where(Review.product_id == listing.id).order_by(Review.created_at.desc())
    return list((await db.execute(stmt)).scalars().all())
