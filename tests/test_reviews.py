from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from koda.core.errors import AuthorizationError, NotFoundError, ValidationError
from koda.models.review import Review
from koda.services.purchases import record_purchase
from koda.services.reviews import list_reviews, round_rating, submit_review
from koda.services.users import delete_user
from fixtures_seed import add_user, as_user


async def _buy(db, buyer_id: str, listing) -> None:
    await record_purchase(
        db,
        session_id=f"sess_{buyer_id}_{listing.id}",
        buyer_id=buyer_id,
        seller_id=listing.seller_id,
        product_id=listing.id,
        gross_amount=listing.price,
        category=listing.category,
        platform=listing.platform,
    )


@pytest.mark.parametrize("value,shown", [(4.25, 4.3), (4.333, 4.3), (4.75, 4.8), (5, 5.0), (1.04, 1.0)])
def test_rating_is_rounded_half_up_to_one_decimal(value, shown):
    assert round_rating(value) == shown


@pytest.mark.asyncio
async def test_one_review_per_buyer_and_listing(db_session, buyer, listing):
    buyer.first_name = "Bea"
    await _buy(db_session, buyer.clerk_id, listing)

    first = await submit_review(db_session, user_id=buyer.clerk_id, product_id=listing.id, rating=2, comment="  meh ")
    assert first.id.startswith("rev_")
    assert (first.author_name, first.comment) == ("Bea", "meh")
    assert (listing.average_rating, listing.review_count) == (2.0, 1)

    again = await submit_review(db_session, user_id=buyer.clerk_id, product_id=listing.id, rating=5, comment="grew on me")
    assert again.id == first.id
    assert (listing.average_rating, listing.review_count) == (5.0, 1)

    stored = await db_session.execute(select(func.count()).select_from(Review))
    assert stored.scalar_one() == 1


@pytest.mark.asyncio
async def test_average_covers_every_buyer(db_session, listing):
    for clerk_id, rating in [("b1", 5), ("b2", 4), ("b3", 4)]:
        await add_user(db_session, clerk_id)
        await _buy(db_session, clerk_id, listing)
        await submit_review(db_session, user_id=clerk_id, product_id=listing.id, rating=rating)

    assert listing.review_count == 3
    assert listing.average_rating == 4.3


@pytest.mark.asyncio
async def test_reviewer_without_profile_name_is_shown_as_user(db_session, listing):
    # the identity provider has not pushed a profile yet
    await _buy(db_session, "ghost", listing)
    review = await submit_review(db_session, user_id="ghost", product_id=listing.id, rating=3)
    assert review.author_name == "User"


@pytest.mark.asyncio
async def test_only_buyers_can_review(db_session, seller, buyer, listing):
    with pytest.raises(AuthorizationError) as ei:
        await submit_review(db_session, user_id=buyer.clerk_id, product_id=listing.id, rating=5)
    assert ei.value.key == "purchaseRequired"

    with pytest.raises(AuthorizationError):
        await submit_review(db_session, user_id=seller.clerk_id, product_id=listing.id, rating=5)

    assert listing.review_count == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("rating,comment,field", [(0, "", "rating"), (6, "", "rating"), (3, "x" * 1001, "comment")])
async def test_review_input_is_validated(db_session, buyer, listing, rating, comment, field):
    await _buy(db_session, buyer.clerk_id, listing)
    with pytest.raises(ValidationError) as ei:
        await submit_review(db_session, user_id=buyer.clerk_id, product_id=listing.id, rating=rating, comment=comment)
    assert ei.value.fields == [field]


@pytest.mark.asyncio
async def test_reviews_are_listed_newest_first(db_session, listing):
    for i, clerk_id in enumerate(["b1", "b2"]):
        await _buy(db_session, clerk_id, listing)
        review = await submit_review(db_session, user_id=clerk_id, product_id=listing.id, rating=4)
        review.created_at = datetime.now(timezone.utc) - timedelta(minutes=10 - i)
    await db_session.flush()

    assert [r.user_id for r in await list_reviews(db_session, listing.id)] == ["b2", "b1"]

    with pytest.raises(NotFoundError):
        await list_reviews(db_session, "prd_missing")


@pytest.mark.asyncio
async def test_deleting_the_seller_removes_their_reviews(db_session, seller, buyer, listing):
    await _buy(db_session, buyer.clerk_id, listing)
    await submit_review(db_session, user_id=buyer.clerk_id, product_id=listing.id, rating=4)

    await delete_user(db_session, seller.clerk_id)
    stored = await db_session.execute(select(func.count()).select_from(Review))
    assert stored.scalar_one() == 0


@pytest.mark.asyncio
async def test_review_endpoints(client, db_session, buyer, listing):
    await _buy(db_session, buyer.clerk_id, listing)
    await db_session.commit()

    r = await client.post(f"/v1/products/{listing.id}/reviews", json={"rating": 4, "comment": "solid"}, headers=as_user("buyer1"))
    assert r.status_code == 200, r.text
    assert r.json()["rating"] == 4

    r = await client.post(f"/v1/products/{listing.id}/reviews", json={"rating": 5}, headers=as_user("stranger"))
    assert r.status_code == 403
    assert r.json()["code"] == "purchaseRequired"

    r = await client.get(f"/v1/products/{listing.id}/reviews")
    assert [(x["user_id"], x["comment"]) for x in r.json()] == [("buyer1", "solid")]

    r = await client.get(f"/v1/products/{listing.id}")
    assert (r.json()["average_rating"], r.json()["review_count"]) == (4.0, 1)
