from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from koda.core.db import get_db
from koda.schemas.review import ReviewCreate, ReviewOut
from koda.services.auth import Actor, get_actor
from koda.services.reviews import list_reviews, submit_review

router = APIRouter()


@router.get("/products/{product_id}/reviews", response_model=list[ReviewOut])
async def get_reviews(product_id: str, db: AsyncSession = Depends(get_db)) -> list[ReviewOut]:
    return [ReviewOut.model_validate(r) for r in await list_reviews(db, product_id)]


@router.post("/products/{product_id}/reviews", response_model=ReviewOut)
async def post_review(
    product_id: str,
    payload: ReviewCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> ReviewOut:
    review = await submit_review(
        db, user_id=actor.user_id, product_id=product_id, rating=payload.rating, comment=payload.comment
    )
    await db.commit()
    return ReviewOut.model_validate(review)
