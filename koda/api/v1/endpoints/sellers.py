from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from koda.core.db import get_db
from koda.schemas.product import ProductOut
from koda.schemas.review import SellerProfileOut, SellerStatsOut
from koda.services.sellers import get_seller_profile

router = APIRouter()


@router.get("/sellers/{clerk_id}", response_model=SellerProfileOut)
async def seller_profile(clerk_id: str, db: AsyncSession = Depends(get_db)) -> SellerProfileOut:
    profile = await get_seller_profile(db, clerk_id)
    user = profile.user
    return SellerProfileOut(
        clerk_id=user.clerk_id,
        username=user.username,
        first_name=user.first_name,
        last_name=user.last_name,
        image_url=user.image_url,
        onboarding_complete=user.onboarding_complete,
        stats=SellerStatsOut(
            total_products=profile.stats.total_products,
            total_sales=profile.stats.total_sales,
            average_rating=profile.stats.average_rating,
            member_since=profile.stats.member_since,
        ),
        products=[ProductOut.model_validate(p) for p in profile.listings],
    )
