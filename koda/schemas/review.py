from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from koda.schemas.product import ProductOut


class ReviewCreate(BaseModel):
    rating: int = Field(ge=1, le=5)
    comment: str = Field(default="", max_length=1000)


class ReviewOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    product_id: str
    user_id: str
    author_name: str
    rating: int
    comment: str
    created_at: datetime
    updated_at: datetime


class SellerStatsOut(BaseModel):
    total_products: int
    total_sales: int
    average_rating: float
    member_since: datetime


class SellerProfileOut(BaseModel):
    """Public storefront: no email, role or payment details."""
    clerk_id: str
    username: str | None
    first_name: str | None
    last_name: str | None
    image_url: str | None
    onboarding_complete: bool
    stats: SellerStatsOut
    products: list[ProductOut]
