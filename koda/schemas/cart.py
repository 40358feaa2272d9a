from pydantic import BaseModel, Field

from koda.schemas.product import ProductOut


class CartUpdate(BaseModel):
    product_ids: list[str] = Field(default_factory=list, max_length=200)


class CartOut(BaseModel):
    items: list[ProductOut]


class FavoriteToggleOut(BaseModel):
    product_id: str
    favorited: bool
