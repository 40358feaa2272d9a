from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Literal, get_args

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator


ProductCategory = Literal["Social Media", "Email Marketing", "Productivity", "Sales", "Other"]
AutomationPlatform = Literal["n8n", "Make", "Zapier", "Python", "Other"]
ListingSort = Literal["newest", "price_asc", "price_desc"]

PRODUCT_CATEGORIES: tuple[str, ...] = get_args(ProductCategory)
AUTOMATION_PLATFORMS: tuple[str, ...] = get_args(AutomationPlatform)

CENT = Decimal("0.01")

# fields a seller may change after publication
MUTABLE_FIELDS = frozenset({"title", "description", "price", "preview_image_url"})


def _to_cents(v: Decimal) -> Decimal:
    return v.quantize(CENT, rounding=ROUND_HALF_UP)


class ListingCreate(BaseModel):
    """
    Fields shared by every listing variant.
    Unknown keys are dropped; seller_id comes from the caller's identity.
    """
    model_config = ConfigDict(extra="ignore")

    title: str = Field(min_length=3, max_length=100)
    description: str = Field(min_length=20, max_length=2000)
    # bounds apply to the submitted value; the stored price is rounded to the cent
    price: Decimal = Field(ge=1, le=1000)
    category: ProductCategory
    tags: list[str] = Field(default_factory=list)
    preview_image_url: HttpUrl | None = None

    @field_validator("price")
    @classmethod
    def price_to_cents(cls, v: Decimal) -> Decimal:
        return _to_cents(v)


class AutomationCreate(ListingCreate):
    platform: AutomationPlatform
    file_url: HttpUrl
    version: str | None = Field(default=None, max_length=40)

    @field_validator("version", mode="before")
    @classmethod
    def blank_version_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class ListingPatch(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str | None = Field(default=None, min_length=3, max_length=100)
    description: str | None = Field(default=None, min_length=20, max_length=2000)
    price: Decimal | None = Field(default=None, ge=1, le=1000)
    preview_image_url: HttpUrl | None = None

    @field_validator("title", "description", "price")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("field cannot be null")
        return v

    @field_validator("price")
    @classmethod
    def price_to_cents(cls, v: Decimal) -> Decimal:
        return _to_cents(v)


class ListingFilter(BaseModel):
    categories: list[ProductCategory] = Field(default_factory=list)
    platforms: list[AutomationPlatform] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    seller_id: str | None = None
    min_price: Decimal | None = Field(default=None, ge=0)
    max_price: Decimal | None = Field(default=None, ge=0)
    query: str | None = Field(default=None, max_length=100)


class ProductOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    product_type: str
    title: str
    description: str
    price: float
    category: str
    tags: list[str]
    seller_id: str
    preview_image_url: str | None
    average_rating: float
    review_count: int
    is_certified: bool

    # Automation variant
    platform: str | None = None
    version: str | None = None

    created_at: datetime
    updated_at: datetime


class DownloadOut(BaseModel):
    product_id: str
    file_url: str
