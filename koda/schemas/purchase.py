from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class PurchaseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    product_id: str
    buyer_id: str
    seller_id: str
    amount: float
    net_amount: float
    platform_fee: float
    category: str | None
    platform: str | None
    stripe_session_id: str
    created_at: datetime


class SalesSummaryOut(BaseModel):
    count: int
    gross: float
    net: float
    fees: float


class CheckoutCompleted(BaseModel):
    """Sent by the payment-completion handler, possibly more than once."""
    session_id: str = Field(min_length=1, max_length=255)
    buyer_id: str = Field(min_length=1, max_length=120)
    product_id: str = Field(min_length=1)
    amount: Decimal = Field(gt=0, decimal_places=2)


class CheckoutCompletedOut(BaseModel):
    # "recorded" | "already_recorded"
    status: str
    purchase_id: str | None = None
