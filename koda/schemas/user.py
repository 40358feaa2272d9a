from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, computed_field


UserRole = Literal["user", "admin"]


class MeOut(BaseModel):
    user_id: str
    role: str
    seller_ready: bool


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    clerk_id: str
    email: str | None
    username: str | None
    first_name: str | None
    last_name: str | None
    image_url: str | None
    role: str
    is_banned: bool
    onboarding_complete: bool
    stripe_connect_id: str | None
    created_at: datetime

    @computed_field
    @property
    def is_seller(self) -> bool:
        return bool(self.stripe_connect_id)


class UserFilters(BaseModel):
    role: Literal["all", "user", "admin"] = "all"
    status: Literal["all", "active", "banned"] = "all"
    seller_status: Literal["all", "sellers", "non-sellers"] = "all"
    created_after: datetime | None = None
    created_before: datetime | None = None


class RoleUpdate(BaseModel):
    role: UserRole


class BanToggleOut(BaseModel):
    clerk_id: str
    is_banned: bool


class UserCountOut(BaseModel):
    count: int


class IdentityUserSync(BaseModel):
    """User payload forwarded by the identity provider (created / updated)."""
    clerk_id: str = Field(min_length=1, max_length=120)
    email: EmailStr | None = None
    username: str | None = Field(default=None, max_length=120)
    first_name: str | None = Field(default=None, max_length=120)
    last_name: str | None = Field(default=None, max_length=120)
    image_url: str | None = Field(default=None, max_length=2048)


class PaymentAccountUpdate(BaseModel):
    stripe_connect_id: str | None = Field(default=None, max_length=120)
    onboarding_complete: bool = False
