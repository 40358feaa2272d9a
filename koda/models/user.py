from sqlalchemy import JSON, Boolean, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from koda.core.ids import id_default
from koda.models.base import Base, TimestampMixin


class User(TimestampMixin, Base):
    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("clerk_id", name="uq_users_clerk_id"),
        # NULL emails never collide, so absent emails are allowed many times
        UniqueConstraint("email", name="uq_users_email"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=id_default("user"))

    # identity provider user id
    clerk_id: Mapped[str] = mapped_column(String(120), nullable=False)

    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    username: Mapped[str | None] = mapped_column(String(120), nullable=True)
    first_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    image_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)

    # payment processor connected account
    stripe_connect_id: Mapped[str | None] = mapped_column(String(120), nullable=True)
    onboarding_complete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # "user" | "admin"
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="user")
    is_banned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # ordered product ids; references are soft and may dangle
    cart: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    favorites: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
