from sqlalchemy import CheckConstraint, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from koda.core.ids import id_default
from koda.models.base import Base, TimestampMixin


class Review(TimestampMixin, Base):
    """A buyer's rating of a listing; one per user and listing."""
    __tablename__ = "reviews"
    __table_args__ = (
        UniqueConstraint("product_id", "user_id", name="uq_reviews_product_user"),
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating_range"),
        Index("ix_reviews_product_created", "product_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=id_default("review"))

    # soft references, like the ledger
    product_id: Mapped[str] = mapped_column(String, nullable=False)
    user_id: Mapped[str] = mapped_column(String(120), nullable=False)

    # display name captured when the review was written
    author_name: Mapped[str] = mapped_column(String(120), nullable=False, default="User")
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[str] = mapped_column(Text, nullable=False, default="")
