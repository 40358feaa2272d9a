from decimal import Decimal

from sqlalchemy import JSON, Boolean, Float, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from koda.core.ids import id_default
from koda.models.base import Base, TimestampMixin


class Product(TimestampMixin, Base):
    """
    Base catalog listing. Variants share the ``products`` table and are told
    apart by ``product_type``.
    """
    __tablename__ = "products"
    __table_args__ = (
        Index("ix_products_seller_id", "seller_id"),
        Index("ix_products_category", "category"),
        Index("ix_products_created_at", "created_at"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=id_default("product"))

    # discriminator: "Product" | "Automation"
    product_type: Mapped[str] = mapped_column(String(40), nullable=False)

    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    category: Mapped[str] = mapped_column(String(40), nullable=False)
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # identity provider user id
    seller_id: Mapped[str] = mapped_column(String(120), nullable=False)
    preview_image_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)

    average_rating: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    review_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_certified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __mapper_args__ = {
        "polymorphic_on": "product_type",
        "polymorphic_identity": "Product",
        # load variant columns with base queries (no lazy loads under asyncio)
        "with_polymorphic": "*",
    }


class Automation(Product):
    """Downloadable automation script or template."""

    # nullable at table level; required for this variant by the create schema
    platform: Mapped[str | None] = mapped_column(String(20), nullable=True)
    file_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    version: Mapped[str | None] = mapped_column(String(40), nullable=True)

    __mapper_args__ = {
        "polymorphic_identity": "Automation",
    }
