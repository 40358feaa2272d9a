from datetime import datetime
from decimal import Decimal

from sqlalchemy import Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func
from sqlalchemy.types import DateTime

from koda.core.ids import id_default
from koda.models.base import Base, utcnow


class Purchase(Base):
    """Immutable ledger entry for one completed sale."""
    __tablename__ = "purchases"
    __table_args__ = (
        # one purchase per payment session, enforced by the store
        UniqueConstraint("stripe_session_id", name="uq_purchases_stripe_session_id"),
        Index("ix_purchases_buyer_id", "buyer_id"),
        Index("ix_purchases_seller_id", "seller_id"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=id_default("purchase"))

    # soft reference: the listing may be removed later, the ledger stays
    product_id: Mapped[str] = mapped_column(String, nullable=False)
    buyer_id: Mapped[str] = mapped_column(String(120), nullable=False)
    seller_id: Mapped[str] = mapped_column(String(120), nullable=False)

    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    net_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    platform_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    # copied from the listing at purchase time
    category: Mapped[str | None] = mapped_column(String(40), nullable=True)
    platform: Mapped[str | None] = mapped_column(String(20), nullable=True)

    stripe_session_id: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
