from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func
from sqlalchemy.types import DateTime

from koda.core.ids import id_default
from koda.models.base import Base, TimestampMixin, utcnow


class Conversation(TimestampMixin, Base):
    __tablename__ = "conversations"
    __table_args__ = (
        # participants stored sorted: participant_a < participant_b
        UniqueConstraint("participant_a", "participant_b", name="uq_conversations_pair"),
        Index("ix_conversations_participant_b", "participant_b"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=id_default("conversation"))

    participant_a: Mapped[str] = mapped_column(String(120), nullable=False)
    participant_b: Mapped[str] = mapped_column(String(120), nullable=False)

    last_message: Mapped[str] = mapped_column(String(60), nullable=False, default="")
    last_message_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    @property
    def participants(self) -> tuple[str, str]:
        return (self.participant_a, self.participant_b)

    def other_participant(self, user_id: str) -> str:
        return self.participant_b if user_id == self.participant_a else self.participant_a


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_conversation_created", "conversation_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=id_default("message"))

    conversation_id: Mapped[str] = mapped_column(
        String, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False
    )
    sender_id: Mapped[str] = mapped_column(String(120), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
