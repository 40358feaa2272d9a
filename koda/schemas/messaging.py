from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ConversationStart(BaseModel):
    recipient_id: str = Field(min_length=1, max_length=120)
    initial_message: str | None = Field(default=None, max_length=2000)


class MessageCreate(BaseModel):
    content: str = Field(max_length=2000)


class ConversationOut(BaseModel):
    id: str
    other_user_id: str
    last_message: str
    last_message_at: datetime
    has_unread: bool


class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    sender_id: str
    content: str
    read: bool
    created_at: datetime
    is_mine: bool = False


class UnreadCountOut(BaseModel):
    count: int
