from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from koda.core.errors import AuthorizationError, NotFoundError, ValidationError
from koda.models.base import utcnow
from koda.models.conversation import Conversation, Message
from koda.services.notifications import create_notification, queue_event


log = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 2000
PREVIEW_LENGTH = 50


def _pair(a: str, b: str) -> tuple[str, str]:
    return (a, b) if a < b else (b, a)


def _preview(content: str, size: int = PREVIEW_LENGTH) -> str:
    return content[:size] + ("..." if len(content) > size else "")


def _clean_content(content: str) -> str:
    text = (content or "").strip()
    if not text:
        raise ValidationError(details=[{"loc": ["content"], "msg": "message cannot be empty", "type": "missing"}])
    if len(text) > MAX_MESSAGE_LENGTH:
        raise ValidationError(
            details=[{"loc": ["content"], "msg": f"message cannot exceed {MAX_MESSAGE_LENGTH} characters", "type": "string_too_long"}]
        )
    return text


async def _get_conversation_for(db: AsyncSession, user_id: str, conversation_id: str) -> Conversation:
    conv = (await db.execute(select(Conversation).where(Conversation.id == conversation_id))).scalar_one_or_none()
    if conv is None:
        raise NotFoundError("Conversation not found", key="conversationNotFound")
    if user_id not in conv.participants:
        raise AuthorizationError("Unauthorized")
    return conv


async def start_conversation(
    db: AsyncSession,
    *,
    user_id: str,
    recipient_id: str,
    initial_message: str | None = None,
) -> Conversation:
    """Return the thread between the two users, creating it on first contact."""
    if user_id == recipient_id:
        raise ValidationError("You cannot message yourself.", key="cannotMessageSelf")

    a, b = _pair(user_id, recipient_id)
    stmt = select(Conversation).where(Conversation.participant_a == a, Conversation.participant_b == b)
    conv = (await db.execute(stmt)).scalar_one_or_none()

    if conv is None:
        conv = Conversation(participant_a=a, participant_b=b, last_message="", last_message_at=utcnow())
        db.add(conv)
        await db.flush()
        log.info("conversation started: %s", conv.id)

    if initial_message and initial_message.strip():
        await send_message(db, user_id=user_id, conversation_id=conv.id, content=initial_message)

    return conv


async def send_message(db: AsyncSession, *, user_id: str, conversation_id: str, content: str) -> Message:
    conv = await _get_conversation_for(db, user_id, conversation_id)
    text = _clean_content(content)

    msg = Message(conversation_id=conv.id, sender_id=user_id, content=text, read=False)
    db.add(msg)

    conv.last_message = _preview(text)
    conv.last_message_at = utcnow()
    await db.flush()

    recipient_id = conv.other_participant(user_id)

    # delivery side effects; the message is stored either way
    queue_event(
        db,
        f"private-conversation-{conv.id}",
        "new-message",
        {"id": msg.id, "sender_id": user_id, "content": msg.content, "created_at": msg.created_at.isoformat()},
    )
    try:
        async with db.begin_nested():
            await create_notification(
                db,
                user_id=recipient_id,
                type="MESSAGE",
                title="New message",
                body=f'You received a message: "{_preview(text, 30)}"',
                link=f"/dashboard?mode=messages&c={conv.id}",
            )
    except Exception:
        log.warning("message notification failed for %s", msg.id, exc_info=True)

    return msg


@dataclass(frozen=True)
class ConversationSummary:
    id: str
    other_user_id: str
    last_message: str
    last_message_at: datetime
    has_unread: bool


async def list_conversations(db: AsyncSession, user_id: str) -> list[ConversationSummary]:
    stmt = (
        select(Conversation)
        .where(or_(Conversation.participant_a == user_id, Conversation.participant_b == user_id))
        .order_by(Conversation.last_message_at.desc())
    )
    convs = list((await db.execute(stmt)).scalars().all())
    if not convs:
        return []

    unread_stmt = (
        select(Message.conversation_id, func.count())
        .where(
            Message.conversation_id.in_([c.id for c in convs]),
            Message.sender_id != user_id,
            Message.read.is_(False),
        )
        .group_by(Message.conversation_id)
    )
    unread = dict((await db.execute(unread_stmt)).all())

    return [
        ConversationSummary(
            id=c.id,
            other_user_id=c.other_participant(user_id),
            last_message=c.last_message,
            last_message_at=c.last_message_at,
            has_unread=unread.get(c.id, 0) > 0,
        )
        for c in convs
    ]


async def get_conversation_messages(db: AsyncSession, *, user_id: str, conversation_id: str) -> list[Message]:
    """Chronological messages; the other party's unread ones become read."""
    conv = await _get_conversation_for(db, user_id, conversation_id)

    stmt = select(Message).where(Message.conversation_id == conv.id).order_by(Message.created_at.asc())
    messages = list((await db.execute(stmt)).scalars().all())

    await db.execute(
        update(Message)
        .where(Message.conversation_id == conv.id, Message.sender_id != user_id, Message.read.is_(False))
        .values(read=True)
    )
    return messages


async def unread_message_count(db: AsyncSession, user_id: str) -> int:
    conv_ids = select(Conversation.id).where(
        or_(Conversation.participant_a == user_id, Conversation.participant_b == user_id)
    )
    stmt = select(func.count()).select_from(Message).where(
        Message.conversation_id.in_(conv_ids),
        Message.sender_id != user_id,
        Message.read.is_(False),
    )
    return int((await db.execute(stmt)).scalar_one())
