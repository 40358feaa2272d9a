from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from koda.core.db import get_db
from koda.schemas.common import IdResponse
from koda.schemas.messaging import ConversationOut, ConversationStart, MessageCreate, MessageOut, UnreadCountOut
from koda.services.auth import Actor, get_actor
from koda.services.messaging import (
    get_conversation_messages,
    list_conversations,
    send_message,
    start_conversation,
    unread_message_count,
)

router = APIRouter()


@router.post("/conversations", response_model=IdResponse)
async def post_conversation(
    payload: ConversationStart,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> IdResponse:
    conv = await start_conversation(
        db,
        user_id=actor.user_id,
        recipient_id=payload.recipient_id,
        initial_message=payload.initial_message,
    )
    await db.commit()
    return IdResponse(id=conv.id)


@router.get("/conversations", response_model=list[ConversationOut])
async def get_conversations(actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> list[ConversationOut]:
    rows = await list_conversations(db, actor.user_id)
    return [
        ConversationOut(
            id=r.id,
            other_user_id=r.other_user_id,
            last_message=r.last_message,
            last_message_at=r.last_message_at,
            has_unread=r.has_unread,
        )
        for r in rows
    ]


@router.get("/conversations/unread-count", response_model=UnreadCountOut)
async def get_unread_count(actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> UnreadCountOut:
    return UnreadCountOut(count=await unread_message_count(db, actor.user_id))


@router.get("/conversations/{conversation_id}/messages", response_model=list[MessageOut])
async def get_messages(
    conversation_id: str,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> list[MessageOut]:
    messages = await get_conversation_messages(db, user_id=actor.user_id, conversation_id=conversation_id)
    out = [
        MessageOut(
            id=m.id,
            sender_id=m.sender_id,
            content=m.content,
            read=m.read,
            created_at=m.created_at,
            is_mine=m.sender_id == actor.user_id,
        )
        for m in messages
    ]
    await db.commit()
    return out


@router.post("/conversations/{conversation_id}/messages", response_model=MessageOut, status_code=201)
async def post_message(
    conversation_id: str,
    payload: MessageCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> MessageOut:
    msg = await send_message(db, user_id=actor.user_id, conversation_id=conversation_id, content=payload.content)
    await db.commit()
    return MessageOut(
        id=msg.id,
        sender_id=msg.sender_id,
        content=msg.content,
        read=msg.read,
        created_at=msg.created_at,
        is_mine=True,
    )
