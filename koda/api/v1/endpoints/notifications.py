from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from koda.core.db import get_db
from koda.schemas.messaging import UnreadCountOut
from koda.schemas.notification import NotificationOut
from koda.services.auth import Actor, get_actor
from koda.services.notifications import (
    delete_notification,
    list_notifications,
    mark_all_notifications_read,
    mark_notification_read,
    unread_notification_count,
)

router = APIRouter()


@router.get("/notifications", response_model=list[NotificationOut])
async def get_notifications(
    limit: int = Query(default=10, ge=1, le=100),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> list[NotificationOut]:
    return [NotificationOut.model_validate(n) for n in await list_notifications(db, actor.user_id, limit=limit)]


@router.get("/notifications/unread-count", response_model=UnreadCountOut)
async def get_unread_notifications(actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> UnreadCountOut:
    return UnreadCountOut(count=await unread_notification_count(db, actor.user_id))


@router.post("/notifications/read-all", response_model=UnreadCountOut)
async def read_all_notifications(actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> UnreadCountOut:
    updated = await mark_all_notifications_read(db, actor.user_id)
    await db.commit()
    return UnreadCountOut(count=updated)


@router.post("/notifications/{notification_id}/read", response_model=NotificationOut)
async def read_notification(
    notification_id: str,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> NotificationOut:
    row = await mark_notification_read(db, actor.user_id, notification_id)
    await db.commit()
    return NotificationOut.model_validate(row)


@router.delete("/notifications/{notification_id}", status_code=204)
async def remove_notification(
    notification_id: str,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> None:
    await delete_notification(db, actor.user_id, notification_id)
    await db.commit()
