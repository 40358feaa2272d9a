from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import delete, event as sa_event, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session, SessionTransaction

from koda.core.config import settings
from koda.core.errors import NotFoundError
from koda.models.notification import Notification
from worker.celery_app import celery


log = logging.getLogger(__name__)

NOTIFICATION_TYPES = ("MESSAGE", "PURCHASE", "SYSTEM")

# session.info key holding events waiting for the outer commit
PENDING_EVENTS = "koda.pending_events"


def publish_event(channel: str, event: str, payload: dict[str, Any]) -> bool:
    """
    Hand a real-time event to the worker for delivery to the pub/sub service.

    Fire-and-forget: failures are logged and never reach the caller, so the
    write that triggered the event is never undone because of it.
    """
    if not settings.realtime_enabled:
        log.debug("realtime disabled, dropping %s on %s", event, channel)
        return False
    try:
        celery.send_task(
            "worker.tasks.deliver_realtime_event",
            args=[channel, event, payload],
            queue="realtime",
        )
    except Exception:
        log.warning("realtime enqueue failed: %s on %s", event, channel, exc_info=True)
        return False
    return True


def queue_event(db: AsyncSession, channel: str, event: str, payload: dict[str, Any]) -> None:
    """
    Publish once the session's transaction commits. Events queued inside a
    savepoint that rolls back are dropped with it; a rolled back or closed
    transaction sends nothing.
    """
    sync = db.sync_session
    tx = sync.get_nested_transaction() or sync.get_transaction()
    sync.info.setdefault(PENDING_EVENTS, []).append((tx, channel, event, payload))


def pending_events(db: AsyncSession) -> list[tuple[str, str]]:
    return [(channel, event) for _, channel, event, _ in db.sync_session.info.get(PENDING_EVENTS, [])]


def _opened_within(tx: SessionTransaction | None, ancestor: SessionTransaction) -> bool:
    while tx is not None:
        if tx is ancestor:
            return True
        tx = tx.parent
    return False


@sa_event.listens_for(Session, "after_commit")
def _send_pending_events(session: Session) -> None:
    # also fires when a savepoint is released; wait for the outermost commit
    if session.in_nested_transaction():
        return
    for _, channel, event, payload in session.info.pop(PENDING_EVENTS, []):
        publish_event(channel, event, payload)


@sa_event.listens_for(Session, "after_soft_rollback")
def _drop_rolled_back_events(session: Session, previous_transaction: SessionTransaction) -> None:
    pending = session.info.get(PENDING_EVENTS)
    if not pending:
        return
    session.info[PENDING_EVENTS] = [e for e in pending if not _opened_within(e[0], previous_transaction)]


@sa_event.listens_for(Session, "after_transaction_end")
def _forget_events(session: Session, transaction: SessionTransaction) -> None:
    if transaction.parent is None:
        session.info.pop(PENDING_EVENTS, None)


async def create_notification(
    db: AsyncSession,
    *,
    user_id: str,
    type: str,
    title: str,
    body: str = "",
    link: str | None = None,
) -> Notification:
    if type not in NOTIFICATION_TYPES:
        raise ValueError(f"unknown notification type: {type}")

    row = Notification(user_id=user_id, type=type, title=title, body=body, link=link, read=False)
    db.add(row)
    await db.flush()

    queue_event(
        db,
        f"private-user-{user_id}",
        "new-notification",
        {"id": row.id, "type": type, "title": title, "body": body, "link": link},
    )
    return row


async def list_notifications(db: AsyncSession, user_id: str, *, limit: int = 10) -> list[Notification]:
    stmt = (
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc())
        .limit(limit)
    )
    return list((await db.execute(stmt)).scalars().all())


async def unread_notification_count(db: AsyncSession, user_id: str) -> int:
    stmt = select(func.count()).select_from(Notification).where(
        Notification.user_id == user_id,
        Notification.read.is_(False),
    )
    return int((await db.execute(stmt)).scalar_one())


async def mark_notification_read(db: AsyncSession, user_id: str, notification_id: str) -> Notification:
    stmt = select(Notification).where(Notification.id == notification_id, Notification.user_id == user_id)
    row = (await db.execute(stmt)).scalar_one_or_none()
    if row is None:
        raise NotFoundError("Notification not found", key="notificationNotFound")
    row.read = True
    await db.flush()
    return row


async def mark_all_notifications_read(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.read.is_(False))
        .values(read=True)
    )
    return int(result.rowcount or 0)


async def delete_notification(db: AsyncSession, user_id: str, notification_id: str) -> None:
    result = await db.execute(
        delete(Notification).where(Notification.id == notification_id, Notification.user_id == user_id)
    )
    if not result.rowcount:
        raise NotFoundError("Notification not found", key="notificationNotFound")
