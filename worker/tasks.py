import asyncio
import logging

from worker.celery_app import celery
from koda.services.realtime import PublishResult, RealtimeClient


log = logging.getLogger(__name__)


async def _deliver(channel: str, event: str, payload: dict) -> PublishResult:
    client = RealtimeClient()
    try:
        return await client.publish(channel=channel, event=event, data=payload)
    finally:
        await client.aclose()


@celery.task(name="worker.tasks.deliver_realtime_event", ignore_result=True)
def deliver_realtime_event(channel: str, event: str, payload: dict) -> bool:
    # Best effort: the write behind the event is already committed.
    result = asyncio.run(_deliver(channel, event, payload))
    if not result.ok:
        log.warning(
            "realtime delivery failed: %s on %s (%s %s)",
            event, channel, result.error_code, result.error_message,
        )
    return result.ok
