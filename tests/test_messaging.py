import pytest

from koda.core.errors import AuthorizationError, NotFoundError, ValidationError
from koda.services.messaging import (
    get_conversation_messages,
    list_conversations,
    send_message,
    start_conversation,
    unread_message_count,
)
from koda.services.notifications import list_notifications


@pytest.mark.asyncio
async def test_start_conversation_reuses_the_pair(db_session):
    first = await start_conversation(db_session, user_id="bob", recipient_id="alice")
    again = await start_conversation(db_session, user_id="alice", recipient_id="bob")
    assert first.id == again.id
    assert (first.participant_a, first.participant_b) == ("alice", "bob")
    assert first.other_participant("alice") == "bob"


@pytest.mark.asyncio
async def test_cannot_message_yourself(db_session):
    with pytest.raises(ValidationError) as ei:
        await start_conversation(db_session, user_id="alice", recipient_id="alice")
    assert ei.value.key == "cannotMessageSelf"


@pytest.mark.asyncio
async def test_send_updates_preview_and_notifies(db_session):
    conv = await start_conversation(db_session, user_id="alice", recipient_id="bob")
    long_text = "x" * 80
    msg = await send_message(db_session, user_id="alice", conversation_id=conv.id, content=f"  {long_text}  ")

    assert msg.content == long_text
    assert conv.last_message == "x" * 50 + "..."

    notes = await list_notifications(db_session, "bob")
    assert [n.type for n in notes] == ["MESSAGE"]
    assert notes[0].link == f"/dashboard?mode=messages&c={conv.id}"


@pytest.mark.asyncio
@pytest.mark.parametrize("content", ["", "   ", "y" * 2001])
async def test_invalid_content(db_session, content):
    conv = await start_conversation(db_session, user_id="alice", recipient_id="bob")
    with pytest.raises(ValidationError) as ei:
        await send_message(db_session, user_id="alice", conversation_id=conv.id, content=content)
    assert ei.value.fields == ["content"]


@pytest.mark.asyncio
async def test_outsiders_cannot_read_or_write(db_session):
    conv = await start_conversation(db_session, user_id="alice", recipient_id="bob")
    with pytest.raises(AuthorizationError):
        await send_message(db_session, user_id="mallory", conversation_id=conv.id, content="hi")
    with pytest.raises(AuthorizationError):
        await get_conversation_messages(db_session, user_id="mallory", conversation_id=conv.id)
    with pytest.raises(NotFoundError):
        await get_conversation_messages(db_session, user_id="alice", conversation_id="cnv_missing")


@pytest.mark.asyncio
async def test_reading_marks_incoming_messages_read(db_session):
    conv = await start_conversation(db_session, user_id="alice", recipient_id="bob", initial_message="hello bob")
    await send_message(db_session, user_id="bob", conversation_id=conv.id, content="hi alice")

    assert await unread_message_count(db_session, "bob") == 1
    assert await unread_message_count(db_session, "alice") == 1

    [summary] = await list_conversations(db_session, "bob")
    assert summary.other_user_id == "alice"
    assert summary.has_unread
    assert summary.last_message == "hi alice"

    messages = await get_conversation_messages(db_session, user_id="bob", conversation_id=conv.id)
    assert [m.content for m in messages] == ["hello bob", "hi alice"]

    assert await unread_message_count(db_session, "bob") == 0
    assert await unread_message_count(db_session, "alice") == 1
    [summary] = await list_conversations(db_session, "bob")
    assert not summary.has_unread


@pytest.mark.asyncio
async def test_no_conversations(db_session):
    assert await list_conversations(db_session, "loner") == []
    assert await unread_message_count(db_session, "loner") == 0
