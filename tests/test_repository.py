import uuid
from datetime import timedelta

from followup_kit.followups.schemas import (
    MAX_RETRIES,
    FollowUpStatus,
    OutboundMessage,
)
from followup_kit.models import ChatMessage


def _message(record, content="Hallo"):
    return OutboundMessage(
        conversation_id=record.conversation_id,
        content=content,
        metadata={"is_follow_up": True},
    )


def test_create_stores_pending_record(store, make_follow_up, clock):
    record = make_follow_up()

    assert record.status is FollowUpStatus.PENDING
    assert record.retry_count == 0
    assert record.promised_return_time == clock.now - timedelta(hours=1)
    assert store.get(record.id) == record


def test_list_due_filters_and_orders(store, make_follow_up, clock):
    later = make_follow_up(promised=clock.now - timedelta(minutes=5))
    earlier = make_follow_up(promised=clock.now - timedelta(hours=3))
    make_follow_up(promised=clock.now + timedelta(minutes=1))
    cancelled = make_follow_up()
    store.cancel(cancelled.id, "answered", clock.now)

    due = store.list_due(clock.now, max_retries=MAX_RETRIES)

    assert [record.id for record in due] == [earlier.id, later.id]


def test_list_due_ties_break_on_created_at(store, make_follow_up, clock):
    promised = clock.now - timedelta(hours=1)
    second = make_follow_up(promised=promised, created=clock.now - timedelta(hours=2))
    first = make_follow_up(promised=promised, created=clock.now - timedelta(hours=4))

    due = store.list_due(clock.now, max_retries=MAX_RETRIES, limit=1)

    assert [record.id for record in due] == [first.id]
    assert second.id != first.id


def test_deliver_is_conditional(store, session_factory, make_follow_up, clock):
    record = make_follow_up()

    message_id = store.deliver(record.id, _message(record), clock.now)
    again = store.deliver(record.id, _message(record, "doppelt"), clock.now)

    assert message_id is not None
    assert again is None
    stored = store.get(record.id)
    assert stored.status is FollowUpStatus.SENT
    assert stored.follow_up_message_id == message_id
    assert stored.follow_up_sent_at == clock.now
    assert stored.actual_return_time == clock.now
    with session_factory() as session:
        messages = session.query(ChatMessage).all()
    assert [message.content for message in messages] == ["Hallo"]
    assert messages[0].sender_id is None
    assert messages[0].message_metadata == {"is_follow_up": True}


def test_record_failure_counts_up_to_failed(store, make_follow_up, clock):
    record = make_follow_up()

    statuses = []
    for attempt in range(MAX_RETRIES):
        updated = store.record_failure(record.id, f"boom {attempt}", clock.now, max_retries=MAX_RETRIES)
        statuses.append((updated.status, updated.retry_count))

    assert statuses == [
        (FollowUpStatus.PENDING, 1),
        (FollowUpStatus.PENDING, 2),
        (FollowUpStatus.FAILED, 3),
    ]
    assert store.get(record.id).error_message == "boom 2"
    assert store.record_failure(record.id, "late", clock.now, max_retries=MAX_RETRIES) is None
    assert store.get(record.id).retry_count == MAX_RETRIES


def test_cancel_only_affects_pending(store, make_follow_up, clock):
    conversation_id = uuid.uuid4()
    sent = make_follow_up(conversation_id=conversation_id)
    pending = make_follow_up(conversation_id=conversation_id)
    store.deliver(sent.id, _message(sent), clock.now)

    assert store.cancel_for_conversation(conversation_id, "answered", clock.now) == 1
    assert store.cancel(sent.id, "too late", clock.now) is False
    assert store.cancel(pending.id, "again", clock.now) is False

    records = {record.id: record for record in store.list_for_conversation(conversation_id)}
    assert records[sent.id].status is FollowUpStatus.SENT
    assert records[pending.id].status is FollowUpStatus.CANCELLED
    assert records[pending.id].error_message == "answered"


def test_append_message_and_profile(store, add_profile, clock):
    user_id = add_profile("Jonas")
    conversation_id = uuid.uuid4()

    message_id = store.append_message(conversation_id, user_id, "Hallo?", {"sender_type": "user"}, clock.now)

    assert isinstance(message_id, uuid.UUID)
    assert store.get_profile(user_id).first_name == "Jonas"
    assert store.get_profile(uuid.uuid4()) is None


def test_list_created_since(store, make_follow_up, clock):
    old = make_follow_up(created=clock.now - timedelta(days=10))
    recent = make_follow_up(created=clock.now - timedelta(days=1))

    ids = [record.id for record in store.list_created_since(clock.now - timedelta(days=7))]

    assert ids == [recent.id]
    assert old.id not in ids
