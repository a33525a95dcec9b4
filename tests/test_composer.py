from datetime import datetime, timedelta, timezone
from uuid import uuid4
from zoneinfo import ZoneInfo

import pytest

from followup_kit.followups.composer import FollowUpComposer
from followup_kit.followups.schemas import FollowUpRecord, FollowUpStatus, Topic, Urgency

BERLIN = ZoneInfo("Europe/Berlin")
composer = FollowUpComposer(BERLIN)


def _record(created_at: datetime, topic=Topic.TECHNICAL, urgency=Urgency.NORMAL) -> FollowUpRecord:
    return FollowUpRecord(
        id=uuid4(),
        conversation_id=uuid4(),
        user_id=uuid4(),
        user_question_summary="Upload klappt nicht",
        detected_topic=topic,
        urgency_level=urgency,
        promised_return_time=created_at,
        status=FollowUpStatus.PENDING,
        created_at=created_at,
        updated_at=created_at,
    )


def test_compose_after_weekend_gap():
    now = datetime(2024, 3, 4, 8, 5, tzinfo=BERLIN)
    record = _record(now - timedelta(hours=50))

    text = composer.compose(record, "Anna", "Komprimiere das Bild.", now)

    assert text == (
        "Guten Morgen Anna! Bin wieder da.\n\n"
        "Zu deiner Frage: Komprimiere das Bild.\n\n"
        "Probiere das mal aus!"
    )


@pytest.mark.parametrize(
    ("elapsed", "local_hour", "greeting"),
    [
        (timedelta(hours=13), 9, "Guten Morgen"),
        (timedelta(hours=13), 11, "Hallo"),
        (timedelta(hours=2), 9, "Hallo"),
        (timedelta(minutes=30), 15, "Hi"),
    ],
)
def test_greeting_depends_on_elapsed_time_and_local_hour(elapsed, local_hour, greeting):
    now = datetime(2024, 3, 5, local_hour, 0, tzinfo=BERLIN)

    assert composer.greeting(now - elapsed, now) == greeting


def test_greeting_uses_business_timezone_for_hour():
    # 08:30 UTC is 09:30 in Berlin.
    now = datetime(2024, 3, 5, 8, 30, tzinfo=timezone.utc)

    assert composer.greeting(now - timedelta(hours=20), now) == "Guten Morgen"
    assert FollowUpComposer(timezone(timedelta(hours=3))).greeting(
        now - timedelta(hours=20), now
    ) == "Hallo"


@pytest.mark.parametrize(
    ("topic", "urgency", "closing"),
    [
        (Topic.KYC, Urgency.HIGH, "Falls das nicht hilft, melde dich sofort!"),
        (Topic.GENERAL, Urgency.URGENT, "Falls das nicht hilft, melde dich sofort!"),
        (Topic.KYC, Urgency.NORMAL, "Bei Problemen schicke mir Screenshots!"),
        (Topic.TASK_REJECTION, Urgency.LOW, "Welcher Grund steht denn da?"),
        (Topic.PAYMENT, Urgency.LOW, "Alles klar soweit?"),
        (Topic.TASK_HELP, Urgency.NORMAL, "Kommst du damit zurecht?"),
        (Topic.GENERAL, Urgency.NORMAL, "Hilft dir das weiter?"),
    ],
)
def test_closing_by_urgency_then_topic(topic, urgency, closing):
    assert FollowUpComposer.closing(topic, urgency) == closing


def test_compose_falls_back_on_error():
    record = _record(datetime(2024, 3, 5, 8, 0, tzinfo=BERLIN))

    text = composer.compose(record, "Anna", "egal", None)

    assert text == (
        "Hallo Anna! Bin wieder da und kümmere mich jetzt um deine Frage. "
        "Wie kann ich dir helfen?"
    )
