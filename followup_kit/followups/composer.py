"""Composition of the follow-up message text."""

from __future__ import annotations

import logging
from datetime import datetime, timezone, tzinfo

from .schemas import FollowUpRecord, Topic, Urgency

logger = logging.getLogger(__name__)

URGENT_CLOSING = "Falls das nicht hilft, melde dich sofort!"
DEFAULT_CLOSING = "Falls noch Fragen aufkommen, melde dich gerne!"
TOPIC_CLOSINGS = {
    Topic.KYC: "Bei Problemen schicke mir Screenshots!",
    Topic.TECHNICAL: "Probiere das mal aus!",
    Topic.TASK_REJECTION: "Welcher Grund steht denn da?",
    Topic.PAYMENT: "Alles klar soweit?",
    Topic.TASK_HELP: "Kommst du damit zurecht?",
    Topic.GENERAL: "Hilft dir das weiter?",
}

TEMPLATE = "{greeting} {name}! Bin wieder da.\n\nZu deiner Frage: {answer}\n\n{closing}"
FALLBACK_TEMPLATE = (
    "Hallo {name}! Bin wieder da und kümmere mich jetzt um deine Frage. "
    "Wie kann ich dir helfen?"
)


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class FollowUpComposer:
    """Build the greeting, answer and closing of a follow-up message."""

    def __init__(self, tz: tzinfo) -> None:
        self._tz = tz

    def greeting(self, created_at: datetime, now: datetime) -> str:
        hours = (_aware(now) - _aware(created_at)).total_seconds() / 3600
        if hours > 48:
            return "Guten Morgen"
        if hours > 12:
            return "Guten Morgen" if _aware(now).astimezone(self._tz).hour < 10 else "Hallo"
        if hours > 1:
            return "Hallo"
        return "Hi"

    @staticmethod
    def closing(topic: Topic, urgency: Urgency) -> str:
        if urgency in (Urgency.HIGH, Urgency.URGENT):
            return URGENT_CLOSING
        return TOPIC_CLOSINGS.get(topic, DEFAULT_CLOSING)

    def compose(
        self, record: FollowUpRecord, first_name: str, answer: str, now: datetime
    ) -> str:
        try:
            return TEMPLATE.format(
                greeting=self.greeting(record.created_at, now),
                name=first_name,
                answer=answer,
                closing=self.closing(record.detected_topic, record.urgency_level),
            )
        except Exception as exc:
            logger.warning(
                "Composing follow-up failed, using fallback text: %s",
                exc,
                extra={"follow_up_id": record.id},
            )
            return FALLBACK_TEMPLATE.format(name=first_name)


__all__ = ["FollowUpComposer"]
