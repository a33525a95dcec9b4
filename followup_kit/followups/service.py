"""Service layer for registering, inspecting and cancelling follow-ups."""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import List
from uuid import UUID

from .availability import BusinessHours
from .classifier import MessageClassifier
from .errors import FollowUpNotFoundError
from .models import Clock, utcnow
from .repository import FollowUpStore
from .schemas import (
    AutoReplyRequest,
    AutoReplyResponse,
    AvailabilityResponse,
    FollowUpAnalytics,
    FollowUpCreate,
    FollowUpRecord,
    FollowUpStatus,
    Timeframe,
    TopicCount,
)

logger = logging.getLogger(__name__)

DEFAULT_CANCEL_REASON = "User received response"
TIMEFRAMES: dict[str, timedelta] = {
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}
TOP_TOPICS = 5


class FollowUpService:
    """High-level orchestration of the follow-up lifecycle outside dispatch."""

    def __init__(
        self,
        store: FollowUpStore,
        classifier: MessageClassifier,
        business_hours: BusinessHours,
        *,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._classifier = classifier
        self._hours = business_hours
        self._clock = clock

    # ------------------------------------------------------------------
    # Availability

    def availability_report(self) -> AvailabilityResponse:
        now = self._clock()
        current = self._hours.check(now)
        return AvailabilityResponse(
            available=current.available,
            status=current.status,
            auto_reply_message=current.auto_reply_message,
            estimated_return=current.estimated_return,
            next_return_time=self._hours.next_return_time(now),
        )

    # ------------------------------------------------------------------
    # Creation

    def create_follow_up(self, payload: FollowUpCreate) -> FollowUpRecord:
        now = self._clock()
        analysis = self._classifier.classify(payload.user_message)
        if payload.urgency is not None:
            analysis = analysis.model_copy(update={"urgency": payload.urgency})
        promised = payload.promised_return_time or self._hours.next_return_time(now)
        record = self._store.create(payload, analysis, promised, now)
        logger.info(
            "Follow-up scheduled for %s (topic %s, urgency %s)",
            record.promised_return_time.isoformat(),
            record.detected_topic.value,
            record.urgency_level.value,
            extra={"follow_up_id": record.id, "conversation_id": record.conversation_id},
        )
        return record

    def handle_auto_reply(self, request: AutoReplyRequest) -> AutoReplyResponse:
        """Answer for an absent operator and promise a follow-up.

        Nothing is stored while the operator is available.
        """

        now = self._clock()
        current = self._hours.check(now)
        if current.available:
            return AutoReplyResponse(should_reply=False, status=current.status)

        promised = current.estimated_return or self._hours.next_return_time(now)
        auto_reply = current.auto_reply_message or ""
        user_message_id = self._store.append_message(
            request.conversation_id,
            request.user_id,
            request.message,
            {"sender_type": "user"},
            now,
        )
        auto_reply_id = self._store.append_message(
            request.conversation_id,
            None,
            auto_reply,
            {
                "sender_type": "ai-assistant",
                "is_auto_reply": True,
                "promised_return_time": promised.isoformat(),
            },
            now,
        )
        record = self.create_follow_up(
            FollowUpCreate(
                conversation_id=request.conversation_id,
                user_id=request.user_id,
                user_message=request.message,
                original_message_id=user_message_id,
                auto_reply_message_id=auto_reply_id,
                promised_return_time=promised,
            )
        )
        return AutoReplyResponse(
            should_reply=True,
            status=current.status,
            auto_reply_message=auto_reply,
            user_message_id=user_message_id,
            auto_reply_message_id=auto_reply_id,
            follow_up=record,
        )

    # ------------------------------------------------------------------
    # Inspection and cancellation

    def get(self, follow_up_id: UUID) -> FollowUpRecord:
        record = self._store.get(follow_up_id)
        if record is None:
            raise FollowUpNotFoundError(follow_up_id)
        return record

    def list_for_conversation(self, conversation_id: UUID) -> List[FollowUpRecord]:
        return self._store.list_for_conversation(conversation_id)

    def cancel(self, follow_up_id: UUID, reason: str | None = None) -> bool:
        """Cancel one pending record; ``False`` if it already left ``pending``."""

        self.get(follow_up_id)
        cancelled = self._store.cancel(follow_up_id, reason or DEFAULT_CANCEL_REASON, self._clock())
        if cancelled:
            logger.info("Follow-up cancelled", extra={"follow_up_id": follow_up_id})
        return cancelled

    def cancel_for_conversation(
        self, conversation_id: UUID, reason: str = DEFAULT_CANCEL_REASON
    ) -> int:
        count = self._store.cancel_for_conversation(conversation_id, reason, self._clock())
        if count:
            logger.info(
                "Cancelled %d pending follow-up(s)",
                count,
                extra={"conversation_id": conversation_id},
            )
        return count

    # ------------------------------------------------------------------
    # Analytics

    def analytics(self, timeframe: Timeframe = "7d") -> FollowUpAnalytics:
        try:
            window = TIMEFRAMES[timeframe]
        except KeyError as exc:
            raise ValueError(f"Unsupported timeframe: {timeframe}") from exc
        records = self._store.list_created_since(self._clock() - window)
        return summarize_records(records, timeframe)


def _delay_minutes(promised: datetime, sent: datetime) -> float:
    return abs((sent - promised).total_seconds()) / 60


def summarize_records(records: List[FollowUpRecord], timeframe: Timeframe) -> FollowUpAnalytics:
    total = len(records)
    by_status = Counter(record.status for record in records)
    sent = by_status.get(FollowUpStatus.SENT, 0)
    delays = [
        _delay_minutes(record.promised_return_time, record.follow_up_sent_at)
        for record in records
        if record.follow_up_sent_at is not None
    ]
    topics = Counter(record.detected_topic for record in records)
    return FollowUpAnalytics(
        timeframe=timeframe,
        total=total,
        success_rate=round(sent / total * 100, 2) if total else 0.0,
        average_delay_minutes=round(sum(delays) / len(delays), 2) if delays else 0.0,
        by_status={status: by_status.get(status, 0) for status in FollowUpStatus},
        top_topics=[
            TopicCount(topic=topic, count=count)
            for topic, count in topics.most_common(TOP_TOPICS)
        ],
    )


__all__ = ["DEFAULT_CANCEL_REASON", "FollowUpService", "summarize_records"]
