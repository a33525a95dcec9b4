"""Dispatch pass over due follow-up records."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List

from .answers import AnswerGenerator
from .composer import FollowUpComposer
from .errors import RecipientNotFoundError
from .models import Clock, utcnow
from .repository import FollowUpStore
from .schemas import (
    MAX_RETRIES,
    DispatchOutcome,
    DispatchResult,
    DispatchSummary,
    FollowUpRecord,
    FollowUpStatus,
    OutboundMessage,
)

logger = logging.getLogger(__name__)

SENDER_TYPE = "ai-assistant"


class FollowUpDispatcher:
    """Deliver every due follow-up once, isolating failures per record.

    Due records are processed on a bounded thread pool. A record is only ever
    written through the store's conditional updates, so two passes that select
    the same record deliver it at most once.
    """

    def __init__(
        self,
        store: FollowUpStore,
        answers: AnswerGenerator,
        composer: FollowUpComposer,
        *,
        max_workers: int = 4,
        clock: Clock = utcnow,
        max_retries: int = MAX_RETRIES,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self._store = store
        self._answers = answers
        self._composer = composer
        self._max_workers = max_workers
        self._clock = clock
        self._max_retries = max_retries

    def dispatch_due(self) -> DispatchSummary:
        now = self._clock()
        try:
            due = self._store.list_due(now, max_retries=self._max_retries)
        except Exception:
            logger.exception("Loading due follow-ups failed")
            return DispatchSummary()
        if not due:
            return DispatchSummary()

        logger.info("Dispatching %d due follow-up(s)", len(due))
        workers = min(self._max_workers, len(due))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="follow-up-dispatch") as executor:
            outcomes: List[DispatchOutcome] = list(executor.map(self.dispatch_record, due))

        summary = DispatchSummary.from_outcomes(outcomes)
        logger.info(
            "Dispatch pass finished: processed=%d sent=%d failed=%d skipped=%d",
            summary.processed,
            summary.sent,
            summary.failed,
            summary.skipped,
        )
        return summary

    def dispatch_record(self, record: FollowUpRecord) -> DispatchOutcome:
        """Run the delivery pipeline for one record. Never raises."""

        try:
            profile = self._store.get_profile(record.user_id)
            if profile is None:
                raise RecipientNotFoundError(record.user_id)
            answer = self._answers.generate(
                record.user_question_summary, record.detected_topic, record.urgency_level
            )
            now = self._clock()
            content = self._composer.compose(record, profile.first_name or "", answer, now)
            message = OutboundMessage(
                conversation_id=record.conversation_id,
                content=content,
                metadata={
                    "sender_type": SENDER_TYPE,
                    "is_follow_up": True,
                    "follow_up_id": str(record.id),
                    "original_topic": record.detected_topic.value,
                },
            )
            message_id = self._store.deliver(record.id, message, now)
        except Exception as exc:
            return self._record_failure(record, exc)

        if message_id is None:
            logger.info(
                "Follow-up no longer pending, skipped",
                extra={"follow_up_id": record.id, "outcome": DispatchResult.SKIPPED.value},
            )
            return DispatchOutcome(follow_up_id=record.id, result=DispatchResult.SKIPPED)

        logger.info(
            "Follow-up sent (topic %s)",
            record.detected_topic.value,
            extra={
                "follow_up_id": record.id,
                "conversation_id": record.conversation_id,
                "outcome": DispatchResult.SENT.value,
            },
        )
        return DispatchOutcome(
            follow_up_id=record.id, result=DispatchResult.SENT, message_id=message_id
        )

    def _record_failure(self, record: FollowUpRecord, exc: Exception) -> DispatchOutcome:
        error = str(exc) or type(exc).__name__
        try:
            updated = self._store.record_failure(
                record.id, error, self._clock(), max_retries=self._max_retries
            )
        except Exception:
            logger.exception(
                "Recording follow-up failure failed", extra={"follow_up_id": record.id}
            )
            return DispatchOutcome(
                follow_up_id=record.id, result=DispatchResult.RETRYING, error=error
            )

        if updated is None:
            result = DispatchResult.SKIPPED
        elif updated.status is FollowUpStatus.FAILED:
            result = DispatchResult.FAILED
        else:
            result = DispatchResult.RETRYING
        logger.warning(
            "Follow-up delivery failed: %s",
            error,
            extra={
                "follow_up_id": record.id,
                "conversation_id": record.conversation_id,
                "outcome": result.value,
            },
        )
        return DispatchOutcome(follow_up_id=record.id, result=result, error=error)


__all__ = ["FollowUpDispatcher"]
