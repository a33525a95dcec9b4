"""Durable storage for follow-up records and the chat message log.

Every state transition is a conditional ``UPDATE ... WHERE status = 'pending'``
so that overlapping dispatch passes and cancellations resolve to a single
terminal write; the loser observes zero affected rows and does nothing.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol
from uuid import UUID

from sqlalchemy import case, literal, select, update
from sqlalchemy.orm import Session, sessionmaker

from followup_kit.models import ChatMessage, FollowUp, KnowledgeArticle, Profile
from followup_kit.models.session import session_scope

from .schemas import (
    FollowUpCreate,
    FollowUpRecord,
    FollowUpStatus,
    KnowledgeSnippet,
    MessageAnalysis,
    OutboundMessage,
    RecipientProfile,
    Topic,
)

logger = logging.getLogger(__name__)


class FollowUpStore(Protocol):
    """Persistence abstraction used by the service and the dispatcher."""

    def create(
        self,
        payload: FollowUpCreate,
        analysis: MessageAnalysis,
        promised_return_time: datetime,
        now: datetime,
    ) -> FollowUpRecord: ...

    def get(self, follow_up_id: UUID) -> Optional[FollowUpRecord]: ...

    def list_due(
        self, now: datetime, *, max_retries: int, limit: Optional[int] = None
    ) -> List[FollowUpRecord]: ...

    def list_for_conversation(self, conversation_id: UUID) -> List[FollowUpRecord]: ...

    def list_created_since(self, start: datetime) -> List[FollowUpRecord]: ...

    def deliver(
        self, follow_up_id: UUID, message: OutboundMessage, now: datetime
    ) -> Optional[UUID]: ...

    def record_failure(
        self, follow_up_id: UUID, error: str, now: datetime, *, max_retries: int
    ) -> Optional[FollowUpRecord]: ...

    def cancel(self, follow_up_id: UUID, reason: str, now: datetime) -> bool: ...

    def cancel_for_conversation(self, conversation_id: UUID, reason: str, now: datetime) -> int: ...

    def append_message(
        self,
        conversation_id: UUID,
        sender_id: Optional[UUID],
        content: str,
        metadata: Dict[str, Any],
        now: datetime,
    ) -> UUID: ...

    def get_profile(self, user_id: UUID) -> Optional[RecipientProfile]: ...


class KnowledgeLookup(Protocol):
    """Read access to knowledge base articles usable for AI answers."""

    def find(self, topic: Topic, *, limit: int = 3) -> List[KnowledgeSnippet]: ...


def _pending(follow_up_id: UUID):
    return (FollowUp.id == follow_up_id) & (FollowUp.status == FollowUpStatus.PENDING)


class SqlAlchemyFollowUpStore:
    """SQLAlchemy-backed implementation of :class:`FollowUpStore`."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    # ------------------------------------------------------------------
    # Reads

    def get(self, follow_up_id: UUID) -> Optional[FollowUpRecord]:
        with session_scope(self._session_factory) as session:
            row = session.get(FollowUp, follow_up_id)
            return FollowUpRecord.model_validate(row) if row else None

    def list_due(
        self, now: datetime, *, max_retries: int, limit: Optional[int] = None
    ) -> List[FollowUpRecord]:
        stmt = (
            select(FollowUp)
            .where(
                FollowUp.status == FollowUpStatus.PENDING,
                FollowUp.promised_return_time <= now,
                FollowUp.retry_count < max_retries,
            )
            .order_by(FollowUp.promised_return_time.asc(), FollowUp.created_at.asc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        with session_scope(self._session_factory) as session:
            return [FollowUpRecord.model_validate(row) for row in session.scalars(stmt)]

    def list_for_conversation(self, conversation_id: UUID) -> List[FollowUpRecord]:
        stmt = (
            select(FollowUp)
            .where(FollowUp.conversation_id == conversation_id)
            .order_by(FollowUp.created_at.asc())
        )
        with session_scope(self._session_factory) as session:
            return [FollowUpRecord.model_validate(row) for row in session.scalars(stmt)]

    def list_created_since(self, start: datetime) -> List[FollowUpRecord]:
        stmt = select(FollowUp).where(FollowUp.created_at >= start).order_by(FollowUp.created_at)
        with session_scope(self._session_factory) as session:
            return [FollowUpRecord.model_validate(row) for row in session.scalars(stmt)]

    def get_profile(self, user_id: UUID) -> Optional[RecipientProfile]:
        with session_scope(self._session_factory) as session:
            row = session.get(Profile, user_id)
            return RecipientProfile.model_validate(row) if row else None

    # ------------------------------------------------------------------
    # Writes

    def create(
        self,
        payload: FollowUpCreate,
        analysis: MessageAnalysis,
        promised_return_time: datetime,
        now: datetime,
    ) -> FollowUpRecord:
        with self._session_factory.begin() as session:
            row = FollowUp(
                conversation_id=payload.conversation_id,
                user_id=payload.user_id,
                original_message_id=payload.original_message_id,
                auto_reply_message_id=payload.auto_reply_message_id,
                user_question_summary=analysis.summary,
                detected_topic=analysis.topic,
                urgency_level=analysis.urgency,
                promised_return_time=promised_return_time,
                status=FollowUpStatus.PENDING,
                retry_count=0,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.flush()
            session.refresh(row)
            return FollowUpRecord.model_validate(row)

    def append_message(
        self,
        conversation_id: UUID,
        sender_id: Optional[UUID],
        content: str,
        metadata: Dict[str, Any],
        now: datetime,
    ) -> UUID:
        with self._session_factory.begin() as session:
            return self._insert_message(session, conversation_id, sender_id, content, metadata, now)

    @staticmethod
    def _insert_message(
        session: Session,
        conversation_id: UUID,
        sender_id: Optional[UUID],
        content: str,
        metadata: Dict[str, Any],
        now: datetime,
    ) -> UUID:
        message = ChatMessage(
            conversation_id=conversation_id,
            sender_id=sender_id,
            message_type="text",
            content=content,
            message_metadata=dict(metadata),
            created_at=now,
        )
        session.add(message)
        session.flush()
        return message.id

    def deliver(
        self, follow_up_id: UUID, message: OutboundMessage, now: datetime
    ) -> Optional[UUID]:
        """Mark the record sent and append its message in one transaction.

        Returns ``None`` without writing anything when the record is no longer
        pending.
        """

        with self._session_factory.begin() as session:
            claimed = session.execute(
                update(FollowUp)
                .where(_pending(follow_up_id))
                .values(
                    status=FollowUpStatus.SENT,
                    follow_up_sent_at=now,
                    actual_return_time=now,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount == 0:
                return None
            message_id = self._insert_message(
                session,
                message.conversation_id,
                message.sender_id,
                message.content,
                message.metadata,
                now,
            )
            session.execute(
                update(FollowUp)
                .where(FollowUp.id == follow_up_id)
                .values(follow_up_message_id=message_id)
                .execution_options(synchronize_session=False)
            )
            return message_id

    def record_failure(
        self, follow_up_id: UUID, error: str, now: datetime, *, max_retries: int
    ) -> Optional[FollowUpRecord]:
        next_count = FollowUp.retry_count + 1
        with self._session_factory.begin() as session:
            result = session.execute(
                update(FollowUp)
                .where(_pending(follow_up_id))
                .values(
                    retry_count=next_count,
                    error_message=error,
                    updated_at=now,
                    status=case(
                        (next_count >= max_retries, literal(FollowUpStatus.FAILED.value)),
                        else_=literal(FollowUpStatus.PENDING.value),
                    ),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                return None
            row = session.execute(select(FollowUp).where(FollowUp.id == follow_up_id)).scalar_one()
            return FollowUpRecord.model_validate(row)

    def cancel(self, follow_up_id: UUID, reason: str, now: datetime) -> bool:
        with self._session_factory.begin() as session:
            result = session.execute(
                update(FollowUp)
                .where(_pending(follow_up_id))
                .values(status=FollowUpStatus.CANCELLED, error_message=reason, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0

    def cancel_for_conversation(self, conversation_id: UUID, reason: str, now: datetime) -> int:
        with self._session_factory.begin() as session:
            result = session.execute(
                update(FollowUp)
                .where(
                    FollowUp.conversation_id == conversation_id,
                    FollowUp.status == FollowUpStatus.PENDING,
                )
                .values(status=FollowUpStatus.CANCELLED, error_message=reason, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount


class SqlAlchemyKnowledgeLookup:
    """Published, AI-enabled articles matching a topic, highest priority first.

    A topic matches when it is one of the article tags or appears in the title
    or content (case-insensitive).
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def find(self, topic: Topic, *, limit: int = 3) -> List[KnowledgeSnippet]:
        needle = topic.value.lower()
        stmt = (
            select(KnowledgeArticle)
            .where(
                KnowledgeArticle.is_published.is_(True),
                KnowledgeArticle.ai_training_enabled.is_(True),
            )
            .order_by(KnowledgeArticle.context_priority.desc())
        )
        snippets: List[KnowledgeSnippet] = []
        with session_scope(self._session_factory) as session:
            for article in session.scalars(stmt):
                tags = [str(tag).lower() for tag in (article.tags or [])]
                if (
                    needle in tags
                    or needle in article.title.lower()
                    or needle in article.content.lower()
                ):
                    snippets.append(KnowledgeSnippet.model_validate(article))
                if len(snippets) >= limit:
                    break
        return snippets


__all__ = [
    "FollowUpStore",
    "KnowledgeLookup",
    "SqlAlchemyFollowUpStore",
    "SqlAlchemyKnowledgeLookup",
]
