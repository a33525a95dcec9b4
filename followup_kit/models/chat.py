"""Chat and follow-up SQLAlchemy models.

The tables mirror the portal schema the follow-up pipeline reads from and
writes to: the follow-up ledger itself, the append-only chat message log,
recipient profiles and the knowledge base used to ground answers.
"""

from __future__ import annotations

import datetime as dt
import enum
import uuid
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Enum, Float, Index, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from followup_kit.followups.schemas import FollowUpStatus, Topic, Urgency

from . import Base


def _utcnow() -> dt.datetime:
    """Return the current UTC timestamp with timezone awareness."""

    return dt.datetime.now(dt.timezone.utc)


def _as_utc(value: dt.datetime) -> dt.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timezone-aware timestamp normalised to UTC on every backend.

    SQLite has no timestamptz, so values are converted to UTC before binding
    and naive values read back are tagged as UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: dt.datetime | None, dialect: Any) -> dt.datetime | None:
        if value is None:
            return None
        return _as_utc(value)

    def process_result_value(self, value: dt.datetime | None, dialect: Any) -> dt.datetime | None:
        if value is None:
            return None
        return _as_utc(value)


def _enum_column(enum_cls: type[enum.Enum]) -> Enum:
    return Enum(
        enum_cls,
        native_enum=False,
        length=32,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )


def _uuid_pk() -> Mapped[uuid.UUID]:
    return mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )


class FollowUp(Base):
    """A promise to come back to a user once the operator is available.

    Attributes:
        user_question_summary: Short summary stored once at creation.
        detected_topic: Topic assigned by the classifier.
        urgency_level: Urgency assigned by the classifier or the caller.
        promised_return_time: Instant the follow-up becomes due.
        status: ``pending`` until delivered, cancelled or out of retries.
        retry_count: Number of failed delivery attempts.
        error_message: Last failure or cancellation reason.
    """

    __tablename__ = "chat_follow_ups"
    __table_args__ = (
        Index("ix_chat_follow_ups_status_due", "status", "promised_return_time"),
        Index("ix_chat_follow_ups_conversation", "conversation_id"),
    )

    id: Mapped[uuid.UUID] = _uuid_pk()
    conversation_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    original_message_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    auto_reply_message_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    user_question_summary: Mapped[str] = mapped_column(Text, nullable=False)
    detected_topic: Mapped[Topic] = mapped_column(
        _enum_column(Topic), nullable=False, default=Topic.GENERAL
    )
    urgency_level: Mapped[Urgency] = mapped_column(
        _enum_column(Urgency), nullable=False, default=Urgency.NORMAL
    )
    promised_return_time: Mapped[dt.datetime] = mapped_column(UTCDateTime(), nullable=False)
    status: Mapped[FollowUpStatus] = mapped_column(
        _enum_column(FollowUpStatus),
        nullable=False,
        default=FollowUpStatus.PENDING,
        server_default=text("'pending'"),
    )
    follow_up_sent_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime())
    follow_up_message_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    actual_return_time: Mapped[dt.datetime | None] = mapped_column(UTCDateTime())
    retry_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )
    error_message: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), nullable=False, default=_utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), nullable=False, default=_utcnow)


class ChatMessage(Base):
    """Append-only chat message. A ``NULL`` sender is the assistant."""

    __tablename__ = "chat_messages"
    __table_args__ = (Index("ix_chat_messages_conversation", "conversation_id", "created_at"),)

    id: Mapped[uuid.UUID] = _uuid_pk()
    conversation_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    sender_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    message_type: Mapped[str] = mapped_column(
        String(length=32), nullable=False, default="text", server_default=text("'text'")
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    message_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, nullable=False, default=dict
    )
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), nullable=False, default=_utcnow)


class Profile(Base):
    """Portal user profile; only read by the pipeline."""

    __tablename__ = "profiles"

    id: Mapped[uuid.UUID] = _uuid_pk()
    first_name: Mapped[str | None] = mapped_column(String(length=255))
    last_name: Mapped[str | None] = mapped_column(String(length=255))
    email: Mapped[str | None] = mapped_column(String(length=255))


class KnowledgeArticle(Base):
    __tablename__ = "knowledge_base_articles"

    id: Mapped[uuid.UUID] = _uuid_pk()
    title: Mapped[str] = mapped_column(String(length=255), nullable=False)
    summary: Mapped[str | None] = mapped_column(Text)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    context_priority: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    ai_training_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


__all__ = ["ChatMessage", "FollowUp", "KnowledgeArticle", "Profile", "UTCDateTime"]
