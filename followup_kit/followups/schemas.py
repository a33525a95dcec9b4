"""Pydantic schemas and enumerations for the follow-up pipeline."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

# Delivery attempts per record before it is marked failed.
MAX_RETRIES = 3


class FollowUpStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Topic(str, Enum):
    KYC = "kyc"
    TECHNICAL = "technical"
    TASK_REJECTION = "task_rejection"
    PAYMENT = "payment"
    TASK_HELP = "task_help"
    GENERAL = "general"


class Urgency(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class AvailabilityStatus(str, Enum):
    WORKING = "working"
    LUNCH = "lunch"
    OFFLINE = "offline"


class DispatchResult(str, Enum):
    SENT = "sent"
    RETRYING = "retrying"
    FAILED = "failed"
    SKIPPED = "skipped"


Timeframe = Literal["24h", "7d", "30d"]


class MessageAnalysis(BaseModel):
    """Classification of a single user message."""

    summary: str
    topic: Topic
    urgency: Urgency


class FollowUpCreate(BaseModel):
    """Payload used to register a follow-up promise."""

    conversation_id: UUID
    user_id: UUID
    user_message: str = Field(min_length=1)
    original_message_id: UUID | None = None
    auto_reply_message_id: UUID | None = None
    promised_return_time: datetime | None = None
    urgency: Urgency | None = None


class FollowUpRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    conversation_id: UUID
    user_id: UUID
    original_message_id: UUID | None = None
    auto_reply_message_id: UUID | None = None
    user_question_summary: str
    detected_topic: Topic
    urgency_level: Urgency
    promised_return_time: datetime
    status: FollowUpStatus
    follow_up_sent_at: datetime | None = None
    follow_up_message_id: UUID | None = None
    actual_return_time: datetime | None = None
    retry_count: int = 0
    error_message: str | None = None
    created_at: datetime
    updated_at: datetime


class RecipientProfile(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    first_name: str | None = None
    last_name: str | None = None


class KnowledgeSnippet(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    title: str
    summary: str | None = None
    content: str
    tags: list[str] = Field(default_factory=list)
    context_priority: float = 0.0


class OutboundMessage(BaseModel):
    """Message appended to a conversation on behalf of the assistant."""

    conversation_id: UUID
    content: str
    sender_id: UUID | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class DispatchOutcome(BaseModel):
    follow_up_id: UUID
    result: DispatchResult
    message_id: UUID | None = None
    error: str | None = None


class DispatchSummary(BaseModel):
    processed: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0

    @classmethod
    def from_outcomes(cls, outcomes: list[DispatchOutcome]) -> "DispatchSummary":
        summary = cls(processed=len(outcomes))
        for outcome in outcomes:
            if outcome.result is DispatchResult.SENT:
                summary.sent += 1
            elif outcome.result is DispatchResult.SKIPPED:
                summary.skipped += 1
            else:
                summary.failed += 1
        return summary


class SchedulerStatus(BaseModel):
    is_running: bool
    interval_seconds: float
    next_check_estimate: datetime | None = None
    started_at: datetime | None = None
    last_run_at: datetime | None = None
    last_summary: DispatchSummary | None = None


class TopicCount(BaseModel):
    topic: Topic
    count: int


class FollowUpAnalytics(BaseModel):
    timeframe: Timeframe
    total: int
    success_rate: float
    average_delay_minutes: float
    by_status: dict[FollowUpStatus, int] = Field(default_factory=dict)
    top_topics: list[TopicCount] = Field(default_factory=list)


class AvailabilityResponse(BaseModel):
    available: bool
    status: AvailabilityStatus
    auto_reply_message: str | None = None
    estimated_return: datetime | None = None
    next_return_time: datetime


class AutoReplyRequest(BaseModel):
    conversation_id: UUID
    user_id: UUID
    message: str = Field(min_length=1)


class AutoReplyResponse(BaseModel):
    should_reply: bool
    status: AvailabilityStatus
    auto_reply_message: str | None = None
    user_message_id: UUID | None = None
    auto_reply_message_id: UUID | None = None
    follow_up: FollowUpRecord | None = None


class CancelRequest(BaseModel):
    reason: str | None = None


class CancelResponse(BaseModel):
    cancelled: int
