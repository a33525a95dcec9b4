"""Exceptions raised by the follow-up pipeline."""

from __future__ import annotations

from uuid import UUID


class FollowUpError(RuntimeError):
    """Base class for follow-up pipeline failures."""


class FollowUpNotFoundError(FollowUpError):
    """Raised when a follow-up record could not be located."""

    def __init__(self, follow_up_id: UUID) -> None:
        super().__init__(f"Follow-up {follow_up_id} not found")
        self.follow_up_id = follow_up_id


class RecipientNotFoundError(FollowUpError):
    """Raised when the profile of a follow-up recipient is missing."""

    def __init__(self, user_id: UUID) -> None:
        super().__init__(f"User profile not found: {user_id}")
        self.user_id = user_id


class DeliveryError(FollowUpError):
    """Raised when a follow-up message could not be written."""


class ClassificationError(FollowUpError):
    """Raised when a classifier response cannot be used."""


class CompletionError(FollowUpError):
    """Raised when the language model returns no usable completion."""
