"""Domain models used by the follow-up pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from .schemas import AvailabilityStatus

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Availability:
    """Operator availability at a given instant."""

    available: bool
    status: AvailabilityStatus
    auto_reply_message: str | None = None
    estimated_return: datetime | None = None
