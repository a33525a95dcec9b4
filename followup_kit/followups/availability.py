"""Operator availability derived from fixed business hours.

All rules are evaluated in the configured business timezone. Naive
datetimes are taken to be UTC.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone, tzinfo

from .models import Availability
from .schemas import AvailabilityStatus

OPENING_HOUR = 8
CLOSING_HOUR = 18
LUNCH_HOUR = 12
LUNCH_RETURN = time(13, 30)

WEEKEND_MESSAGE = "Bin übers Wochenende nicht im Büro. Melde mich Montag früh um 8 Uhr zurück!"
BEFORE_HOURS_MESSAGE = "Bin noch nicht im Büro. Melde mich um 8 Uhr zurück!"
AFTER_HOURS_MESSAGE = "Feierabend! Melde mich morgen früh um 8 Uhr zurück."
FRIDAY_EVENING_MESSAGE = "Feierabend! Melde mich Montag früh um 8 Uhr zurück."
LUNCH_MESSAGE = "Bin gerade beim Mittagessen. Melde mich gegen 13:30 Uhr zurück!"


def _next_weekday(day: date) -> date:
    candidate = day + timedelta(days=1)
    while candidate.weekday() >= 5:
        candidate += timedelta(days=1)
    return candidate


class BusinessHours:
    """Working-hours oracle: Monday to Friday 08:00-18:00 with a lunch hour."""

    def __init__(self, tz: tzinfo) -> None:
        self._tz = tz

    @property
    def tz(self) -> tzinfo:
        return self._tz

    def localize(self, now: datetime) -> datetime:
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now.astimezone(self._tz)

    def _at(self, day: date, moment: time) -> datetime:
        return datetime.combine(day, moment, tzinfo=self._tz)

    def check(self, now: datetime) -> Availability:
        local = self.localize(now)
        today = local.date()
        opening = time(OPENING_HOUR)

        if local.weekday() >= 5:
            return Availability(
                available=False,
                status=AvailabilityStatus.OFFLINE,
                auto_reply_message=WEEKEND_MESSAGE,
                estimated_return=self._at(_next_weekday(today), opening),
            )
        if local.hour < OPENING_HOUR:
            return Availability(
                available=False,
                status=AvailabilityStatus.OFFLINE,
                auto_reply_message=BEFORE_HOURS_MESSAGE,
                estimated_return=self._at(today, opening),
            )
        if local.hour >= CLOSING_HOUR:
            message = FRIDAY_EVENING_MESSAGE if local.weekday() == 4 else AFTER_HOURS_MESSAGE
            return Availability(
                available=False,
                status=AvailabilityStatus.OFFLINE,
                auto_reply_message=message,
                estimated_return=self._at(_next_weekday(today), opening),
            )
        if local.hour == LUNCH_HOUR:
            return Availability(
                available=False,
                status=AvailabilityStatus.LUNCH,
                auto_reply_message=LUNCH_MESSAGE,
                estimated_return=self._at(today, LUNCH_RETURN),
            )
        return Availability(available=True, status=AvailabilityStatus.WORKING)

    def next_return_time(
        self, now: datetime, status: AvailabilityStatus | None = None
    ) -> datetime:
        """Return the instant the operator is expected back.

        ``status`` overrides the computed status; while working the answer is
        the next full hour.
        """

        local = self.localize(now)
        availability = self.check(local)
        if status is None or status is availability.status:
            if availability.estimated_return is not None:
                return availability.estimated_return
            status = availability.status

        if status is AvailabilityStatus.LUNCH:
            return self._at(local.date(), LUNCH_RETURN)
        if status is AvailabilityStatus.OFFLINE:
            if local.weekday() < 5 and local.hour < OPENING_HOUR:
                return self._at(local.date(), time(OPENING_HOUR))
            return self._at(_next_weekday(local.date()), time(OPENING_HOUR))
        return local.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)


__all__ = ["BusinessHours"]
