"""Pure recurring-trigger math: validation and due-instant computation.

Every function takes the reference timezone explicitly. Naive datetimes are
read as wall-clock time in that timezone; returned instants are aware UTC.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Optional

from scenably.errors import InvalidTrigger
from scenably.models import Frequency, ScheduleTrigger

DAY_CODES = ("MON", "TUE", "WED", "THU", "FRI", "SAT", "SUN")
SEARCH_WINDOW_DAYS = 400

_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")


def parse_time(value: str) -> tuple[int, int]:
    """Parse ``HH:MM`` (24h) into ``(hour, minute)``."""
    match = _TIME_PATTERN.match((value or "").strip())
    if not match:
        raise InvalidTrigger(f"time must be HH:MM, got {value!r}")
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise InvalidTrigger(f"time out of range: {value!r}")
    return hour, minute


def parse_days_of_week(value: str) -> list[int]:
    """Parse ``MON,WED`` into sorted weekday indexes (Monday is 0)."""
    days: set[int] = set()
    for part in (value or "").split(","):
        code = part.strip().upper()
        if not code:
            continue
        if code not in DAY_CODES:
            raise InvalidTrigger(f"unknown day of week: {part.strip()!r}")
        days.add(DAY_CODES.index(code))
    if not days:
        raise InvalidTrigger("day_of_week must name at least one day")
    return sorted(days)


def validate_trigger(trigger: ScheduleTrigger) -> ScheduleTrigger:
    """Check field consistency with the frequency and return a normalized copy."""
    try:
        frequency = Frequency(trigger.frequency)
    except ValueError as exc:
        raise InvalidTrigger(f"unsupported frequency: {trigger.frequency!r}") from exc
    hour, minute = parse_time(trigger.time)

    day_of_week = trigger.day_of_week
    day_of_month = trigger.day_of_month
    if frequency == Frequency.WEEKLY:
        if not day_of_week:
            raise InvalidTrigger("WEEKLY triggers require day_of_week")
        day_of_week = ",".join(DAY_CODES[index] for index in parse_days_of_week(day_of_week))
    elif day_of_week:
        raise InvalidTrigger("day_of_week is only allowed for WEEKLY triggers")

    if frequency == Frequency.MONTHLY:
        if day_of_month is None:
            raise InvalidTrigger("MONTHLY triggers require day_of_month")
        if isinstance(day_of_month, bool) or not isinstance(day_of_month, int) or not 1 <= day_of_month <= 31:
            raise InvalidTrigger("day_of_month must be between 1 and 31")
    elif day_of_month is not None:
        raise InvalidTrigger("day_of_month is only allowed for MONTHLY triggers")

    return replace(
        trigger,
        frequency=frequency,
        time=f"{hour:02d}:{minute:02d}",
        day_of_week=day_of_week if frequency == Frequency.WEEKLY else None,
        day_of_month=day_of_month if frequency == Frequency.MONTHLY else None,
    )


def localize(moment: datetime, tz: tzinfo) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=tz)
    return moment.astimezone(tz)


def occurrences_on(trigger: ScheduleTrigger, day: date, tz: tzinfo = timezone.utc) -> list[datetime]:
    """Return the due instants falling on local calendar ``day`` (zero or one)."""
    hour, minute = parse_time(trigger.time)
    if trigger.frequency == Frequency.WEEKLY:
        if day.weekday() not in parse_days_of_week(trigger.day_of_week or ""):
            return []
    elif trigger.frequency == Frequency.MONTHLY:
        last_day = calendar.monthrange(day.year, day.month)[1]
        if day.day != min(int(trigger.day_of_month or 0), last_day):
            return []
    instant = datetime(day.year, day.month, day.day, hour, minute, tzinfo=tz)
    return [instant.astimezone(timezone.utc)]


def next_due_after(trigger: ScheduleTrigger, anchor: datetime, tz: tzinfo = timezone.utc) -> datetime:
    """First due instant strictly after ``anchor``."""
    local_anchor = localize(anchor, tz)
    for offset in range(SEARCH_WINDOW_DAYS):
        day = local_anchor.date() + timedelta(days=offset)
        for instant in occurrences_on(trigger, day, tz):
            if instant > local_anchor:
                return instant
    raise InvalidTrigger(f"trigger {trigger.id} never fires")


def latest_due_at_or_before(
    trigger: ScheduleTrigger,
    now: datetime,
    tz: tzinfo = timezone.utc,
) -> Optional[datetime]:
    """Most recent due instant at or before ``now``, or None within the search window."""
    local_now = localize(now, tz)
    for offset in range(SEARCH_WINDOW_DAYS):
        day = local_now.date() - timedelta(days=offset)
        for instant in reversed(occurrences_on(trigger, day, tz)):
            if instant <= local_now:
                return instant
    return None


def due_instant(
    trigger: ScheduleTrigger,
    anchor: datetime,
    now: datetime,
    tz: tzinfo = timezone.utc,
) -> Optional[datetime]:
    """Instant to fulfil at ``now`` given the last fulfilled ``anchor``, or None.

    A gap spanning several periods yields only the latest missed instant.
    """
    if next_due_after(trigger, anchor, tz) > localize(now, tz):
        return None
    return latest_due_at_or_before(trigger, now, tz)
