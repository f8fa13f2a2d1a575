"""
Due-date phrase extraction (table-driven, pure).

Each rule maps a time phrase to a function of "now". The caller supplies
"now" so results are deterministic; the reducer passes the event timestamp.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from spec import (
    AFTERNOON_HOUR,
    EVENING_HOUR,
    MORNING_HOUR,
    NEXT_WEEK_DAYS,
    TONIGHT_HOUR,
)


Resolver = Callable[[datetime], datetime]


def _at_hour(hour: int) -> Resolver:
    def _resolve(now: datetime) -> datetime:
        return now.replace(hour=hour, minute=0, second=0, microsecond=0)
    return _resolve


def _plus_days(days: int) -> Resolver:
    def _resolve(now: datetime) -> datetime:
        return now + timedelta(days=days)
    return _resolve


def _plus_one_month(now: datetime) -> datetime:
    # Clamp to the last day of the target month (Jan 31 -> Feb 28/29).
    year = now.year + now.month // 12
    month = now.month % 12 + 1
    day = min(now.day, calendar.monthrange(year, month)[1])
    return now.replace(year=year, month=month, day=day)


@dataclass(frozen=True)
class DueDateRule:
    """A time phrase and how to resolve it relative to now."""
    phrase: str
    resolve: Resolver

    def matches(self, lowered: str) -> bool:
        return re.search(rf"\b{re.escape(self.phrase)}\b", lowered) is not None


# First match wins. Day-level phrases outrank part-of-day phrases, so
# "tomorrow morning" resolves to tomorrow (same time of day).
DUE_DATE_RULES: tuple[DueDateRule, ...] = (
    DueDateRule("tomorrow", _plus_days(1)),
    DueDateRule("today", _plus_days(0)),
    DueDateRule("tonight", _at_hour(TONIGHT_HOUR)),
    DueDateRule("morning", _at_hour(MORNING_HOUR)),
    DueDateRule("afternoon", _at_hour(AFTERNOON_HOUR)),
    DueDateRule("evening", _at_hour(EVENING_HOUR)),
    DueDateRule("next week", _plus_days(NEXT_WEEK_DAYS)),
    DueDateRule("next month", _plus_one_month),
)

# Phrases stripped from the end of a task title.
TRAILING_TIME_PHRASES: tuple[str, ...] = (
    "later",
    *(rule.phrase for rule in DUE_DATE_RULES),
)


def extract_due_date(text: str, now: datetime) -> datetime | None:
    """Return the due date implied by the first matching phrase, if any."""
    lowered = text.lower()
    for rule in DUE_DATE_RULES:
        if rule.matches(lowered):
            return rule.resolve(now)
    return None
