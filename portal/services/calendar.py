"""
Month calendar grid and schedule bucketing.

The grid always has 42 cells (six Sunday-first weeks): trailing days of
the previous month, every day of the requested month, then leading days
of the next month.
"""
from __future__ import annotations

import calendar as _calendar
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from django.utils import timezone

GRID_CELLS = 42


@dataclass
class DayCell:
    date: date
    is_current_month: bool
    is_today: bool = False
    is_selected: bool = False
    schedules: list = field(default_factory=list)

    def as_dict(self, serialize=None) -> dict:
        return {
            'date': self.date.isoformat(),
            'day': self.date.day,
            'weekday': sunday_weekday(self.date),
            'isCurrentMonth': self.is_current_month,
            'isToday': self.is_today,
            'isSelected': self.is_selected,
            'schedules': [serialize(s) for s in self.schedules] if serialize else list(self.schedules),
        }


def sunday_weekday(d: date) -> int:
    """0 for Sunday through 6 for Saturday."""
    return (d.weekday() + 1) % 7


def local_date(value) -> date:
    """Calendar date of ``value`` in the active time zone."""
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            return timezone.localtime(value).date()
        return value.date()
    return value


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def month_days(year: int, month: int, *, today: Optional[date] = None,
               selected: Optional[date] = None) -> list[DayCell]:
    if not 1 <= month <= 12:
        raise ValueError('month must be between 1 and 12')
    today = today or timezone.localdate()
    first = date(year, month, 1)
    days_in_month = _calendar.monthrange(year, month)[1]
    leading = sunday_weekday(first)

    cells: list[DayCell] = []
    for offset in range(leading, 0, -1):
        cells.append(DayCell(date=first - timedelta(days=offset), is_current_month=False))
    for day in range(1, days_in_month + 1):
        d = date(year, month, day)
        cells.append(DayCell(
            date=d,
            is_current_month=True,
            is_today=d == today,
            is_selected=selected is not None and d == selected,
        ))
    next_first = first + timedelta(days=days_in_month)
    trailing = GRID_CELLS - len(cells)
    for offset in range(trailing):
        cells.append(DayCell(date=next_first + timedelta(days=offset), is_current_month=False))
    return cells


def bucket_by_date(schedules: Iterable) -> dict:
    """Schedules keyed by the local date of their ``start_time``."""
    buckets: dict = defaultdict(list)
    for s in schedules:
        buckets[local_date(s.start_time)].append(s)
    return buckets


def schedules_for_date(schedules: Iterable, day: date) -> list:
    return [s for s in schedules if local_date(s.start_time) == day]


def month_grid(year: int, month: int, schedules: Iterable = (), *, today: Optional[date] = None,
               selected: Optional[date] = None) -> list[DayCell]:
    cells = month_days(year, month, today=today, selected=selected)
    buckets = bucket_by_date(schedules)
    for cell in cells:
        cell.schedules = sorted(buckets.get(cell.date, []), key=lambda s: s.start_time)
    return cells


def grid_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last date shown in the month grid."""
    first = date(year, month, 1)
    start = first - timedelta(days=sunday_weekday(first))
    return start, start + timedelta(days=GRID_CELLS - 1)


def week_bounds(day: date) -> tuple[date, date]:
    """Sunday and Saturday of the week containing ``day``."""
    start = day - timedelta(days=sunday_weekday(day))
    return start, start + timedelta(days=6)


def schedule_stats(schedules: Iterable, now: Optional[datetime] = None) -> dict:
    now = now or timezone.now()
    today = local_date(now)
    week_start, week_end = week_bounds(today)
    items = list(schedules)
    stats = {
        'total': len(items),
        'today': 0,
        'thisWeek': 0,
        'upcoming': 0,
        'allDay': 0,
        'withLocation': 0,
        'withParticipants': 0,
        'ongoing': 0,
    }
    for s in items:
        start_day = local_date(s.start_time)
        if start_day == today:
            stats['today'] += 1
        if week_start <= start_day <= week_end:
            stats['thisWeek'] += 1
        if s.start_time >= now:
            stats['upcoming'] += 1
        if s.is_all_day:
            stats['allDay'] += 1
        if (s.location or '').strip():
            stats['withLocation'] += 1
        if s.participants:
            stats['withParticipants'] += 1
        if s.start_time <= now <= s.end_time:
            stats['ongoing'] += 1
    return stats
