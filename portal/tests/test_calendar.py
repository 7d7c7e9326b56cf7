from datetime import date, datetime, timedelta

from django.utils import timezone

from portal.services.calendar import (
    GRID_CELLS,
    grid_bounds,
    month_grid,
    schedule_stats,
    schedules_for_date,
    shift_month,
    sunday_weekday,
    week_bounds,
)


class _Schedule:
    def __init__(self, start, hours=1, *, all_day=False, location='', participants=()):
        self.start_time = start
        self.end_time = start + timedelta(hours=hours)
        self.is_all_day = all_day
        self.location = location
        self.participants = list(participants)


def at(*args):
    return timezone.make_aware(datetime(*args))


def test_grid_is_sunday_first_with_42_cells():
    cells = month_grid(2025, 9, today=date(2025, 9, 15))
    assert len(cells) == GRID_CELLS
    # September 2025 starts on a Monday
    assert cells[0].date == date(2025, 8, 31) and not cells[0].is_current_month
    assert cells[1].date == date(2025, 9, 1) and cells[1].is_current_month
    assert cells[-1].date == date(2025, 10, 11)
    assert [c.date for c in cells if c.is_today] == [date(2025, 9, 15)]
    assert sum(c.is_current_month for c in cells) == 30


def test_month_starting_on_sunday_has_no_leading_days():
    cells = month_grid(2026, 2)
    assert cells[0].date == date(2026, 2, 1)
    assert grid_bounds(2026, 2) == (date(2026, 2, 1), date(2026, 3, 14))


def test_today_and_selected_only_mark_current_month_cells():
    cells = month_grid(2025, 9, today=date(2025, 8, 31), selected=date(2025, 8, 31))
    assert not any(c.is_today or c.is_selected for c in cells)
    cells = month_grid(2025, 9, today=date(2025, 9, 2), selected=date(2025, 9, 3))
    assert [c.date for c in cells if c.is_selected] == [date(2025, 9, 3)]


def test_schedules_bucketed_by_local_start_date():
    morning = _Schedule(at(2025, 9, 3, 9))
    late = _Schedule(at(2025, 9, 3, 23, 30))
    other = _Schedule(at(2025, 9, 4, 0, 10))
    cells = month_grid(2025, 9, [late, other, morning], today=date(2025, 9, 1))
    cell = next(c for c in cells if c.date == date(2025, 9, 3))
    assert cell.schedules == [morning, late]
    assert schedules_for_date([morning, late, other], date(2025, 9, 4)) == [other]
    assert cell.as_dict()['weekday'] == 3


def test_week_bounds_and_helpers():
    assert sunday_weekday(date(2025, 9, 14)) == 0
    assert week_bounds(date(2025, 9, 17)) == (date(2025, 9, 14), date(2025, 9, 20))
    assert shift_month(2025, 1, -1) == (2024, 12)
    assert shift_month(2025, 12, 1) == (2026, 1)


def test_schedule_stats():
    now = at(2025, 9, 17, 12)
    items = [
        _Schedule(at(2025, 9, 17, 11), hours=2, location='대회의실'),
        _Schedule(at(2025, 9, 19, 9), participants=['a']),
        _Schedule(at(2025, 9, 21, 0), all_day=True),
        _Schedule(at(2025, 9, 10, 9)),
    ]
    stats = schedule_stats(items, now)
    assert stats == {
        'total': 4,
        'today': 1,
        'thisWeek': 2,
        'upcoming': 2,
        'allDay': 1,
        'withLocation': 1,
        'withParticipants': 1,
        'ongoing': 1,
    }
