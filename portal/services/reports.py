"""
Reporting aggregates over tasks, employees, files and schedules.

Every report takes an organization scope (``None`` means all
organizations, which only administrators may request) and a date range
applied to ``created_at`` (``uploaded_at`` for files).
"""
from __future__ import annotations

from collections import Counter, defaultdict
from datetime import datetime, timedelta
from typing import Optional

from django.conf import settings
from django.core.cache import cache
from django.db.models import Count, Q
from django.utils import timezone

from portal.exceptions import InvalidInput
from portal.models import Employee, File, Schedule, Task
from portal.services.calendar import sunday_weekday
from portal.services.files import file_kind, total_size
from portal.services.tasks import completion_rate, is_overdue, serialize_task

RANGES = {
    'week': timedelta(days=7),
    'month': timedelta(days=30),
    'quarter': timedelta(days=90),
    'year': timedelta(days=365),
    'all': None,
}
UNASSIGNED = '미배정'
WEEKDAY_NAMES = ['일', '월', '화', '수', '목', '금', '토']


def range_start(date_range: str, now: Optional[datetime] = None) -> Optional[datetime]:
    if date_range not in RANGES:
        raise InvalidInput(f'unknown date range {date_range!r}')
    delta = RANGES[date_range]
    if delta is None:
        return None
    return (now or timezone.now()) - delta


def _scoped(model, organization_id, start, field='created_at'):
    qs = model.objects.all()
    if organization_id:
        qs = qs.filter(organization_id=organization_id)
    if start is not None:
        qs = qs.filter(**{f'{field}__gte': start})
    return qs


def cache_key(kind: str, organization_id, date_range: str) -> str:
    return f'report:{kind}:org={organization_id or "all"}:range={date_range}'


def cached(kind: str, organization_id, date_range: str, builder):
    key = cache_key(kind, organization_id, date_range)
    data = cache.get(key)
    if data is None:
        data = builder(organization_id, date_range)
        cache.set(key, data, settings.REPORT_CACHE_SECONDS)
    return data


def overview(organization_id=None, date_range: str = 'month') -> dict:
    now = timezone.now()
    start = range_start(date_range, now)
    employees = Employee.objects.all()
    if organization_id:
        employees = employees.filter(organization_id=organization_id)
    tasks = _scoped(Task, organization_id, start)
    files = _scoped(File, organization_id, start, field='uploaded_at')
    schedules = _scoped(Schedule, organization_id, start)

    emp = employees.aggregate(total=Count('id'), active=Count('id', filter=Q(status=Employee.STATUS_ACTIVE)))
    task = tasks.aggregate(
        total=Count('id'),
        completed=Count('id', filter=Q(status=Task.STATUS_COMPLETED)),
        in_progress=Count('id', filter=Q(status=Task.STATUS_IN_PROGRESS)),
        overdue=Count('id', filter=Q(due_date__lt=now) & ~Q(status=Task.STATUS_COMPLETED)),
    )
    return {
        'range': date_range,
        'employees': {'total': emp['total'] or 0, 'active': emp['active'] or 0},
        'tasks': {
            'total': task['total'] or 0,
            'completed': task['completed'] or 0,
            'inProgress': task['in_progress'] or 0,
            'overdue': task['overdue'] or 0,
            'completionRate': completion_rate(task['completed'] or 0, task['total'] or 0),
        },
        'files': {
            'total': files.count(),
            'totalSize': total_size(files),
        },
        'schedules': {
            'total': schedules.count(),
            'upcoming': schedules.filter(start_time__gte=now).count(),
        },
        'generatedAt': now.isoformat(),
    }


def task_report(organization_id=None, date_range: str = 'month') -> dict:
    now = timezone.now()
    tasks = list(_scoped(Task, organization_id, range_start(date_range, now)).select_related('department', 'assignee', 'creator'))
    by_status = Counter(t.status for t in tasks)
    by_priority = Counter(t.priority for t in tasks)
    by_department = Counter(t.department.name if t.department_id else UNASSIGNED for t in tasks)
    by_assignee: dict = {}
    durations = []
    overdue = []
    for t in tasks:
        if t.assignee_id:
            row = by_assignee.setdefault(str(t.assignee_id), {'id': str(t.assignee_id), 'name': t.assignee.name, 'count': 0, 'completed': 0})
            row['count'] += 1
            if t.status == Task.STATUS_COMPLETED:
                row['completed'] += 1
        if t.status == Task.STATUS_COMPLETED and t.completed_at and t.created_at:
            durations.append((t.completed_at - t.created_at).total_seconds() / 86400)
        if is_overdue(t, now):
            overdue.append(t)
    avg_days = round(sum(durations) / len(durations), 1) if durations else 0
    return {
        'range': date_range,
        'total': len(tasks),
        'byStatus': dict(by_status),
        'byPriority': dict(by_priority),
        'byDepartment': dict(by_department),
        'byAssignee': sorted(by_assignee.values(), key=lambda r: (-r['count'], r['name'])),
        'averageCompletionDays': avg_days,
        'completionRate': completion_rate(by_status.get(Task.STATUS_COMPLETED, 0), len(tasks)),
        'overdue': [serialize_task(t) for t in sorted(overdue, key=lambda t: t.due_date)],
    }


def employee_report(organization_id=None, date_range: str = 'all', top: int = 5) -> dict:
    employees = Employee.objects.select_related('department')
    if organization_id:
        employees = employees.filter(organization_id=organization_id)
    employees = list(employees)
    start = range_start(date_range)
    tasks = _scoped(Task, organization_id, start).filter(assignee__isnull=False)
    per_assignee = {
        row['assignee_id']: row
        for row in tasks.values('assignee_id').annotate(
            total=Count('id'), completed=Count('id', filter=Q(status=Task.STATUS_COMPLETED))
        )
    }
    performers = []
    for e in employees:
        row = per_assignee.get(e.id)
        if not row or not row['total']:
            continue
        performers.append({
            'id': str(e.id),
            'name': e.name,
            'total': row['total'],
            'completed': row['completed'],
            'completionRate': completion_rate(row['completed'], row['total']),
        })
    performers.sort(key=lambda r: (-r['completionRate'], -r['completed'], r['name']))
    recent = sorted([e for e in employees if e.hire_date], key=lambda e: e.hire_date, reverse=True)[:top]
    return {
        'range': date_range,
        'total': len(employees),
        'byDepartment': dict(Counter(e.department.name if e.department_id else UNASSIGNED for e in employees)),
        'byRole': dict(Counter(e.role for e in employees)),
        'byStatus': dict(Counter(e.status for e in employees)),
        'recentJoins': [
            {'id': str(e.id), 'name': e.name, 'position': e.position, 'hireDate': e.hire_date.isoformat()}
            for e in recent
        ],
        'topPerformers': performers[:top],
    }


def file_report(organization_id=None, date_range: str = 'month', top: int = 5) -> dict:
    files = list(_scoped(File, organization_id, range_start(date_range), field='uploaded_at').select_related('department', 'owner'))
    uploaders: dict = defaultdict(lambda: {'count': 0, 'size': 0})
    for f in files:
        if f.owner_id:
            row = uploaders[str(f.owner_id)]
            row.update(id=str(f.owner_id), name=f.owner.name)
            row['count'] += 1
            row['size'] += f.file_size or 0
    return {
        'range': date_range,
        'total': len(files),
        'totalSize': sum(f.file_size or 0 for f in files),
        'byKind': dict(Counter(file_kind(f.mime_type) for f in files)),
        'byDepartment': dict(Counter(f.department.name if f.department_id else UNASSIGNED for f in files)),
        'topUploaders': sorted(uploaders.values(), key=lambda r: (-r['count'], r['name']))[:top],
    }


def schedule_report(organization_id=None, date_range: str = 'month', top: int = 5) -> dict:
    now = timezone.now()
    schedules = list(_scoped(Schedule, organization_id, range_start(date_range, now)))
    by_weekday = {name: 0 for name in WEEKDAY_NAMES}
    by_hour = {h: 0 for h in range(24)}
    participants: Counter = Counter()
    for s in schedules:
        local = timezone.localtime(s.start_time)
        by_weekday[WEEKDAY_NAMES[sunday_weekday(local.date())]] += 1
        if not s.is_all_day:
            by_hour[local.hour] += 1
        participants.update(str(p) for p in (s.participants or []))
    names = dict(Employee.objects.filter(id__in=list(participants)).values_list('id', 'name')) if participants else {}
    names = {str(k): v for k, v in names.items()}
    return {
        'range': date_range,
        'total': len(schedules),
        'upcoming': sum(1 for s in schedules if s.start_time >= now),
        'allDay': sum(1 for s in schedules if s.is_all_day),
        'byWeekday': by_weekday,
        'byHour': by_hour,
        'busiestParticipants': [
            {'id': pid, 'name': names.get(pid), 'count': count} for pid, count in participants.most_common(top)
        ],
    }


BUILDERS = {
    'overview': overview,
    'tasks': task_report,
    'employees': employee_report,
    'files': file_report,
    'schedules': schedule_report,
}


def build(kind: str, organization_id=None, date_range: str = 'month') -> dict:
    if kind not in BUILDERS:
        raise InvalidInput(f'unknown report {kind!r}')
    range_start(date_range)
    return cached(kind, organization_id, date_range, BUILDERS[kind])
