from __future__ import annotations

import uuid
from datetime import date, datetime, time, timedelta
from typing import Optional

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from portal.access import UserPermissions, ensure_organization_access, is_manager_role, scope_queryset
from portal.exceptions import AccessDenied, InvalidInput, NotFound
from portal.models import Employee, Schedule
from portal.services import calendar, notifications


def serialize_schedule(s: Schedule) -> dict:
    return {
        'id': str(s.id),
        'organizationId': str(s.organization_id),
        'creatorId': str(s.creator_id) if s.creator_id else None,
        'creatorName': s.creator.name if s.creator_id else None,
        'title': s.title,
        'description': s.description,
        'startTime': s.start_time.isoformat(),
        'endTime': s.end_time.isoformat(),
        'isAllDay': s.is_all_day,
        'location': s.location,
        'participants': list(s.participants or []),
        'date': calendar.local_date(s.start_time).isoformat(),
        'createdAt': s.created_at.isoformat() if s.created_at else None,
    }


def _base_qs():
    return Schedule.objects.select_related('creator')


def list_schedules(perms: UserPermissions, *, organization_id=None, start: Optional[datetime] = None,
                   end: Optional[datetime] = None, search: str = '', mine: bool = False):
    qs = scope_queryset(_base_qs(), perms, organization_id)
    if start is not None:
        qs = qs.filter(start_time__gte=start)
    if end is not None:
        qs = qs.filter(start_time__lt=end)
    if search:
        qs = qs.filter(Q(title__icontains=search) | Q(description__icontains=search) | Q(location__icontains=search))
    if mine and perms.employee is not None:
        # participants is a JSON list of ids
        me = perms.employee_id
        return [s for s in qs.order_by('start_time')
                if str(s.creator_id) == me or me in [str(p) for p in (s.participants or [])]]
    return qs.order_by('start_time')


def get_schedule(perms: UserPermissions, schedule_id) -> Schedule:
    s = scope_queryset(_base_qs(), perms).filter(id=schedule_id).first()
    if s is None:
        raise NotFound('schedule not found')
    return s


def normalize_times(start: datetime, end: Optional[datetime], is_all_day: bool) -> tuple[datetime, datetime]:
    """All-day schedules span the whole local day(s); end defaults to start."""
    end = end or start
    if is_all_day:
        tz = timezone.get_current_timezone()
        start_day = calendar.local_date(start)
        end_day = calendar.local_date(end)
        start = timezone.make_aware(datetime.combine(start_day, time.min), tz)
        end = timezone.make_aware(datetime.combine(end_day, time(23, 59, 59)), tz)
    if end < start:
        raise InvalidInput('end time must not be before start time')
    return start, end


def _is_uuid(value) -> bool:
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


def clean_participants(organization_id, participants) -> list[str]:
    ids = notifications.unique_ids(participants or [])
    if not ids:
        return []
    bad = [i for i in ids if not _is_uuid(i)]
    if bad:
        raise InvalidInput(f'unknown participants: {", ".join(bad)}')
    known = {str(i) for i in Employee.objects.filter(id__in=ids, organization_id=organization_id).values_list('id', flat=True)}
    missing = [i for i in ids if i not in known]
    if missing:
        raise InvalidInput(f'unknown participants: {", ".join(missing)}')
    return ids


def create_schedule(perms: UserPermissions, data: dict) -> Schedule:
    organization_id = data.get('organization_id') or perms.organization_id
    if not organization_id:
        raise InvalidInput('organization is required')
    ensure_organization_access(perms, organization_id)
    is_all_day = bool(data.get('is_all_day'))
    start, end = normalize_times(data['start_time'], data.get('end_time'), is_all_day)
    with transaction.atomic():
        s = Schedule.objects.create(
            organization_id=organization_id,
            creator=perms.employee,
            title=data['title'].strip(),
            description=data.get('description') or '',
            start_time=start,
            end_time=end,
            is_all_day=is_all_day,
            location=data.get('location') or '',
            participants=clean_participants(organization_id, data.get('participants')),
        )
    notifications.notify_schedule(s, 'created')
    return s


def _can_modify(perms: UserPermissions, s: Schedule) -> bool:
    return is_manager_role(perms.role) or (s.creator_id is not None and str(s.creator_id) == perms.employee_id)


def update_schedule(perms: UserPermissions, schedule_id, data: dict) -> Schedule:
    s = get_schedule(perms, schedule_id)
    if not _can_modify(perms, s):
        raise AccessDenied('only the creator or a manager can change this schedule')
    for k in ('title', 'description', 'location'):
        if k in data:
            setattr(s, k, data[k] or '')
    is_all_day = data.get('is_all_day', s.is_all_day)
    if any(k in data for k in ('start_time', 'end_time', 'is_all_day')):
        s.start_time, s.end_time = normalize_times(
            data.get('start_time', s.start_time), data.get('end_time', s.end_time), bool(is_all_day)
        )
        s.is_all_day = bool(is_all_day)
        s.reminded_at = None
    if 'participants' in data:
        s.participants = clean_participants(s.organization_id, data['participants'])
    s.save()
    notifications.notify_schedule(s, 'updated')
    return s


def delete_schedule(perms: UserPermissions, schedule_id) -> None:
    s = get_schedule(perms, schedule_id)
    if not _can_modify(perms, s):
        raise AccessDenied('only the creator or a manager can delete this schedule')
    s.delete()


def month_view(perms: UserPermissions, year: int, month: int, *, organization_id=None,
               selected: Optional[date] = None) -> list[dict]:
    first, last = calendar.grid_bounds(year, month)
    tz = timezone.get_current_timezone()
    start = timezone.make_aware(datetime.combine(first, time.min), tz)
    end = timezone.make_aware(datetime.combine(last + timedelta(days=1), time.min), tz)
    schedules = list(list_schedules(perms, organization_id=organization_id, start=start, end=end))
    cells = calendar.month_grid(year, month, schedules, selected=selected)
    return [c.as_dict(serialize_schedule) for c in cells]


def due_for_reminder(now: Optional[datetime] = None, minutes: int = 30):
    """Schedules starting within ``minutes`` that have not been reminded yet."""
    now = now or timezone.now()
    return Schedule.objects.filter(
        start_time__gte=now,
        start_time__lte=now + timedelta(minutes=minutes),
        reminded_at__isnull=True,
    ).order_by('start_time')


def send_reminders(now: Optional[datetime] = None, minutes: int = 30) -> int:
    now = now or timezone.now()
    sent = 0
    for s in due_for_reminder(now, minutes):
        created = notifications.notify_schedule(s, 'reminder')
        created = created + notifications.notify_creator(s, 'reminder')
        sent += len(created)
        s.reminded_at = now
        s.save(update_fields=['reminded_at'])
    return sent
