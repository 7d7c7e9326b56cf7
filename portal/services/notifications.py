"""
Notification creation, fan-out and read-state management.

The ``notify_*`` helpers are side effects of other mutations: they never
raise, a failure is logged and the triggering operation carries on.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional

from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone

from portal.exceptions import InvalidInput, NotFound
from portal.models import Employee, Notification
from portal.realtime.notifications import EVENT_INSERT, EVENT_UPDATE, publish_many

logger = logging.getLogger(__name__)

TYPES = {t for t, _ in Notification.TYPE_CHOICES}

TASK_TITLES = {
    'created': '새 업무가 생성되었습니다',
    'assigned': '새 업무가 배정되었습니다',
    'updated': '업무가 수정되었습니다',
    'completed': '업무가 완료되었습니다',
}
SCHEDULE_TITLES = {
    'created': '새 일정이 등록되었습니다',
    'updated': '일정이 변경되었습니다',
    'reminder': '일정 알림',
}
FILE_TITLES = {
    'uploaded': '새 파일이 업로드되었습니다',
    'shared': '파일이 공유되었습니다',
}


def unique_ids(ids: Iterable, exclude=None) -> list[str]:
    seen: list[str] = []
    excluded = str(exclude) if exclude else None
    for i in ids or []:
        if not i:
            continue
        key = str(i)
        if key == excluded or key in seen:
            continue
        seen.append(key)
    return seen


def create_notification(*, user_id, type: str, title: str, message: str = '',
                        related_id=None, organization_id=None) -> Notification:
    if type not in TYPES:
        raise InvalidInput(f'unknown notification type {type!r}')
    return Notification.objects.create(
        user_id=user_id,
        organization_id=organization_id,
        type=type,
        title=title,
        message=message or '',
        related_id=str(related_id) if related_id else '',
    )


def create_bulk(*, user_ids: Iterable, type: str, title: str, message: str = '',
                related_id=None, organization_id=None) -> list[Notification]:
    """One notification per distinct user id; each row is pushed as an INSERT."""
    if type not in TYPES:
        raise InvalidInput(f'unknown notification type {type!r}')
    ids = unique_ids(user_ids)
    rows = [
        Notification(
            user_id=uid,
            organization_id=organization_id,
            type=type,
            title=title,
            message=message or '',
            related_id=str(related_id) if related_id else '',
        )
        for uid in ids
    ]
    with transaction.atomic():
        created = Notification.objects.bulk_create(rows)
    transaction.on_commit(lambda: publish_many(EVENT_INSERT, created))
    return created


def _safely(fn, *args, **kwargs):
    try:
        return fn(*args, **kwargs)
    except Exception:
        logger.warning('notification side effect %s failed', fn.__name__, exc_info=True)
        return []


# ---------------------------------------------------------------------
# Domain fan-out helpers
# ---------------------------------------------------------------------
def task_recipients(task, action: str, actor_id=None) -> list[tuple[str, str]]:
    """``(employee_id, title)`` pairs for a task change.

    The assignee hears about every action unless they caused it; on
    completion the creator is told too when they are not the assignee.
    """
    title = TASK_TITLES.get(action, TASK_TITLES['updated'])
    actor = str(actor_id or task.creator_id or '')
    assignee = str(task.assignee_id) if task.assignee_id else None
    creator = str(task.creator_id) if task.creator_id else None
    out: list[tuple[str, str]] = []
    if assignee and assignee != actor:
        out.append((assignee, title))
    if action == 'completed' and creator and creator != assignee:
        if not any(r == creator for r, _ in out):
            out.append((creator, TASK_TITLES['completed']))
    return out


def _notify_task(task, action, actor_id):
    created = []
    for recipient, title in task_recipients(task, action, actor_id):
        created.append(create_notification(
            user_id=recipient,
            organization_id=task.organization_id,
            type='task',
            title=title,
            message=f'"{task.title}"',
            related_id=task.id,
        ))
    return created


def notify_task(task, action: str, actor_id=None) -> list[Notification]:
    return _safely(_notify_task, task, action, actor_id)


def schedule_message(schedule, action: str) -> str:
    if action == 'reminder':
        start = timezone.localtime(schedule.start_time)
        return f'"{schedule.title}" 일정이 {start:%Y-%m-%d %H:%M}에 시작됩니다'
    return f'"{schedule.title}"'


def _notify_schedule(schedule, action):
    recipients = unique_ids(schedule.participants or [], exclude=schedule.creator_id)
    if not recipients:
        return []
    return create_bulk(
        user_ids=recipients,
        organization_id=schedule.organization_id,
        type='schedule',
        title=SCHEDULE_TITLES.get(action, SCHEDULE_TITLES['updated']),
        message=schedule_message(schedule, action),
        related_id=schedule.id,
    )


def notify_schedule(schedule, action: str) -> list[Notification]:
    return _safely(_notify_schedule, schedule, action)


def _notify_creator(schedule, action):
    if not schedule.creator_id:
        return []
    return [create_notification(
        user_id=schedule.creator_id,
        organization_id=schedule.organization_id,
        type='schedule',
        title=SCHEDULE_TITLES.get(action, SCHEDULE_TITLES['updated']),
        message=schedule_message(schedule, action),
        related_id=schedule.id,
    )]


def notify_creator(schedule, action: str) -> list[Notification]:
    return _safely(_notify_creator, schedule, action)


def _notify_file(file, recipient_ids, action):
    recipients = unique_ids(recipient_ids, exclude=file.owner_id)
    if not recipients:
        return []
    return create_bulk(
        user_ids=recipients,
        organization_id=file.organization_id,
        type='file',
        title=FILE_TITLES.get(action, FILE_TITLES['uploaded']),
        message=f'"{file.original_filename}"',
        related_id=file.id,
    )


def notify_file(file, recipient_ids: Iterable, action: str = 'uploaded') -> list[Notification]:
    return _safely(_notify_file, file, recipient_ids, action)


def active_employee_ids(organization_id=None) -> list[str]:
    qs = Employee.objects.filter(status=Employee.STATUS_ACTIVE)
    if organization_id:
        qs = qs.filter(organization_id=organization_id)
    return [str(i) for i in qs.values_list('id', flat=True)]


def send_announcement(*, title: str, message: str, organization_id=None, user_ids=None,
                      type: str = 'announcement', exclude_id=None) -> list[Notification]:
    """Fan an announcement (or system message) out to many employees."""
    if type not in ('announcement', 'system'):
        raise InvalidInput('announcements must be of type announcement or system')
    if not (title or '').strip():
        raise InvalidInput('title is required')
    targets = user_ids if user_ids else active_employee_ids(organization_id)
    return create_bulk(
        user_ids=unique_ids(targets, exclude=exclude_id),
        organization_id=organization_id,
        type=type,
        title=title.strip(),
        message=message or '',
    )


# ---------------------------------------------------------------------
# Read state
# ---------------------------------------------------------------------
def list_for(employee, *, type: Optional[str] = None, read: Optional[bool] = None,
             sort: str = 'newest', limit: Optional[int] = None):
    qs = Notification.objects.filter(user=employee)
    if type:
        qs = qs.filter(type=type)
    if read is not None:
        qs = qs.filter(is_read=read)
    if sort == 'unread':
        qs = qs.order_by('is_read', '-created_at')
    else:
        qs = qs.order_by('-created_at')
    if limit:
        qs = qs[:limit]
    return qs


def unread_count(employee) -> int:
    return Notification.objects.filter(user=employee, is_read=False).count()


def _owned(employee, ids: Optional[Iterable]):
    qs = Notification.objects.filter(user=employee)
    if ids is not None:
        ids = unique_ids(ids)
        if not ids:
            return qs.none()
        qs = qs.filter(id__in=ids)
    return qs


def set_read(employee, ids: Optional[Iterable], read: bool = True) -> int:
    """Mark the given notifications (or all when ``ids`` is None) read or unread."""
    qs = _owned(employee, ids).filter(is_read=not read)
    changed = list(qs.values_list('id', flat=True))
    if not changed:
        return 0
    with transaction.atomic():
        Notification.objects.filter(id__in=changed).update(
            is_read=read,
            read_at=timezone.now() if read else None,
        )
    rows = list(Notification.objects.filter(id__in=changed))
    transaction.on_commit(lambda: publish_many(EVENT_UPDATE, rows))
    return len(changed)


def mark_read_one(employee, notification_id) -> Notification:
    n = Notification.objects.filter(user=employee, id=notification_id).first()
    if n is None:
        raise NotFound('notification not found')
    if not n.is_read:
        n.is_read = True
        n.read_at = timezone.now()
        n.save(update_fields=['is_read', 'read_at'])
    return n


def delete(employee, ids: Optional[Iterable]) -> int:
    qs = _owned(employee, ids)
    count = qs.count()
    qs.delete()
    return count


def stats_for(employee) -> dict:
    today = timezone.localdate()
    qs = Notification.objects.filter(user=employee)
    agg = qs.aggregate(
        total=Count('id'),
        unread=Count('id', filter=Q(is_read=False)),
    )
    today_count = sum(1 for c in qs.values_list('created_at', flat=True) if timezone.localdate(c) == today)
    by_type = {t: 0 for t in TYPES}
    for row in qs.values('type').annotate(c=Count('id')):
        by_type[row['type']] = row['c']
    return {
        'total': agg['total'] or 0,
        'unread': agg['unread'] or 0,
        'read': (agg['total'] or 0) - (agg['unread'] or 0),
        'today': today_count,
        'byType': by_type,
    }
