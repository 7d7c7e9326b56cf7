"""
Task lifecycle, board grouping and statistics.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from portal.access import UserPermissions, can_delete_task, can_edit_task, ensure_organization_access, scope_queryset
from portal.exceptions import AccessDenied, InvalidInput, NotFound
from portal.models import Department, Employee, Task
from portal.services import notifications

logger = logging.getLogger(__name__)

STATUSES = [s for s, _ in Task.STATUS_CHOICES]
PRIORITIES = [p for p, _ in Task.PRIORITY_CHOICES]


def serialize_task(t: Task) -> dict:
    return {
        'id': str(t.id),
        'organizationId': str(t.organization_id),
        'departmentId': str(t.department_id) if t.department_id else None,
        'departmentName': t.department.name if t.department_id else None,
        'creatorId': str(t.creator_id) if t.creator_id else None,
        'creatorName': t.creator.name if t.creator_id else None,
        'assigneeId': str(t.assignee_id) if t.assignee_id else None,
        'assigneeName': t.assignee.name if t.assignee_id else None,
        'title': t.title,
        'description': t.description,
        'status': t.status,
        'priority': t.priority,
        'dueDate': t.due_date.isoformat() if t.due_date else None,
        'completedAt': t.completed_at.isoformat() if t.completed_at else None,
        'isOverdue': is_overdue(t),
        'createdAt': t.created_at.isoformat() if t.created_at else None,
        'updatedAt': t.updated_at.isoformat() if t.updated_at else None,
    }


def is_overdue(t, now=None) -> bool:
    now = now or timezone.now()
    return bool(t.due_date and t.due_date < now and t.status != Task.STATUS_COMPLETED)


def _base_qs():
    return Task.objects.select_related('department', 'creator', 'assignee')


def list_tasks(perms: UserPermissions, *, organization_id=None, status: Optional[str] = None,
               priority: Optional[str] = None, assignee_id=None, department_id=None, search: str = '',
               mine: bool = False):
    qs = scope_queryset(_base_qs(), perms, organization_id)
    if status:
        qs = qs.filter(status=status)
    if priority:
        qs = qs.filter(priority=priority)
    if assignee_id:
        qs = qs.filter(assignee_id=assignee_id)
    if department_id:
        qs = qs.filter(department_id=department_id)
    if search:
        qs = qs.filter(Q(title__icontains=search) | Q(description__icontains=search))
    if mine and perms.employee is not None:
        qs = qs.filter(Q(assignee=perms.employee) | Q(creator=perms.employee))
    return qs.order_by('-created_at')


def get_task(perms: UserPermissions, task_id) -> Task:
    t = scope_queryset(_base_qs(), perms).filter(id=task_id).first()
    if t is None:
        raise NotFound('task not found')
    return t


def _check_refs(organization_id, assignee_id, department_id) -> None:
    if assignee_id:
        assignee = Employee.objects.filter(id=assignee_id).first()
        if assignee is None:
            raise NotFound('assignee not found')
        if str(assignee.organization_id) != str(organization_id):
            raise InvalidInput('assignee belongs to another organization')
    if department_id:
        dept = Department.objects.filter(id=department_id).first()
        if dept is None:
            raise NotFound('department not found')
        if str(dept.organization_id) != str(organization_id):
            raise InvalidInput('department belongs to another organization')


def apply_status(t: Task, status: str, now=None) -> None:
    """Set ``status`` and keep ``completed_at`` in step with it."""
    if status not in STATUSES:
        raise InvalidInput(f'unknown status {status!r}')
    if status == Task.STATUS_COMPLETED and t.status != Task.STATUS_COMPLETED:
        t.completed_at = now or timezone.now()
    elif status != Task.STATUS_COMPLETED:
        t.completed_at = None
    t.status = status


def create_task(perms: UserPermissions, data: dict) -> Task:
    organization_id = data.get('organization_id') or perms.organization_id
    if not organization_id:
        raise InvalidInput('organization is required')
    ensure_organization_access(perms, organization_id)
    _check_refs(organization_id, data.get('assignee_id'), data.get('department_id'))
    department_id = data.get('department_id')
    if not department_id and str(organization_id) == str(perms.organization_id):
        department_id = perms.department_id
    t = Task(
        organization_id=organization_id,
        department_id=department_id,
        creator=perms.employee,
        assignee_id=data.get('assignee_id'),
        title=data['title'].strip(),
        description=data.get('description') or '',
        priority=data.get('priority') or 'medium',
        due_date=data.get('due_date'),
    )
    apply_status(t, data.get('status') or Task.STATUS_PENDING)
    with transaction.atomic():
        t.save()
    notifications.notify_task(t, 'assigned' if t.assignee_id else 'created', actor_id=perms.employee_id)
    return get_task(perms, t.id)


def update_task(perms: UserPermissions, task_id, data: dict) -> Task:
    t = get_task(perms, task_id)
    if not can_edit_task(perms.role, perms.employee_id, t):
        raise AccessDenied('you cannot edit this task')
    previous_assignee = t.assignee_id
    previous_status = t.status
    if 'assignee_id' in data or 'department_id' in data:
        _check_refs(t.organization_id, data.get('assignee_id'), data.get('department_id'))
    for k in ('title', 'description', 'priority', 'due_date', 'assignee_id', 'department_id'):
        if k in data:
            setattr(t, k, data[k])
    if 'status' in data and data['status']:
        apply_status(t, data['status'])
    with transaction.atomic():
        t.save()

    if t.status == Task.STATUS_COMPLETED and previous_status != Task.STATUS_COMPLETED:
        action = 'completed'
    elif t.assignee_id and t.assignee_id != previous_assignee:
        action = 'assigned'
    else:
        action = 'updated'
    notifications.notify_task(t, action, actor_id=perms.employee_id)
    return get_task(perms, t.id)


def delete_task(perms: UserPermissions, task_id) -> None:
    t = get_task(perms, task_id)
    if not can_delete_task(perms.role, perms.employee_id, t):
        raise AccessDenied('you cannot delete this task')
    t.delete()


def board(tasks: Iterable) -> dict:
    """Tasks grouped into one column per status."""
    columns: dict = {s: [] for s in STATUSES}
    for t in tasks:
        columns.setdefault(t.status, []).append(t)
    return columns


def completion_rate(completed: int, total: int) -> int:
    return round(completed / total * 100) if total else 0


def task_stats(tasks: Iterable, now=None) -> dict:
    now = now or timezone.now()
    items = list(tasks)
    by_status = {s: 0 for s in STATUSES}
    urgent = high = overdue = 0
    for t in items:
        by_status[t.status] = by_status.get(t.status, 0) + 1
        if t.priority == 'urgent':
            urgent += 1
        elif t.priority == 'high':
            high += 1
        if is_overdue(t, now):
            overdue += 1
    total = len(items)
    return {
        'total': total,
        'pending': by_status[Task.STATUS_PENDING],
        'inProgress': by_status[Task.STATUS_IN_PROGRESS],
        'completed': by_status[Task.STATUS_COMPLETED],
        'cancelled': by_status[Task.STATUS_CANCELLED],
        'urgent': urgent,
        'high': high,
        'overdue': overdue,
        'completionRate': completion_rate(by_status[Task.STATUS_COMPLETED], total),
    }
