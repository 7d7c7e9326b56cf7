from datetime import datetime, time, timedelta

from django.utils import timezone

from portal.access import UserPermissions
from portal.models import Task
from portal.services import files, notifications, reports, schedules, tasks
from portal.realtime.notifications import serialize_notification


def dashboard_for(perms: UserPermissions) -> dict:
    """Widgets for the signed-in employee's home screen."""
    employee = perms.employee
    now = timezone.now()
    today = timezone.localdate(now)
    tz = timezone.get_current_timezone()
    day_start = timezone.make_aware(datetime.combine(today, time.min), tz)

    my_tasks = list(
        tasks.list_tasks(perms, mine=True).exclude(status__in=(Task.STATUS_COMPLETED, Task.STATUS_CANCELLED))
    )
    due_soon = [t for t in my_tasks if t.due_date and t.due_date <= now + timedelta(days=3)]
    todays = list(schedules.list_schedules(perms, start=day_start, end=day_start + timedelta(days=1)))
    recent_files = files.list_files(perms)[:5]

    data = {
        'employee': {
            'id': perms.employee_id,
            'name': employee.name,
            'role': employee.role,
            'organizationName': employee.organization.name if employee.organization_id else None,
            'departmentName': employee.department.name if employee.department_id else None,
        },
        'permissions': perms.as_dict(),
        'myTasks': {
            'stats': tasks.task_stats(tasks.list_tasks(perms, mine=True)),
            'open': [tasks.serialize_task(t) for t in my_tasks[:10]],
            'dueSoon': [tasks.serialize_task(t) for t in due_soon],
        },
        'todaySchedules': [schedules.serialize_schedule(s) for s in todays],
        'notifications': {
            'unread': notifications.unread_count(employee),
            'recent': [serialize_notification(n) for n in notifications.list_for(employee, limit=5)],
        },
        'recentFiles': [files.serialize_file(f) for f in recent_files],
    }
    if perms.is_manager and perms.organization_id:
        data['organizationOverview'] = reports.build('overview', perms.organization_id, 'month')
    return data
