import csv
import io
from typing import Iterable

from django.utils import timezone

EMPLOYEE_CSV_HEADER = ['name', 'email', 'role', 'status', 'organization', 'department', 'position', 'joined']


def _joined(e) -> str:
    value = e.hire_date or (timezone.localdate(e.created_at) if e.created_at else None)
    return value.strftime('%Y-%m-%d') if value else ''


def employee_rows(employees: Iterable) -> list[list[str]]:
    return [
        [
            e.name,
            e.email,
            e.role,
            e.status,
            e.organization.name if e.organization_id else '',
            e.department.name if e.department_id else '',
            e.position or '',
            _joined(e),
        ]
        for e in employees
    ]


def employees_csv(employees: Iterable) -> str:
    """CSV text (with header) for the given, already filtered, employees."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator='\r\n')
    writer.writerow(EMPLOYEE_CSV_HEADER)
    writer.writerows(employee_rows(employees))
    return buf.getvalue()


def export_filename(prefix: str = 'employees') -> str:
    return f"{prefix}_{timezone.localdate():%Y%m%d}.csv"
