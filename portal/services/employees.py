"""
Employee records, invitations and linking an employee to a login.
"""
from __future__ import annotations

import logging
from typing import Optional

from django.conf import settings
from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone

from portal.access import UserPermissions, ensure_organization_access, get_current_employee, scope_queryset
from portal.exceptions import AccessDenied, Conflict, InvalidInput, NotFound
from portal.models import Department, Employee, Organization

logger = logging.getLogger(__name__)

EMPLOYEE_FIELDS = ('name', 'email', 'phone', 'position', 'hire_date', 'role', 'status',
                   'organization_id', 'department_id')

INVITE_NOTICE = (
    'The employee record was created as inactive. Ask the employee to sign up '
    'with this email address; the account is linked on first sign-in.'
)


def serialize_employee(e: Employee) -> dict:
    return {
        'id': str(e.id),
        'name': e.name,
        'email': e.email,
        'phone': e.phone,
        'position': e.position,
        'hireDate': e.hire_date.isoformat() if e.hire_date else None,
        'role': e.role,
        'status': e.status,
        'organizationId': str(e.organization_id) if e.organization_id else None,
        'organizationName': e.organization.name if e.organization_id else None,
        'departmentId': str(e.department_id) if e.department_id else None,
        'departmentName': e.department.name if e.department_id else None,
        'authUserId': e.auth_user_id,
        'createdAt': e.created_at.isoformat() if e.created_at else None,
        'updatedAt': e.updated_at.isoformat() if e.updated_at else None,
    }


def filter_employees(qs, *, search: str = '', role: Optional[str] = None, status: Optional[str] = None,
                     department_id=None):
    if search:
        qs = qs.filter(Q(name__icontains=search) | Q(email__icontains=search) | Q(position__icontains=search))
    if role:
        qs = qs.filter(role=role)
    if status:
        qs = qs.filter(status=status)
    if department_id:
        qs = qs.filter(department_id=department_id)
    return qs


def list_employees(perms: UserPermissions, *, organization_id=None, **filters):
    qs = scope_queryset(Employee.objects.select_related('organization', 'department'), perms, organization_id)
    return filter_employees(qs, **filters).order_by('name')


def get_employee(perms: UserPermissions, employee_id) -> Employee:
    e = scope_queryset(Employee.objects.select_related('organization', 'department'), perms).filter(id=employee_id).first()
    if e is None:
        raise NotFound('employee not found')
    return e


def _check_department(organization_id, department_id) -> None:
    if not department_id:
        return
    dept = Department.objects.filter(id=department_id).first()
    if dept is None:
        raise NotFound('department not found')
    if str(dept.organization_id) != str(organization_id):
        raise InvalidInput('department belongs to another organization')


def _check_role_grant(perms: UserPermissions, role: Optional[str]) -> None:
    if role == Employee.ROLE_SUPER_ADMIN and not perms.is_super_admin:
        raise AccessDenied('only a super administrator can grant the super_admin role')


def create_employee(perms: UserPermissions, data: dict) -> Employee:
    email = data['email'].strip().lower()
    if Employee.objects.filter(email__iexact=email).exists():
        raise InvalidInput('an employee with this email already exists', code='duplicate_email')
    organization_id = data.get('organization_id') or perms.organization_id
    if not organization_id:
        raise InvalidInput('organization is required')
    ensure_organization_access(perms, organization_id)
    _check_department(organization_id, data.get('department_id'))
    _check_role_grant(perms, data.get('role'))
    values = {k: data[k] for k in EMPLOYEE_FIELDS if k in data}
    values['email'] = email
    values['organization_id'] = organization_id
    e = Employee.objects.create(**values)
    logger.info('employee created: %s (%s)', e.email, e.id)
    return e


def update_employee(perms: UserPermissions, employee_id, data: dict) -> Employee:
    e = get_employee(perms, employee_id)
    if 'email' in data:
        email = data['email'].strip().lower()
        if Employee.objects.filter(email__iexact=email).exclude(id=e.id).exists():
            raise InvalidInput('an employee with this email already exists', code='duplicate_email')
        data = {**data, 'email': email}
    organization_id = data.get('organization_id') or e.organization_id
    if organization_id:
        ensure_organization_access(perms, organization_id)
    if 'department_id' in data:
        _check_department(organization_id, data['department_id'])
    elif str(organization_id) != str(e.organization_id) and e.department_id:
        _check_department(organization_id, e.department_id)
    if 'role' in data:
        _check_role_grant(perms, data['role'])
        if e.role == Employee.ROLE_SUPER_ADMIN and data['role'] != e.role and not perms.is_super_admin:
            raise AccessDenied('only a super administrator can change a super administrator')
    for k in EMPLOYEE_FIELDS:
        if k in data:
            setattr(e, k, data[k])
    e.save()
    return Employee.objects.select_related('organization', 'department').get(id=e.id)


def delete_employee(perms: UserPermissions, employee_id) -> None:
    e = get_employee(perms, employee_id)
    if perms.employee is not None and e.id == perms.employee.id:
        raise InvalidInput('you cannot delete your own employee record')
    if e.role == Employee.ROLE_SUPER_ADMIN and not perms.is_super_admin:
        raise AccessDenied('only a super administrator can delete a super administrator')
    e.delete()


def employee_stats(qs) -> dict:
    agg = qs.aggregate(
        total=Count('id'),
        active=Count('id', filter=Q(status=Employee.STATUS_ACTIVE)),
        inactive=Count('id', filter=Q(status=Employee.STATUS_INACTIVE)),
        resigned=Count('id', filter=Q(status=Employee.STATUS_RESIGNED)),
        admins=Count('id', filter=Q(role__in=(Employee.ROLE_ADMIN, Employee.ROLE_SUPER_ADMIN))),
        managers=Count('id', filter=Q(role=Employee.ROLE_MANAGER)),
    )
    return {k: v or 0 for k, v in agg.items()}


# ---------------------------------------------------------------------
# First-party account endpoints
# ---------------------------------------------------------------------
def invite_employee(perms: UserPermissions, *, name: str, email: str, organization_id, role: str,
                    department_id=None, position: str = '', phone: str = '') -> Employee:
    """Create an inactive employee that becomes active once the person signs up."""
    if not perms.is_admin:
        raise AccessDenied('only administrators can invite employees')
    if not Organization.objects.filter(id=organization_id).exists():
        raise NotFound('organization not found')
    return create_employee(perms, {
        'name': name.strip(),
        'email': email,
        'organization_id': organization_id,
        'department_id': department_id,
        'role': role,
        'position': position or '',
        'phone': phone or '',
        'status': Employee.STATUS_INACTIVE,
    })


@transaction.atomic
def link_auth_user(user, employee_id) -> tuple[Employee, bool]:
    """Attach ``user`` to the employee with the same email.

    Returns ``(employee, already_linked)``. An invited (inactive) employee is
    activated on link.
    """
    e = Employee.objects.select_for_update().filter(id=employee_id).first()
    if e is None:
        raise NotFound('employee not found')
    if (e.email or '').lower() != (user.email or '').lower():
        raise AccessDenied('employee email does not match the signed-in account')
    if e.auth_user_id == user.pk:
        return e, True
    if e.auth_user_id is not None:
        raise Conflict('employee is already linked to another account')
    e.auth_user = user
    update_fields = ['auth_user', 'updated_at']
    if e.status == Employee.STATUS_INACTIVE:
        e.status = Employee.STATUS_ACTIVE
        update_fields.append('status')
    e.save(update_fields=update_fields)
    logger.info('employee %s linked to user %s', e.id, user.pk)
    return e, False


def default_organization() -> Optional[Organization]:
    for name in settings.DEFAULT_ORGANIZATION_NAMES:
        org = Organization.objects.filter(name=name).first()
        if org is not None:
            return org
    return Organization.objects.order_by('created_at').first()


@transaction.atomic
def assign_default_organization(user) -> tuple[Employee, bool]:
    """Give ``user`` an employee row in the default organization.

    Returns ``(employee, created)``. An existing employee that already has an
    organization is returned unchanged.
    """
    org = default_organization()
    if org is None:
        raise NotFound('no default organization is configured')
    dept, _ = Department.objects.get_or_create(organization=org, name=settings.DEFAULT_DEPARTMENT_NAME)

    e = get_current_employee(user)
    if e is not None:
        if e.organization_id:
            return e, False
        e.organization = org
        e.department = e.department or dept
        if e.auth_user_id is None:
            e.auth_user = user
        e.save()
        return e, False

    if not user.email:
        raise InvalidInput('the account has no email address')
    e = Employee.objects.create(
        organization=org,
        department=dept,
        auth_user=user,
        name=user.get_full_name() or user.username,
        email=user.email.lower(),
        role=Employee.ROLE_EMPLOYEE,
        status=Employee.STATUS_ACTIVE,
        hire_date=timezone.localdate(),
    )
    logger.info('employee %s created in default organization %s', e.id, org.id)
    return e, True
