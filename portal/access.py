"""
Role and organization access resolution.

The current employee is looked up from the authenticated user; role flags
and organization scoping are derived from that row plus the
:class:`EmployeeOrganizationAccess` grants.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from django.db.models import Q, QuerySet
from django.utils import timezone

from .exceptions import AccessDenied
from .models import Employee, EmployeeOrganizationAccess, Organization

ADMIN_ROLES = frozenset({Employee.ROLE_ADMIN, Employee.ROLE_SUPER_ADMIN})
MANAGER_ROLES = frozenset({Employee.ROLE_MANAGER, Employee.ROLE_ADMIN, Employee.ROLE_SUPER_ADMIN})

ACCESS_LEVELS = {
    EmployeeOrganizationAccess.LEVEL_ADMIN: 3,
    EmployeeOrganizationAccess.LEVEL_WRITE: 2,
    EmployeeOrganizationAccess.LEVEL_READ: 1,
}


def is_admin_role(role: Optional[str]) -> bool:
    return role in ADMIN_ROLES


def is_manager_role(role: Optional[str]) -> bool:
    return role in MANAGER_ROLES


def is_super_admin_role(role: Optional[str]) -> bool:
    return role == Employee.ROLE_SUPER_ADMIN


# Action visibility helpers used to decide which controls a role gets.
def can_manage_employees(role: Optional[str]) -> bool:
    return is_admin_role(role)


def can_manage_organizations(role: Optional[str]) -> bool:
    return is_admin_role(role)


def can_delete_organizations(role: Optional[str]) -> bool:
    return is_super_admin_role(role)


def can_manage_departments(role: Optional[str]) -> bool:
    return is_manager_role(role)


def can_send_announcements(role: Optional[str]) -> bool:
    return is_manager_role(role)


def can_view_reports(role: Optional[str]) -> bool:
    return is_manager_role(role)


def can_edit_task(role: Optional[str], employee_id, task) -> bool:
    if is_manager_role(role):
        return True
    ids = {str(task.creator_id) if task.creator_id else None, str(task.assignee_id) if task.assignee_id else None}
    return employee_id is not None and str(employee_id) in ids


def can_delete_task(role: Optional[str], employee_id, task) -> bool:
    if is_manager_role(role):
        return True
    return employee_id is not None and task.creator_id is not None and str(task.creator_id) == str(employee_id)


def can_delete_file(role: Optional[str], employee_id, file) -> bool:
    if is_manager_role(role):
        return True
    return employee_id is not None and file.owner_id is not None and str(file.owner_id) == str(employee_id)


def role_actions(role: Optional[str]) -> dict:
    """Map of UI actions the given role may see."""
    return {
        'manageEmployees': can_manage_employees(role),
        'manageOrganizations': can_manage_organizations(role),
        'deleteOrganizations': can_delete_organizations(role),
        'manageDepartments': can_manage_departments(role),
        'sendAnnouncements': can_send_announcements(role),
        'viewReports': can_view_reports(role),
    }


def get_current_employee(user) -> Optional[Employee]:
    """Employee linked to ``user``: by the auth link first, then by email.

    The email fallback only matches rows not yet linked to any login.
    """
    if user is None or not getattr(user, 'is_authenticated', False):
        return None
    cached = getattr(user, '_portal_employee', None)
    if cached is not None:
        return cached
    employee = (
        Employee.objects.select_related('organization', 'department')
        .filter(auth_user_id=user.pk)
        .first()
    )
    if employee is None and user.email:
        employee = (
            Employee.objects.select_related('organization', 'department')
            .filter(email__iexact=user.email, auth_user__isnull=True)
            .first()
        )
    if employee is not None:
        user._portal_employee = employee
    return employee


@dataclass
class UserPermissions:
    employee: Optional[Employee] = None
    is_admin: bool = False
    is_manager: bool = False
    is_super_admin: bool = False
    organization_id: Optional[str] = None
    department_id: Optional[str] = None

    @property
    def role(self) -> Optional[str]:
        return self.employee.role if self.employee else None

    @property
    def employee_id(self) -> Optional[str]:
        return str(self.employee.id) if self.employee else None

    def as_dict(self) -> dict:
        return {
            'employeeId': self.employee_id,
            'role': self.role,
            'isAdmin': self.is_admin,
            'isManager': self.is_manager,
            'isSuperAdmin': self.is_super_admin,
            'organizationId': self.organization_id,
            'departmentId': self.department_id,
            'actions': role_actions(self.role),
        }


def permissions_for_employee(employee: Optional[Employee]) -> UserPermissions:
    if employee is None:
        return UserPermissions()
    return UserPermissions(
        employee=employee,
        is_admin=is_admin_role(employee.role),
        is_manager=is_manager_role(employee.role),
        is_super_admin=is_super_admin_role(employee.role),
        organization_id=str(employee.organization_id) if employee.organization_id else None,
        department_id=str(employee.department_id) if employee.department_id else None,
    )


def get_user_permissions(user) -> UserPermissions:
    return permissions_for_employee(get_current_employee(user))


# ---------------------------------------------------------------------
# Accessible organizations
# ---------------------------------------------------------------------
@dataclass
class AccessibleOrganization:
    organization: Organization
    access_level: str
    is_primary: bool = False

    def as_dict(self) -> dict:
        org = self.organization
        return {
            'organizationId': str(org.id),
            'organizationName': org.name,
            'organizationType': org.type,
            'accessLevel': self.access_level,
            'isPrimary': self.is_primary,
        }

    def as_option(self) -> dict:
        return {
            'value': str(self.organization.id),
            'label': self.organization.name,
            'type': self.organization.type,
            'accessLevel': self.access_level,
            'isPrimary': self.is_primary,
        }


@dataclass
class OrganizationAccess:
    organizations: list = field(default_factory=list)

    @property
    def primary(self) -> Optional[AccessibleOrganization]:
        return next((o for o in self.organizations if o.is_primary), None)

    def level_for(self, organization_id) -> Optional[str]:
        for o in self.organizations:
            if str(o.organization.id) == str(organization_id):
                return o.access_level
        return None

    def has_access(self, organization_id, required_level: str = EmployeeOrganizationAccess.LEVEL_READ) -> bool:
        level = self.level_for(organization_id)
        if level is None:
            return False
        return ACCESS_LEVELS.get(level, 0) >= ACCESS_LEVELS.get(required_level, 0)

    @property
    def writable(self) -> list:
        return [o for o in self.organizations if o.access_level in (EmployeeOrganizationAccess.LEVEL_ADMIN, EmployeeOrganizationAccess.LEVEL_WRITE)]

    @property
    def administrable(self) -> list:
        return [o for o in self.organizations if o.access_level == EmployeeOrganizationAccess.LEVEL_ADMIN]

    @property
    def ids(self) -> list[str]:
        return [str(o.organization.id) for o in self.organizations]

    def options(self) -> list[dict]:
        return [o.as_option() for o in self.organizations]


def get_accessible_organizations(employee: Optional[Employee]) -> OrganizationAccess:
    """Primary organization first, then active unexpired grants for other organizations."""
    if employee is None:
        raise AccessDenied('no employee record for the current user', code='no_employee')
    result = OrganizationAccess()
    if employee.organization_id:
        result.organizations.append(AccessibleOrganization(
            organization=employee.organization,
            access_level=EmployeeOrganizationAccess.LEVEL_ADMIN,
            is_primary=True,
        ))
    now = timezone.now()
    grants = (
        EmployeeOrganizationAccess.objects.select_related('organization')
        .filter(employee=employee, is_active=True)
        .filter(Q(expires_at__isnull=True) | Q(expires_at__gt=now))
        .order_by('created_at')
    )
    if employee.organization_id:
        grants = grants.exclude(organization_id=employee.organization_id)
    for grant in grants:
        result.organizations.append(AccessibleOrganization(
            organization=grant.organization,
            access_level=grant.access_level,
        ))
    if not result.organizations:
        raise AccessDenied('no accessible organizations', code='no_organizations')
    return result


# ---------------------------------------------------------------------
# Organization scoping for querysets
# ---------------------------------------------------------------------
def scope_queryset(qs: QuerySet, perms: UserPermissions, organization_id=None,
                   field: str = 'organization_id') -> QuerySet:
    """Restrict ``qs`` to what the caller may see.

    Admins see every organization unless ``organization_id`` narrows the
    result. Everyone else sees their own organization, or another one they
    hold an active grant for when it is requested explicitly.
    """
    if perms.employee is None:
        return qs.none()
    if perms.is_admin:
        if organization_id:
            return qs.filter(**{field: organization_id})
        return qs
    if organization_id and str(organization_id) != perms.organization_id:
        access = get_accessible_organizations(perms.employee)
        if not access.has_access(organization_id):
            raise AccessDenied('no access to the requested organization')
        return qs.filter(**{field: organization_id})
    if not perms.organization_id:
        return qs.none()
    return qs.filter(**{field: perms.organization_id})


def ensure_organization_access(perms: UserPermissions, organization_id,
                               required_level: str = EmployeeOrganizationAccess.LEVEL_WRITE) -> None:
    """Raise :class:`AccessDenied` unless the caller may act on ``organization_id``."""
    if perms.employee is None:
        raise AccessDenied('no employee record for the current user', code='no_employee')
    if perms.is_admin:
        return
    if organization_id and str(organization_id) == perms.organization_id:
        return
    access = get_accessible_organizations(perms.employee)
    if not access.has_access(organization_id, required_level):
        raise AccessDenied('insufficient organization access')


def resolve_organization_id(perms: UserPermissions, requested=None) -> Optional[str]:
    """Organization a write lands in: the requested one, else the caller's own."""
    return str(requested) if requested else perms.organization_id
