from datetime import timedelta

import pytest
from django.utils import timezone

from portal.access import (
    can_delete_file,
    can_edit_task,
    get_accessible_organizations,
    get_current_employee,
    get_user_permissions,
    is_admin_role,
    is_manager_role,
    role_actions,
    scope_queryset,
)
from portal.exceptions import AccessDenied
from portal.models import Employee, EmployeeOrganizationAccess, Task, User


class _Obj:
    def __init__(self, **kw):
        self.__dict__.update(kw)


def test_role_flags():
    assert is_admin_role('super_admin') and is_admin_role('admin')
    assert not is_admin_role('manager')
    assert is_manager_role('manager') and is_manager_role('admin')
    assert not is_manager_role('employee')
    assert not is_manager_role(None)


def test_role_actions_for_employee_are_all_false():
    assert not any(role_actions('employee').values())
    assert role_actions('super_admin')['deleteOrganizations'] is True
    assert role_actions('admin')['deleteOrganizations'] is False


def test_task_and_file_rules():
    task = _Obj(creator_id='c1', assignee_id='a1')
    assert can_edit_task('employee', 'a1', task)
    assert can_edit_task('employee', 'c1', task)
    assert not can_edit_task('employee', 'x', task)
    assert can_edit_task('manager', 'x', task)
    f = _Obj(owner_id='o1')
    assert can_delete_file('employee', 'o1', f)
    assert not can_delete_file('employee', 'x', f)


@pytest.mark.django_db
def test_current_employee_falls_back_to_email(org):
    user = User.objects.create_user(username='kim', email='Kim@Example.com', password='x')
    e = Employee.objects.create(organization=org, name='김', email='kim@example.com')
    assert get_current_employee(user) == e


@pytest.mark.django_db
def test_email_fallback_skips_employees_linked_to_another_login(org, make_employee):
    linked = make_employee(org, role=Employee.ROLE_ADMIN)
    linked.email = 'new-address@example.com'
    linked.save()
    newcomer = User.objects.create_user(username='newcomer', email='new-address@example.com', password='x')
    assert get_current_employee(newcomer) is None
    perms = get_user_permissions(newcomer)
    assert perms.employee is None
    assert not perms.is_admin
    assert get_current_employee(linked.auth_user) == linked


@pytest.mark.django_db
def test_permissions_without_employee():
    user = User.objects.create_user(username='nobody', password='x')
    perms = get_user_permissions(user)
    assert perms.employee is None
    assert not (perms.is_admin or perms.is_manager or perms.is_super_admin)
    assert perms.organization_id is None


@pytest.mark.django_db
def test_accessible_organizations_primary_first(org, other_org, make_employee):
    e = make_employee(org)
    third = type(org).objects.create(name='세번째병원')
    EmployeeOrganizationAccess.objects.create(employee=e, organization=other_org, access_level='write')
    EmployeeOrganizationAccess.objects.create(
        employee=e, organization=third, access_level='read', expires_at=timezone.now() - timedelta(days=1),
    )
    EmployeeOrganizationAccess.objects.create(employee=e, organization=org, access_level='read')

    access = get_accessible_organizations(e)
    assert [o.organization.id for o in access.organizations] == [org.id, other_org.id]
    assert access.primary.organization == org
    assert access.has_access(org.id, 'admin')
    assert access.has_access(other_org.id, 'write')
    assert not access.has_access(other_org.id, 'admin')
    assert not access.has_access(third.id)
    assert [o.organization for o in access.writable] == [org, other_org]
    assert [o.organization for o in access.administrable] == [org]
    assert access.options()[1] == {
        'value': str(other_org.id), 'label': other_org.name, 'type': other_org.type,
        'accessLevel': 'write', 'isPrimary': False,
    }


@pytest.mark.django_db
def test_no_accessible_organizations_raises(make_employee):
    e = make_employee(None)
    with pytest.raises(AccessDenied, match='no accessible organizations'):
        get_accessible_organizations(e)


@pytest.mark.django_db
def test_scope_queryset(org, other_org, make_employee):
    mine = Task.objects.create(organization=org, title='mine')
    theirs = Task.objects.create(organization=other_org, title='theirs')
    staff = make_employee(org)
    admin = make_employee(org, Employee.ROLE_ADMIN)

    staff_perms = get_user_permissions(staff.auth_user)
    assert list(scope_queryset(Task.objects.all(), staff_perms)) == [mine]
    with pytest.raises(AccessDenied):
        scope_queryset(Task.objects.all(), staff_perms, other_org.id)

    admin_perms = get_user_permissions(admin.auth_user)
    assert set(scope_queryset(Task.objects.all(), admin_perms)) == {mine, theirs}
    assert list(scope_queryset(Task.objects.all(), admin_perms, other_org.id)) == [theirs]

    EmployeeOrganizationAccess.objects.create(employee=staff, organization=other_org, access_level='read')
    assert list(scope_queryset(Task.objects.all(), staff_perms, other_org.id)) == [theirs]
