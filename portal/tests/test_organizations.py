from datetime import timedelta

import pytest
from django.urls import reverse
from django.utils import timezone

from portal.models import Department, Employee, EmployeeOrganizationAccess, Organization


@pytest.fixture
def super_admin(org, make_employee):
    return make_employee(org, Employee.ROLE_SUPER_ADMIN, name='최고관리자')


# ---------------------------------------------------------------------
# Organizations
# ---------------------------------------------------------------------
@pytest.mark.django_db
def test_listing_is_scoped(org, other_org, staff, admin, client_for):
    Organization.objects.create(name='대구병원')
    assert [o['name'] for o in client_for(staff).get(reverse('organizations')).data['data']] == ['서울중앙병원']
    assert client_for(admin).get(reverse('organizations')).data['pagination']['total'] == 3

    EmployeeOrganizationAccess.objects.create(employee=staff, organization=other_org)
    names = [o['name'] for o in client_for(staff).get(reverse('organizations')).data['data']]
    assert names == ['부산병원', '서울중앙병원']


@pytest.mark.django_db
def test_create_is_admin_only(staff, admin, client_for):
    payload = {'name': '  강남의원 ', 'type': 'hospital', 'contactEmail': 'info@gangnam.example.com'}
    assert client_for(staff).post(reverse('organizations'), payload, format='json').status_code == 403
    r = client_for(admin).post(reverse('organizations'), payload, format='json')
    assert r.status_code == 201
    assert r.data['data']['name'] == '강남의원'
    assert r.data['data']['contactEmail'] == 'info@gangnam.example.com'


@pytest.mark.django_db
def test_detail_summary_and_cross_org_access(org, other_org, dept, staff, client_for):
    c = client_for(staff)
    data = c.get(reverse('organization-detail', args=[org.id])).data['data']
    assert data['employeeCount'] == 1 and data['departmentCount'] == 1
    assert c.get(reverse('organization-detail', args=[other_org.id])).status_code == 403


@pytest.mark.django_db
def test_non_admin_cannot_edit_own_org(org, other_org, manager, client_for):
    c = client_for(manager)
    assert c.patch(reverse('organization-detail', args=[org.id]), {'name': 'x'}, format='json').status_code == 403

    EmployeeOrganizationAccess.objects.create(employee=manager, organization=other_org, access_level='admin')
    r = c.patch(reverse('organization-detail', args=[other_org.id]), {'representative': '박원장'}, format='json')
    assert r.status_code == 200
    assert r.data['data']['representative'] == '박원장'


@pytest.mark.django_db
def test_delete_needs_super_admin_and_no_active_staff(org, other_org, admin, super_admin, client_for):
    assert client_for(admin).delete(reverse('organization-detail', args=[other_org.id])).status_code == 403
    c = client_for(super_admin)
    assert c.delete(reverse('organization-detail', args=[org.id])).status_code == 409
    assert c.delete(reverse('organization-detail', args=[other_org.id])).status_code == 200
    assert not Organization.objects.filter(id=other_org.id).exists()


# ---------------------------------------------------------------------
# Accessible organizations and grants
# ---------------------------------------------------------------------
@pytest.mark.django_db
def test_accessible_endpoint_lists_primary_first(org, other_org, staff, client_for):
    EmployeeOrganizationAccess.objects.create(employee=staff, organization=other_org, access_level='write')
    EmployeeOrganizationAccess.objects.create(
        employee=staff, organization=Organization.objects.create(name='만료병원'),
        expires_at=timezone.now() - timedelta(days=1),
    )
    data = client_for(staff).get(reverse('organizations-accessible')).data['data']
    assert [o['organizationName'] for o in data['organizations']] == ['서울중앙병원', '부산병원']
    assert data['primary']['accessLevel'] == 'admin'
    assert data['options'][1] == {
        'value': str(other_org.id), 'label': '부산병원', 'type': 'hospital', 'accessLevel': 'write',
        'isPrimary': False,
    }


@pytest.mark.django_db
def test_grant_and_revoke(org, other_org, staff, admin, client_for):
    c = client_for(admin)
    payload = {'employeeId': str(staff.id), 'organizationId': str(other_org.id), 'accessLevel': 'read'}
    r = c.post(reverse('access-grants'), payload, format='json')
    assert r.status_code == 201
    grant_id = r.data['data']['id']
    assert r.data['data']['employeeName'] == '사원'

    # granting again updates the same row
    r = c.post(reverse('access-grants'), {**payload, 'accessLevel': 'write'}, format='json')
    assert r.data['data']['id'] == grant_id
    assert r.data['data']['accessLevel'] == 'write'

    assert c.get(reverse('access-grants'), {'employeeId': str(staff.id)}).data['pagination']['total'] == 1
    r = c.delete(reverse('access-grant-revoke', args=[grant_id]))
    assert r.data['data']['isActive'] is False
    assert c.get(reverse('access-grants')).data['pagination']['total'] == 0
    assert c.get(reverse('access-grants'), {'includeInactive': 'true'}).data['pagination']['total'] == 1


@pytest.mark.django_db
def test_grant_validation(org, staff, admin, other_org, client_for):
    c = client_for(admin)
    own = {'employeeId': str(staff.id), 'organizationId': str(org.id), 'accessLevel': 'read'}
    assert c.post(reverse('access-grants'), own, format='json').status_code == 400
    expired = {'employeeId': str(staff.id), 'organizationId': str(other_org.id), 'accessLevel': 'read',
               'expiresAt': (timezone.now() - timedelta(hours=1)).isoformat()}
    assert c.post(reverse('access-grants'), expired, format='json').status_code == 400
    assert client_for(staff).get(reverse('access-grants')).status_code == 403


# ---------------------------------------------------------------------
# Departments
# ---------------------------------------------------------------------
@pytest.mark.django_db
def test_department_crud_needs_manager(org, dept, staff, manager, client_for):
    payload = {'name': '외래간호팀', 'parentId': str(dept.id)}
    assert client_for(staff).post(reverse('departments'), payload, format='json').status_code == 403
    r = client_for(manager).post(reverse('departments'), payload, format='json')
    assert r.status_code == 201
    assert r.data['data']['organizationId'] == str(org.id)
    assert r.data['data']['parentId'] == str(dept.id)

    listed = client_for(staff).get(reverse('departments')).data['data']
    assert {d['name']: d['employeeCount'] for d in listed} == {'간호부': 2, '외래간호팀': 0}


@pytest.mark.django_db
def test_parent_cycles_are_rejected(org, other_org, dept, manager, client_for):
    child = Department.objects.create(organization=org, name='병동', parent=dept)
    grandchild = Department.objects.create(organization=org, name='3병동', parent=child)
    c = client_for(manager)
    r = c.patch(reverse('department-detail', args=[dept.id]), {'parentId': str(grandchild.id)}, format='json')
    assert r.status_code == 400
    r = c.patch(reverse('department-detail', args=[dept.id]), {'parentId': str(dept.id)}, format='json')
    assert r.status_code == 400
    foreign = Department.objects.create(organization=other_org, name='외부')
    r = c.patch(reverse('department-detail', args=[child.id]), {'parentId': str(foreign.id)}, format='json')
    assert r.status_code == 400


@pytest.mark.django_db
def test_delete_reparents_children_and_unassigns_staff(org, dept, staff, manager, client_for):
    root = Department.objects.create(organization=org, name='진료지원')
    dept.parent = root
    dept.save()
    child = Department.objects.create(organization=org, name='병동', parent=dept)

    assert client_for(manager).delete(reverse('department-detail', args=[dept.id])).status_code == 200
    child.refresh_from_db()
    staff.refresh_from_db()
    assert child.parent_id == root.id
    assert staff.department_id is None


@pytest.mark.django_db
def test_tree(org, dept, staff, client_for):
    child = Department.objects.create(organization=org, name='병동', parent=dept)
    Department.objects.create(organization=org, name='원무과')
    tree = client_for(staff).get(reverse('departments-tree')).data['data']
    assert [n['name'] for n in tree] == ['간호부', '원무과']
    assert tree[0]['employeeCount'] == 1
    assert [n['id'] for n in tree[0]['children']] == [str(child.id)]
