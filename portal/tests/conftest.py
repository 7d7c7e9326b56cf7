import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from portal.models import Department, Employee, Organization, User


@pytest.fixture(autouse=True)
def _clear_cache():
    # throttles and report caches live in the locmem cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture(autouse=True)
def _media_root(settings, tmp_path):
    settings.MEDIA_ROOT = tmp_path / 'media'


@pytest.fixture
def org(db):
    return Organization.objects.create(name='서울중앙병원', type=Organization.TYPE_HOSPITAL)


@pytest.fixture
def other_org(db):
    return Organization.objects.create(name='부산병원', type=Organization.TYPE_HOSPITAL)


@pytest.fixture
def dept(org):
    return Department.objects.create(organization=org, name='간호부')


@pytest.fixture
def make_employee(db):
    counter = {'n': 0}

    def _make(organization, role=Employee.ROLE_EMPLOYEE, *, department=None, status=Employee.STATUS_ACTIVE,
              name=None, with_user=True):
        counter['n'] += 1
        n = counter['n']
        email = f'user{n}@example.com'
        user = None
        if with_user:
            user = User.objects.create_user(username=f'user{n}', email=email, password='Sup3r-Secret!')
        return Employee.objects.create(
            organization=organization,
            department=department,
            auth_user=user,
            name=name or f'직원{n}',
            email=email,
            role=role,
            status=status,
        )
    return _make


@pytest.fixture
def client_for():
    def _client(employee):
        c = APIClient()
        c.force_authenticate(user=employee.auth_user)
        return c
    return _client


@pytest.fixture
def admin(org, dept, make_employee):
    return make_employee(org, Employee.ROLE_ADMIN, department=dept, name='관리자')


@pytest.fixture
def manager(org, dept, make_employee):
    return make_employee(org, Employee.ROLE_MANAGER, department=dept, name='매니저')


@pytest.fixture
def staff(org, dept, make_employee):
    return make_employee(org, Employee.ROLE_EMPLOYEE, department=dept, name='사원')
