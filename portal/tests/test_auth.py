"""
Authentication and the sign-up linking flow, driven through the HTTP API.
"""
from django.core.cache import cache
from django.urls import reverse
from rest_framework.test import APITestCase

from portal.models import Department, Employee, Organization, User


class AuthAPITests(APITestCase):
    def setUp(self) -> None:
        cache.clear()
        self.org = Organization.objects.create(name='메디콘솔', type=Organization.TYPE_MSO)
        self.user = User.objects.create_user(username='kim', email='kim@example.com', password='Sup3r-Secret!')
        self.employee = Employee.objects.create(
            organization=self.org, auth_user=self.user, name='김철수', email='kim@example.com',
            role=Employee.ROLE_MANAGER,
        )

    def login(self, username='kim', password='Sup3r-Secret!'):
        return self.client.post(reverse('auth-login'), {'username': username, 'password': password}, format='json')

    def test_login_returns_token_and_jwt_pair(self):
        r = self.login()
        self.assertEqual(r.status_code, 200)
        for key in ('token', 'jwt_access', 'jwt_refresh'):
            self.assertTrue(r.data[key])
        self.assertEqual(r.data['permissions']['isManager'], True)
        self.assertEqual(r.data['organizations'][0]['isPrimary'], True)

        self.client.credentials(HTTP_AUTHORIZATION=f"Token {r.data['token']}")
        me = self.client.get(reverse('auth-me'))
        self.assertEqual(me.data['employee']['id'], str(self.employee.id))

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {r.data['jwt_access']}")
        self.assertEqual(self.client.get(reverse('auth-me')).status_code, 200)

    def test_login_by_email(self):
        self.assertEqual(self.login(username='KIM@example.com').status_code, 200)

    def test_wrong_password(self):
        r = self.login(password='nope')
        self.assertEqual(r.status_code, 400)
        self.assertFalse(r.data['ok'])

    def test_resigned_employee_cannot_log_in(self):
        self.employee.status = Employee.STATUS_RESIGNED
        self.employee.save()
        self.assertEqual(self.login().status_code, 403)

    def test_jwt_refresh_and_logout(self):
        r = self.login()
        refreshed = self.client.post(reverse('auth-refresh'), {'refresh': r.data['jwt_refresh']}, format='json')
        self.assertEqual(refreshed.status_code, 200)
        self.assertIn('jwt_access', refreshed.data)

        self.client.credentials(HTTP_AUTHORIZATION=f"Token {r.data['token']}")
        out = self.client.post(reverse('auth-logout'), {'refresh': r.data['jwt_refresh']}, format='json')
        self.assertEqual(out.data['blacklisted'], 1)
        again = self.client.post(reverse('auth-refresh'), {'refresh': r.data['jwt_refresh']}, format='json')
        self.assertEqual(again.status_code, 401)

    def test_change_password_rotates_token(self):
        token = self.login().data['token']
        self.client.credentials(HTTP_AUTHORIZATION=f'Token {token}')
        r = self.client.post(reverse('settings-password'),
                             {'currentPassword': 'Sup3r-Secret!', 'newPassword': 'An0ther-Secret!'}, format='json')
        self.assertEqual(r.status_code, 200)
        self.assertNotEqual(r.data['token'], token)
        self.client.credentials()
        self.assertEqual(self.login(password='An0ther-Secret!').status_code, 200)

    def test_change_password_checks_current(self):
        self.client.force_authenticate(self.user)
        r = self.client.post(reverse('settings-password'),
                             {'currentPassword': 'wrong', 'newPassword': 'An0ther-Secret!'}, format='json')
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.data['error']['code'], 'wrong_password')

    def test_profile_update(self):
        self.client.force_authenticate(self.user)
        r = self.client.patch(reverse('settings-profile'), {'phone': '010-1234-5678', 'position': '팀장'}, format='json')
        self.assertEqual(r.status_code, 200)
        self.employee.refresh_from_db()
        self.assertEqual(self.employee.position, '팀장')


class SignupLinkTests(APITestCase):
    def setUp(self) -> None:
        cache.clear()
        self.org = Organization.objects.create(name='메디콘솔', type=Organization.TYPE_MSO)
        self.admin_user = User.objects.create_user(username='boss', email='boss@example.com', password='x')
        self.admin = Employee.objects.create(
            organization=self.org, auth_user=self.admin_user, name='관리자', email='boss@example.com',
            role=Employee.ROLE_ADMIN,
        )

    def signup(self, username, email):
        self.client.force_authenticate(None)
        return self.client.post(reverse('auth-signup'), {
            'username': username, 'email': email, 'password': 'Sup3r-Secret!', 'name': '이영희',
        }, format='json')

    def test_invite_then_signup_then_link(self):
        self.client.force_authenticate(self.admin_user)
        r = self.client.post(reverse('invite-employee'), {
            'name': '이영희', 'email': 'lee@example.com', 'organizationId': str(self.org.id), 'role': 'employee',
        }, format='json')
        self.assertEqual(r.status_code, 201)
        self.assertEqual(r.data['data']['status'], 'inactive')
        self.assertIn('sign up', r.data['message'])
        invited_id = r.data['data']['id']

        r = self.signup('lee', 'lee@example.com')
        self.assertEqual(r.status_code, 201)
        self.assertEqual(r.data['pendingEmployeeId'], invited_id)

        user = User.objects.get(username='lee')
        self.client.force_authenticate(user)
        r = self.client.post(reverse('link-auth-user'), {'employeeId': invited_id}, format='json')
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.data['message'], 'linked')
        self.assertEqual(r.data['data']['status'], 'active')

        r = self.client.post(reverse('link-auth-user'), {'employee_id': invited_id}, format='json')
        self.assertEqual(r.data['message'], 'already linked')

    def test_invite_duplicate_email_is_400(self):
        self.client.force_authenticate(self.admin_user)
        r = self.client.post(reverse('invite-employee'), {
            'name': 'dup', 'email': 'BOSS@example.com', 'hospital_id': str(self.org.id), 'role': 'employee',
        }, format='json')
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.data['error']['code'], 'duplicate_email')

    def test_link_with_other_email_is_403(self):
        other = Employee.objects.create(organization=self.org, name='남', email='someone@example.com')
        user = User.objects.create_user(username='me', email='me@example.com', password='x')
        self.client.force_authenticate(user)
        r = self.client.post(reverse('link-auth-user'), {'employeeId': str(other.id)}, format='json')
        self.assertEqual(r.status_code, 403)

    def test_assign_default_organization_creates_employee(self):
        user = User.objects.create_user(username='new', email='new@example.com', password='x', first_name='신규')
        self.client.force_authenticate(user)
        r = self.client.post(reverse('assign-default-organization'))
        self.assertEqual(r.status_code, 201)
        e = Employee.objects.get(auth_user=user)
        self.assertEqual(e.organization, self.org)
        self.assertEqual(e.department.name, Department.objects.get(organization=self.org).name)
        self.assertEqual(e.role, Employee.ROLE_EMPLOYEE)
        self.assertEqual(e.status, Employee.STATUS_ACTIVE)
        self.assertIsNotNone(e.hire_date)

    def test_non_admin_cannot_invite(self):
        user = User.objects.create_user(username='emp', email='emp@example.com', password='x')
        Employee.objects.create(organization=self.org, auth_user=user, name='사원', email='emp@example.com')
        self.client.force_authenticate(user)
        r = self.client.post(reverse('invite-employee'), {
            'name': 'x', 'email': 'x@example.com', 'organizationId': str(self.org.id), 'role': 'employee',
        }, format='json')
        self.assertEqual(r.status_code, 403)
