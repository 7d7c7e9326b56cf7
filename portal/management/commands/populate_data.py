"""
Management command to populate the database with demo data.
"""
import random
from datetime import timedelta

from django.conf import settings
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from portal.models import (
    Department,
    Employee,
    EmployeeOrganizationAccess,
    Notification,
    Organization,
    Schedule,
    Task,
    User,
)

DEMO_PASSWORD = 'password123'

ORGANIZATIONS = [
    (settings.DEFAULT_ORGANIZATION_NAMES[0], Organization.TYPE_MSO),
    ('서울중앙병원', Organization.TYPE_HOSPITAL),
    ('부산해운대병원', Organization.TYPE_HOSPITAL),
]
DEPARTMENTS = ['경영지원팀', '간호부', '원무과', '전산팀']
NAMES = ['김민준', '이서연', '박지훈', '최수아', '정도윤', '강하은', '조예준', '윤지우', '장서준', '임하린']
POSITIONS = ['팀장', '대리', '주임', '사원', '수간호사']
TASK_TITLES = ['월간 보고서 작성', '장비 점검', '환자 만족도 조사', '신규 직원 교육', '보험 청구 검토']
SCHEDULE_TITLES = ['주간 회의', '부서 워크숍', '경영 회의', '감염 관리 교육']


class Command(BaseCommand):
    help = 'Populate database with demo organizations, employees, tasks and schedules'

    def add_arguments(self, parser):
        parser.add_argument('--employees', type=int, default=6, help='employees per organization')

    @transaction.atomic
    def handle(self, *args, **options):
        self.stdout.write('데모 데이터를 생성합니다...')
        orgs = self.create_organizations()
        employees = self.create_employees(orgs, options['employees'])
        self.create_access_grants(orgs, employees)
        self.create_tasks(employees)
        self.create_schedules(employees)
        self.create_notifications(employees)
        self.stdout.write(self.style.SUCCESS(
            f'완료: 조직 {len(orgs)}개, 직원 {sum(len(v) for v in employees.values())}명 '
            f'(비밀번호: {DEMO_PASSWORD})'
        ))
        for e in employees[orgs[0].id][:2]:
            self.stdout.write(f'  {e.role}: {e.auth_user.username}')

    def create_organizations(self):
        orgs = []
        for name, org_type in ORGANIZATIONS:
            org, _ = Organization.objects.get_or_create(name=name, defaults={'type': org_type})
            Department.objects.get_or_create(organization=org, name=settings.DEFAULT_DEPARTMENT_NAME)
            for dept_name in DEPARTMENTS:
                Department.objects.get_or_create(organization=org, name=dept_name)
            orgs.append(org)
        return orgs

    def _employee(self, org, index, role):
        slug = f'{org.id.hex[:6]}{index}'
        email = f'user{slug}@example.com'
        user, created = User.objects.get_or_create(username=f'user{slug}', defaults={'email': email})
        if created:
            user.set_password(DEMO_PASSWORD)
            user.save()
        dept = random.choice(list(org.departments.all()))
        employee, _ = Employee.objects.get_or_create(email=email, defaults={
            'organization': org,
            'department': dept,
            'auth_user': user,
            'name': random.choice(NAMES),
            'position': random.choice(POSITIONS),
            'role': role,
            'hire_date': timezone.localdate() - timedelta(days=random.randint(10, 2000)),
        })
        return employee

    def create_employees(self, orgs, per_org):
        result = {}
        for n, org in enumerate(orgs):
            roles = [Employee.ROLE_ADMIN, Employee.ROLE_MANAGER] + [Employee.ROLE_EMPLOYEE] * max(0, per_org - 2)
            if n == 0:
                roles[0] = Employee.ROLE_SUPER_ADMIN
            result[org.id] = [self._employee(org, i, role) for i, role in enumerate(roles)]
        return result

    def create_access_grants(self, orgs, employees):
        if len(orgs) < 2:
            return
        manager = employees[orgs[0].id][1]
        for org in orgs[1:]:
            EmployeeOrganizationAccess.objects.get_or_create(
                employee=manager, organization=org,
                defaults={'access_level': EmployeeOrganizationAccess.LEVEL_READ},
            )

    def create_tasks(self, employees):
        now = timezone.now()
        for staff in employees.values():
            for title in TASK_TITLES:
                creator, assignee = random.sample(staff, 2)
                status = random.choice([s for s, _ in Task.STATUS_CHOICES])
                Task.objects.create(
                    organization=creator.organization,
                    department=assignee.department,
                    creator=creator,
                    assignee=assignee,
                    title=title,
                    status=status,
                    priority=random.choice([p for p, _ in Task.PRIORITY_CHOICES]),
                    due_date=now + timedelta(days=random.randint(-5, 20)),
                    completed_at=now if status == Task.STATUS_COMPLETED else None,
                )

    def create_schedules(self, employees):
        now = timezone.now().replace(minute=0, second=0, microsecond=0)
        for staff in employees.values():
            for title in SCHEDULE_TITLES:
                creator = random.choice(staff)
                start = now + timedelta(days=random.randint(-10, 20), hours=random.randint(0, 8))
                Schedule.objects.create(
                    organization=creator.organization,
                    creator=creator,
                    title=title,
                    start_time=start,
                    end_time=start + timedelta(hours=1),
                    location=random.choice(['', '대회의실', '3층 세미나실']),
                    participants=[str(e.id) for e in random.sample(staff, min(3, len(staff))) if e.id != creator.id],
                )

    def create_notifications(self, employees):
        rows = []
        for staff in employees.values():
            for e in staff:
                rows.append(Notification(
                    organization=e.organization,
                    user=e,
                    type='system',
                    title='인트라넷에 오신 것을 환영합니다',
                    message='프로필을 확인하고 비밀번호를 변경해 주세요.',
                ))
        Notification.objects.bulk_create(rows)
