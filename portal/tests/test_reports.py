from datetime import date, timedelta

import pytest
from django.core.cache import cache
from django.core.management import call_command
from django.urls import reverse
from django.utils import timezone

from portal.exceptions import InvalidInput
from portal.models import Employee, Task
from portal.services import reports
from portal.services.exports import EMPLOYEE_CSV_HEADER, employees_csv
from portal.services.tasks import completion_rate, task_stats


def test_range_start():
    now = timezone.now()
    assert reports.range_start('all', now) is None
    assert reports.range_start('month', now) == now - timedelta(days=30)
    assert reports.range_start('week', now) == now - timedelta(days=7)
    with pytest.raises(InvalidInput):
        reports.range_start('decade', now)


def test_completion_rate_rounds():
    assert completion_rate(0, 0) == 0
    assert completion_rate(1, 3) == 33
    assert completion_rate(2, 3) == 67


def test_task_stats_counts_overdue_only_when_not_completed():
    now = timezone.now()
    past = now - timedelta(days=1)
    tasks = [
        Task(status='pending', priority='urgent', due_date=past),
        Task(status='completed', priority='high', due_date=past),
        Task(status='in_progress', priority='medium'),
        Task(status='cancelled', priority='low', due_date=past),
    ]
    stats = task_stats(tasks, now)
    assert stats['total'] == 4
    assert stats['pending'] == stats['completed'] == stats['inProgress'] == stats['cancelled'] == 1
    assert stats['urgent'] == 1 and stats['high'] == 1
    assert stats['overdue'] == 2
    assert stats['completionRate'] == 25


@pytest.mark.django_db
def test_overview_is_cached_per_org_and_range(org, manager, client_for):
    Task.objects.create(organization=org, title='a', status='completed')
    c = client_for(manager)
    first = c.get(reverse('report', args=['overview']), {'range': 'month'}).data['data']
    assert first['tasks'] == {'total': 1, 'completed': 1, 'inProgress': 0, 'overdue': 0, 'completionRate': 100}
    assert cache.get(reports.cache_key('overview', str(org.id), 'month')) is not None

    Task.objects.create(organization=org, title='b')
    again = c.get(reverse('report', args=['overview']), {'range': 'month'}).data['data']
    assert again['tasks']['total'] == 1
    fresh = c.get(reverse('report', args=['overview']), {'range': 'week'}).data['data']
    assert fresh['tasks']['total'] == 2


@pytest.mark.django_db
def test_employee_report_buckets_unassigned(org, dept, manager, make_employee, client_for):
    make_employee(org, name='무소속')
    new = make_employee(org, department=dept, name='신입')
    Employee.objects.filter(id=new.id).update(hire_date=date.today())
    t = Task.objects.create(organization=org, title='x', assignee=new, status='completed')
    assert t.assignee_id == new.id

    data = client_for(manager).get(reverse('report', args=['employees'])).data['data']
    assert data['byDepartment'] == {'간호부': 2, '미배정': 1}
    assert data['recentJoins'][0]['name'] == '신입'
    assert data['topPerformers'][0] == {
        'id': str(new.id), 'name': '신입', 'total': 1, 'completed': 1, 'completionRate': 100,
    }


@pytest.mark.django_db
def test_reports_need_a_manager(staff, client_for):
    assert client_for(staff).get(reverse('report', args=['overview'])).status_code == 403


@pytest.mark.django_db
def test_manager_without_organization_gets_no_cross_tenant_report(org, other_org, staff, make_employee, client_for):
    make_employee(other_org)
    unassigned = make_employee(None, role=Employee.ROLE_MANAGER)
    r = client_for(unassigned).get(reverse('report', args=['overview']))
    assert r.status_code == 403
    assert r.data['error']['code'] == 'no_organization'


@pytest.mark.django_db
def test_unknown_report_is_400(manager, client_for):
    r = client_for(manager).get(reverse('report', args=['salaries']))
    assert r.status_code == 400


@pytest.mark.django_db
def test_dashboard_widgets(org, manager, staff, client_for):
    Task.objects.create(organization=org, title='내 업무', assignee=staff, due_date=timezone.now() + timedelta(days=1))
    data = client_for(staff).get(reverse('dashboard')).data['data']
    assert data['employee']['id'] == str(staff.id)
    assert [t['title'] for t in data['myTasks']['dueSoon']] == ['내 업무']
    assert 'organizationOverview' not in data
    assert 'organizationOverview' in client_for(manager).get(reverse('dashboard')).data['data']


# ---------------------------------------------------------------------
# CSV export
# ---------------------------------------------------------------------
@pytest.mark.django_db
def test_employees_csv_quotes_and_formats(org, dept):
    e = Employee.objects.create(
        organization=org, department=dept, name='Kim, "Jr"', email='kim@example.com',
        position='팀장', hire_date=date(2024, 3, 5),
    )
    text = employees_csv([e])
    lines = text.split('\r\n')
    assert lines[0] == ','.join(EMPLOYEE_CSV_HEADER)
    assert lines[1] == '"Kim, ""Jr""",kim@example.com,employee,active,서울중앙병원,간호부,팀장,2024-03-05'


@pytest.mark.django_db
def test_export_endpoint_respects_filters(org, admin, make_employee, client_for):
    make_employee(org, name='퇴사자', status='resigned')
    resp = client_for(admin).get(reverse('employees-export'), {'status': 'resigned'})
    assert resp.status_code == 200
    assert resp['Content-Type'].startswith('text/csv')
    body = resp.content.decode('utf-8-sig')
    assert body.splitlines()[1].startswith('퇴사자,')
    assert len(body.splitlines()) == 2


@pytest.mark.django_db
def test_refresh_command_warms_every_scope(org, capsys):
    call_command('refresh_report_caches', '--range', 'week')
    assert cache.get(reports.cache_key('overview', None, 'week')) is not None
    assert cache.get(reports.cache_key('tasks', str(org.id), 'week')) is not None
    assert f'Refreshed {2 * len(reports.BUILDERS)} keys' in capsys.readouterr().out
