from datetime import datetime, timedelta

import pytest
from django.core.management import call_command
from django.urls import reverse
from django.utils import timezone

from portal.exceptions import InvalidInput
from portal.models import Notification, Schedule
from portal.services import notifications
from portal.services.schedules import normalize_times, send_reminders


def at(*args):
    return timezone.make_aware(datetime(*args))


def test_all_day_spans_whole_local_days():
    start, end = normalize_times(at(2025, 9, 3, 14), at(2025, 9, 4, 9), True)
    assert (start.hour, start.minute) == (0, 0)
    assert timezone.localtime(end).date().day == 4
    assert (end.hour, end.minute, end.second) == (23, 59, 59)


def test_end_defaults_to_start_and_cannot_precede_it():
    start = at(2025, 9, 3, 9)
    assert normalize_times(start, None, False) == (start, start)
    with pytest.raises(InvalidInput):
        normalize_times(start, start - timedelta(minutes=1), False)


@pytest.mark.django_db
def test_create_notifies_participants_but_not_creator(org, staff, manager, client_for):
    r = client_for(manager).post(reverse('schedules'), {
        'title': '주간 회의',
        'startTime': '2025-09-03T10:00:00+09:00',
        'endTime': '2025-09-03T11:00:00+09:00',
        'location': '대회의실',
        'participants': [str(staff.id), str(manager.id), str(staff.id)],
    }, format='json')
    assert r.status_code == 201, r.data
    assert r.data['data']['participants'] == [str(staff.id), str(manager.id)]
    assert r.data['data']['date'] == '2025-09-03'
    assert list(Notification.objects.values_list('user_id', flat=True)) == [staff.id]


@pytest.mark.django_db
def test_unknown_participants_are_rejected(org, other_org, staff, make_employee, client_for):
    outsider = make_employee(other_org)
    c = client_for(staff)
    for bad in ('not-a-uuid', str(outsider.id)):
        r = c.post(reverse('schedules'), {
            'title': 'x', 'startTime': '2025-09-03T10:00:00+09:00', 'participants': [bad],
        }, format='json')
        assert r.status_code == 400


@pytest.mark.django_db
def test_only_creator_or_manager_may_change(org, staff, manager, make_employee, client_for):
    s = Schedule.objects.create(organization=org, creator=staff, title='x',
                                start_time=at(2025, 9, 3, 9), end_time=at(2025, 9, 3, 10))
    other = client_for(make_employee(org))
    assert other.patch(reverse('schedule-detail', args=[s.id]), {'title': 'y'}, format='json').status_code == 403
    r = client_for(staff).patch(reverse('schedule-detail', args=[s.id]), {'isAllDay': True}, format='json')
    assert r.status_code == 200
    assert r.data['data']['isAllDay'] is True
    assert client_for(manager).delete(reverse('schedule-detail', args=[s.id])).status_code == 200


@pytest.mark.django_db
def test_calendar_endpoint(org, staff, client_for):
    Schedule.objects.create(organization=org, title='월례 회의',
                            start_time=at(2025, 9, 3, 23, 30), end_time=at(2025, 9, 4, 0, 30))
    r = client_for(staff).get(reverse('schedules-calendar'), {'year': 2025, 'month': 9, 'selected': '2025-09-03'})
    data = r.data['data']
    assert len(data['days']) == 42
    assert data['previous'] == {'year': 2025, 'month': 8}
    assert data['next'] == {'year': 2025, 'month': 10}
    day = next(d for d in data['days'] if d['date'] == '2025-09-03')
    assert day['isSelected'] is True
    assert [s['title'] for s in day['schedules']] == ['월례 회의']

    assert client_for(staff).get(reverse('schedules-calendar'), {'year': 2025, 'month': 13}).status_code == 400


@pytest.mark.django_db
def test_day_endpoint_and_stats(org, staff, client_for):
    Schedule.objects.create(organization=org, title='a', start_time=at(2025, 9, 3, 9), end_time=at(2025, 9, 3, 10))
    Schedule.objects.create(organization=org, title='b', start_time=at(2025, 9, 4, 9), end_time=at(2025, 9, 4, 10),
                            location='3층')
    c = client_for(staff)
    r = c.get(reverse('schedules-day'), {'date': '2025-09-03'})
    assert [s['title'] for s in r.data['data']] == ['a']
    stats = c.get(reverse('schedules-stats')).data['data']
    assert stats['total'] == 2 and stats['withLocation'] == 1


@pytest.mark.django_db
def test_mine_filter(org, staff, manager, client_for):
    Schedule.objects.create(organization=org, creator=manager, title='참석', participants=[str(staff.id)],
                            start_time=at(2025, 9, 3, 9), end_time=at(2025, 9, 3, 10))
    Schedule.objects.create(organization=org, creator=manager, title='무관',
                            start_time=at(2025, 9, 3, 11), end_time=at(2025, 9, 3, 12))
    r = client_for(staff).get(reverse('schedules'), {'mine': 'true'})
    assert [s['title'] for s in r.data['data']] == ['참석']


@pytest.mark.django_db
def test_reminders_are_sent_once(org, staff, manager):
    now = timezone.now()
    soon = Schedule.objects.create(organization=org, creator=manager, title='곧', participants=[str(staff.id)],
                                   start_time=now + timedelta(minutes=10), end_time=now + timedelta(minutes=40))
    Schedule.objects.create(organization=org, creator=manager, title='나중',
                            start_time=now + timedelta(hours=3), end_time=now + timedelta(hours=4))

    assert send_reminders(now, minutes=30) == 2
    assert set(Notification.objects.filter(related_id=soon.id).values_list('user_id', flat=True)) == {
        staff.id, manager.id,
    }
    assert send_reminders(now, minutes=30) == 0


@pytest.mark.django_db
def test_failed_creator_reminder_does_not_stop_the_run(org, manager, monkeypatch):
    def boom(**kwargs):
        raise RuntimeError('notification store unavailable')

    monkeypatch.setattr(notifications, 'create_notification', boom)
    now = timezone.now()
    for title, minutes in (('첫째', 5), ('둘째', 10)):
        Schedule.objects.create(organization=org, creator=manager, title=title,
                                start_time=now + timedelta(minutes=minutes),
                                end_time=now + timedelta(minutes=minutes + 30))

    assert send_reminders(now, minutes=30) == 0
    assert not Schedule.objects.filter(reminded_at__isnull=True).exists()


@pytest.mark.django_db
def test_reminder_command(org, manager, capsys):
    now = timezone.now()
    Schedule.objects.create(organization=org, creator=manager, title='곧',
                            start_time=now + timedelta(minutes=5), end_time=now + timedelta(minutes=35))
    call_command('send_schedule_reminders', '--minutes', '15')
    assert 'Sent 1 schedule reminders' in capsys.readouterr().out
