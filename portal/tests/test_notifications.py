import pytest
from django.urls import reverse

from portal.models import Notification, Task
from portal.realtime.notifications import (
    EVENT_DELETE,
    EVENT_INSERT,
    EVENT_UPDATE,
    NotificationFeed,
    build_event,
    toast_for,
)
from portal.services import notifications as svc


class _Task:
    def __init__(self, creator_id=None, assignee_id=None):
        self.creator_id = creator_id
        self.assignee_id = assignee_id


# ---------------------------------------------------------------------
# Feed and payloads
# ---------------------------------------------------------------------
def test_feed_applies_insert_update_delete():
    feed = NotificationFeed([{'id': 'a', 'isRead': False}, {'id': 'b', 'isRead': True}])
    assert feed.unread_count == 1

    feed.apply(EVENT_INSERT, {'id': 'c', 'isRead': False})
    assert [n['id'] for n in feed.items] == ['c', 'a', 'b']
    assert feed.unread_count == 2

    feed.apply(EVENT_INSERT, {'id': 'c', 'isRead': False})
    assert [n['id'] for n in feed.items] == ['c', 'a', 'b']

    feed.apply(EVENT_UPDATE, {'id': 'a', 'isRead': True})
    assert feed.unread_count == 1

    feed.apply_message({'event': EVENT_DELETE, 'old': {'id': 'c'}})
    assert [n['id'] for n in feed.items] == ['a', 'b']
    assert feed.unread_count == 0


def test_feed_rejects_unknown_event():
    with pytest.raises(ValueError):
        NotificationFeed().apply('TRUNCATE', {})


def test_insert_event_carries_toast_and_browser_payload(settings):
    settings.NOTIFICATION_TOAST_MS = 4000
    record = {'id': 'n1', 'title': '새 업무', 'message': '"보고서"'}
    event = build_event(EVENT_INSERT, record)
    assert event['type'] == 'notification.change'
    assert event['new'] == record
    assert event['toast']['duration'] == 4000
    assert event['toast']['action'] == {'label': '읽음 처리', 'type': 'mark_read', 'notificationId': 'n1'}
    assert event['browser']['tag'] == 'n1'
    assert toast_for(record)['description'] == '"보고서"'


def test_delete_event_only_carries_old_id():
    event = build_event(EVENT_DELETE, {'id': 'n1', 'title': 'x'})
    assert event['old'] == {'id': 'n1'}
    assert 'new' not in event and 'toast' not in event


# ---------------------------------------------------------------------
# Recipients
# ---------------------------------------------------------------------
def test_task_recipients_skip_the_actor():
    t = _Task(creator_id='c', assignee_id='a')
    assert svc.task_recipients(t, 'assigned', actor_id='c') == [('a', svc.TASK_TITLES['assigned'])]
    assert svc.task_recipients(t, 'updated', actor_id='a') == []


def test_completion_notifies_creator_too():
    t = _Task(creator_id='c', assignee_id='a')
    assert [r for r, _ in svc.task_recipients(t, 'completed', actor_id='a')] == ['c']
    assert [r for r, _ in svc.task_recipients(t, 'completed', actor_id='m')] == ['a', 'c']
    same = _Task(creator_id='c', assignee_id='c')
    assert svc.task_recipients(same, 'completed', actor_id='c') == []


def test_unique_ids_dedups_and_excludes():
    assert svc.unique_ids(['a', 'b', 'a', None, 'c'], exclude='c') == ['a', 'b']


# ---------------------------------------------------------------------
# API
# ---------------------------------------------------------------------
@pytest.mark.django_db
def test_task_assignment_creates_notification(org, manager, staff, client_for):
    r = client_for(manager).post(reverse('tasks'), {'title': '장비 점검', 'assigneeId': str(staff.id)}, format='json')
    assert r.status_code == 201
    n = Notification.objects.get(user=staff)
    assert n.type == 'task' and n.title == svc.TASK_TITLES['assigned']
    assert n.related_id == r.data['data']['id']
    assert not Notification.objects.filter(user=manager).exists()


@pytest.mark.django_db
def test_list_filter_and_read_state(org, staff, client_for):
    for i in range(3):
        svc.create_notification(user_id=staff.id, organization_id=org.id, type='system', title=f'n{i}')
    task_note = svc.create_notification(user_id=staff.id, organization_id=org.id, type='task', title='t')
    c = client_for(staff)

    r = c.get(reverse('notifications'), {'type': 'task'})
    assert [n['id'] for n in r.data['data']] == [str(task_note.id)]

    assert c.get(reverse('notifications-unread-count')).data['data']['count'] == 4
    r = c.post(reverse('notifications-read'), {'ids': [str(task_note.id)]}, format='json')
    assert r.data['data']['updated'] == 1
    task_note.refresh_from_db()
    assert task_note.is_read and task_note.read_at is not None

    r = c.get(reverse('notifications'), {'read': 'false'})
    assert len(r.data['data']) == 3

    c.post(reverse('notifications-read'), {'all': True}, format='json')
    assert c.get(reverse('notifications-unread-count')).data['data']['count'] == 0
    c.post(reverse('notifications-unread'), {'ids': [str(task_note.id)]}, format='json')
    task_note.refresh_from_db()
    assert not task_note.is_read and task_note.read_at is None


@pytest.mark.django_db
def test_cannot_touch_someone_elses_notifications(org, staff, manager, client_for):
    other = svc.create_notification(user_id=manager.id, organization_id=org.id, type='system', title='x')
    c = client_for(staff)
    r = c.post(reverse('notifications-delete'), {'ids': [str(other.id)]}, format='json')
    assert r.data['data']['deleted'] == 0
    assert Notification.objects.filter(id=other.id).exists()
    r = c.post(reverse('notification-read', args=[other.id]))
    assert r.status_code == 404
    assert r.data == {'ok': False, 'error': {'code': 'not_found', 'message': 'notification not found'}}


@pytest.mark.django_db
def test_announcement_fans_out_to_active_employees(org, manager, staff, make_employee, client_for):
    make_employee(org, status='resigned')
    active_other = make_employee(org)
    r = client_for(manager).post(reverse('notifications-announce'), {'title': '공지', 'message': '내일 휴진'},
                                 format='json')
    assert r.status_code == 201
    recipients = set(Notification.objects.filter(type='announcement').values_list('user_id', flat=True))
    assert recipients == {staff.id, active_other.id}


@pytest.mark.django_db
def test_announcements_need_a_manager(staff, client_for):
    r = client_for(staff).post(reverse('notifications-announce'), {'title': '공지'}, format='json')
    assert r.status_code == 403


@pytest.mark.django_db
def test_stats(org, staff, client_for):
    svc.create_notification(user_id=staff.id, organization_id=org.id, type='task', title='a')
    svc.create_notification(user_id=staff.id, organization_id=org.id, type='file', title='b')
    data = client_for(staff).get(reverse('notifications-stats')).data['data']
    assert data['total'] == 2 and data['unread'] == 2 and data['today'] == 2
    assert data['byType']['task'] == 1 and data['byType']['announcement'] == 0


@pytest.mark.django_db
def test_notification_failure_does_not_break_task_update(org, manager, staff, client_for, monkeypatch):
    t = Task.objects.create(organization=org, creator=manager, assignee=staff, title='x')

    def boom(**kwargs):
        raise RuntimeError('db down')

    monkeypatch.setattr(svc, 'create_notification', boom)
    r = client_for(manager).patch(reverse('task-detail', args=[t.id]), {'status': 'completed'}, format='json')
    assert r.status_code == 200
    assert r.data['data']['completedAt'] is not None
