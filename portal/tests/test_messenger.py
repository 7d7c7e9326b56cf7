import pytest
from django.contrib.auth.models import AnonymousUser
from django.urls import reverse
from rest_framework.authtoken.models import Token
from rest_framework_simplejwt.tokens import AccessToken

from portal.exceptions import InvalidInput
from portal.models import ChatParticipant, ChatRoom, Department
from portal.realtime.auth import user_for_token
from portal.services import messenger


@pytest.fixture
def room(org, manager, staff):
    return messenger.create_room(manager, name='간호부 공지방', participant_ids=[staff.id])


@pytest.mark.django_db
def test_group_room_needs_a_name_and_same_org_members(org, other_org, manager, make_employee, client_for):
    c = client_for(manager)
    assert c.post(reverse('chat-rooms'), {'type': 'group'}, format='json').status_code == 400
    outsider = make_employee(other_org)
    r = c.post(reverse('chat-rooms'), {'name': 'x', 'participantIds': [str(outsider.id)]}, format='json')
    assert r.status_code == 400


@pytest.mark.django_db
def test_direct_rooms_are_reused(org, manager, staff, client_for):
    c = client_for(manager)
    first = c.post(reverse('chat-rooms'), {'type': 'direct', 'participantIds': [str(staff.id)]}, format='json')
    assert first.status_code == 201
    again = client_for(staff).post(reverse('chat-rooms'), {'type': 'direct', 'participantIds': [str(manager.id)]},
                                   format='json')
    assert again.data['data']['id'] == first.data['data']['id']
    assert ChatRoom.objects.filter(type='direct').count() == 1


@pytest.mark.django_db
def test_direct_room_is_not_reused_after_the_other_side_left(org, manager, staff):
    first = messenger.create_room(manager, type='direct', participant_ids=[staff.id])
    messenger.remove_participant(staff, first, staff.id)
    second = messenger.create_room(manager, type='direct', participant_ids=[staff.id])
    assert second.id != first.id
    assert messenger.check_room_access(staff, second)


@pytest.mark.django_db
def test_department_room_rejects_another_tenants_department(org, other_org, staff, make_employee, client_for):
    foreign = Department.objects.create(organization=other_org, name='외부 부서')
    outsider = make_employee(other_org, department=foreign)
    r = client_for(staff).post(reverse('chat-rooms'), {'type': 'department', 'name': '외부',
                                                       'departmentId': str(foreign.id)}, format='json')
    assert r.status_code == 400
    assert not ChatParticipant.objects.filter(employee=outsider).exists()
    assert not ChatRoom.objects.exists()


@pytest.mark.django_db
def test_department_room_collects_active_members(org, dept, manager, staff, make_employee, client_for):
    make_employee(org, department=dept, status='resigned')
    r = client_for(manager).post(reverse('chat-rooms'), {'type': 'department', 'name': '간호부',
                                                         'departmentId': str(dept.id)}, format='json')
    ids = {p['employeeId'] for p in r.data['data']['participants']}
    assert ids == {str(manager.id), str(staff.id)}


@pytest.mark.django_db
def test_non_members_cannot_read_the_room(room, org, make_employee, client_for):
    outsider = client_for(make_employee(org))
    assert outsider.get(reverse('chat-room', args=[room.id])).status_code == 403
    assert outsider.get(reverse('chat-messages', args=[room.id])).status_code == 403


@pytest.mark.django_db
def test_send_history_and_unread(room, manager, staff, client_for):
    mc, sc = client_for(manager), client_for(staff)
    r = mc.post(reverse('chat-messages', args=[room.id]), {'content': '<div>안녕하세요</div>'}, format='json')
    assert r.status_code == 201
    assert r.data['data']['content'] == '안녕하세요'
    mc.post(reverse('chat-messages', args=[room.id]), {'content': '두 번째'}, format='json')

    rooms = sc.get(reverse('chat-rooms')).data['data']
    assert rooms[0]['unread'] == 2
    assert mc.get(reverse('chat-room', args=[room.id])).data['data']['unread'] == 0

    r = sc.get(reverse('chat-messages', args=[room.id]), {'page': 1, 'pageSize': 1})
    assert [m['content'] for m in r.data['data']] == ['두 번째']
    assert r.data['pagination']['total'] == 2

    sc.post(reverse('chat-read', args=[room.id]))
    assert sc.get(reverse('chat-room', args=[room.id])).data['data']['unread'] == 0


@pytest.mark.django_db
def test_empty_and_oversized_messages(room, manager):
    with pytest.raises(InvalidInput):
        messenger.send_message(room, manager, '   ')
    with pytest.raises(InvalidInput):
        messenger.send_message(room, manager, 'x' * (messenger.MAX_MESSAGE_LENGTH + 1))


@pytest.mark.django_db
def test_only_sender_edits_and_reactions_toggle(room, manager, staff, client_for):
    msg = messenger.send_message(room, manager, '회의 10시')
    assert client_for(staff).patch(reverse('chat-message-edit', args=[msg.id]), {'content': 'x'},
                                   format='json').status_code == 403
    r = client_for(manager).patch(reverse('chat-message-edit', args=[msg.id]), {'content': '회의 11시'}, format='json')
    assert r.data['data']['isEdited'] is True

    sc = client_for(staff)
    assert sc.post(reverse('chat-message-react', args=[msg.id]), {'reaction': '👍'}, format='json').data['data'] == {
        'added': True,
    }
    assert messenger.serialize_message(msg)['reactions'] == {'👍': [str(staff.id)]}
    assert sc.post(reverse('chat-message-react', args=[msg.id]), {'reaction': '👍'},
                   format='json').data['data']['added'] is False


@pytest.mark.django_db
def test_participant_management_is_for_room_admins(room, org, manager, staff, make_employee, client_for):
    newcomer = make_employee(org)
    sc, mc = client_for(staff), client_for(manager)
    url = reverse('chat-participants', args=[room.id])
    assert sc.post(url, {'employeeIds': [str(newcomer.id)]}, format='json').status_code == 403
    assert mc.post(url, {'employeeIds': [str(newcomer.id)]}, format='json').data['data'] == {'added': 1}

    assert mc.patch(url, {'employeeId': str(staff.id), 'role': 'admin'}, format='json').status_code == 200
    assert ChatParticipant.objects.get(room=room, employee=staff).role == 'admin'

    r = mc.delete(reverse('chat-participant-remove', args=[room.id, newcomer.id]))
    assert r.status_code == 200
    assert not ChatParticipant.objects.get(room=room, employee=newcomer).is_active


@pytest.mark.django_db
def test_members_may_leave(room, staff, client_for):
    r = client_for(staff).delete(reverse('chat-participant-remove', args=[room.id, staff.id]))
    assert r.status_code == 200
    assert not messenger.check_room_access(staff, room)


# ---------------------------------------------------------------------
# WebSocket token auth
# ---------------------------------------------------------------------
@pytest.mark.django_db
def test_user_for_token_accepts_drf_and_jwt_tokens(staff):
    user = staff.auth_user
    assert user_for_token(Token.objects.create(user=user).key) == user
    assert user_for_token(str(AccessToken.for_user(user))) == user
    assert isinstance(user_for_token('garbage'), AnonymousUser)
    assert isinstance(user_for_token(''), AnonymousUser)


@pytest.mark.django_db
def test_user_for_token_rejects_resigned_employees(staff):
    key = Token.objects.create(user=staff.auth_user).key
    staff.status = 'resigned'
    staff.save()
    assert isinstance(user_for_token(key), AnonymousUser)
