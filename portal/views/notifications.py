"""
Notification views for the signed-in employee.

Reads and read-state changes only ever touch the caller's own rows.
Creating notifications for others and sending announcements is for
managers. Every change is also pushed over ``ws/notifications/``.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..access import can_send_announcements, ensure_organization_access, resolve_organization_id, scope_queryset
from ..exceptions import AccessDenied, InvalidInput
from ..models import Employee
from ..permissions import HasEmployee, IsManagerRole
from ..realtime.notifications import serialize_notification
from ..serializers.notifications import (
    AnnouncementSerializer,
    NotificationCreateSerializer,
    NotificationIdsSerializer,
    NotificationQuerySerializer,
)
from ..services import notifications as svc
from ..services.audit import audit
from .common import paginated, perms_for


def _ids(request):
    s = NotificationIdsSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    if s.validated_data.get('all'):
        return None
    return s.validated_data['ids']


def _reachable(perms, user_ids) -> list[str]:
    ids = svc.unique_ids(user_ids)
    found = {str(i) for i in scope_queryset(Employee.objects.filter(id__in=ids), perms).values_list('id', flat=True)}
    missing = [i for i in ids if i not in found]
    if missing:
        raise InvalidInput(f'unknown recipients: {", ".join(missing)}')
    return ids


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasEmployee])
def notifications_list(request):
    q = NotificationQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    v = q.validated_data
    read = {'true': True, 'false': False}.get(v.get('read'))
    qs = svc.list_for(perms_for(request).employee, type=v.get('type'), read=read, sort=v.get('sort', 'newest'),
                      limit=v.get('limit'))
    return paginated(request, list(qs), serialize_notification)


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasEmployee])
def notifications_unread_count(request):
    return Response({'ok': True, 'data': {'count': svc.unread_count(perms_for(request).employee)}})


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasEmployee])
def notifications_mark_read(request):
    changed = svc.set_read(perms_for(request).employee, _ids(request), read=True)
    return Response({'ok': True, 'data': {'updated': changed}})


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasEmployee])
def notifications_mark_unread(request):
    changed = svc.set_read(perms_for(request).employee, _ids(request), read=False)
    return Response({'ok': True, 'data': {'updated': changed}})


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasEmployee])
def notification_read(request, pk):
    n = svc.mark_read_one(perms_for(request).employee, pk)
    return Response({'ok': True, 'data': serialize_notification(n)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasEmployee])
def notifications_delete(request):
    deleted = svc.delete(perms_for(request).employee, _ids(request))
    return Response({'ok': True, 'data': {'deleted': deleted}})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsManagerRole])
def notifications_create(request):
    perms = perms_for(request)
    s = NotificationCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    rows = svc.create_bulk(
        user_ids=_reachable(perms, v['userIds']),
        organization_id=perms.organization_id,
        type=v['type'],
        title=v['title'],
        message=v.get('message', ''),
        related_id=v.get('relatedId') or None,
    )
    audit(request, 'notification_create', object_type='notification', detail={'count': len(rows), 'type': v['type']})
    return Response({'ok': True, 'data': {'created': len(rows)}}, status=201)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsManagerRole])
def notifications_announce(request):
    """Announcement to every active employee of an organization, or to listed employees."""
    perms = perms_for(request)
    if not can_send_announcements(perms.role):
        raise AccessDenied('only managers can send announcements')
    s = AnnouncementSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    org_id = resolve_organization_id(perms, v.get('organizationId'))
    ensure_organization_access(perms, org_id)
    user_ids = _reachable(perms, v['userIds']) if v.get('userIds') else None
    rows = svc.send_announcement(
        title=v['title'],
        message=v.get('message', ''),
        organization_id=org_id,
        user_ids=user_ids,
        type=v.get('type', 'announcement'),
        exclude_id=perms.employee_id,
    )
    audit(request, 'announcement_send', object_type='organization', object_id=org_id, detail={'count': len(rows)})
    return Response({'ok': True, 'data': {'created': len(rows)}}, status=201)


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasEmployee])
def notifications_stats(request):
    return Response({'ok': True, 'data': svc.stats_for(perms_for(request).employee)})
