"""
Task views.

Tasks stay inside organization boundaries: the service layer scopes every
lookup, so a task from another organization answers 404 rather than 403.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..permissions import HasEmployee
from ..serializers.tasks import TaskQuerySerializer, TaskSerializer
from ..services import tasks as svc
from ..services.audit import audit
from .common import paginated, perms_for


def _filtered(request, perms):
    q = TaskQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    v = q.validated_data
    return svc.list_tasks(
        perms,
        organization_id=v.get('organizationId'),
        status=v.get('status'),
        priority=v.get('priority'),
        assignee_id=v.get('assigneeId'),
        department_id=v.get('departmentId'),
        search=v.get('search', ''),
        mine=v.get('mine', False),
    )


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, HasEmployee])
def tasks_list(request):
    perms = perms_for(request)
    if request.method == 'GET':
        return paginated(request, _filtered(request, perms), svc.serialize_task)

    s = TaskSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    t = svc.create_task(perms, dict(s.validated_data))
    audit(request, 'task_create', object_type='task', object_id=t.id, detail={'title': t.title})
    return Response({'ok': True, 'data': svc.serialize_task(t)}, status=201)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, HasEmployee])
def task_detail(request, pk):
    perms = perms_for(request)
    if request.method == 'GET':
        return Response({'ok': True, 'data': svc.serialize_task(svc.get_task(perms, pk))})

    if request.method == 'PATCH':
        s = TaskSerializer(data=request.data, partial=True)
        s.is_valid(raise_exception=True)
        t = svc.update_task(perms, pk, dict(s.validated_data))
        audit(request, 'task_update', object_type='task', object_id=t.id,
              detail={'fields': sorted(s.validated_data), 'status': t.status})
        return Response({'ok': True, 'data': svc.serialize_task(t)})

    svc.delete_task(perms, pk)
    audit(request, 'task_delete', object_type='task', object_id=pk)
    return Response({'ok': True})


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasEmployee])
def tasks_board(request):
    """Kanban columns keyed by status."""
    perms = perms_for(request)
    columns = svc.board(_filtered(request, perms))
    return Response({
        'ok': True,
        'data': {status: [svc.serialize_task(t) for t in items] for status, items in columns.items()},
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasEmployee])
def tasks_stats(request):
    perms = perms_for(request)
    return Response({'ok': True, 'data': svc.task_stats(_filtered(request, perms))})
