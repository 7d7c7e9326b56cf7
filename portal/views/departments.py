from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..access import can_manage_departments, resolve_organization_id
from ..exceptions import AccessDenied, InvalidInput
from ..models import Employee
from ..permissions import HasEmployee
from ..serializers.organizations import DepartmentSerializer
from ..services import departments as svc
from ..services.audit import audit
from .common import perms_for


def _require_manager(perms):
    if not can_manage_departments(perms.role):
        raise AccessDenied('only managers can change departments')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, HasEmployee])
def departments_list(request):
    perms = perms_for(request)
    if request.method == 'GET':
        qs = svc.list_departments(perms, request.query_params.get('organizationId') or None)
        counts: dict = {}
        for dept_id in Employee.objects.filter(department__in=qs).values_list('department_id', flat=True):
            counts[dept_id] = counts.get(dept_id, 0) + 1
        return Response({'ok': True, 'data': [svc.serialize_department(d, counts=counts) for d in qs]})

    _require_manager(perms)
    s = DepartmentSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    org_id = resolve_organization_id(perms, v.get('organization_id'))
    if not org_id:
        raise InvalidInput('organizationId is required')
    d = svc.create_department(
        perms,
        organization_id=org_id,
        name=v['name'],
        description=v.get('description', ''),
        parent_id=v.get('parent_id'),
    )
    audit(request, 'department_create', object_type='department', object_id=d.id, detail={'name': d.name})
    return Response({'ok': True, 'data': svc.serialize_department(d)}, status=201)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, HasEmployee])
def department_detail(request, pk):
    perms = perms_for(request)
    if request.method == 'GET':
        return Response({'ok': True, 'data': svc.serialize_department(svc.get_department(perms, pk))})

    _require_manager(perms)
    if request.method == 'PATCH':
        s = DepartmentSerializer(data=request.data, partial=True)
        s.is_valid(raise_exception=True)
        d = svc.update_department(perms, pk, s.validated_data)
        audit(request, 'department_update', object_type='department', object_id=d.id)
        return Response({'ok': True, 'data': svc.serialize_department(d)})

    svc.delete_department(perms, pk)
    audit(request, 'department_delete', object_type='department', object_id=pk)
    return Response({'ok': True})


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasEmployee])
def department_tree(request):
    """Departments nested under their parents, with employee counts."""
    perms = perms_for(request)
    qs = svc.list_departments(perms, request.query_params.get('organizationId') or None)
    return Response({'ok': True, 'data': svc.build_tree(qs)})
