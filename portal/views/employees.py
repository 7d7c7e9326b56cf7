"""
Employee views.

Everyone with an employee record can browse the directory of their own
organization. Creating, editing and removing employees requires an
administrative role. The three account endpoints at the bottom are used by
the sign-up flow, before the caller necessarily has an employee record.
"""
from __future__ import annotations

from django.http import HttpResponse
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..access import can_manage_employees
from ..exceptions import AccessDenied
from ..permissions import HasEmployee, IsAdminRole
from ..serializers.employees import (
    EmployeeQuerySerializer,
    EmployeeSerializer,
    InviteEmployeeSerializer,
    LinkAuthUserSerializer,
)
from ..services import employees as svc
from ..services.audit import audit
from ..services.exports import employees_csv, export_filename
from .common import paginated, perms_for


def _filtered(request, perms):
    q = EmployeeQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    v = q.validated_data
    return svc.list_employees(
        perms,
        organization_id=v.get('organizationId') or v.get('hospital'),
        search=v.get('search', ''),
        role=v.get('role'),
        status=v.get('status'),
        department_id=v.get('departmentId'),
    )


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, HasEmployee])
def employees_list(request):
    perms = perms_for(request)
    if request.method == 'GET':
        return paginated(request, _filtered(request, perms), svc.serialize_employee)

    if not can_manage_employees(perms.role):
        raise AccessDenied('only administrators can create employees')
    s = EmployeeSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    e = svc.create_employee(perms, dict(s.validated_data))
    audit(request, 'employee_create', object_type='employee', object_id=e.id, detail={'email': e.email})
    return Response({'ok': True, 'data': svc.serialize_employee(e)}, status=201)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, HasEmployee])
def employee_detail(request, pk):
    perms = perms_for(request)
    if request.method == 'GET':
        return Response({'ok': True, 'data': svc.serialize_employee(svc.get_employee(perms, pk))})

    if not can_manage_employees(perms.role):
        raise AccessDenied('only administrators can change employees')
    if request.method == 'PATCH':
        s = EmployeeSerializer(data=request.data, partial=True)
        s.is_valid(raise_exception=True)
        e = svc.update_employee(perms, pk, dict(s.validated_data))
        audit(request, 'employee_update', object_type='employee', object_id=e.id,
              detail={'fields': sorted(s.validated_data)})
        return Response({'ok': True, 'data': svc.serialize_employee(e)})

    svc.delete_employee(perms, pk)
    audit(request, 'employee_delete', object_type='employee', object_id=pk)
    return Response({'ok': True})


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasEmployee])
def employees_export(request):
    """CSV download of the filtered employee list."""
    perms = perms_for(request)
    qs = _filtered(request, perms)
    # BOM so spreadsheet apps detect UTF-8 with Korean names
    resp = HttpResponse('﻿' + employees_csv(qs), content_type='text/csv; charset=utf-8')
    resp['Content-Disposition'] = f'attachment; filename="{export_filename()}"'
    audit(request, 'employee_export', object_type='employee', detail={'count': qs.count()})
    return resp


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasEmployee])
def employees_stats(request):
    perms = perms_for(request)
    qs = svc.list_employees(perms, organization_id=request.query_params.get('organizationId') or None)
    return Response({'ok': True, 'data': svc.employee_stats(qs)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def invite_employee(request):
    s = InviteEmployeeSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    e = svc.invite_employee(
        perms_for(request),
        name=v['name'],
        email=v['email'],
        organization_id=v['organization_id'],
        role=v['role'],
        department_id=v.get('departmentId'),
        position=v.get('position', ''),
        phone=v.get('phone', ''),
    )
    audit(request, 'employee_invite', object_type='employee', object_id=e.id, detail={'email': e.email})
    return Response({
        'ok': True,
        'data': svc.serialize_employee(e),
        'message': svc.INVITE_NOTICE,
    }, status=201)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def link_auth_user(request):
    s = LinkAuthUserSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    e, already = svc.link_auth_user(request.user, s.validated_data['employee_id'])
    if not already:
        audit(request, 'employee_link', object_type='employee', object_id=e.id)
    return Response({
        'ok': True,
        'data': svc.serialize_employee(e),
        'message': 'already linked' if already else 'linked',
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def assign_default_organization(request):
    e, created = svc.assign_default_organization(request.user)
    audit(request, 'employee_assign_default', object_type='employee', object_id=e.id, detail={'created': created})
    return Response({'ok': True, 'data': svc.serialize_employee(e), 'created': created},
                    status=201 if created else 200)
