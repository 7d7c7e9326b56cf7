"""
Organization views.

Listing is scoped: administrators see every organization, everyone else
their own plus the ones they hold an active grant for. Creating and
granting access is reserved for administrators; deleting for super
administrators.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..access import can_delete_organizations, can_manage_organizations, get_accessible_organizations
from ..exceptions import AccessDenied
from ..permissions import HasEmployee, IsAdminRole
from ..serializers.organizations import AccessGrantSerializer, OrganizationQuerySerializer, OrganizationSerializer
from ..services import organizations as svc
from ..services.audit import audit
from .common import paginated, perms_for


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, HasEmployee])
def organizations_list(request):
    perms = perms_for(request)
    if request.method == 'GET':
        q = OrganizationQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        qs = svc.list_organizations(perms, search=q.validated_data.get('search', ''), type=q.validated_data.get('type'))
        return paginated(request, qs, svc.serialize_organization)

    if not can_manage_organizations(perms.role):
        raise AccessDenied('only administrators can create organizations')
    s = OrganizationSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    org = svc.create_organization(s.validated_data)
    audit(request, 'organization_create', object_type='organization', object_id=org.id, detail={'name': org.name})
    return Response({'ok': True, 'data': svc.serialize_organization(org)}, status=201)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, HasEmployee])
def organization_detail(request, pk):
    perms = perms_for(request)
    if request.method == 'GET':
        org = svc.get_organization(perms, pk)
        return Response({'ok': True, 'data': svc.organization_summary(org)})

    if request.method == 'PATCH':
        s = OrganizationSerializer(data=request.data, partial=True)
        s.is_valid(raise_exception=True)
        org = svc.update_organization(perms, pk, s.validated_data)
        audit(request, 'organization_update', object_type='organization', object_id=org.id,
              detail={'fields': sorted(s.validated_data)})
        return Response({'ok': True, 'data': svc.serialize_organization(org)})

    if not can_delete_organizations(perms.role):
        raise AccessDenied('only super administrators can delete organizations')
    svc.delete_organization(pk)
    audit(request, 'organization_delete', object_type='organization', object_id=pk)
    return Response({'ok': True}, status=200)


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasEmployee])
def accessible_organizations(request):
    """Organizations the caller can act on, primary first."""
    perms = perms_for(request)
    access = get_accessible_organizations(perms.employee)
    primary = access.primary
    return Response({
        'ok': True,
        'data': {
            'organizations': [o.as_dict() for o in access.organizations],
            'options': access.options(),
            'primary': primary.as_dict() if primary else None,
        },
    })


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def access_grants(request):
    if request.method == 'GET':
        qs = svc.list_grants(
            employee_id=request.query_params.get('employeeId') or None,
            organization_id=request.query_params.get('organizationId') or None,
            include_inactive=request.query_params.get('includeInactive') == 'true',
        )
        return paginated(request, qs, svc.serialize_grant)

    s = AccessGrantSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    grant = svc.grant_access(granted_by=perms_for(request).employee, **s.validated_data)
    audit(request, 'access_grant', object_type='organization', object_id=grant.organization_id,
          detail={'employeeId': str(grant.employee_id), 'level': grant.access_level})
    return Response({'ok': True, 'data': svc.serialize_grant(grant)}, status=201)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, IsAdminRole])
def access_grant_revoke(request, pk):
    grant = svc.revoke_access(pk)
    audit(request, 'access_revoke', object_type='organization', object_id=grant.organization_id,
          detail={'employeeId': str(grant.employee_id)})
    return Response({'ok': True, 'data': svc.serialize_grant(grant)})
