from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..access import can_view_reports, ensure_organization_access
from ..exceptions import AccessDenied
from ..permissions import HasEmployee
from ..services import reports
from ..services.dashboard import dashboard_for
from .common import perms_for


def _scope(request, perms):
    """Organization a report covers. ``None`` (every organization) is admin only."""
    requested = request.query_params.get('organizationId') or None
    if requested:
        ensure_organization_access(perms, requested, 'read')
        return requested
    if perms.is_admin:
        return None
    if not perms.organization_id:
        raise AccessDenied('no organization to report on', code='no_organization')
    return perms.organization_id


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasEmployee])
def report_view(request, kind):
    perms = perms_for(request)
    if not can_view_reports(perms.role):
        raise AccessDenied('only managers can view reports')
    date_range = request.query_params.get('range') or 'month'
    data = reports.build(kind, _scope(request, perms), date_range)
    return Response({'ok': True, 'data': data})


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasEmployee])
def dashboard(request):
    return Response({'ok': True, 'data': dashboard_for(perms_for(request))})
