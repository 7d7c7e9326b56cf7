"""
Account settings: the linked employee's profile and password change.
"""
from __future__ import annotations

from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..exceptions import InvalidInput
from ..permissions import HasEmployee
from ..serializers.auth import ChangePasswordSerializer, ProfileSerializer
from ..services.audit import audit
from ..services.employees import serialize_employee
from .common import perms_for


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated, HasEmployee])
def profile(request):
    employee = perms_for(request).employee
    if request.method == 'GET':
        return Response({'ok': True, 'data': serialize_employee(employee)})

    s = ProfileSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    fields = []
    for k, v in s.validated_data.items():
        setattr(employee, k, v.strip() if isinstance(v, str) else v)
        fields.append(k)
    if 'name' in s.validated_data:
        if not employee.name:
            raise InvalidInput('name cannot be empty')
        request.user.first_name = employee.name
        request.user.save(update_fields=['first_name'])
    if fields:
        employee.save(update_fields=fields + ['updated_at'])
    audit(request, 'profile_update', object_type='employee', object_id=employee.id, detail={'fields': sorted(fields)})
    return Response({'ok': True, 'data': serialize_employee(employee)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def change_password(request):
    """Checks the current password, sets the new one and rotates the API token."""
    user = request.user
    s = ChangePasswordSerializer(data=request.data, context={'user': user})
    s.is_valid(raise_exception=True)
    if not user.check_password(s.validated_data['currentPassword']):
        raise InvalidInput('current password is incorrect', code='wrong_password')
    user.set_password(s.validated_data['newPassword'])
    user.save(update_fields=['password'])
    Token.objects.filter(user=user).delete()
    token = Token.objects.create(user=user)
    audit(request, 'password_change', object_type='user', object_id=user.id)
    return Response({'ok': True, 'token': token.key})
