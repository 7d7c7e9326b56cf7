"""
Authentication views: login, sign-up, JWT refresh/logout and the
current-user summary.

Login answers with both a DRF token (``Authorization: Token ...``) and a
SimpleJWT pair so either header style works against the API.
"""
from __future__ import annotations

import logging

from django.contrib.auth import authenticate, get_user_model
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.views import TokenRefreshView

from .access import get_accessible_organizations, get_user_permissions
from .exceptions import AccessDenied
from .models import Employee
from .serializers.auth import LoginSerializer, SignupSerializer
from .services.audit import audit
from .services.employees import serialize_employee

User = get_user_model()
logger = logging.getLogger(__name__)


def _session_payload(user) -> dict:
    perms = get_user_permissions(user)
    payload: dict[str, object] = {
        'user': {
            'id': user.id,
            'username': user.username,
            'email': user.email,
            'name': user.get_full_name() or user.username,
        },
        'employee': serialize_employee(perms.employee) if perms.employee else None,
        'permissions': perms.as_dict(),
        'organizations': [],
    }
    if perms.employee is not None:
        try:
            access = get_accessible_organizations(perms.employee)
            payload['organizations'] = [o.as_dict() for o in access.organizations]
        except AccessDenied:
            pass
    return payload


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([ScopedRateThrottle])
def login_view(request):
    """Username (or email) and password login."""
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    username = s.validated_data['username']
    password = s.validated_data['password']

    if '@' in username:
        match = User.objects.filter(email__iexact=username).first()
        if match is not None:
            username = match.username

    user = authenticate(request, username=username, password=password)
    ip = request.META.get('REMOTE_ADDR')
    if not user:
        audit(None, 'login', object_type='user', detail={'result': 'fail', 'username': username, 'ip': ip})
        logger.info('failed login for %s from %s', username, ip)
        return Response({'ok': False, 'detail': 'invalid username or password'}, status=400)

    employee = getattr(user, 'employee', None)
    if employee is not None and employee.status == Employee.STATUS_RESIGNED:
        audit(user, 'login', object_type='user', object_id=user.id, detail={'result': 'resigned', 'ip': ip})
        return Response({'ok': False, 'detail': 'this account is no longer active'}, status=403)

    audit(user, 'login', object_type='user', object_id=user.id, detail={'result': 'ok', 'ip': ip})

    token_obj, _ = Token.objects.get_or_create(user=user)
    refresh = RefreshToken.for_user(user)
    return Response({
        'ok': True,
        'token': token_obj.key,
        'jwt_access': str(refresh.access_token),
        'jwt_refresh': str(refresh),
        **_session_payload(user),
    }, status=200)


login_view.cls.throttle_scope = 'login'


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([ScopedRateThrottle])
def signup_view(request):
    """Create a login. The employee record is linked or assigned afterwards."""
    s = SignupSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    user = User.objects.create_user(username=v['username'], email=v['email'], password=v['password'])
    if v.get('name'):
        user.first_name = v['name']
        user.save(update_fields=['first_name'])
    audit(user, 'signup', object_type='user', object_id=user.id)
    token_obj, _ = Token.objects.get_or_create(user=user)
    invited = Employee.objects.filter(email__iexact=user.email, auth_user__isnull=True).first()
    return Response({
        'ok': True,
        'token': token_obj.key,
        'user': {'id': user.id, 'username': user.username, 'email': user.email},
        'pendingEmployeeId': str(invited.id) if invited else None,
    }, status=201)


signup_view.cls.throttle_scope = 'signup'


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def me_view(request):
    return Response({'ok': True, **_session_payload(request.user)})


@api_view(['POST'])
@permission_classes([AllowAny])
def jwt_refresh_view(request):
    """Return a new access token from refresh token."""
    resp = TokenRefreshView.as_view()(request._request)
    data = dict(resp.data)
    if 'access' in data and 'jwt_access' not in data:
        data['jwt_access'] = data.pop('access')
    return Response(data, status=resp.status_code)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def jwt_logout_view(request):
    """Blacklist the given refresh token, or every outstanding one of the user."""
    refresh = request.data.get('refresh')
    count = 0
    if refresh:
        try:
            RefreshToken(refresh).blacklist()
            count = 1
        except Exception:
            return Response({'ok': False, 'detail': 'invalid refresh token'}, status=400)
    else:
        for token in OutstandingToken.objects.filter(user=request.user):
            _, created = BlacklistedToken.objects.get_or_create(token=token)
            count += int(created)
    Token.objects.filter(user=request.user).delete()
    audit(request, 'logout', object_type='user', object_id=request.user.id, detail={'blacklisted': count})
    return Response({'ok': True, 'blacklisted': count})
