"""
WebSocket authentication from the query string.

Browsers cannot set headers on a WebSocket handshake, so clients pass
``?token=<drf token>`` or ``?token=<jwt access token>``. A session user set
by ``AuthMiddlewareStack`` is kept when no token is given.
"""
from __future__ import annotations

import logging
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from rest_framework.authtoken.models import Token
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.settings import api_settings as jwt_settings
from rest_framework_simplejwt.tokens import AccessToken

from portal.models import Employee

logger = logging.getLogger(__name__)


def user_for_token(key: str):
    """Resolve a DRF token or JWT access token to an active user, else AnonymousUser."""
    if not key:
        return AnonymousUser()
    user = None
    token = Token.objects.select_related('user').filter(key=key).first()
    if token is not None:
        user = token.user
    else:
        try:
            access = AccessToken(key)
            user = get_user_model().objects.filter(**{
                jwt_settings.USER_ID_FIELD: access[jwt_settings.USER_ID_CLAIM],
            }).first()
        except (TokenError, KeyError):
            logger.info('websocket token rejected')
    if user is None or not user.is_active:
        return AnonymousUser()
    employee = Employee.objects.filter(auth_user=user).first()
    if employee is not None and employee.status == Employee.STATUS_RESIGNED:
        return AnonymousUser()
    return user


class QueryTokenAuthMiddleware(BaseMiddleware):
    async def __call__(self, scope, receive, send):
        params = parse_qs((scope.get('query_string') or b'').decode())
        key = (params.get('token') or [''])[0]
        if key:
            scope = dict(scope, user=await database_sync_to_async(user_for_token)(key))
        elif 'user' not in scope:
            scope = dict(scope, user=AnonymousUser())
        return await super().__call__(scope, receive, send)
