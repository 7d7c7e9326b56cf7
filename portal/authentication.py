"""
Authentication classes for the REST API.

Both the legacy ``Token`` header and SimpleJWT bearer tokens are accepted.
Accounts whose employee record is resigned are rejected even with a valid
credential.
"""
from __future__ import annotations

from rest_framework import authentication, exceptions
from rest_framework_simplejwt.authentication import JWTAuthentication as _JWTAuthentication

from .models import Employee


def _reject_resigned(user) -> None:
    employee = getattr(user, 'employee', None) if user is not None else None
    if employee is not None and employee.status == Employee.STATUS_RESIGNED:
        raise exceptions.AuthenticationFailed('Account is no longer active.')


class TokenAuthentication(authentication.TokenAuthentication):
    keyword = 'Token'

    def authenticate_credentials(self, key):
        user, token = super().authenticate_credentials(key)
        _reject_resigned(user)
        return user, token


class JWTAuthentication(_JWTAuthentication):
    def get_user(self, validated_token):
        user = super().get_user(validated_token)
        _reject_resigned(user)
        return user
