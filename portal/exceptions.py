"""
Domain errors and the unified API exception handler.

Services raise :class:`PortalError` subclasses; the handler turns them (and
every DRF error) into ``{'ok': False, 'error': {'code', 'message'}}``.
"""
from __future__ import annotations

import logging

from django.http import Http404
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


class PortalError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    code = 'invalid'

    def __init__(self, message: str = '', *, code: str | None = None):
        super().__init__(message)
        self.message = message or self.__class__.__name__
        if code:
            self.code = code


class InvalidInput(PortalError):
    pass


class AccessDenied(PortalError):
    status_code = status.HTTP_403_FORBIDDEN
    code = 'forbidden'


class NotFound(PortalError):
    status_code = status.HTTP_404_NOT_FOUND
    code = 'not_found'


class Conflict(PortalError):
    status_code = status.HTTP_409_CONFLICT
    code = 'conflict'


def _error(code: str, message, status_code: int) -> Response:
    return Response({'ok': False, 'error': {'code': code, 'message': message}}, status=status_code)


def api_exception_handler(exc, context):
    if isinstance(exc, PortalError):
        return _error(exc.code, exc.message, exc.status_code)
    resp = drf_exception_handler(exc, context)
    if resp is None:
        view = context.get('view') if context else None
        logger.exception('Unhandled error in %s', getattr(view, '__name__', view), exc_info=exc)
        return _error('server_error', 'Internal server error', status.HTTP_500_INTERNAL_SERVER_ERROR)
    if isinstance(exc, Http404):
        return _error('not_found', 'Not found', resp.status_code)
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = resp.data
    code = getattr(exc, 'default_code', None) or 'api_error'
    return _error(code, detail, resp.status_code)
