import logging

from django.core.cache import cache
from django.db import connections
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def _db_ok() -> bool:
    with connections['default'].cursor() as c:
        c.execute('SELECT 1')
        row = c.fetchone()
    return bool(row and row[0] == 1)


def _cache_ok() -> bool:
    cache.set('healthz:ping', 'pong', 5)
    return cache.get('healthz:ping') == 'pong'


def healthz(request):
    checks = {}
    for name, check in (('db', _db_ok), ('cache', _cache_ok)):
        try:
            checks[name] = check()
        except Exception:
            logger.exception('health check %s failed', name)
            checks[name] = False
    ok = all(checks.values())
    return JsonResponse({'ok': ok, **checks}, status=200 if ok else 503)
