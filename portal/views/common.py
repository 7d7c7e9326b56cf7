from rest_framework.response import Response

from portal.access import UserPermissions, get_user_permissions

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200


def perms_for(request) -> UserPermissions:
    return get_user_permissions(request.user)


def page_params(request) -> tuple[int, int]:
    try:
        page = max(1, int(request.query_params.get('page') or 1))
    except (TypeError, ValueError):
        page = 1
    try:
        page_size = int(request.query_params.get('pageSize') or DEFAULT_PAGE_SIZE)
    except (TypeError, ValueError):
        page_size = DEFAULT_PAGE_SIZE
    return page, min(MAX_PAGE_SIZE, max(1, page_size))


def paginated(request, items, serialize) -> Response:
    """``{'ok', 'data', 'pagination'}`` for a queryset or list."""
    page, page_size = page_params(request)
    total = items.count() if hasattr(items, 'count') and not isinstance(items, list) else len(items)
    start = (page - 1) * page_size
    data = [serialize(obj) for obj in items[start:start + page_size]]
    return Response({
        'ok': True,
        'data': data,
        'pagination': {'total': total, 'page': page, 'pageSize': page_size},
    })
