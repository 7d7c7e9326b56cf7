import logging
from typing import Any, Dict, Optional

from django.contrib.auth import get_user_model

from portal.models import AuditEvent

User = get_user_model()
logger = logging.getLogger(__name__)


def log_action(*, user: Optional[User], action: str, object_type: Optional[str] = None,
               object_id: Optional[Any] = None, detail: Optional[Dict[str, Any]] = None) -> AuditEvent:
    return AuditEvent.objects.create(
        user=user if isinstance(user, User) and user.pk else None,
        action=action,
        object_type=object_type,
        object_id=str(object_id) if object_id is not None else None,
        detail=detail or {},
    )


def audit(request_or_user, action: str, **kwargs) -> None:
    """Best-effort ``log_action``: audit failures are logged, never raised."""
    user = getattr(request_or_user, 'user', request_or_user)
    try:
        log_action(user=user, action=action, **kwargs)
    except Exception:
        logger.warning('audit log failed for action %s', action, exc_info=True)
