"""
Audit trail for security-relevant actions (logins, bookings, status
changes, record edits).  ``detail`` must never carry secrets or free-text
clinical notes.
"""
import logging
from typing import Any, Dict, Optional

from django.contrib.auth import get_user_model

from clinic.models import AuditEvent

logger = logging.getLogger(__name__)

User = get_user_model()


def log_action(*, user: Optional[User], action: str, object_type: Optional[str] = None,
               object_id: Optional[int] = None, detail: Optional[Dict[str, Any]] = None) -> AuditEvent:
    actor = user if isinstance(user, User) and user.pk else None
    event = AuditEvent.objects.create(
        user=actor,
        action=action,
        object_type=object_type,
        object_id=object_id,
        detail=detail or {},
    )
    logger.debug("audit %s by user=%s on %s:%s", action, actor.pk if actor else None, object_type, object_id)
    return event

