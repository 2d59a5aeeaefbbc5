"""
Push events to connected WebSocket clients.

Every authenticated socket joins the ``user.<id>`` group (see
``clinic.realtime.consumers``); services call :func:`push_to_user` after
their database work has been committed.
"""
import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction

logger = logging.getLogger(__name__)


def user_group(user_id: int) -> str:
    return f"user.{user_id}"


def _send(user_id: int, event: dict) -> None:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    try:
        async_to_sync(channel_layer.group_send)(user_group(user_id), event)
    except Exception:
        # Realtime delivery is best effort; the row is already persisted
        logger.warning("push to user %s failed (%s)", user_id, event.get("type"), exc_info=True)


def push_to_user(user_id: int, event_type: str, payload: dict) -> None:
    """Queue ``payload`` for delivery once the current transaction commits."""
    event = {"type": event_type, "payload": payload}
    transaction.on_commit(lambda: _send(user_id, event))
