import json

from asgiref.sync import sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from django.contrib.auth import get_user_model

from clinic.services.events import user_group
from clinic.services.messages import send_message, serialize_message

User = get_user_model()


async def _ws_error(ws, code: int, message: str, *, close: bool = False):
    """
    Uniform error frame.
    App codes: 4xxx client errors, 5xxx server errors.
    """
    payload = {"type": "error", "code": code, "message": message}
    try:
        await ws.send(json.dumps(payload))
    finally:
        if close:
            await ws.close(code=code)


def _send_from_socket(sender, receiver_id: int, content: str):
    receiver = User.objects.filter(id=receiver_id).first()
    if receiver is None:
        raise LookupError("receiver_not_found")
    return serialize_message(send_message(sender, receiver, content))


class UserEventsConsumer(AsyncWebsocketConsumer):
    """Per-user event stream: new messages and notifications."""

    async def connect(self):
        user = self.scope.get("user")
        if not (user and user.is_authenticated):
            await self.close(code=4001)
            return
        self.user = user
        self.group_name = user_group(user.id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        await self.send(json.dumps({"type": "welcome", "userId": user.id}))

    async def disconnect(self, close_code):
        if hasattr(self, "group_name"):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def receive(self, text_data=None, bytes_data=None):
        if not text_data:
            return
        try:
            data = json.loads(text_data)
        except ValueError:
            await _ws_error(self, 4000, "invalid_json")
            return
        if not isinstance(data, dict):
            await _ws_error(self, 4001, "invalid_payload")
            return

        kind = data.get("type")
        if kind == "ping":
            await self.send(json.dumps({"type": "pong"}))
            return
        if kind != "send":
            await _ws_error(self, 4002, "unsupported_type")
            return

        content = data.get("content")
        try:
            receiver_id = int(data.get("to"))
        except (TypeError, ValueError):
            await _ws_error(self, 4003, "invalid_receiver")
            return
        if not isinstance(content, str):
            await _ws_error(self, 4003, "invalid_content_type")
            return

        try:
            await sync_to_async(_send_from_socket)(self.user, receiver_id, content)
        except LookupError:
            await _ws_error(self, 4004, "receiver_not_found")
        except PermissionError:
            await _ws_error(self, 4030, "forbidden")
        except ValueError as e:
            await _ws_error(self, 4005, str(e))
        # the sender's own copy arrives through message_new

    async def message_new(self, event):
        await self.send(json.dumps({"type": "message.new", "data": event["payload"]}))

    async def notification_new(self, event):
        await self.send(json.dumps({"type": "notification.new", "data": event["payload"]}))
