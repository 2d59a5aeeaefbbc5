import pytest
from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from channels.testing import WebsocketCommunicator

from clinic.realtime.consumers import UserEventsConsumer
from clinic.services.events import user_group

pytestmark = pytest.mark.django_db


def _communicator(user):
    communicator = WebsocketCommunicator(UserEventsConsumer.as_asgi(), "/ws/events/")
    communicator.scope["user"] = user
    return communicator


def test_socket_receives_events_for_its_user(patient):
    async def scenario():
        communicator = _communicator(patient)
        connected, _ = await communicator.connect()
        assert connected
        assert await communicator.receive_json_from() == {"type": "welcome", "userId": patient.id}

        await get_channel_layer().group_send(
            user_group(patient.id), {"type": "notification.new", "payload": {"id": 7, "title": "Reminder"}},
        )
        assert await communicator.receive_json_from() == {
            "type": "notification.new", "data": {"id": 7, "title": "Reminder"},
        }

        await communicator.send_json_to({"type": "ping"})
        assert await communicator.receive_json_from() == {"type": "pong"}

        await communicator.send_json_to({"type": "shout"})
        reply = await communicator.receive_json_from()
        assert reply["type"] == "error" and reply["message"] == "unsupported_type"
        await communicator.disconnect()

    async_to_sync(scenario)()


def test_anonymous_socket_is_closed():
    async def scenario():
        communicator = _communicator(None)
        connected, code = await communicator.connect()
        assert not connected
        assert code == 4001

    async_to_sync(scenario)()
