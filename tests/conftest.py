import asyncio

import pytest

from backend import RoomRegistry, UserRegistry
from gateway import ConnectionGateway


class FakeTransport:
    """Records every frame instead of writing it to a socket."""

    def __init__(self):
        self.sent = []

    async def send(self, connection_id, message):
        self.sent.append((connection_id, message))
        return True

    def messages_for(self, connection_id, type_=None):
        return [
            m for cid, m in self.sent
            if cid == connection_id and (type_ is None or m["type"] == type_)
        ]

    def types_for(self, connection_id):
        return [m["type"] for m in self.messages_for(connection_id)]

    def clear(self):
        self.sent.clear()


def assert_invariants(rooms, users):
    for room_id in rooms.ids():
        room = rooms.find(room_id)
        assert room.members, f"empty room {room_id} is still registered"
        socket_ids = [m.socket_id for m in room.members]
        assert len(socket_ids) == len(set(socket_ids))
        for member in room.members:
            assert member.room_id == room_id
            assert users.find_by_connection_id(member.socket_id) == member

    for user in users.all():
        room = rooms.find(user.room_id)
        assert room is not None, f"user {user.socket_id} points at missing room {user.room_id}"
        assert [m.socket_id for m in room.members].count(user.socket_id) == 1


@pytest.fixture
def run():
    return asyncio.run


@pytest.fixture
def rooms():
    return RoomRegistry()


@pytest.fixture
def users():
    return UserRegistry()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def gateway(rooms, users, transport):
    return ConnectionGateway(rooms, users, transport)


@pytest.fixture
def check_invariants(rooms, users):
    return lambda: assert_invariants(rooms, users)
