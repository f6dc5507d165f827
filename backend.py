import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Optional, Tuple

from constants import ROOM_FULL_THRESHOLD
from logging_config import get_logger
from schemas.rooms import ConnectedUser

logger = get_logger(__name__)


class RoomNotFound(LookupError):
    def __init__(self, room_id: str):
        super().__init__(f"Room {room_id} not found")
        self.room_id = room_id


class DuplicateConnection(ValueError):
    def __init__(self, connection_id: str):
        super().__init__(f"Connection {connection_id} is already registered")
        self.connection_id = connection_id


class CapacityState(str, Enum):
    NOT_EXISTS = "not_exists"
    OPEN = "open"
    FULL = "full"


@dataclass(frozen=True)
class Room:
    id: str
    # The registry swaps in a new Room on every change, so a Room handed out is a stable snapshot
    members: Tuple[ConnectedUser, ...] = field(default_factory=tuple)


class RoomRegistry:
    """Active rooms and their membership, in join order.

    A room exists only while it has members: remove_member deletes it in the
    same call that drops the last member.
    """

    def __init__(self, full_threshold: int = ROOM_FULL_THRESHOLD):
        self.full_threshold = full_threshold
        self._rooms: Dict[str, Room] = {}

    def __len__(self) -> int:
        return len(self._rooms)

    def __contains__(self, room_id: str) -> bool:
        return room_id in self._rooms

    def ids(self) -> Tuple[str, ...]:
        return tuple(self._rooms)

    def create_room(self) -> str:
        room_id = str(uuid.uuid4())
        self._rooms[room_id] = Room(id=room_id)
        logger.info(f"Room {room_id} created")
        return room_id

    def find(self, room_id: str) -> Optional[Room]:
        return self._rooms.get(room_id)

    def members_of(self, room_id: str) -> Tuple[ConnectedUser, ...]:
        room = self._rooms.get(room_id)
        if room is None:
            raise RoomNotFound(room_id)
        return room.members

    def add_member(self, room_id: str, user: ConnectedUser) -> Tuple[ConnectedUser, ...]:
        """Append a member and return the new membership snapshot."""
        room = self._rooms.get(room_id)
        if room is None:
            raise RoomNotFound(room_id)
        if any(member.socket_id == user.socket_id for member in room.members):
            raise DuplicateConnection(user.socket_id)
        room = replace(room, members=room.members + (user,))
        self._rooms[room_id] = room
        logger.debug(f"Connection {user.socket_id} added to room {room_id} ({len(room.members)} members)")
        return room.members

    def remove_member(self, room_id: str, connection_id: str) -> Tuple[ConnectedUser, ...]:
        """Drop a member and return who is left.

        An empty result means the room has been deleted.
        """
        room = self._rooms.get(room_id)
        if room is None:
            raise RoomNotFound(room_id)
        room = replace(room, members=tuple(m for m in room.members if m.socket_id != connection_id))
        if not room.members:
            del self._rooms[room_id]
            logger.info(f"Room {room_id} is empty, deleted")
        else:
            self._rooms[room_id] = room
            logger.debug(f"Connection {connection_id} removed from room {room_id} ({len(room.members)} members left)")
        return room.members

    def capacity_state(self, room_id: str) -> CapacityState:
        room = self._rooms.get(room_id)
        if room is None:
            return CapacityState.NOT_EXISTS
        if len(room.members) > self.full_threshold:
            return CapacityState.FULL
        return CapacityState.OPEN


class UserRegistry:
    """Every participant that has created or joined a room, keyed by connection id."""

    def __init__(self):
        self._users: Dict[str, ConnectedUser] = {}

    def __len__(self) -> int:
        return len(self._users)

    def all(self) -> Tuple[ConnectedUser, ...]:
        return tuple(self._users.values())

    def register(self, user: ConnectedUser):
        if user.socket_id in self._users:
            raise DuplicateConnection(user.socket_id)
        self._users[user.socket_id] = user
        logger.debug(f"User {user.id} registered for connection {user.socket_id}")

    def find_by_connection_id(self, connection_id: str) -> Optional[ConnectedUser]:
        return self._users.get(connection_id)

    def remove(self, connection_id: str) -> Optional[ConnectedUser]:
        user = self._users.pop(connection_id, None)
        if user is None:
            logger.debug(f"No user registered for connection {connection_id}")
        return user


room_registry = RoomRegistry()
user_registry = UserRegistry()
