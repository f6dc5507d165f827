import asyncio
import uuid
from enum import Enum
from typing import Any, Optional

from pydantic import ValidationError

from backend import CapacityState, RoomNotFound, RoomRegistry, UserRegistry
from logging_config import get_logger
from relay import Outbox, SignalRelay, Transport
from schemas.events import (
    ConnectionInitEvent,
    ConnectionSignalEvent,
    CreateRoomEvent,
    DirectMessageEvent,
    DisconnectEvent,
    ErrorCode,
    ErrorMessage,
    JoinRoomEvent,
    parse_event,
)
from schemas.rooms import ConnectedUser

logger = get_logger(__name__)


class ConnectionState(str, Enum):
    CONNECTED = "connected"
    IN_ROOM = "in_room"
    DISCONNECTED = "disconnected"


class ConnectionGateway:
    """Per-connection state machine over the shared registries.

    Every inbound event goes through dispatch(). The registry mutation and the
    membership snapshot it produces happen under one lock, so no event ever
    sees another one half applied. The frames an event produces are queued in
    an Outbox and written after the lock is released, so a peer that stops
    reading only delays the event that addressed it.
    """

    def __init__(self, rooms: RoomRegistry, users: UserRegistry, transport: Transport):
        self.rooms = rooms
        self.users = users
        self.transport = transport
        self._lock = asyncio.Lock()
        self._open: set[str] = set()

    def connect(self, connection_id: str) -> ConnectionState:
        self._open.add(connection_id)
        logger.info(f"Connection {connection_id} established")
        return ConnectionState.CONNECTED

    def state(self, connection_id: str) -> ConnectionState:
        if connection_id not in self._open:
            return ConnectionState.DISCONNECTED
        if self.users.find_by_connection_id(connection_id) is not None:
            return ConnectionState.IN_ROOM
        return ConnectionState.CONNECTED

    async def handle_message(self, connection_id: str, data: Any):
        """Validate a decoded frame and dispatch it; bad frames get an error reply."""
        try:
            event = parse_event(data)
        except ValidationError as e:
            kind = data.get("type") if isinstance(data, dict) else None
            logger.info(f"Invalid {kind or 'untyped'} event from connection {connection_id}: {e.error_count()} errors")
            await self._reply_error(connection_id, ErrorCode.INVALID_EVENT, f"Invalid event: {kind}")
            return None
        return await self.dispatch(connection_id, event)

    async def dispatch(self, connection_id: str, event) -> ConnectionState:
        outbox = Outbox()
        async with self._lock:
            state = await self._apply(connection_id, event, SignalRelay(outbox, self.users))
        await outbox.flush(self.transport)
        return state

    async def _apply(self, connection_id: str, event, relay: SignalRelay) -> ConnectionState:
        if connection_id not in self._open:
            logger.debug(f"Ignoring {event.type} from closed connection {connection_id}")
            return ConnectionState.DISCONNECTED

        if isinstance(event, CreateRoomEvent):
            await self._create_room(connection_id, event, relay)
        elif isinstance(event, JoinRoomEvent):
            await self._join_room(connection_id, event, relay)
        elif isinstance(event, ConnectionSignalEvent):
            if await self._require_room(connection_id, relay):
                await relay.send_signal(event.target_socket_id, event.signal, connection_id)
        elif isinstance(event, ConnectionInitEvent):
            if await self._require_room(connection_id, relay):
                await relay.send_connection_init(event.target_socket_id, connection_id)
        elif isinstance(event, DirectMessageEvent):
            await relay.relay_direct_message(
                event.receiver_socket_id,
                connection_id,
                event.message_content,
                event.username,
            )
        elif isinstance(event, DisconnectEvent):
            await self._disconnect(connection_id, relay)
        else:
            logger.warning(f"Unhandled event {type(event).__name__} from connection {connection_id}")

        return self.state(connection_id)

    async def disconnect(self, connection_id: str) -> ConnectionState:
        return await self.dispatch(connection_id, DisconnectEvent(type="disconnect"))

    async def _reply_error(self, connection_id: str, code: str, message: str):
        await self.transport.send(connection_id, ErrorMessage(code=code, message=message).to_wire())

    async def _require_room(self, connection_id: str, relay: SignalRelay) -> bool:
        if self.state(connection_id) is ConnectionState.IN_ROOM:
            return True
        logger.info(f"Connection {connection_id} sent a room event without joining a room")
        await relay.send_error(connection_id, ErrorCode.NOT_IN_ROOM, "Join a room first")
        return False

    async def _require_no_room(self, connection_id: str, relay: SignalRelay) -> bool:
        if self.state(connection_id) is ConnectionState.CONNECTED:
            return True
        logger.info(f"Connection {connection_id} is already in a room")
        await relay.send_error(connection_id, ErrorCode.ALREADY_IN_ROOM, "Already in a room")
        return False

    async def _create_room(self, connection_id: str, event: CreateRoomEvent, relay: SignalRelay):
        if not await self._require_no_room(connection_id, relay):
            return
        room_id = self.rooms.create_room()
        user = ConnectedUser(
            id=str(uuid.uuid4()),
            socket_id=connection_id,
            room_id=room_id,
            username=event.username,
            only_audio=event.only_audio,
        )
        self.users.register(user)
        members = self.rooms.add_member(room_id, user)
        logger.info(f"Connection {connection_id} ({event.username}) created room {room_id}")

        await relay.send_room_id(connection_id, room_id)
        await relay.send_room_update(room_id, members)

    async def _join_room(self, connection_id: str, event: JoinRoomEvent, relay: SignalRelay):
        if not await self._require_no_room(connection_id, relay):
            return
        room_id = event.room_id
        # Admission is checked before adding, so the member that makes a room full still gets in
        if self.rooms.capacity_state(room_id) is CapacityState.FULL:
            logger.info(f"Connection {connection_id} rejected: room {room_id} is full")
            await relay.send_error(connection_id, ErrorCode.ROOM_FULL, "Room is full")
            return

        user = ConnectedUser(
            id=str(uuid.uuid4()),
            socket_id=connection_id,
            room_id=room_id,
            username=event.username,
            only_audio=event.only_audio,
        )
        try:
            members = self.rooms.add_member(room_id, user)
        except RoomNotFound:
            logger.info(f"Connection {connection_id} tried to join missing room {room_id}")
            await relay.send_error(connection_id, ErrorCode.ROOM_NOT_FOUND, f"Room {room_id} not found")
            return
        self.users.register(user)
        logger.info(f"Connection {connection_id} ({event.username}) joined room {room_id} ({len(members)} members)")

        for member in members:
            if member.socket_id != connection_id:
                await relay.send_connection_prepare(member.socket_id, connection_id)
        await relay.send_room_update(room_id, members)

    async def _disconnect(self, connection_id: str, relay: SignalRelay) -> Optional[ConnectedUser]:
        self._open.discard(connection_id)
        user = self.users.remove(connection_id)
        if user is None:
            return None

        remaining = self.rooms.remove_member(user.room_id, connection_id)
        logger.info(f"Connection {connection_id} left room {user.room_id}")
        if remaining:
            await relay.send_user_disconnected(user.room_id, remaining, connection_id)
            await relay.send_room_update(user.room_id, remaining)
        return user
