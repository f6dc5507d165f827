import asyncio
import json
from typing import Dict, Iterable, Protocol

from fastapi import WebSocket

from backend import UserRegistry
from constants import SEND_TIMEOUT_SECONDS
from logging_config import get_logger
from schemas.events import (
    ConnectionInitMessage,
    ConnectionPrepareMessage,
    ConnectionSignalMessage,
    DirectMessageEcho,
    DirectMessageReceived,
    ErrorMessage,
    RoomIdMessage,
    RoomUpdateMessage,
    UserDisconnectedMessage,
    WireModel,
)
from schemas.rooms import ConnectedUser

logger = get_logger(__name__)


class Transport(Protocol):
    async def send(self, connection_id: str, message: dict) -> bool:
        ...


class ConnectionManager:
    """Live WebSockets by connection id; the only place frames are written."""

    def __init__(self, send_timeout: float = SEND_TIMEOUT_SECONDS):
        self.send_timeout = send_timeout
        self.active_connections: Dict[str, WebSocket] = {}

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self.active_connections

    def connect(self, connection_id: str, websocket: WebSocket):
        self.active_connections[connection_id] = websocket
        logger.debug(f"Tracking connection {connection_id} ({len(self.active_connections)} live)")

    def disconnect(self, connection_id: str):
        if self.active_connections.pop(connection_id, None) is not None:
            logger.debug(f"Stopped tracking connection {connection_id}")

    async def send(self, connection_id: str, message: dict) -> bool:
        websocket = self.active_connections.get(connection_id)
        if websocket is None:
            logger.debug(f"Dropping {message.get('type')} for unknown connection {connection_id}")
            return False
        try:
            await asyncio.wait_for(websocket.send_text(json.dumps(message)), self.send_timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(f"Timed out sending {message.get('type')} to connection {connection_id}, peer is not reading")
            return False
        except Exception as e:
            # Socket is closing; its own receive loop runs the disconnect cleanup
            logger.warning(f"Error sending {message.get('type')} to connection {connection_id}: {e}")
            return False


class Outbox:
    """Frames queued while the registries are locked, written once the lock is released."""

    def __init__(self):
        self.frames = []

    async def send(self, connection_id: str, message: dict) -> bool:
        self.frames.append((connection_id, message))
        return True

    async def flush(self, transport: Transport):
        for connection_id, message in self.frames:
            await transport.send(connection_id, message)
        self.frames = []


class SignalRelay:
    """Addressed forwarding and room fan-out. Holds no room state of its own."""

    def __init__(self, transport: Transport, users: UserRegistry):
        self.transport = transport
        self.users = users

    async def _send(self, connection_id: str, message: WireModel) -> bool:
        return await self.transport.send(connection_id, message.to_wire())

    async def _broadcast(self, members: Iterable[ConnectedUser], message: WireModel):
        payload = message.to_wire()
        for member in members:
            await self.transport.send(member.socket_id, payload)

    async def send_room_id(self, connection_id: str, room_id: str):
        await self._send(connection_id, RoomIdMessage(room_id=room_id))

    async def send_error(self, connection_id: str, code: str, message: str):
        await self._send(connection_id, ErrorMessage(code=code, message=message))

    async def send_room_update(self, room_id: str, members: tuple):
        logger.debug(f"Sending room-update for room {room_id} to {len(members)} members")
        await self._broadcast(members, RoomUpdateMessage(connected_users=list(members)))

    async def send_connection_prepare(self, target_connection_id: str, new_connection_id: str):
        await self._send(
            target_connection_id,
            ConnectionPrepareMessage(connected_user_socket_id=new_connection_id),
        )

    async def send_signal(self, target_connection_id: str, payload, origin_connection_id: str):
        logger.debug(f"Relaying signal {origin_connection_id} -> {target_connection_id}")
        await self._send(
            target_connection_id,
            ConnectionSignalMessage(signal=payload, connected_user_socket_id=origin_connection_id),
        )

    async def send_connection_init(self, target_connection_id: str, origin_connection_id: str):
        logger.debug(f"Relaying connection-init {origin_connection_id} -> {target_connection_id}")
        await self._send(
            target_connection_id,
            ConnectionInitMessage(connected_user_socket_id=origin_connection_id),
        )

    async def send_user_disconnected(self, room_id: str, members: tuple, departed_connection_id: str):
        logger.debug(f"Announcing departure of {departed_connection_id} to room {room_id}")
        await self._broadcast(members, UserDisconnectedMessage(socket_id=departed_connection_id))

    async def relay_direct_message(
        self,
        receiver_connection_id: str,
        sender_connection_id: str,
        content: str,
        username: str,
    ) -> bool:
        """Deliver to the receiver and echo to the sender.

        A receiver with no registered user is dropped without telling the
        sender. Returns whether the message was delivered.
        """
        receiver = self.users.find_by_connection_id(receiver_connection_id)
        if receiver is None:
            logger.debug(f"Direct message from {sender_connection_id} dropped: receiver {receiver_connection_id} unknown")
            return False

        await self._send(
            receiver_connection_id,
            DirectMessageReceived(
                author_socket_id=sender_connection_id,
                message_content=content,
                username=username,
            ),
        )
        await self._send(
            sender_connection_id,
            DirectMessageEcho(
                receiver_socket_id=receiver_connection_id,
                message_content=content,
                username=username,
            ),
        )
        return True


connection_manager = ConnectionManager()
