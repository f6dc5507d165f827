"""Wire format of the per-connection WebSocket protocol.

Every frame is a JSON object whose ``type`` names the event; the payload
fields sit next to it using the camelCase keys the browser client sends.
"""
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from typing import Annotated, Any, Literal, Union

from constants import MAX_MESSAGE_LENGTH, MAX_USERNAME_LENGTH
from schemas.rooms import ConnectedUser


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


# Inbound

class CreateRoomEvent(WireModel):
    type: Literal["create-new-room"]
    username: str = Field(max_length=MAX_USERNAME_LENGTH)
    only_audio: bool = Field(False, alias="onlyAudio")

class JoinRoomEvent(WireModel):
    type: Literal["join-room"]
    room_id: str = Field(alias="roomId")
    username: str = Field(max_length=MAX_USERNAME_LENGTH)
    only_audio: bool = Field(False, alias="onlyAudio")

class ConnectionSignalEvent(WireModel):
    type: Literal["connection-signal"]
    target_socket_id: str = Field(alias="connectedUserSocketId")
    signal: Any

class ConnectionInitEvent(WireModel):
    type: Literal["connection-init"]
    target_socket_id: str = Field(alias="connectedUserSocketId")

class DirectMessageEvent(WireModel):
    type: Literal["direct-message"]
    receiver_socket_id: str = Field(alias="receiverSocketId")
    message_content: str = Field(alias="messageContent", max_length=MAX_MESSAGE_LENGTH)
    username: str = Field(max_length=MAX_USERNAME_LENGTH)

class DisconnectEvent(WireModel):
    type: Literal["disconnect"]


InboundEvent = Annotated[
    Union[
        CreateRoomEvent,
        JoinRoomEvent,
        ConnectionSignalEvent,
        ConnectionInitEvent,
        DirectMessageEvent,
        DisconnectEvent,
    ],
    Field(discriminator="type"),
]

inbound_event_adapter = TypeAdapter(InboundEvent)


def parse_event(data: Any) -> InboundEvent:
    """Validate a decoded frame. Raises pydantic.ValidationError."""
    return inbound_event_adapter.validate_python(data)


# Outbound

class ConnectedMessage(WireModel):
    type: Literal["connected"] = "connected"
    socket_id: str = Field(alias="socketId")

class RoomIdMessage(WireModel):
    type: Literal["room-id"] = "room-id"
    room_id: str = Field(alias="roomId")

class RoomUpdateMessage(WireModel):
    type: Literal["room-update"] = "room-update"
    connected_users: list[ConnectedUser] = Field(alias="connectedUsers")

class ConnectionPrepareMessage(WireModel):
    type: Literal["connection-prepare"] = "connection-prepare"
    connected_user_socket_id: str = Field(alias="connectedUserSocketId")

class ConnectionSignalMessage(WireModel):
    type: Literal["connection-signal"] = "connection-signal"
    signal: Any
    connected_user_socket_id: str = Field(alias="connectedUserSocketId")

class ConnectionInitMessage(WireModel):
    type: Literal["connection-init"] = "connection-init"
    connected_user_socket_id: str = Field(alias="connectedUserSocketId")

class UserDisconnectedMessage(WireModel):
    type: Literal["user-disconnected"] = "user-disconnected"
    socket_id: str = Field(alias="socketId")

class DirectMessageReceived(WireModel):
    type: Literal["direct-message"] = "direct-message"
    author_socket_id: str = Field(alias="authorSocketId")
    message_content: str = Field(alias="messageContent")
    is_author: Literal[False] = Field(False, alias="isAuthor")
    username: str

class DirectMessageEcho(WireModel):
    type: Literal["direct-message"] = "direct-message"
    receiver_socket_id: str = Field(alias="receiverSocketId")
    message_content: str = Field(alias="messageContent")
    is_author: Literal[True] = Field(True, alias="isAuthor")
    username: str

class ErrorMessage(WireModel):
    type: Literal["error"] = "error"
    code: str
    message: str


class ErrorCode:
    INVALID_EVENT = "invalid-event"
    ROOM_NOT_FOUND = "room-not-found"
    ROOM_FULL = "room-full"
    ALREADY_IN_ROOM = "already-in-room"
    NOT_IN_ROOM = "not-in-room"
