from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Optional


class ConnectedUser(BaseModel):
    """A participant as seen by the other members of its room."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    socket_id: str = Field(alias="socketId")
    room_id: str = Field(alias="roomId")
    username: str
    only_audio: bool = Field(False, alias="onlyAudio")


class RoomExistsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_room_exists: bool = Field(alias="isRoomExists")
    full: Optional[bool] = None

class TurnCredentialsResponse(BaseModel):
    token: dict[str, Any]
