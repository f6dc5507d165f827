from fastapi import APIRouter, Depends, HTTPException, Request
from backend import CapacityState, room_registry
from schemas.rooms import RoomExistsResponse, TurnCredentialsResponse
from turn import TurnCredentialsError, TurnCredentialsUnavailable, turn_credentials
from logging_config import get_logger

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/api", tags=["rooms"])


def get_room_registry():
    return room_registry


def get_turn_credentials_provider():
    return turn_credentials


@rooms_router.get(
    "/room-exists/{room_id}",
    response_model=RoomExistsResponse,
    response_model_exclude_none=True,
)
async def room_exists(room_id: str, request: Request, rooms=Depends(get_room_registry)):
    """
    Tell a client whether a room can be joined before it opens a socket.

    Returns:
    - isRoomExists: whether the room is active
    - full: present only for existing rooms
    """
    client_host = request.client.host if request.client else "unknown"
    state = rooms.capacity_state(room_id)
    logger.info(f"Room exists check for {room_id} from {client_host}: {state.value}")

    if state is CapacityState.NOT_EXISTS:
        return RoomExistsResponse(is_room_exists=False)
    return RoomExistsResponse(is_room_exists=True, full=state is CapacityState.FULL)


@rooms_router.get("/get-turn-credentials", response_model=TurnCredentialsResponse)
async def get_turn_credentials(provider=Depends(get_turn_credentials_provider)):
    try:
        token = await provider.create_token()
    except TurnCredentialsUnavailable as e:
        logger.warning(f"Relay credentials requested but not configured: {e}")
        raise HTTPException(status_code=503, detail="Relay credentials are not configured")
    except TurnCredentialsError:
        raise HTTPException(status_code=502, detail="Failed to obtain relay credentials")

    return TurnCredentialsResponse(token=token)
