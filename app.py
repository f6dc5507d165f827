from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from routers.rooms import rooms_router
from backend import room_registry, user_registry
from relay import connection_manager
from gateway import ConnectionGateway, ConnectionState
from schemas.events import ConnectedMessage, ErrorCode, ErrorMessage
from constants import CORS_ALLOW_ORIGINS, LOG_FILE, LOG_LEVEL
from logging_config import get_logger, setup_logging
import uuid
import json

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)

app = FastAPI()

# Configure CORS, all origins unless CORS_ALLOW_ORIGINS narrows it
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

app.include_router(rooms_router)

# Room and user state lives in this process only; all sockets share one gateway
gateway = ConnectionGateway(room_registry, user_registry, connection_manager)

logger.info("FastAPI application initialized")


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Signaling socket. Frames are JSON objects with the event name in ``type``."""
    connection_id = str(uuid.uuid4())
    client_left = False

    await websocket.accept()
    connection_manager.connect(connection_id, websocket)
    gateway.connect(connection_id)

    try:
        await connection_manager.send(connection_id, ConnectedMessage(socket_id=connection_id).to_wire())

        message_count = 0
        while True:
            try:
                data = await websocket.receive_text()
            except WebSocketDisconnect:
                logger.info(f"WebSocket disconnected normally for connection {connection_id}")
                client_left = True
                break
            message_count += 1

            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                logger.debug(f"Non-JSON frame #{message_count} from connection {connection_id}")
                await connection_manager.send(
                    connection_id,
                    ErrorMessage(code=ErrorCode.INVALID_EVENT, message="Frames must be JSON objects").to_wire(),
                )
                continue

            logger.debug(f"Received {message.get('type') if isinstance(message, dict) else 'untyped'} "
                         f"#{message_count} from connection {connection_id}")
            state = await gateway.handle_message(connection_id, message)
            if state is ConnectionState.DISCONNECTED:
                break

    except Exception as e:
        logger.error(f"WebSocket error for connection {connection_id}: {e}", exc_info=True)
    finally:
        try:
            await gateway.disconnect(connection_id)
        except Exception as e:
            logger.error(f"Error cleaning up connection {connection_id}: {e}", exc_info=True)
        connection_manager.disconnect(connection_id)
        logger.info(f"User is disconnected {connection_id}")

        if not client_left:
            try:
                await websocket.close()
            except Exception as e:
                logger.debug(f"Error closing WebSocket: {e}")
