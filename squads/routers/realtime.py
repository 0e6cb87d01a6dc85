import asyncio
import logging
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from sqlmodel import Session

from ..database import get_session
from ..dependencies import USER_ID_HEADER
from ..models.user import User

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


def _resolve_user_id(websocket: WebSocket, db: Session):
    raw = websocket.headers.get(USER_ID_HEADER) or websocket.query_params.get("user_id")
    try:
        user_id = int(raw)
    except (TypeError, ValueError):
        return None
    return user_id if db.get(User, user_id) else None


def _handle_client_message(registry, connection_id: str, message: dict) -> None:
    """Apply a join-match / leave-match request from the client."""
    kind = message.get("type")
    match_id = message.get("match_id")
    if not isinstance(match_id, int):
        return
    if kind == "join-match":
        registry.join_match(connection_id, match_id)
    elif kind == "leave-match":
        registry.leave_match(connection_id, match_id)


async def _pump(websocket: WebSocket, outbox: asyncio.Queue) -> None:
    while True:
        message = await outbox.get()
        await websocket.send_json(message)


@router.websocket("/ws")
async def notifications_socket(websocket: WebSocket, db: Session = Depends(get_session)):
    user_id = _resolve_user_id(websocket, db)
    # Only needed for the lookup; release the connection for the life of the socket
    db.close()
    if user_id is None:
        logger.warning("Rejected websocket without a known user")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    registry = websocket.app.state.connections
    loop = asyncio.get_running_loop()
    outbox: asyncio.Queue = asyncio.Queue()

    # Services may notify from worker threads; hand messages to the loop
    def send(message: dict) -> None:
        loop.call_soon_threadsafe(outbox.put_nowait, message)

    connection_id = registry.connect(user_id, send)
    sender = asyncio.create_task(_pump(websocket, outbox))
    try:
        while True:
            try:
                message = await websocket.receive_json()
            except (ValueError, KeyError):
                logger.warning("Ignoring non-JSON frame on connection %s", connection_id)
                continue
            if isinstance(message, dict):
                _handle_client_message(registry, connection_id, message)
    except WebSocketDisconnect:
        pass
    finally:
        registry.disconnect(connection_id)
        sender.cancel()
        try:
            await sender
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("Notification sender for connection %s failed", connection_id)
