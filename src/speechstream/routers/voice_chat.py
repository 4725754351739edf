import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from speechstream.services.voice_session import VoiceConnectionManager

router = APIRouter(tags=["Voice Chat"])
logger = logging.getLogger(__name__)


async def handle_connection(websocket: WebSocket, manager: VoiceConnectionManager):
    """
    Main loop for a single client's WebSocket connection.

    Each inbound frame is dispatched to the client's ConnectionSession; turns
    run as background tasks so a "stop" frame can arrive while audio for the
    current turn is still being produced.
    """
    session = await manager.connect(websocket)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(code=message.get("code", status.WS_1000_NORMAL_CLOSURE))

            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes") or b""
            await session.handle_raw(raw)

    except WebSocketDisconnect:
        logger.info(f"Client {session.connection_id} disconnected")
    except Exception as e:
        logger.error(f"Unexpected error for {session.connection_id}: {e}", exc_info=True)
    finally:
        await manager.disconnect(session.connection_id)


@router.websocket("/ws")
@router.websocket("/api/voice/chat")
async def voice_chat(websocket: WebSocket):
    manager = getattr(websocket.app.state, "voice_manager", None)
    if manager is None:
        logger.error("Voice manager not initialized")
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR, reason="Server not ready")
        return

    await handle_connection(websocket, manager)
