from fastapi import APIRouter, WebSocket, WebSocketDisconnect
import logging

router = APIRouter(tags=["stream"])
logger = logging.getLogger(__name__)

@router.websocket("/ws/visualize")
async def visualize_websocket(websocket: WebSocket):
    """WebSocket endpoint: send a search request, receive derived-state snapshots."""
    relay = websocket.app.state.relay
    await relay.connect(websocket)

    try:
        while True:
            try:
                message = await websocket.receive_text()
                logger.debug(f"Received frontend message: {message[:200]}")
                await relay.handle_client_message(websocket, message)

            except WebSocketDisconnect:
                logger.info("Frontend WebSocket disconnected")
                break

    except Exception as e:
        logger.error(f"Frontend WebSocket error: {e}", exc_info=True)
    finally:
        await relay.disconnect(websocket)
