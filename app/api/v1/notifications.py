import logging
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from app.events.websocket_hub import GLOBAL_TOPIC, is_valid_topic

router = APIRouter()
log = logging.getLogger(__name__)


@router.websocket("/ws")
async def notifications_socket(websocket: WebSocket, topics: str = Query(GLOBAL_TOPIC)):
    """
    Streams lifecycle notifications. ``topics`` is a comma-separated list,
    e.g. ``kitchen,orders`` or ``user:<driver id>``.
    """
    requested = [t.strip() for t in topics.split(",") if t.strip()]
    if not requested or not all(is_valid_topic(t) for t in requested):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    hub = websocket.app.state.hub
    await websocket.accept()
    await hub.subscribe(websocket, requested)
    log.info(f"Notification subscriber joined topics {requested}")
    try:
        while True:
            # Inbound frames are ignored; the loop only detects disconnects
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        await hub.unsubscribe(websocket)
        log.info(f"Notification subscriber left topics {requested}")
