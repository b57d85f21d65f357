import logging
from uuid import UUID

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.services.events import RestaurantRoomPublisher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/restaurants", tags=["Realtime"])


@router.websocket("/{restaurant_id}/events")
async def restaurant_events(websocket: WebSocket, restaurant_id: UUID):
    """
    Join a restaurant's room and receive its booking events
    (new-booking, booking-verified, booking-cancelled, ...).
    Messages sent by the client are ignored; the socket is receive-only.
    """
    publisher = websocket.app.state.services.publisher
    if not isinstance(publisher, RestaurantRoomPublisher):
        await websocket.close(code=1011)
        return

    topic = str(restaurant_id)
    await websocket.accept()
    await publisher.join(topic, websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("Socket disconnected from restaurant room %s", topic)
    finally:
        await publisher.leave(topic, websocket)
