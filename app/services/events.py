"""
Real-time booking events.

Staff dashboards and the customer seat map join a per-restaurant room over a
WebSocket; every lifecycle change is pushed to that room as
`{"event": ..., "data": {...}}`. Delivery is best-effort: a dead socket is
dropped from its room and the booking operation carries on.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Any, Dict, Protocol, Set

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

logger = logging.getLogger(__name__)

NEW_BOOKING = "new-booking"
BOOKING_VERIFIED = "booking-verified"
BOOKING_CANCELLED = "booking-cancelled"
BOOKING_NO_SHOW = "booking-no-show"
BOOKING_COMPLETED = "booking-completed"


class EventPublisher(Protocol):
    async def publish(self, topic: str, event_name: str, payload: Dict[str, Any]) -> None:
        """Fire-and-forget; implementations must not raise."""
        ...


class NullPublisher:
    async def publish(self, topic: str, event_name: str, payload: Dict[str, Any]) -> None:
        logger.debug("Dropping event %s for %s", event_name, topic)


class RestaurantRoomPublisher:
    """Groups WebSocket connections by restaurant id and fans events out to them."""

    def __init__(self):
        self.rooms: Dict[str, Set[WebSocket]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def join(self, topic: str, websocket: WebSocket) -> None:
        async with self._lock:
            self.rooms[topic].add(websocket)
        logger.info("Socket joined restaurant room %s (%d in room)", topic, len(self.rooms[topic]))

    async def leave(self, topic: str, websocket: WebSocket) -> None:
        async with self._lock:
            room = self.rooms.get(topic)
            if room is None:
                return
            room.discard(websocket)
            if not room:
                del self.rooms[topic]
        logger.info("Socket left restaurant room %s", topic)

    async def publish(self, topic: str, event_name: str, payload: Dict[str, Any]) -> None:
        async with self._lock:
            members = list(self.rooms.get(topic, ()))
        if not members:
            return

        message = {"event": event_name, "data": jsonable_encoder(payload)}
        dead = []
        for websocket in members:
            try:
                await websocket.send_json(message)
            except Exception:
                # Closed or broken socket: drop it, keep delivering to the rest
                logger.warning("Dropping socket from room %s after failed send", topic, exc_info=True)
                dead.append(websocket)
        for websocket in dead:
            await self.leave(topic, websocket)
