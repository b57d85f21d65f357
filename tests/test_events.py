from datetime import date
from unittest.mock import AsyncMock

import pytest

from app.services.events import NEW_BOOKING, NullPublisher, RestaurantRoomPublisher


class TestRestaurantRoomPublisher:

    @pytest.mark.asyncio
    async def test_publish_reaches_only_its_room(self):
        publisher = RestaurantRoomPublisher()
        here, elsewhere = AsyncMock(), AsyncMock()
        await publisher.join("r1", here)
        await publisher.join("r2", elsewhere)

        await publisher.publish("r1", NEW_BOOKING, {"seat_number": "T1", "booking_date": date(2024, 6, 1)})

        here.send_json.assert_awaited_once_with(
            {"event": "new-booking", "data": {"seat_number": "T1", "booking_date": "2024-06-01"}}
        )
        elsewhere.send_json.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_dead_socket_is_dropped(self):
        publisher = RestaurantRoomPublisher()
        alive, dead = AsyncMock(), AsyncMock()
        dead.send_json.side_effect = RuntimeError("socket closed")
        await publisher.join("r1", alive)
        await publisher.join("r1", dead)

        await publisher.publish("r1", NEW_BOOKING, {})

        alive.send_json.assert_awaited_once()
        assert publisher.rooms["r1"] == {alive}

    @pytest.mark.asyncio
    async def test_empty_room_is_removed(self):
        publisher = RestaurantRoomPublisher()
        socket = AsyncMock()
        await publisher.join("r1", socket)
        await publisher.leave("r1", socket)

        assert "r1" not in publisher.rooms
        await publisher.leave("r1", socket)
        await publisher.publish("r1", NEW_BOOKING, {})


@pytest.mark.asyncio
async def test_null_publisher_accepts_anything():
    await NullPublisher().publish("r1", NEW_BOOKING, {"anything": object()})
