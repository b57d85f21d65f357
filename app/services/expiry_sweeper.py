import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from app.core.clock import Clock
from app.core.exceptions import Conflict, IllegalTransition, StoreUnavailable
from app.db.record_store import BookingFilter, Page, RecordStore
from app.schemas.booking import BookingStatus
from app.services.booking_lifecycle import BookingLifecycleManager

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    scanned: int = 0
    expired: int = 0
    skipped: int = 0
    ran: bool = True


class ExpirySweeper:
    """
    Background task: cancel confirmed bookings whose arrival window closed
    without a verification.

    Each tick handles at most `batch_size` bookings, oldest deadline first,
    through the lifecycle manager's own expire transition. A booking another
    actor already moved on is skipped. Ticks never overlap; a failing tick is
    logged and the loop carries on at the next interval.
    """

    def __init__(
        self,
        store: RecordStore,
        lifecycle: BookingLifecycleManager,
        clock: Clock,
        interval_seconds: float = 60.0,
        batch_size: int = 200,
    ):
        self.store = store
        self.lifecycle = lifecycle
        self.clock = clock
        self.interval_seconds = interval_seconds
        self.batch_size = batch_size
        self._tick_lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None

    async def run_once(self) -> SweepResult:
        if self._tick_lock.locked():
            logger.info("Expiry sweep already in progress; skipping this tick.")
            return SweepResult(ran=False)

        async with self._tick_lock:
            now = self.clock.now()
            expired = await self.store.find(
                BookingFilter(
                    statuses=frozenset({BookingStatus.CONFIRMED.value}),
                    verified=False,
                    deadline_before=now,
                ),
                Page(limit=self.batch_size, order_by=["arrival_deadline"]),
            )

            result = SweepResult(scanned=len(expired))
            for booking in expired:
                try:
                    await self.lifecycle.expire(booking)
                    result.expired += 1
                except (Conflict, IllegalTransition):
                    logger.debug("Booking %s already moved on; skipping.", booking.booking_id)
                    result.skipped += 1

            if result.expired:
                logger.info("Expired %d booking(s) past their arrival deadline.", result.expired)
            return result

    async def run_forever(self) -> None:
        while True:
            try:
                await self.run_once()
            except StoreUnavailable:
                logger.warning("Expiry sweep skipped: booking store unavailable. Retrying next interval.")
            except Exception:
                logger.exception("Error during expiry sweep.")
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run_forever(), name="expiry-sweeper")
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
