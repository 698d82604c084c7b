"""
Risk Poller
Re-runs the risk aggregation (and appointment housekeeping) on a fixed
interval while the service is up. The aggregation itself does not know it
is being polled; on-demand refreshes call the same aggregator.
"""

import asyncio
import logging
from typing import Optional

from .appointments import sync_appointment_statuses
from .data_gateway import DataGateway
from .risk_aggregator import RiskAggregator
from .staff_notifications import sync_upcoming_reminders

logger = logging.getLogger(__name__)


class RiskPoller:

    def __init__(self, gateway: DataGateway, aggregator: RiskAggregator,
                 interval_sec: float, reminder_window_days: int = 3):
        self.gateway = gateway
        self.aggregator = aggregator
        self.interval_sec = interval_sec
        self.reminder_window_days = reminder_window_days
        self.ticks = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def tick(self) -> None:
        """One polling round. Failures are logged; the next round still runs."""
        self.ticks += 1
        try:
            await self.aggregator.run()
            await sync_appointment_statuses(self.gateway)
            await sync_upcoming_reminders(self.gateway, window_days=self.reminder_window_days)
        except Exception as e:
            logger.error(f"Polling round {self.ticks} failed: {e}", exc_info=True)

    async def _loop(self) -> None:
        while True:
            await self.tick()
            await asyncio.sleep(self.interval_sec)

    def start(self) -> None:
        if self.interval_sec <= 0:
            logger.info("Risk polling disabled")
            return
        if self.running:
            return
        logger.info(f"Risk polling every {self.interval_sec}s")
        self._task = asyncio.get_running_loop().create_task(self._loop())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Risk polling stopped")
