"""Background ticking for instances whose cadence has elapsed.

The runner polls active instances and forces a tick for every one whose
``tick_interval`` has passed since its ``last_activity``. It is optional:
ticks can also be driven entirely through POST /api/tick.
"""

import asyncio
import logging
import re
from datetime import datetime, timedelta, timezone

from depths.errors import ConcurrencyConflict, GameError
from depths.models import GameInstance, TickOutcome
from depths.scheduler import TickScheduler
from depths.storage import StorageError

logger = logging.getLogger(__name__)

_UNITS = {
    "s": 1,
    "sec": 1,
    "min": 60,
    "m": 60,
    "hour": 3600,
    "h": 3600,
    "day": 86400,
    "d": 86400,
}

DEFAULT_INTERVAL = timedelta(minutes=1)


def parse_interval(text: str) -> timedelta:
    """"30s" → 30 seconds, "1min", "1hour", "1day". Raises ValueError."""
    match = re.fullmatch(r"\s*(\d+)\s*([a-z]+)\s*", text.lower())
    if not match or match.group(2) not in _UNITS:
        raise ValueError(f"Unrecognized tick interval: {text!r}")
    return timedelta(seconds=int(match.group(1)) * _UNITS[match.group(2)])


def _interval(instance: GameInstance) -> timedelta:
    try:
        return parse_interval(instance.tick_interval)
    except ValueError as e:
        logger.warning("Instance %s: %s, using %s", instance.id, e, DEFAULT_INTERVAL)
        return DEFAULT_INTERVAL


def is_due(instance: GameInstance, now: datetime) -> bool:
    if not instance.last_activity:
        return True
    last = datetime.fromisoformat(instance.last_activity)
    if last.tzinfo is None:
        last = last.replace(tzinfo=timezone.utc)
    return now - last >= _interval(instance)


class TickRunner:
    def __init__(self, scheduler: TickScheduler, poll_interval: float = 15.0) -> None:
        self.scheduler = scheduler
        self.poll_interval = poll_interval
        self._task: asyncio.Task | None = None

    async def run_once(self, now: datetime | None = None) -> list[TickOutcome]:
        """Force one tick for every due instance. Conflicts are logged, not raised."""
        now = now or datetime.now(timezone.utc)
        outcomes: list[TickOutcome] = []
        for instance in await self.scheduler.store.list_active_instances():
            if not is_due(instance, now):
                continue
            try:
                outcome = await self.scheduler.process_tick(instance.id, force=True)
            except ConcurrencyConflict:
                logger.info("Instance %s was ticked elsewhere", instance.id)
                continue
            except GameError as e:
                logger.warning("Auto-tick for %s failed: %s", instance.id, e)
                continue
            if isinstance(outcome, TickOutcome):
                outcomes.append(outcome)
        return outcomes

    async def _loop(self) -> None:
        while True:
            try:
                await self.run_once()
            except StorageError as e:
                logger.error("Tick runner pass failed: %s", e)
            await asyncio.sleep(self.poll_interval)

    def start(self) -> None:
        if self._task is None:
            logger.info("Tick runner started (poll every %ss)", self.poll_interval)
            self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Tick runner stopped")
