"""Tests for depths.runner — interval parsing and background tick passes."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest

from depths.errors import ConcurrencyConflict
from depths.models import GameInstance, Room
from depths.runner import TickRunner, is_due, parse_interval


@pytest.mark.parametrize("text,seconds", [
    ("30s", 30),
    ("1min", 60),
    ("1hour", 3600),
    ("1day", 86400),
    ("5 min", 300),
])
def test_parse_interval(text, seconds):
    assert parse_interval(text) == timedelta(seconds=seconds)


@pytest.mark.parametrize("text", ["", "soon", "10 fortnights"])
def test_parse_interval_rejects_garbage(text):
    with pytest.raises(ValueError):
        parse_interval(text)


def test_is_due():
    now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
    fresh = GameInstance(id="i", dungeon_id="d", last_activity=(now - timedelta(seconds=20)).isoformat())
    stale = fresh.model_copy(update={"last_activity": (now - timedelta(minutes=2)).isoformat()})
    never = fresh.model_copy(update={"last_activity": None})
    odd = stale.model_copy(update={"tick_interval": "whenever"})
    assert not is_due(fresh, now)
    assert is_due(stale, now)
    assert is_due(never, now)
    assert is_due(odd, now)


async def test_run_once_forces_due_instances(make_scheduler, build_world, scripted):
    instance, _, _ = await build_world([Room(id=""), Room(id="")], tick_interval="30s")
    runner = TickRunner(make_scheduler(rng=scripted()))
    later = datetime.now(timezone.utc) + timedelta(minutes=1)

    outcomes = await runner.run_once(now=later)

    assert [o.instance_id for o in outcomes] == [instance.id]
    assert outcomes[0].next_tick == 2


async def test_run_once_skips_instances_not_due(make_scheduler, build_world):
    await build_world([Room(id="")], tick_interval="1day")
    runner = TickRunner(make_scheduler())
    assert await runner.run_once() == []


async def test_run_once_swallows_conflicts(make_scheduler, build_world):
    await build_world([Room(id="")], tick_interval="30s")
    scheduler = make_scheduler()
    runner = TickRunner(scheduler)
    later = datetime.now(timezone.utc) + timedelta(minutes=1)
    with patch.object(scheduler, "process_tick", AsyncMock(side_effect=ConcurrencyConflict("lost"))):
        assert await runner.run_once(now=later) == []


async def test_start_and_stop(make_scheduler):
    runner = TickRunner(make_scheduler(), poll_interval=60)
    runner.start()
    await runner.stop()
    assert runner._task is None
