import asyncio
import random

import pytest

from depths.content import GameContent
from depths.intent import IntentService
from depths.models import Character, Dungeon, GameInstance, Room
from depths.scheduler import TickScheduler
from depths.storage import GameStore, JsonRecordStore


class ScriptedRandom(random.Random):
    """random.Random with scripted d20 results and progression draws.

    ``dice`` feed ``randint`` in order, ``draws`` feed ``random()``. Once a
    script runs out the defaults apply: a die of 10 and a draw of 0.99 (no
    skill ever levels up). ``choice`` always picks the first element.
    """

    def __init__(self, dice=(), draws=(), default_die=10, default_draw=0.99):
        super().__init__(0)
        self.dice = list(dice)
        self.draws = list(draws)
        self.default_die = default_die
        self.default_draw = default_draw

    def randint(self, a, b):
        value = self.dice.pop(0) if self.dice else self.default_die
        assert a <= value <= b, f"scripted die {value} outside {a}-{b}"
        return value

    def random(self):
        return self.draws.pop(0) if self.draws else self.default_draw

    def choice(self, seq):
        return seq[0]


class YieldingLLM:
    """LLM stub that suspends once per call, then returns a canned reply."""

    def __init__(self, reply: str = "not json"):
        self.reply = reply
        self.calls: list[tuple[str, str]] = []

    async def __call__(self, stage: str, prompt: str) -> str:
        self.calls.append((stage, prompt))
        await asyncio.sleep(0)
        return self.reply


@pytest.fixture
def content():
    return GameContent()


@pytest.fixture
def store(tmp_path, content):
    """Fresh file-backed game store per test."""
    return GameStore(JsonRecordStore(tmp_path / "data"), content)


@pytest.fixture
def scripted():
    return ScriptedRandom


@pytest.fixture
def make_scheduler(store, content):
    def _make(rng=None, llm=None, tick_timeout=None):
        return TickScheduler(
            store,
            IntentService(llm, content),
            content,
            rng_factory=(lambda: rng) if rng is not None else None,
            tick_timeout=tick_timeout,
        )
    return _make


@pytest.fixture
def build_world(store):
    """Create rooms, a dungeon, a party and an instance in one call.

    Returns (instance, party, dungeon). ``party`` entries are names or
    dicts of character overrides (must include "name").
    """
    async def _build(
        rooms: list[Room], party=("Aldric",), tick_interval="1min"
    ) -> tuple[GameInstance, list[Character], Dungeon]:
        room_ids = [(await store.create_room(room)).id for room in rooms]
        dungeon = await store.create_dungeon(Dungeon(id="", name="Test Depths", room_sequence=room_ids))
        characters = []
        for member in party:
            overrides = dict(member) if isinstance(member, dict) else {"name": member}
            name = overrides.pop("name")
            characters.append(await store.create_character(name, **overrides))
        instance = await store.create_instance(
            dungeon.id, [c.id for c in characters], tick_interval=tick_interval
        )
        return instance, characters, dungeon
    return _build
