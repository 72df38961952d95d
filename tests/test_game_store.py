"""Tests for GameStore (typed repository) and TickSession staging."""

import pytest

from depths.errors import NotActiveError, NotFoundError, ValidationError
from depths.models import Enemy, Room
from depths.storage import StorageError, TickSession


# ── Characters ──────────────────────────────────────────


async def test_create_character_gets_starting_kit(store, content):
    hero = await store.create_character("Aldric", player_id="recplayer")
    assert hero.id.startswith("rec")
    assert len(hero.skills) == 32
    assert set(hero.skills.values()) == {0}
    assert hero.equipment == {"main_hand": "rusty_sword", "chest": "cloth_armor"}
    assert hero.inventory == ["health_potion"]
    assert (hero.current_hp, hero.max_hp) == (20, 20)
    assert (hero.current_energy, hero.max_energy) == (10, 10)
    assert (hero.x_position, hero.y_position) == (10, 5)
    assert hero.status == "active"


async def test_character_round_trips_through_json_text(store):
    hero = await store.create_character("Aldric", skills={"dodge": 4})
    raw = await store.records.get("characters", hero.id)
    assert raw["fields"]["skills"] == '{"dodge": 4}'
    assert (await store.get_character(hero.id)).skills == {"dodge": 4}


async def test_create_character_requires_name(store):
    with pytest.raises(ValidationError):
        await store.create_character("   ")


async def test_get_missing_character(store):
    assert await store.get_character("recmissing") is None


# ── Instances ───────────────────────────────────────────


async def test_create_instance_defaults(build_world):
    instance, party, _ = await build_world([Room(id="", name="Hall")])
    assert instance.current_tick == 1
    assert instance.current_room_index == 0
    assert instance.game_state == "active"
    assert instance.tick_interval == "1min"
    assert instance.characters == [party[0].id]
    assert instance.room_states == []


async def test_create_instance_unknown_dungeon(store):
    hero = await store.create_character("Aldric")
    with pytest.raises(NotFoundError):
        await store.create_instance("recnodungeon", [hero.id])


async def test_create_instance_unknown_character(build_world, store):
    _, _, dungeon = await build_world([Room(id="", name="Hall")])
    with pytest.raises(NotFoundError, match="recghost"):
        await store.create_instance(dungeon.id, ["recghost"])


async def test_room_enemies_round_trip(store):
    room = await store.create_room(Room(
        id="", name="Den", enemies=[Enemy(id="g1", name="Goblin", skills={"dodge": 2})],
    ))
    loaded = await store.get_room(room.id)
    assert loaded.enemies[0].name == "Goblin"
    assert loaded.enemies[0].skills == {"dodge": 2}


async def test_list_active_instances(build_world, store):
    instance, _, _ = await build_world([Room(id="", name="Hall")])
    await store.records.update("game_instances", instance.id, {"game_state": "completed"})
    other, _, _ = await build_world([Room(id="", name="Hall")])
    assert [i.id for i in await store.list_active_instances()] == [other.id]


# ── Commands ────────────────────────────────────────────


async def test_submit_command_uses_current_tick(build_world, store):
    instance, party, _ = await build_world([Room(id="", name="Hall")])
    await store.records.update("game_instances", instance.id, {"current_tick": 4})
    command = await store.submit_command(instance.id, party[0].id, "  attack  ")
    assert command.tick_number == 4
    assert command.raw_input == "attack"
    assert command.resolved_intent is None
    assert command.result is None


async def test_submit_command_rejects_outsiders(build_world, store):
    instance, _, _ = await build_world([Room(id="", name="Hall")])
    stranger = await store.create_character("Stranger")
    with pytest.raises(ValidationError):
        await store.submit_command(instance.id, stranger.id, "attack")


async def test_submit_command_rejects_inactive_instance(build_world, store):
    instance, party, _ = await build_world([Room(id="", name="Hall")])
    await store.records.update("game_instances", instance.id, {"game_state": "failed"})
    with pytest.raises(NotActiveError):
        await store.submit_command(instance.id, party[0].id, "attack")


async def test_get_tick_commands_filters_and_orders(build_world, store):
    instance, party, _ = await build_world([Room(id="", name="Hall")], party=("Ann", "Bo"))
    first = await store.submit_command(instance.id, party[1].id, "look")
    second = await store.submit_command(instance.id, party[0].id, "attack")
    await store.records.update("game_instances", instance.id, {"current_tick": 2})
    await store.submit_command(instance.id, party[0].id, "later")
    commands = await store.get_tick_commands(instance.id, 1)
    assert [c.id for c in commands] == [first.id, second.id]


# ── TickSession ─────────────────────────────────────────


async def test_session_stages_without_writing(store):
    hero = await store.create_character("Aldric")
    session = await TickSession.open(store, [hero.id])
    updated = session.update_character(hero.id, {"x_position": 3})
    assert updated.x_position == 3
    assert session.get_character(hero.id).x_position == 3
    assert (await store.get_character(hero.id)).x_position == 10
    assert [c.id for c in session.staged_characters] == [hero.id]


async def test_session_rejects_invalid_update(store):
    hero = await store.create_character("Aldric")
    session = await TickSession.open(store, [hero.id])
    with pytest.raises(StorageError):
        session.update_character(hero.id, {"current_hp": 99})
    assert session.staged_characters == []


async def test_session_unknown_character(store):
    session = await TickSession.open(store, [])
    with pytest.raises(StorageError):
        session.update_character("recghost", {"x_position": 1})
