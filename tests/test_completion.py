"""Tests for depths.completion — room clear conditions and dungeon end states."""

import pytest

from depths.completion import enter_room, evaluate_completion
from depths.models import (
    Character,
    Dungeon,
    Enemy,
    GameInstance,
    InteractResult,
    Room,
    RoomState,
    SkillCheckResult,
)

DUNGEON = Dungeon(id="d1", room_sequence=["r1", "r2"])


def _instance(index=0, states=()) -> GameInstance:
    return GameInstance(
        id="i1", dungeon_id="d1", characters=["c1"],
        current_room_index=index, room_states=list(states),
    )


def _party(*statuses) -> list[Character]:
    return [
        Character(id=f"c{i}", name=f"Hero {i}", current_hp=0 if s != "active" else 20, status=s)
        for i, s in enumerate(statuses or ("active",))
    ]


def _room(room_type="combat", room_id="r1", enemies=()) -> Room:
    return Room(id=room_id, room_type=room_type, enemies=list(enemies))


def test_enter_room_seeds_enemies_once():
    room = _room(enemies=[Enemy(id="g1", name="Goblin")])
    instance = enter_room(_instance(), room)
    assert instance.room_state("r1").enemies[0].id == "g1"

    wounded = instance.room_state("r1").model_copy(
        update={"enemies": [Enemy(id="g1", name="Goblin", current_hp=3)]}
    )
    instance = instance.with_room_state(wounded)
    assert enter_room(instance, room).room_state("r1").enemies[0].current_hp == 3


def test_combat_room_with_living_enemies_stays_in_progress():
    room = _room(enemies=[Enemy(id="g1", name="Goblin")])
    instance = enter_room(_instance(), room)
    instance, verdict = evaluate_completion(instance, DUNGEON, room, _party(), [])
    assert verdict.room_status == "in_progress"
    assert not verdict.advance
    assert verdict.reason == "enemies remain"
    assert instance.current_room_index == 0


def test_combat_room_cleared_advances():
    dead = Enemy(id="g1", name="Goblin", current_hp=0, status="knocked_out")
    instance = _instance(states=[RoomState(room_id="r1", enemies=[dead])])
    instance, verdict = evaluate_completion(instance, DUNGEON, _room(), _party(), [])
    assert verdict.room_status == "cleared"
    assert verdict.advance
    assert instance.current_room_index == 1
    assert instance.room_state("r1").cleared
    assert instance.game_state == "active"


def test_last_room_cleared_completes_dungeon():
    room = _room(room_type="boss", room_id="r2")
    instance = _instance(index=1, states=[RoomState(room_id="r2")])
    instance, verdict = evaluate_completion(instance, DUNGEON, room, _party(), [])
    assert verdict.completed
    assert instance.game_state == "completed"
    assert instance.current_room_index == 1


@pytest.mark.parametrize("room_type,results,cleared", [
    ("treasure", [], False),
    ("treasure", [InteractResult(success=True)], True),
    ("event", [InteractResult(success=True)], True),
    ("trap", [InteractResult(success=True)], False),
    ("trap", [SkillCheckResult(success=False)], False),
    ("trap", [SkillCheckResult(success=True)], True),
    ("rest", [], True),
])
def test_non_combat_clear_conditions(room_type, results, cleared):
    room = _room(room_type=room_type)
    instance = enter_room(_instance(), room)
    _, verdict = evaluate_completion(instance, DUNGEON, room, _party(), results)
    assert (verdict.room_status == "cleared") is cleared


def test_non_combat_room_with_enemies_needs_them_defeated():
    room = _room(room_type="treasure", enemies=[Enemy(id="g1", name="Goblin")])
    instance = enter_room(_instance(), room)
    _, verdict = evaluate_completion(
        instance, DUNGEON, room, _party(), [InteractResult(success=True)]
    )
    assert verdict.room_status == "in_progress"


def test_party_wipe_fails_instead_of_advancing():
    instance = _instance(states=[RoomState(room_id="r1")])
    instance, verdict = evaluate_completion(instance, DUNGEON, _room(), _party("dead"), [])
    assert instance.game_state == "failed"
    assert verdict.game_state == "failed"
    assert not verdict.advance
    assert instance.current_room_index == 0


def test_knocked_out_party_is_not_a_wipe():
    instance = _instance(states=[RoomState(room_id="r1")])
    instance, verdict = evaluate_completion(
        instance, DUNGEON, _room(), _party("knocked_out", "dead"), []
    )
    assert instance.game_state == "active"
    assert verdict.advance
