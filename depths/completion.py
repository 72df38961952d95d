"""Room and dungeon completion.

Room lifecycle (per instance):

    in_progress ──(clear condition holds)──▶ cleared

Clear conditions by room type:
    combat, boss    every enemy is down (hp 0)
    treasure, event a successful interact this tick
    trap            a successful skill check this tick
    rest            the party spends one resolved tick in the room

Any room that still has living enemies is not cleared, whatever its type.
Clearing the current room advances ``current_room_index``; clearing the
last room completes the dungeon. A party in which every participant is dead
fails the instance, and that verdict wins over any room advance.
"""

import logging
from collections.abc import Sequence

from depths.models import (
    ActionResultBase,
    Character,
    CompletionVerdict,
    Dungeon,
    GameInstance,
    InteractResult,
    Room,
    RoomState,
    SkillCheckResult,
)

logger = logging.getLogger(__name__)


def enter_room(instance: GameInstance, room: Room) -> GameInstance:
    """Seed per-instance state for ``room`` from its template, if not seeded yet."""
    if instance.room_state(room.id) is not None:
        return instance
    state = RoomState(room_id=room.id, enemies=[e.model_copy() for e in room.enemies])
    return instance.with_room_state(state)


def _type_condition(room: Room, results: Sequence[ActionResultBase]) -> tuple[bool, str]:
    if room.room_type in ("combat", "boss"):
        return True, "all enemies defeated"
    if room.room_type in ("treasure", "event"):
        met = any(isinstance(r, InteractResult) and r.success for r in results)
        return met, "room explored"
    if room.room_type == "trap":
        met = any(isinstance(r, SkillCheckResult) and r.success for r in results)
        return met, "trap overcome"
    # rest: evaluated after a resolved tick, so the party has rested
    return True, "party rested"


def evaluate_completion(
    instance: GameInstance,
    dungeon: Dungeon,
    room: Room,
    party: Sequence[Character],
    results: Sequence[ActionResultBase],
) -> tuple[GameInstance, CompletionVerdict]:
    """Decide the room's status and fold any advance or end state into the instance."""
    if party and all(c.status == "dead" for c in party):
        logger.info("Instance %s failed: party wiped in room %s", instance.id, room.id)
        instance = instance.model_copy(update={"game_state": "failed"})
        return instance, CompletionVerdict(
            room_id=room.id,
            game_state="failed",
            current_room_index=instance.current_room_index,
            reason="party defeated",
        )

    state = instance.room_state(room.id) or RoomState(room_id=room.id)
    if state.cleared:
        # Only the final room of a completed dungeon stays current once cleared
        return instance, CompletionVerdict(
            room_id=room.id,
            room_status="cleared",
            game_state=instance.game_state,
            current_room_index=instance.current_room_index,
        )

    if state.living_enemies():
        return instance, CompletionVerdict(
            room_id=room.id,
            game_state=instance.game_state,
            current_room_index=instance.current_room_index,
            reason="enemies remain",
        )
    met, reason = _type_condition(room, results)
    if not met:
        return instance, CompletionVerdict(
            room_id=room.id,
            game_state=instance.game_state,
            current_room_index=instance.current_room_index,
        )

    instance = instance.with_room_state(state.model_copy(update={"cleared": True}))
    next_index = instance.current_room_index + 1
    if next_index >= len(dungeon.room_sequence):
        logger.info("Instance %s completed dungeon %s", instance.id, dungeon.id)
        instance = instance.model_copy(update={"game_state": "completed"})
        return instance, CompletionVerdict(
            room_id=room.id,
            room_status="cleared",
            completed=True,
            game_state="completed",
            current_room_index=instance.current_room_index,
            reason=reason,
        )

    logger.info("Instance %s cleared room %s, advancing to %d", instance.id, room.id, next_index)
    instance = instance.model_copy(update={"current_room_index": next_index})
    return instance, CompletionVerdict(
        room_id=room.id,
        room_status="cleared",
        advance=True,
        game_state="active",
        current_room_index=next_index,
        reason=reason,
    )
