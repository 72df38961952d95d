"""One resolver per intent kind.

Every resolver has the same shape:

    resolver(ctx, instance, command, character, intent) -> (result, instance)

Resolvers never touch the record store. Character changes go through
``ctx.session.update_character`` (which may raise StorageError); enemy
changes are returned in the updated ``GameInstance`` value.
"""

import logging
import random
from dataclasses import dataclass

from depths import combat
from depths.content import GameContent
from depths.models import (
    AttackResult,
    Character,
    Command,
    Enemy,
    GameInstance,
    InteractResult,
    Intent,
    ItemUseResult,
    Modifiers,
    MoveResult,
    Room,
    SkillCheckResult,
    UnknownResult,
)
from depths.storage import TickSession

logger = logging.getLogger(__name__)

DIRECTIONS: dict[str, tuple[int, int]] = {
    "north": (0, -1),
    "south": (0, 1),
    "east": (1, 0),
    "west": (-1, 0),
}


@dataclass
class ResolveContext:
    """Everything a resolver needs besides the command itself."""

    room: Room
    session: TickSession
    content: GameContent
    rng: random.Random


def match_enemy(living: list[Enemy], target: str | None, raw_input: str) -> Enemy:
    """Pick the enemy a command aims at. Unmatched targets fall back to the first."""
    if target:
        wanted = target.lower()
        for enemy in living:
            if enemy.id.lower() == wanted or enemy.name.lower() == wanted:
                return enemy
    text = raw_input.lower()
    for enemy in living:
        if enemy.name.lower() in text:
            return enemy
    return living[0]


def _save_progress(ctx: ResolveContext, progressed: Character, leveled_up: bool) -> None:
    if leveled_up:
        ctx.session.save_character(progressed)


# ── attack ──────────────────────────────────────────────


def resolve_attack(
    ctx: ResolveContext,
    instance: GameInstance,
    command: Command,
    character: Character,
    intent: Intent,
) -> tuple[AttackResult, GameInstance]:
    skill_id = intent.skill_suggested or ctx.content.default_attack_skill
    state = instance.room_state(ctx.room.id)
    living = state.living_enemies() if state else []
    if not living:
        return AttackResult(success=False, skill_used=skill_id), instance

    target = match_enemy(living, intent.target, command.raw_input)
    resolution = combat.resolve_attack(
        character,
        target,
        skill_id,
        Modifiers(),
        Modifiers(),
        ctx.rng,
        weapon_damage=ctx.content.weapon_damage(character.equipment),
    )

    # Skills improve through use, hit or miss
    progressed, progress = combat.process_skill_progression(character, skill_id, ctx.rng)
    _save_progress(ctx, progressed, progress.leveled_up)

    target_hp = target.current_hp
    defeated = False
    if resolution.hit:
        wounded, outcome = combat.apply_damage(target, resolution.damage)
        target_hp = outcome.new_hp
        defeated = wounded.current_hp == 0
        enemies = [wounded if e.id == target.id else e for e in state.enemies]
        instance = instance.with_room_state(state.model_copy(update={"enemies": enemies}))
        logger.debug(
            "%s hit %s for %d (hp %d)", character.id, target.id, resolution.actual_damage, target_hp
        )

    return AttackResult(
        success=resolution.hit,
        target_id=target.id,
        target=target.name,
        skill_used=skill_id,
        attack=resolution,
        damage=resolution.actual_damage,
        target_hp=target_hp,
        target_defeated=defeated,
        skill_progress=progress,
    ), instance


# ── move ────────────────────────────────────────────────


def resolve_move(
    ctx: ResolveContext,
    instance: GameInstance,
    command: Command,
    character: Character,
    intent: Intent,
) -> tuple[MoveResult, GameInstance]:
    direction = (intent.target or "").lower()
    if direction not in DIRECTIONS:
        direction = ctx.rng.choice(list(DIRECTIONS))
    dx, dy = DIRECTIONS[direction]

    room = ctx.room
    new_x = min(max(character.x_position + dx, 1), room.width - 2)
    new_y = min(max(character.y_position + dy, 1), room.height - 2)
    ctx.session.update_character(character.id, {"x_position": new_x, "y_position": new_y})

    return MoveResult(
        success=True,
        direction=direction,
        old_position={"x": character.x_position, "y": character.y_position},
        new_position={"x": new_x, "y": new_y},
    ), instance


# ── use_skill ───────────────────────────────────────────


def resolve_use_skill(
    ctx: ResolveContext,
    instance: GameInstance,
    command: Command,
    character: Character,
    intent: Intent,
) -> tuple[SkillCheckResult, GameInstance]:
    skill_id = intent.skill_suggested or ctx.content.default_check_skill
    roll = combat.roll_die(ctx.rng)
    total = roll + character.skill(skill_id)
    dc = ctx.content.skill_check_dc

    progressed, progress = combat.process_skill_progression(character, skill_id, ctx.rng)
    _save_progress(ctx, progressed, progress.leveled_up)

    return SkillCheckResult(
        success=total >= dc,
        skill_id=skill_id,
        roll=roll,
        total=total,
        dc=dc,
        skill_progress=progress,
    ), instance


# ── use_item ────────────────────────────────────────────


def _item_key(text: str) -> str:
    return "_".join(text.lower().replace("_", " ").split())


def _pick_item(character: Character, wanted: str | None, content: GameContent) -> str | None:
    """Item to use: the one named by id or display name, else the first usable one.

    Naming a known item the character doesn't carry picks nothing.
    """
    if wanted:
        key = _item_key(wanted)
        for item_id, effect in content.items.items():
            if key in (_item_key(item_id), _item_key(effect.name)):
                return item_id if item_id in character.inventory else None
    for item_id in character.inventory:
        if item_id in content.items:
            return item_id
    return None


def resolve_use_item(
    ctx: ResolveContext,
    instance: GameInstance,
    command: Command,
    character: Character,
    intent: Intent,
) -> tuple[ItemUseResult, GameInstance]:
    item_id = _pick_item(character, intent.target, ctx.content)
    if item_id is None:
        return ItemUseResult(success=False, item=intent.target), instance

    effect = ctx.content.items[item_id]
    updated = character
    healing = None
    if effect.heal:
        updated, healing = combat.apply_healing(updated, effect.heal)
    restored = 0
    if effect.energy:
        updated, restored = combat.restore_energy(updated, effect.energy)

    inventory = list(character.inventory)
    inventory.remove(item_id)
    ctx.session.update_character(character.id, {
        "inventory": inventory,
        "current_hp": updated.current_hp,
        "current_energy": updated.current_energy,
    })

    return ItemUseResult(
        success=True,
        item=item_id,
        healing=healing,
        energy_restored=restored,
    ), instance


# ── interact ────────────────────────────────────────────


def resolve_interact(
    ctx: ResolveContext,
    instance: GameInstance,
    command: Command,
    character: Character,
    intent: Intent,
) -> tuple[InteractResult, GameInstance]:
    description = ctx.content.interact_descriptions.get(ctx.room.room_type, "")
    return InteractResult(success=True, description=description), instance


# ── unknown ─────────────────────────────────────────────


def resolve_unknown(
    ctx: ResolveContext,
    instance: GameInstance,
    command: Command,
    character: Character,
    intent: Intent,
) -> tuple[UnknownResult, GameInstance]:
    return UnknownResult(
        success=False,
        command=command.raw_input,
        message=ctx.content.unknown_message,
    ), instance
