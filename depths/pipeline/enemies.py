"""Enemy phase: living enemies in the current room strike back after the party acts."""

import logging

from depths import combat
from depths.models import Character, EnemyAction, GameInstance, Modifiers
from depths.narration import narrate_enemy
from depths.storage import StorageError

from .handlers import ResolveContext

logger = logging.getLogger(__name__)


def _targets(party: list[Character]) -> list[Character]:
    active = [c for c in party if c.status == "active"]
    if active:
        return active
    return [c for c in party if c.status == "knocked_out"]


def run_enemy_phase(
    ctx: ResolveContext, instance: GameInstance
) -> tuple[GameInstance, list[EnemyAction]]:
    """Each living enemy attacks once, highest initiative first."""
    if not ctx.content.enemy_phase:
        return instance, []
    state = instance.room_state(ctx.room.id)
    living = state.living_enemies() if state else []
    if not living:
        return instance, []

    by_id = {e.id: e for e in living}
    actions: list[EnemyAction] = []
    for entry in combat.roll_initiative(living, ctx.rng):
        enemy = by_id[entry.combatant_id]
        targets = _targets(ctx.session.characters(instance.characters))
        if not targets:
            break
        target = ctx.rng.choice(targets)

        resolution = combat.resolve_attack(
            enemy,
            target,
            enemy.attack_skill,
            Modifiers(),
            Modifiers(item=ctx.content.armor_defense(target.equipment)),
            ctx.rng,
            weapon_damage=enemy.weapon_damage,
        )
        action = EnemyAction(
            enemy_id=enemy.id,
            enemy=enemy.name,
            target_id=target.id,
            target=target.name,
            attack=resolution,
            target_status=target.status,
        )
        if resolution.hit:
            wounded, outcome = combat.apply_damage(target, resolution.damage)
            try:
                ctx.session.update_character(
                    target.id, {"current_hp": wounded.current_hp, "status": wounded.status}
                )
            except StorageError as e:
                logger.warning("Enemy %s hit on %s not staged: %s", enemy.id, target.id, e)
                action.error = str(e)
            else:
                action.damage = outcome.actual_damage
                action.target_status = wounded.status
        action.narration = narrate_enemy(action, ctx.content)
        actions.append(action)
    return instance, actions
