"""Combat resolution: d20 rolls, damage, health, and skill progression.

Pure functions. Randomness always comes from the ``rng`` argument so a tick
can be replayed with a seeded ``random.Random``; nothing here touches
storage or mutates its inputs. Functions that "change" a combatant return a
new value alongside a small outcome record.

Formulas:
  attack total  = d20 + skill + item + buffs - debuffs  (-5 extra at skill 0)
  defense skill = max(dodge, shield_use, parry)
  damage        = skill // 5 + weapon + ability, doubled on a natural 20, min 1
  progression   = 100 / (level + 10) percent chance per use, cap 100
  max_hp        = 20 + total_levels // 10
  max_energy    = 10 + total_levels // 20
  initiative    = d20 + perception // 10, highest first, ties keep input order
"""

from __future__ import annotations

import random
from typing import Iterable, TypeVar

from depths.models import (
    MAX_SKILL_LEVEL,
    AttackResolution,
    Character,
    Combatant,
    DamageOutcome,
    HealingOutcome,
    InitiativeEntry,
    Modifiers,
    RollResult,
    SkillProgress,
)

DIE_SIDES = 20
UNTRAINED_PENALTY = -5
DEFENSIVE_SKILLS = ("dodge", "shield_use", "parry")
BASE_HP = 20
BASE_ENERGY = 10

C = TypeVar("C", bound=Combatant)


def roll_die(rng: random.Random) -> int:
    return rng.randint(1, DIE_SIDES)


def attack_roll(
    skill_level: int, modifiers: Modifiers | None, rng: random.Random
) -> RollResult:
    mods = modifiers or Modifiers()
    roll = roll_die(rng)
    penalty = UNTRAINED_PENALTY if skill_level == 0 else 0
    total = roll + skill_level + mods.item + mods.buffs - mods.debuffs + penalty
    return RollResult(
        roll=roll,
        total=total,
        critical=roll == DIE_SIDES,
        fumble=roll == 1,
        breakdown={
            "base": roll,
            "skill": skill_level + penalty,
            "item": mods.item,
            "buffs": mods.buffs,
            "debuffs": -mods.debuffs,
        },
    )


def defense_skill(combatant: Combatant) -> int:
    return max(combatant.skill(s) for s in DEFENSIVE_SKILLS)


def defense_roll(
    combatant: Combatant, modifiers: Modifiers | None, rng: random.Random
) -> RollResult:
    return attack_roll(defense_skill(combatant), modifiers, rng)


def damage(skill_level: int, weapon_damage: int, modifiers: Modifiers | None = None) -> int:
    mods = modifiers or Modifiers()
    base = skill_level // 5 + weapon_damage + mods.ability
    if mods.critical:
        base *= 2
    return max(1, base)


def resolve_attack(
    attacker: Combatant,
    defender: Combatant,
    skill_id: str,
    attack_mods: Modifiers | None,
    defense_mods: Modifiers | None,
    rng: random.Random,
    weapon_damage: int = 0,
) -> AttackResolution:
    """Roll attack against defense and report what would happen.

    The defender is not modified; callers apply ``actual_damage`` with
    ``apply_damage`` as a separate step.
    """
    attack_mods = attack_mods or Modifiers()
    skill_level = attacker.skill(skill_id)
    attack = attack_roll(skill_level, attack_mods, rng)
    defense = defense_roll(defender, defense_mods, rng)

    hit = attack.total >= defense.total
    dealt = 0
    actual = 0
    if hit:
        dealt = damage(
            skill_level,
            weapon_damage,
            Modifiers(ability=attack_mods.ability, critical=attack.critical),
        )
        actual = min(dealt, max(0, defender.current_hp))

    return AttackResolution(
        hit=hit,
        attack_roll=attack,
        defense_roll=defense,
        damage=dealt,
        actual_damage=actual,
        critical=attack.critical,
        fumble=attack.fumble,
        skill_used=skill_id,
        skill_level=skill_level,
    )


def apply_damage(target: C, amount: int) -> tuple[C, DamageOutcome]:
    """Lower health, moving status active → knocked_out → dead on each drop to 0."""
    if amount <= 0 or target.status == "dead":
        return target, DamageOutcome(
            new_hp=target.current_hp, actual_damage=0, knocked_out=False, died=False
        )

    new_hp = max(0, target.current_hp - amount)
    status = target.status
    knocked_out = False
    died = False
    if new_hp == 0:
        if status == "active":
            status = "knocked_out"
            knocked_out = True
        else:
            status = "dead"
            died = True

    updated = target.model_copy(update={"current_hp": new_hp, "status": status})
    return updated, DamageOutcome(
        new_hp=new_hp,
        actual_damage=target.current_hp - new_hp,
        knocked_out=knocked_out,
        died=died,
    )


def apply_healing(target: C, amount: int) -> tuple[C, HealingOutcome]:
    """Raise health up to the maximum. Status is never changed."""
    if amount <= 0 or target.status == "dead":
        return target, HealingOutcome(new_hp=target.current_hp, actual_healing=0)
    new_hp = min(target.max_hp, target.current_hp + amount)
    updated = target.model_copy(update={"current_hp": new_hp})
    return updated, HealingOutcome(
        new_hp=new_hp, actual_healing=new_hp - target.current_hp
    )


def progression_chance(level: int) -> float:
    """Percent chance that using a skill at ``level`` raises it."""
    return 100 / (level + 10)


def process_skill_progression(
    character: Character, skill_id: str, rng: random.Random
) -> tuple[Character, SkillProgress]:
    old_level = character.skill(skill_id)
    draw = rng.random() * 100
    if draw >= progression_chance(old_level) or old_level >= MAX_SKILL_LEVEL:
        return character, SkillProgress(
            skill_id=skill_id, leveled_up=False, old_level=old_level, new_level=old_level
        )

    new_level = min(old_level + 1, MAX_SKILL_LEVEL)
    skills = dict(character.skills)
    skills[skill_id] = new_level
    updated = with_derived_stats(character.model_copy(update={"skills": skills}))
    return updated, SkillProgress(
        skill_id=skill_id, leveled_up=True, old_level=old_level, new_level=new_level
    )


# ── Derived stats ───────────────────────────────────────


def total_level(skills: dict[str, int]) -> int:
    return sum(skills.values())


def max_hp_for(total: int) -> int:
    return BASE_HP + total // 10


def max_energy_for(total: int) -> int:
    return BASE_ENERGY + total // 20


def with_derived_stats(character: Character) -> Character:
    """Recompute health/energy ceilings from the current skill levels."""
    total = total_level(character.skills)
    max_hp = max_hp_for(total)
    max_energy = max_energy_for(total)
    return character.model_copy(update={
        "max_hp": max_hp,
        "max_energy": max_energy,
        "current_hp": min(character.current_hp, max_hp),
        "current_energy": min(character.current_energy, max_energy),
    })


# ── Energy ──────────────────────────────────────────────


def consume_energy(character: Character, cost: int) -> tuple[Character, bool]:
    if cost < 0 or character.current_energy < cost:
        return character, False
    return character.model_copy(update={"current_energy": character.current_energy - cost}), True


def restore_energy(character: Character, amount: int) -> tuple[Character, int]:
    ceiling = max_energy_for(total_level(character.skills))
    new_energy = max(
        character.current_energy,
        min(ceiling, character.current_energy + max(0, amount)),
    )
    restored = new_energy - character.current_energy
    return character.model_copy(update={"current_energy": new_energy}), restored


# ── Initiative ──────────────────────────────────────────


def roll_initiative(
    participants: Iterable[Combatant], rng: random.Random
) -> list[InitiativeEntry]:
    entries = []
    for participant in participants:
        roll = roll_die(rng)
        entries.append(InitiativeEntry(
            combatant_id=participant.id,
            roll=roll,
            initiative=roll + participant.skill("perception") // 10,
        ))
    # sorted() is stable, so equal initiatives keep submission order
    return sorted(entries, key=lambda e: e.initiative, reverse=True)
