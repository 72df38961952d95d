"""Game content: catalogs, rule constants, and narration templates.

A single ``GameContent`` value is built at startup and handed to the
scheduler and pipeline. Nothing in the resolution core reads catalogs from
module globals; swapping content (tests, other dungeons) means passing a
different object.

Overrides live in ``<data_dir>/content.json``. Dict-valued keys are merged
key-by-key over the defaults, scalars are overwritten.
"""

import json
import logging
from pathlib import Path
from typing import Any, Callable

from pydantic import BaseModel, Field, PrivateAttr

logger = logging.getLogger(__name__)

STARTING_SKILLS = [
    # Combat
    "swordsmanship", "archery", "axe_fighting", "unarmed_combat", "dual_wielding",
    # Magic
    "fire_magic", "ice_magic", "lightning_magic", "healing_magic", "arcane_magic",
    # Defensive
    "shield_use", "dodge", "armor_training", "parry",
    # Utility
    "lockpicking", "first_aid", "trap_disarm", "stealth",
    # Exploration
    "perception", "trap_detection", "navigation", "climbing",
    # Crafting
    "weaponsmithing", "alchemy", "armorsmithing", "enchanting",
    # Harvesting
    "mining", "herbalism", "skinning",
    # Refining
    "smelting", "herb_processing", "gem_cutting",
]

DEFAULT_NARRATION: dict[str, str] = {
    "attack.hit": "{{{character}}} attacks {{{target}}} with {{{skill skill_used}}}. Hit for {{damage}} damage!",
    "attack.critical": "{{{character}}} lands a critical hit on {{{target}}} for {{damage}} damage!",
    "attack.miss": "{{{character}}} swings at {{{target}}} but misses!",
    "attack.defeated": "{{{target}}} collapses.",
    "attack.no_target": "{{{character}}} looks for something to fight, but nothing stands in the way.",
    "skill.success": "{{{character}}} successfully uses {{{skill skill_id}}}!",
    "skill.failure": "{{{character}}} attempts to use {{{skill skill_id}}} but fails.",
    "skill.level_up": "{{{character}}}'s {{{skill skill_id}}} improves to level {{level}}!",
    "item.success": "{{{character}}} uses {{{item}}}.",
    "item.healing": "Restored {{amount}} HP.",
    "item.energy": "Restored {{amount}} energy.",
    "item.failure": "{{{character}}} doesn't have any usable items.",
    "move.success": "{{{character}}} moves {{direction}}.",
    "interact": "{{{character}}} examines the surroundings carefully. {{{description}}}",
    "unknown": "{{{message}}}",
    "unable": "{{{character}}} is in no state to act.",
    "error": "Something went wrong processing {{{character}}}'s action.",
    "enemy.hit": "{{{enemy}}} strikes {{{target}}} for {{damage}} damage!",
    "enemy.critical": "{{{enemy}}} lands a brutal blow on {{{target}}} for {{damage}} damage!",
    "enemy.miss": "{{{enemy}}} lunges at {{{target}}} but misses.",
    "enemy.knocked_out": "{{{target}}} falls unconscious!",
    "enemy.dead": "{{{target}}} has died.",
}

DEFAULT_INTENT_PROMPT = """You are a game command parser for a fantasy RPG. Given player input, return JSON:
{
  "intent": "attack/move/use_skill/use_item/interact",
  "target": "enemy_id or direction or item_id",
  "skill_suggested": "skill_id",
  "confidence": 0.0-1.0
}

Available skills: {{{skills}}}
Current enemies: {{{enemies}}}

Intent types:
- attack: Player wants to attack an enemy
- move: Player wants to move/reposition
- use_skill: Player wants to use a specific skill or ability
- use_item: Player wants to use an item from inventory
- interact: Player wants to examine, search, or interact with environment

Always suggest the most appropriate skill for the action. Return only valid JSON.

Player input: {{{input}}}
"""


class ItemEffect(BaseModel):
    name: str
    heal: int = 0
    energy: int = 0


class GameContent(BaseModel):
    """Catalogs and tunables consumed by the resolution core."""

    skills: list[str] = Field(default_factory=lambda: list(STARTING_SKILLS))
    weapons: dict[str, int] = Field(default_factory=lambda: {
        "rusty_sword": 1,
        "iron_sword": 3,
        "steel_sword": 5,
        "simple_bow": 2,
        "flaming_sword": 5,
    })
    armor: dict[str, int] = Field(default_factory=lambda: {
        "cloth_armor": 1,
        "leather_armor": 3,
        "iron_shield": 3,
    })
    items: dict[str, ItemEffect] = Field(default_factory=lambda: {
        "health_potion": ItemEffect(name="Health Potion", heal=15),
        "energy_potion": ItemEffect(name="Energy Potion", energy=10),
    })
    starting_equipment: dict[str, str] = Field(default_factory=lambda: {
        "main_hand": "rusty_sword",
        "chest": "cloth_armor",
    })
    starting_inventory: list[str] = Field(default_factory=lambda: ["health_potion"])

    default_attack_skill: str = "swordsmanship"
    default_check_skill: str = "perception"
    skill_check_dc: int = 16
    confidence_floor: float = 0.3
    enemy_phase: bool = True
    unknown_message: str = (
        "I don't understand that command. Try \"attack\", \"move\", \"use item\", or \"defend\"."
    )
    interact_descriptions: dict[str, str] = Field(default_factory=lambda: {
        "combat": "The air smells of blood and old iron.",
        "treasure": "Something glints among the rubble.",
        "event": "Strange markings cover the walls.",
        "trap": "Loose flagstones and thin wires cross the floor.",
        "rest": "A quiet alcove offers a moment of peace.",
        "boss": "A heavy presence fills the chamber.",
    })
    narration: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_NARRATION))
    intent_prompt: str = DEFAULT_INTENT_PROMPT

    _compiled: dict[str, Callable] = PrivateAttr(default_factory=dict)

    def weapon_damage(self, equipment: dict[str, str]) -> int:
        return self.weapons.get(equipment.get("main_hand", ""), 0)

    def armor_defense(self, equipment: dict[str, str]) -> int:
        return sum(self.armor.get(item, 0) for item in equipment.values())

    def template_cache(self) -> dict[str, Callable]:
        """Compiled-template cache owned by this content value."""
        return self._compiled


def load_content(path: Path | None = None) -> GameContent:
    """Build content from defaults merged with an optional JSON override file."""
    content = GameContent()
    if path is None or not path.is_file():
        return content
    stored: dict[str, Any] = json.loads(path.read_text())
    data = content.model_dump()
    for key, value in stored.items():
        if key not in data:
            logger.warning("Ignoring unknown content key %r in %s", key, path)
            continue
        if isinstance(data[key], dict) and isinstance(value, dict):
            data[key].update(value)
        else:
            data[key] = value
    return GameContent.model_validate(data)
