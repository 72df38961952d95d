"""Core domain models.

Every stage of tick resolution operates on these types. Pydantic validates
them at each data boundary: record decoding, pipeline results, HTTP bodies.

Game state values are treated as immutable: stages return updated copies
(``model_copy(update=...)``) instead of mutating what they were given.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, field_validator, model_validator

CharacterStatus = Literal["active", "knocked_out", "dead"]
GameState = Literal["active", "completed", "failed"]
RoomType = Literal["combat", "treasure", "event", "trap", "rest", "boss"]
RoomStatus = Literal["in_progress", "cleared"]

MAX_SKILL_LEVEL = 100


def _check_skill_levels(skills: dict[str, int]) -> dict[str, int]:
    for skill_id, level in skills.items():
        if not 0 <= level <= MAX_SKILL_LEVEL:
            raise ValueError(f"Skill {skill_id!r} level {level} outside 0-{MAX_SKILL_LEVEL}")
    return skills


class Combatant(BaseModel):
    """Fields shared by everything that can roll dice and take damage."""

    id: str
    name: str
    current_hp: int = 20
    max_hp: int = 20
    skills: dict[str, int] = Field(default_factory=dict)
    status: CharacterStatus = "active"

    @field_validator("skills")
    @classmethod
    def _skills_in_range(cls, skills: dict[str, int]) -> dict[str, int]:
        return _check_skill_levels(skills)

    @model_validator(mode="after")
    def _hp_in_range(self) -> "Combatant":
        if self.max_hp < 0 or not 0 <= self.current_hp <= self.max_hp:
            raise ValueError(
                f"current_hp {self.current_hp} outside 0-{self.max_hp} for {self.id}"
            )
        return self

    def skill(self, skill_id: str | None) -> int:
        if not skill_id:
            return 0
        return self.skills.get(skill_id, 0)

    @property
    def is_standing(self) -> bool:
        return self.status == "active" and self.current_hp > 0


class Character(Combatant):
    """A player-controlled adventurer."""

    player_id: str | None = None
    current_energy: int = 10
    max_energy: int = 10
    equipment: dict[str, str] = Field(default_factory=dict)
    inventory: list[str] = Field(default_factory=list)
    x_position: int = 10
    y_position: int = 5


class Enemy(Combatant):
    """A monster. Lives inside a room's per-instance state."""

    current_hp: int = 10
    max_hp: int = 10
    weapon_damage: int = 1
    attack_skill: str = "swordsmanship"


# ---------------------------------------------------------------------------
# Dungeon content
# ---------------------------------------------------------------------------

class Room(BaseModel):
    id: str
    name: str = ""
    description: str = ""
    room_type: RoomType = "combat"
    width: int = 20
    height: int = 10
    ascii_layout: str = ""
    enemies: list[Enemy] = Field(default_factory=list)


class Dungeon(BaseModel):
    id: str
    name: str = ""
    description: str = ""
    room_sequence: list[str] = Field(default_factory=list)
    narration_style: str = "heroic"


class RoomState(BaseModel):
    """Per-instance state of a room the party has entered."""

    room_id: str
    enemies: list[Enemy] = Field(default_factory=list)
    cleared: bool = False

    def living_enemies(self) -> list[Enemy]:
        return [e for e in self.enemies if e.current_hp > 0]


class GameInstance(BaseModel):
    """One adventure attempt. Written only by the tick scheduler."""

    id: str
    dungeon_id: str
    characters: list[str] = Field(default_factory=list)
    tick_interval: str = "1min"
    current_tick: int = 1
    current_room_index: int = 0
    game_state: GameState = "active"
    room_states: list[RoomState] = Field(default_factory=list)
    last_activity: str | None = None

    def room_state(self, room_id: str) -> RoomState | None:
        for state in self.room_states:
            if state.room_id == room_id:
                return state
        return None

    def with_room_state(self, state: RoomState) -> "GameInstance":
        """Return a copy with ``state`` replacing (or appended as) its room's entry."""
        states = list(self.room_states)
        for i, existing in enumerate(states):
            if existing.room_id == state.room_id:
                states[i] = state
                break
        else:
            states.append(state)
        return self.model_copy(update={"room_states": states})


# ---------------------------------------------------------------------------
# Intents and commands
# ---------------------------------------------------------------------------

class IntentKind(str, Enum):
    """Closed set of things a command can mean."""

    ATTACK = "attack"
    MOVE = "move"
    USE_SKILL = "use_skill"
    USE_ITEM = "use_item"
    INTERACT = "interact"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: object) -> "IntentKind":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.UNKNOWN


class Intent(BaseModel):
    intent: IntentKind = IntentKind.UNKNOWN
    target: str | None = None
    skill_suggested: str | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    source: Literal["llm", "fallback"] = "fallback"


class EnemyRef(BaseModel):
    id: str
    name: str


class IntentRequest(BaseModel):
    raw_input: str
    available_skills: list[str] = Field(default_factory=list)
    visible_enemies: list[EnemyRef] = Field(default_factory=list)


class Command(BaseModel):
    id: str
    instance_id: str
    character_id: str
    tick_number: int
    raw_input: str
    resolved_intent: Intent | None = None
    result: dict | None = None
    submitted_at: str | None = None


# ---------------------------------------------------------------------------
# Combat engine outputs
# ---------------------------------------------------------------------------

class Modifiers(BaseModel):
    item: int = 0
    buffs: int = 0
    debuffs: int = 0
    ability: int = 0
    critical: bool = False


class RollResult(BaseModel):
    roll: int
    total: int
    critical: bool
    fumble: bool
    breakdown: dict[str, int] = Field(default_factory=dict)


class AttackResolution(BaseModel):
    hit: bool
    attack_roll: RollResult
    defense_roll: RollResult
    damage: int
    actual_damage: int
    critical: bool
    fumble: bool
    skill_used: str
    skill_level: int


class DamageOutcome(BaseModel):
    new_hp: int
    actual_damage: int
    knocked_out: bool
    died: bool


class HealingOutcome(BaseModel):
    new_hp: int
    actual_healing: int


class SkillProgress(BaseModel):
    skill_id: str
    leveled_up: bool
    old_level: int
    new_level: int


class InitiativeEntry(BaseModel):
    combatant_id: str
    roll: int
    initiative: int


# ---------------------------------------------------------------------------
# Action results: one tagged variant per intent
# ---------------------------------------------------------------------------

class ActionResultBase(BaseModel):
    character_id: str = ""
    character: str = ""
    command_id: str | None = None
    success: bool = False
    narration: str = ""
    error: str | None = None


class AttackResult(ActionResultBase):
    type: Literal["attack"] = "attack"
    target_id: str | None = None
    target: str | None = None
    skill_used: str = ""
    attack: AttackResolution | None = None
    damage: int = 0
    target_hp: int | None = None
    target_defeated: bool = False
    skill_progress: SkillProgress | None = None


class MoveResult(ActionResultBase):
    type: Literal["move"] = "move"
    direction: str | None = None
    old_position: dict[str, int] = Field(default_factory=dict)
    new_position: dict[str, int] = Field(default_factory=dict)


class SkillCheckResult(ActionResultBase):
    type: Literal["skill_check"] = "skill_check"
    skill_id: str = ""
    roll: int = 0
    total: int = 0
    dc: int = 16
    skill_progress: SkillProgress | None = None


class ItemUseResult(ActionResultBase):
    type: Literal["item_use"] = "item_use"
    item: str | None = None
    healing: HealingOutcome | None = None
    energy_restored: int = 0


class InteractResult(ActionResultBase):
    type: Literal["interact"] = "interact"
    description: str = ""


class UnknownResult(ActionResultBase):
    type: Literal["unknown"] = "unknown"
    command: str = ""
    message: str = ""


ActionResult = Annotated[
    Union[AttackResult, MoveResult, SkillCheckResult, ItemUseResult, InteractResult, UnknownResult],
    Field(discriminator="type"),
]


class EnemyAction(BaseModel):
    """An enemy's attack during the enemy phase of a tick."""

    enemy_id: str
    enemy: str
    target_id: str | None = None
    target: str | None = None
    attack: AttackResolution | None = None
    damage: int = 0
    target_status: CharacterStatus | None = None
    narration: str = ""
    error: str | None = None


# ---------------------------------------------------------------------------
# Tick outcomes
# ---------------------------------------------------------------------------

class CompletionVerdict(BaseModel):
    room_id: str | None = None
    room_status: RoomStatus = "in_progress"
    advance: bool = False
    completed: bool = False
    game_state: GameState = "active"
    current_room_index: int = 0
    reason: str = ""


class TickOutcome(BaseModel):
    success: Literal[True] = True
    instance_id: str
    tick: int
    results: list[ActionResult] = Field(default_factory=list)
    enemy_actions: list[EnemyAction] = Field(default_factory=list)
    next_tick: int
    room_status: CompletionVerdict


class WaitingOutcome(BaseModel):
    success: Literal[False] = False
    instance_id: str
    tick: int
    submitted: int
    expected: int
    message: str = "Waiting for more players"
