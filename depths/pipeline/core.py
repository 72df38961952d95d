"""Command dispatch: interpret a command, run its resolver, narrate the result."""

import logging
from collections.abc import Callable

from depths.intent import IntentService
from depths.models import (
    ActionResultBase,
    AttackResult,
    Command,
    EnemyRef,
    GameInstance,
    InteractResult,
    Intent,
    IntentKind,
    IntentRequest,
    ItemUseResult,
    MoveResult,
    SkillCheckResult,
    UnknownResult,
)
from depths.narration import narrate, render
from depths.storage import StorageError

from . import handlers
from .handlers import ResolveContext

logger = logging.getLogger(__name__)

Resolver = Callable[..., tuple[ActionResultBase, GameInstance]]

RESOLVERS: dict[IntentKind, Resolver] = {
    IntentKind.ATTACK: handlers.resolve_attack,
    IntentKind.MOVE: handlers.resolve_move,
    IntentKind.USE_SKILL: handlers.resolve_use_skill,
    IntentKind.USE_ITEM: handlers.resolve_use_item,
    IntentKind.INTERACT: handlers.resolve_interact,
    IntentKind.UNKNOWN: handlers.resolve_unknown,
}

RESULT_TYPES: dict[IntentKind, type[ActionResultBase]] = {
    IntentKind.ATTACK: AttackResult,
    IntentKind.MOVE: MoveResult,
    IntentKind.USE_SKILL: SkillCheckResult,
    IntentKind.USE_ITEM: ItemUseResult,
    IntentKind.INTERACT: InteractResult,
    IntentKind.UNKNOWN: UnknownResult,
}

for _table in (RESOLVERS, RESULT_TYPES):
    _missing = set(IntentKind) - set(_table)
    if _missing:
        raise ImportError(f"No resolver for intent kind(s): {sorted(k.value for k in _missing)}")


def effective_kind(intent: Intent, confidence_floor: float) -> IntentKind:
    """Intents below the confidence floor are treated as unknown."""
    if intent.confidence < confidence_floor:
        return IntentKind.UNKNOWN
    return intent.intent


def intent_request(command: Command, ctx: ResolveContext, instance: GameInstance) -> IntentRequest:
    character = ctx.session.get_character(command.character_id)
    state = instance.room_state(ctx.room.id)
    living = state.living_enemies() if state else []
    return IntentRequest(
        raw_input=command.raw_input,
        available_skills=list(character.skills) if character else [],
        visible_enemies=[EnemyRef(id=e.id, name=e.name) for e in living],
    )


async def resolve_command(
    command: Command,
    instance: GameInstance,
    ctx: ResolveContext,
    intents: IntentService,
) -> tuple[ActionResultBase, GameInstance, Intent | None]:
    """Resolve one command against the current instance value.

    Returns the narrated result, the (possibly) updated instance, and the
    intent the command was interpreted as (None if it never got that far).
    A storage failure yields a failed result for this character only.
    """
    character = ctx.session.get_character(command.character_id)
    if character is None:
        result = UnknownResult(
            character_id=command.character_id,
            command_id=command.id,
            command=command.raw_input,
            error=f"Character {command.character_id} not found",
        )
        result.narration = render(ctx.content, "error", character="Someone")
        return result, instance, None

    base = {"character_id": character.id, "character": character.name, "command_id": command.id}

    if character.status != "active":
        text = render(ctx.content, "unable", character=character.name)
        result = UnknownResult(**base, command=command.raw_input, message=text, narration=text)
        return result, instance, None

    intent = await intents.interpret(intent_request(command, ctx, instance))
    kind = effective_kind(intent, ctx.content.confidence_floor)

    savepoint = ctx.session.savepoint()
    try:
        result, instance = RESOLVERS[kind](ctx, instance, command, character, intent)
    except StorageError as e:
        logger.warning("Command %s (%s) failed to persist: %s", command.id, kind.value, e)
        ctx.session.rollback(savepoint)
        result = RESULT_TYPES[kind](error=str(e))

    result = result.model_copy(update=base)
    result.narration = narrate(result, ctx.content)
    return result, instance, intent
