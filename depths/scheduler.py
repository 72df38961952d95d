"""Tick scheduler: one full resolution cycle for a game instance.

process_tick(instance_id, force):
  1. Validate the request, load the instance (not found / not active fail fast).
  2. Load the commands submitted for ``current_tick``.
  3. Without ``force``, return a WaitingOutcome until every participant has
     submitted. Nothing is written.
  4. Resolve commands in submission order. A character's first command in
     the tick is the one that counts; later ones are skipped. A command that
     blows up becomes a failed result and the tick carries on.
  5. Enemy phase.
  6. Advance ``current_tick`` and stamp ``last_activity``.
  7. Evaluate room / dungeon completion.
  8. Commit the instance, staged characters and command results in one
     batch guarded on the ``current_tick`` read in step 1.
  9. Close any command of the tick that was never resolved (skipped extras,
     late arrivals) with a failed result.

A failed command's staged character writes are rolled back before its
failure result is recorded. If another invocation committed first, the guard fails and the caller gets
ConcurrencyConflict with nothing written. The optional time budget wraps
the whole cycle, so a timeout also writes nothing.
"""

import asyncio
import logging
import random
from collections.abc import Callable

from depths.completion import enter_room, evaluate_completion
from depths.content import GameContent
from depths.errors import (
    ConcurrencyConflict,
    GameError,
    NotActiveError,
    NotFoundError,
    TickTimeout,
    UnexpectedError,
    ValidationError,
)
from depths.intent import IntentService
from depths.models import ActionResultBase, TickOutcome, UnknownResult, WaitingOutcome
from depths.narration import render
from depths.pipeline import ResolveContext, resolve_command, run_enemy_phase
from depths.storage import ConflictError, GameStore, StorageError, TickSession, utc_now

logger = logging.getLogger(__name__)


class TickScheduler:
    """Runs ticks for any instance in the store.

    Args:
        store:        Typed game storage.
        intents:      Intent interpretation service.
        content:      Catalogs, rule constants and narration templates.
        rng_factory:  Returns the random source for one tick. Defaults to a
                      fresh ``random.Random()`` per tick.
        tick_timeout: Seconds allowed per invocation, or None for no limit.
    """

    def __init__(
        self,
        store: GameStore,
        intents: IntentService,
        content: GameContent,
        rng_factory: Callable[[], random.Random] | None = None,
        tick_timeout: float | None = None,
    ) -> None:
        self.store = store
        self.intents = intents
        self.content = content
        self._rng_factory = rng_factory or random.Random
        self.tick_timeout = tick_timeout

    async def process_tick(
        self, instance_id: str, force: bool = False
    ) -> TickOutcome | WaitingOutcome:
        if not isinstance(instance_id, str) or not instance_id.strip():
            raise ValidationError("instance_id is required")
        if not isinstance(force, bool):
            raise ValidationError("force must be a boolean")

        try:
            return await asyncio.wait_for(self._run(instance_id, force), self.tick_timeout)
        except asyncio.TimeoutError as e:
            logger.error("Tick for %s exceeded %ss, nothing committed", instance_id, self.tick_timeout)
            raise TickTimeout(f"Tick processing exceeded {self.tick_timeout}s") from e
        except GameError:
            raise
        except Exception as e:
            logger.exception("Unexpected error processing tick for %s", instance_id)
            raise UnexpectedError(f"Tick processing failed: {e}") from e

    async def _run(self, instance_id: str, force: bool) -> TickOutcome | WaitingOutcome:
        instance = await self.store.get_instance(instance_id)
        if instance is None:
            raise NotFoundError(f"Instance {instance_id} not found")
        if instance.game_state != "active":
            raise NotActiveError(f"Instance {instance_id} is {instance.game_state}")
        tick = instance.current_tick

        dungeon = await self.store.get_dungeon(instance.dungeon_id)
        if dungeon is None or not dungeon.room_sequence:
            raise UnexpectedError(f"Dungeon {instance.dungeon_id} missing or has no rooms")
        room_id = dungeon.room_sequence[instance.current_room_index]
        room = await self.store.get_room(room_id)
        if room is None:
            raise UnexpectedError(f"Room {room_id} not found")

        commands = await self.store.get_tick_commands(instance.id, tick)
        submitted = {c.character_id for c in commands} & set(instance.characters)
        if len(submitted) < len(instance.characters) and not force:
            logger.debug(
                "Instance %s tick %d waiting (%d/%d)",
                instance.id, tick, len(submitted), len(instance.characters),
            )
            return WaitingOutcome(
                instance_id=instance.id,
                tick=tick,
                submitted=len(submitted),
                expected=len(instance.characters),
            )

        session = await TickSession.open(self.store, instance.characters)
        ctx = ResolveContext(room=room, session=session, content=self.content, rng=self._rng_factory())
        instance = enter_room(instance, room)

        results: list[ActionResultBase] = []
        seen: set[str] = set()
        for command in commands:
            if command.character_id in seen or command.character_id not in instance.characters:
                logger.info("Skipping extra command %s from %s", command.id, command.character_id)
                continue
            seen.add(command.character_id)
            intent = None
            savepoint = session.savepoint()
            try:
                result, instance, intent = await resolve_command(command, instance, ctx, self.intents)
            except Exception as e:
                logger.exception("Command %s failed", command.id)
                session.rollback(savepoint)
                character = session.get_character(command.character_id)
                name = character.name if character else command.character_id
                result = UnknownResult(
                    character_id=command.character_id,
                    character=name,
                    command_id=command.id,
                    command=command.raw_input,
                    error=str(e) or type(e).__name__,
                )
                result.narration = render(self.content, "error", character=name)
            results.append(result)
            session.record_result(command, intent, result.model_dump(mode="json"))

        instance, enemy_actions = run_enemy_phase(ctx, instance)

        instance = instance.model_copy(update={"current_tick": tick + 1, "last_activity": utc_now()})
        party = session.characters(instance.characters)
        instance, verdict = evaluate_completion(instance, dungeon, room, party, results)
        if verdict.advance:
            next_room = await self.store.get_room(dungeon.room_sequence[instance.current_room_index])
            if next_room is None:
                raise UnexpectedError(f"Room {dungeon.room_sequence[instance.current_room_index]} not found")
            instance = enter_room(instance, next_room)

        try:
            await self.store.commit_tick(instance, tick, session.staged_characters, session.results)
        except ConflictError as e:
            logger.info("Tick %d for %s lost the race: %s", tick, instance.id, e)
            raise ConcurrencyConflict(f"Tick {tick} for {instance.id} was already processed") from e

        try:
            await self.store.close_unresolved_commands(instance.id, tick)
        except StorageError as e:
            logger.warning("Tick %d for %s committed but leftover commands stay open: %s", tick, instance.id, e)

        logger.info(
            "Instance %s tick %d committed: %d result(s), %d enemy action(s), room %s",
            instance.id, tick, len(results), len(enemy_actions), verdict.room_status,
        )
        return TickOutcome(
            instance_id=instance.id,
            tick=tick,
            results=results,
            enemy_actions=enemy_actions,
            next_tick=instance.current_tick,
            room_status=verdict,
        )
