"""Typed repository over the record store.

Converts between records and domain models. Everything above this module
works with ``Character``, ``GameInstance`` etc.; everything below it works
with tables and JSON-text fields.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from depths.content import GameContent
from depths.errors import NotActiveError, NotFoundError, ValidationError
from depths.models import Character, Command, Dungeon, GameInstance, Intent, Room, UnknownResult

from .fields import decode_fields, encode_fields
from .records import Change, Guard, Record, RecordStore

logger = logging.getLogger(__name__)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _fields(table: str, record: Record) -> dict[str, Any]:
    return {"id": record["id"], **decode_fields(table, record["fields"])}


# ── Record ↔ model ──────────────────────────────────────


def character_from_record(record: Record) -> Character:
    return Character.model_validate(_fields("characters", record))


def character_fields(character: Character) -> dict[str, Any]:
    return encode_fields("characters", character.model_dump(exclude={"id"}))


def instance_from_record(record: Record) -> GameInstance:
    return GameInstance.model_validate(_fields("game_instances", record))


def instance_fields(instance: GameInstance) -> dict[str, Any]:
    return encode_fields("game_instances", instance.model_dump(exclude={"id"}, mode="json"))


def command_from_record(record: Record) -> Command:
    data = _fields("commands", record)
    data["resolved_intent"] = data["resolved_intent"] or None
    data["result"] = data["result"] or None
    return Command.model_validate(data)


class GameStore:
    """Game-level reads and writes on top of a ``RecordStore``."""

    def __init__(self, records: RecordStore, content: GameContent) -> None:
        self.records = records
        self.content = content

    # ── Players & characters ────────────────────────────

    async def create_player(self, name: str) -> str:
        record = await self.records.create("players", {"name": name, "created_at": utc_now()})
        return record["id"]

    async def create_character(
        self, name: str, player_id: str | None = None, **overrides: Any
    ) -> Character:
        """Create a character with the starting kit. ``overrides`` replace kit fields."""
        name = name.strip()
        if not name:
            raise ValidationError("Character name is required")
        kit: dict[str, Any] = {
            "name": name,
            "player_id": player_id,
            "skills": {skill: 0 for skill in self.content.skills},
            "equipment": dict(self.content.starting_equipment),
            "inventory": list(self.content.starting_inventory),
        }
        kit.update(overrides)
        # Validate before writing so a bad kit never reaches disk
        draft = Character.model_validate({"id": "new", **kit})
        record = await self.records.create("characters", character_fields(draft))
        logger.info("Created character %s (%s)", record["id"], name)
        return character_from_record(record)

    async def get_character(self, character_id: str) -> Character | None:
        record = await self.records.get("characters", character_id)
        return character_from_record(record) if record else None

    async def get_characters(self, character_ids: list[str]) -> dict[str, Character]:
        wanted = set(character_ids)
        records = await self.records.read("characters")
        return {
            r["id"]: character_from_record(r) for r in records if r["id"] in wanted
        }

    # ── Content ─────────────────────────────────────────

    async def create_room(self, room: Room) -> Room:
        fields = encode_fields("rooms", room.model_dump(exclude={"id"}))
        record = await self.records.create("rooms", fields)
        return Room.model_validate(_fields("rooms", record))

    async def get_room(self, room_id: str) -> Room | None:
        record = await self.records.get("rooms", room_id)
        return Room.model_validate(_fields("rooms", record)) if record else None

    async def create_dungeon(self, dungeon: Dungeon) -> Dungeon:
        fields = encode_fields("dungeons", dungeon.model_dump(exclude={"id"}))
        record = await self.records.create("dungeons", fields)
        return Dungeon.model_validate(_fields("dungeons", record))

    async def get_dungeon(self, dungeon_id: str) -> Dungeon | None:
        record = await self.records.get("dungeons", dungeon_id)
        return Dungeon.model_validate(_fields("dungeons", record)) if record else None

    # ── Instances ───────────────────────────────────────

    async def create_instance(
        self, dungeon_id: str, character_ids: list[str], tick_interval: str = "1min"
    ) -> GameInstance:
        if not character_ids:
            raise ValidationError("An instance needs at least one character")
        if await self.get_dungeon(dungeon_id) is None:
            raise NotFoundError(f"Dungeon {dungeon_id} not found")
        found = await self.get_characters(character_ids)
        missing = [cid for cid in character_ids if cid not in found]
        if missing:
            raise NotFoundError(f"Characters not found: {', '.join(missing)}")

        draft = GameInstance(
            id="new",
            dungeon_id=dungeon_id,
            characters=list(dict.fromkeys(character_ids)),
            tick_interval=tick_interval,
            last_activity=utc_now(),
        )
        record = await self.records.create("game_instances", instance_fields(draft))
        logger.info("Created instance %s for dungeon %s", record["id"], dungeon_id)
        return instance_from_record(record)

    async def get_instance(self, instance_id: str) -> GameInstance | None:
        record = await self.records.get("game_instances", instance_id)
        return instance_from_record(record) if record else None

    async def list_active_instances(self) -> list[GameInstance]:
        records = await self.records.read(
            "game_instances", lambda f: f.get("game_state") == "active"
        )
        return [instance_from_record(r) for r in records]

    # ── Commands ────────────────────────────────────────

    async def submit_command(
        self, instance_id: str, character_id: str, raw_input: str
    ) -> Command:
        """Append a command for the instance's current tick.

        A command that lands while its tick is already being resolved keeps
        that tick number and is closed with a failed result once the tick
        commits (see ``close_unresolved_commands``).
        """
        raw_input = raw_input.strip()
        if not raw_input:
            raise ValidationError("Command text is required")
        instance = await self.get_instance(instance_id)
        if instance is None:
            raise NotFoundError(f"Instance {instance_id} not found")
        if instance.game_state != "active":
            raise NotActiveError(f"Instance {instance_id} is {instance.game_state}")
        if character_id not in instance.characters:
            raise ValidationError(f"Character {character_id} is not part of instance {instance_id}")

        record = await self.records.create("commands", encode_fields("commands", {
            "instance_id": instance_id,
            "character_id": character_id,
            "tick_number": instance.current_tick,
            "raw_input": raw_input,
            "submitted_at": utc_now(),
        }))
        return command_from_record(record)

    async def get_tick_commands(self, instance_id: str, tick: int) -> list[Command]:
        """Commands for one tick, in submission order."""
        records = await self.records.read(
            "commands",
            lambda f: f.get("instance_id") == instance_id and f.get("tick_number") == tick,
        )
        commands = [command_from_record(r) for r in records]
        return sorted(commands, key=lambda c: c.submitted_at or "")

    async def list_commands(self, instance_id: str) -> list[Command]:
        records = await self.records.read("commands", lambda f: f.get("instance_id") == instance_id)
        return [command_from_record(r) for r in records]

    async def close_unresolved_commands(self, instance_id: str, tick: int) -> list[Command]:
        """Give every still-unresolved command of a committed tick a failed result.

        Covers commands submitted after the tick read its commands and extra
        commands skipped because the character already acted that tick.
        """
        closed: list[Command] = []
        for command in await self.get_tick_commands(instance_id, tick):
            if command.result is not None:
                continue
            message = f"Tick {tick} closed without resolving this command."
            result = UnknownResult(
                character_id=command.character_id,
                command_id=command.id,
                command=command.raw_input,
                error="tick_closed",
                message=message,
                narration=message,
            )
            record = await self.records.update(
                "commands", command.id,
                encode_fields("commands", {"result": result.model_dump(mode="json")}),
            )
            closed.append(command_from_record(record))
        if closed:
            logger.info("Closed %d unresolved command(s) for %s tick %d", len(closed), instance_id, tick)
        return closed

    # ── Tick commit ─────────────────────────────────────

    async def commit_tick(
        self,
        instance: GameInstance,
        expected_tick: int,
        characters: list[Character],
        results: list[tuple[Command, Intent | None, dict[str, Any]]],
    ) -> None:
        """Write the tick's instance, characters and command results atomically.

        Raises ConflictError if the stored ``current_tick`` is no longer
        ``expected_tick``.
        """
        changes = [Change(table="game_instances", record_id=instance.id, fields=instance_fields(instance))]
        changes.extend(
            Change(table="characters", record_id=c.id, fields=character_fields(c))
            for c in characters
        )
        for command, intent, result in results:
            changes.append(Change(
                table="commands",
                record_id=command.id,
                fields=encode_fields("commands", {
                    "resolved_intent": intent.model_dump(mode="json") if intent else {},
                    "result": result,
                }),
            ))
        guard = Guard(
            table="game_instances",
            record_id=instance.id,
            field="current_tick",
            expected=expected_tick,
        )
        await self.records.commit(changes, guard)
