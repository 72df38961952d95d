"""Per-tick staging area for character writes.

Handlers never write characters straight to the record store. They call
``update_character`` on the session, which validates the change and keeps
it in memory; the scheduler commits every staged character together with
the instance in one guarded batch. A tick that aborts leaves nothing behind.
"""

import logging
from typing import Any

from pydantic import ValidationError as ModelValidationError

from depths.models import Character, Command, Intent

from .game import GameStore
from .records import StorageError

logger = logging.getLogger(__name__)


class TickSession:
    def __init__(self, characters: dict[str, Character]) -> None:
        self._loaded = dict(characters)
        self._staged: dict[str, Character] = {}
        self._results: list[tuple[Command, Intent | None, dict[str, Any]]] = []

    @classmethod
    async def open(cls, store: GameStore, character_ids: list[str]) -> "TickSession":
        return cls(await store.get_characters(character_ids))

    def get_character(self, character_id: str) -> Character | None:
        if character_id in self._staged:
            return self._staged[character_id]
        return self._loaded.get(character_id)

    def characters(self, character_ids: list[str]) -> list[Character]:
        """Current view of the given characters, skipping unknown ids."""
        found = (self.get_character(cid) for cid in character_ids)
        return [c for c in found if c is not None]

    def update_character(self, character_id: str, fields: dict[str, Any]) -> Character:
        """Stage new field values for a character and return the updated value."""
        current = self.get_character(character_id)
        if current is None:
            raise StorageError(f"Character {character_id} not found")
        try:
            updated = Character.model_validate({**current.model_dump(), **fields})
        except ModelValidationError as e:
            raise StorageError(f"Rejected update for character {character_id}: {e}") from e
        self._staged[character_id] = updated
        return updated

    def save_character(self, character: Character) -> Character:
        return self.update_character(character.id, character.model_dump(exclude={"id"}))

    def savepoint(self) -> dict[str, Character]:
        """Current staged writes, for ``rollback`` if a command fails part way."""
        return dict(self._staged)

    def rollback(self, savepoint: dict[str, Character]) -> None:
        self._staged = dict(savepoint)

    def record_result(self, command: Command, intent: Intent | None, result: dict[str, Any]) -> None:
        self._results.append((command, intent, result))

    @property
    def staged_characters(self) -> list[Character]:
        return list(self._staged.values())

    @property
    def results(self) -> list[tuple[Command, Intent | None, dict[str, Any]]]:
        return list(self._results)
