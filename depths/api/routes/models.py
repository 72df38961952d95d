"""Pydantic request models for API endpoints."""

from pydantic import BaseModel, Field


class TickBody(BaseModel):
    instance_id: str = Field(min_length=1)
    force: bool = False


class CreateCharacter(BaseModel):
    name: str = Field(min_length=1)
    player_id: str | None = None


class CreateInstance(BaseModel):
    dungeon_id: str
    character_ids: list[str] = Field(min_length=1)
    tick_interval: str = "1min"


class SubmitCommand(BaseModel):
    character_id: str
    raw_input: str = Field(min_length=1)
