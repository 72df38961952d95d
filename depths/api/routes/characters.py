"""Character endpoints."""

from fastapi import APIRouter, HTTPException, Request

from .models import CreateCharacter

router = APIRouter()


@router.post("/characters", status_code=201)
async def create_character(body: CreateCharacter, request: Request):
    """Create a character with the starting kit."""
    store = request.app.state.store
    character = await store.create_character(body.name, player_id=body.player_id)
    return character.model_dump(mode="json")


@router.get("/characters/{character_id}")
async def get_character(character_id: str, request: Request):
    character = await request.app.state.store.get_character(character_id)
    if not character:
        raise HTTPException(404, "Character not found")
    return character.model_dump(mode="json")
