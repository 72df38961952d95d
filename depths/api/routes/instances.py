"""Game instance and command submission endpoints."""

from fastapi import APIRouter, HTTPException, Request

from .models import CreateInstance, SubmitCommand

router = APIRouter()


@router.post("/instances", status_code=201)
async def create_instance(body: CreateInstance, request: Request):
    """Start an adventure attempt for a party of characters."""
    store = request.app.state.store
    instance = await store.create_instance(
        body.dungeon_id, body.character_ids, tick_interval=body.tick_interval
    )
    return instance.model_dump(mode="json")


@router.get("/instances/{instance_id}")
async def get_instance(instance_id: str, request: Request):
    instance = await request.app.state.store.get_instance(instance_id)
    if not instance:
        raise HTTPException(404, "Instance not found")
    return instance.model_dump(mode="json")


@router.post("/instances/{instance_id}/commands", status_code=201)
async def submit_command(instance_id: str, body: SubmitCommand, request: Request):
    """Queue a command for the instance's current tick."""
    command = await request.app.state.store.submit_command(
        instance_id, body.character_id, body.raw_input
    )
    return command.model_dump(mode="json")


@router.get("/instances/{instance_id}/commands")
async def list_commands(instance_id: str, request: Request, tick: int | None = None):
    """Commands for an instance, optionally limited to one tick."""
    store = request.app.state.store
    if not await store.get_instance(instance_id):
        raise HTTPException(404, "Instance not found")
    if tick is not None:
        commands = await store.get_tick_commands(instance_id, tick)
    else:
        commands = await store.list_commands(instance_id)
    return [c.model_dump(mode="json") for c in commands]
