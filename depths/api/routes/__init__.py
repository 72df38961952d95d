"""FastAPI API endpoints under /api.

Endpoint groups: health + tick, characters, instances (with their commands
nested under /api/instances/{instance_id}/commands).

Services live on ``app.state``: ``store`` (GameStore), ``scheduler``
(TickScheduler), ``runner`` (TickRunner or None).
"""

from fastapi import APIRouter

from .characters import router as characters_router
from .instances import router as instances_router
from .tick import router as tick_router

router = APIRouter()
router.include_router(tick_router)
router.include_router(characters_router)
router.include_router(instances_router)
