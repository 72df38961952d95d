"""Tick entry point and health check."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from depths.models import WaitingOutcome

from .models import TickBody

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.post("/tick")
async def process_tick(body: TickBody, request: Request):
    """Run one tick for an instance. Answers 425 while players are still submitting."""
    outcome = await request.app.state.scheduler.process_tick(body.instance_id, force=body.force)
    if isinstance(outcome, WaitingOutcome):
        return JSONResponse(
            status_code=425,
            content={"error": "waiting_for_submissions", **outcome.model_dump(mode="json")},
        )
    return outcome.model_dump(mode="json")
