import logging
import os
import random
from collections.abc import Callable
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from depths.api.routes import router
from depths.config import load_config, tick_timeout
from depths.content import load_content
from depths.errors import GameError
from depths.intent import IntentService
from depths.llm import LLM, HttpLLM
from depths.runner import TickRunner
from depths.scheduler import TickScheduler
from depths.storage import CachedRecordStore, GameStore, JsonRecordStore

load_dotenv(Path(__file__).parent.parent.parent / ".env")

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path(__file__).parent.parent.parent / "data"


def _intent_llm(config: dict) -> LLM | None:
    intent = config["intent"]
    if not intent["provider_url"]:
        logger.info("No intent backend configured, using keyword parser")
        return None
    return HttpLLM(
        intent["provider_url"],
        api_key=intent["api_key"],
        provider_format=intent["provider_format"],
        model=intent["model"],
        timeout=float(intent["timeout"]),
        temperature=float(intent["temperature"]),
        max_tokens=int(intent["max_tokens"]),
    )


def create_app(
    data_dir: Path | None = None,
    llm: LLM | None = None,
    rng_factory: Callable[[], random.Random] | None = None,
) -> FastAPI:
    resolved = data_dir or Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))
    resolved.mkdir(parents=True, exist_ok=True)
    config = load_config(resolved)
    content = load_content(resolved / "content.json")

    store = GameStore(CachedRecordStore(JsonRecordStore(resolved)), content)
    intents = IntentService(llm if llm is not None else _intent_llm(config), content)
    scheduler = TickScheduler(
        store, intents, content, rng_factory=rng_factory, tick_timeout=tick_timeout(config)
    )
    runner = TickRunner(scheduler, float(config["tick_poll_interval"])) if config["auto_tick"] else None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if runner:
            runner.start()
        yield
        if runner:
            await runner.stop()

    app = FastAPI(title="Depths Tick Service", lifespan=lifespan)
    app.state.store = store
    app.state.scheduler = scheduler
    app.state.runner = runner
    app.include_router(router, prefix="/api")

    @app.exception_handler(GameError)
    async def game_error_handler(request: Request, exc: GameError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "validation", "message": str(exc.errors())},
        )

    return app


# Default app instance for uvicorn (uses DATA_DIR env var or default)
app = create_app()
