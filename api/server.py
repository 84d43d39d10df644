"""
HTTP API for Token Reducer.

Exposes the text commands plus JSON views of token status, the timeline and
the memory cache, and lets a host forward its chat lifecycle events.
"""

from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from agents.session import ChatSession
from api.commands import CommandRouter
from config.presets import PresetStore
from core import get_logger
from schemas import Chapter, TokenBreakdownItem, TokenSavings

logger = get_logger(__name__)


class CommandRequest(BaseModel):
    command: str


class CommandResponse(BaseModel):
    command: str
    output: str
    ok: bool


class TimelineResponse(BaseModel):
    count: int
    chapters: List[Chapter]


class SummaryResponse(BaseModel):
    index: int
    summary: Optional[str] = None
    scene_end: bool = False
    scene_summary: Optional[str] = None


LIFECYCLE_EVENTS = ("rendered", "swiped", "edited")


def create_app(session: ChatSession, preset_store: Optional[PresetStore] = None) -> FastAPI:
    """Build the FastAPI app around one chat session."""
    commands = CommandRouter(session, preset_store)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting Token Reducer API", chat_id=session.chat_log.chat_id)
        await session.open()
        yield
        logger.info("Shutting down Token Reducer API")

    app = FastAPI(title="Token Reducer API", lifespan=lifespan)
    app.state.session = session
    app.state.commands = commands

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/health")
    async def health_check():
        return {"status": "ok", "messages": len(session.chat_log)}

    @app.post("/api/commands", response_model=CommandResponse)
    async def run_command(req: CommandRequest):
        output = await commands.dispatch(req.command)
        return CommandResponse(
            command=req.command,
            output=output,
            ok=not output.startswith("Error:"),
        )

    @app.get("/api/status", response_model=TokenSavings)
    async def get_status():
        async with session.lock:
            return await session.accountant.total_savings()

    @app.get("/api/tokens", response_model=List[TokenBreakdownItem])
    async def get_token_breakdown():
        async with session.lock:
            return await session.accountant.breakdown()

    @app.get("/api/timeline", response_model=TimelineResponse)
    async def get_timeline():
        chapters = session.timeline.chapters
        return TimelineResponse(count=len(chapters), chapters=chapters)

    @app.get("/api/messages/{index}/summary", response_model=SummaryResponse)
    async def get_message_summary(index: int):
        summarizer = session.summarizer
        if not 0 <= index < len(session.chat_log):
            raise HTTPException(status_code=404, detail=f"Message {index} not found")
        return SummaryResponse(
            index=index,
            summary=summarizer.get_message_summary(index),
            scene_end=summarizer.is_scene_end(index),
            scene_summary=summarizer.get_scene_summary(index),
        )

    @app.get("/api/memories/export")
    async def export_memories():
        return Response(
            content=session.memory_store.export_json(),
            media_type="application/json",
        )

    @app.post("/api/events/{event}/{index}")
    async def message_event(event: str, index: int):
        """Forward a per-message host event (rendered, swiped, edited)."""
        if event not in LIFECYCLE_EVENTS:
            raise HTTPException(status_code=404, detail=f"Unknown event: {event}")

        router = session.router
        savings = None
        if event == "swiped":
            router.message_swiped(index)
        elif event == "edited":
            await router.message_edited(index)
        else:
            savings = await router.character_message_rendered(index)

        return {
            "event": event,
            "index": index,
            "state": router.state.value,
            "savings": savings.model_dump() if savings else None,
        }

    @app.post("/api/events/chat-changed")
    async def chat_changed():
        savings = await session.router.chat_changed()
        return {"event": "chat-changed", "savings": savings.model_dump() if savings else None}

    @app.post("/api/events/generation-started")
    async def generation_started():
        await session.router.generation_started()
        return {"event": "generation-started", "injections": sorted(session.chat_log.injections)}

    return app
