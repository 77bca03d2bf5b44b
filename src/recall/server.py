import dataclasses
import logging
import time
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from recall.application.config import EngineConfig, resolve_config
from recall.application.engine import StudyEngine
from recall.application.factory import open_engine
from recall.application.snapshot import (
    CardRecord,
    DataExport,
    PackRecord,
    card_to_record,
    pack_to_record,
)
from recall.consts import VERSION
from recall.domain.errors import NotFoundError, ValidationError
from recall.domain.models import DataSummary

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("recall.server")


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


class AddCardRequest(BaseModel):
    source_type: str
    source_id: str
    pack_ids: list[str] | None = None


class ReviewRequest(BaseModel):
    # Checked by the engine; a bad value is a 422 like any other ValidationError
    quality: Any


class ReviewResponse(BaseModel):
    review_id: str
    card: CardRecord


class UndoResponse(BaseModel):
    undone: bool
    card: CardRecord


class SavedResponse(BaseModel):
    saved: bool


class CreatePackRequest(BaseModel):
    name: str
    description: str | None = None
    color: str | None = None


class RenamePackRequest(BaseModel):
    name: str


class StudyTimeRequest(BaseModel):
    minutes: float = Field(gt=0)


class SummaryResponse(BaseModel):
    total_cards: int
    total_packs: int
    total_reviews: int
    best_streak: int
    oldest_card_date: datetime | None

    @classmethod
    def from_summary(cls, summary: DataSummary) -> "SummaryResponse":
        return cls(**dataclasses.asdict(summary))


class StatsResponse(BaseModel):
    total_cards: int
    new_cards: int
    learning_cards: int
    mastered_cards: int
    due_now: int
    current_streak: int
    longest_streak: int
    last_study_date: date | None
    studied_today: bool
    achievements: list[int]
    retention_rate_7d: float
    retention_rate_30d: float
    average_ease_factor: float
    total_reviews: int
    reviews_today: int
    total_minutes_studied: float
    most_challenging_ids: list[str]
    overdue_ids: list[str]
    due_today: int
    due_tomorrow: int
    due_this_week: int


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app(config: EngineConfig | None = None, engine: StudyEngine | None = None) -> FastAPI:
    """
    Build the HTTP app around one engine instance.

    A pre-built ``engine`` is used as-is (and must already be open); otherwise
    one is opened from ``config`` (or the resolved configuration) at startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        logger.info(f"recall server v{VERSION} starting up...")
        active = engine or await open_engine(config or resolve_config())
        app.state.engine = active
        app.state.start_time = time.time()
        active.start_background_flush()
        yield
        # Shutdown
        logger.info("recall server shutting down...")
        await active.close()

    app = FastAPI(
        title="recall server",
        description="HTTP surface over the recall study engine.",
        version=VERSION,
        lifespan=lifespan,
    )

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(ValidationError)
    async def validation_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    _register_routes(app)
    return app


def _engine(request: Request) -> StudyEngine:
    return request.app.state.engine


def _register_routes(app: FastAPI) -> None:
    @app.get("/health", response_model=HealthResponse)
    async def health_check(request: Request):
        """
        Simple health check to verify server is reachable.
        """
        return HealthResponse(
            status="ok",
            version=VERSION,
            uptime_seconds=time.time() - request.app.state.start_time,
        )

    # -- Cards ---------------------------------------------------------------

    @app.get("/cards", response_model=list[CardRecord])
    async def list_cards(request: Request, pack_id: str | None = None):
        engine = _engine(request)
        cards = engine.store.get_cards_by_pack(pack_id) if pack_id else engine.store.cards
        return [card_to_record(c) for c in cards]

    @app.post("/cards", response_model=CardRecord, status_code=201)
    async def add_card(request: Request, req: AddCardRequest):
        card = _engine(request).add_card(req.source_type, req.source_id, req.pack_ids)
        return card_to_record(card)

    @app.get("/cards/due", response_model=list[CardRecord])
    async def due_cards(request: Request, pack_id: str | None = None):
        return [card_to_record(c) for c in _engine(request).get_due_cards(pack_id)]

    @app.get("/cards/saved", response_model=SavedResponse)
    async def is_card_saved(request: Request, source_type: str, source_id: str):
        return SavedResponse(saved=_engine(request).is_card_saved(source_type, source_id))

    @app.get("/cards/{card_id}", response_model=CardRecord)
    async def get_card(request: Request, card_id: str):
        return card_to_record(_engine(request).store.get_card(card_id))

    @app.delete("/cards/{card_id}", status_code=204)
    async def remove_card(request: Request, card_id: str):
        _engine(request).remove_card(card_id)
        return Response(status_code=204)

    @app.post("/cards/{card_id}/review", response_model=ReviewResponse)
    async def review_card(request: Request, card_id: str, req: ReviewRequest):
        engine = _engine(request)
        event = engine.record_review(card_id, req.quality)
        return ReviewResponse(
            review_id=event.id, card=card_to_record(engine.store.get_card(card_id))
        )

    @app.post("/cards/{card_id}/undo", response_model=UndoResponse)
    async def undo_review(request: Request, card_id: str):
        engine = _engine(request)
        card = engine.store.get_card(card_id)
        undone = engine.undo_last_review(card_id)
        return UndoResponse(undone=undone, card=card_to_record(card))

    # -- Packs ---------------------------------------------------------------

    @app.get("/packs", response_model=list[PackRecord])
    async def list_packs(request: Request):
        return [pack_to_record(p) for p in _engine(request).store.packs]

    @app.post("/packs", response_model=PackRecord, status_code=201)
    async def create_pack(request: Request, req: CreatePackRequest):
        pack = _engine(request).create_pack(req.name, req.description, req.color)
        return pack_to_record(pack)

    @app.get("/packs/{pack_id}", response_model=PackRecord)
    async def get_pack(request: Request, pack_id: str):
        return pack_to_record(_engine(request).store.get_pack(pack_id))

    @app.patch("/packs/{pack_id}", response_model=PackRecord)
    async def rename_pack(request: Request, pack_id: str, req: RenamePackRequest):
        return pack_to_record(_engine(request).rename_pack(pack_id, req.name))

    @app.delete("/packs/{pack_id}", status_code=204)
    async def delete_pack(request: Request, pack_id: str):
        _engine(request).delete_pack(pack_id)
        return Response(status_code=204)

    @app.get("/packs/{pack_id}/cards", response_model=list[CardRecord])
    async def pack_cards(request: Request, pack_id: str):
        return [card_to_record(c) for c in _engine(request).store.get_cards_by_pack(pack_id)]

    @app.put("/packs/{pack_id}/cards/{card_id}", response_model=CardRecord)
    async def add_card_to_pack(request: Request, pack_id: str, card_id: str):
        return card_to_record(_engine(request).move_card_to_pack(card_id, pack_id))

    @app.delete("/packs/{pack_id}/cards/{card_id}", response_model=CardRecord)
    async def remove_card_from_pack(request: Request, pack_id: str, card_id: str):
        return card_to_record(_engine(request).remove_card_from_pack(card_id, pack_id))

    # -- Stats ---------------------------------------------------------------

    @app.get("/stats", response_model=StatsResponse)
    async def get_stats(request: Request):
        return StatsResponse(**dataclasses.asdict(_engine(request).get_stats()))

    @app.post("/stats/study-time", status_code=204)
    async def add_study_time(request: Request, req: StudyTimeRequest):
        _engine(request).add_study_time(req.minutes)
        return Response(status_code=204)

    # -- Data management -----------------------------------------------------

    @app.get("/export", response_model=DataExport)
    async def export_data(request: Request):
        return _engine(request).export_data()

    @app.post("/import", response_model=SummaryResponse)
    async def import_data(request: Request, document: dict[str, Any]):
        """Replace all data. Invalid records are skipped, an unusable document is a 422."""
        engine = _engine(request)
        summary = engine.import_data(document)
        await engine.flush()
        return SummaryResponse.from_summary(summary)

    @app.delete("/data", response_model=SummaryResponse)
    async def clear_data(request: Request):
        engine = _engine(request)
        summary = engine.clear_all()
        await engine.flush()
        return SummaryResponse.from_summary(summary)


app = create_app()
