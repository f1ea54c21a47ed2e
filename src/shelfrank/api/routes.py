from typing import Annotated

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    HTTPException,
    Query,
    Request,
    Response,
)
from pydantic import BaseModel

from ..backfill import CoverBackfillWorker
from ..csv_io import ImportFormatError
from ..logging_config import get_logger
from ..models import BookRecord, ImportFormat, ImportSummary, MatchOptions, Matchup
from ..services.catalog import BookNotFoundError, CatalogService

logger = get_logger(__name__)

router = APIRouter(prefix="/api")

EXPORT_FILENAME = "shelfrank_rankings.csv"


def get_catalog_service(request: Request) -> CatalogService:
    return request.app.state.catalog_service


CatalogDep = Annotated[CatalogService, Depends(get_catalog_service)]


def get_cover_worker(request: Request) -> CoverBackfillWorker | None:
    return getattr(request.app.state, "matchup_cover_worker", None)


CoverWorkerDep = Annotated[CoverBackfillWorker | None, Depends(get_cover_worker)]


class OutcomeRequest(BaseModel):
    winner_id: str
    loser_id: str


class OutcomeResponse(BaseModel):
    winner: BookRecord
    loser: BookRecord


# ─────────────────────────────────────────────────────────────────────────────
# Catalog Import / Export
# ─────────────────────────────────────────────────────────────────────────────


@router.post("/catalog/import")
async def import_catalog(
    request: Request,
    catalog: CatalogDep,
    requested: Annotated[
        str, Query(alias="format", pattern="^(auto|library|rankings)$")
    ] = "auto",
) -> ImportSummary:
    body = await request.body()
    try:
        text = body.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise HTTPException(status_code=400, detail="Import must be UTF-8 text") from e

    import_format = None if requested == "auto" else ImportFormat(requested)

    try:
        return catalog.import_text(text, import_format)
    except ImportFormatError as e:
        logger.warning("Import rejected", error=str(e), format=requested)
        raise HTTPException(status_code=400, detail=str(e)) from e


@router.get("/catalog/export")
async def export_catalog(catalog: CatalogDep) -> Response:
    return Response(
        content=catalog.export_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
    )


@router.get("/books")
async def list_books(
    catalog: CatalogDep,
    include_inactive: bool = False,
) -> list[BookRecord]:
    return catalog.rankings(include_inactive=include_inactive)


# ─────────────────────────────────────────────────────────────────────────────
# Matchups
# ─────────────────────────────────────────────────────────────────────────────


@router.post("/matchups")
async def next_matchup(
    catalog: CatalogDep,
    cover_worker: CoverWorkerDep,
    background_tasks: BackgroundTasks,
    options: MatchOptions | None = None,
) -> Matchup:
    book1, book2 = catalog.next_matchup(options)
    if cover_worker is not None and book1 is not None and book2 is not None:
        background_tasks.add_task(cover_worker.ensure_covers, [book1, book2])
    return Matchup(book1=book1, book2=book2)


@router.post("/matchups/result")
async def record_result(outcome: OutcomeRequest, catalog: CatalogDep) -> OutcomeResponse:
    try:
        winner, loser = catalog.record_outcome(outcome.winner_id, outcome.loser_id)
    except BookNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    return OutcomeResponse(winner=winner, loser=loser)
