"""API route handlers for the Berthwatch web API."""

from __future__ import annotations

import logging
import sqlite3

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from berthwatch.web.deps import get_readonly_connection
from berthwatch.web.models import (
    CrawlStatusResponse,
    DebugResponse,
    ScheduleChangeListResponse,
    TerminalCode,
    VesselListResponse,
    VesselPage,
)
from berthwatch.web.queries import (
    count_by_source,
    get_crawl_status,
    list_changes,
    list_terminal_codes,
    query_vessels,
)

logger = logging.getLogger(__name__)

router = APIRouter()
health_router = APIRouter()


@health_router.get("/health")
def health(request: Request) -> JSONResponse:
    """Check database connectivity and return health status."""
    database_path = request.app.state.database_path
    try:
        with get_readonly_connection(database_path) as conn:
            conn.execute("SELECT 1 FROM crawl_status LIMIT 1")
        return JSONResponse({"status": "healthy", "database": "ok"})
    except (sqlite3.Error, OSError) as exc:
        logger.warning("Health check failed: %s", exc)
        return JSONResponse(
            {"status": "unhealthy", "database": "error", "detail": str(exc)},
            status_code=503,
        )


@router.get("/terminal/getAll", response_model=VesselListResponse)
def get_all(
    request: Request,
    pageSize: int = Query(20, ge=1, le=1000),
    pageNo: int = 1,
    searchValue1: str | None = None,
    trmnCode: str | None = None,
) -> VesselListResponse:
    database_path = request.app.state.database_path
    data = query_vessels(
        database_path,
        page_size=pageSize,
        page_no=pageNo,
        source_codes=trmnCode,
        search_text=searchValue1,
    )
    return VesselListResponse(resultObject=VesselPage(**data))


@router.get("/terminal/codes", response_model=list[TerminalCode])
def terminal_codes(request: Request) -> list[TerminalCode]:
    database_path = request.app.state.database_path
    return [TerminalCode(**r) for r in list_terminal_codes(database_path)]


@router.get("/terminal/status", response_model=CrawlStatusResponse)
def terminal_status(request: Request) -> CrawlStatusResponse:
    database_path = request.app.state.database_path
    data = get_crawl_status(database_path)
    return CrawlStatusResponse(status="ok", lastUpdated=data["last_updated"])


@router.get("/terminal/debug", response_model=DebugResponse)
def terminal_debug(request: Request) -> DebugResponse:
    database_path = request.app.state.database_path
    by_terminal = count_by_source(database_path)
    return DebugResponse(totalStored=sum(by_terminal.values()), byTerminal=by_terminal)


@router.get("/terminal/changes", response_model=ScheduleChangeListResponse)
def terminal_changes(
    request: Request,
    trmnCode: str | None = None,
    limit: int = Query(100, ge=1, le=1000),
) -> ScheduleChangeListResponse:
    database_path = request.app.state.database_path
    rows, total = list_changes(database_path, source_codes=trmnCode, limit=limit)
    return ScheduleChangeListResponse(changes=rows, total=total)
